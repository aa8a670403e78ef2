from datetime import date, datetime
from types import SimpleNamespace

from auditguard.services import tat_service


def test_working_days():
    assert tat_service.is_working_day(date(2026, 3, 7))  # first Saturday
    assert not tat_service.is_working_day(date(2026, 3, 8))  # Sunday
    assert not tat_service.is_working_day(date(2026, 3, 14))  # second Saturday
    assert not tat_service.is_working_day(date(2026, 3, 19))  # holiday
    assert tat_service.is_working_day(datetime(2026, 3, 9, 18, 0))


def test_count_working_days():
    assert tat_service.count_working_days(datetime(2026, 3, 9, 10), datetime(2026, 3, 12, 18)) == 3
    # Friday to Monday spans the second Saturday and a Sunday
    assert tat_service.count_working_days(datetime(2026, 3, 13), datetime(2026, 3, 16)) == 1
    assert tat_service.count_working_days(datetime(2026, 3, 12), datetime(2026, 3, 9)) == 0


def test_calculate_tat_metrics():
    metrics = tat_service.calculate_tat_metrics(
        datetime(2026, 3, 9, 10, 0), datetime(2026, 3, 10, 12, 0), datetime(2026, 3, 12))
    assert metrics == {'initiationToVisitHours': 24.0, 'visitToReportHours': 48.0, 'totalTATHours': 72.0}

    metrics = tat_service.calculate_tat_metrics(datetime(2026, 3, 9, 10, 0), None, datetime(2026, 3, 12))
    assert metrics['initiationToVisitHours'] is None
    assert metrics['visitToReportHours'] is None
    assert metrics['totalTATHours'] == 72.0


def test_parse_iso_converts_to_ist():
    assert tat_service.parse_iso('2026-03-12T05:00:00Z') == datetime(2026, 3, 12, 10, 30)
    assert tat_service.parse_iso('2026-03-12') == datetime(2026, 3, 12)
    assert tat_service.parse_iso('garbage') is None
    assert tat_service.parse_iso(None) is None


def test_parse_flexible_date():
    assert tat_service.parse_flexible_date('12/03/2026') == datetime(2026, 3, 12)
    assert tat_service.parse_flexible_date('2026-03-12') == datetime(2026, 3, 12)
    assert tat_service.parse_flexible_date('12 Mar 2026') == datetime(2026, 3, 12)
    assert tat_service.parse_flexible_date('31/02/2026') is None


def test_parse_mis_initiation():
    assert tat_service.parse_mis_initiation('12-03-2026 10:30 AM') == datetime(2026, 3, 12, 10, 30)
    assert tat_service.parse_mis_initiation('12-Mar-2026 02:15 PM') == datetime(2026, 3, 12, 14, 15)
    assert tat_service.parse_mis_initiation('2026-03-12T10:30:00') == datetime(2026, 3, 12, 10, 30)
    # Excel serial with a half day fraction
    assert tat_service.parse_mis_initiation('46093.5') == datetime(2026, 3, 12, 12, 0)
    # a date without a time of day is not enough
    assert tat_service.parse_mis_initiation('12-03-2026') is None
    assert tat_service.parse_mis_initiation('') is None


def test_enrich_report_tat():
    report = {
        'id': 'r1',
        'tat': {'visitTime': '2026-03-10T12:00:00', 'reportDate': '2026-03-12'},
    }
    entry = SimpleNamespace(in_date='09-03-2026 10:00 AM')

    enriched = tat_service.enrich_report_tat(report, entry)
    assert enriched is not report
    assert enriched['tat']['initiationTime'] == '2026-03-09T10:00:00'
    assert enriched['tat']['initiationToVisitHours'] == 24.0
    assert enriched['tat']['visitToReportHours'] == 48.0
    assert enriched['tat']['totalTATHours'] == 72.0
    assert 'initiationTime' not in report['tat']


def test_enrich_report_tat_keeps_existing_initiation():
    report = {'tat': {'initiationTime': '2026-03-08T09:00:00'}}
    entry = SimpleNamespace(in_date='09-03-2026 10:00 AM')
    assert tat_service.enrich_report_tat(report, entry) is report
    assert tat_service.enrich_report_tat({'tat': None}, None) == {'tat': None}
