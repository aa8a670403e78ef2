"""Turnaround time (TAT) measured in working days between audit milestones."""
import logging
import re
from datetime import date, datetime, timedelta, timezone

from auditguard.utils import IST_OFFSET

logger = logging.getLogger(__name__)

HOLIDAYS_2026 = {
    date(2026, 1, 1), date(2026, 1, 12), date(2026, 1, 13), date(2026, 1, 14), date(2026, 1, 15),
    date(2026, 3, 19), date(2026, 3, 21), date(2026, 3, 26),
    date(2026, 4, 3),
    date(2026, 8, 15),
    date(2026, 9, 14),
    date(2026, 10, 2), date(2026, 10, 20),
    date(2026, 11, 8),
    date(2026, 12, 25),
}

MONTHS = {'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
          'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12}
EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_MIN_SERIAL = 25569

DMY = re.compile(r'^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$')
YMD = re.compile(r'^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$')
D_MON_Y = re.compile(r'^(\d{1,2})\s+(\w{3})\s+(\d{4})$', re.I)
DMY_PREFIX = re.compile(r'^(\d{1,2})[-/](\d{1,2})[-/](\d{4})')
D_MON_Y_PREFIX = re.compile(r'^(\d{1,2})[-/]([A-Za-z]{3,})[-/](\d{4})')
TIME_OF_DAY = re.compile(r'(\d{1,2}):(\d{2})\s*(AM|PM|am|pm)?')


def is_second_saturday(day):
    return day.weekday() == 5 and 8 <= day.day <= 14


def is_working_day(day):
    if isinstance(day, datetime):
        day = day.date()
    if day.weekday() == 6:
        return False
    if is_second_saturday(day):
        return False
    return day not in HOLIDAYS_2026


def count_working_days(start, end):
    """Working dates d with start.date() <= d < end.date(); 0 when start >= end."""
    if start >= end:
        return 0
    current = start.date() if isinstance(start, datetime) else start
    stop = end.date() if isinstance(end, datetime) else end
    days = 0
    while current < stop:
        if is_working_day(current):
            days += 1
        current += timedelta(days=1)
    return days


def _hours_between(start, end):
    if not start or not end:
        return None
    return max(0, round(count_working_days(start, end) * 24, 1))


def calculate_tat_metrics(initiation_time, visit_time, report_date):
    return {
        'initiationToVisitHours': _hours_between(initiation_time, visit_time),
        'visitToReportHours': _hours_between(visit_time, report_date),
        'totalTATHours': _hours_between(initiation_time, report_date),
    }


def parse_iso(value):
    """Parse a stored ISO timestamp into a naive IST datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone(IST_OFFSET)).replace(tzinfo=None)
    return parsed


def _safe_date(year, month, day):
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_flexible_date(value):
    if value is None:
        return None
    text = str(value).strip()

    match = DMY.match(text)
    if match:
        day, month, year = match.groups()
        return _safe_date(int(year), int(month), int(day))

    match = YMD.match(text)
    if match:
        year, month, day = match.groups()
        return _safe_date(int(year), int(month), int(day))

    match = D_MON_Y.match(text)
    if match:
        day, month_name, year = match.groups()
        month = MONTHS.get(month_name.lower())
        if month:
            return _safe_date(int(year), month, int(day))

    return parse_iso(text)


def _parse_time(text):
    match = TIME_OF_DAY.search(text)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    period = (match.group(3) or '').upper()
    if period == 'PM' and hours != 12:
        hours += 12
    if period == 'AM' and hours == 12:
        hours = 0
    return hours, minutes


def parse_mis_initiation(in_date):
    """Initiation timestamp from an MIS ``inDate`` cell.

    Returns None unless both a date and a time of day can be read.
    """
    if not in_date:
        return None
    text = str(in_date).strip()
    parsed = None

    match = DMY_PREFIX.match(text)
    if match:
        day, month, year = match.groups()
        parsed = _safe_date(int(year), int(month), int(day))

    if parsed is None:
        match = D_MON_Y_PREFIX.match(text)
        if match:
            day, month_name, year = match.groups()
            month = MONTHS.get(month_name[:3].lower())
            if month:
                parsed = _safe_date(int(year), month, int(day))

    if parsed is None:
        parsed = parse_iso(text)

    if parsed is None:
        try:
            serial = float(text)
        except ValueError:
            serial = None
        if serial is not None and serial > EXCEL_MIN_SERIAL:
            parsed = EXCEL_EPOCH + timedelta(days=serial)

    if parsed is None:
        return None

    time_of_day = _parse_time(text)
    if time_of_day is None and (parsed.hour or parsed.minute):
        time_of_day = parsed.hour, parsed.minute
    if time_of_day is None:
        return None
    return parsed.replace(hour=time_of_day[0], minute=time_of_day[1], second=0, microsecond=0)


def enrich_report_tat(report_data, mis_entry):
    """Fill a missing initiation time from the MIS entry and recompute the TAT.

    ``report_data`` is a serialized report; a new dict is returned when
    enrichment applies, otherwise the same dict.
    """
    current = report_data.get('tat') or {}
    if current.get('initiationTime') or mis_entry is None or not mis_entry.in_date:
        return report_data

    initiation = parse_mis_initiation(mis_entry.in_date)
    if initiation is None:
        return report_data

    visit = parse_iso(current.get('visitTime'))
    reported = parse_iso(current.get('reportDate'))
    try:
        metrics = calculate_tat_metrics(initiation, visit, reported)
    except (TypeError, ValueError):
        logger.warning("TAT calculation failed for report %s", report_data.get('id'), exc_info=True)
        return report_data

    enriched = dict(report_data)
    enriched['tat'] = {**current, 'initiationTime': initiation.isoformat(), **metrics}
    return enriched
