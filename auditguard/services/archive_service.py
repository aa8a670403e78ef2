import base64
import binascii
import json
import logging
import zipfile
from io import BytesIO

from auditguard.extensions import db
from auditguard.models import Report, MisEntry, ArchiveStats
from auditguard.utils import get_ist_time, round_half_up

logger = logging.getLogger(__name__)


def _decision_bucket(report):
    status = ((report.decision or {}).get('status') or '').lower()
    if 'positive' in status:
        return 'positive'
    if 'negative' in status:
        return 'negative'
    if 'credit refer' in status:
        return 'credit_refer'
    return 'pending'


def _score(report, key):
    return (report.scores or {}).get(key) or 0


def date_range(reports):
    if not reports:
        return '', ''
    dates = [r.date for r in reports]
    return min(dates), max(dates)


def timestamp_slug(moment=None):
    return (moment or get_ist_time()).strftime('%Y-%m-%dT%H-%M-%S')


def compute_archive_stats(reports, mis_count):
    """Summary row preserved for reports that are about to be deleted."""
    totals = {'positive': 0, 'negative': 0, 'credit_refer': 0, 'pending': 0}
    total_overall = 0
    total_comprehensive = 0
    breakdown = {}

    for report in reports:
        bucket = _decision_bucket(report)
        totals[bucket] += 1
        overall = _score(report, 'overall')
        total_overall += overall
        total_comprehensive += _score(report, 'comprehensive')

        stats = breakdown.setdefault(report.associate_id or 'Unknown',
                                     {'reports': 0, 'avgScore': 0, 'positive': 0, 'negative': 0})
        stats['reports'] += 1
        stats['avgScore'] += overall
        if bucket == 'positive':
            stats['positive'] += 1
        elif bucket == 'negative':
            stats['negative'] += 1

    for stats in breakdown.values():
        stats['avgScore'] = round_half_up(stats['avgScore'] / stats['reports'])

    now = get_ist_time()
    oldest, newest = date_range(reports)
    count = len(reports)
    return ArchiveStats(
        archive_date=now,
        archive_file_name=f'auditguard-archive-{timestamp_slug(now)}.zip',
        reports_count=count,
        mis_entries_count=mis_count,
        total_positive=totals['positive'],
        total_negative=totals['negative'],
        total_credit_refer=totals['credit_refer'],
        total_pending=totals['pending'],
        avg_overall_score=round_half_up(total_overall / count) if count else 0,
        avg_comprehensive_score=round_half_up(total_comprehensive / count) if count else 0,
        associate_breakdown=breakdown,
        oldest_report_date=oldest,
        newest_report_date=newest,
    )


def archive_all_reports():
    """Persist the archive summary, then delete every report and MIS entry.

    Returns ``(stats, deleted_reports, deleted_mis)`` or None when there is
    nothing to archive.
    """
    reports = db.session.execute(db.select(Report)).scalars().all()
    if not reports:
        return None
    mis_count = db.session.execute(db.select(db.func.count(MisEntry.id))).scalar() or 0

    stats = compute_archive_stats(reports, mis_count)
    db.session.add(stats)
    db.session.flush()

    deleted_reports = db.session.execute(db.delete(Report)).rowcount
    deleted_mis = db.session.execute(db.delete(MisEntry)).rowcount
    db.session.commit()
    logger.info("Archived %d reports and %d MIS entries as %s",
                deleted_reports, deleted_mis, stats.archive_file_name)
    return stats, deleted_reports, deleted_mis


def reports_in_range(from_date=None, to_date=None):
    query = db.select(Report)
    if from_date:
        query = query.filter(Report.date >= from_date)
    if to_date:
        query = query.filter(Report.date <= to_date)
    return db.session.execute(query.order_by(Report.created_at.desc())).scalars().all()


def build_export_zip(reports, mis_entries):
    """Zip of report JSON, MIS JSON, stored PDFs and a summary."""
    buffer = BytesIO()
    pdf_count = 0
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        archive.writestr('reports.json', json.dumps([r.to_dict(include_pdf=False) for r in reports], indent=2))
        archive.writestr('mis_entries.json', json.dumps([m.to_dict() for m in mis_entries], indent=2))

        for report in reports:
            if not report.pdf_content:
                continue
            try:
                archive.writestr(f'pdfs/{report.id}.pdf', base64.b64decode(report.pdf_content))
                pdf_count += 1
            except (binascii.Error, ValueError):
                logger.error("[EXPORT] Failed to add PDF for report %s", report.id, exc_info=True)

        oldest, newest = date_range(reports)
        summary = {
            'exportDate': get_ist_time().isoformat(),
            'totalReports': len(reports),
            'totalMisEntries': len(mis_entries),
            'totalPDFs': pdf_count,
            'dateRange': {'oldest': oldest, 'newest': newest},
        }
        archive.writestr('export_summary.json', json.dumps(summary, indent=2))

    logger.info("[EXPORT] %d reports, %d MIS entries, %d PDFs", len(reports), len(mis_entries), pdf_count)
    buffer.seek(0)
    return buffer


def combined_stats():
    current_reports = db.session.execute(db.select(db.func.count(Report.id))).scalar() or 0
    current_mis = db.session.execute(db.select(db.func.count(MisEntry.id))).scalar() or 0
    history = db.session.execute(db.select(ArchiveStats)).scalars().all()

    archived_reports = sum(a.reports_count for a in history)
    archived_mis = sum(a.mis_entries_count for a in history)
    return {
        'current': {'reports': current_reports, 'misEntries': current_mis},
        'archived': {'reports': archived_reports, 'misEntries': archived_mis},
        'total': {'reports': current_reports + archived_reports, 'misEntries': current_mis + archived_mis},
        'archivedStats': {
            'totalPositive': sum(a.total_positive or 0 for a in history),
            'totalNegative': sum(a.total_negative or 0 for a in history),
            'totalCreditRefer': sum(a.total_credit_refer or 0 for a in history),
            'totalPending': sum(a.total_pending or 0 for a in history),
        },
        'archiveCount': len(history),
    }
