import logging

from flask import Blueprint, request, jsonify, send_file, current_app

from auditguard.extensions import db
from auditguard.models import ArchiveStats, MisEntry, Report
from auditguard.auth_utils import require_auth
from auditguard.services import ai_service, archive_service

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api')


@admin_bp.route('/admin/archive-history', methods=['GET'])
@require_auth(roles=['admin'], message='Only admin can view archive history')
def archive_history():
    try:
        history = db.session.execute(
            db.select(ArchiveStats).order_by(ArchiveStats.archive_date.desc())
        ).scalars().all()
        return jsonify([a.to_dict() for a in history]), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@admin_bp.route('/admin/export-reports', methods=['GET'])
@require_auth(roles=['admin'], message='Only admin can export reports')
def export_reports():
    try:
        from_date = request.args.get('fromDate')
        to_date = request.args.get('toDate')
        logger.info("[EXPORT] Starting export fromDate=%s toDate=%s", from_date, to_date)

        if not from_date and not to_date:
            total = db.session.execute(db.select(db.func.count(Report.id))).scalar() or 0
            if total > current_app.config['EXPORT_UNFILTERED_LIMIT']:
                return jsonify({
                    'error': f'Please select a date range. Found {total} reports - '
                             'exporting all at once may timeout.'
                }), 400

        reports = archive_service.reports_in_range(from_date, to_date)
        if not reports:
            return jsonify({'error': 'No reports found in the selected date range'}), 400

        lead_ids = {r.lead_id for r in reports}
        mis_entries = db.session.execute(
            db.select(MisEntry).filter(MisEntry.lead_id.in_(lead_ids)).order_by(MisEntry.sno.desc())
        ).scalars().all()

        if from_date and to_date:
            suffix = f'{from_date}_to_{to_date}'
        else:
            suffix = archive_service.timestamp_slug()
        return send_file(
            archive_service.build_export_zip(reports, mis_entries),
            as_attachment=True,
            download_name=f'auditguard-reports-{suffix}.zip',
            mimetype='application/zip'
        )
    except Exception as e:
        logger.error("[EXPORT] Export reports error", exc_info=True)
        return jsonify({'error': str(e)}), 500


@admin_bp.route('/admin/archive-reports', methods=['POST'])
@require_auth(roles=['admin'], message='Only admin can archive reports')
def archive_reports():
    try:
        result = archive_service.archive_all_reports()
        if result is None:
            return jsonify({'error': 'No reports to archive'}), 400
        stats, deleted_reports, deleted_mis = result
        return jsonify({
            'success': True,
            'message': 'Reports archived successfully',
            'archivedReports': deleted_reports,
            'archivedMisEntries': deleted_mis,
            'archiveFileName': stats.archive_file_name,
        }), 200
    except Exception as e:
        db.session.rollback()
        logger.error("Archive reports error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to archive reports'}), 500


@admin_bp.route('/admin/combined-stats', methods=['GET'])
@require_auth()
def combined_stats():
    try:
        return jsonify(archive_service.combined_stats()), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@admin_bp.route('/ai/status', methods=['GET'])
@require_auth()
def ai_status():
    return jsonify(ai_service.ai_status()), 200
