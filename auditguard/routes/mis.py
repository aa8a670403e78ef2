import logging

from flask import Blueprint, request, jsonify, send_file

from auditguard.extensions import db
from auditguard.models import MisEntry, User
from auditguard.auth_utils import require_auth, current_user_id
from auditguard.services import mis_service
from auditguard.utils import get_ist_time

logger = logging.getLogger(__name__)

mis_bp = Blueprint('mis', __name__, url_prefix='/api')

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def _all_entries():
    return db.session.execute(db.select(MisEntry).order_by(MisEntry.sno.desc())).scalars().all()


def _bulk_response(associate_id, entries):
    if not db.session.get(User, associate_id):
        return jsonify({
            'error': f'Associate "{associate_id}" not found in database. Please ensure this user exists.'
        }), 400

    created, skipped = mis_service.create_entries_bulk(associate_id, entries)
    if created is None:
        return jsonify({
            'error': 'No valid entries found. Check that Lead ID and Customer Name are provided.'
        }), 400
    return jsonify({'entries': [e.to_dict() for e in created], 'skipped': skipped}), 200


@mis_bp.route('/mis', methods=['GET'])
@require_auth()
def list_entries():
    try:
        return jsonify([e.to_dict() for e in _all_entries()]), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@mis_bp.route('/mis', methods=['POST'])
@require_auth()
def create_entry():
    try:
        data = request.get_json(silent=True) or {}
        if not data.get('leadId') or not data.get('customerName'):
            return jsonify({'error': 'Lead ID and Customer Name are required'}), 400

        associate_id = data.get('associateId') or current_user_id()
        if not db.session.get(User, associate_id):
            return jsonify({'error': f'Associate "{associate_id}" not found in database'}), 400

        entry = mis_service.create_entry({**data, 'associateId': associate_id})
        logger.info("MIS entry %s created for lead %s", entry.id, entry.lead_id)
        return jsonify(entry.to_dict()), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@mis_bp.route('/mis/bulk', methods=['POST'])
@require_auth()
def create_entries_bulk():
    try:
        data = request.get_json(silent=True) or {}
        associate_id = data.get('associateId')
        entries = data.get('entries')
        if not associate_id or not isinstance(entries, list):
            return jsonify({'error': 'Invalid request body'}), 400
        return _bulk_response(associate_id, entries)
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@mis_bp.route('/mis/import-excel', methods=['POST'])
@require_auth()
def import_excel():
    """Bulk-create MIS entries from an uploaded work-allocation sheet"""
    try:
        if 'file' not in request.files:
            return jsonify({'error': 'No file uploaded'}), 400
        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'Empty filename'}), 400

        associate_id = request.form.get('associateId') or current_user_id()
        entries = mis_service.read_entries_from_excel(file)
        logger.info("MIS import: read %d rows from %s", len(entries), file.filename)
        return _bulk_response(associate_id, entries)
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e), 'message': 'Error processing file'}), 500


@mis_bp.route('/mis/export-excel', methods=['GET'])
@require_auth()
def export_excel():
    try:
        buffer = mis_service.export_entries_to_excel(_all_entries())
        return send_file(
            buffer,
            as_attachment=True,
            download_name=f"mis_{get_ist_time().strftime('%Y-%m-%d')}.xlsx",
            mimetype=XLSX_MIMETYPE
        )
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@mis_bp.route('/mis/<int:entry_id>', methods=['PATCH'])
@require_auth()
def update_entry(entry_id):
    try:
        entry = db.session.get(MisEntry, entry_id)
        if not entry:
            return jsonify({'error': 'MIS entry not found'}), 404

        updates = request.get_json(silent=True) or {}
        entry.apply(updates)
        if updates.get('pdPersonId') and updates.get('workflowStatus') == 'assigned':
            entry.assigned_at = get_ist_time()
        elif not updates.get('pdPersonId') and updates.get('workflowStatus') == 'unassigned':
            entry.assigned_at = None
        db.session.commit()
        return jsonify(entry.to_dict()), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@mis_bp.route('/mis/<int:entry_id>', methods=['DELETE'])
@require_auth()
def delete_entry(entry_id):
    try:
        entry = db.session.get(MisEntry, entry_id)
        if not entry:
            return jsonify({'error': 'MIS entry not found'}), 404
        db.session.delete(entry)
        db.session.commit()
        logger.info("MIS entry %s deleted", entry_id)
        return jsonify({'success': True}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500
