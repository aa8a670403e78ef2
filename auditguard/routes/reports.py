import base64
import logging
import re
from datetime import datetime
from io import BytesIO

from flask import Blueprint, request, jsonify, send_file

from auditguard.extensions import db
from auditguard.models import Report, User, MisEntry, ADMIN_ID
from auditguard.auth_utils import require_auth, current_user_id
from auditguard.services import (ai_service, mis_service, pdf_service, report_service,
                                 rule_scoring_service, scoring_service, tat_service)
from auditguard.services.pdf_service import PdfExtractionError
from auditguard.utils import get_ist_time, round_half_up

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__, url_prefix='/api')

REQUIRED_REPORT_FIELDS = ('associateId', 'title', 'date', 'status', 'metrics', 'scores',
                          'decision', 'remarks', 'summary')
VALID_STATUSES = ('Reviewed', 'Pending', 'Flagged')
REPORT_FIELD_TYPES = {
    'associateId': str, 'leadId': str, 'title': str, 'date': str, 'summary': str,
    'metrics': dict, 'scores': dict, 'decision': dict, 'tat': dict, 'remarks': list,
}
TYPE_NAMES = {str: 'a string', dict: 'an object', list: 'a list'}
REPORT_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MAX_LIST_LIMIT = 1000


def _pdf_response(data, filename):
    return send_file(
        BytesIO(data),
        as_attachment=True,
        download_name=filename,
        mimetype='application/pdf'
    )


@reports_bp.route('/reports', methods=['POST'])
@require_auth()
def create_report():
    try:
        data = request.get_json(silent=True) or {}
        details = [f'{field} is required' for field in REQUIRED_REPORT_FIELDS if data.get(field) is None]
        if data.get('status') is not None and data.get('status') not in VALID_STATUSES:
            details.append(f"status must be one of {', '.join(VALID_STATUSES)}")
        for field, expected in REPORT_FIELD_TYPES.items():
            if data.get(field) is not None and not isinstance(data[field], expected):
                details.append(f'{field} must be {TYPE_NAMES[expected]}')
        if isinstance(data.get('date'), str) and not REPORT_DATE.match(data['date']):
            details.append('date must be YYYY-MM-DD')
        if details:
            return jsonify({'error': 'Invalid report data', 'details': details}), 400

        if not db.session.get(User, data['associateId']):
            return jsonify({'error': f"Associate \"{data['associateId']}\" not found"}), 400

        report = Report(
            id=report_service.report_id_for(data['associateId'], data['date'].replace('-', '')),
            associate_id=data['associateId'],
            lead_id=data.get('leadId') or '',
            title=data['title'],
            date=data['date'],
            status=data['status'],
            metrics=data['metrics'],
            scores=data['scores'],
            decision=data['decision'],
            remarks=data['remarks'],
            summary=data['summary'],
            tat=data.get('tat'),
        )
        db.session.add(report)
        db.session.commit()

        mis_service.mark_mis_entry_completed(report.lead_id, report.date)
        return jsonify(report.to_dict()), 201
    except Exception as e:
        db.session.rollback()
        logger.error("Create report error", exc_info=True)
        return jsonify({'error': str(e)}), 500


def _upload_tat(lead_id, pdf_text, report_date):
    """TAT block for an uploaded report, or None when it cannot be computed."""
    try:
        initiation = None
        entry = mis_service.find_by_lead_id(lead_id)
        if entry and entry.in_date:
            logger.info("Found initiation date from local MIS: %s", entry.in_date)
            initiation = tat_service.parse_flexible_date(entry.in_date)

        visit = pdf_service.extract_visit_datetime(pdf_text)
        reported = datetime.strptime(report_date, '%Y-%m-%d')
        metrics = tat_service.calculate_tat_metrics(initiation, visit, reported)
        logger.info("TAT for %s: Init=%s, Visit=%s, Report=%s", lead_id, initiation, visit, report_date)
        return {
            'initiationTime': initiation.isoformat() if initiation else None,
            'visitTime': visit.isoformat() if visit else None,
            'reportDate': report_date,
            **metrics,
        }
    except Exception:
        logger.warning("TAT calculation failed, continuing without TAT", exc_info=True)
        return None


def _score_text(pdf_text, lead_id):
    if ai_service.is_ai_configured():
        logger.info("[AI Scoring - %s] Starting AI-powered comprehensive scoring", lead_id)
        return ai_service.score_comprehensive_with_ai(pdf_text, lead_id)
    logger.info("[Rule Scoring - %s] AI not configured, using rule-based scoring", lead_id)
    return rule_scoring_service.score_comprehensive_rule_based(pdf_text, lead_id)


@reports_bp.route('/upload-report', methods=['POST'])
@require_auth()
def upload_report():
    """Upload a finished LIP report PDF and score it"""
    try:
        if 'file' not in request.files:
            return jsonify({'error': 'No file uploaded'}), 400
        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'Empty filename'}), 400

        associate_id = request.form.get('associateId')
        if not associate_id:
            return jsonify({'error': 'Associate ID is required'}), 400
        if not db.session.get(User, associate_id):
            return jsonify({'error': f'Associate "{associate_id}" not found'}), 400

        pdf_bytes = file.read()
        try:
            pdf_text = pdf_service.extract_text(pdf_bytes)
        except PdfExtractionError as e:
            return jsonify({'error': 'Could not read PDF', 'message': str(e)}), 400

        lead_id = pdf_service.extract_lead_id(pdf_text)
        if not lead_id:
            return jsonify({
                'error': 'Could not extract Lead ID from PDF',
                'message': "Please ensure the PDF contains 'Lead Id:' field on the first page"
            }), 400

        date_info = pdf_service.extract_report_date(pdf_text)
        if not date_info:
            return jsonify({
                'error': 'Could not extract Report Date from PDF',
                'message': 'Please ensure the PDF contains a date field on the first page'
            }), 400

        applicant_name = pdf_service.extract_applicant_name(pdf_text)
        title = f'{lead_id} - {applicant_name}' if applicant_name else f"{lead_id} - {date_info['date']}"

        existing = report_service.find_by_lead_and_title(lead_id, title)
        if existing:
            if applicant_name:
                message = f'A report for Lead ID {lead_id} with applicant "{applicant_name}" already exists'
            else:
                message = f"A report for Lead ID {lead_id} with date {date_info['date']} already exists"
            return jsonify({'error': 'Duplicate report', 'message': message,
                            'existingReportId': existing.id}), 409

        decision = pdf_service.extract_decision(pdf_text)
        if not decision:
            return jsonify({
                'error': 'Could not extract Decision from PDF',
                'message': "Please ensure the PDF contains a decision field (e.g., 'Decision: Positive/Negative/Refer')"
            }), 400

        pdf_metrics = pdf_service.analyze_pdf_content(pdf_text)
        component_scores = _score_text(pdf_text, lead_id)
        fields = report_service.build_uploaded_report(lead_id, title, date_info, decision,
                                                      pdf_metrics, component_scores)

        file_name = f"{lead_id}_{date_info['ddmmyy']}"
        report = Report(
            id=report_service.report_id_for(lead_id, date_info['ddmmyy']),
            associate_id=associate_id,
            tat=_upload_tat(lead_id, pdf_text, date_info['date']),
            pdf_content=base64.b64encode(pdf_bytes).decode('ascii'),
            file_size=len(pdf_bytes),
            **fields
        )
        db.session.add(report)
        db.session.commit()
        logger.info("Uploaded report %s for %s", report.id, associate_id)

        mis_service.mark_mis_entry_completed(lead_id, date_info['date'])

        return jsonify({
            'success': True,
            'leadId': lead_id,
            'reportDate': date_info['date'],
            'report': report.to_dict(),
            'fileName': file_name,
        }), 201
    except Exception as e:
        db.session.rollback()
        logger.error("Upload report error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to process PDF'}), 500


def _mis_by_lead():
    """Lowercased lead id -> MIS entry; on duplicate leads the lowest sno wins."""
    entries = db.session.execute(db.select(MisEntry).order_by(MisEntry.sno.desc())).scalars().all()
    return {e.lead_id.lower(): e for e in entries if isinstance(e.lead_id, str)}


@reports_bp.route('/reports', methods=['GET'])
@require_auth()
def list_reports():
    try:
        month = request.args.get('month')
        default_limit = MAX_LIST_LIMIT if month else 300
        limit = max(1, min(request.args.get('limit', default_limit, type=int), MAX_LIST_LIMIT))
        offset = max(0, request.args.get('offset', 0, type=int))

        reports = report_service.query_reports(
            associate_id=request.args.get('associateId'),
            status=request.args.get('status'),
            month=month,
            year=request.args.get('year'),
            limit=limit,
            offset=offset,
        )
        items = [r.to_dict(include_pdf=False) for r in reports]
        if request.args.get('simple') == 'true':
            return jsonify(items), 200

        mis_map = _mis_by_lead()
        result = []
        for item in items:
            entry = mis_map.get((item.get('leadId') or '').lower())
            if entry and (entry.status or '').lower() == 'cancelled':
                continue
            result.append(tat_service.enrich_report_tat(item, entry))
        return jsonify(result), 200
    except Exception as e:
        logger.error("Get reports error", exc_info=True)
        return jsonify({'error': str(e)}), 500


@reports_bp.route('/reports/<report_id>', methods=['GET'])
@require_auth()
def get_report(report_id):
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404
        return jsonify(report.to_dict()), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@reports_bp.route('/reports/<report_id>', methods=['DELETE'])
@require_auth()
def delete_report(report_id):
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404

        user_id = current_user_id()
        if user_id != ADMIN_ID and user_id != report.associate_id:
            return jsonify({'error': 'You can only delete your own reports'}), 403

        db.session.delete(report)
        db.session.commit()
        logger.info("Report %s deleted by user %s", report_id, user_id)
        return jsonify({'success': True, 'message': 'Report deleted successfully'}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@reports_bp.route('/reports/<report_id>/download', methods=['GET'])
@require_auth()
def download_report(report_id):
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404

        if report.pdf_content:
            data = base64.b64decode(report.pdf_content)
        else:
            logger.info("Generating PDF on-the-fly for report %s", report_id)
            data = pdf_service.build_report_pdf(report)
        return _pdf_response(data, f'{report.lead_id or report.id}_report.pdf')
    except Exception as e:
        logger.error("Download report error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to download PDF'}), 500


@reports_bp.route('/reports/<report_id>/rescore', methods=['POST'])
@require_auth()
def rescore_report(report_id):
    """Re-run comprehensive scoring on the stored PDF.

    ``?method=rules`` uses the rule-based scorer; otherwise AI is required.
    """
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404
        if not report.pdf_content:
            return jsonify({'error': 'Report has no PDF content to score'}), 400

        use_rules = request.args.get('method') == 'rules'
        if not use_rules and not ai_service.is_ai_configured():
            return jsonify({
                'error': 'AI not configured',
                'message': 'OPENROUTER_API_KEY must be set for AI scoring'
            }), 503

        try:
            pdf_text = pdf_service.extract_text(base64.b64decode(report.pdf_content))
        except PdfExtractionError as e:
            return jsonify({'error': 'Could not read stored PDF', 'message': str(e)}), 400
        logger.info("[Re-score] Extracted %d characters from PDF of %s", len(pdf_text), report_id)

        if use_rules:
            component_scores = rule_scoring_service.score_comprehensive_rule_based(pdf_text, report.lead_id)
            method = 'rule-based'
        else:
            component_scores = ai_service.score_comprehensive_with_ai(pdf_text, report.lead_id)
            method = 'ai-holistic'

        comprehensive = report_service.comprehensive_total(component_scores)
        current = report.scores or {}
        quality = current.get('quality') or 75
        completeness = current.get('completeness') or 75
        new_scores = {
            'overall': round_half_up((comprehensive + quality) / 2),
            'quality': quality,
            'completeness': completeness,
            'comprehensive': comprehensive,
            'comprehensiveBreakdown': report_service.build_comprehensive_breakdown(
                component_scores, include_rationale=True),
        }
        report.scores = new_scores
        db.session.commit()
        logger.info("[Re-score] Report %s re-scored (%s). New comprehensive: %s", report_id, method, comprehensive)

        return jsonify({
            'success': True,
            'message': 'Report re-scored successfully',
            'method': method,
            'scores': new_scores,
            'report': report.to_dict(),
        }), 200
    except Exception as e:
        db.session.rollback()
        logger.error("[Re-score] Error", exc_info=True)
        return jsonify({'error': 'Failed to re-score report', 'details': str(e)}), 500


@reports_bp.route('/reports/<report_id>/initiation-time', methods=['PATCH'])
@require_auth()
def update_initiation_time(report_id):
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404

        data = request.get_json(silent=True) or {}
        initiation_raw = data.get('initiationTime') or None
        current = dict(report.tat or {})
        initiation = tat_service.parse_iso(initiation_raw)
        if initiation_raw and initiation is None:
            return jsonify({'error': 'Invalid initiationTime'}), 400

        metrics = tat_service.calculate_tat_metrics(
            initiation,
            tat_service.parse_iso(current.get('visitTime')),
            tat_service.parse_iso(current.get('reportDate')),
        )
        current.update({
            'initiationTime': initiation_raw,
            'initiationToVisitHours': metrics['initiationToVisitHours'],
            'totalTATHours': metrics['totalTATHours'],
        })
        report.tat = current
        db.session.commit()
        logger.info("Updated initiation time for report %s: %s", report_id, initiation_raw)
        return jsonify({'success': True, 'report': report.to_dict()}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@reports_bp.route('/reports/<report_id>/tat-delay', methods=['PATCH'])
@require_auth()
def update_tat_delay(report_id):
    try:
        report = db.session.get(Report, report_id)
        if not report:
            return jsonify({'error': 'Report not found'}), 404

        data = request.get_json(silent=True) or {}
        report.tat_delay_reason = data.get('reason') or None
        report.tat_delay_remark = data.get('remark') or None
        db.session.commit()
        logger.info("Updated TAT delay for report %s: reason=%s", report_id, report.tat_delay_reason)
        return jsonify({'success': True, 'report': report.to_dict()}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@reports_bp.route('/generate-draft-report', methods=['POST'])
@require_auth()
def generate_draft_report():
    """Draft an LIP report from a field recording and photos"""
    try:
        lead_id = request.form.get('leadId')
        if not lead_id:
            return jsonify({'error': 'Lead ID is required'}), 400

        audio = None
        audio_file = request.files.get('audio')
        if audio_file:
            audio = (audio_file.read(), audio_file.mimetype)
        photos = [(f.read(), f.mimetype) for key, f in request.files.items(multi=True) if key.startswith('photo_')]

        draft = ai_service.generate_draft(lead_id, audio=audio, photos=photos)
        return jsonify({
            'success': True,
            'draft': draft,
            'filesProcessed': {'audio': 1 if audio else 0, 'photos': len(photos)},
        }), 200
    except Exception as e:
        logger.error("Generate draft report error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to generate draft report'}), 500


@reports_bp.route('/submit-draft-report', methods=['POST'])
@require_auth()
def submit_draft_report():
    try:
        draft = request.get_json(silent=True) or {}
        lead_id = draft.get('leadId')
        if not lead_id:
            return jsonify({'error': 'Lead ID is required'}), 400

        pdf_bytes = None
        try:
            pdf_bytes = pdf_service.build_draft_pdf(draft, lead_id)
            logger.info("Generated PDF for draft report %s: %.1fKB", lead_id, len(pdf_bytes) / 1024)
        except Exception:
            logger.warning("Failed to generate PDF for draft report %s", lead_id, exc_info=True)

        scoring_result = scoring_service.score_draft(draft)
        now = get_ist_time()
        fields = report_service.build_draft_report(draft, scoring_result, now.strftime('%Y-%m-%d'))

        report = Report(
            id=report_service.report_id_for(lead_id, now.strftime('%y%m%d')),
            associate_id=current_user_id(),
            pdf_content=base64.b64encode(pdf_bytes).decode('ascii') if pdf_bytes else None,
            file_size=len(pdf_bytes) if pdf_bytes else None,
            **fields
        )
        db.session.add(report)
        db.session.commit()

        mis_service.mark_mis_entry_completed(lead_id, report.date)
        return jsonify({'success': True, 'report': report.to_dict()}), 200
    except Exception as e:
        db.session.rollback()
        logger.error("Submit draft report error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to submit report'}), 500


@reports_bp.route('/generate-draft-pdf', methods=['POST'])
@require_auth()
def generate_draft_pdf():
    try:
        draft = request.get_json(silent=True) or {}
        lead_id = draft.get('leadId')
        if not lead_id:
            return jsonify({'error': 'Lead ID is required'}), 400

        logger.info("Generating draft PDF for %s", lead_id)
        return _pdf_response(pdf_service.build_draft_pdf(draft, lead_id), f'{lead_id}_draft_report.pdf')
    except Exception as e:
        logger.error("Generate draft PDF error", exc_info=True)
        return jsonify({'error': str(e), 'message': 'Failed to generate PDF'}), 500


@reports_bp.route('/analyze-business', methods=['POST'])
@require_auth()
def analyze_business():
    try:
        data = request.get_json(silent=True) or {}
        if not data.get('businessName') or not data.get('businessType'):
            return jsonify({'error': 'Business name and type are required'}), 400
        if not ai_service.is_ai_configured():
            return jsonify({'error': 'AI not configured'}), 503

        analysis = ai_service.analyze_business(
            data['businessName'],
            data['businessType'],
            location=data.get('location'),
            owner_name=data.get('ownerName'),
            observations=data.get('observations'),
            photo_evidence=data.get('photoEvidence'),
        )
        return jsonify(analysis), 200
    except Exception as e:
        logger.error("Business analysis error", exc_info=True)
        return jsonify({'error': str(e) or 'Analysis failed'}), 500


@reports_bp.route('/calculate-photo-score', methods=['POST'])
@require_auth()
def calculate_photo_score():
    try:
        checklist = (request.get_json(silent=True) or {}).get('checklist')
        if not isinstance(checklist, dict):
            return jsonify({'error': 'Checklist data is required'}), 400
        return jsonify(scoring_service.calculate_photo_score(checklist)), 200
    except Exception as e:
        logger.error("Photo score calculation error", exc_info=True)
        return jsonify({'error': str(e) or 'Calculation failed'}), 500
