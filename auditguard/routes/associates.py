import logging

from flask import Blueprint, request, jsonify

from auditguard.extensions import db
from auditguard.models import User, ADMIN_ID
from auditguard.auth_utils import require_auth
from auditguard.services import report_service, user_service

logger = logging.getLogger(__name__)

associates_bp = Blueprint('associates', __name__, url_prefix='/api')


@associates_bp.route('/associates', methods=['GET'])
@require_auth()
def list_associates():
    try:
        return jsonify([u.to_dict() for u in user_service.list_associates()]), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@associates_bp.route('/associates', methods=['POST'])
@require_auth(roles=['admin'], message='Only admin can create associates')
def create_associate():
    try:
        data = request.get_json(silent=True) or {}
        username = (data.get('username') or '').strip()
        password = data.get('password')
        name = data.get('name')

        if not username or not password or not name:
            return jsonify({'error': 'Username, password, and name are required'}), 400

        if user_service.find_by_username(username.lower()):
            return jsonify({'error': 'Username already exists'}), 400

        user = user_service.create_associate(username, password, name,
                                             role=data.get('role'), avatar=data.get('avatar'))
        return jsonify({'success': True, 'associate': user.to_dict()}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@associates_bp.route('/associates/<associate_id>', methods=['DELETE'])
@require_auth(roles=['admin'], message='Only admin can delete associates')
def delete_associate(associate_id):
    try:
        if associate_id == ADMIN_ID:
            return jsonify({'error': 'Cannot delete admin user'}), 403

        user = db.session.get(User, associate_id)
        if not user:
            return jsonify({'error': 'Associate not found'}), 404

        if user_service.has_linked_records(associate_id):
            return jsonify({
                'error': 'Associate still has reports or MIS entries',
                'message': 'Reassign or archive them before deleting this associate'
            }), 409

        db.session.delete(user)
        db.session.commit()
        logger.info("Deleted associate: %s (%s)", associate_id, user.name)
        return jsonify({'success': True, 'message': f'Associate {user.name} deleted'}), 200
    except Exception as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 500


@associates_bp.route('/dashboard', methods=['GET'])
@require_auth()
def dashboard():
    try:
        stats = report_service.dashboard_stats(request.args.get('month'), request.args.get('year'))
        return jsonify(stats), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500
