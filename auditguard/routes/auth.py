import logging

from flask import Blueprint, request, jsonify, current_app

from auditguard.extensions import db
from auditguard.models import User
from auditguard.auth_utils import require_auth, generate_token, current_user_id
from auditguard.services import user_service

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api')


def _session_payload(user):
    data = user.to_dict(include_admin_flag=True)
    data['access_token'] = generate_token(user.id, user.username)
    return data


@auth_bp.route('/login', methods=['POST'])
def login():
    try:
        data = request.get_json(silent=True) or {}
        username = data.get('username')
        password = data.get('password')

        if not username or not password:
            return jsonify({'error': 'Username and password are required'}), 400

        user = user_service.authenticate(username, password)
        if user is None:
            logger.info("Failed login for %s", username)
            return jsonify({'error': 'Invalid credentials'}), 401

        logger.info("User %s logged in", user.id)
        return jsonify(_session_payload(user)), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@auth_bp.route('/logout', methods=['POST'])
def logout():
    return jsonify({'success': True}), 200


@auth_bp.route('/user', methods=['GET'])
@require_auth()
def get_user():
    try:
        user = db.session.get(User, current_user_id())
        if not user:
            return jsonify({'error': 'User not found'}), 404
        return jsonify(user.to_dict(include_admin_flag=True)), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@auth_bp.route('/dev-login/<username>', methods=['GET'])
def dev_login(username):
    if not current_app.config.get('DEV_LOGIN_ENABLED'):
        return jsonify({'error': 'Not found'}), 404
    try:
        user = user_service.find_by_username(username.strip().lower())
        if not user:
            return jsonify({'error': 'User not found'}), 404
        logger.warning("Dev login used for %s", user.id)
        return jsonify(_session_payload(user)), 200
    except Exception as e:
        return jsonify({'error': str(e)}), 500
