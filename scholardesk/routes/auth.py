"""
Authentication Routes

FLOW OVERVIEW
- /auth/register [POST]
  • Validate + create a student account.
- /auth/login [POST]
  • Authenticate by email or NIM → set session → return profile and a bearer token.
- /auth/logout [POST]
  • Clear session.
- /auth/me [GET]
  • Auth gate; return the signed-in profile.
"""

from flask import Blueprint, jsonify, session, current_app, request

from ..services import user_service, analytics_service
from ..utils.api_utils import request_validator, response_formatter, service_response
from ..utils.auth_utils import generate_jwt_token, get_current_user, login_required

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
def register():
    """Student self-registration"""
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    result = user_service.register_student(data)
    if result.success:
        current_app.logger.info(f"New student registered: {result.data['id']}")
    return service_response(result)


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login endpoint"""
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    identifier = (data.get('identifier') or data.get('email') or data.get('nim') or '').strip()
    password = data.get('password', '')

    ok, error = request_validator.validate_required_fields(
        {'identifier': identifier, 'password': password}, ('identifier', 'password')
    )
    if not ok:
        return jsonify(error), 400

    user = user_service.authenticate(identifier, password)
    if not user:
        current_app.logger.info(f"Failed login for {identifier}")
        return jsonify({
            'success': False,
            'error_code': 'INVALID_CREDENTIALS',
            'message': 'Invalid email/NIM or password.'
        }), 401

    # Set session
    session.clear()
    session['user_id'] = user.user_id
    session['user_email'] = user.email

    user.update_last_login()
    analytics_service.track_login(user.id)

    return jsonify(response_formatter.format_success_response({
        'user': user.to_dict(),
        'token': generate_jwt_token(user.user_id),
    }, message=f'Welcome back, {user.name}!'))


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """User logout endpoint"""
    session.clear()
    return jsonify(response_formatter.format_success_response(message='You have been logged out successfully.'))


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(response_formatter.format_success_response(get_current_user().to_dict()))
