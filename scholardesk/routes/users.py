"""
User Management Routes

FLOW OVERVIEW
- /api/users [GET, POST]
  • Admin gate; filtered paginated listing / create account.
- /api/users/<user_id> [GET, PUT, DELETE]
  • Admins manage anyone; students may read and edit their own profile (not their role).
- /api/users/<user_id>/billing [GET]
  • Usage, invoices, trend and tier advice for one user.
"""

from flask import Blueprint, jsonify, request

from ..services import user_service, billing_service
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import admin_required, login_required, get_current_user

users_bp = Blueprint('users', __name__)


def _forbidden():
    return jsonify({
        'success': False,
        'error_code': 'FORBIDDEN',
        'message': 'You can only access your own account.'
    }), 403


def _can_access(user_id):
    current = get_current_user()
    return current.is_admin() or current.user_id == user_id


@users_bp.route('', methods=['GET'])
@admin_required
def list_users():
    page, limit = request_validator.validate_pagination()
    result = user_service.list_users(
        role=request.args.get('role'),
        group=request.args.get('group'),
        search=request.args.get('search'),
        page=page,
        limit=limit
    )
    return service_response(result)


@users_bp.route('', methods=['POST'])
@admin_required
def create_user():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400
    return service_response(user_service.create_user(data))


@users_bp.route('/<user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    if not _can_access(user_id):
        return _forbidden()
    return service_response(user_service.get_user(user_id))


@users_bp.route('/<user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    if not _can_access(user_id):
        return _forbidden()

    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    if not get_current_user().is_admin():
        # Students cannot change their own role or account status
        data.pop('role', None)
        data.pop('status', None)

    return service_response(user_service.update_user(user_id, data))


@users_bp.route('/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    return service_response(user_service.delete_user(user_id))


@users_bp.route('/<user_id>/billing', methods=['GET'])
@login_required
def user_billing(user_id):
    if not _can_access(user_id):
        return _forbidden()
    return service_response(billing_service.get_user_billing(user_id))
