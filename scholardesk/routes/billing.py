"""
Billing Routes

FLOW OVERVIEW
- /api/billing/stats, /api/billing/users [GET]
  • Admin dashboards: revenue, spenders, tier split, growth; per-student billing.
- /api/billing/plans [GET]
  • Active subscription plans, for everyone signed in.
- /api/billing/token-usage [GET, POST]
  • POST: parse JSON → resolve target user (self unless admin) → guarded balance decrement.
  • GET: recent usage rows; students only ever see their own.
- /api/billing/users/<user_id>/monthly [GET]
- /api/billing/top-up, /tier, /simulate, /rollup [POST]
- /api/billing/history/<id>/paid [POST]
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import billing_service
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import admin_required, login_required, get_current_user

billing_bp = Blueprint('billing', __name__)


def _target_user_id(requested):
    """Public id the request acts on; None when a student asks for someone else"""
    current = get_current_user()
    if not requested or requested == current.user_id:
        return current.user_id
    return requested if current.is_admin() else None


def _forbidden():
    return jsonify({
        'success': False,
        'error_code': 'FORBIDDEN',
        'message': 'You can only access your own billing data.'
    }), 403


@billing_bp.route('/stats', methods=['GET'])
@admin_required
def billing_stats():
    return service_response(billing_service.get_billing_stats())


@billing_bp.route('/users', methods=['GET'])
@admin_required
def users_billing():
    return service_response(billing_service.get_all_users_billing())


@billing_bp.route('/users/<user_id>/monthly', methods=['GET'])
@login_required
def monthly_usage(user_id):
    if _target_user_id(user_id) is None:
        return _forbidden()
    return service_response(billing_service.get_monthly_usage(user_id, request.args.get('month')))


@billing_bp.route('/plans', methods=['GET'])
@login_required
def plans():
    return service_response(billing_service.list_plans())


@billing_bp.route('/token-usage', methods=['GET'])
@login_required
def token_usage_history():
    current = get_current_user()
    requested = request.args.get('user_id')
    if current.is_admin() and not requested:
        return service_response(billing_service.list_token_usage())

    user_id = _target_user_id(requested)
    if user_id is None:
        return _forbidden()
    return service_response(billing_service.list_token_usage(user_id))


@billing_bp.route('/token-usage', methods=['POST'])
@login_required
def record_token_usage():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    user_id = _target_user_id(data.get('user_id'))
    if user_id is None:
        return _forbidden()

    if not data.get('action'):
        return jsonify({
            'success': False,
            'error_code': 'VALIDATION_ERROR',
            'message': 'Missing required fields: action'
        }), 400

    result = billing_service.record_token_usage(
        user_id,
        data.get('action'),
        tokens_used=data.get('tokens_used'),
        context=data.get('context'),
        metadata=data.get('metadata'),
        text=data.get('text')
    )
    return service_response(result)


@billing_bp.route('/top-up', methods=['POST'])
@admin_required
def top_up():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    ok, error = request_validator.validate_required_fields(data, ('user_id', 'amount'))
    if not ok:
        return jsonify(error), 400

    result = billing_service.top_up_tokens(data['user_id'], data['amount'])
    if result.success:
        current_user = get_current_user()
        current_app.logger.info(
            f"Admin {current_user.user_id} topped up {data['user_id']} "
            f"({result.data['transaction_id']})"
        )
    return service_response(result)


@billing_bp.route('/tier', methods=['POST'])
@admin_required
def change_tier():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    ok, error = request_validator.validate_required_fields(data, ('user_id', 'tier'))
    if not ok:
        return jsonify(error), 400

    return service_response(billing_service.update_user_tier(data['user_id'], data['tier']))


@billing_bp.route('/simulate', methods=['POST'])
@admin_required
def simulate():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    result = billing_service.simulate_usage(
        data.get('email'),
        data.get('action'),
        data.get('tokens_used'),
        context=data.get('context')
    )
    return service_response(result)


@billing_bp.route('/rollup', methods=['POST'])
@admin_required
def rollup():
    data = request.get_json(silent=True) or {}
    return service_response(billing_service.close_billing_period(data.get('month')))


@billing_bp.route('/history/<int:history_id>/paid', methods=['POST'])
@admin_required
def mark_paid(history_id):
    return service_response(billing_service.mark_invoice_paid(history_id))
