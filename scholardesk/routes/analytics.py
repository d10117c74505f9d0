"""
Learning Analytics Routes

FLOW OVERVIEW
- /api/analytics/events [POST]
  • Auth gate; clients report node clicks, chat queries, drafts and so on.
- /api/analytics/users/<user_id> [GET]
  • Admin, or the student themselves.
- /api/analytics/summary [GET]
  • Admin; ?group=A|B&sort_by=name|productivity|activity
- /api/analytics/reports/... [GET]
  • individual/<user_id>, group/<group>, summary, summary.csv (admin only).
"""

from datetime import datetime

from flask import Blueprint, jsonify, request, Response

from ..services import analytics_service, analytics_export
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import admin_required, login_required, get_current_user

analytics_bp = Blueprint('analytics', __name__)


@analytics_bp.route('/events', methods=['POST'])
@login_required
def record_event():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    ok, error = request_validator.validate_required_fields(data, ('action',))
    if not ok:
        return jsonify(error), 400

    result = analytics_service.track_event(
        get_current_user(),
        data.get('action'),
        document=data.get('document'),
        metadata=data.get('metadata')
    )
    return service_response(result)


@analytics_bp.route('/users/<user_id>', methods=['GET'])
@login_required
def user_analytics(user_id):
    current = get_current_user()
    if not current.is_admin() and current.user_id != user_id:
        return jsonify({
            'success': False,
            'error_code': 'FORBIDDEN',
            'message': 'You can only view your own analytics.'
        }), 403
    return service_response(analytics_service.get_user_learning_analytics(user_id))


@analytics_bp.route('/summary', methods=['GET'])
@admin_required
def analytics_summary():
    result = analytics_service.get_all_users_analytics_summary(
        group=request.args.get('group'),
        sort_by=request.args.get('sort_by', 'name')
    )
    return service_response(result)


@analytics_bp.route('/reports/individual/<user_id>', methods=['GET'])
@admin_required
def individual_report(user_id):
    return service_response(analytics_export.generate_individual_report(user_id))


@analytics_bp.route('/reports/group/<group>', methods=['GET'])
@admin_required
def group_report(group):
    return service_response(analytics_export.generate_group_report(group))


@analytics_bp.route('/reports/summary', methods=['GET'])
@admin_required
def summary_report():
    return service_response(analytics_export.generate_summary_report())


@analytics_bp.route('/reports/summary.csv', methods=['GET'])
@admin_required
def summary_report_csv():
    report = analytics_export.generate_summary_report()
    if not report.success:
        return service_response(report)

    csv_result = analytics_export.export_to_csv(report.data)
    if not csv_result.success:
        return service_response(csv_result)

    filename = f"learning-analytics-summary-{datetime.utcnow():%Y-%m-%d}.csv"
    return Response(
        csv_result.data,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )
