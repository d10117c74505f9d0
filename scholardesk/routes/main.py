"""
Main Routes

FLOW OVERVIEW
- / [GET]
  • Service banner.
- /health [GET]
  • JSON health check.
- /metrics [GET]
  • Prometheus exposition.
- /dashboard/summary [GET]
  • Admin gate; stat cards for the dashboard landing page.
"""

from datetime import datetime

from flask import Blueprint, jsonify, Response

from ..services import user_service, article_service, assignment_service, billing_service
from ..utils.api_utils import response_formatter
from ..utils.auth_utils import admin_required
from ..utils.prom_metrics import metrics_latest, CONTENT_TYPE_LATEST

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def home():
    """Home route"""
    return jsonify({'service': 'scholardesk', 'status': 'ok'})


@main_bp.route('/health')
def health():
    """Health check endpoint"""
    return jsonify({'status': 'healthy', 'timestamp': datetime.utcnow().isoformat()})


@main_bp.route('/metrics')
def metrics():
    output = metrics_latest()
    return Response(output, mimetype=CONTENT_TYPE_LATEST)


@main_bp.route('/dashboard/summary')
@admin_required
def dashboard_summary():
    """Aggregate counts shown on the admin dashboard"""
    stats = billing_service.get_billing_stats().data
    return jsonify(response_formatter.format_success_response({
        'users': user_service.user_counts(),
        'articles': article_service.article_count(),
        'assignments': assignment_service.assignment_stats().data,
        'billing': {
            'monthly_revenue': stats['monthly_revenue'],
            'total_revenue': stats['total_revenue'],
        },
    }))
