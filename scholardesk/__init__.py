"""
ScholarDesk Application Package

FLOW OVERVIEW
- create_app(test_config=None)
  • Build Flask app, apply config (test or env-based), init the database.
  • Register blueprints: auth (/auth), main (/), users, articles, assignments,
    billing, analytics and session APIs (/api/...).
  • Register request metrics hooks, global error handlers and CLI commands.
"""

import logging
import time

from flask import Flask, request

from .models import db
from .routes import (
    auth_bp, main_bp, users_bp, articles_bp, assignments_bp,
    billing_bp, analytics_bp, brainstorming_bp, writer_bp
)
from .config import Config


def create_app(test_config=None):
    """Application factory pattern for production deployment"""
    app = Flask(__name__)

    # Configuration
    if test_config:
        # Defaults first so test configs only need to override what they care about
        app.config.from_object(Config())
        app.config.update(test_config)
    else:
        # Use environment-based configuration
        app.config.from_object(Config())

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(main_bp)
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(articles_bp, url_prefix='/api/articles')
    app.register_blueprint(assignments_bp, url_prefix='/api/assignments')
    app.register_blueprint(billing_bp, url_prefix='/api/billing')
    app.register_blueprint(analytics_bp, url_prefix='/api/analytics')
    app.register_blueprint(brainstorming_bp, url_prefix='/api/brainstorming-sessions')
    app.register_blueprint(writer_bp, url_prefix='/api/writer-sessions')

    # Register error handlers
    from .utils.error_handlers import register_error_handlers
    register_error_handlers(app)

    register_request_metrics(app)

    from .cli import register_commands
    register_commands(app)

    return app


def register_request_metrics(app):
    """Time every request and feed the Prometheus request metrics."""
    from .utils.prom_metrics import observe_request

    @app.before_request
    def start_timer():
        request.environ['scholardesk.start_time'] = time.perf_counter()

    @app.after_request
    def record_request(response):
        started = request.environ.get('scholardesk.start_time')
        if started is not None:
            latency = time.perf_counter() - started
            endpoint = request.endpoint or 'unknown'
            observe_request(endpoint, response.status_code, latency)
            app.logger.debug(f"{request.method} {request.path} -> {response.status_code} ({latency * 1000:.1f}ms)")
        return response
