"""
Error Handlers

Global JSON error responses. Every handler answers with the same
{'success': False, 'error_code', 'message'} shape the API uses elsewhere.
"""

from flask import jsonify

from .api_utils import response_formatter


def render_error_json(error_code, message, status_code):
    """Render a JSON error payload"""
    return jsonify({
        'success': False,
        'error_code': error_code,
        'message': message
    }), status_code


def register_error_handlers(app):
    """Register error handlers with the Flask app"""

    @app.errorhandler(400)
    def bad_request(error):
        return render_error_json('BAD_REQUEST', 'The request could not be understood.', 400)

    @app.errorhandler(401)
    def unauthorized(error):
        return render_error_json('UNAUTHORIZED', 'Authentication required.', 401)

    @app.errorhandler(403)
    def forbidden(error):
        return render_error_json('FORBIDDEN', 'You do not have permission to access this resource.', 403)

    @app.errorhandler(404)
    def not_found(error):
        return render_error_json('NOT_FOUND', 'The requested resource does not exist.', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return render_error_json('METHOD_NOT_ALLOWED', 'Method not allowed for this endpoint.', 405)

    @app.errorhandler(413)
    def payload_too_large(error):
        return render_error_json('PAYLOAD_TOO_LARGE', 'Uploaded file is too large.', 413)

    @app.errorhandler(500)
    def internal_error(error):
        from ..models import db
        db.session.rollback()
        app.logger.error(f"Unhandled server error: {error}")
        return jsonify(response_formatter.format_server_error_response(
            message='Something went wrong on our end. Please try again later.'
        )), 500
