"""
API Utilities Module

FLOW OVERVIEW
- APIRequestValidator
  • validate_json_request → parse/validate JSON and return (ok, data, error).
  • validate_pagination → read `page`/`limit` query args and clamp them to config bounds.
  • validate_required_fields → report the first missing field as a VALIDATION_ERROR payload.

- APIResponseFormatter
  • format_success_response → {'success': True, 'data': ...}.
  • format_service_result → turn a ServiceResult into (payload, status).
  • format_server_error_response → consistent unexpected error payload.

Used by every blueprint so that request parsing and response shape stay uniform.
"""

import logging
from typing import Dict, Any, Tuple, Optional, Iterable
from flask import request, current_app, jsonify


class APIRequestValidator:
    """Handles common request validation logic."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate_json_request(self, client_ip: str = None) -> Tuple[bool, Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """
        Validate and parse JSON request.

        Args:
            client_ip: Client IP for logging

        Returns:
            Tuple of (is_valid, data, error_response)
        """
        data = request.get_json(force=True, silent=True)
        if data is None and request.get_data():
            self.logger.warning(f"Invalid JSON from {client_ip}")
            return False, None, {
                'success': False,
                'error_code': 'INVALID_JSON',
                'message': 'Invalid JSON format. Request must be valid JSON.'
            }

        if not data:
            self.logger.warning(f"Empty request body from {client_ip}")
            return False, None, {
                'success': False,
                'error_code': 'MISSING_JSON',
                'message': 'Invalid request format. JSON payload required.'
            }

        if not isinstance(data, dict):
            self.logger.warning(f"Invalid data type from {client_ip}: {type(data)}")
            return False, None, {
                'success': False,
                'error_code': 'INVALID_DATA_TYPE',
                'message': 'Request data must be a JSON object.'
            }

        return True, data, None

    def validate_pagination(self) -> Tuple[int, int]:
        """
        Read pagination arguments from the query string.

        Invalid values fall back to the defaults instead of failing the request.

        Returns:
            Tuple of (page, limit)
        """
        default_limit = current_app.config.get('DEFAULT_PAGE_SIZE', 10)
        max_limit = current_app.config.get('MAX_PAGE_SIZE', 100)

        page = request.args.get('page', 1, type=int) or 1
        limit = request.args.get('limit', default_limit, type=int) or default_limit

        return max(page, 1), min(max(limit, 1), max_limit)

    def validate_required_fields(self, data: Dict[str, Any], fields: Iterable[str]) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """
        Check that every named field is present and non-empty.

        Returns:
            Tuple of (is_valid, error_response)
        """
        missing = [field for field in fields if data.get(field) in (None, '', [])]
        if missing:
            return False, {
                'success': False,
                'error_code': 'VALIDATION_ERROR',
                'message': f"Missing required fields: {', '.join(missing)}"
            }
        return True, None


class APIResponseFormatter:
    """Handles common response formatting logic."""

    @staticmethod
    def format_success_response(data: Any = None, message: str = None) -> Dict[str, Any]:
        response = {'success': True, 'data': data}
        if message:
            response['message'] = message
        return response

    @staticmethod
    def format_service_result(result, success_status: int = 200) -> Tuple[Dict[str, Any], int]:
        """Format a ServiceResult from the service layer."""
        if result.success:
            payload = {'success': True, 'data': result.data}
            if result.message:
                payload['message'] = result.message
            return payload, success_status

        return {
            'success': False,
            'error_code': result.error_code,
            'message': result.message
        }, result.status_code

    @staticmethod
    def format_server_error_response(error_code: str = 'INTERNAL_SERVER_ERROR',
                                     message: str = 'Internal server error. Please try again later.') -> Dict[str, Any]:
        """Format server error response."""
        return {
            'success': False,
            'error_code': error_code,
            'message': message
        }


# Global instances
request_validator = APIRequestValidator()
response_formatter = APIResponseFormatter()


def service_response(result):
    """jsonify a ServiceResult with its own status code"""
    payload, status = response_formatter.format_service_result(result, result.status_code)
    return jsonify(payload), status
