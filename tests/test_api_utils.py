#!/usr/bin/env python3
"""
Unit tests for the API utilities module
"""

from flask import abort

from scholardesk.services import ServiceResult, page_payload
from scholardesk.utils.api_utils import (
    APIRequestValidator, APIResponseFormatter,
    request_validator, response_formatter, service_response
)


class TestAPIRequestValidator:
    """Test the APIRequestValidator class."""

    def test_validate_json_request_valid(self, app):
        """Test validating a valid JSON request."""
        with app.test_request_context(json={'test': 'data'}):
            validator = APIRequestValidator()
            is_valid, data, error = validator.validate_json_request('127.0.0.1')

            assert is_valid is True
            assert data == {'test': 'data'}
            assert error is None

    def test_validate_json_request_invalid_json(self, app):
        """Test validating an invalid JSON request."""
        with app.test_request_context(data='invalid json', content_type='application/json'):
            validator = APIRequestValidator()
            is_valid, data, error = validator.validate_json_request('127.0.0.1')

            assert is_valid is False
            assert data is None
            assert error['error_code'] == 'INVALID_JSON'

    def test_validate_json_request_empty_data(self, app):
        """Test validating an empty request."""
        with app.test_request_context():
            validator = APIRequestValidator()
            is_valid, data, error = validator.validate_json_request('127.0.0.1')

            assert is_valid is False
            assert data is None
            assert error['error_code'] == 'MISSING_JSON'

    def test_validate_json_request_invalid_type(self, app):
        """Test validating a request with invalid data type."""
        with app.test_request_context(json="not a dict"):
            validator = APIRequestValidator()
            is_valid, data, error = validator.validate_json_request('127.0.0.1')

            assert is_valid is False
            assert data is None
            assert error['error_code'] == 'INVALID_DATA_TYPE'

    def test_validate_pagination_defaults(self, app):
        with app.test_request_context('/api/articles'):
            assert request_validator.validate_pagination() == (1, 10)

    def test_validate_pagination_clamps(self, app):
        with app.test_request_context('/api/articles?page=-3&limit=5000'):
            assert request_validator.validate_pagination() == (1, 100)

    def test_validate_pagination_ignores_garbage(self, app):
        with app.test_request_context('/api/articles?page=two&limit=many'):
            assert request_validator.validate_pagination() == (1, 10)

    def test_validate_required_fields(self):
        is_valid, error = request_validator.validate_required_fields({'a': 1, 'b': ''}, ('a', 'b', 'c'))
        assert is_valid is False
        assert error['error_code'] == 'VALIDATION_ERROR'
        assert error['message'] == 'Missing required fields: b, c'

        assert request_validator.validate_required_fields({'a': 0}, ('a',)) == (True, None)


class TestAPIResponseFormatter:
    """Test the APIResponseFormatter class."""

    def test_format_success_response(self):
        assert APIResponseFormatter.format_success_response([1]) == {'success': True, 'data': [1]}
        response = APIResponseFormatter.format_success_response(message='done')
        assert response['message'] == 'done'

    def test_format_service_result_success(self):
        payload, status = response_formatter.format_service_result(ServiceResult.ok({'id': 1}, message='Saved'), 201)
        assert status == 201
        assert payload == {'success': True, 'data': {'id': 1}, 'message': 'Saved'}

    def test_format_service_result_failure(self):
        payload, status = response_formatter.format_service_result(
            ServiceResult.fail('INSUFFICIENT_BALANCE', 'Not enough tokens')
        )
        assert status == 402
        assert payload == {
            'success': False,
            'error_code': 'INSUFFICIENT_BALANCE',
            'message': 'Not enough tokens'
        }

    def test_format_server_error_response(self):
        """Test formatting server error response."""
        response = APIResponseFormatter.format_server_error_response()
        assert response['success'] is False
        assert response['error_code'] == 'INTERNAL_SERVER_ERROR'

    def test_internal_error_handler(self, app):
        app.add_url_rule('/api/broken', 'broken', lambda: abort(500))
        response = app.test_client().get('/api/broken')
        assert response.status_code == 500
        assert response.get_json() == {
            'success': False,
            'error_code': 'INTERNAL_SERVER_ERROR',
            'message': 'Something went wrong on our end. Please try again later.'
        }

    def test_service_response_keeps_status(self, app):
        with app.test_request_context():
            response, status = service_response(ServiceResult(True, data={'id': 3}, status_code=201))
            assert status == 201
            assert response.get_json()['data'] == {'id': 3}


class TestServiceResult:

    def test_default_status_codes(self):
        assert ServiceResult.ok().status_code == 200
        assert ServiceResult.fail('NOT_FOUND', 'x').status_code == 404
        assert ServiceResult.fail('DUPLICATE', 'x').status_code == 409
        assert ServiceResult.fail('STORAGE_ERROR', 'x').status_code == 502
        assert ServiceResult.fail('SOMETHING_ELSE', 'x').status_code == 400
        assert ServiceResult.fail('VALIDATION_ERROR', 'x', status_code=413).status_code == 413

    def test_truthiness(self):
        assert ServiceResult.ok()
        assert not ServiceResult.fail('NOT_FOUND', 'missing')

    def test_page_payload(self):
        payload = page_payload('articles', ['a', 'b'], 5, 1, 2)
        assert payload['total_pages'] == 3
        assert page_payload('articles', [], 0, 1, 10)['total_pages'] == 0


class TestGlobalInstances:
    """Test global instances."""

    def test_global_instances_exist(self):
        assert isinstance(request_validator, APIRequestValidator)
        assert isinstance(response_formatter, APIResponseFormatter)
