"""
Assignment Routes

FLOW OVERVIEW
Admin
- /api/assignments [POST], /api/assignments/<id> [PUT, DELETE]
- /api/assignments/stats, /api/assignments/code-exists
- /api/assignments/<id>/submissions [GET], /api/assignments/submissions [GET]
- /api/assignments/submissions/<sid>/grade [POST]

Student
- /api/assignments [GET]
  • Admins see every assignment; students see active ones for their class.
- /api/assignments/code/<code> [GET]
- /api/assignments/<id>/submissions [POST]
  • JSON body, or multipart form whose `file` part is stored in the `submissions` bucket.
- /api/assignments/<id>/my-submission [GET]
- /api/assignments/submissions/<sid> [GET, PUT]
"""

from flask import Blueprint, jsonify, request

from ..services import assignment_service, storage_service
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import admin_required, login_required, get_current_user

assignments_bp = Blueprint('assignments', __name__)

SUBMISSION_BUCKET = 'submissions'


def _submission_payload():
    """
    Read a submission body from JSON or a multipart form.

    Returns (payload, stored_path, error_response); stored_path is set
    only when a file was uploaded.
    """
    if request.files:
        payload = request.form.to_dict()
        upload = storage_service.upload_file(
            request.files.get('file'), SUBMISSION_BUCKET, folder=get_current_user().user_id
        )
        if not upload.success:
            return None, None, service_response(upload)
        payload['file_url'] = upload.data['url']
        payload['file_name'] = upload.data['file_name']
        return payload, upload.data['path'], None

    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return None, None, (jsonify(error), 400)
    return data, None, None


def _discard_upload(result, stored_path):
    if stored_path and not result.success:
        storage_service.delete_file(SUBMISSION_BUCKET, stored_path)
    return result


@assignments_bp.route('', methods=['GET'])
@login_required
def list_assignments():
    current = get_current_user()
    if current.is_admin():
        return service_response(assignment_service.list_assignments())
    return service_response(assignment_service.list_assignments_for_class(current.group))


@assignments_bp.route('', methods=['POST'])
@admin_required
def create_assignment():
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400
    return service_response(assignment_service.create_assignment(data, get_current_user()))


@assignments_bp.route('/stats', methods=['GET'])
@admin_required
def assignment_stats():
    return service_response(assignment_service.assignment_stats())


@assignments_bp.route('/code-exists', methods=['GET'])
@admin_required
def code_exists():
    code = request.args.get('code', '')
    exclude_id = request.args.get('exclude_id', type=int)
    return jsonify({
        'success': True,
        'data': {'code': code.strip().upper(), 'exists': assignment_service.code_exists(code, exclude_id)}
    })


@assignments_bp.route('/code/<code>', methods=['GET'])
@login_required
def assignment_by_code(code):
    return service_response(assignment_service.get_assignment_by_code(code, get_current_user().group))


@assignments_bp.route('/<int:assignment_id>', methods=['GET'])
@login_required
def get_assignment(assignment_id):
    current = get_current_user()
    result = assignment_service.get_assignment(assignment_id, include_submissions=current.is_admin())
    if result.success and not current.is_admin():
        data = result.data
        if not data['is_active'] or current.group not in data['target_classes']:
            return jsonify({
                'success': False,
                'error_code': 'NOT_FOUND',
                'message': 'Assignment not found'
            }), 404
    return service_response(result)


@assignments_bp.route('/<int:assignment_id>', methods=['PUT'])
@admin_required
def update_assignment(assignment_id):
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400
    return service_response(assignment_service.update_assignment(assignment_id, data))


@assignments_bp.route('/<int:assignment_id>', methods=['DELETE'])
@admin_required
def delete_assignment(assignment_id):
    return service_response(assignment_service.delete_assignment(assignment_id))


@assignments_bp.route('/<int:assignment_id>/submissions', methods=['GET'])
@admin_required
def list_submissions(assignment_id):
    return service_response(assignment_service.list_submissions(assignment_id))


@assignments_bp.route('/<int:assignment_id>/submissions', methods=['POST'])
@login_required
def submit_assignment(assignment_id):
    payload, stored_path, error_response = _submission_payload()
    if error_response:
        return error_response

    result = assignment_service.submit_assignment(assignment_id, get_current_user(), payload)
    return service_response(_discard_upload(result, stored_path))


@assignments_bp.route('/<int:assignment_id>/my-submission', methods=['GET'])
@login_required
def my_submission(assignment_id):
    return service_response(
        assignment_service.get_student_submission(assignment_id, get_current_user().id)
    )


@assignments_bp.route('/submissions', methods=['GET'])
@admin_required
def all_submissions():
    return service_response(assignment_service.list_all_submissions())


@assignments_bp.route('/submissions/<int:submission_id>', methods=['GET'])
@login_required
def get_submission(submission_id):
    return service_response(assignment_service.get_submission(submission_id, get_current_user()))


@assignments_bp.route('/submissions/<int:submission_id>', methods=['PUT'])
@login_required
def update_submission(submission_id):
    current = get_current_user()
    existing = assignment_service.get_submission(submission_id, current)
    if not existing.success:
        return service_response(existing)

    payload, stored_path, error_response = _submission_payload()
    if error_response:
        return error_response

    result = assignment_service.update_submission(submission_id, current, payload)
    return service_response(_discard_upload(result, stored_path))


@assignments_bp.route('/submissions/<int:submission_id>/grade', methods=['POST'])
@admin_required
def grade_submission(submission_id):
    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400

    if data.get('grade') is None:
        return jsonify({
            'success': False,
            'error_code': 'VALIDATION_ERROR',
            'message': 'Missing required fields: grade'
        }), 400

    return service_response(
        assignment_service.grade_submission(submission_id, data.get('grade'), data.get('feedback'))
    )
