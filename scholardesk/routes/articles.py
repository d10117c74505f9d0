"""
Article Repository Routes

FLOW OVERVIEW
- /api/articles [GET]
  • Auth gate; filter by userId, search, year, author; paginated.
- /api/articles [POST]
  • Auth gate; JSON body, or multipart form with a `file` part that is uploaded first.
- /api/articles/<id> [GET, PUT, DELETE]
  • Read for everyone signed in; edits and deletes by the uploader or an admin.
"""

from flask import Blueprint, jsonify, request

from ..services import article_service
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import login_required, get_current_user

articles_bp = Blueprint('articles', __name__)


def _may_modify(article_id):
    """None when allowed, otherwise the error response"""
    result = article_service.get_article(article_id)
    if not result.success:
        return service_response(result)

    current = get_current_user()
    if not current.is_admin() and result.data['user_id'] != current.user_id:
        return jsonify({
            'success': False,
            'error_code': 'FORBIDDEN',
            'message': 'Only the uploader or an administrator can change this article.'
        }), 403
    return None


@articles_bp.route('', methods=['GET'])
@login_required
def list_articles():
    page, limit = request_validator.validate_pagination()
    result = article_service.list_articles(
        user_id=request.args.get('userId') or request.args.get('user_id'),
        search=request.args.get('search'),
        year=request.args.get('year'),
        author=request.args.get('author'),
        page=page,
        limit=limit
    )
    return service_response(result)


@articles_bp.route('', methods=['POST'])
@login_required
def create_article():
    if request.files:
        result = article_service.create_article(
            request.form.to_dict(),
            uploader=get_current_user(),
            file=request.files.get('file')
        )
        return service_response(result)

    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400
    return service_response(article_service.create_article(data, uploader=get_current_user()))


@articles_bp.route('/<int:article_id>', methods=['GET'])
@login_required
def get_article(article_id):
    return service_response(article_service.get_article(article_id))


@articles_bp.route('/<int:article_id>', methods=['PUT'])
@login_required
def update_article(article_id):
    denied = _may_modify(article_id)
    if denied:
        return denied

    ok, data, error = request_validator.validate_json_request(request.remote_addr)
    if not ok:
        return jsonify(error), 400
    return service_response(article_service.update_article(article_id, data))


@articles_bp.route('/<int:article_id>', methods=['DELETE'])
@login_required
def delete_article(article_id):
    denied = _may_modify(article_id)
    if denied:
        return denied
    return service_response(article_service.delete_article(article_id))
