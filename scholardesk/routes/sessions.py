"""
Study Session Routes

FLOW OVERVIEW
Both /api/brainstorming-sessions and /api/writer-sessions expose:
- [GET] own sessions; admins pass ?all=1 for everyone's.
- [POST] create, recorded as a session_created / draft_created analytics event.
- /stats [GET], /<id> [GET, PUT, DELETE], /<id>/touch [POST]

Brainstorming only:
- /<id>/articles/<article_id> [POST, DELETE]
  • Add or remove an article in the session's graph filter.
"""

from flask import Blueprint, jsonify, request

from ..services import analytics_service
from ..services.session_service import brainstorming_sessions, writer_sessions
from ..utils.api_utils import request_validator, service_response
from ..utils.auth_utils import login_required, get_current_user

brainstorming_bp = Blueprint('brainstorming_sessions', __name__)
writer_bp = Blueprint('writer_sessions', __name__)


def _wants_everything():
    return get_current_user().is_admin() and request.args.get('all') in ('1', 'true', 'yes')


def register_session_routes(bp, service, track_create):
    """Attach the shared CRUD endpoints for one session service to a blueprint"""

    @bp.route('', methods=['GET'])
    @login_required
    def list_sessions():
        if _wants_everything():
            return service_response(service.list_all())
        return service_response(service.list_for_user(get_current_user()))

    @bp.route('', methods=['POST'])
    @login_required
    def create_session():
        ok, data, error = request_validator.validate_json_request(request.remote_addr)
        if not ok:
            return jsonify(error), 400

        user = get_current_user()
        result = service.create(user, data)
        if result.success:
            track_create(user.id, result.data['id'], result.data['title'])
        return service_response(result)

    @bp.route('/stats', methods=['GET'])
    @login_required
    def session_stats():
        user = None if _wants_everything() else get_current_user()
        return service_response(service.stats(user))

    @bp.route('/<int:session_id>', methods=['GET'])
    @login_required
    def get_session(session_id):
        return service_response(service.get(session_id, requester=get_current_user()))

    @bp.route('/<int:session_id>', methods=['PUT'])
    @login_required
    def update_session(session_id):
        ok, data, error = request_validator.validate_json_request(request.remote_addr)
        if not ok:
            return jsonify(error), 400
        return service_response(service.update(session_id, data, requester=get_current_user()))

    @bp.route('/<int:session_id>', methods=['DELETE'])
    @login_required
    def delete_session(session_id):
        return service_response(service.delete(session_id, requester=get_current_user()))

    @bp.route('/<int:session_id>/touch', methods=['POST'])
    @login_required
    def touch_session(session_id):
        return service_response(service.touch(session_id, requester=get_current_user()))


register_session_routes(brainstorming_bp, brainstorming_sessions, analytics_service.track_session_create)
register_session_routes(writer_bp, writer_sessions, analytics_service.track_draft_create)


@brainstorming_bp.route('/<int:session_id>/articles/<int:article_id>', methods=['POST'])
@login_required
def add_filter_article(session_id, article_id):
    result = brainstorming_sessions.add_article_to_filter(session_id, article_id, requester=get_current_user())
    return service_response(result)


@brainstorming_bp.route('/<int:session_id>/articles/<int:article_id>', methods=['DELETE'])
@login_required
def remove_filter_article(session_id, article_id):
    result = brainstorming_sessions.remove_article_from_filter(session_id, article_id, requester=get_current_user())
    return service_response(result)
