"""
Study Session Service

FLOW OVERVIEW
- SessionService(model, label) wraps one session table; two instances are exported:
  `brainstorming_sessions` and `writer_sessions`.
  • list_all / list_for_user: most recent activity first.
  • create / update / delete / touch.
  • stats(user): total, created in the last 30 days, active in the last 7 days.
- Brainstorming only: add_article_to_filter / remove_article_from_filter.
"""

import logging
import re
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from ..models import db, BrainstormingSession, WriterSession, Article
from ..models.study_session import DEFAULT_COVER_COLOR
from ..utils.validators import sanitize_input
from . import ServiceResult, NOT_FOUND, VALIDATION_ERROR, FORBIDDEN, DATABASE_ERROR

logger = logging.getLogger(__name__)

COLOR_PATTERN = re.compile(r'^#[0-9a-fA-F]{6}$')

RECENT_DAYS = 30
ACTIVE_DAYS = 7


class SessionService:
    """CRUD and activity tracking for one kind of study session."""

    editable_fields = ('title', 'description', 'cover_color')

    def __init__(self, model, label):
        self.model = model
        self.label = label

    def _get(self, session_id):
        return db.session.get(self.model, session_id)

    def _owned(self, session_id, requester):
        """Fetch a session the requester may touch: (row, failure)"""
        row = self._get(session_id)
        if not row:
            return None, ServiceResult.fail(NOT_FOUND, f"{self.label} not found")
        if requester is not None and not requester.is_admin() and row.user_id != requester.id:
            return None, ServiceResult.fail(FORBIDDEN, f"You do not own this {self.label.lower()}")
        return row, None

    def _commit(self, action):
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to {action} {self.label.lower()}: {e}")
            return ServiceResult.fail(DATABASE_ERROR, f"Could not {action} {self.label.lower()}")
        return None

    def _clean_fields(self, payload, partial=False):
        fields = {}
        if 'title' in payload or not partial:
            title = sanitize_input(payload.get('title'), max_length=255)
            if not title:
                return None, "Title is required"
            fields['title'] = title
        if 'description' in payload:
            fields['description'] = sanitize_input(payload.get('description'), max_length=5000) or None
        if payload.get('cover_color'):
            if not COLOR_PATTERN.match(str(payload['cover_color'])):
                return None, "cover_color must be a hex colour like #4c6ef5"
            fields['cover_color'] = payload['cover_color']
        return fields, None

    def _ordered(self, query):
        return query.order_by(self.model.last_activity.desc(), self.model.id.desc())

    def list_all(self):
        rows = self._ordered(self.model.query).all()
        return ServiceResult.ok([row.to_dict() for row in rows])

    def list_for_user(self, user):
        rows = self._ordered(self.model.query.filter_by(user_id=user.id)).all()
        return ServiceResult.ok([row.to_dict() for row in rows])

    def get(self, session_id, requester=None):
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure
        return ServiceResult.ok(row.to_dict())

    def create(self, user, payload):
        fields, error = self._clean_fields(payload or {})
        if error:
            return ServiceResult.fail(VALIDATION_ERROR, error)

        now = datetime.utcnow()
        fields.setdefault('cover_color', DEFAULT_COVER_COLOR)
        row = self.model(user_id=user.id, created_at=now, updated_at=now, last_activity=now, **fields)
        db.session.add(row)
        failure = self._commit("create")
        if failure:
            return failure

        logger.info(f"{self.label} {row.id} created for {user.user_id}")
        return ServiceResult(True, data=row.to_dict(), message=f"{self.label} created", status_code=201)

    def update(self, session_id, payload, requester=None):
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure

        fields, error = self._clean_fields(payload or {}, partial=True)
        if error:
            return ServiceResult.fail(VALIDATION_ERROR, error)

        for field, value in fields.items():
            setattr(row, field, value)
        self._apply_extra_fields(row, payload or {})
        row.updated_at = datetime.utcnow()

        failure = self._commit("update")
        if failure:
            return failure
        return ServiceResult.ok(row.to_dict(), message=f"{self.label} updated")

    def _apply_extra_fields(self, row, payload):
        """Hook for table-specific columns"""

    def delete(self, session_id, requester=None):
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure

        db.session.delete(row)
        failure = self._commit("delete")
        if failure:
            return failure
        return ServiceResult.ok({'id': session_id}, message=f"{self.label} deleted")

    def touch(self, session_id, requester=None):
        """Record activity on a session"""
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure

        row.last_activity = datetime.utcnow()
        failure = self._commit("update")
        if failure:
            return failure
        return ServiceResult.ok({'id': row.id, 'last_activity': row.last_activity.isoformat()})

    def stats(self, user=None):
        now = datetime.utcnow()
        query = self.model.query
        if user is not None:
            query = query.filter_by(user_id=user.id)

        return ServiceResult.ok({
            'total_sessions': query.count(),
            'recent_sessions': query.filter(self.model.created_at >= now - timedelta(days=RECENT_DAYS)).count(),
            'active_sessions': query.filter(self.model.last_activity >= now - timedelta(days=ACTIVE_DAYS)).count(),
        })


class BrainstormingSessionService(SessionService):
    """Brainstorming sessions also remember graph state and an article filter."""

    def _apply_extra_fields(self, row, payload):
        for field in ('last_selected_node_id', 'last_selected_edge_id'):
            if field in payload:
                setattr(row, field, sanitize_input(payload.get(field), max_length=64) or None)
        if 'graph_filters' in payload:
            row.graph_filters = payload.get('graph_filters')
        if 'selected_filter_articles' in payload:
            ids = payload.get('selected_filter_articles') or []
            row.selected_filter_articles = [int(i) for i in ids if str(i).isdigit()]

    def add_article_to_filter(self, session_id, article_id, requester=None):
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure
        if not db.session.get(Article, article_id):
            return ServiceResult.fail(NOT_FOUND, "Article not found")

        selected = list(row.selected_filter_articles or [])
        if article_id not in selected:
            # Reassign so the JSON column is flagged dirty
            row.selected_filter_articles = selected + [article_id]
            row.updated_at = datetime.utcnow()
            failure = self._commit("update")
            if failure:
                return failure

        return ServiceResult.ok(row.to_dict())

    def remove_article_from_filter(self, session_id, article_id, requester=None):
        row, failure = self._owned(session_id, requester)
        if failure:
            return failure

        selected = list(row.selected_filter_articles or [])
        if article_id in selected:
            row.selected_filter_articles = [i for i in selected if i != article_id]
            row.updated_at = datetime.utcnow()
            failure = self._commit("update")
            if failure:
                return failure

        return ServiceResult.ok(row.to_dict())


brainstorming_sessions = BrainstormingSessionService(BrainstormingSession, 'Brainstorming session')
writer_sessions = SessionService(WriterSession, 'Writer session')
