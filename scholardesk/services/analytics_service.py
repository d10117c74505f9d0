"""
Learning Analytics Service

FLOW OVERVIEW
- record_action(action, user_id, document, metadata)
  • Persist one AnalyticsEvent. Failures are logged and swallowed: tracking must never
    break the request that triggered it.
- track_* helpers: one per tracked action, shaping the metadata consistently.
- track_event(user, action, document, metadata): validated entry point for clients.
- get_user_learning_analytics(user_id)
  • brain_stats / writer_stats / overall_stats aggregated from the user's events and sessions.
- get_all_users_analytics_summary(group, sort_by)
  • Every student with analytics, sorted, plus dashboard totals.
"""

import logging
import math
from collections import Counter, OrderedDict
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from ..models import db, AnalyticsEvent, BrainstormingSession, User
from ..models.user import ROLE_USER
from ..utils.prom_metrics import observe_analytics_event
from ..utils.validators import InputValidator, sanitize_input
from . import ServiceResult, NOT_FOUND, VALIDATION_ERROR

logger = logging.getLogger(__name__)

NODE_CLICK = 'node_click'
EDGE_CLICK = 'edge_click'
CHAT_QUERY = 'chat_query'
SESSION_CREATED = 'session_created'
SESSION_ENDED = 'session_ended'
DRAFT_CREATED = 'draft_created'
DRAFT_SAVED = 'draft_saved'
ANNOTATION_CREATED = 'annotation_created'
AI_ASSISTANCE_USED = 'ai_assistance_used'
CITATION_ADDED = 'citation_added'
PAGE_VIEW = 'page_view'
FEATURE_USED = 'feature_used'
ERROR_OCCURRED = 'error_occurred'
LOGIN = 'login'

BRAIN_ACTIONS = (NODE_CLICK, EDGE_CLICK, CHAT_QUERY, SESSION_CREATED, SESSION_ENDED)
WRITER_ACTIONS = (DRAFT_CREATED, DRAFT_SAVED, ANNOTATION_CREATED, AI_ASSISTANCE_USED, CITATION_ADDED)
TRACKED_ACTIONS = BRAIN_ACTIONS + WRITER_ACTIONS + (PAGE_VIEW, FEATURE_USED, ERROR_OCCURRED, LOGIN)

QUERY_PREVIEW_CHARS = 100
ERROR_MESSAGE_CHARS = 200
LABEL_CHARS = 64

RECENT_DAYS = 7
ACTIVE_WINDOW_DAYS = 30
HIGH_ENGAGEMENT_EVENTS = 20
MEDIUM_ENGAGEMENT_EVENTS = 5

WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')
SORT_KEYS = ('name', 'productivity', 'activity')


def _text(value):
    return value if isinstance(value, str) else ('' if value is None else str(value))


def _label(value):
    """Categorical metadata (node type, relation, tag) as a short string, or None"""
    if value is None or value == '':
        return None
    return _text(value)[:LABEL_CHARS]


def record_action(action, user_id=None, document=None, metadata=None):
    """
    Persist a tracked action.

    Args:
        action: event name
        user_id: internal user primary key, or None for anonymous events
        document: what the action was about (article id, session id, page, ...)
        metadata: JSON-serialisable details

    Returns:
        The AnalyticsEvent, or None when it could not be stored
    """
    event = AnalyticsEvent(
        action=action,
        user_id=user_id,
        document=str(document)[:255] if document is not None else None,
        meta=metadata or {},
        timestamp=datetime.utcnow()
    )
    try:
        db.session.add(event)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Analytics recording failed for {action}: {e}")
        return None

    observe_analytics_event(action)
    return event


# Brain module

def track_node_click(user_id, node_id, node_type, article_id):
    return record_action(NODE_CLICK, user_id, article_id, {'node_id': node_id, 'node_type': _label(node_type)})


def track_edge_click(user_id, edge_id, relation, article_id):
    return record_action(EDGE_CLICK, user_id, article_id, {'edge_id': edge_id, 'relation': _label(relation)})


def track_chat_query(user_id, session_id, query, response_length=0):
    query = _text(query)
    return record_action(CHAT_QUERY, user_id, session_id, {
        # Only a prefix is kept
        'query': query[:QUERY_PREVIEW_CHARS],
        'query_length': len(query),
        'response_length': response_length,
    })


def track_session_create(user_id, session_id, title):
    return record_action(SESSION_CREATED, user_id, session_id, {'title': title})


def track_session_end(user_id, session_id, duration):
    """duration is in seconds"""
    return record_action(SESSION_ENDED, user_id, session_id, {'duration': duration})


# Writer module

def track_draft_create(user_id, draft_id, title):
    return record_action(DRAFT_CREATED, user_id, draft_id, {'title': title})


def track_draft_save(user_id, draft_id, word_count):
    return record_action(DRAFT_SAVED, user_id, draft_id, {'word_count': word_count})


def track_annotation_create(user_id, article_id, annotation_type):
    return record_action(ANNOTATION_CREATED, user_id, article_id, {'annotation_type': _label(annotation_type)})


def track_ai_assistance(user_id, document, assistance_type, prompt_length=0):
    return record_action(AI_ASSISTANCE_USED, user_id, document, {
        'assistance_type': assistance_type,
        'prompt_length': prompt_length,
    })


def track_citation_add(user_id, draft_id, citation_type):
    return record_action(CITATION_ADDED, user_id, draft_id, {'citation_type': citation_type})


# General

def track_page_view(user_id, page, time_spent=None):
    return record_action(PAGE_VIEW, user_id, page, {'page': page, 'time_spent': time_spent})


def track_feature_usage(user_id, feature, context=None):
    return record_action(FEATURE_USED, user_id, feature, {'feature': feature, 'context': context})


def track_error(user_id, error_type, error_message, context=None):
    return record_action(ERROR_OCCURRED, user_id, 'system', {
        'error_type': error_type,
        'error_message': _text(error_message)[:ERROR_MESSAGE_CHARS],
        'context': context,
    })


def track_login(user_id):
    return record_action(LOGIN, user_id, 'auth')


_TRACKERS = {
    NODE_CLICK: lambda uid, doc, m: track_node_click(uid, m.get('node_id'), m.get('node_type'), doc),
    EDGE_CLICK: lambda uid, doc, m: track_edge_click(uid, m.get('edge_id'), m.get('relation'), doc),
    CHAT_QUERY: lambda uid, doc, m: track_chat_query(uid, doc, m.get('query'), m.get('response_length', 0)),
    SESSION_CREATED: lambda uid, doc, m: track_session_create(uid, doc, m.get('title')),
    SESSION_ENDED: lambda uid, doc, m: track_session_end(uid, doc, m.get('duration', 0)),
    DRAFT_CREATED: lambda uid, doc, m: track_draft_create(uid, doc, m.get('title')),
    DRAFT_SAVED: lambda uid, doc, m: track_draft_save(uid, doc, m.get('word_count', 0)),
    ANNOTATION_CREATED: lambda uid, doc, m: track_annotation_create(uid, doc, m.get('annotation_type')),
    AI_ASSISTANCE_USED: lambda uid, doc, m: track_ai_assistance(uid, doc, m.get('assistance_type'), m.get('prompt_length', 0)),
    CITATION_ADDED: lambda uid, doc, m: track_citation_add(uid, doc, m.get('citation_type')),
    PAGE_VIEW: lambda uid, doc, m: track_page_view(uid, doc or m.get('page'), m.get('time_spent')),
    FEATURE_USED: lambda uid, doc, m: track_feature_usage(uid, doc or m.get('feature'), m.get('context')),
    ERROR_OCCURRED: lambda uid, doc, m: track_error(uid, m.get('error_type'), m.get('error_message'), m.get('context')),
    LOGIN: lambda uid, doc, m: track_login(uid),
}


def track_event(user, action, document=None, metadata=None):
    """Validated tracking entry point used by the events endpoint"""
    action = sanitize_input(action, max_length=64)
    if action not in _TRACKERS:
        return ServiceResult.fail(VALIDATION_ERROR, f"Unknown analytics action: {action}")
    if metadata is not None and not isinstance(metadata, dict):
        return ServiceResult.fail(VALIDATION_ERROR, "metadata must be a JSON object")

    event = _TRACKERS[action](user.id if user else None, document, metadata or {})
    if event is None:
        # Tracking failures never fail the caller
        return ServiceResult.ok({'recorded': False})
    return ServiceResult(True, data={'recorded': True, 'event': event.to_dict()}, status_code=201)


# Aggregation

def _meta(event, key, default=None):
    meta = event.meta if isinstance(event.meta, dict) else {}
    return meta.get(key, default)


def _number(value):
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _top(counter, label, limit=5):
    return [{label: key, 'count': count} for key, count in counter.most_common(limit) if key]


def _per_day(events, value=lambda event: 1):
    daily = OrderedDict()
    for event in sorted(events, key=lambda e: e.timestamp):
        key = event.timestamp.date().isoformat()
        daily[key] = daily.get(key, 0) + value(event)
    return daily


def _brain_stats(user, by_action):
    sessions = (BrainstormingSession.query
                .filter_by(user_id=user.id)
                .order_by(BrainstormingSession.last_activity.desc())
                .all())
    total_projects = len(sessions)
    node_clicks = len(by_action[NODE_CLICK])
    edge_clicks = len(by_action[EDGE_CLICK])
    duration_seconds = sum(_number(_meta(e, 'duration')) for e in by_action[SESSION_ENDED])

    return {
        'total_projects': total_projects,
        'total_chat_queries': len(by_action[CHAT_QUERY]),
        'node_clicks': node_clicks,
        'edge_clicks': edge_clicks,
        'session_duration': round(duration_seconds / 60, 1),
        'last_activity': sessions[0].last_activity.isoformat() if sessions and sessions[0].last_activity else None,
        'avg_clicks_per_project': round((node_clicks + edge_clicks) / total_projects, 2) if total_projects else 0,
        'most_used_node_types': _top(Counter(_label(_meta(e, 'node_type')) for e in by_action[NODE_CLICK]), 'type'),
        'relationship_patterns': _top(Counter(_label(_meta(e, 'relation')) for e in by_action[EDGE_CLICK]), 'relation'),
    }


def _writer_stats(by_action):
    saves = by_action[DRAFT_SAVED]

    # A draft's size is its most recent saved word count
    latest_words = {}
    for event in sorted(saves, key=lambda e: e.timestamp):
        latest_words[event.document] = _number(_meta(event, 'word_count'))

    writer_events = [e for action in WRITER_ACTIONS for e in by_action[action]]
    last_writing = max((e.timestamp for e in writer_events), default=None)

    progress = _per_day(saves, lambda e: int(_number(_meta(e, 'word_count'))))
    annotations = _per_day(by_action[ANNOTATION_CREATED])

    return {
        'total_drafts': len(by_action[DRAFT_CREATED]),
        'total_annotations': len(by_action[ANNOTATION_CREATED]),
        'total_writing_sessions': len(saves),
        'ai_assistance_usage': len(by_action[AI_ASSISTANCE_USED]),
        'citation_count': len(by_action[CITATION_ADDED]),
        'avg_words_per_draft': round(sum(latest_words.values()) / len(latest_words), 1) if latest_words else 0,
        'writing_progress': [{'date': day, 'words_written': words} for day, words in progress.items()],
        'last_writing_activity': last_writing.isoformat() if last_writing else None,
        'most_used_semantic_tags': _top(
            Counter(_label(_meta(e, 'annotation_type')) for e in by_action[ANNOTATION_CREATED]), 'tag'
        ),
        'annotation_frequency': [{'date': day, 'count': count} for day, count in annotations.items()],
    }


def productivity_score(brain_stats, writer_stats, active_days):
    """
    0-100 score weighting output and steady use.

    Brainstorming projects (30) and drafts (30) saturate at 5 each, AI usage (20)
    at 10 interactions, active days in the last 30 days (20) at 10 days.
    """
    projects = min(brain_stats['total_projects'], 5) / 5 * 30
    drafts = min(writer_stats['total_drafts'], 5) / 5 * 30
    ai_usage = min(brain_stats['total_chat_queries'] + writer_stats['ai_assistance_usage'], 10) / 10 * 20
    consistency = min(active_days, 10) / 10 * 20
    return int(round(projects + drafts + ai_usage + consistency))


def engagement_level(recent_activity):
    if recent_activity >= HIGH_ENGAGEMENT_EVENTS:
        return 'high'
    if recent_activity >= MEDIUM_ENGAGEMENT_EVENTS:
        return 'medium'
    return 'low'


def preferred_module(by_action):
    brain = sum(len(by_action[action]) for action in BRAIN_ACTIONS)
    writer = sum(len(by_action[action]) for action in WRITER_ACTIONS)
    if brain + writer == 0:
        return 'both'
    share = brain / (brain + writer)
    if share >= 0.6:
        return 'brain'
    if share <= 0.4:
        return 'writer'
    return 'both'


def _overall_stats(events, by_action, brain_stats, writer_stats, now):
    recent_cutoff = now - timedelta(days=RECENT_DAYS)
    window_cutoff = now - timedelta(days=ACTIVE_WINDOW_DAYS)

    recent_activity = sum(1 for e in events if e.timestamp >= recent_cutoff)
    active_days = len({e.timestamp.date() for e in events if e.timestamp >= window_cutoff})

    seconds = sum(_number(_meta(e, 'duration')) for e in by_action[SESSION_ENDED])
    seconds += sum(_number(_meta(e, 'time_spent')) for e in by_action[PAGE_VIEW])

    hours = Counter(e.timestamp.hour for e in events)
    weekdays = Counter(e.timestamp.weekday() for e in events)

    return {
        'recent_activity': recent_activity,
        'total_login_sessions': len(by_action[LOGIN]),
        'total_time_spent': round(seconds / 60, 1),
        'preferred_module': preferred_module(by_action),
        'activity_pattern': [{'hour': hour, 'activity_count': hours.get(hour, 0)} for hour in range(24)],
        'weekly_activity': [{'day': day, 'activity_count': weekdays.get(i, 0)} for i, day in enumerate(WEEKDAYS)],
        'productivity_score': productivity_score(brain_stats, writer_stats, active_days),
        'engagement_level': engagement_level(recent_activity),
    }


def compute_learning_analytics(user, now=None):
    """Aggregate one user's analytics from their events and sessions"""
    now = now or datetime.utcnow()
    events = AnalyticsEvent.query.filter_by(user_id=user.id).all()

    by_action = {action: [] for action in TRACKED_ACTIONS}
    for event in events:
        by_action.setdefault(event.action, []).append(event)

    brain_stats = _brain_stats(user, by_action)
    writer_stats = _writer_stats(by_action)
    return {
        'user_id': user.user_id,
        'brain_stats': brain_stats,
        'writer_stats': writer_stats,
        'overall_stats': _overall_stats(events, by_action, brain_stats, writer_stats, now),
    }


def get_user_learning_analytics(user_id):
    user = User.query.filter_by(user_id=user_id).first()
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")
    return ServiceResult.ok(compute_learning_analytics(user))


def collect_student_analytics(group=None):
    """[(user, analytics)] for every student, optionally one class group"""
    query = User.query.filter_by(role=ROLE_USER)
    if group:
        query = query.filter(User.group == group)
    now = datetime.utcnow()
    return [(user, compute_learning_analytics(user, now)) for user in query.all()]


def _sort_rows(rows, sort_by):
    if sort_by == 'productivity':
        return sorted(rows, key=lambda pair: pair[1]['overall_stats']['productivity_score'], reverse=True)
    if sort_by == 'activity':
        return sorted(rows, key=lambda pair: pair[1]['overall_stats']['total_login_sessions'], reverse=True)
    return sorted(rows, key=lambda pair: (pair[0].name or '').lower())


def get_all_users_analytics_summary(group=None, sort_by='name'):
    if group:
        result = InputValidator.validate_group(group)
        if not result.is_valid:
            return ServiceResult.fail(VALIDATION_ERROR, result.error_message)
        group = result.sanitized_value
    if sort_by not in SORT_KEYS:
        return ServiceResult.fail(VALIDATION_ERROR, f"sort_by must be one of {', '.join(SORT_KEYS)}")

    rows = _sort_rows(collect_student_analytics(group), sort_by)
    total = len(rows)
    scores = [a['overall_stats']['productivity_score'] for _, a in rows]

    return ServiceResult.ok({
        'users': [{'user': user.summary_dict(), 'analytics': analytics} for user, analytics in rows],
        'summary': {
            'total_users': total,
            'avg_productivity': round(sum(scores) / total, 1) if total else 0,
            'total_brain_projects': sum(a['brain_stats']['total_projects'] for _, a in rows),
            'total_drafts': sum(a['writer_stats']['total_drafts'] for _, a in rows),
            'high_engagement_users': sum(1 for _, a in rows if a['overall_stats']['engagement_level'] == 'high'),
            'active_this_week': sum(1 for _, a in rows if a['overall_stats']['recent_activity'] > 0),
        },
    })
