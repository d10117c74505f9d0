"""
Tests for learning analytics: event tracking, per-student aggregation and the
admin summary.
"""

from datetime import datetime, timedelta

import pytest
from scholardesk.models import db, AnalyticsEvent
from scholardesk.services import analytics_service
from scholardesk.services.session_service import brainstorming_sessions


def add_event(user, action, days_ago=0, document=None, **meta):
    event = AnalyticsEvent(
        user_id=user.id,
        action=action,
        document=document,
        meta=meta,
        timestamp=datetime.utcnow() - timedelta(days=days_ago)
    )
    db.session.add(event)
    db.session.commit()
    return event


def empty_actions():
    return {action: [] for action in analytics_service.TRACKED_ACTIONS}


class TestTracking:

    def test_track_event(self, db_session, student_user):
        result = analytics_service.track_event(student_user, 'chat_query', document=7, metadata={
            'query': 'x' * 150, 'response_length': 42
        })
        assert result.status_code == 201
        event = result.data['event']
        assert event['action'] == 'chat_query'
        assert event['document'] == '7'
        assert event['metadata']['query'] == 'x' * 100
        assert event['metadata']['query_length'] == 150
        assert event['user_id'] == student_user.user_id

    def test_unknown_action(self, db_session, student_user):
        result = analytics_service.track_event(student_user, 'teleport')
        assert result.error_code == 'VALIDATION_ERROR'
        assert AnalyticsEvent.query.count() == 0

    def test_metadata_must_be_an_object(self, db_session, student_user):
        assert analytics_service.track_event(student_user, 'page_view', metadata=[1]).error_code == 'VALIDATION_ERROR'

    def test_anonymous_event(self, db_session):
        event = analytics_service.track_page_view(None, '/login', time_spent=3)
        assert event.user_id is None
        assert event.meta == {'page': '/login', 'time_spent': 3}

    def test_error_message_is_truncated(self, db_session, student_user):
        event = analytics_service.track_error(student_user.id, 'TypeError', 'e' * 500)
        assert len(event.meta['error_message']) == 200
        assert event.document == 'system'

    def test_non_string_query(self, db_session, student_user):
        result = analytics_service.track_event(student_user, 'chat_query', metadata={'query': 12345})
        assert result.status_code == 201
        assert result.data['event']['metadata']['query'] == '12345'
        assert result.data['event']['metadata']['query_length'] == 5

    def test_non_string_error_message(self, db_session, student_user):
        event = analytics_service.track_error(student_user.id, 'ValueError', {'code': 7})
        assert event.meta['error_message'] == "{'code': 7}"

    def test_labels_are_stored_as_strings(self, db_session, student_user):
        result = analytics_service.track_event(student_user, 'node_click', metadata={'node_type': ['x']})
        assert result.data['event']['metadata']['node_type'] == "['x']"

        event = analytics_service.track_annotation_create(student_user.id, 3, 'c' * 100)
        assert event.meta['annotation_type'] == 'c' * 64


class TestScoring:

    def test_productivity_score_saturates(self):
        brain = {'total_projects': 9, 'total_chat_queries': 8}
        writer = {'total_drafts': 6, 'ai_assistance_usage': 7}
        assert analytics_service.productivity_score(brain, writer, active_days=15) == 100

    def test_productivity_score_partial(self):
        brain = {'total_projects': 1, 'total_chat_queries': 2}
        writer = {'total_drafts': 0, 'ai_assistance_usage': 3}
        # 6 for projects, 10 for AI usage, 4 for two active days
        assert analytics_service.productivity_score(brain, writer, active_days=2) == 20

    @pytest.mark.parametrize('events,level', [(0, 'low'), (4, 'low'), (5, 'medium'), (19, 'medium'), (20, 'high')])
    def test_engagement_level(self, events, level):
        assert analytics_service.engagement_level(events) == level

    def test_preferred_module(self):
        by_action = empty_actions()
        assert analytics_service.preferred_module(by_action) == 'both'

        by_action['node_click'] = [object()] * 3
        by_action['draft_saved'] = [object()]
        assert analytics_service.preferred_module(by_action) == 'brain'

        by_action['draft_created'] = [object()] * 5
        assert analytics_service.preferred_module(by_action) == 'writer'

        by_action['edge_click'] = [object()] * 3
        assert analytics_service.preferred_module(by_action) == 'both'


class TestLearningAnalytics:

    def test_aggregates_events_and_sessions(self, db_session, student_user):
        brainstorming_sessions.create(student_user, {'title': 'Map one'})
        brainstorming_sessions.create(student_user, {'title': 'Map two'})
        add_event(student_user, 'node_click', node_type='concept')
        add_event(student_user, 'node_click', node_type='concept')
        add_event(student_user, 'edge_click', relation='cites')
        add_event(student_user, 'session_ended', duration=600)
        add_event(student_user, 'draft_created', document='1')
        add_event(student_user, 'draft_saved', document='1', word_count=200)
        add_event(student_user, 'draft_saved', document='1', word_count=450)
        add_event(student_user, 'annotation_created', annotation_type='claim')
        add_event(student_user, 'login', days_ago=40)

        analytics = analytics_service.compute_learning_analytics(student_user)
        brain, writer, overall = analytics['brain_stats'], analytics['writer_stats'], analytics['overall_stats']

        assert analytics['user_id'] == student_user.user_id
        assert brain['total_projects'] == 2
        assert brain['node_clicks'] == 2
        assert brain['avg_clicks_per_project'] == 1.5
        assert brain['session_duration'] == 10.0
        assert brain['most_used_node_types'] == [{'type': 'concept', 'count': 2}]
        assert brain['relationship_patterns'] == [{'relation': 'cites', 'count': 1}]

        assert writer['total_drafts'] == 1
        assert writer['total_writing_sessions'] == 2
        assert writer['avg_words_per_draft'] == 450
        assert writer['most_used_semantic_tags'] == [{'tag': 'claim', 'count': 1}]

        assert overall['recent_activity'] == 8
        assert overall['total_login_sessions'] == 1
        assert overall['total_time_spent'] == 10.0
        assert overall['engagement_level'] == 'medium'
        assert len(overall['activity_pattern']) == 24
        assert [d['day'] for d in overall['weekly_activity']][0] == 'Monday'

    def test_student_without_activity(self, db_session, student_user):
        overall = analytics_service.compute_learning_analytics(student_user)['overall_stats']
        assert overall['productivity_score'] == 0
        assert overall['engagement_level'] == 'low'
        assert overall['preferred_module'] == 'both'

    def test_unknown_user(self, db_session):
        assert analytics_service.get_user_learning_analytics('NOPE00000000').status_code == 404

    def test_malformed_metadata_already_stored(self, db_session, student_user):
        add_event(student_user, 'node_click', node_type=['concept'])
        add_event(student_user, 'edge_click', relation={'kind': 'cites'})
        add_event(student_user, 'annotation_created', annotation_type=[1, 2])
        add_event(student_user, 'draft_saved', document='1', word_count='lots')
        add_event(student_user, 'session_ended', duration='inf')

        analytics = analytics_service.compute_learning_analytics(student_user)
        brain, writer = analytics['brain_stats'], analytics['writer_stats']
        assert brain['most_used_node_types'] == [{'type': "['concept']", 'count': 1}]
        assert brain['relationship_patterns'] == [{'relation': "{'kind': 'cites'}", 'count': 1}]
        assert brain['session_duration'] == 0
        assert writer['most_used_semantic_tags'] == [{'tag': '[1, 2]', 'count': 1}]
        assert writer['avg_words_per_draft'] == 0


class TestSummary:

    def test_summary_sorted_by_name(self, db_session, admin_user, student_user, student_b):
        data = analytics_service.get_all_users_analytics_summary().data
        assert [row['user']['name'] for row in data['users']] == ['Budi Santoso', 'Siti Rahma']
        assert data['summary']['total_users'] == 2

    def test_summary_sorted_by_productivity_and_group(self, db_session, student_user, student_b):
        for _ in range(3):
            brainstorming_sessions.create(student_user, {'title': 'Map'})

        data = analytics_service.get_all_users_analytics_summary(sort_by='productivity').data
        assert data['users'][0]['user']['name'] == 'Siti Rahma'

        data = analytics_service.get_all_users_analytics_summary(group='b').data
        assert [row['user']['name'] for row in data['users']] == ['Budi Santoso']

    def test_summary_validation(self, db_session):
        assert analytics_service.get_all_users_analytics_summary(sort_by='age').error_code == 'VALIDATION_ERROR'
        assert analytics_service.get_all_users_analytics_summary(group='Z').error_code == 'VALIDATION_ERROR'


class TestAnalyticsRoutes:

    def test_post_event(self, login, student_user):
        client = login(student_user)
        response = client.post('/api/analytics/events', json={
            'action': 'node_click', 'document': '12', 'metadata': {'node_id': 'n1', 'node_type': 'concept'}
        })
        assert response.status_code == 201
        assert AnalyticsEvent.query.filter_by(action='node_click').count() == 1

    def test_post_event_requires_action(self, login, student_user):
        response = login(student_user).post('/api/analytics/events', json={'document': '12'})
        assert response.status_code == 400

    def test_list_metadata_keeps_analytics_readable(self, login, student_user):
        client = login(student_user)
        response = client.post('/api/analytics/events', json={
            'action': 'node_click', 'metadata': {'node_type': ['x']}
        })
        assert response.status_code == 201
        response = client.get(f'/api/analytics/users/{student_user.user_id}')
        assert response.status_code == 200

    def test_students_see_only_their_own(self, login, student_user, student_b):
        client = login(student_user)
        assert client.get(f'/api/analytics/users/{student_user.user_id}').status_code == 200
        assert client.get(f'/api/analytics/users/{student_b.user_id}').status_code == 403
        assert client.get('/api/analytics/summary').status_code == 403

    def test_admin_summary(self, login, admin_user, student_user):
        body = login(admin_user).get('/api/analytics/summary?sort_by=activity').get_json()
        assert body['data']['summary']['total_users'] == 1
