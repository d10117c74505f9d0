"""
Tests for brainstorming and writer sessions.
"""

from datetime import datetime, timedelta

from scholardesk.models import db, AnalyticsEvent, BrainstormingSession, WriterSession
from scholardesk.services import article_service
from scholardesk.services.session_service import brainstorming_sessions, writer_sessions


class TestSessionService:

    def test_create_defaults(self, db_session, student_user):
        result = brainstorming_sessions.create(student_user, {'title': 'Thesis ideas'})
        assert result.status_code == 201
        assert result.data['cover_color'] == '#4c6ef5'
        assert result.data['selected_filter_articles'] == []
        assert result.data['user_id'] == student_user.user_id

    def test_title_required(self, db_session, student_user):
        assert writer_sessions.create(student_user, {'description': 'no title'}).error_code == 'VALIDATION_ERROR'

    def test_cover_color_format(self, db_session, student_user):
        result = writer_sessions.create(student_user, {'title': 'Draft', 'cover_color': 'blue'})
        assert result.error_code == 'VALIDATION_ERROR'
        result = writer_sessions.create(student_user, {'title': 'Draft', 'cover_color': '#12ab34'})
        assert result.data['cover_color'] == '#12ab34'

    def test_ownership(self, db_session, student_user, student_b, admin_user):
        created = writer_sessions.create(student_user, {'title': 'Chapter one'})
        session_id = created.data['id']
        assert writer_sessions.get(session_id, requester=student_b).error_code == 'FORBIDDEN'
        assert writer_sessions.update(session_id, {'title': 'x'}, requester=student_b).status_code == 403
        assert writer_sessions.get(session_id, requester=admin_user).success

    def test_list_orders_by_last_activity(self, db_session, student_user):
        first = writer_sessions.create(student_user, {'title': 'Older'}).data['id']
        second = writer_sessions.create(student_user, {'title': 'Newer'}).data['id']
        db.session.get(WriterSession, second).last_activity = datetime.utcnow() - timedelta(days=2)
        db.session.commit()

        writer_sessions.touch(first, requester=student_user)
        ids = [row['id'] for row in writer_sessions.list_for_user(student_user).data]
        assert ids == [first, second]

    def test_stats(self, db_session, student_user, student_b):
        old = brainstorming_sessions.create(student_user, {'title': 'Old map'}).data['id']
        brainstorming_sessions.create(student_user, {'title': 'Fresh map'})
        brainstorming_sessions.create(student_b, {'title': 'Other map'})

        row = db.session.get(BrainstormingSession, old)
        row.created_at = datetime.utcnow() - timedelta(days=60)
        row.last_activity = datetime.utcnow() - timedelta(days=20)
        db.session.commit()

        mine = brainstorming_sessions.stats(student_user).data
        assert mine == {'total_sessions': 2, 'recent_sessions': 1, 'active_sessions': 1}
        assert brainstorming_sessions.stats().data['total_sessions'] == 3

    def test_graph_state_update(self, db_session, student_user):
        session_id = brainstorming_sessions.create(student_user, {'title': 'Map'}).data['id']
        result = brainstorming_sessions.update(session_id, {
            'last_selected_node_id': 'n-42',
            'graph_filters': {'relation': ['cites']},
            'selected_filter_articles': [3, '5', 'x'],
        }, requester=student_user)
        assert result.data['last_selected_node_id'] == 'n-42'
        assert result.data['graph_filters'] == {'relation': ['cites']}
        assert result.data['selected_filter_articles'] == [3, 5]

    def test_article_filter_is_idempotent(self, db_session, student_user):
        article_id = article_service.create_article(
            {'title': 'Filter me', 'file_path': 'a.pdf'}, uploader=student_user
        ).data['id']
        session_id = brainstorming_sessions.create(student_user, {'title': 'Map'}).data['id']

        brainstorming_sessions.add_article_to_filter(session_id, article_id, requester=student_user)
        result = brainstorming_sessions.add_article_to_filter(session_id, article_id, requester=student_user)
        assert result.data['selected_filter_articles'] == [article_id]

        result = brainstorming_sessions.remove_article_from_filter(session_id, article_id, requester=student_user)
        assert result.data['selected_filter_articles'] == []

    def test_filter_unknown_article(self, db_session, student_user):
        session_id = brainstorming_sessions.create(student_user, {'title': 'Map'}).data['id']
        result = brainstorming_sessions.add_article_to_filter(session_id, 999, requester=student_user)
        assert result.status_code == 404

    def test_deleting_user_removes_sessions(self, db_session, student_user):
        brainstorming_sessions.create(student_user, {'title': 'Map'})
        writer_sessions.create(student_user, {'title': 'Draft'})
        db.session.delete(student_user)
        db.session.commit()
        assert BrainstormingSession.query.count() == 0
        assert WriterSession.query.count() == 0


class TestSessionRoutes:

    def test_create_tracks_analytics(self, login, student_user):
        client = login(student_user)
        response = client.post('/api/brainstorming-sessions', json={'title': 'Mind map'})
        assert response.status_code == 201
        response = client.post('/api/writer-sessions', json={'title': 'First draft'})
        assert response.status_code == 201

        actions = sorted(e.action for e in AnalyticsEvent.query.filter_by(user_id=student_user.id))
        assert actions == ['draft_created', 'session_created']

    def test_students_list_only_their_own(self, login, student_user, student_b):
        writer_sessions.create(student_user, {'title': 'Mine'})
        writer_sessions.create(student_b, {'title': 'Theirs'})

        rows = login(student_user).get('/api/writer-sessions?all=1').get_json()['data']
        assert [r['title'] for r in rows] == ['Mine']

    def test_admin_lists_everything(self, login, admin_user, student_user, student_b):
        writer_sessions.create(student_user, {'title': 'Mine'})
        writer_sessions.create(student_b, {'title': 'Theirs'})
        rows = login(admin_user).get('/api/writer-sessions?all=1').get_json()['data']
        assert len(rows) == 2

    def test_crud_and_touch(self, login, student_user):
        client = login(student_user)
        session_id = client.post('/api/writer-sessions', json={'title': 'Draft'}).get_json()['data']['id']

        assert client.get(f'/api/writer-sessions/{session_id}').status_code == 200
        response = client.put(f'/api/writer-sessions/{session_id}', json={'description': 'Intro chapter'})
        assert response.get_json()['data']['description'] == 'Intro chapter'
        assert client.post(f'/api/writer-sessions/{session_id}/touch').status_code == 200
        assert client.get('/api/writer-sessions/stats').get_json()['data']['total_sessions'] == 1
        assert client.delete(f'/api/writer-sessions/{session_id}').status_code == 200
        assert client.get(f'/api/writer-sessions/{session_id}').status_code == 404

    def test_other_student_is_forbidden(self, login, student_user, student_b):
        session_id = brainstorming_sessions.create(student_user, {'title': 'Private'}).data['id']
        client = login(student_b)
        assert client.get(f'/api/brainstorming-sessions/{session_id}').status_code == 403
        assert client.delete(f'/api/brainstorming-sessions/{session_id}').status_code == 403

    def test_filter_article_routes(self, login, student_user):
        article_id = article_service.create_article(
            {'title': 'Filter me', 'file_path': 'a.pdf'}, uploader=student_user
        ).data['id']
        client = login(student_user)
        session_id = client.post('/api/brainstorming-sessions', json={'title': 'Map'}).get_json()['data']['id']

        response = client.post(f'/api/brainstorming-sessions/{session_id}/articles/{article_id}')
        assert response.get_json()['data']['selected_filter_articles'] == [article_id]
        response = client.delete(f'/api/brainstorming-sessions/{session_id}/articles/{article_id}')
        assert response.get_json()['data']['selected_filter_articles'] == []

    def test_writer_sessions_have_no_article_filter(self, login, student_user):
        session_id = writer_sessions.create(student_user, {'title': 'Draft'}).data['id']
        response = login(student_user).post(f'/api/writer-sessions/{session_id}/articles/1')
        assert response.status_code in (404, 405)
