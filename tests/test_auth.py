from scholardesk.models import db, User, AnalyticsEvent
from scholardesk.utils.auth_utils import (
    hash_password, verify_password, generate_jwt_token, verify_jwt_token
)

TEST_PASSWORD = 'secret123'


class TestPasswordHashing:

    def test_hash_and_verify(self, app_context):
        hashed = hash_password('secret123')
        assert hashed.startswith('$2')
        assert verify_password('secret123', hashed)
        assert not verify_password('wrong-pass', hashed)

    def test_verify_rejects_non_bcrypt_values(self, app_context):
        assert not verify_password('secret123', 'not-a-hash')
        assert not verify_password('', None)


class TestJWT:

    def test_round_trip(self, app_context):
        token = generate_jwt_token('ABCDEF123456')
        payload = verify_jwt_token(token)
        assert payload['user_id'] == 'ABCDEF123456'

    def test_expired_token(self, app_context):
        token = generate_jwt_token('ABCDEF123456', expires_in=-10)
        assert verify_jwt_token(token) is None

    def test_garbage_token(self, app_context):
        assert verify_jwt_token('not.a.token') is None


class TestRegister:
    """Student self-registration"""

    def test_register_creates_student(self, client, db_session):
        response = client.post('/auth/register', json={
            'name': 'Dewi Lestari',
            'email': 'Dewi@Example.com',
            'password': 'secret123',
            'nim': '2201010099',
            'group': 'b',
        })
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['email'] == 'dewi@example.com'
        assert data['role'] == 'USER'
        assert data['group'] == 'B'
        assert data['tier'] == 'basic'
        assert 'password_hash' not in data

    def test_register_cannot_self_promote(self, client, db_session):
        response = client.post('/auth/register', json={
            'name': 'Sneaky User',
            'email': 'sneaky@example.com',
            'password': 'secret123',
            'role': 'ADMIN',
        })
        assert response.status_code == 201
        assert response.get_json()['data']['role'] == 'USER'

    def test_register_duplicate_email(self, client, student_user):
        response = client.post('/auth/register', json={
            'name': 'Siti Again',
            'email': 'siti@example.com',
            'password': 'secret123',
        })
        assert response.status_code == 409
        assert response.get_json()['error_code'] == 'DUPLICATE'

    def test_register_duplicate_nim(self, client, student_user):
        response = client.post('/auth/register', json={
            'name': 'Other Student',
            'email': 'other@example.com',
            'password': 'secret123',
            'nim': '2201010001',
        })
        assert response.status_code == 409

    def test_register_validation(self, client, db_session):
        response = client.post('/auth/register', json={
            'name': 'Short Pass',
            'email': 'short@example.com',
            'password': '123',
        })
        assert response.status_code == 400
        assert response.get_json()['error_code'] == 'VALIDATION_ERROR'

    def test_register_requires_json(self, client, db_session):
        response = client.post('/auth/register', data='not json', content_type='application/json')
        assert response.status_code == 400
        assert response.get_json()['error_code'] == 'INVALID_JSON'


class TestLogin:

    def test_login_with_email(self, client, student_user):
        response = client.post('/auth/login', json={'email': 'siti@example.com', 'password': TEST_PASSWORD})
        assert response.status_code == 200
        body = response.get_json()
        assert body['data']['user']['id'] == student_user.user_id
        assert verify_jwt_token(body['data']['token'])['user_id'] == student_user.user_id

        with client.session_transaction() as sess:
            assert sess['user_id'] == student_user.user_id

    def test_login_with_nim(self, client, student_user):
        response = client.post('/auth/login', json={'identifier': '2201010001', 'password': TEST_PASSWORD})
        assert response.status_code == 200

    def test_login_records_login_event(self, client, student_user):
        client.post('/auth/login', json={'email': 'siti@example.com', 'password': TEST_PASSWORD})
        events = AnalyticsEvent.query.filter_by(user_id=student_user.id, action='login').all()
        assert len(events) == 1
        assert db.session.get(User, student_user.id).last_login is not None

    def test_login_wrong_password(self, client, student_user):
        response = client.post('/auth/login', json={'email': 'siti@example.com', 'password': 'nope-nope'})
        assert response.status_code == 401
        assert response.get_json()['error_code'] == 'INVALID_CREDENTIALS'

    def test_login_missing_fields(self, client, db_session):
        response = client.post('/auth/login', json={'email': 'siti@example.com'})
        assert response.status_code == 400

    def test_suspended_user_cannot_login(self, client, student_user, db_session):
        student_user.status = 'suspended'
        db_session.commit()
        response = client.post('/auth/login', json={'email': 'siti@example.com', 'password': TEST_PASSWORD})
        assert response.status_code == 401


class TestSessionAndBearer:

    def test_me_requires_login(self, client, db_session):
        response = client.get('/auth/me')
        assert response.status_code == 401
        assert response.get_json()['error_code'] == 'UNAUTHORIZED'

    def test_me_with_session(self, login, student_user):
        client = login(student_user)
        response = client.get('/auth/me')
        assert response.status_code == 200
        assert response.get_json()['data']['email'] == 'siti@example.com'

    def test_me_with_bearer_token(self, client, student_user):
        token = generate_jwt_token(student_user.user_id)
        response = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 200
        assert response.get_json()['data']['id'] == student_user.user_id

    def test_logout_clears_session(self, login, student_user):
        client = login(student_user)
        assert client.post('/auth/logout').status_code == 200
        assert client.get('/auth/me').status_code == 401

    def test_admin_route_rejects_students(self, login, student_user):
        client = login(student_user)
        response = client.get('/api/users')
        assert response.status_code == 403
        assert response.get_json()['error_code'] == 'FORBIDDEN'
