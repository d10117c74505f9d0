"""
Test configuration and shared fixtures for ScholarDesk tests.

This file contains:
- Centralized test configuration
- Shared fixtures used across multiple test files
- A fake object storage client so no test touches the network
"""

import pytest
from scholardesk import create_app
from scholardesk.models import db, User
from scholardesk.models.user import ROLE_ADMIN
from scholardesk.services import storage_service
from scholardesk.utils.auth_utils import hash_password


# Centralized test configuration
TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key',
    'JWT_SECRET_KEY': 'test-jwt-secret-key',
    'BCRYPT_LOG_ROUNDS': 4,
    'MAX_UPLOAD_BYTES': 1024,
    'DEFAULT_COST_PER_TOKEN': 0.000002,
}

TEST_PASSWORD = 'secret123'


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app(TEST_CONFIG)
    return app


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def app_context(app):
    """Create an application context for database operations."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    """Create a database session and clean up after tests."""
    db.create_all()
    yield db.session
    db.session.remove()
    db.drop_all()


def make_user(db_session, name, email, role='USER', **profile):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        **profile
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_user(db_session):
    """Create an administrator."""
    return make_user(db_session, 'Dosen Admin', 'admin@example.com', role=ROLE_ADMIN)


@pytest.fixture
def student_user(db_session):
    """Create a class A student."""
    return make_user(db_session, 'Siti Rahma', 'siti@example.com', nim='2201010001', group='A')


@pytest.fixture
def student_b(db_session):
    """Create a class B student."""
    return make_user(db_session, 'Budi Santoso', 'budi@example.com', nim='2201010002', group='B')


@pytest.fixture
def login(client):
    """Return a helper that signs the test client in as a user."""
    def _login(user):
        with client.session_transaction() as sess:
            sess.clear()
            sess['user_id'] = user.user_id
        return client
    return _login


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, content, options=None):
        if self.storage.fail:
            raise ConnectionError('storage unavailable')
        self.storage.objects[(self.name, path)] = content
        return {'Key': f"{self.name}/{path}"}

    def remove(self, paths):
        if self.storage.fail:
            raise ConnectionError('storage unavailable')
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
            self.storage.removed.append((self.name, path))
        return []

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.removed = []
        self.fail = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeStorageClient:
    def __init__(self):
        self.storage = FakeStorage()


@pytest.fixture
def fake_storage(monkeypatch):
    """Swap the hosted storage client for an in-memory one."""
    client = FakeStorageClient()
    monkeypatch.setattr(storage_service, '_storage_client', client)
    yield client.storage
    storage_service.reset_storage_client()
