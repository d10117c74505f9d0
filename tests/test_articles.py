"""
Tests for the article repository and the storage service behind uploads.
"""

import io
import pytest
from werkzeug.datastructures import FileStorage
from sqlalchemy.exc import SQLAlchemyError
from scholardesk.models import db, Article
from scholardesk.services import article_service, storage_service


ARTICLE = {
    'title': 'Transformers for Low-Resource Languages',
    'file_path': 'papers/transformers.pdf',
    'abstract': 'We study transfer learning for Indonesian.',
    'author': 'Rahma, S.',
    'keywords': 'nlp, transfer learning',
    'year': 2023,
}


class TestStorageService:

    def test_upload_returns_public_url(self, app_context, fake_storage):
        result = storage_service.upload_file(('paper.pdf', b'%PDF-1.4', 'application/pdf'), 'uploads', folder='u1')
        assert result.success
        assert result.data['path'].startswith('u1/')
        assert result.data['path'].endswith('.pdf')
        assert result.data['url'] == f"https://storage.test/uploads/{result.data['path']}"
        assert result.data['size'] == 8

    def test_unknown_bucket(self, app_context, fake_storage):
        result = storage_service.upload_file(('paper.pdf', b'x', None), 'secrets')
        assert result.error_code == 'VALIDATION_ERROR'

    def test_size_limit(self, app_context, fake_storage):
        result = storage_service.upload_file(('big.pdf', b'x' * 2048, None), 'uploads')
        assert not result.success
        assert result.status_code == 413
        assert fake_storage.objects == {}

    def test_storage_failure(self, app_context, fake_storage):
        fake_storage.fail = True
        result = storage_service.upload_file(('paper.pdf', b'x', None), 'uploads')
        assert result.error_code == 'STORAGE_ERROR'
        assert result.status_code == 502

    def test_missing_credentials(self, app, app_context, monkeypatch):
        monkeypatch.delenv('SUPABASE_URL', raising=False)
        monkeypatch.delenv('SUPABASE_SERVICE_KEY', raising=False)
        app.config['SUPABASE_URL'] = None
        app.config['SUPABASE_SERVICE_KEY'] = None
        storage_service.reset_storage_client()
        with pytest.raises(RuntimeError):
            storage_service.get_storage_client()

    def test_delete_file(self, app_context, fake_storage):
        uploaded = storage_service.upload_file(('paper.pdf', b'x', None), 'uploads')
        result = storage_service.delete_file('uploads', uploaded.data['path'])
        assert result.success
        assert ('uploads', uploaded.data['path']) in fake_storage.removed


class TestArticleService:

    def test_create_and_get(self, db_session, student_user):
        result = article_service.create_article(ARTICLE, uploader=student_user)
        assert result.status_code == 201
        fetched = article_service.get_article(result.data['id'])
        assert fetched.data['title'] == ARTICLE['title']
        assert fetched.data['user_id'] == student_user.user_id
        assert fetched.data['user']['name'] == 'Siti Rahma'

    def test_title_and_file_path_required(self, db_session):
        assert article_service.create_article({'file_path': 'x.pdf'}).error_code == 'VALIDATION_ERROR'
        assert article_service.create_article({'title': 'A valid title'}).error_code == 'VALIDATION_ERROR'

    def test_upload_with_document(self, db_session, student_user, fake_storage):
        upload = FileStorage(stream=io.BytesIO(b'%PDF'), filename='paper.pdf', content_type='application/pdf')
        result = article_service.create_article({'title': 'Uploaded paper'}, uploader=student_user, file=upload)
        assert result.status_code == 201
        assert ('uploads', result.data['file_path']) in fake_storage.objects

    def test_upload_failure_creates_nothing(self, db_session, student_user, fake_storage):
        fake_storage.fail = True
        upload = FileStorage(stream=io.BytesIO(b'%PDF'), filename='paper.pdf')
        result = article_service.create_article({'title': 'Uploaded paper'}, uploader=student_user, file=upload)
        assert result.error_code == 'STORAGE_ERROR'
        assert Article.query.count() == 0

    def test_invalid_fields_skip_the_upload(self, db_session, student_user, fake_storage):
        upload = FileStorage(stream=io.BytesIO(b'%PDF'), filename='paper.pdf')
        result = article_service.create_article({'title': 'Hi'}, uploader=student_user, file=upload)
        assert result.error_code == 'VALIDATION_ERROR'
        assert fake_storage.objects == {}

    def test_database_failure_removes_the_upload(self, db_session, student_user, fake_storage, monkeypatch):
        def broken_commit():
            raise SQLAlchemyError('database is locked')

        monkeypatch.setattr(db.session, 'commit', broken_commit)
        upload = FileStorage(stream=io.BytesIO(b'%PDF'), filename='paper.pdf')
        result = article_service.create_article({'title': 'Uploaded paper'}, uploader=student_user, file=upload)
        assert result.error_code == 'DATABASE_ERROR'
        assert fake_storage.objects == {}
        assert len(fake_storage.removed) == 1

    def test_search_and_filters(self, db_session, student_user, student_b):
        article_service.create_article(ARTICLE, uploader=student_user)
        article_service.create_article({
            'title': 'Graph Neural Networks Survey',
            'file_path': 'papers/gnn.pdf',
            'author': 'Santoso, B.',
            'year': 2021,
        }, uploader=student_b)

        assert article_service.list_articles(search='indonesian').data['total'] == 1
        assert article_service.list_articles(year='2021').data['articles'][0]['title'] == 'Graph Neural Networks Survey'
        assert article_service.list_articles(author='rahma').data['total'] == 1
        assert article_service.list_articles(user_id=student_b.user_id).data['total'] == 1
        assert article_service.list_articles(year='soon').error_code == 'VALIDATION_ERROR'

    def test_update(self, db_session, student_user):
        created = article_service.create_article(ARTICLE, uploader=student_user)
        result = article_service.update_article(created.data['id'], {'doi': '10.1000/xyz', 'year': ''})
        assert result.data['doi'] == '10.1000/xyz'
        assert result.data['year'] is None
        assert result.data['title'] == ARTICLE['title']

    def test_delete_keeps_going_when_storage_fails(self, db_session, student_user, fake_storage):
        created = article_service.create_article(ARTICLE, uploader=student_user)
        fake_storage.fail = True
        result = article_service.delete_article(created.data['id'])
        assert result.success
        assert Article.query.count() == 0

    def test_missing_article(self, db_session):
        assert article_service.get_article(999).status_code == 404
        assert article_service.delete_article(999).status_code == 404


class TestArticleRoutes:

    def test_list_requires_login(self, client, db_session):
        assert client.get('/api/articles').status_code == 401

    def test_create_json(self, login, student_user):
        client = login(student_user)
        response = client.post('/api/articles', json=ARTICLE)
        assert response.status_code == 201
        assert response.get_json()['data']['user_id'] == student_user.user_id

    def test_create_multipart_uploads_document(self, login, student_user, fake_storage):
        client = login(student_user)
        response = client.post('/api/articles', data={
            'title': 'Multipart Upload',
            'year': '2024',
            'file': (io.BytesIO(b'%PDF-1.7 test'), 'study.pdf'),
        }, content_type='multipart/form-data')
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['file_path'].endswith('.pdf')
        assert data['year'] == 2024
        assert ('uploads', data['file_path']) in fake_storage.objects

    def test_multipart_rejects_images(self, login, student_user, fake_storage):
        client = login(student_user)
        response = client.post('/api/articles', data={
            'title': 'Not a paper',
            'file': (io.BytesIO(b'\x89PNG'), 'figure.png'),
        }, content_type='multipart/form-data')
        assert response.status_code == 400
        assert fake_storage.objects == {}

    def test_multipart_with_invalid_title_stores_nothing(self, login, student_user, fake_storage):
        client = login(student_user)
        response = client.post('/api/articles', data={
            'title': 'Hi',
            'file': (io.BytesIO(b'%PDF-1.7 test'), 'study.pdf'),
        }, content_type='multipart/form-data')
        assert response.status_code == 400
        assert fake_storage.objects == {}

    def test_paginated_listing(self, login, student_user):
        for i in range(3):
            article_service.create_article(dict(ARTICLE, title=f'Paper number {i}'), uploader=student_user)
        client = login(student_user)
        body = client.get('/api/articles?page=1&limit=2').get_json()['data']
        assert body['total'] == 3
        assert len(body['articles']) == 2
        assert body['total_pages'] == 2

    def test_only_uploader_or_admin_can_edit(self, login, student_user, student_b, admin_user):
        created = article_service.create_article(ARTICLE, uploader=student_user)
        article_id = created.data['id']

        client = login(student_b)
        assert client.put(f'/api/articles/{article_id}', json={'doi': 'x'}).status_code == 403
        assert client.delete(f'/api/articles/{article_id}').status_code == 403

        client = login(admin_user)
        assert client.put(f'/api/articles/{article_id}', json={'doi': '10.1/abc'}).status_code == 200

    def test_uploader_deletes(self, login, student_user, fake_storage):
        created = article_service.create_article(ARTICLE, uploader=student_user)
        client = login(student_user)
        response = client.delete(f"/api/articles/{created.data['id']}")
        assert response.status_code == 200
        assert ('uploads', ARTICLE['file_path']) in fake_storage.removed
