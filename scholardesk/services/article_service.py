"""
Article Service

FLOW OVERVIEW
- list_articles(user_id, search, year, author, page, limit)
  • search matches title / abstract / keywords; author is a substring match; newest first.
- create_article(payload, uploader, file=None)
  • Title and file_path are required; an uploaded document is stored in the `uploads`
    bucket once the fields validate, and its path becomes file_path.
- get_article / update_article / delete_article
  • Deleting removes the stored file too; storage failures only log a warning.
"""

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..models import db, Article, User
from ..models.article import ARTICLE_FIELDS
from ..utils.validators import InputValidator, sanitize_input
from . import ServiceResult, paginate, page_payload, NOT_FOUND, VALIDATION_ERROR, DATABASE_ERROR
from . import storage_service

logger = logging.getLogger(__name__)

ARTICLE_BUCKET = 'uploads'


def list_articles(user_id=None, search=None, year=None, author=None, page=1, limit=10):
    query = Article.query

    if user_id:
        query = query.join(User, Article.user_id == User.id).filter(User.user_id == user_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Article.title.ilike(pattern),
            Article.abstract.ilike(pattern),
            Article.keywords.ilike(pattern)
        ))
    if year:
        try:
            query = query.filter(Article.year == int(year))
        except (TypeError, ValueError):
            return ServiceResult.fail(VALIDATION_ERROR, "Year must be an integer")
    if author:
        query = query.filter(Article.author.ilike(f"%{author.strip()}%"))

    query = query.order_by(Article.created_at.desc(), Article.id.desc())
    rows, total = paginate(query, page, limit)
    return ServiceResult.ok(page_payload('articles', [a.to_dict() for a in rows], total, page, limit))


def _clean_fields(payload, partial=False):
    fields = {}

    if 'title' in payload or not partial:
        result = InputValidator.validate_article_title(payload.get('title'))
        if not result.is_valid:
            return None, result.error_message
        fields['title'] = result.sanitized_value

    if 'file_path' in payload or not partial:
        file_path = sanitize_input(payload.get('file_path'), max_length=512)
        if not file_path:
            return None, "file_path is required"
        fields['file_path'] = file_path

    if payload.get('year') not in (None, ''):
        result = InputValidator.validate_year(payload.get('year'))
        if not result.is_valid:
            return None, result.error_message
        fields['year'] = result.sanitized_value
    elif 'year' in payload:
        fields['year'] = None

    for field in ('abstract', 'author', 'doi', 'keywords'):
        if field in payload:
            fields[field] = sanitize_input(payload.get(field), max_length=10000) or None

    if 'session_id' in payload:
        fields['session_id'] = payload.get('session_id') or None

    return fields, None


def create_article(payload, uploader=None, file=None):
    """
    Create an article, optionally uploading its document first.

    Args:
        payload: article fields
        uploader: the User adding the article
        file: optional werkzeug FileStorage (PDF/DOC/DOCX)
    """
    payload = dict(payload or {})

    if file is not None:
        type_check = InputValidator.validate_document_filename(file.filename)
        if not type_check.is_valid:
            return ServiceResult.fail(VALIDATION_ERROR, type_check.error_message)
        payload['file_path'] = file.filename

    fields, error = _clean_fields(payload)
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    stored_path = None
    if file is not None:
        upload = storage_service.upload_file(file, ARTICLE_BUCKET)
        if not upload.success:
            return upload
        stored_path = upload.data['path']
        fields['file_path'] = stored_path

    article = Article(**fields)
    if uploader is not None:
        article.user_id = uploader.id

    try:
        db.session.add(article)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create article '{fields.get('title')}': {e}")
        if stored_path:
            storage_service.delete_file(ARTICLE_BUCKET, stored_path)
        return ServiceResult.fail(DATABASE_ERROR, "Could not create article")

    logger.info(f"Article {article.id} created")
    return ServiceResult(True, data=article.to_dict(), message="Article created", status_code=201)


def get_article(article_id):
    article = db.session.get(Article, article_id)
    if not article:
        return ServiceResult.fail(NOT_FOUND, "Article not found")
    return ServiceResult.ok(article.to_dict())


def update_article(article_id, payload):
    article = db.session.get(Article, article_id)
    if not article:
        return ServiceResult.fail(NOT_FOUND, "Article not found")

    fields, error = _clean_fields(payload or {}, partial=True)
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    for field, value in fields.items():
        if field in ARTICLE_FIELDS:
            setattr(article, field, value)
    article.updated_at = datetime.utcnow()

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to update article {article_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not update article")

    return ServiceResult.ok(article.to_dict(), message="Article updated")


def delete_article(article_id):
    article = db.session.get(Article, article_id)
    if not article:
        return ServiceResult.fail(NOT_FOUND, "Article not found")

    file_path = article.file_path
    try:
        db.session.delete(article)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to delete article {article_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not delete article")

    if file_path:
        removed = storage_service.delete_file(ARTICLE_BUCKET, file_path)
        if not removed.success:
            logger.warning(f"Article {article_id} deleted but its file was kept: {removed.message}")

    return ServiceResult.ok({'id': article_id}, message="Article deleted")


def article_count():
    return Article.query.count()
