"""
Storage Service

FLOW OVERVIEW
- get_storage_client(): lazily build the hosted storage client from SUPABASE_URL /
  SUPABASE_SERVICE_KEY and cache it for the process.
- upload_file(file, bucket, folder): size + bucket checks → unique object name →
  upload → public URL.
- delete_file(bucket, path) / get_file_url(bucket, path).

Every operation returns a ServiceResult; storage failures surface as STORAGE_ERROR.
"""

import logging
import os

from flask import current_app

from ..models.utils import generate_storage_name
from . import ServiceResult, VALIDATION_ERROR, STORAGE_ERROR

logger = logging.getLogger(__name__)

BUCKETS = ('assignments', 'submissions', 'avatars', 'documents', 'uploads')

_storage_client = None


def get_storage_client():
    """Get or create the storage client."""
    global _storage_client
    if _storage_client is None:
        from supabase import create_client
        url = current_app.config.get('SUPABASE_URL') or os.getenv('SUPABASE_URL')
        key = current_app.config.get('SUPABASE_SERVICE_KEY') or os.getenv('SUPABASE_SERVICE_KEY')
        if not url or not key:
            raise RuntimeError("Storage credentials not configured")
        _storage_client = create_client(url, key)
    return _storage_client


def reset_storage_client():
    global _storage_client
    _storage_client = None


def _read_upload(file):
    """Return (filename, bytes, content_type) from a werkzeug FileStorage or a tuple"""
    if file is None:
        return None, None, None
    if isinstance(file, tuple):
        filename, content, content_type = (list(file) + [None])[:3]
        return filename, content, content_type
    return file.filename, file.read(), getattr(file, 'mimetype', None)


def upload_file(file, bucket, folder=None):
    """
    Upload a file to a storage bucket.

    Args:
        file: werkzeug FileStorage, or a (filename, bytes, content_type) tuple
        bucket: one of BUCKETS
        folder: optional prefix inside the bucket

    Returns:
        ServiceResult with {'url', 'path', 'file_name', 'size'}
    """
    if bucket not in BUCKETS:
        return ServiceResult.fail(VALIDATION_ERROR, f"Unknown storage bucket: {bucket}")

    filename, content, content_type = _read_upload(file)
    if not filename or content is None:
        return ServiceResult.fail(VALIDATION_ERROR, "No file provided")

    max_bytes = current_app.config.get('MAX_UPLOAD_BYTES', 10 * 1024 * 1024)
    if len(content) > max_bytes:
        return ServiceResult.fail(
            VALIDATION_ERROR,
            f"File exceeds the maximum size of {max_bytes // (1024 * 1024)}MB",
            status_code=413
        )

    object_name = generate_storage_name(filename)
    path = f"{folder.strip('/')}/{object_name}" if folder else object_name

    try:
        bucket_api = get_storage_client().storage.from_(bucket)
        bucket_api.upload(path, content, {
            'content-type': content_type or 'application/octet-stream',
            'cache-control': '3600',
        })
        url = bucket_api.get_public_url(path)
    except Exception as e:
        logger.error(f"Upload to {bucket}/{path} failed: {e}")
        return ServiceResult.fail(STORAGE_ERROR, f"Upload failed: {e}")

    logger.info(f"Uploaded {filename} to {bucket}/{path} ({len(content)} bytes)")
    return ServiceResult.ok({
        'url': url,
        'path': path,
        'file_name': filename,
        'size': len(content),
    })


def delete_file(bucket, path):
    """Remove an object from a bucket."""
    if bucket not in BUCKETS:
        return ServiceResult.fail(VALIDATION_ERROR, f"Unknown storage bucket: {bucket}")
    if not path:
        return ServiceResult.fail(VALIDATION_ERROR, "No file path provided")

    try:
        get_storage_client().storage.from_(bucket).remove([path])
    except Exception as e:
        logger.error(f"Delete of {bucket}/{path} failed: {e}")
        return ServiceResult.fail(STORAGE_ERROR, f"Delete failed: {e}")

    return ServiceResult.ok({'path': path})


def get_file_url(bucket, path):
    """Public URL of a stored object."""
    if bucket not in BUCKETS:
        return ServiceResult.fail(VALIDATION_ERROR, f"Unknown storage bucket: {bucket}")

    try:
        url = get_storage_client().storage.from_(bucket).get_public_url(path)
    except Exception as e:
        logger.error(f"Could not resolve URL for {bucket}/{path}: {e}")
        return ServiceResult.fail(STORAGE_ERROR, f"Could not resolve file URL: {e}")

    return ServiceResult.ok({'url': url, 'path': path})
