"""
User Service

FLOW OVERVIEW
- list_users(role, group, search, page, limit)
  • Role/group filters accept only known values; search matches name, email or NIM.
- create_user(payload) / register_student(payload)
  • Validate → uniqueness (email, NIM) → bcrypt hash → insert.
- get_user / update_user / delete_user
  • Partial update re-hashes the password only when one is given; the last ADMIN
    can never be deleted.
- authenticate(identifier, password)
  • Identifier is either an email address or a NIM.
"""

import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..models import db, User
from ..models.user import ROLE_ADMIN, ROLE_USER, PROFILE_FIELDS
from ..utils.auth_utils import hash_password, verify_password
from ..utils.validators import (
    InputValidator, validate_email, validate_password, validate_name,
    validate_nim, validate_group, validate_role, sanitize_input
)
from . import (
    ServiceResult, paginate, page_payload,
    NOT_FOUND, VALIDATION_ERROR, DUPLICATE, LAST_ADMIN, DATABASE_ERROR
)

logger = logging.getLogger(__name__)

FREE_TEXT_FIELDS = ('bio', 'phone', 'university', 'faculty', 'major', 'avatar_url')


def find_user(user_id):
    """Look up a user by public id"""
    if not user_id:
        return None
    return User.query.filter_by(user_id=user_id).first()


def list_users(role=None, group=None, search=None, page=1, limit=10):
    """Filtered, newest-first page of users"""
    query = User.query

    # Unknown filter values are ignored rather than matching nothing
    if role and role.upper() in (ROLE_ADMIN, ROLE_USER):
        query = query.filter(User.role == role.upper())
    if group and group.upper() in InputValidator.GROUPS:
        query = query.filter(User.group == group.upper())
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.name.ilike(pattern),
            User.email.ilike(pattern),
            User.nim.ilike(pattern)
        ))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    rows, total = paginate(query, page, limit)
    return ServiceResult.ok(page_payload('users', [u.to_dict() for u in rows], total, page, limit))


def _clean_profile(payload, partial=False):
    """
    Validate the profile part of a payload.

    Returns (fields, error_message). With partial=True only the keys present
    in the payload are validated.
    """
    fields = {}

    if 'name' in payload or not partial:
        result = validate_name(payload.get('name'))
        if not result.is_valid:
            return None, result.error_message
        fields['name'] = result.sanitized_value

    if 'email' in payload or not partial:
        result = validate_email(payload.get('email'))
        if not result.is_valid:
            return None, result.error_message
        fields['email'] = result.sanitized_value

    if payload.get('role') is not None:
        result = validate_role(payload.get('role'))
        if not result.is_valid:
            return None, result.error_message
        fields['role'] = result.sanitized_value

    if 'nim' in payload:
        if payload.get('nim') in (None, ''):
            fields['nim'] = None
        else:
            result = validate_nim(payload.get('nim'))
            if not result.is_valid:
                return None, result.error_message
            fields['nim'] = result.sanitized_value

    if 'group' in payload:
        if payload.get('group') in (None, ''):
            fields['group'] = None
        else:
            result = validate_group(payload.get('group'))
            if not result.is_valid:
                return None, result.error_message
            fields['group'] = result.sanitized_value

    if payload.get('semester') not in (None, ''):
        try:
            semester = int(payload.get('semester'))
        except (TypeError, ValueError):
            return None, "Semester must be an integer"
        if not 1 <= semester <= 14:
            return None, "Semester must be between 1 and 14"
        fields['semester'] = semester

    for field in FREE_TEXT_FIELDS:
        if field in payload:
            fields[field] = sanitize_input(payload.get(field), max_length=2000) or None

    return fields, None


def _uniqueness_error(fields, exclude_id=None):
    if fields.get('email'):
        query = User.query.filter(User.email == fields['email'])
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        if query.first():
            return "Email is already registered"

    if fields.get('nim'):
        query = User.query.filter(User.nim == fields['nim'])
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        if query.first():
            return "NIM is already registered"

    return None


def create_user(payload):
    """Create a user from an admin payload"""
    missing = [f for f in ('name', 'email', 'password') if not payload.get(f)]
    if missing:
        return ServiceResult.fail(VALIDATION_ERROR, f"Missing required fields: {', '.join(missing)}")

    fields, error = _clean_profile(payload)
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    password_check = validate_password(payload.get('password'))
    if not password_check.is_valid:
        return ServiceResult.fail(VALIDATION_ERROR, password_check.error_message)

    duplicate = _uniqueness_error(fields)
    if duplicate:
        return ServiceResult.fail(DUPLICATE, duplicate)

    try:
        user = User(
            name=fields.pop('name'),
            email=fields.pop('email'),
            password_hash=hash_password(password_check.sanitized_value),
            role=fields.pop('role', ROLE_USER),
            **fields
        )
        db.session.add(user)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return ServiceResult.fail(VALIDATION_ERROR, str(e))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create user {payload.get('email')}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not create user")

    logger.info(f"Created {user.role} account {user.user_id}")
    return ServiceResult(True, data=user.to_dict(), message="User created", status_code=201)


def register_student(payload):
    """Self-service sign-up; always creates a USER"""
    payload = dict(payload)
    payload['role'] = ROLE_USER
    return create_user(payload)


def get_user(user_id):
    user = find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")
    return ServiceResult.ok(user.to_dict())


def update_user(user_id, payload):
    """Partial update of a user's profile, role or password"""
    user = find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    fields, error = _clean_profile(payload, partial=True)
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    duplicate = _uniqueness_error(fields, exclude_id=user.id)
    if duplicate:
        return ServiceResult.fail(DUPLICATE, duplicate)

    if fields.get('role') == ROLE_USER and user.is_admin() and _admin_count() <= 1:
        return ServiceResult.fail(LAST_ADMIN, "Cannot demote the last administrator")

    if payload.get('password'):
        password_check = validate_password(payload.get('password'))
        if not password_check.is_valid:
            return ServiceResult.fail(VALIDATION_ERROR, password_check.error_message)
        user.password_hash = hash_password(password_check.sanitized_value)

    for field, value in fields.items():
        if field in PROFILE_FIELDS:
            setattr(user, field, value)

    if 'status' in payload and payload['status'] in ('active', 'suspended'):
        user.status = payload['status']

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to update user {user_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not update user")

    return ServiceResult.ok(user.to_dict(), message="User updated")


def _admin_count():
    return User.query.filter_by(role=ROLE_ADMIN).count()


def delete_user(user_id):
    user = find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    if user.is_admin() and _admin_count() <= 1:
        return ServiceResult.fail(LAST_ADMIN, "Cannot delete the last administrator")

    try:
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to delete user {user_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not delete user")

    logger.info(f"Deleted account {user_id}")
    return ServiceResult.ok({'id': user_id}, message="User deleted")


def authenticate(identifier, password):
    """
    Authenticate with an email address or a NIM.

    Returns:
        The User, or None when the credentials do not match an active account
    """
    if not identifier or not password:
        return None

    identifier = identifier.strip()
    if '@' in identifier:
        user = User.query.filter_by(email=identifier.lower()).first()
    else:
        user = User.query.filter_by(nim=identifier).first()

    # Security: Only active users can authenticate
    if user and user.is_active() and verify_password(password, user.password_hash):
        return user

    return None


def user_counts():
    """Head counts for the admin dashboard"""
    return {
        'total': User.query.count(),
        'admins': User.query.filter_by(role=ROLE_ADMIN).count(),
        'students': User.query.filter_by(role=ROLE_USER).count(),
        'class_a': User.query.filter_by(role=ROLE_USER, group='A').count(),
        'class_b': User.query.filter_by(role=ROLE_USER, group='B').count(),
    }
