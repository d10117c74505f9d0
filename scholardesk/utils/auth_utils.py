"""
Authentication Utilities

FLOW OVERVIEW
- hash_password / verify_password: bcrypt with BCRYPT_LOG_ROUNDS work factor.
- generate_jwt_token / verify_jwt_token: PyJWT HS256 bearer tokens signed with JWT_SECRET_KEY.
- get_current_user(): resolve the caller from the Flask session or an Authorization: Bearer header.
- login_required / admin_required: route decorators answering 401 / 403 JSON.
"""

import logging
from datetime import datetime, timedelta
from functools import wraps

import bcrypt
import jwt
from flask import current_app, jsonify, request, session

from ..models import User

logger = logging.getLogger(__name__)

_CURRENT_USER_KEY = 'scholardesk.current_user'


def hash_password(password):
    """Hash a password using bcrypt"""
    rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 12)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password, password_hash):
    """Verify a password against its hash"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_jwt_token(user_id, expires_in=None):
    """Generate a JWT token for user authentication"""
    if expires_in is None:
        expires_in = current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES', 3600)
    payload = {
        'user_id': user_id,
        'exp': datetime.utcnow() + timedelta(seconds=expires_in),
        'iat': datetime.utcnow()
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def verify_jwt_token(token):
    """Verify and decode a JWT token"""
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])
        return payload
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired bearer token")
        return None
    except jwt.InvalidTokenError:
        return None


def _bearer_user_id():
    auth_header = (request.headers.get('Authorization') or '').strip()
    if not auth_header.lower().startswith('bearer '):
        return None
    payload = verify_jwt_token(auth_header.split(' ', 1)[1].strip())
    return payload.get('user_id') if payload else None


def get_current_user():
    """Return the signed-in User for this request, or None"""
    # Cached on the request, not on g: an app context can outlive a request
    if _CURRENT_USER_KEY in request.environ:
        return request.environ[_CURRENT_USER_KEY]

    user_id = session.get('user_id') or _bearer_user_id()
    user = None
    if user_id:
        user = User.query.filter_by(user_id=user_id).first()
        if user and not user.is_active():
            user = None

    request.environ[_CURRENT_USER_KEY] = user
    return user


def login_required(f):
    """Decorator to require user login"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_current_user() is None:
            return jsonify({
                'success': False,
                'error_code': 'UNAUTHORIZED',
                'message': 'Unauthorized. Please log in.'
            }), 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require an ADMIN account"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if user is None:
            return jsonify({
                'success': False,
                'error_code': 'UNAUTHORIZED',
                'message': 'Unauthorized. Please log in.'
            }), 401
        if not user.is_admin():
            return jsonify({
                'success': False,
                'error_code': 'FORBIDDEN',
                'message': 'Administrator access required.'
            }), 403
        return f(*args, **kwargs)
    return decorated_function
