"""
User Model

This module contains the User model: admins and students share one table,
distinguished by `role`. Students carry a NIM and a class group; every user
carries the billing fields (tier, token balance, monthly limit).
"""

from datetime import datetime
from .database import db
from .utils import generate_user_id, isoformat

ROLE_ADMIN = 'ADMIN'
ROLE_USER = 'USER'
ROLES = (ROLE_ADMIN, ROLE_USER)

# Mutable profile columns a client may set through create/update
PROFILE_FIELDS = (
    'name', 'email', 'role', 'nim', 'group', 'avatar_url', 'bio', 'phone',
    'university', 'faculty', 'major', 'semester'
)


class User(db.Model):
    """User model for authentication, profile and billing state"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(12), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(254), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(10), nullable=False, default=ROLE_USER)
    nim = db.Column(db.String(10), unique=True)
    group = db.Column('class_group', db.String(1))
    avatar_url = db.Column(db.String(512))
    bio = db.Column(db.Text)
    phone = db.Column(db.String(32))
    university = db.Column(db.String(120))
    faculty = db.Column(db.String(120))
    major = db.Column(db.String(120))
    semester = db.Column(db.Integer)

    # Billing
    tier = db.Column(db.String(20), nullable=False, default='basic')
    token_balance = db.Column(db.Integer, nullable=False, default=0)
    monthly_token_limit = db.Column(db.Integer, nullable=False, default=1000)

    status = db.Column(db.String(20), default='active')  # active, suspended
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    def __init__(self, name, email, password_hash, role=ROLE_USER, **profile):
        """Initialize a new user after validating the identifying fields"""
        # Import validators here to avoid circular imports
        from ..utils.validators import validate_email, validate_password_hash, validate_name

        name_validation = validate_name(name)
        if not name_validation.is_valid:
            raise ValueError(name_validation.error_message)

        email_validation = validate_email(email)
        if not email_validation.is_valid:
            raise ValueError(email_validation.error_message)

        hash_validation = validate_password_hash(password_hash)
        if not hash_validation.is_valid:
            raise ValueError(hash_validation.error_message)

        if role not in ROLES:
            raise ValueError(f"Role must be one of {', '.join(ROLES)}")

        self.name = name_validation.sanitized_value
        self.email = email_validation.sanitized_value
        self.password_hash = hash_validation.sanitized_value
        self.role = role
        self.user_id = generate_user_id()
        self.status = 'active'
        self.tier = 'basic'
        self.token_balance = 0
        self.monthly_token_limit = 1000

        for field, value in profile.items():
            if field in PROFILE_FIELDS and field not in ('name', 'email', 'role'):
                setattr(self, field, value)

    def is_active(self):
        """Check if user account is active"""
        return self.status == 'active'

    def is_admin(self):
        return self.role == ROLE_ADMIN

    def update_last_login(self):
        """Update the last login timestamp"""
        self.last_login = datetime.utcnow()
        db.session.commit()

    def summary_dict(self):
        """Compact representation embedded in related rows"""
        return {
            'id': self.user_id,
            'name': self.name,
            'email': self.email,
            'nim': self.nim,
            'group': self.group,
            'avatar_url': self.avatar_url,
        }

    def to_dict(self):
        return {
            'id': self.user_id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'nim': self.nim,
            'group': self.group,
            'avatar_url': self.avatar_url,
            'bio': self.bio,
            'phone': self.phone,
            'university': self.university,
            'faculty': self.faculty,
            'major': self.major,
            'semester': self.semester,
            'tier': self.tier,
            'token_balance': self.token_balance,
            'monthly_token_limit': self.monthly_token_limit,
            'status': self.status,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'last_login': isoformat(self.last_login),
        }
