"""
Routes Package

This package contains all Flask route blueprints.
"""

from .auth import auth_bp
from .main import main_bp
from .users import users_bp
from .articles import articles_bp
from .assignments import assignments_bp
from .billing import billing_bp
from .analytics import analytics_bp
from .sessions import brainstorming_bp, writer_bp

__all__ = [
    'auth_bp',
    'main_bp',
    'users_bp',
    'articles_bp',
    'assignments_bp',
    'billing_bp',
    'analytics_bp',
    'brainstorming_bp',
    'writer_bp'
]
