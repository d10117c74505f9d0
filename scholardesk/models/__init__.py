"""
Database Models Package

FLOW OVERVIEW
- Centralizes SQLAlchemy DB instance and model imports for convenient usage.
- Exposes: db, User, Article, Assignment, AssignmentSubmission, BrainstormingSession,
  WriterSession, SubscriptionPlan, TokenUsage, BillingHistory, AnalyticsEvent.
"""

from .database import db
from .user import User
from .study_session import BrainstormingSession, WriterSession
from .article import Article
from .assignment import Assignment, AssignmentSubmission
from .billing import SubscriptionPlan, TokenUsage, BillingHistory
from .analytics_event import AnalyticsEvent

__all__ = [
    'db',
    'User',
    'Article',
    'Assignment',
    'AssignmentSubmission',
    'BrainstormingSession',
    'WriterSession',
    'SubscriptionPlan',
    'TokenUsage',
    'BillingHistory',
    'AnalyticsEvent'
]
