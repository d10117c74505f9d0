"""
Analytics Event Model

One row per tracked learning action (node click, chat query, draft save, ...).
Aggregations over these rows produce the learning analytics.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, JSON
from .database import db
from .utils import isoformat


class AnalyticsEvent(db.Model):
    """A single tracked user action."""

    __tablename__ = 'analytics_events'

    id = Column(Integer, primary_key=True)
    action = Column(String(64), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=True)
    document = Column(String(255), nullable=True)
    meta = Column('metadata', JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', backref=db.backref('analytics_events', lazy=True, cascade='all, delete-orphan'))

    __table_args__ = (
        Index('idx_analytics_events_user_time', 'user_id', 'timestamp'),
    )

    def __repr__(self):
        return f'<AnalyticsEvent {self.action} at {self.timestamp}>'

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'user_id': self.user.user_id if self.user else None,
            'document': self.document,
            'metadata': self.meta or {},
            'timestamp': isoformat(self.timestamp),
        }
