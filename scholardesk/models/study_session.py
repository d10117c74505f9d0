"""
Study Session Models

Brainstorming sessions (mind-map workspaces over a set of articles) and
writer sessions (drafting workspaces). Both are ordered by `last_activity`.
"""

from datetime import datetime
from .database import db
from .utils import isoformat

DEFAULT_COVER_COLOR = '#4c6ef5'


class BrainstormingSession(db.Model):
    """A user's brainstorming workspace"""
    __tablename__ = 'brainstorming_sessions'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    selected_filter_articles = db.Column(db.JSON, nullable=False, default=list)
    last_selected_node_id = db.Column(db.String(64))
    last_selected_edge_id = db.Column(db.String(64))
    graph_filters = db.Column(db.JSON)
    cover_color = db.Column(db.String(16), default=DEFAULT_COVER_COLOR, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_activity = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship('User', backref=db.backref('brainstorming_sessions', lazy=True,
                                                      cascade='all, delete-orphan'))

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'user_id': self.user.user_id if self.user else None,
            'selected_filter_articles': list(self.selected_filter_articles or []),
            'last_selected_node_id': self.last_selected_node_id,
            'last_selected_edge_id': self.last_selected_edge_id,
            'graph_filters': self.graph_filters,
            'cover_color': self.cover_color,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'last_activity': isoformat(self.last_activity),
            'user': self.user.summary_dict() if self.user else None,
        }


class WriterSession(db.Model):
    """A user's drafting workspace"""
    __tablename__ = 'writer_sessions'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    cover_color = db.Column(db.String(16), default=DEFAULT_COVER_COLOR, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_activity = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship('User', backref=db.backref('writer_sessions', lazy=True,
                                                      cascade='all, delete-orphan'))

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'user_id': self.user.user_id if self.user else None,
            'cover_color': self.cover_color,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'last_activity': isoformat(self.last_activity),
            'user': self.user.summary_dict() if self.user else None,
        }
