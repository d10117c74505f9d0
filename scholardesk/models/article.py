"""
Article Model

Research articles in the repository. The PDF/DOC itself lives in object
storage; the row keeps its storage path.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from .database import db
from .utils import isoformat

ARTICLE_FIELDS = ('title', 'file_path', 'abstract', 'author', 'doi', 'keywords', 'year', 'session_id')


class Article(db.Model):
    """A research article uploaded by a user."""

    __tablename__ = 'articles'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    abstract = Column(Text, nullable=True)
    author = Column(String(255), nullable=True)
    doi = Column(String(255), nullable=True)
    keywords = Column(Text, nullable=True)
    year = Column(Integer, nullable=True)

    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    session_id = Column(Integer, ForeignKey('brainstorming_sessions.id', ondelete='SET NULL'), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('articles', lazy=True))

    __table_args__ = (
        Index('idx_articles_created', 'created_at'),
    )

    def to_dict(self, include_user=True):
        data = {
            'id': self.id,
            'title': self.title,
            'file_path': self.file_path,
            'abstract': self.abstract,
            'author': self.author,
            'doi': self.doi,
            'keywords': self.keywords,
            'year': self.year,
            'user_id': self.user.user_id if self.user else None,
            'session_id': self.session_id,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_user:
            data['user'] = self.user.summary_dict() if self.user else None
        return data
