"""
Billing Models

FLOW OVERVIEW
- SubscriptionPlan: tier catalog (limit, per-token price, monthly fee). Seeded from plans.json.
- TokenUsage: one row per billed AI action; cost is frozen at the tier price in effect.
- BillingHistory: one row per user per calendar month, written by the monthly rollup.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Text, ForeignKey, Index, JSON
from .database import db
from .utils import isoformat

PAYMENT_PENDING = 'pending'
PAYMENT_PAID = 'paid'
PAYMENT_OVERDUE = 'overdue'
PAYMENT_CANCELLED = 'cancelled'
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_OVERDUE, PAYMENT_CANCELLED)


class SubscriptionPlan(db.Model):
    """A billing tier."""

    __tablename__ = 'subscription_plans'

    id = Column(Integer, primary_key=True)
    name = Column(String(20), unique=True, nullable=False)
    display_name = Column(String(64), nullable=False)
    monthly_token_limit = Column(Integer, nullable=False)
    cost_per_token = Column(Float, nullable=False)
    monthly_fee = Column(Float, nullable=False, default=0.0)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<SubscriptionPlan {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'display_name': self.display_name,
            'monthly_token_limit': self.monthly_token_limit,
            'cost_per_token': self.cost_per_token,
            'monthly_fee': self.monthly_fee,
            'features': list(self.features or []),
            'is_active': self.is_active,
        }


class TokenUsage(db.Model):
    """Tokens consumed by one AI action."""

    __tablename__ = 'token_usage'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    action = Column(String(64), nullable=False)
    tokens_used = Column(Integer, nullable=False)
    cost_per_token = Column(Float, nullable=False)
    total_cost = Column(Float, nullable=False)
    context = Column(Text, nullable=True)
    # `metadata` is reserved on declarative classes
    meta = Column('metadata', JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', backref=db.backref('token_usage', lazy=True, cascade='all, delete-orphan'))

    __table_args__ = (
        Index('idx_token_usage_user_time', 'user_id', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user.user_id if self.user else None,
            'action': self.action,
            'tokens_used': self.tokens_used,
            'cost_per_token': self.cost_per_token,
            'total_cost': self.total_cost,
            'context': self.context,
            'metadata': self.meta,
            'created_at': isoformat(self.created_at),
        }


class BillingHistory(db.Model):
    """Monthly invoice for a user."""

    __tablename__ = 'billing_history'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    billing_period = Column(Date, nullable=False)
    tokens_used = Column(Integer, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0.0)
    tier = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PAYMENT_PENDING)
    payment_date = Column(DateTime, nullable=True)
    invoice_number = Column(String(64), unique=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', backref=db.backref('billing_history', lazy=True, cascade='all, delete-orphan'))

    __table_args__ = (
        db.UniqueConstraint('user_id', 'billing_period', name='unique_user_billing_period'),
        Index('idx_billing_history_period', 'billing_period'),
    )

    def is_paid(self):
        return self.payment_status == PAYMENT_PAID

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user.user_id if self.user else None,
            'billing_period': isoformat(self.billing_period),
            'tokens_used': self.tokens_used,
            'total_cost': self.total_cost,
            'tier': self.tier,
            'payment_status': self.payment_status,
            'payment_date': isoformat(self.payment_date),
            'invoice_number': self.invoice_number,
            'created_at': isoformat(self.created_at),
        }
