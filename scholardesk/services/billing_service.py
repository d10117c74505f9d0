"""
Billing Service

FLOW OVERVIEW
- record_token_usage(user_id, action, tokens_used, context, metadata, text)
  • Resolve user → price at the tier's cost_per_token → guarded balance decrement +
    usage row committed together → metrics.
- get_monthly_usage(user_id, month): totals and per-action breakdown for a calendar month.
- get_all_users_billing(): per-student usage, invoices, recent rows, 30-day trend, tier advice.
- get_billing_stats(): revenue, spenders, tier split and month-over-month growth.
- top_up_tokens / update_user_tier / simulate_usage.
- close_billing_period(month): monthly rollup into BillingHistory (idempotent).
- mark_invoice_paid / list_plans / seed_plans.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..models import db, User, SubscriptionPlan, TokenUsage, BillingHistory
from ..models.billing import PAYMENT_PAID, PAYMENT_PENDING
from ..models.user import ROLE_USER
from ..models.utils import generate_invoice_number, generate_transaction_id
from ..utils.prom_metrics import observe_token_usage, observe_token_rejection
from ..utils.token_utils import count_tokens, estimate_cost, load_plan_catalog
from ..utils.validators import sanitize_input
from . import ServiceResult, NOT_FOUND, VALIDATION_ERROR, INSUFFICIENT_BALANCE, DATABASE_ERROR

logger = logging.getLogger(__name__)

TIERS = ('basic', 'pro', 'enterprise')
UPGRADE_THRESHOLD = 80
DOWNGRADE_THRESHOLD = 20
PRO_MONTHLY_FEE = 29.99
HISTORY_ROWS = 12
RECENT_USAGE_ROWS = 20
TREND_DAYS = 30
TOP_SPENDERS = 10


def month_start(month=None):
    """First day of a month given 'YYYY-MM', a date, or None for the current month"""
    if month is None:
        today = datetime.utcnow().date()
        return date(today.year, today.month, 1)
    if isinstance(month, (date, datetime)):
        return date(month.year, month.month, 1)
    try:
        parsed = datetime.strptime(str(month).strip(), '%Y-%m')
    except ValueError:
        raise ValueError("Month must be formatted as YYYY-MM")
    return date(parsed.year, parsed.month, 1)


def next_month_start(start):
    if start.month == 12:
        return date(start.year + 1, 1, 1)
    return date(start.year, start.month + 1, 1)


def previous_month_start(start):
    if start.month == 1:
        return date(start.year - 1, 12, 1)
    return date(start.year, start.month - 1, 1)


def _month_window(start):
    end = next_month_start(start)
    return datetime(start.year, start.month, 1), datetime(end.year, end.month, 1)


def get_cost_per_token(tier):
    plan = SubscriptionPlan.query.filter_by(name=tier, is_active=True).first()
    if plan:
        return plan.cost_per_token
    return current_app.config.get('DEFAULT_COST_PER_TOKEN', 0.000002)


def _find_user(user_id):
    return User.query.filter_by(user_id=user_id).first() if user_id else None


def _parse_tokens(tokens):
    if isinstance(tokens, bool):
        return None
    try:
        tokens = int(tokens)
    except (TypeError, ValueError):
        return None
    return tokens if tokens > 0 else None


def record_token_usage(user_id, action, tokens_used=None, context=None, metadata=None, text=None):
    """
    Bill an AI action against a user's token balance.

    Args:
        user_id: public user id
        action: what consumed the tokens (chat_query, ai_assistance, ...)
        tokens_used: token count; counted from `text` with tiktoken when omitted
        context / metadata: free-form details stored with the usage row

    Returns:
        ServiceResult with the usage row and remaining balance
    """
    user = _find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    action = sanitize_input(action, max_length=64)
    if not action:
        return ServiceResult.fail(VALIDATION_ERROR, "Action is required")

    if tokens_used is None and text:
        tokens_used = count_tokens(text)
    tokens = _parse_tokens(tokens_used)
    if tokens is None:
        return ServiceResult.fail(VALIDATION_ERROR, "tokens_used must be a positive integer")

    if user.token_balance < tokens:
        observe_token_rejection('insufficient_balance')
        return ServiceResult.fail(
            INSUFFICIENT_BALANCE,
            f"Insufficient token balance: {tokens} required, {user.token_balance} available"
        )

    cost_per_token = get_cost_per_token(user.tier)
    total_cost = estimate_cost(tokens, cost_per_token)

    try:
        # Guarded decrement: a concurrent request may have spent the balance already
        updated = (User.query
                   .filter(User.id == user.id, User.token_balance >= tokens)
                   .update({User.token_balance: User.token_balance - tokens}, synchronize_session=False))
        if not updated:
            db.session.rollback()
            observe_token_rejection('insufficient_balance')
            return ServiceResult.fail(INSUFFICIENT_BALANCE, "Insufficient token balance")

        usage = TokenUsage(
            user_id=user.id,
            action=action,
            tokens_used=tokens,
            cost_per_token=cost_per_token,
            total_cost=total_cost,
            context=sanitize_input(context, max_length=5000) or None,
            meta=metadata
        )
        db.session.add(usage)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to record token usage for {user_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not record token usage")

    db.session.refresh(user)
    observe_token_usage(action, user.tier, tokens, total_cost)
    logger.info(f"Billed {tokens} tokens ({action}) to {user_id}; balance {user.token_balance}")

    return ServiceResult(True, data={
        'usage': usage.to_dict(),
        'remaining_balance': user.token_balance,
    }, message="Token usage recorded", status_code=201)


def _usage_summary(rows):
    summary = {'total_tokens': 0, 'total_cost': 0.0, 'usage_by_action': {}}
    for row in rows:
        summary['total_tokens'] += row.tokens_used
        summary['total_cost'] += row.total_cost
        bucket = summary['usage_by_action'].setdefault(row.action, {'tokens': 0, 'cost': 0.0, 'count': 0})
        bucket['tokens'] += row.tokens_used
        bucket['cost'] += row.total_cost
        bucket['count'] += 1
    summary['total_cost'] = round(summary['total_cost'], 6)
    for bucket in summary['usage_by_action'].values():
        bucket['cost'] = round(bucket['cost'], 6)
    return summary


def _monthly_summary(user, start):
    window_start, window_end = _month_window(start)
    rows = TokenUsage.query.filter(
        TokenUsage.user_id == user.id,
        TokenUsage.created_at >= window_start,
        TokenUsage.created_at < window_end
    ).all()
    return _usage_summary(rows)


def get_monthly_usage(user_id, month=None):
    user = _find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    try:
        start = month_start(month)
    except ValueError as e:
        return ServiceResult.fail(VALIDATION_ERROR, str(e))

    summary = _monthly_summary(user, start)
    summary['month'] = start.strftime('%Y-%m')
    return ServiceResult.ok(summary)


def _daily_trend(user, days=TREND_DAYS):
    since = datetime.utcnow() - timedelta(days=days)
    rows = (TokenUsage.query
            .filter(TokenUsage.user_id == user.id, TokenUsage.created_at >= since)
            .order_by(TokenUsage.created_at.asc())
            .all())

    daily = OrderedDict()
    for row in rows:
        key = row.created_at.date().isoformat()
        entry = daily.setdefault(key, {'date': key, 'tokens': 0, 'cost': 0.0})
        entry['tokens'] += row.tokens_used
        entry['cost'] = round(entry['cost'] + row.total_cost, 6)
    return sorted(daily.values(), key=lambda entry: entry['date'])


def generate_tier_recommendation(user, usage):
    """Suggest a tier change from this month's usage, or None"""
    if usage is None:
        return None

    limit = user.monthly_token_limit or 1000
    usage_percent = (usage['total_tokens'] / limit) * 100

    if user.tier == 'basic' and usage_percent > UPGRADE_THRESHOLD:
        return {
            'recommended_tier': 'pro',
            'potential_savings': 0,
            'reason': 'You are using 80%+ of your token limit. Upgrade to Pro for more tokens and lower cost per token.',
        }

    if user.tier == 'pro' and usage_percent < DOWNGRADE_THRESHOLD:
        return {
            'recommended_tier': 'basic',
            'potential_savings': PRO_MONTHLY_FEE,
            'reason': 'You are using less than 20% of your token limit. Downgrade to Basic to save money.',
        }

    return None


def user_billing_analytics(user, start=None):
    start = start or month_start()
    usage = _monthly_summary(user, start)

    history = (BillingHistory.query
               .filter_by(user_id=user.id)
               .order_by(BillingHistory.billing_period.desc())
               .limit(HISTORY_ROWS)
               .all())
    recent = (TokenUsage.query
              .filter_by(user_id=user.id)
              .order_by(TokenUsage.created_at.desc(), TokenUsage.id.desc())
              .limit(RECENT_USAGE_ROWS)
              .all())

    return {
        'user': user.to_dict(),
        'current_month_usage': usage,
        'billing_history': [row.to_dict() for row in history],
        'recent_token_usage': [row.to_dict() for row in recent],
        'usage_trend': _daily_trend(user),
        'tier_recommendation': generate_tier_recommendation(user, usage),
    }


def get_user_billing(user_id):
    user = _find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")
    return ServiceResult.ok(user_billing_analytics(user))


def get_all_users_billing():
    users = (User.query
             .filter_by(role=ROLE_USER)
             .order_by(User.created_at.desc(), User.id.desc())
             .all())
    start = month_start()
    return ServiceResult.ok([user_billing_analytics(user, start) for user in users])


def _paid_revenue(period=None):
    query = db.session.query(func.coalesce(func.sum(BillingHistory.total_cost), 0.0)).filter(
        BillingHistory.payment_status == PAYMENT_PAID
    )
    if period is not None:
        query = query.filter(BillingHistory.billing_period == period)
    return round(float(query.scalar() or 0.0), 2)


def get_billing_stats():
    start = month_start()
    previous = previous_month_start(start)

    total_users = User.query.filter_by(role=ROLE_USER).count()
    total_revenue = _paid_revenue()
    monthly_revenue = _paid_revenue(start)
    previous_revenue = _paid_revenue(previous)

    revenue_by_tier = {tier: 0.0 for tier in TIERS}
    paid_this_month = BillingHistory.query.filter_by(billing_period=start, payment_status=PAYMENT_PAID).all()
    for row in paid_this_month:
        revenue_by_tier[row.tier] = round(revenue_by_tier.get(row.tier, 0.0) + row.total_cost, 2)

    users = User.query.filter_by(role=ROLE_USER).all()
    monthly = [(user, _monthly_summary(user, start)) for user in users]
    top_spenders = sorted(monthly, key=lambda pair: pair[1]['total_cost'], reverse=True)[:TOP_SPENDERS]
    average_tokens = (sum(summary['total_tokens'] for _, summary in monthly) / len(monthly)) if monthly else 0

    if previous_revenue > 0:
        growth_rate = round((monthly_revenue - previous_revenue) / previous_revenue * 100, 2)
    else:
        growth_rate = 0.0

    return ServiceResult.ok({
        'total_users': total_users,
        'total_revenue': total_revenue,
        'monthly_revenue': monthly_revenue,
        'average_tokens_per_user': round(average_tokens, 2),
        'top_spending_users': [
            {
                'user': user.summary_dict(),
                'monthly_cost': summary['total_cost'],
                'tokens_used': summary['total_tokens'],
            }
            for user, summary in top_spenders
        ],
        'revenue_by_tier': revenue_by_tier,
        'usage_growth': {
            'current_month': monthly_revenue,
            'previous_month': previous_revenue,
            'growth_rate': growth_rate,
        },
    })


def top_up_tokens(user_id, amount):
    user = _find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    tokens = _parse_tokens(amount)
    if tokens is None:
        return ServiceResult.fail(VALIDATION_ERROR, "Amount must be a positive integer")

    user.token_balance = User.token_balance + tokens
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to top up {user_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not top up tokens")

    db.session.refresh(user)
    transaction_id = generate_transaction_id()
    logger.info(f"Topped up {tokens} tokens for {user_id} ({transaction_id})")
    return ServiceResult.ok({
        'user_id': user.user_id,
        'amount': tokens,
        'new_balance': user.token_balance,
        'transaction_id': transaction_id,
    }, message="Tokens added")


def update_user_tier(user_id, tier):
    user = _find_user(user_id)
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    plan = SubscriptionPlan.query.filter_by(name=(tier or '').strip().lower(), is_active=True).first()
    if not plan:
        return ServiceResult.fail(VALIDATION_ERROR, f"Unknown or inactive tier: {tier}")

    user.tier = plan.name
    user.monthly_token_limit = plan.monthly_token_limit
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to change tier for {user_id}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not update tier")

    logger.info(f"{user_id} moved to tier {plan.name}")
    return ServiceResult.ok(user.to_dict(), message="Tier updated")


def simulate_usage(email, action, tokens_used, context=None):
    """Price a hypothetical action for a real user without writing anything"""
    if not email or not action or not tokens_used:
        return ServiceResult.fail(VALIDATION_ERROR, "Missing required fields: email, action, tokens_used")

    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    tokens = _parse_tokens(tokens_used)
    if tokens is None:
        return ServiceResult.fail(VALIDATION_ERROR, "tokens_used must be a positive integer")

    if user.token_balance < tokens:
        return ServiceResult.fail(
            INSUFFICIENT_BALANCE,
            f"Insufficient token balance: {tokens} required, {user.token_balance} available"
        )

    cost_per_token = get_cost_per_token(user.tier)
    total_cost = estimate_cost(tokens, cost_per_token)
    return ServiceResult.ok({
        'user': user.summary_dict(),
        'usage_record': {
            'action': action,
            'tokens_used': tokens,
            'cost_per_token': cost_per_token,
            'total_cost': total_cost,
            'context': context,
        },
        'remaining_balance': user.token_balance - tokens,
        'cost_breakdown': {
            'tokens_used': tokens,
            'cost_per_token': cost_per_token,
            'total_cost': total_cost,
            'tier': user.tier,
        },
    }, message="Token usage simulated")


def close_billing_period(month=None):
    """
    Write one pending invoice per user with usage in the month.

    Users that already have an invoice for the period are skipped, so the
    rollup can be re-run safely.
    """
    try:
        start = month_start(month)
    except ValueError as e:
        return ServiceResult.fail(VALIDATION_ERROR, str(e))

    window_start, window_end = _month_window(start)
    totals = (db.session.query(
                  TokenUsage.user_id,
                  func.sum(TokenUsage.tokens_used),
                  func.sum(TokenUsage.total_cost))
              .filter(TokenUsage.created_at >= window_start, TokenUsage.created_at < window_end)
              .group_by(TokenUsage.user_id)
              .all())

    existing = {row.user_id for row in BillingHistory.query.filter_by(billing_period=start).all()}
    created, skipped = [], 0
    for user_pk, tokens, cost in totals:
        if user_pk in existing:
            skipped += 1
            continue
        user = db.session.get(User, user_pk)
        if user is None:
            continue
        invoice = BillingHistory(
            user_id=user.id,
            billing_period=start,
            tokens_used=int(tokens or 0),
            total_cost=round(float(cost or 0.0), 6),
            tier=user.tier,
            payment_status=PAYMENT_PENDING,
            invoice_number=generate_invoice_number(start, user.user_id)
        )
        db.session.add(invoice)
        created.append(invoice)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Billing rollup for {start:%Y-%m} failed: {e}")
        return ServiceResult.fail(DATABASE_ERROR, "Could not close billing period")

    logger.info(f"Billing rollup {start:%Y-%m}: {len(created)} invoices created, {skipped} already present")
    return ServiceResult.ok({
        'billing_period': start.isoformat(),
        'invoices_created': len(created),
        'invoices_skipped': skipped,
        'invoices': [row.to_dict() for row in created],
    })


def mark_invoice_paid(history_id):
    invoice = db.session.get(BillingHistory, history_id)
    if not invoice:
        return ServiceResult.fail(NOT_FOUND, "Invoice not found")

    if not invoice.is_paid():
        invoice.payment_status = PAYMENT_PAID
        invoice.payment_date = datetime.utcnow()
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to mark invoice {history_id} paid: {e}")
            return ServiceResult.fail(DATABASE_ERROR, "Could not update invoice")

    return ServiceResult.ok(invoice.to_dict(), message="Invoice marked as paid")


def list_plans():
    plans = SubscriptionPlan.query.filter_by(is_active=True).order_by(SubscriptionPlan.monthly_token_limit.asc()).all()
    return ServiceResult.ok([plan.to_dict() for plan in plans])


def list_token_usage(user_id=None, limit=RECENT_USAGE_ROWS):
    query = TokenUsage.query
    if user_id:
        user = _find_user(user_id)
        if not user:
            return ServiceResult.fail(NOT_FOUND, "User not found")
        query = query.filter_by(user_id=user.id)
    rows = query.order_by(TokenUsage.created_at.desc(), TokenUsage.id.desc()).limit(limit).all()
    return ServiceResult.ok([row.to_dict() for row in rows])


def seed_plans():
    """Insert catalog plans that are not in the database yet; returns how many were added"""
    added = 0
    for entry in load_plan_catalog():
        if SubscriptionPlan.query.filter_by(name=entry['name']).first():
            continue
        db.session.add(SubscriptionPlan(
            name=entry['name'],
            display_name=entry['display_name'],
            monthly_token_limit=entry['monthly_token_limit'],
            cost_per_token=entry['cost_per_token'],
            monthly_fee=entry.get('monthly_fee', 0.0),
            features=entry.get('features', []),
            is_active=True
        ))
        added += 1
    db.session.commit()
    return added
