"""
Tests for the maintenance commands.
"""

from scholardesk.models import BillingHistory, SubscriptionPlan, User
from scholardesk.services import billing_service


def test_seed_plans(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['seed-plans'])
    assert result.exit_code == 0
    assert '3 subscription plan(s) added' in result.output
    assert SubscriptionPlan.query.count() == 3

    result = runner.invoke(args=['seed-plans'])
    assert '0 subscription plan(s) added' in result.output


def test_create_admin(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        'create-admin', '--name', 'Dosen Baru', '--email', 'dosen@example.com', '--password', 'secret123'
    ])
    assert result.exit_code == 0
    admin = User.query.filter_by(email='dosen@example.com').first()
    assert admin.is_admin()
    assert admin.user_id in result.output


def test_create_admin_rejects_duplicates(app, admin_user):
    result = app.test_cli_runner().invoke(args=[
        'create-admin', '--name', 'Dosen Admin', '--email', 'admin@example.com', '--password', 'secret123'
    ])
    assert result.exit_code != 0
    assert User.query.count() == 1


def test_billing_rollup(app, db_session, student_user):
    student_user.token_balance = 100
    db_session.commit()
    billing_service.record_token_usage(student_user.user_id, 'chat_query', tokens_used=10)

    runner = app.test_cli_runner()
    result = runner.invoke(args=['billing-rollup'])
    assert result.exit_code == 0
    assert '1 invoice(s) created' in result.output
    assert BillingHistory.query.count() == 1

    result = runner.invoke(args=['billing-rollup', '--month', 'bogus'])
    assert result.exit_code != 0
