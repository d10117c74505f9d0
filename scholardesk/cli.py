"""
Command line maintenance tasks, available through `flask --app app <command>`.

- init-db: create every table
- seed-plans: insert the subscription plans from plans.json
- create-admin: bootstrap an administrator account
- billing-rollup: write the monthly invoices for a month (YYYY-MM, default current)
"""

import click

from .models import db
from .models.user import ROLE_ADMIN
from .services import user_service, billing_service


def register_commands(app):
    """Attach the maintenance commands to the app's CLI."""

    @app.cli.command('init-db')
    def init_db():
        """Create database tables."""
        db.create_all()
        click.echo("📊 Database tables created")

    @app.cli.command('seed-plans')
    def seed_plans():
        """Insert missing subscription plans."""
        db.create_all()
        added = billing_service.seed_plans()
        click.echo(f"✅ {added} subscription plan(s) added")

    @app.cli.command('create-admin')
    @click.option('--name', required=True)
    @click.option('--email', required=True)
    @click.password_option()
    def create_admin(name, email, password):
        """Create an administrator account."""
        result = user_service.create_user({
            'name': name,
            'email': email,
            'password': password,
            'role': ROLE_ADMIN,
        })
        if not result.success:
            raise click.ClickException(result.message)
        click.echo(f"✅ Admin {email} created")
        click.echo(f"   User ID: {result.data['id']}")

    @app.cli.command('billing-rollup')
    @click.option('--month', default=None, help='Billing month as YYYY-MM')
    def billing_rollup(month):
        """Close a billing period and write pending invoices."""
        result = billing_service.close_billing_period(month)
        if not result.success:
            raise click.ClickException(result.message)
        data = result.data
        click.echo(
            f"🧾 {data['billing_period']}: {data['invoices_created']} invoice(s) created, "
            f"{data['invoices_skipped']} already present"
        )
