"""
Model Utilities

This module contains utility functions for the models package.
"""

import secrets
import string
import time
from datetime import date, datetime


def generate_user_id():
    """Generate a unique 12-character public user ID"""
    return ''.join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(12))


def generate_storage_name(filename):
    """Build a collision-resistant object name: <epoch-ms>-<random>.<ext>"""
    ext = filename.rsplit('.', 1)[-1].lower() if filename and '.' in filename else 'bin'
    random_part = ''.join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"{int(time.time() * 1000)}-{random_part}.{ext}"


def generate_invoice_number(billing_period, user_public_id):
    """Invoice numbers are stable per user and month: INV-YYYYMM-<user_id>"""
    return f"INV-{billing_period.strftime('%Y%m')}-{user_public_id}"


def generate_transaction_id(prefix='topup'):
    """Opaque id handed back to callers of balance-changing operations"""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def isoformat(value):
    """Serialize an optional date or datetime for JSON payloads"""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
