#!/usr/bin/env python3
"""
ScholarDesk application entry point.

Creates the Flask application via `create_app`. When executed directly, it
runs the development server. In production, a WSGI server should import `app`
from this module.

Environment variables of interest:
- FLASK_ENV: if set to 'testing', uses an in-memory database created eagerly.
- DATABASE_URL, SECRET_KEY, JWT_SECRET_KEY, SUPABASE_URL, SUPABASE_SERVICE_KEY:
  consumed by `create_app` through Config.
"""

import os
from scholardesk import create_app
from scholardesk.models import db

if os.getenv('FLASK_ENV') == 'testing':
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', 'sqlite:///:memory:'),
        'SECRET_KEY': os.getenv('SECRET_KEY', 'test-secret-key'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'test-jwt-secret-key'),
    })
else:
    app = create_app()

print("🚀 Starting ScholarDesk server...")
if os.getenv('FLASK_ENV') == 'testing' or app.config['SQLALCHEMY_DATABASE_URI'] == 'sqlite:///:memory:':
    with app.app_context():
        db.create_all()
        print("📊 In-memory database initialized")
else:
    print("📊 Run `flask --app app init-db` to create the tables")

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
