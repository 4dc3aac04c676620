#!/usr/bin/env python3
"""
Johapon application entry point.

This module selects configuration based on environment variables and creates the
Flask application via `create_app`. When executed directly, it runs the development
server. In production, a WSGI server should import `app` from this module.

Environment variables of interest:
- FLASK_ENV: 'testing' uses an in-memory DB with mail delivery suppressed.
- DATABASE_URL, SECRET_KEY, JWT_SECRET_KEY, APP_BASE_URL, OAuth and mail settings:
  consumed by `Config`.
"""

import logging
import os

from johapon import create_app

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

if os.getenv('FLASK_ENV') == 'testing':
    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': os.getenv('DATABASE_URL', 'sqlite:///:memory:'),
        'SECRET_KEY': os.getenv('SECRET_KEY', 'test-secret-key'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'test-jwt-secret-key'),
        'APP_BASE_URL': os.getenv('APP_BASE_URL', 'http://localhost:5000'),
        'MAIL_SUPPRESS_SEND': True,
        'MAIL_DEFAULT_SENDER': 'test@example.com',
    }
    app = create_app(test_config)
else:
    app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
