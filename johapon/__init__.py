"""
Johapon Application Package

FLOW OVERVIEW
- create_app(test_config=None)
  • Build Flask app, apply config (test dict or env-based), init extensions (DB, Mail).
  • Request hooks: timing for Prometheus, then the tenant gate; tenant headers on the way out.
  • Register blueprints: auth (/auth), members (/api/members), admin (/api/admin), main (/).
  • Register global JSON error handlers.
"""

import time

from flask import Flask, g, request

from .models import db
from .config import Config
from .routes import auth_bp, main_bp, members_bp, admin_bp
from .utils.notifications import mail
from .utils.prom_metrics import observe_request
from .utils.tenant import gate_request, tenant_headers


def create_app(test_config=None):
    """Application factory"""
    app = Flask(__name__)

    # Configuration
    if test_config:
        app.config.update(test_config)
    else:
        app.config.from_object(Config())

    # Initialize extensions
    db.init_app(app)
    mail.init_app(app)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    app.before_request(gate_request)

    @app.after_request
    def record_request(response):
        started = g.get('request_started')
        if started is not None:
            observe_request(request.endpoint or 'unmatched', response.status_code,
                            time.perf_counter() - started)
        return response

    app.after_request(tenant_headers)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(members_bp, url_prefix='/api/members')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(main_bp)

    # Register error handlers
    from .utils.error_handlers import register_error_handlers
    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    return app
