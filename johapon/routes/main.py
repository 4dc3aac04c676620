"""
Main Routes

FLOW OVERVIEW
- / [GET]
  • Service banner.
- /health [GET]
  • JSON health check.
- /api/metrics [GET]
  • Prometheus text exposition.
- /<slug> [GET]
  • Tenant landing data: the union resolved by the tenant gate plus the caller's auth state.
"""

from flask import Blueprint, jsonify, g, session, Response, abort
from datetime import datetime, timezone

from ..utils.auth_utils import get_server_auth, SESSION_GUEST_KEY
from ..utils.prom_metrics import metrics_latest, CONTENT_TYPE_LATEST

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def home():
    return jsonify({'service': 'johapon', 'status': 'ok'})


@main_bp.route('/health')
def health():
    """Health check endpoint"""
    return jsonify({'status': 'healthy', 'timestamp': datetime.now(timezone.utc).isoformat()})


@main_bp.route('/api/metrics')
def metrics():
    """Prometheus metrics endpoint."""
    output = metrics_latest()
    return Response(output, mimetype=CONTENT_TYPE_LATEST)


@main_bp.route('/<slug>')
def tenant_home(slug):
    """Union landing data; the tenant gate has already refused unknown or closed unions"""
    union = g.get('tenant')
    if union is None:
        # Reserved names and file-like segments skip the gate and are not unions
        abort(404)
    auth = get_server_auth(slug)
    return jsonify({
        'union': union.to_dict(),
        'auth': auth.to_dict(),
        'guest_access': bool(session.get(SESSION_GUEST_KEY)) and not auth.is_authenticated,
    })
