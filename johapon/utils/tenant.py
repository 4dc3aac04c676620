"""
Tenant Resolution

FLOW OVERVIEW
- gate_request() runs before every request:
  • '/', static files and system paths pass straight through.
  • Otherwise the first path segment is the union slug.
  • Invalid slug or unknown union → 404; inactive union → 403 UNION_INACTIVE
    (the system admin may still enter).
  • A guest holding an access-token grant is limited to the grant's union and pages.
  • On success the union is available as g.tenant.
- tenant_headers(response) echoes the resolved tenant on the response.
"""

import logging
import re

from flask import request, session, g

from ..models import Union
from .api_utils import error_response
from .auth_utils import current_identity_id, resolve_system_admin, SESSION_GUEST_KEY
from .access_tokens import guest_grant_allows
from .validators import validate_slug


logger = logging.getLogger(__name__)

SYSTEM_PATHS = frozenset([
    'static', 'api', 'auth', 'admin', 'system-admin', 'health',
    'favicon.ico', 'robots.txt', 'sitemap.xml',
])

STATIC_FILE_PATTERN = re.compile(r'\.[a-zA-Z0-9]+$')


def is_valid_slug(slug):
    return validate_slug(slug).is_valid


def is_static_file(path):
    return bool(STATIC_FILE_PATTERN.search(path or ''))


def resolve_tenant(slug):
    """Union for a slug, active or not; None when unknown"""
    if not is_valid_slug(slug):
        return None
    return Union.query.filter_by(slug=slug).first()


def gate_request():
    """before_request hook; returns a response only when the request is refused"""
    g.tenant = None
    path = request.path

    if path == '/' or is_static_file(path):
        return None

    segments = [s for s in path.split('/') if s]
    if not segments:
        return None

    slug = segments[0]
    if slug in SYSTEM_PATHS:
        return None

    if not is_valid_slug(slug):
        return error_response('페이지를 찾을 수 없습니다.', 'NOT_FOUND', 404)

    union = resolve_tenant(slug)
    if union is None:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    identity_id = current_identity_id()

    if not union.is_active and resolve_system_admin(identity_id) is None:
        logger.info(f"Blocked request to inactive union {slug}")
        return error_response('비활성화된 조합입니다.', 'UNION_INACTIVE', 403)

    grant = session.get(SESSION_GUEST_KEY)
    if grant and not identity_id and not guest_grant_allows(grant, union, path):
        return error_response('접근 권한이 없는 페이지입니다.', 'GUEST_ACCESS_DENIED', 403)

    g.tenant = union
    return None


def tenant_headers(response):
    """after_request hook"""
    union = g.get('tenant')
    if union is not None:
        response.headers['X-Tenant-Slug'] = union.slug
        response.headers['X-Tenant-Id'] = union.id
    return response
