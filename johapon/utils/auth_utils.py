"""
Authentication Utilities

FLOW OVERVIEW
- hash_password / verify_password
  • bcrypt for the system admin's email/password login.
- resolve_profile(auth_identity_id, union_id=None)
  • identity → user_auth_links → users, optionally restricted to one union.
- get_server_auth(slug=None)
  • Session identity → ServerAuthResult for the tenant addressed by slug.
- authenticate_api_request(require_admin, require_union_id, union_id)
  • AuthResult with a ready-to-return AuthError on failure.
- authenticate_service_request(**kwargs)
  • X-Internal-Api-Key shortcut, else authenticate_api_request(**kwargs).
- login_required / system_admin_required
  • Route decorators built on the same checks.
- redirect_by_user_status(base_url, slug, status)
  • Landing URL after OAuth login.
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

import bcrypt
from flask import session, request, jsonify, current_app

from ..models import User, UserAuthLink, Union
from ..models.user import ROLE_SYSTEM_ADMIN, PENDING_APPROVAL, REJECTED


logger = logging.getLogger(__name__)

SESSION_IDENTITY_KEY = 'auth_identity_id'
SESSION_GUEST_KEY = 'guest_access'
INTERNAL_API_KEY_HEADER = 'X-Internal-Api-Key'


def hash_password(password):
    """Hash a password with bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password, password_hash):
    """Verify a password against its bcrypt hash"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def login_identity(auth_identity_id):
    """Bind an auth identity to the Flask session"""
    session.clear()
    session[SESSION_IDENTITY_KEY] = auth_identity_id
    session.permanent = True


def current_identity_id():
    return session.get(SESSION_IDENTITY_KEY)


def resolve_profile(auth_identity_id, union_id=None) -> Optional[User]:
    """
    Find the member profile linked to an auth identity.

    With union_id the lookup is restricted to that union. Without it a
    SYSTEM_ADMIN profile takes precedence; otherwise the identity must hold
    exactly one profile, since several profiles without a union are ambiguous.
    """
    if not auth_identity_id:
        return None

    query = (
        User.query
        .join(UserAuthLink, UserAuthLink.user_id == User.id)
        .filter(UserAuthLink.auth_identity_id == auth_identity_id)
    )
    if union_id:
        query = query.filter(User.union_id == union_id)

    profiles = query.all()
    if not profiles:
        return None

    if union_id is None:
        for profile in profiles:
            if profile.is_system_admin():
                return profile

    if len(profiles) == 1:
        return profiles[0]

    logger.warning(
        f"Ambiguous profile lookup for identity {auth_identity_id} "
        f"(union={union_id}, matches={len(profiles)})"
    )
    return None


def resolve_system_admin(auth_identity_id) -> Optional[User]:
    profile = resolve_profile(auth_identity_id)
    if profile is not None and profile.is_system_admin():
        return profile
    return None


@dataclass
class ServerAuthResult:
    """Authentication state of the current request"""
    is_authenticated: bool = False
    auth_identity_id: Optional[str] = None
    user: Optional[User] = None
    is_system_admin: bool = False
    is_admin: bool = False
    is_blocked: bool = False

    @classmethod
    def anonymous(cls):
        return cls()

    def to_dict(self):
        return {
            'is_authenticated': self.is_authenticated,
            'auth_identity_id': self.auth_identity_id,
            'user': self.user.to_dict() if self.user else None,
            'is_system_admin': self.is_system_admin,
            'is_admin': self.is_admin,
            'is_blocked': self.is_blocked,
        }


def get_server_auth(slug=None) -> ServerAuthResult:
    """Build the auth state for the session identity, scoped to a tenant slug when given"""
    identity_id = current_identity_id()
    if not identity_id:
        return ServerAuthResult.anonymous()

    try:
        user = None
        if slug:
            union = Union.query.filter_by(slug=slug).first()
            if union is not None:
                user = resolve_profile(identity_id, union.id)
        else:
            user = resolve_profile(identity_id)

        if user is None:
            # The system admin is not a member of any union but may visit all of them
            user = resolve_system_admin(identity_id)

        is_system_admin = bool(user and user.role == ROLE_SYSTEM_ADMIN)
        return ServerAuthResult(
            is_authenticated=True,
            auth_identity_id=identity_id,
            user=user,
            is_system_admin=is_system_admin,
            is_admin=bool(user and user.is_admin()),
            is_blocked=bool(user and user.is_blocked),
        )
    except Exception as e:
        logger.error(f"Server auth lookup failed: {str(e)}", exc_info=True)
        return ServerAuthResult.anonymous()


@dataclass
class AuthError:
    code: str
    message: str
    status: int

    def to_response(self):
        return jsonify({'error': self.message, 'code': self.code}), self.status


@dataclass
class AuthResult:
    authenticated: bool
    user: Optional[User] = None
    auth_identity_id: Optional[str] = None
    error: Optional[AuthError] = None


UNAUTHORIZED = AuthError('UNAUTHORIZED', '인증이 필요합니다.', 401)
PROFILE_NOT_FOUND = AuthError('PROFILE_NOT_FOUND', '사용자 프로필을 찾을 수 없습니다.', 403)
FORBIDDEN = AuthError('FORBIDDEN', '관리자 권한이 필요합니다.', 403)
SYSTEM_ADMIN_REQUIRED = AuthError('FORBIDDEN', '시스템 관리자 권한이 필요합니다.', 403)
UNION_ACCESS_DENIED = AuthError('UNION_ACCESS_DENIED', '해당 조합에 대한 접근 권한이 없습니다.', 403)


def authenticate_api_request(require_admin=False, require_union_id=False, union_id=None) -> AuthResult:
    """
    Authenticate the session identity for a JSON API call.

    Args:
        require_admin: ADMIN or SYSTEM_ADMIN role required
        require_union_id: the profile must belong to union_id (SYSTEM_ADMIN passes)
        union_id: union the request targets

    Returns:
        AuthResult; on failure `error` holds the 401/403 to return
    """
    identity_id = current_identity_id()
    if not identity_id:
        return AuthResult(False, error=UNAUTHORIZED)

    user = resolve_profile(identity_id, union_id) if union_id else None
    if user is None:
        user = resolve_profile(identity_id)
    if user is None:
        return AuthResult(False, auth_identity_id=identity_id, error=PROFILE_NOT_FOUND)

    if require_admin and not user.is_admin():
        return AuthResult(False, user=user, auth_identity_id=identity_id, error=FORBIDDEN)

    if require_union_id and union_id:
        if not user.is_system_admin() and user.union_id != union_id:
            return AuthResult(False, user=user, auth_identity_id=identity_id, error=UNION_ACCESS_DENIED)

    return AuthResult(True, user=user, auth_identity_id=identity_id)


def authenticate_service_request(**kwargs) -> AuthResult:
    """Internal callers present the shared key; everyone else goes through the session"""
    provided = request.headers.get(INTERNAL_API_KEY_HEADER)
    expected = current_app.config.get('INTERNAL_API_KEY')

    if provided and expected and provided == expected:
        # Transient principal, never added to the DB session
        principal = User(id='system', name='Internal Service', role=ROLE_SYSTEM_ADMIN)
        return AuthResult(True, user=principal, auth_identity_id='system')

    return authenticate_api_request(**kwargs)


def login_required(f):
    """Decorator to require a session identity"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_identity_id():
            return UNAUTHORIZED.to_response()
        return f(*args, **kwargs)
    return decorated_function


def system_admin_required(f):
    """Decorator to require the SYSTEM_ADMIN profile"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity_id = current_identity_id()
        if not identity_id:
            return UNAUTHORIZED.to_response()
        if resolve_system_admin(identity_id) is None:
            return SYSTEM_ADMIN_REQUIRED.to_response()
        return f(*args, **kwargs)
    return decorated_function


def redirect_by_user_status(base_url, slug, status):
    """Where to send a member after login, by profile status"""
    base = base_url.rstrip('/')
    home = f'{base}/{slug}' if slug else base
    if status == PENDING_APPROVAL:
        return f'{home}?status=pending'
    if status == REJECTED:
        return f'{home}?status=rejected'
    return home
