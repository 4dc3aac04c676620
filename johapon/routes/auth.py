"""
Authentication Routes

FLOW OVERVIEW
- /auth/<provider>/login [GET]
  • Redirect to Kakao/Naver with a signed state carrying slug and invite tokens.
- /auth/<provider>/callback [GET]
  • Exchange code → fetch profile → find/create identity → session.
  • Linked profile: redirect by status. Valid invite: register-prefill cookie. Else tenant home.
- /auth/error [GET]
  • JSON echo of the failure reason.
- /auth/register [POST]
  • Complete a profile in a union for the session identity (property units normalized).
- /auth/reapply [POST]
  • REJECTED → PENDING_PROFILE for the caller's own profile.
- /auth/system-admin/login [POST]
  • Email/password (bcrypt) login for the system admin.
- /auth/logout [POST]
  • Clear the session.
- /auth/me [GET]
  • Auth state for an optional tenant slug.
- /auth/verify-token [POST]
  • Guest access token check; a valid token is stored in the session as a guest grant.
"""

import json
import logging

from flask import Blueprint, request, jsonify, redirect, session, current_app, abort
from sqlalchemy.exc import IntegrityError

from ..models import db, AuthIdentity, User, UserAuthLink, UserPropertyUnit, AdminInvite, MemberInvite
from ..models.user import PENDING_APPROVAL, APPROVED, ROLE_ADMIN, ROLE_USER
from ..models.property_unit import OWNER, OWNERSHIP_TYPE_LABELS
from ..models.utils import utcnow
from ..utils.api_utils import request_validator, get_client_ip, error_response
from ..utils.auth_utils import (
    login_identity, current_identity_id, login_required, resolve_profile, resolve_system_admin,
    get_server_auth, redirect_by_user_status, verify_password, SESSION_GUEST_KEY,
)
from ..utils.access_tokens import verify_access_token, build_guest_grant
from ..utils.dong_ho import normalize_dong, normalize_ho, create_normalized_ho
from ..utils.invites import find_valid_invite, invite_prefill
from ..utils.member_lifecycle import reapply as reapply_member, MemberLifecycleError
from ..utils.oauth import get_provider, encode_state, decode_state, OAuthError
from ..utils.tenant import resolve_tenant
from ..utils.validators import (
    validate_email, validate_name, validate_phone_number, validate_share_ratio, sanitize_input,
)

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

PREFILL_COOKIE = 'register-prefill'
PREFILL_MAX_AGE = 60 * 60


def _base_url():
    return current_app.config.get('APP_BASE_URL', request.host_url).rstrip('/')


def _redirect_uri(provider):
    return f'{_base_url()}/auth/{provider}/callback'


def _error_redirect(reason):
    return redirect(f'{_base_url()}/auth/error?message={reason}')


def _redirect_with_prefill(url, prefill):
    response = redirect(url)
    response.set_cookie(
        PREFILL_COOKIE,
        json.dumps(prefill),
        max_age=PREFILL_MAX_AGE,
        httponly=False,
        secure=current_app.config.get('SESSION_COOKIE_SECURE', False),
        samesite='Lax',
    )
    return response


def find_or_create_identity(profile):
    """AuthIdentity for an OAuth profile, refreshed with the provider's latest data"""
    identity = AuthIdentity.query.filter_by(
        provider=profile.provider,
        provider_user_id=profile.provider_user_id,
    ).first()

    if identity is None:
        identity = AuthIdentity(
            provider=profile.provider,
            provider_user_id=profile.provider_user_id,
        )
        db.session.add(identity)
        logger.info(f"New {profile.provider} identity {profile.provider_user_id}")

    if profile.email:
        identity.email = profile.email.lower()
    if profile.name:
        identity.display_name = profile.name
    identity.touch_login()
    db.session.commit()
    return identity


@auth_bp.route('/<provider>/login')
def oauth_login(provider):
    """Start the provider's authorization code flow"""
    oauth = get_provider(provider)
    if oauth is None:
        abort(404)

    state = encode_state({
        'provider': provider,
        'slug': request.args.get('slug', ''),
        'invite_token': request.args.get('invite_token'),
        'member_invite_token': request.args.get('member_invite_token'),
    })
    return redirect(oauth.authorize_url(_redirect_uri(provider), state))


@auth_bp.route('/<provider>/callback')
def oauth_callback(provider):
    """Finish the provider login and route the user by profile status"""
    oauth = get_provider(provider)
    if oauth is None:
        abort(404)

    if request.args.get('error'):
        logger.warning(f"{provider} OAuth error: {request.args.get('error')}")
        return _error_redirect('provider_error')

    code = request.args.get('code')
    if not code:
        return _error_redirect('no_code')

    raw_state = request.args.get('state')
    try:
        state = decode_state(raw_state)
        if state.get('provider') not in (None, provider):
            raise OAuthError('invalid_state', 'provider mismatch')
        access_token = oauth.exchange_code(code, _redirect_uri(provider), raw_state)
        profile = oauth.fetch_profile(access_token)
    except OAuthError as e:
        logger.warning(f"{provider} OAuth callback failed: {e.reason} ({e.detail})")
        return _error_redirect(e.reason)

    identity = find_or_create_identity(profile)
    login_identity(identity.id)

    slug = state.get('slug') or ''
    union = resolve_tenant(slug) if slug else None
    base = _base_url()

    user = resolve_profile(identity.id, union.id if union else None)
    if user is not None:
        return redirect(redirect_by_user_status(base, slug, user.user_status))

    for model, token in ((AdminInvite, state.get('invite_token')),
                         (MemberInvite, state.get('member_invite_token'))):
        invite = find_valid_invite(model, token)
        if invite is not None:
            invite_slug = invite.union.slug if invite.union else slug
            home = f'{base}/{invite_slug}' if invite_slug else base
            return _redirect_with_prefill(home, invite_prefill(invite))

    home = f'{base}/{slug}' if slug else base
    return _redirect_with_prefill(home, {
        'name': profile.name or '',
        'phone_number': profile.phone_number or '',
        'provider': provider,
    })


@auth_bp.route('/error')
def auth_error():
    return jsonify({
        'error': '로그인 처리 중 오류가 발생했습니다.',
        'code': 'AUTH_ERROR',
        'message': request.args.get('message', 'unknown'),
    }), 400


def _build_property_units(raw_units):
    units = []
    for raw in raw_units or []:
        if not isinstance(raw, dict):
            continue
        if 'is_basement' in raw:
            ho = create_normalized_ho(bool(raw.get('is_basement')), raw.get('ho'))
        else:
            ho = normalize_ho(raw.get('ho'))
        unit = UserPropertyUnit(
            building_unit_id=raw.get('building_unit_id') or None,
            pnu=raw.get('pnu') or None,
            dong=normalize_dong(raw.get('dong')),
            ho=ho,
            property_address_jibun=raw.get('property_address_jibun'),
            property_address_road=raw.get('property_address_road'),
        )
        ownership_type = raw.get('ownership_type') or OWNER
        if ownership_type not in OWNERSHIP_TYPE_LABELS:
            raise ValueError(f'Unknown ownership type: {ownership_type}')
        ratio = raw.get('land_ownership_ratio')
        ratio_result = validate_share_ratio(100 if ratio is None else ratio)
        if not ratio_result.is_valid:
            raise ValueError(ratio_result.error_message)
        unit.set_ownership(ownership_type, ratio_result.sanitized_value)
        units.append(unit)
    return units


@auth_bp.route('/register', methods=['POST'])
@login_required
def register():
    """Create the caller's profile in a union"""
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    ok, error = request_validator.require_fields(data, ['slug', 'name', 'phone_number'])
    if not ok:
        return jsonify(error), 400

    union = resolve_tenant(data['slug'])
    if union is None or not union.is_active:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    name_result = validate_name(data['name'])
    if not name_result.is_valid:
        return error_response(name_result.error_message, 'INVALID_NAME', 400)

    phone_result = validate_phone_number(data['phone_number'])
    if not phone_result.is_valid:
        return error_response(phone_result.error_message, 'INVALID_PHONE', 400)

    email = None
    if data.get('email'):
        email_result = validate_email(data['email'])
        if not email_result.is_valid:
            return error_response(email_result.error_message, 'INVALID_EMAIL', 400)
        email = email_result.sanitized_value

    identity_id = current_identity_id()
    if resolve_profile(identity_id, union.id) is not None:
        return error_response('이미 이 조합에 등록된 사용자입니다.', 'ALREADY_REGISTERED', 409)

    admin_invite = None
    member_invite = None
    if data.get('invite_token'):
        admin_invite = find_valid_invite(AdminInvite, data['invite_token'])
        if admin_invite is None or admin_invite.union_id != union.id:
            return error_response('유효하지 않은 초대입니다.', 'INVALID_INVITE', 400)
    elif data.get('member_invite_token'):
        member_invite = find_valid_invite(MemberInvite, data['member_invite_token'])
        if member_invite is None or member_invite.union_id != union.id:
            return error_response('유효하지 않은 초대입니다.', 'INVALID_INVITE', 400)

    try:
        units = _build_property_units(data.get('property_units'))
    except ValueError as e:
        return error_response(str(e), 'INVALID_PROPERTY_UNIT', 400)

    user = User(
        union_id=union.id,
        name=name_result.sanitized_value,
        phone_number=phone_result.sanitized_value,
        email=email,
        birth_date=data.get('birth_date'),
        role=ROLE_USER,
        user_status=PENDING_APPROVAL,
        property_address=data.get('property_address'),
        property_address_detail=data.get('property_address_detail'),
        resident_address=data.get('resident_address'),
        resident_address_detail=data.get('resident_address_detail'),
        resident_address_road=data.get('resident_address_road'),
        resident_address_jibun=data.get('resident_address_jibun'),
        resident_zonecode=data.get('resident_zonecode'),
        notes=sanitize_input(data.get('notes')) or None,
    )
    if admin_invite is not None:
        user.role = ROLE_ADMIN
        user.user_status = APPROVED
        user.approved_at = utcnow()
        admin_invite.mark_used()
    elif member_invite is not None:
        member_invite.mark_used()

    db.session.add(user)
    db.session.flush()

    for unit in units:
        unit.user_id = user.id
        db.session.add(unit)

    db.session.add(UserAuthLink(auth_identity_id=identity_id, user_id=user.id, union_id=union.id))

    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent registration already linked this identity in the union
        db.session.rollback()
        logger.warning(f"Duplicate registration for identity {identity_id} in union {union.slug}")
        return error_response('이미 이 조합에 등록된 사용자입니다.', 'ALREADY_REGISTERED', 409)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration failed for identity {identity_id}: {str(e)}")
        return error_response('등록 처리 중 오류가 발생했습니다.', 'REGISTRATION_FAILED', 500)

    logger.info(f"Registered {user.role} {user.id} in union {union.slug} ({user.user_status})")
    response = jsonify({
        'success': True,
        'user': user.to_dict(),
        'redirect_url': redirect_by_user_status(_base_url(), union.slug, user.user_status),
    })
    response.delete_cookie(PREFILL_COOKIE)
    return response, 201


@auth_bp.route('/reapply', methods=['POST'])
@login_required
def reapply():
    """Restart registration after a rejection"""
    data = request.get_json(silent=True) or {}
    union = resolve_tenant(data.get('slug') or '')
    if union is None:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    user = resolve_profile(current_identity_id(), union.id)
    if user is None:
        return error_response('사용자 프로필을 찾을 수 없습니다.', 'PROFILE_NOT_FOUND', 403)

    try:
        reapply_member(user)
    except MemberLifecycleError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/system-admin/login', methods=['POST'])
def system_admin_login():
    """Email/password login, system admin only"""
    data = request.get_json(silent=True) or {}
    email_result = validate_email(data.get('email', ''))
    password = data.get('password', '')
    if not email_result.is_valid or not password:
        return error_response('이메일과 비밀번호를 입력해주세요.', 'MISSING_PARAMETERS', 400)

    identity = AuthIdentity.query.filter_by(provider='email', email=email_result.sanitized_value).first()
    if identity is None or not verify_password(password, identity.password_hash):
        logger.warning(f"Failed system admin login for {email_result.sanitized_value} from {get_client_ip()}")
        return error_response('이메일 또는 비밀번호가 올바르지 않습니다.', 'INVALID_CREDENTIALS', 401)

    admin = resolve_system_admin(identity.id)
    if admin is None:
        return error_response('시스템 관리자 권한이 필요합니다.', 'FORBIDDEN', 403)

    login_identity(identity.id)
    identity.touch_login()
    db.session.commit()
    return jsonify({'success': True, 'user': admin.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True})


@auth_bp.route('/me')
def me():
    auth = get_server_auth(request.args.get('slug') or None)
    data = auth.to_dict()
    data['guest_access'] = session.get(SESSION_GUEST_KEY)
    return jsonify(data)


@auth_bp.route('/verify-token', methods=['POST'])
def verify_token():
    """Check a guest access token and open a guest session on success"""
    data = request.get_json(silent=True) or {}
    result = verify_access_token(
        data.get('tokenKey'),
        path=data.get('path'),
        ip=get_client_ip(),
        user_agent=request.headers.get('User-Agent'),
    )
    if result.valid:
        session[SESSION_GUEST_KEY] = build_guest_grant(result.token)
    return jsonify(result.to_dict())
