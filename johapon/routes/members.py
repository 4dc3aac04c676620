"""
Member Management Routes

FLOW OVERVIEW
- /api/members/approve | reject | cancel-rejection | block | unblock [POST]
  • Body {unionId, memberId[, reason]} → admin of that union (or system admin) → status transition.
- /api/members/check-conflict?userId= [GET]
  • Existing owners of the pending registrant's properties, with comparison data.
    Internal callers may present X-Internal-Api-Key instead of a session.
- /api/members/resolve-conflict [POST]
  • update | transfer | add_co_owner | add_proxy, applied atomically.
- /api/members/invites [POST]
  • Member invitation with an emailed login link.
"""

import logging

from flask import Blueprint, request, jsonify
from werkzeug.exceptions import NotFound

from ..models import db, User, Union
from ..utils.api_utils import request_validator, get_client_ip, error_response
from ..utils.audit_log import record_member_action, ActionTimer, STATUS_SUCCESS, STATUS_FAILURE
from ..utils.auth_utils import authenticate_api_request, authenticate_service_request
from ..utils.conflict_resolution import (
    check_conflicts, resolve_conflict, create_conflict_comparison_data, ConflictResolutionRequest,
)
from ..utils import member_lifecycle
from ..utils.invites import create_member_invite
from ..utils.validators import validate_email

members_bp = Blueprint('members', __name__)
logger = logging.getLogger(__name__)

ACTION_RESOLVE_CONFLICT = 'RESOLVE_CONFLICT'


def _lifecycle_request(handler, extra_fields=()):
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    ok, error = request_validator.require_fields(data, ['unionId', 'memberId'])
    if not ok:
        return jsonify(error), 400

    union_id = data['unionId']
    auth = authenticate_api_request(require_admin=True, require_union_id=True, union_id=union_id)
    if not auth.authenticated:
        return auth.error.to_response()

    try:
        result = handler(union_id, data['memberId'], auth.user,
                         *[data.get(f) for f in extra_fields])
    except member_lifecycle.MemberLifecycleError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify(result.to_dict())


@members_bp.route('/approve', methods=['POST'])
def approve():
    return _lifecycle_request(member_lifecycle.approve)


@members_bp.route('/reject', methods=['POST'])
def reject():
    return _lifecycle_request(member_lifecycle.reject, ('reason',))


@members_bp.route('/cancel-rejection', methods=['POST'])
def cancel_rejection():
    return _lifecycle_request(member_lifecycle.cancel_rejection)


@members_bp.route('/block', methods=['POST'])
def block():
    return _lifecycle_request(member_lifecycle.block, ('reason',))


@members_bp.route('/unblock', methods=['POST'])
def unblock():
    return _lifecycle_request(member_lifecycle.unblock)


def _authorize_for_member(user_id, authenticate=authenticate_api_request):
    """(auth, pending_user, error_response) for an admin acting on a member"""
    member = db.session.get(User, user_id)
    auth = authenticate(require_admin=True, require_union_id=True,
                        union_id=member.union_id if member else None)
    if not auth.authenticated:
        return None, None, auth.error.to_response()

    if member is None:
        return None, None, error_response('승인 대기 사용자를 찾을 수 없습니다.', 'MEMBER_NOT_FOUND', 404)

    return auth, member, None


@members_bp.route('/check-conflict', methods=['GET'])
def check_conflict():
    """Property conflicts of a pending registrant"""
    user_id = request.args.get('userId')
    if not user_id:
        return error_response('userId is required', 'MISSING_PARAMETERS', 400)

    auth, pending_user, error = _authorize_for_member(user_id, authenticate=authenticate_service_request)
    if error:
        return error

    result = check_conflicts(pending_user.id)
    data = result.to_dict()
    data['comparisons'] = [
        create_conflict_comparison_data(pending_user, conflict).to_dict()
        for conflict in result.conflicts
    ]
    return jsonify(data)


@members_bp.route('/resolve-conflict', methods=['POST'])
def resolve_conflict_route():
    """Apply a conflict resolution action"""
    timer = ActionTimer()
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    ok, error = request_validator.require_fields(data, ['action', 'pendingUserId', 'existingUserId'])
    if not ok:
        return jsonify(error), 400

    auth, pending_user, error = _authorize_for_member(data['pendingUserId'])
    if error:
        return error

    union_id = pending_user.union_id
    try:
        resolution = ConflictResolutionRequest.from_dict(data)
        result = resolve_conflict(resolution)
    except ValueError as e:
        record_member_action(union_id, auth.user.id, ACTION_RESOLVE_CONFLICT, data['pendingUserId'],
                             STATUS_FAILURE, metadata={'action': data.get('action'), 'error': str(e)},
                             duration_ms=timer.elapsed_ms())
        return error_response(str(e), 'INVALID_REQUEST', 400)
    except NotFound as e:
        record_member_action(union_id, auth.user.id, ACTION_RESOLVE_CONFLICT, data['pendingUserId'],
                             STATUS_FAILURE, metadata={'action': data.get('action'), 'error': e.description},
                             duration_ms=timer.elapsed_ms())
        raise

    record_member_action(
        union_id, auth.user.id, ACTION_RESOLVE_CONFLICT, resolution.pending_user_id,
        STATUS_SUCCESS if result.success else STATUS_FAILURE,
        metadata={
            'action': resolution.action,
            'existing_user_id': resolution.existing_user_id,
            'property_unit_id': resolution.conflicted_property_unit_id,
            'resolved_user_id': result.resolved_user_id,
            'message': result.message,
        },
        duration_ms=timer.elapsed_ms(),
    )

    return jsonify(result.to_dict()), (200 if result.success else 400)


@members_bp.route('/invites', methods=['POST'])
def create_invite():
    """Invite a member to register"""
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    ok, error = request_validator.require_fields(data, ['unionId', 'name'])
    if not ok:
        return jsonify(error), 400

    auth = authenticate_api_request(require_admin=True, require_union_id=True, union_id=data['unionId'])
    if not auth.authenticated:
        return auth.error.to_response()

    union = db.session.get(Union, data['unionId'])
    if union is None:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    email = None
    if data.get('email'):
        email_result = validate_email(data['email'])
        if not email_result.is_valid:
            return error_response(email_result.error_message, 'INVALID_EMAIL', 400)
        email = email_result.sanitized_value

    invite, email_sent = create_member_invite(
        union,
        name=data['name'],
        phone_number=data.get('phone_number'),
        email=email,
        property_address=data.get('property_address'),
    )
    return jsonify({
        'success': True,
        'data': {
            'id': invite.id,
            'invite_token': invite.invite_token,
            'expires_at': invite.expires_at.isoformat(),
            'email_sent': email_sent,
        },
    }), 201
