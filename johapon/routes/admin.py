"""
System Admin Routes

FLOW OVERVIEW
- /api/admin/access-tokens [GET, POST]
  • List live guest tokens (newest first) or issue a new one.
- /api/admin/access-tokens/<id> [GET, DELETE]
  • Token detail, or soft delete.
- /api/admin/admin-invites [POST]
  • Invite a union administrator by email.

Every route requires the SYSTEM_ADMIN profile.
"""

import logging

from flask import Blueprint, jsonify

from ..models import db, AccessToken, Union
from ..utils.api_utils import request_validator, get_client_ip, error_response
from ..utils.auth_utils import system_admin_required, resolve_system_admin, current_identity_id
from ..utils.invites import create_admin_invite
from ..utils.validators import validate_email

admin_bp = Blueprint('admin', __name__)
logger = logging.getLogger(__name__)


def _live_token(token_id):
    token = db.session.get(AccessToken, token_id)
    if token is None or token.deleted_at is not None:
        return None
    return token


@admin_bp.route('/access-tokens', methods=['GET'])
@system_admin_required
def list_access_tokens():
    tokens = (
        AccessToken.query
        .filter(AccessToken.deleted_at.is_(None))
        .order_by(AccessToken.created_at.desc())
        .all()
    )
    return jsonify({'data': [token.to_list_item() for token in tokens]})


@admin_bp.route('/access-tokens', methods=['POST'])
@system_admin_required
def create_access_token():
    """Issue a guest access token"""
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    name = (data.get('name') or '').strip()
    if not name:
        return error_response('Token name is required', 'MISSING_PARAMETERS', 400)

    allowed_pages = data.get('allowed_pages')
    if allowed_pages is not None and not isinstance(allowed_pages, list):
        return error_response('allowed_pages must be a list', 'INVALID_REQUEST', 400)

    union_id = data.get('union_id') or None
    if union_id and db.session.get(Union, union_id) is None:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    try:
        expires_in_days = int(data['expires_in_days']) if data.get('expires_in_days') else None
        max_usage = int(data['max_usage']) if data.get('max_usage') else None
    except (TypeError, ValueError):
        return error_response('expires_in_days and max_usage must be integers', 'INVALID_REQUEST', 400)

    admin = resolve_system_admin(current_identity_id())
    token = AccessToken(
        name,
        union_id=union_id,
        access_scope=data.get('access_scope') or 'all',
        allowed_pages=allowed_pages,
        expires_in_days=expires_in_days,
        max_usage=max_usage,
        created_by=admin.id,
    )
    db.session.add(token)
    db.session.commit()
    logger.info(f"Access token {token.id} created by {admin.id}")

    return jsonify({
        'data': {
            'id': token.id,
            'key': token.key,
            'name': token.name,
            'expires_at': token.expires_at.isoformat() if token.expires_at else None,
        }
    }), 201


@admin_bp.route('/access-tokens/<token_id>', methods=['GET'])
@system_admin_required
def get_access_token(token_id):
    token = _live_token(token_id)
    if token is None:
        return error_response('Token not found', 'NOT_FOUND', 404)
    return jsonify({'data': token.to_dict()})


@admin_bp.route('/access-tokens/<token_id>', methods=['DELETE'])
@system_admin_required
def delete_access_token(token_id):
    token = _live_token(token_id)
    if token is None:
        return error_response('Token not found', 'NOT_FOUND', 404)

    token.soft_delete()
    db.session.commit()
    logger.info(f"Access token {token_id} deleted")
    return jsonify({'success': True})


@admin_bp.route('/admin-invites', methods=['POST'])
@system_admin_required
def create_admin_invite_route():
    """Invite a union administrator"""
    client_ip = get_client_ip()
    is_valid, data, error = request_validator.validate_json_request(client_ip)
    if not is_valid:
        return jsonify(error), 400

    ok, error = request_validator.require_fields(data, ['unionId', 'name', 'email'])
    if not ok:
        return jsonify(error), 400

    union = db.session.get(Union, data['unionId'])
    if union is None:
        return error_response('존재하지 않는 조합입니다.', 'TENANT_NOT_FOUND', 404)

    email_result = validate_email(data['email'])
    if not email_result.is_valid:
        return error_response(email_result.error_message, 'INVALID_EMAIL', 400)

    invite, email_sent = create_admin_invite(
        union,
        name=data['name'],
        phone_number=data.get('phone_number'),
        email=email_result.sanitized_value,
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
