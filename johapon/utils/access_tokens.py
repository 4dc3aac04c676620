"""
Guest Access Tokens

FLOW OVERVIEW
- verify_access_token(key, path, ip, user_agent)
  • Lookup → deleted → expired → usage cap; on success bump usage_count and log the access.
- build_guest_grant(token) / guest_grant_allows(grant, union, path)
  • The session-side grant stored after a successful verification, and the tenant gate's check.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models import db, AccessToken, AccessTokenLog
from ..models.utils import utcnow
from .prom_metrics import observe_access_token


logger = logging.getLogger(__name__)

REASON_NOT_FOUND = 'not_found'
REASON_DELETED = 'deleted'
REASON_EXPIRED = 'expired'
REASON_MAX_USAGE_REACHED = 'max_usage_reached'


@dataclass
class TokenValidationResult:
    valid: bool
    reason: Optional[str] = None
    token: Optional[AccessToken] = None

    def to_dict(self):
        data = {'valid': self.valid}
        if self.reason:
            data['reason'] = self.reason
        if self.token is not None:
            data['token'] = self.token.to_dict()
        return data


def verify_access_token(key, path=None, ip=None, user_agent=None) -> TokenValidationResult:
    """
    Validate a guest access token and record its use.

    Args:
        key: token key presented by the visitor
        path: page being accessed, stored in the access log
        ip: client IP
        user_agent: client user agent

    Returns:
        TokenValidationResult; invalid results carry one of
        not_found, deleted, expired, max_usage_reached
    """
    result = _verify(key, path, ip, user_agent)
    observe_access_token(result.reason or 'valid')
    return result


def _verify(key, path, ip, user_agent):
    if not key or not isinstance(key, str):
        return TokenValidationResult(False, REASON_NOT_FOUND)

    token = AccessToken.query.filter_by(key=key).first()
    if token is None:
        return TokenValidationResult(False, REASON_NOT_FOUND)

    if token.deleted_at is not None:
        return TokenValidationResult(False, REASON_DELETED)

    if token.is_expired():
        return TokenValidationResult(False, REASON_EXPIRED)

    if token.is_max_usage_reached():
        return TokenValidationResult(False, REASON_MAX_USAGE_REACHED)

    # Conditional increment; usage_count never passes max_usage
    query = AccessToken.query.filter(AccessToken.id == token.id)
    if token.max_usage is not None:
        query = query.filter(AccessToken.usage_count < token.max_usage)
    updated = query.update(
        {
            AccessToken.usage_count: AccessToken.usage_count + 1,
            AccessToken.updated_at: utcnow(),
        },
        synchronize_session=False,
    )
    if not updated:
        db.session.rollback()
        return TokenValidationResult(False, REASON_MAX_USAGE_REACHED)

    db.session.add(AccessTokenLog(
        token_id=token.id,
        accessed_path=path or None,
        ip_address=ip or 'unknown',
        user_agent=user_agent or None,
    ))
    db.session.commit()
    db.session.refresh(token)

    logger.info(f"Access token {token.id} used ({token.usage_count}/{token.max_usage or '-'})")
    return TokenValidationResult(True, token=token)


def build_guest_grant(token):
    """Session payload for a verified token"""
    return {
        'token_id': token.id,
        'union_id': token.union_id,
        'access_scope': token.access_scope,
        'allowed_pages': list(token.allowed_pages or []),
    }


def _normalize_page(page):
    return '/' + str(page).strip().strip('/')


def guest_grant_allows(grant, union, path):
    """
    A token bound to a union admits only that union. With allowed_pages set,
    only the tenant home and pages under one of the listed prefixes are open.
    Prefixes are relative to the tenant, e.g. "/notice".
    """
    if not grant:
        return False

    if grant.get('union_id') and grant['union_id'] != union.id:
        return False

    allowed_pages = grant.get('allowed_pages') or []
    if not allowed_pages:
        return True

    segments = [s for s in path.split('/') if s]
    remainder = '/' + '/'.join(segments[1:])
    if remainder == '/':
        return True

    for page in allowed_pages:
        prefix = _normalize_page(page)
        if prefix == '/' or remainder == prefix or remainder.startswith(prefix + '/'):
            return True
    return False
