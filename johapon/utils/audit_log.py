"""
Member Audit Log

record_member_action() writes one member_access_logs row per admin action attempt.
Failures are suffixed "_FAILED". Audit writes never fail the request: errors are
logged and the audit row is dropped.
"""

import logging
import time

from flask import has_request_context, request

from ..models import db, MemberAccessLog
from .api_utils import get_client_ip
from .prom_metrics import observe_member_action


logger = logging.getLogger(__name__)

STATUS_SUCCESS = 'SUCCESS'
STATUS_FAILURE = 'FAILURE'


class ActionTimer:
    """Milliseconds since construction"""

    def __init__(self):
        self.started = time.monotonic()

    def elapsed_ms(self):
        return int((time.monotonic() - self.started) * 1000)


def record_member_action(union_id, actor_id, action, target_user_id, status,
                         metadata=None, duration_ms=None, action_type='WRITE'):
    if status == STATUS_FAILURE and not action.endswith('_FAILED'):
        action = f'{action}_FAILED'

    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = get_client_ip() or 'unknown'
        user_agent = request.headers.get('User-Agent', 'unknown')

    observe_member_action(action, status)

    try:
        db.session.add(MemberAccessLog(
            union_id=union_id,
            user_id=actor_id,
            action=action,
            action_type=action_type,
            target_user_id=target_user_id,
            details=metadata or {},
            ip_address=ip_address,
            user_agent=user_agent,
            status=status,
            duration_ms=duration_ms,
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to write audit log {action} for {target_user_id}: {str(e)}")
