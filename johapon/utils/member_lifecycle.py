"""
Member Lifecycle

FLOW OVERVIEW
- approve(union_id, member_id, actor)            PENDING_APPROVAL → APPROVED (role USER)
- reject(union_id, member_id, actor, reason)     PENDING_APPROVAL → REJECTED
- cancel_rejection(union_id, member_id, actor)   REJECTED → PENDING_APPROVAL
- block / unblock(union_id, member_id, actor)    APPROVED members only
- reapply(user)                                  own REJECTED profile → PENDING_PROFILE

Each admin transition is a conditional UPDATE guarded by the expected status, so a
concurrent change is refused instead of overwritten. Every attempt is written to the
audit log, successful or not.
"""

import logging
from dataclasses import dataclass

from ..models import db, User
from ..models.user import PENDING_APPROVAL, APPROVED, REJECTED, PENDING_PROFILE, ROLE_USER
from ..models.utils import utcnow
from .audit_log import record_member_action, ActionTimer, STATUS_SUCCESS, STATUS_FAILURE


logger = logging.getLogger(__name__)

ACTION_APPROVE = 'APPROVE_MEMBER'
ACTION_REJECT = 'REJECT_MEMBER'
ACTION_CANCEL_REJECTION = 'CANCEL_REJECTION'
ACTION_BLOCK = 'BLOCK_MEMBER'
ACTION_UNBLOCK = 'UNBLOCK_MEMBER'


class MemberLifecycleError(Exception):
    def __init__(self, status_code, code, message):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


@dataclass
class LifecycleResult:
    member_id: str
    previous_status: str
    new_status: str
    message: str

    def to_dict(self):
        return {
            'success': True,
            'message': self.message,
            'member_id': self.member_id,
            'previous_status': self.previous_status,
            'new_status': self.new_status,
        }


def _transition(union_id, member_id, actor, action, expected_status, changes,
                success_message, invalid_message, blocked=None, metadata=None):
    timer = ActionTimer()
    actor_id = actor.id if actor is not None else None

    def fail(status_code, code, message, details):
        record_member_action(union_id, actor_id, action, member_id, STATUS_FAILURE,
                             metadata=details, duration_ms=timer.elapsed_ms())
        raise MemberLifecycleError(status_code, code, message)

    member = User.query.filter_by(id=member_id, union_id=union_id).first()
    if member is None:
        fail(404, 'MEMBER_NOT_FOUND', '사용자를 찾을 수 없습니다',
             {'error': 'User not found', 'previous_status': None})

    previous_status = member.user_status
    if previous_status != expected_status or (blocked is not None and member.is_blocked != blocked):
        fail(400, 'INVALID_STATUS', invalid_message,
             {'error': 'Invalid user status', 'previous_status': previous_status,
              'is_blocked': member.is_blocked})

    changes = dict(changes)
    changes[User.updated_at] = utcnow()
    query = User.query.filter(
        User.id == member_id,
        User.union_id == union_id,
        User.user_status == expected_status,
    )
    if blocked is not None:
        query = query.filter(User.is_blocked == blocked)
    updated = query.update(changes, synchronize_session='fetch')
    if not updated:
        db.session.rollback()
        fail(409, 'STATUS_CHANGED', '다른 관리자가 이미 상태를 변경했습니다.',
             {'error': 'Concurrent status change', 'previous_status': previous_status})

    db.session.commit()

    new_status = changes.get(User.user_status, previous_status)
    details = {'previous_status': previous_status, 'new_status': new_status}
    details.update(metadata or {})
    record_member_action(union_id, actor_id, action, member_id, STATUS_SUCCESS,
                         metadata=details, duration_ms=timer.elapsed_ms())
    logger.info(f"{action}: member {member_id} in union {union_id} by {actor_id}")

    return LifecycleResult(member_id, previous_status, new_status, success_message)


def approve(union_id, member_id, actor):
    now = utcnow()
    return _transition(
        union_id, member_id, actor, ACTION_APPROVE, PENDING_APPROVAL,
        {
            User.user_status: APPROVED,
            User.role: ROLE_USER,
            User.approved_at: now,
            User.rejected_reason: None,
            User.rejected_at: None,
        },
        '멤버가 승인되었습니다',
        '이 사용자는 현재 승인할 수 없는 상태입니다.',
    )


def reject(union_id, member_id, actor, reason=None):
    reason = (reason or '').strip() or None
    return _transition(
        union_id, member_id, actor, ACTION_REJECT, PENDING_APPROVAL,
        {
            User.user_status: REJECTED,
            User.rejected_reason: reason,
            User.rejected_at: utcnow(),
        },
        '멤버가 거부되었습니다',
        '이 사용자는 현재 거부할 수 없는 상태입니다.',
        metadata={'reason': reason},
    )


def cancel_rejection(union_id, member_id, actor):
    return _transition(
        union_id, member_id, actor, ACTION_CANCEL_REJECTION, REJECTED,
        {
            User.user_status: PENDING_APPROVAL,
            User.rejected_reason: None,
            User.rejected_at: None,
        },
        '반려가 취소되었습니다. 승인 대기 상태로 변경되었습니다.',
        '반려 상태인 사용자만 반려 취소할 수 있습니다.',
    )


def block(union_id, member_id, actor, reason):
    reason = (reason or '').strip()
    if not reason:
        raise MemberLifecycleError(400, 'MISSING_PARAMETERS', '차단 사유를 입력해주세요.')
    return _transition(
        union_id, member_id, actor, ACTION_BLOCK, APPROVED,
        {
            User.is_blocked: True,
            User.blocked_at: utcnow(),
            User.blocked_reason: reason,
        },
        '멤버가 차단되었습니다',
        '승인된 조합원만 차단할 수 있습니다.',
        blocked=False,
        metadata={'reason': reason},
    )


def unblock(union_id, member_id, actor):
    return _transition(
        union_id, member_id, actor, ACTION_UNBLOCK, APPROVED,
        {
            User.is_blocked: False,
            User.blocked_at: None,
            User.blocked_reason: None,
        },
        '차단이 해제되었습니다',
        '차단된 조합원만 차단 해제할 수 있습니다.',
        blocked=True,
    )


def reapply(member):
    """A rejected member starts over from the profile form"""
    if member.user_status != REJECTED:
        raise MemberLifecycleError(400, 'INVALID_STATUS', '반려된 사용자만 재신청할 수 있습니다.')

    updated = User.query.filter(
        User.id == member.id,
        User.user_status == REJECTED,
    ).update(
        {
            User.user_status: PENDING_PROFILE,
            User.rejected_reason: None,
            User.rejected_at: None,
            User.updated_at: utcnow(),
        },
        synchronize_session='fetch',
    )
    if not updated:
        db.session.rollback()
        raise MemberLifecycleError(409, 'STATUS_CHANGED', '상태가 이미 변경되었습니다.')
    db.session.commit()
    logger.info(f"Member {member.id} reapplied")
    return member
