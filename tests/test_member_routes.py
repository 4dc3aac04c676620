"""
Member lifecycle route tests

POST /api/members/{approve,reject,cancel-rejection,block,unblock} and the audit
rows they write, plus member invitations.
"""

import pytest
from unittest.mock import patch
from johapon.models import db, User, MemberAccessLog, MemberInvite
from johapon.models.user import APPROVED, PENDING_APPROVAL, REJECTED, ROLE_USER, PENDING_PROFILE
from johapon.utils import member_lifecycle
from johapon.utils.member_lifecycle import MemberLifecycleError
from conftest import login, create_member


pytestmark = pytest.mark.timeout(30)


def post(client, action, **body):
    return client.post(f'/api/members/{action}', json=body)


class TestAuthorization:
    """Parameters are checked first, then the caller"""

    def test_missing_parameters(self, client, db_session, union_admin_identity):
        login(client, union_admin_identity)
        response = post(client, 'approve', unionId='x')

        assert response.status_code == 400
        data = response.get_json()
        assert data['code'] == 'MISSING_PARAMETERS'
        assert data['missing'] == ['memberId']

    def test_anonymous(self, client, db_session, union, pending_member):
        response = post(client, 'approve', unionId=union.id, memberId=pending_member.id)
        assert response.status_code == 401

    def test_plain_member_forbidden(self, client, db_session, union, member_identity, pending_member):
        login(client, member_identity)
        response = post(client, 'approve', unionId=union.id, memberId=pending_member.id)

        assert response.status_code == 403
        assert response.get_json()['code'] == 'FORBIDDEN'

    def test_admin_of_other_union(self, client, db_session, union, other_union, union_admin_identity):
        login(client, union_admin_identity)
        outsider = create_member(db_session, other_union, status=PENDING_APPROVAL)

        response = post(client, 'approve', unionId=other_union.id, memberId=outsider.id)

        assert response.status_code == 403
        assert response.get_json()['code'] == 'UNION_ACCESS_DENIED'


class TestApproveReject:

    def test_approve(self, client, db_session, union, union_admin_identity, pending_member):
        login(client, union_admin_identity)

        response = post(client, 'approve', unionId=union.id, memberId=pending_member.id)

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['previous_status'] == PENDING_APPROVAL
        assert data['new_status'] == APPROVED

        member = db.session.get(User, pending_member.id)
        assert member.user_status == APPROVED
        assert member.role == ROLE_USER
        assert member.approved_at is not None

        log = MemberAccessLog.query.filter_by(action='APPROVE_MEMBER').one()
        assert log.status == 'SUCCESS'
        assert log.target_user_id == pending_member.id
        assert log.details['previous_status'] == PENDING_APPROVAL

    def test_approve_twice_fails_and_is_audited(self, client, db_session, union, union_admin_identity,
                                                pending_member):
        login(client, union_admin_identity)
        post(client, 'approve', unionId=union.id, memberId=pending_member.id)

        response = post(client, 'approve', unionId=union.id, memberId=pending_member.id)

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_STATUS'
        failed = MemberAccessLog.query.filter_by(action='APPROVE_MEMBER_FAILED').one()
        assert failed.status == 'FAILURE'

    def test_member_of_other_union_not_found(self, client, db_session, union, other_union,
                                             system_admin_identity):
        login(client, system_admin_identity)
        outsider = create_member(db_session, other_union, status=PENDING_APPROVAL)

        response = post(client, 'approve', unionId=union.id, memberId=outsider.id)

        assert response.status_code == 404
        assert response.get_json()['code'] == 'MEMBER_NOT_FOUND'

    def test_reject_with_reason(self, client, db_session, union, union_admin_identity, pending_member):
        login(client, union_admin_identity)

        response = post(client, 'reject', unionId=union.id, memberId=pending_member.id,
                        reason='서류 미비')

        assert response.status_code == 200
        member = db.session.get(User, pending_member.id)
        assert member.user_status == REJECTED
        assert member.rejected_reason == '서류 미비'
        assert member.rejected_at is not None

    def test_cancel_rejection(self, client, db_session, union, union_admin_identity, pending_member):
        login(client, union_admin_identity)
        post(client, 'reject', unionId=union.id, memberId=pending_member.id, reason='오기재')

        response = post(client, 'cancel-rejection', unionId=union.id, memberId=pending_member.id)

        assert response.status_code == 200
        member = db.session.get(User, pending_member.id)
        assert member.user_status == PENDING_APPROVAL
        assert member.rejected_reason is None
        assert member.rejected_at is None

    def test_cancel_rejection_requires_rejected(self, client, db_session, union, union_admin_identity,
                                                pending_member):
        login(client, union_admin_identity)
        response = post(client, 'cancel-rejection', unionId=union.id, memberId=pending_member.id)
        assert response.status_code == 400


class TestBlockUnblock:

    def test_block_requires_reason(self, client, db_session, union, union_admin_identity):
        login(client, union_admin_identity)
        member = create_member(db_session, union, name='최승인')

        response = post(client, 'block', unionId=union.id, memberId=member.id)

        assert response.status_code == 400
        assert response.get_json()['code'] == 'MISSING_PARAMETERS'
        assert MemberAccessLog.query.count() == 0

    def test_block_and_unblock(self, client, db_session, union, union_admin_identity):
        login(client, union_admin_identity)
        member = create_member(db_session, union, name='최승인')

        response = post(client, 'block', unionId=union.id, memberId=member.id, reason='허위 정보')
        assert response.status_code == 200
        blocked = db.session.get(User, member.id)
        assert blocked.is_blocked is True
        assert blocked.blocked_reason == '허위 정보'

        assert post(client, 'block', unionId=union.id, memberId=member.id,
                    reason='again').status_code == 400

        response = post(client, 'unblock', unionId=union.id, memberId=member.id)
        assert response.status_code == 200
        unblocked = db.session.get(User, member.id)
        assert unblocked.is_blocked is False
        assert unblocked.blocked_reason is None
        assert unblocked.blocked_at is None

    def test_block_pending_member_refused(self, client, db_session, union, union_admin_identity,
                                          pending_member):
        login(client, union_admin_identity)
        response = post(client, 'block', unionId=union.id, memberId=pending_member.id, reason='x')
        assert response.status_code == 400

    def test_unblock_requires_blocked(self, client, db_session, union, union_admin_identity):
        login(client, union_admin_identity)
        member = create_member(db_session, union, name='최승인')
        assert post(client, 'unblock', unionId=union.id, memberId=member.id).status_code == 400


class TestConcurrentTransition:
    """A status change between read and update is reported as 409"""

    def test_lost_race(self, db_session, union, pending_member):
        admin = create_member(db_session, union, name='관리자', role='ADMIN')
        assert pending_member.user_status == PENDING_APPROVAL

        # Another admin approves; the loaded profile still reads PENDING_APPROVAL
        User.query.filter_by(id=pending_member.id).update(
            {User.user_status: APPROVED}, synchronize_session=False)

        with pytest.raises(MemberLifecycleError) as exc_info:
            member_lifecycle.approve(union.id, pending_member.id, admin)

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == 'STATUS_CHANGED'
        assert MemberAccessLog.query.filter_by(action='APPROVE_MEMBER_FAILED').count() == 1


class TestReapply:
    """POST /auth/reapply"""

    def test_rejected_member_reapplies(self, client, db_session, union, pending_member):
        pending_member.user_status = REJECTED
        pending_member.rejected_reason = '서류 미비'
        db_session.commit()
        login(client, pending_member.auth_links[0].auth_identity)

        response = client.post('/auth/reapply', json={'slug': 'haengdang'})

        assert response.status_code == 200
        member = db.session.get(User, pending_member.id)
        assert member.user_status == PENDING_PROFILE
        assert member.rejected_reason is None

    def test_only_rejected_may_reapply(self, client, db_session, union, pending_member):
        login(client, pending_member.auth_links[0].auth_identity)
        response = client.post('/auth/reapply', json={'slug': 'haengdang'})
        assert response.status_code == 400


class TestMemberInvites:
    """POST /api/members/invites"""

    def test_admin_creates_invite(self, client, db_session, union, union_admin_identity):
        login(client, union_admin_identity)

        with patch('johapon.utils.invites.send_invite_email', return_value=True) as send:
            response = client.post('/api/members/invites', json={
                'unionId': union.id,
                'name': '정초대',
                'email': 'Invitee@Example.com',
                'property_address': '행당동 2-3',
            })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['email_sent'] is True
        invite = MemberInvite.query.filter_by(invite_token=data['invite_token']).one()
        assert invite.email == 'invitee@example.com'
        assert invite.property_address == '행당동 2-3'
        assert invite.status == 'PENDING'
        send.assert_called_once_with(invite)

    def test_member_cannot_invite(self, client, db_session, union, member_identity):
        login(client, member_identity)
        response = client.post('/api/members/invites', json={'unionId': union.id, 'name': '정초대'})
        assert response.status_code == 403
