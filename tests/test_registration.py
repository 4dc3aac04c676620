"""
Registration tests: POST /auth/register

A logged-in identity creates its profile in a union. Plain registrations wait
for approval; an admin invite makes the registrant an approved union admin.
"""

import pytest
from datetime import timedelta
from unittest.mock import patch
from johapon.models import User, UserAuthLink, UserPropertyUnit, AdminInvite, MemberInvite
from johapon.models.user import APPROVED, PENDING_APPROVAL, ROLE_ADMIN, ROLE_USER
from johapon.models.utils import utcnow
from johapon.utils.invites import create_admin_invite, create_member_invite, find_valid_invite
from conftest import login, create_identity, create_union


pytestmark = pytest.mark.timeout(30)


@pytest.fixture
def new_identity(db_session):
    return create_identity(db_session, provider_user_id='kakao-newcomer')


def register(client, **overrides):
    body = {
        'slug': 'haengdang',
        'name': '신규회원',
        'phone_number': '01055557777',
        'email': 'New@Member.kr',
        'property_address': '행당동 10-1',
        'property_units': [
            {'building_unit_id': 'bld-1', 'dong': '101동', 'ho': '지하1호', 'land_ownership_ratio': 100},
        ],
    }
    body.update(overrides)
    return client.post('/auth/register', json=body)


class TestRegister:

    def test_requires_login(self, client, db_session, union):
        assert register(client).status_code == 401

    def test_register_member(self, client, db_session, union, new_identity):
        login(client, new_identity)

        response = register(client)

        assert response.status_code == 201
        data = response.get_json()
        assert data['user']['user_status'] == PENDING_APPROVAL
        assert data['user']['phone_number'] == '010-5555-7777'
        assert data['user']['email'] == 'new@member.kr'
        assert data['redirect_url'] == 'http://localhost:5000/haengdang?status=pending'

        user = User.query.filter_by(name='신규회원').one()
        assert user.role == ROLE_USER
        assert UserAuthLink.query.filter_by(auth_identity_id=new_identity.id, user_id=user.id).count() == 1
        unit = UserPropertyUnit.query.filter_by(user_id=user.id).one()
        assert unit.dong == '101'
        assert unit.ho == 'B1'
        assert unit.ownership_type == 'OWNER'
        assert unit.land_ownership_ratio == 100

    def test_basement_flag(self, client, db_session, union, new_identity):
        login(client, new_identity)

        register(client, property_units=[{'building_unit_id': 'bld-2', 'dong': '102', 'ho': '3',
                                          'is_basement': True}])

        assert UserPropertyUnit.query.one().ho == 'B3'

    def test_duplicate_registration(self, client, db_session, union, new_identity):
        login(client, new_identity)
        register(client)

        response = register(client)

        assert response.status_code == 409
        assert response.get_json()['code'] == 'ALREADY_REGISTERED'

    def test_concurrent_registration_hits_unique_link(self, client, db_session, union, new_identity):
        login(client, new_identity)
        register(client)

        # Second request passed the profile lookup before the first one committed
        with patch('johapon.routes.auth.resolve_profile', return_value=None):
            response = register(client)

        assert response.status_code == 409
        assert response.get_json()['code'] == 'ALREADY_REGISTERED'
        assert User.query.filter_by(name='신규회원').count() == 1
        assert UserPropertyUnit.query.count() == 1
        assert UserAuthLink.query.filter_by(auth_identity_id=new_identity.id, union_id=union.id).count() == 1

    def test_same_identity_in_second_union(self, client, db_session, union, other_union, new_identity):
        login(client, new_identity)
        register(client)

        response = register(client, slug='oksu')

        assert response.status_code == 201
        assert User.query.join(UserAuthLink).filter(
            UserAuthLink.auth_identity_id == new_identity.id).count() == 2

    def test_missing_fields(self, client, db_session, union, new_identity):
        login(client, new_identity)
        response = register(client, phone_number='')

        assert response.status_code == 400
        assert response.get_json()['missing'] == ['phone_number']

    def test_invalid_phone(self, client, db_session, union, new_identity):
        login(client, new_identity)
        response = register(client, phone_number='12345')

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_PHONE'

    def test_unknown_or_inactive_union(self, client, db_session, new_identity):
        create_union(db_session, 'closed', is_active=False)
        login(client, new_identity)

        assert register(client, slug='nowhere').status_code == 404
        assert register(client, slug='closed').status_code == 404

    @pytest.mark.parametrize('unit', [
        {'building_unit_id': 'b', 'ownership_type': 'TENANT'},
        {'building_unit_id': 'b', 'land_ownership_ratio': 120},
    ])
    def test_invalid_property_unit(self, client, db_session, union, new_identity, unit):
        login(client, new_identity)

        response = register(client, property_units=[unit])

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_PROPERTY_UNIT'
        assert User.query.filter_by(name='신규회원').count() == 0


class TestInvitedRegistration:

    def test_admin_invite(self, client, db_session, union, new_identity):
        invite, _ = create_admin_invite(union, name='신규회원')
        login(client, new_identity)

        response = register(client, invite_token=invite.invite_token)

        assert response.status_code == 201
        user = User.query.filter_by(name='신규회원').one()
        assert user.role == ROLE_ADMIN
        assert user.user_status == APPROVED
        assert user.approved_at is not None
        assert AdminInvite.query.one().status == 'USED'
        assert response.get_json()['redirect_url'] == 'http://localhost:5000/haengdang'

    def test_member_invite_still_needs_approval(self, client, db_session, union, new_identity):
        invite, _ = create_member_invite(union, name='신규회원')
        login(client, new_identity)

        response = register(client, member_invite_token=invite.invite_token)

        assert response.status_code == 201
        assert response.get_json()['user']['user_status'] == PENDING_APPROVAL
        assert MemberInvite.query.one().status == 'USED'

    def test_invite_for_other_union(self, client, db_session, union, other_union, new_identity):
        invite, _ = create_admin_invite(other_union, name='신규회원')
        login(client, new_identity)

        response = register(client, invite_token=invite.invite_token)

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_INVITE'
        assert AdminInvite.query.one().status == 'PENDING'

    def test_used_invite(self, client, db_session, union, new_identity):
        invite, _ = create_admin_invite(union)
        invite.mark_used()
        db_session.commit()
        login(client, new_identity)

        assert register(client, invite_token=invite.invite_token).status_code == 400

    def test_invite_unused_when_units_invalid(self, client, db_session, union, new_identity):
        invite, _ = create_admin_invite(union)
        login(client, new_identity)

        response = register(client, invite_token=invite.invite_token,
                            property_units=[{'building_unit_id': 'b', 'land_ownership_ratio': -1}])

        assert response.status_code == 400
        assert AdminInvite.query.one().status == 'PENDING'


class TestInviteLookup:
    """find_valid_invite()"""

    def test_expired_invite_marked_expired(self, db_session, union):
        invite, _ = create_member_invite(union)
        invite.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert find_valid_invite(MemberInvite, invite.invite_token) is None
        assert MemberInvite.query.one().status == 'EXPIRED'

    def test_unknown_token(self, db_session):
        assert find_valid_invite(AdminInvite, 'nope') is None
        assert find_valid_invite(AdminInvite, None) is None

    def test_invite_expiry_from_config(self, app, db_session, union):
        app.config['INVITE_EXPIRES_HOURS'] = 1
        invite, _ = create_admin_invite(union)
        assert invite.expires_at <= utcnow() + timedelta(hours=1)
