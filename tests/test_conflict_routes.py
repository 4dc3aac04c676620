"""
Conflict API tests: GET /api/members/check-conflict and POST /api/members/resolve-conflict
"""

import pytest
from johapon.models import db, User, UserPropertyUnit, MemberAccessLog
from johapon.models.user import APPROVED, TRANSFERRED
from johapon.utils.auth_utils import INTERNAL_API_KEY_HEADER
from conftest import login, create_identity, create_member, add_unit


pytestmark = pytest.mark.timeout(30)

BUILDING = 'bld-102-301'


@pytest.fixture
def owner(db_session, union):
    user = create_member(db_session, union, name='김소유')
    add_unit(db_session, user, building_unit_id=BUILDING)
    return user


@pytest.fixture
def registrant(db_session, pending_member):
    add_unit(db_session, pending_member, building_unit_id=BUILDING)
    return pending_member


class TestCheckConflictRoute:

    def test_requires_user_id(self, client, db_session, union_admin_identity):
        login(client, union_admin_identity)
        response = client.get('/api/members/check-conflict')
        assert response.status_code == 400

    def test_anonymous(self, client, db_session, registrant):
        response = client.get(f'/api/members/check-conflict?userId={registrant.id}')
        assert response.status_code == 401

    def test_unknown_user(self, client, db_session, union_admin_identity):
        login(client, union_admin_identity)
        response = client.get('/api/members/check-conflict?userId=missing')
        assert response.status_code == 404

    def test_admin_sees_conflicts(self, client, db_session, union_admin_identity, owner, registrant):
        login(client, union_admin_identity)

        response = client.get(f'/api/members/check-conflict?userId={registrant.id}')

        assert response.status_code == 200
        data = response.get_json()
        assert data['hasConflict'] is True
        assert data['conflicts'][0]['existingOwner']['userId'] == owner.id
        assert data['comparisons'][0]['existing']['name'] == '김소유'

    def test_admin_of_other_union_denied(self, client, db_session, other_union, registrant):
        identity = create_identity(db_session, provider_user_id='kakao-oksu-admin')
        create_member(db_session, other_union, name='옥수관리', identity=identity, role='ADMIN')
        login(client, identity)

        response = client.get(f'/api/members/check-conflict?userId={registrant.id}')

        assert response.status_code == 403
        assert response.get_json()['code'] == 'UNION_ACCESS_DENIED'

    def test_internal_service_key(self, client, db_session, owner, registrant):
        response = client.get(f'/api/members/check-conflict?userId={registrant.id}',
                              headers={INTERNAL_API_KEY_HEADER: 'internal-test-key'})

        assert response.status_code == 200
        assert response.get_json()['hasConflict'] is True

    def test_wrong_service_key(self, client, db_session, registrant):
        response = client.get(f'/api/members/check-conflict?userId={registrant.id}',
                              headers={INTERNAL_API_KEY_HEADER: 'guess'})
        assert response.status_code == 401


class TestResolveConflictRoute:

    def _resolve(self, client, **body):
        return client.post('/api/members/resolve-conflict', json=body)

    def test_transfer(self, client, db_session, union_admin_identity, owner, registrant):
        login(client, union_admin_identity)
        unit_id = UserPropertyUnit.query.filter_by(user_id=registrant.id).first().id

        response = self._resolve(client, action='transfer', pendingUserId=registrant.id,
                                 existingUserId=owner.id, conflictedPropertyUnitId=unit_id)

        assert response.status_code == 200
        assert response.get_json() == {
            'success': True,
            'message': '소유권이 이전되었습니다.',
            'resolvedUserId': registrant.id,
        }
        assert db.session.get(User, owner.id).user_status == TRANSFERRED
        assert db.session.get(User, registrant.id).user_status == APPROVED

        log = MemberAccessLog.query.filter_by(action='RESOLVE_CONFLICT').one()
        assert log.details['action'] == 'transfer'
        assert log.details['existing_user_id'] == owner.id

    def test_refused_resolution(self, client, db_session, union_admin_identity, owner, registrant):
        login(client, union_admin_identity)
        unit_id = UserPropertyUnit.query.filter_by(user_id=registrant.id).first().id

        response = self._resolve(client, action='add_co_owner', pendingUserId=registrant.id,
                                 existingUserId=owner.id, conflictedPropertyUnitId=unit_id,
                                 shareRatioForExisting=80, shareRatioForNew=30)

        assert response.status_code == 400
        assert response.get_json()['success'] is False
        assert MemberAccessLog.query.filter_by(action='RESOLVE_CONFLICT_FAILED').count() == 1

    def test_invalid_action(self, client, db_session, union_admin_identity, owner, registrant):
        login(client, union_admin_identity)

        response = self._resolve(client, action='merge', pendingUserId=registrant.id,
                                 existingUserId=owner.id)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid action'

    def test_invalid_ratio(self, client, db_session, union_admin_identity, owner, registrant):
        login(client, union_admin_identity)

        response = self._resolve(client, action='add_co_owner', pendingUserId=registrant.id,
                                 existingUserId=owner.id, shareRatioForNew=-5)

        assert response.status_code == 400

    def test_missing_parameters(self, client, db_session, union_admin_identity):
        login(client, union_admin_identity)
        response = self._resolve(client, action='update')
        assert response.status_code == 400
        assert set(response.get_json()['missing']) == {'pendingUserId', 'existingUserId'}

    def test_missing_existing_user(self, client, db_session, union_admin_identity, registrant):
        login(client, union_admin_identity)

        response = self._resolve(client, action='update', pendingUserId=registrant.id,
                                 existingUserId='missing')

        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'
        log = MemberAccessLog.query.filter_by(action='RESOLVE_CONFLICT_FAILED').one()
        assert log.target_user_id == registrant.id
        assert log.details == {'action': 'update', 'error': '기존 사용자 정보를 찾을 수 없습니다.'}
