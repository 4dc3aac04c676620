"""
Guest access token tests

Covers verification order (not_found → deleted → expired → max_usage_reached),
usage counting and access logging, the guest grant page check, and the
/auth/verify-token route.
"""

import pytest
from datetime import timedelta
from johapon.models import AccessToken, AccessTokenLog
from johapon.models.utils import utcnow
from johapon.utils.access_tokens import (
    verify_access_token, build_guest_grant, guest_grant_allows,
    REASON_NOT_FOUND, REASON_DELETED, REASON_EXPIRED, REASON_MAX_USAGE_REACHED,
)
from johapon.utils.auth_utils import SESSION_GUEST_KEY


pytestmark = pytest.mark.timeout(30)


def make_token(session, **kwargs):
    token = AccessToken(kwargs.pop('name', 'Site tour'), **kwargs)
    session.add(token)
    session.commit()
    return token


class TestVerifyAccessToken:
    """verify_access_token()"""

    def test_unknown_key(self, db_session):
        result = verify_access_token('does-not-exist')
        assert not result.valid
        assert result.reason == REASON_NOT_FOUND

    def test_empty_key(self, db_session):
        assert verify_access_token(None).reason == REASON_NOT_FOUND
        assert verify_access_token('').reason == REASON_NOT_FOUND

    def test_deleted_token(self, db_session):
        token = make_token(db_session)
        token.soft_delete()
        db_session.commit()

        assert verify_access_token(token.key).reason == REASON_DELETED

    def test_expired_token(self, db_session):
        token = make_token(db_session, expires_in_days=1)
        token.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert verify_access_token(token.key).reason == REASON_EXPIRED

    def test_deleted_reported_before_expired(self, db_session):
        token = make_token(db_session, expires_in_days=1)
        token.expires_at = utcnow() - timedelta(days=1)
        token.soft_delete()
        db_session.commit()

        assert verify_access_token(token.key).reason == REASON_DELETED

    def test_valid_token_counts_use_and_logs_access(self, db_session):
        token = make_token(db_session, max_usage=5)

        result = verify_access_token(token.key, path='/haengdang/notice', ip='10.0.0.1',
                                     user_agent='pytest')

        assert result.valid
        assert result.token.usage_count == 1
        log = AccessTokenLog.query.filter_by(token_id=token.id).one()
        assert log.accessed_path == '/haengdang/notice'
        assert log.ip_address == '10.0.0.1'
        assert log.user_agent == 'pytest'

    def test_missing_ip_logged_as_unknown(self, db_session):
        token = make_token(db_session)
        verify_access_token(token.key)
        assert AccessTokenLog.query.filter_by(token_id=token.id).one().ip_address == 'unknown'

    def test_usage_cap(self, db_session):
        token = make_token(db_session, max_usage=2)

        assert verify_access_token(token.key).valid
        assert verify_access_token(token.key).valid
        result = verify_access_token(token.key)

        assert not result.valid
        assert result.reason == REASON_MAX_USAGE_REACHED
        db_session.refresh(token)
        assert token.usage_count == 2
        assert AccessTokenLog.query.filter_by(token_id=token.id).count() == 2

    def test_unlimited_token(self, db_session):
        token = make_token(db_session)
        for _ in range(5):
            assert verify_access_token(token.key).valid
        db_session.refresh(token)
        assert token.usage_count == 5


class TestAccessTokenModel:

    def test_is_active_flags(self, db_session):
        token = make_token(db_session, max_usage=1)
        assert token.is_active()

        token.usage_count = 1
        assert not token.is_active()

        token.usage_count = 0
        token.expires_at = utcnow() - timedelta(seconds=1)
        assert not token.is_active()

    def test_key_is_url_safe(self, db_session):
        token = make_token(db_session)
        assert len(token.key) == 32
        assert all(c.isalnum() or c in '_-' for c in token.key)


class TestGuestGrant:
    """guest_grant_allows()"""

    def test_any_page_without_restrictions(self, db_session, union):
        token = make_token(db_session)
        grant = build_guest_grant(token)
        assert guest_grant_allows(grant, union, '/haengdang/board/1')

    def test_union_binding(self, db_session, union, other_union):
        token = make_token(db_session, union_id=union.id)
        grant = build_guest_grant(token)
        assert guest_grant_allows(grant, union, '/haengdang')
        assert not guest_grant_allows(grant, other_union, '/oksu')

    def test_allowed_pages(self, db_session, union):
        token = make_token(db_session, allowed_pages=['/notice', 'schedule'])
        grant = build_guest_grant(token)

        assert guest_grant_allows(grant, union, '/haengdang')
        assert guest_grant_allows(grant, union, '/haengdang/notice')
        assert guest_grant_allows(grant, union, '/haengdang/notice/12')
        assert guest_grant_allows(grant, union, '/haengdang/schedule')
        assert not guest_grant_allows(grant, union, '/haengdang/members')
        assert not guest_grant_allows(grant, union, '/haengdang/noticeboard')

    def test_no_grant(self, union):
        assert not guest_grant_allows(None, union, '/haengdang')


class TestVerifyTokenRoute:
    """POST /auth/verify-token"""

    def test_valid_token_opens_guest_session(self, client, db_session, union):
        token = make_token(db_session, union_id=union.id)

        response = client.post('/auth/verify-token', json={'tokenKey': token.key, 'path': '/haengdang'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['valid'] is True
        assert data['token']['id'] == token.id
        with client.session_transaction() as sess:
            assert sess[SESSION_GUEST_KEY]['token_id'] == token.id
            assert sess[SESSION_GUEST_KEY]['union_id'] == union.id

    def test_invalid_token(self, client, db_session):
        response = client.post('/auth/verify-token', json={'tokenKey': 'nope'})

        assert response.status_code == 200
        assert response.get_json() == {'valid': False, 'reason': 'not_found'}
        with client.session_transaction() as sess:
            assert SESSION_GUEST_KEY not in sess
