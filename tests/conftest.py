"""
Test configuration and shared fixtures for Johapon tests.

This file contains:
- Centralized test configuration
- Shared fixtures (unions, identities, member profiles)
- Session helpers for logging a test client in
"""

import pytest
from johapon import create_app
from johapon.models import db, Union, AuthIdentity, User, UserAuthLink, UserPropertyUnit
from johapon.models.user import (
    ROLE_SYSTEM_ADMIN, ROLE_ADMIN, ROLE_USER, APPROVED, PENDING_APPROVAL,
)
from johapon.utils.auth_utils import hash_password, SESSION_IDENTITY_KEY


# Centralized test configuration
TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key',
    'JWT_SECRET_KEY': 'test-jwt-secret-key',
    'APP_BASE_URL': 'http://localhost:5000',
    'KAKAO_CLIENT_ID': 'kakao-client-id',
    'KAKAO_CLIENT_SECRET': 'kakao-client-secret',
    'NAVER_CLIENT_ID': 'naver-client-id',
    'NAVER_CLIENT_SECRET': 'naver-client-secret',
    'INTERNAL_API_KEY': 'internal-test-key',
    'INVITE_EXPIRES_HOURS': 72,
    'MAIL_SUPPRESS_SEND': True,
    'MAIL_DEFAULT_SENDER': 'test@example.com',
}

ADMIN_PASSWORD = 'AdminPass123'


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app(TEST_CONFIG)
    return app


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def app_context(app):
    """Create an application context for database operations."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    """Create a database session and clean up after tests."""
    db.create_all()
    yield db.session
    db.session.remove()
    db.drop_all()


def login(client, identity):
    """Put an auth identity in the test client's session"""
    with client.session_transaction() as sess:
        sess[SESSION_IDENTITY_KEY] = identity.id


def create_union(session, slug, name=None, is_active=True):
    union = Union(slug=slug, name=name or f'{slug} 재개발 조합', is_active=is_active)
    session.add(union)
    session.commit()
    return union


def create_identity(session, provider='kakao', provider_user_id=None, email=None, password=None):
    identity = AuthIdentity(
        provider=provider,
        provider_user_id=provider_user_id,
        email=email,
        password_hash=hash_password(password) if password else None,
    )
    session.add(identity)
    session.commit()
    return identity


def create_member(session, union, name='홍길동', identity=None, role=ROLE_USER,
                  status=APPROVED, phone_number='010-1234-5678', **fields):
    user = User(
        union_id=union.id if union else None,
        name=name,
        phone_number=phone_number,
        role=role,
        user_status=status,
        **fields,
    )
    session.add(user)
    session.flush()
    if identity is not None:
        session.add(UserAuthLink(auth_identity_id=identity.id, user_id=user.id, union_id=user.union_id))
    session.commit()
    return user


def add_unit(session, user, building_unit_id=None, pnu=None, ownership_type='OWNER', ratio=100,
             dong='101', ho='1001'):
    unit = UserPropertyUnit(
        user_id=user.id,
        building_unit_id=building_unit_id,
        pnu=pnu,
        dong=dong,
        ho=ho,
        property_address_jibun='서울시 성동구 행당동 1-1',
    )
    unit.set_ownership(ownership_type, ratio)
    session.add(unit)
    session.commit()
    return unit


@pytest.fixture
def union(db_session):
    return create_union(db_session, 'haengdang')


@pytest.fixture
def other_union(db_session):
    return create_union(db_session, 'oksu')


@pytest.fixture
def system_admin_identity(db_session):
    identity = create_identity(db_session, provider='email', email='root@johapon.kr',
                               password=ADMIN_PASSWORD)
    create_member(db_session, None, name='System Admin', identity=identity,
                  role=ROLE_SYSTEM_ADMIN, status=APPROVED, phone_number=None)
    return identity


@pytest.fixture
def union_admin_identity(db_session, union):
    identity = create_identity(db_session, provider_user_id='kakao-admin')
    create_member(db_session, union, name='김관리', identity=identity, role=ROLE_ADMIN)
    return identity


@pytest.fixture
def member_identity(db_session, union):
    identity = create_identity(db_session, provider_user_id='kakao-member')
    create_member(db_session, union, name='이조합', identity=identity)
    return identity


@pytest.fixture
def pending_member(db_session, union):
    identity = create_identity(db_session, provider_user_id='kakao-pending')
    return create_member(db_session, union, name='박대기', identity=identity,
                         status=PENDING_APPROVAL, phone_number='010-2222-3333',
                         property_address='행당동 1-1')
