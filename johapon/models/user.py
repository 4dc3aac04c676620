"""
User Models

FLOW OVERVIEW
- AuthIdentity: a login identity (Kakao, Naver, or email/password for the system admin).
- User: a member profile inside one union. One identity may hold one profile per union.
- UserAuthLink: joins an identity to each of its per-union profiles.

Status transitions live in the service modules; the helpers here only set fields and
never commit, so a caller can group several transitions in one transaction.
"""

from sqlalchemy.orm import validates
from .database import db
from .utils import generate_uuid, utcnow


# user_status values
PENDING_PROFILE = 'PENDING_PROFILE'
PENDING_APPROVAL = 'PENDING_APPROVAL'
APPROVED = 'APPROVED'
REJECTED = 'REJECTED'
PRE_REGISTERED = 'PRE_REGISTERED'
TRANSFERRED = 'TRANSFERRED'

USER_STATUSES = (
    PENDING_PROFILE, PENDING_APPROVAL, APPROVED, REJECTED, PRE_REGISTERED, TRANSFERRED,
)

# role values
ROLE_SYSTEM_ADMIN = 'SYSTEM_ADMIN'
ROLE_ADMIN = 'ADMIN'
ROLE_USER = 'USER'

PROVIDERS = ('kakao', 'naver', 'email')


class AuthIdentity(db.Model):
    """Login identity issued by an OAuth provider or by email/password"""
    __tablename__ = 'auth_identities'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    provider = db.Column(db.String(20), nullable=False)
    provider_user_id = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(254), nullable=True, index=True)
    password_hash = db.Column(db.String(128), nullable=True)
    display_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    last_login = db.Column(db.DateTime)

    links = db.relationship('UserAuthLink', backref='auth_identity', lazy=True,
                            cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('provider', 'provider_user_id', name='unique_provider_user'),
    )

    @validates('provider')
    def validate_provider(self, key, provider):
        if provider not in PROVIDERS:
            raise ValueError(f'Unknown login provider: {provider}')
        return provider

    def __repr__(self):
        return f'<AuthIdentity {self.provider}:{self.provider_user_id or self.email}>'

    def touch_login(self):
        self.last_login = utcnow()


class User(db.Model):
    """Member profile scoped to one union (system admins have no union)"""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    union_id = db.Column(db.String(36), db.ForeignKey('unions.id'), nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    phone_number = db.Column(db.String(20))
    email = db.Column(db.String(254))
    birth_date = db.Column(db.String(10))
    role = db.Column(db.String(20), default=ROLE_USER, nullable=False)
    user_status = db.Column(db.String(20), default=PENDING_PROFILE, nullable=False, index=True)

    property_address = db.Column(db.String(255))
    property_address_detail = db.Column(db.String(255))
    resident_address = db.Column(db.String(255))
    resident_address_detail = db.Column(db.String(255))
    resident_address_road = db.Column(db.String(255))
    resident_address_jibun = db.Column(db.String(255))
    resident_zonecode = db.Column(db.String(10))
    notes = db.Column(db.Text)

    is_blocked = db.Column(db.Boolean, default=False, nullable=False)
    blocked_at = db.Column(db.DateTime)
    blocked_reason = db.Column(db.String(255))

    approved_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    rejected_reason = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    auth_links = db.relationship('UserAuthLink', backref='user', lazy=True)
    property_units = db.relationship('UserPropertyUnit', backref='user', lazy=True)

    @validates('user_status')
    def validate_user_status(self, key, status):
        if status not in USER_STATUSES:
            raise ValueError(f'Unknown user status: {status}')
        return status

    def __repr__(self):
        return f'<User {self.id} {self.user_status}>'

    def is_system_admin(self):
        return self.role == ROLE_SYSTEM_ADMIN

    def is_admin(self):
        return self.role in (ROLE_SYSTEM_ADMIN, ROLE_ADMIN)

    def mark_approved(self):
        """APPROVED with role USER; clears any earlier rejection"""
        now = utcnow()
        self.user_status = APPROVED
        self.role = ROLE_USER
        self.approved_at = now
        self.rejected_reason = None
        self.rejected_at = None
        self.updated_at = now

    def mark_rejected(self, reason):
        now = utcnow()
        self.user_status = REJECTED
        self.rejected_reason = reason
        self.rejected_at = now
        self.updated_at = now

    def to_dict(self):
        return {
            'id': self.id,
            'union_id': self.union_id,
            'name': self.name,
            'phone_number': self.phone_number,
            'email': self.email,
            'role': self.role,
            'user_status': self.user_status,
            'property_address': self.property_address,
            'is_blocked': self.is_blocked,
            'blocked_reason': self.blocked_reason,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'rejected_at': self.rejected_at.isoformat() if self.rejected_at else None,
            'rejected_reason': self.rejected_reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class UserAuthLink(db.Model):
    """Connects a login identity to a member profile"""
    __tablename__ = 'user_auth_links'

    id = db.Column(db.Integer, primary_key=True)
    auth_identity_id = db.Column(db.String(36), db.ForeignKey('auth_identities.id'),
                                 nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    # NULL for the system admin profile, which belongs to no union
    union_id = db.Column(db.String(36), db.ForeignKey('unions.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('auth_identity_id', 'user_id', name='unique_identity_user'),
        db.UniqueConstraint('auth_identity_id', 'union_id', name='unique_identity_union'),
    )
