"""
Invite Models

Admin and member invitations carry prefill data for the registration form.
Both expire; an expired invite is flipped to EXPIRED the first time it is looked up.
"""

from datetime import timedelta
from .database import db
from .utils import generate_uuid, generate_invite_token, utcnow


INVITE_PENDING = 'PENDING'
INVITE_USED = 'USED'
INVITE_EXPIRED = 'EXPIRED'


class InviteMixin:
    """Columns and checks shared by admin and member invites"""

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    invite_token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100))
    phone_number = db.Column(db.String(20))
    email = db.Column(db.String(254))
    status = db.Column(db.String(20), default=INVITE_PENDING, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime)

    def _init_invite(self, union_id, name, phone_number, email, expires_in_hours):
        self.union_id = union_id
        self.invite_token = generate_invite_token()
        self.name = name
        self.phone_number = phone_number
        self.email = email
        self.status = INVITE_PENDING
        self.expires_at = utcnow() + timedelta(hours=expires_in_hours)

    def is_expired(self, now=None):
        return (now or utcnow()) > self.expires_at

    def mark_used(self):
        self.status = INVITE_USED
        self.used_at = utcnow()

    def mark_expired(self):
        self.status = INVITE_EXPIRED


class AdminInvite(InviteMixin, db.Model):
    """Invitation to become a union admin"""
    __tablename__ = 'admin_invites'

    union_id = db.Column(db.String(36), db.ForeignKey('unions.id'), nullable=False)
    union = db.relationship('Union', lazy=True)

    invite_type = 'admin'

    def __init__(self, union_id, name=None, phone_number=None, email=None, expires_in_hours=72):
        self._init_invite(union_id, name, phone_number, email, expires_in_hours)


class MemberInvite(InviteMixin, db.Model):
    """Invitation to register as a union member"""
    __tablename__ = 'member_invites'

    union_id = db.Column(db.String(36), db.ForeignKey('unions.id'), nullable=False)
    property_address = db.Column(db.String(255))
    union = db.relationship('Union', lazy=True)

    invite_type = 'member'

    def __init__(self, union_id, name=None, phone_number=None, email=None,
                 property_address=None, expires_in_hours=72):
        self._init_invite(union_id, name, phone_number, email, expires_in_hours)
        self.property_address = property_address
