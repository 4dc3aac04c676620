"""
Access Token Models

Guest access tokens let a visitor without an account browse tenant pages.
They are soft-deleted, may expire, and may carry a usage cap.
"""

from datetime import timedelta
from .database import db
from .utils import generate_uuid, generate_access_token_key, utcnow


class AccessToken(db.Model):
    """Guest access token issued by the system admin"""
    __tablename__ = 'access_tokens'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    union_id = db.Column(db.String(36), db.ForeignKey('unions.id'), nullable=True)
    access_scope = db.Column(db.String(20), default='all', nullable=False)
    allowed_pages = db.Column(db.JSON, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    max_usage = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    union = db.relationship('Union', lazy=True)
    logs = db.relationship('AccessTokenLog', backref='token', lazy=True)

    def __init__(self, name, union_id=None, access_scope='all', allowed_pages=None,
                 expires_in_days=None, max_usage=None, created_by=None):
        self.key = generate_access_token_key()
        self.name = name
        self.union_id = union_id
        self.access_scope = access_scope or 'all'
        self.allowed_pages = allowed_pages or None
        self.max_usage = max_usage or None
        self.usage_count = 0
        self.created_by = created_by
        if expires_in_days and expires_in_days > 0:
            self.expires_at = utcnow() + timedelta(days=expires_in_days)

    def is_expired(self, now=None):
        now = now or utcnow()
        return self.expires_at is not None and self.expires_at < now

    def is_max_usage_reached(self):
        return self.max_usage is not None and self.usage_count >= self.max_usage

    def is_active(self, now=None):
        """Listing flag: not expired and usage below the cap"""
        return not self.is_expired(now) and not self.is_max_usage_reached()

    def soft_delete(self):
        self.deleted_at = utcnow()

    def to_list_item(self, now=None):
        return {
            'id': self.id,
            'key': self.key,
            'name': self.name,
            'union_id': self.union_id,
            'union_name': self.union.name if self.union else None,
            'access_scope': self.access_scope,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'max_usage': self.max_usage,
            'usage_count': self.usage_count,
            'is_active': self.is_active(now),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def to_dict(self):
        data = self.to_list_item()
        data['allowed_pages'] = self.allowed_pages
        data['created_by'] = self.created_by
        data['union_slug'] = self.union.slug if self.union else None
        return data


class AccessTokenLog(db.Model):
    """One successful use of a guest access token"""
    __tablename__ = 'access_token_logs'

    id = db.Column(db.Integer, primary_key=True)
    token_id = db.Column(db.String(36), db.ForeignKey('access_tokens.id'), nullable=False, index=True)
    accessed_path = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
