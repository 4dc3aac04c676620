"""
Union Model

A union (조합) is the tenant. Every member profile, invite and guest token
may be scoped to one union, addressed in URLs by its slug.
"""

from .database import db
from .utils import generate_uuid, utcnow


class Union(db.Model):
    """Housing union (tenant)"""
    __tablename__ = 'unions'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    slug = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    members = db.relationship('User', backref='union', lazy=True)

    def __repr__(self):
        return f'<Union {self.slug}>'

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'is_active': self.is_active,
        }
