"""
Member Access Log Model

FLOW OVERVIEW
- Audit trail of admin actions on members (approve, reject, cancel rejection, block, conflict resolution).
- One row per attempt, SUCCESS or FAILURE, with timing and client metadata.
"""

from .database import db
from .utils import utcnow


class MemberAccessLog(db.Model):
    """Audit record of an admin action on a member"""
    __tablename__ = 'member_access_logs'

    id = db.Column(db.Integer, primary_key=True)
    union_id = db.Column(db.String(36), nullable=True, index=True)
    user_id = db.Column(db.String(36), nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    action_type = db.Column(db.String(10), default='WRITE', nullable=False)
    target_user_id = db.Column(db.String(36), nullable=True)
    # "metadata" is reserved on declarative models
    details = db.Column('metadata', db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(10), nullable=False)
    duration_ms = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f'<MemberAccessLog {self.action} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'union_id': self.union_id,
            'user_id': self.user_id,
            'action': self.action,
            'action_type': self.action_type,
            'target_user_id': self.target_user_id,
            'metadata': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'status': self.status,
            'duration_ms': self.duration_ms,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
