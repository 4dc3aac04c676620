"""
Property Models

FLOW OVERVIEW
- UserPropertyUnit: a member's claim on a building unit (building_unit_id) or land parcel (pnu).
- PropertyOwnershipHistory: ledger of transfers, ratio changes and co-owner additions.
- UserRelationship: owner ⇄ family/proxy relation created by conflict resolution.
"""

from .database import db
from .utils import generate_uuid, utcnow


# ownership_type values
OWNER = 'OWNER'
CO_OWNER = 'CO_OWNER'
FAMILY = 'FAMILY'
PROXY = 'PROXY'

OWNERSHIP_TYPE_LABELS = {
    OWNER: '소유주',
    CO_OWNER: '공동소유',
    FAMILY: '소유주 가족',
    PROXY: '대리인',
}

# change_type values
CHANGE_TRANSFER = 'TRANSFER'
CHANGE_RATIO_CHANGED = 'RATIO_CHANGED'
CHANGE_CO_OWNER_ADDED = 'CO_OWNER_ADDED'


class UserPropertyUnit(db.Model):
    """Property unit registered by a member"""
    __tablename__ = 'user_property_units'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    building_unit_id = db.Column(db.String(64), index=True)
    pnu = db.Column(db.String(19), index=True)
    dong = db.Column(db.String(20))
    ho = db.Column(db.String(20))
    ownership_type = db.Column(db.String(20), default=OWNER)
    land_ownership_ratio = db.Column(db.Float)
    building_ownership_ratio = db.Column(db.Float)
    property_address_jibun = db.Column(db.String(255))
    property_address_road = db.Column(db.String(255))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f'<UserPropertyUnit {self.id} user={self.user_id}>'

    @property
    def address(self):
        return self.property_address_jibun or self.property_address_road or ''

    def set_ownership(self, ownership_type, ratio, notes=None):
        """Apply the same ratio to land and building shares"""
        self.ownership_type = ownership_type
        self.land_ownership_ratio = ratio
        self.building_ownership_ratio = ratio
        if notes is not None:
            self.notes = notes
        self.updated_at = utcnow()


class PropertyOwnershipHistory(db.Model):
    """Ownership change record"""
    __tablename__ = 'property_ownership_history'

    id = db.Column(db.Integer, primary_key=True)
    property_unit_id = db.Column(db.String(36), db.ForeignKey('user_property_units.id'),
                                 nullable=False, index=True)
    from_user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    to_user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    change_type = db.Column(db.String(20), nullable=False)
    previous_ratio = db.Column(db.Float)
    new_ratio = db.Column(db.Float)
    change_reason = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)


class UserRelationship(db.Model):
    """Family or proxy relationship to an owner"""
    __tablename__ = 'user_relationships'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    related_user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    relationship_type = db.Column(db.String(20), nullable=False)
    verified = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
