"""
Property Conflict Resolution

FLOW OVERVIEW
- check_conflicts(pending_user_id)
  • For each property unit of the pending registrant, look for other members' units on the
    same building unit (building_unit_id) or, failing that, the same land parcel (pnu).
  • Only owners in APPROVED or PRE_REGISTERED status count as conflicts.
- fetch_existing_co_owners(building_unit_id, pnu, exclude_user_ids)
  • APPROVED OWNER/CO_OWNER holders of a property, used to validate share totals.
- resolve_conflict(request), one of:
  • update        same person: merge the pending registration into the existing member.
  • transfer      sale: existing owner's share → 0, pending registrant owns 100%.
  • add_co_owner  split the property; shares of all holders must total exactly 100.
  • add_proxy     family member or proxy with a 0% share and an unverified relationship.
- Every resolution is applied in one transaction: a single commit or a full rollback.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from werkzeug.exceptions import NotFound

from ..models import (
    db, User, UserAuthLink, UserPropertyUnit, PropertyOwnershipHistory, UserRelationship,
)
from ..models.user import APPROVED, PRE_REGISTERED, PENDING_APPROVAL, TRANSFERRED
from ..models.property_unit import (
    OWNER, CO_OWNER, FAMILY, PROXY, OWNERSHIP_TYPE_LABELS,
    CHANGE_TRANSFER, CHANGE_RATIO_CHANGED, CHANGE_CO_OWNER_ADDED,
)
from ..models.utils import utcnow
from .prom_metrics import observe_conflict_resolution
from .validators import validate_share_ratio


logger = logging.getLogger(__name__)

ACTION_UPDATE = 'update'
ACTION_TRANSFER = 'transfer'
ACTION_ADD_CO_OWNER = 'add_co_owner'
ACTION_ADD_PROXY = 'add_proxy'
ACTIONS = (ACTION_UPDATE, ACTION_TRANSFER, ACTION_ADD_CO_OWNER, ACTION_ADD_PROXY)

CONFLICTING_STATUSES = (APPROVED, PRE_REGISTERED)
SAME_PERSON_REJECT_REASON = '동일인 정보 통합 처리됨'
TRANSFER_REJECT_REASON = '소유권 이전으로 인한 조합원 자격 상실'
RATIO_CHANGE_REASON = '공동소유자 추가로 인한 지분율 변경'


class ConflictResolutionError(Exception):
    """Resolution refused; the message is shown to the admin as-is"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass
class ExistingOwner:
    user_id: str
    name: str
    phone: Optional[str]
    ownership_type: Optional[str]
    share_ratio: Optional[float]
    status: Optional[str]

    def to_dict(self):
        return {
            'userId': self.user_id,
            'name': self.name,
            'phone': self.phone,
            'ownershipType': self.ownership_type,
            'shareRatio': self.share_ratio,
            'status': self.status,
        }


@dataclass
class PropertyConflict:
    property_unit_id: str
    building_unit_id: Optional[str]
    pnu: Optional[str]
    dong: Optional[str]
    ho: Optional[str]
    address: str
    existing_owner: ExistingOwner
    existing_property_unit_id: Optional[str] = None

    def to_dict(self):
        return {
            'propertyUnitId': self.property_unit_id,
            'existingPropertyUnitId': self.existing_property_unit_id,
            'buildingUnitId': self.building_unit_id,
            'pnu': self.pnu,
            'dong': self.dong,
            'ho': self.ho,
            'address': self.address,
            'existingOwner': self.existing_owner.to_dict(),
        }


@dataclass
class ConflictCheckResult:
    has_conflict: bool
    conflicts: List[PropertyConflict]
    pending_user: User

    def to_dict(self):
        return {
            'hasConflict': self.has_conflict,
            'conflicts': [c.to_dict() for c in self.conflicts],
            'pendingUser': {
                'id': self.pending_user.id,
                'name': self.pending_user.name,
                'phone': self.pending_user.phone_number,
                'propertyAddress': self.pending_user.property_address,
            },
        }


@dataclass
class ExistingCoOwner:
    user_id: str
    name: str
    land_ownership_ratio: float
    building_ownership_ratio: float


@dataclass
class CoOwnerRatioAdjustment:
    user_id: str
    previous_ratio: float
    new_ratio: float

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict) or not data.get('userId'):
            raise ValueError('co-owner adjustment requires userId')
        return cls(
            user_id=data.get('userId'),
            previous_ratio=_ratio(data.get('previousRatio'), 'previousRatio'),
            new_ratio=_ratio(data.get('newRatio'), 'newRatio'),
        )


@dataclass
class ConflictResolutionRequest:
    action: str
    pending_user_id: str
    existing_user_id: str
    conflicted_property_unit_id: str
    share_ratio_for_existing: Optional[float] = None
    share_ratio_for_new: Optional[float] = None
    other_co_owner_adjustments: Optional[List[CoOwnerRatioAdjustment]] = None
    relationship_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        """Build from the JSON body; raises ValueError on malformed ratios"""
        adjustments = data.get('otherCoOwnerAdjustments')
        if adjustments is not None:
            if not isinstance(adjustments, list):
                raise ValueError('otherCoOwnerAdjustments must be a list')
            adjustments = [CoOwnerRatioAdjustment.from_dict(a) for a in adjustments]

        return cls(
            action=data.get('action'),
            pending_user_id=data.get('pendingUserId'),
            existing_user_id=data.get('existingUserId'),
            conflicted_property_unit_id=data.get('conflictedPropertyUnitId'),
            share_ratio_for_existing=_optional_ratio(data.get('shareRatioForExisting'), 'shareRatioForExisting'),
            share_ratio_for_new=_optional_ratio(data.get('shareRatioForNew'), 'shareRatioForNew'),
            other_co_owner_adjustments=adjustments,
            relationship_type=data.get('relationshipType'),
        )


@dataclass
class ConflictResolutionResult:
    success: bool
    message: str
    resolved_user_id: Optional[str] = None

    def to_dict(self):
        data = {'success': self.success, 'message': self.message}
        if self.resolved_user_id:
            data['resolvedUserId'] = self.resolved_user_id
        return data


@dataclass
class ConflictComparisonData:
    pending: dict = field(default_factory=dict)
    existing: dict = field(default_factory=dict)

    def to_dict(self):
        return {'pending': self.pending, 'existing': self.existing}


def _ratio(value, name):
    result = validate_share_ratio(value)
    if not result.is_valid:
        raise ValueError(f'{name}: {result.error_message}')
    return result.sanitized_value


def _optional_ratio(value, name):
    if value is None:
        return None
    return _ratio(value, name)


def _format_ratio(value):
    return f'{value:g}'


def _same_property_filter(query, building_unit_id, pnu):
    if building_unit_id:
        return query.filter(UserPropertyUnit.building_unit_id == building_unit_id)
    return query.filter(UserPropertyUnit.pnu == pnu)


def check_conflicts(pending_user_id) -> ConflictCheckResult:
    """
    Detect existing owners of the pending registrant's properties.

    Raises:
        NotFound: the pending user does not exist
    """
    pending_user = db.session.get(User, pending_user_id) if pending_user_id else None
    if pending_user is None:
        raise NotFound('승인 대기 사용자를 찾을 수 없습니다.')

    units = UserPropertyUnit.query.filter_by(user_id=pending_user.id).all()
    conflicts = []

    for unit in units:
        if not unit.building_unit_id and not unit.pnu:
            continue

        query = (
            db.session.query(UserPropertyUnit, User)
            .join(User, User.id == UserPropertyUnit.user_id)
            .filter(UserPropertyUnit.user_id != pending_user.id)
        )
        query = _same_property_filter(query, unit.building_unit_id, unit.pnu)

        for existing_unit, existing_user in query.all():
            if existing_user.user_status not in CONFLICTING_STATUSES:
                continue
            conflicts.append(PropertyConflict(
                property_unit_id=unit.id,
                existing_property_unit_id=existing_unit.id,
                building_unit_id=unit.building_unit_id,
                pnu=unit.pnu,
                dong=unit.dong,
                ho=unit.ho,
                address=unit.address,
                existing_owner=ExistingOwner(
                    user_id=existing_user.id,
                    name=existing_user.name,
                    phone=existing_user.phone_number,
                    ownership_type=existing_unit.ownership_type,
                    share_ratio=existing_unit.land_ownership_ratio,
                    status=existing_user.user_status,
                ),
            ))

    return ConflictCheckResult(
        has_conflict=len(conflicts) > 0,
        conflicts=conflicts,
        pending_user=pending_user,
    )


def fetch_existing_co_owners(building_unit_id, pnu, exclude_user_ids=None) -> List[ExistingCoOwner]:
    if not building_unit_id and not pnu:
        return []

    query = (
        db.session.query(UserPropertyUnit, User)
        .join(User, User.id == UserPropertyUnit.user_id)
        .filter(UserPropertyUnit.ownership_type.in_([OWNER, CO_OWNER]))
        .filter(User.user_status == APPROVED)
    )
    query = _same_property_filter(query, building_unit_id, pnu)
    if exclude_user_ids:
        query = query.filter(~UserPropertyUnit.user_id.in_(list(exclude_user_ids)))

    return [
        ExistingCoOwner(
            user_id=user.id,
            name=user.name,
            land_ownership_ratio=unit.land_ownership_ratio or 0,
            building_ownership_ratio=unit.building_ownership_ratio or 0,
        )
        for unit, user in query.all()
    ]


def _record_history(property_unit_id, from_user_id, to_user_id, change_type,
                    previous_ratio, new_ratio, reason):
    db.session.add(PropertyOwnershipHistory(
        property_unit_id=property_unit_id,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        change_type=change_type,
        previous_ratio=previous_ratio,
        new_ratio=new_ratio,
        change_reason=reason,
    ))


def _existing_owner_unit(existing_user, conflicted_unit):
    """
    The existing owner's unit on the conflicted property. The conflicted unit id may
    name either the pending registrant's unit or the existing owner's own unit.
    """
    if conflicted_unit.user_id == existing_user.id:
        return conflicted_unit
    if not conflicted_unit.building_unit_id and not conflicted_unit.pnu:
        return None
    query = UserPropertyUnit.query.filter(UserPropertyUnit.user_id == existing_user.id)
    query = _same_property_filter(query, conflicted_unit.building_unit_id, conflicted_unit.pnu)
    return query.first()


def _merge_notes(existing_notes, new_notes):
    merged = existing_notes or ''
    if new_notes:
        if merged and new_notes not in merged:
            merged = f'{merged}\n---\n{new_notes}'
        elif not merged:
            merged = new_notes
    return merged or None


def _handle_same_person(pending_user, existing_user):
    now = utcnow()

    existing_user.name = pending_user.name
    existing_user.phone_number = pending_user.phone_number
    existing_user.email = pending_user.email
    existing_user.birth_date = pending_user.birth_date
    existing_user.resident_address = pending_user.resident_address
    existing_user.resident_address_detail = pending_user.resident_address_detail
    existing_user.resident_address_road = pending_user.resident_address_road
    existing_user.resident_address_jibun = pending_user.resident_address_jibun
    existing_user.resident_zonecode = pending_user.resident_zonecode
    existing_user.notes = _merge_notes(existing_user.notes, pending_user.notes)
    existing_user.updated_at = now

    UserPropertyUnit.query.filter_by(user_id=pending_user.id).update(
        {UserPropertyUnit.user_id: existing_user.id, UserPropertyUnit.updated_at: now},
        synchronize_session='fetch',
    )

    # An identity already linked to the existing member keeps that link only
    already_linked = {
        link.auth_identity_id
        for link in UserAuthLink.query.filter_by(user_id=existing_user.id).all()
    }
    for link in UserAuthLink.query.filter_by(user_id=pending_user.id).all():
        if link.auth_identity_id in already_linked:
            db.session.delete(link)
        else:
            link.user_id = existing_user.id
            link.updated_at = now

    pending_user.mark_rejected(SAME_PERSON_REJECT_REASON)

    return ConflictResolutionResult(
        True, '동일인으로 처리되어 기존 정보가 업데이트되었습니다.', existing_user.id,
    )


def _handle_transfer(pending_user, existing_user, conflicted_unit):
    existing_unit = _existing_owner_unit(existing_user, conflicted_unit)
    if existing_unit is None:
        raise ConflictResolutionError('기존 소유자의 물건지 정보를 찾을 수 없습니다.')

    previous_ratio = existing_unit.land_ownership_ratio or 100
    existing_unit.set_ownership(OWNER, 0, notes='소유권 이전으로 인한 변경')
    db.session.flush()

    remaining = (
        UserPropertyUnit.query
        .filter(UserPropertyUnit.user_id == existing_user.id)
        .filter(UserPropertyUnit.land_ownership_ratio > 0)
        .count()
    )
    if remaining == 0:
        now = utcnow()
        existing_user.user_status = TRANSFERRED
        existing_user.rejected_at = now
        existing_user.rejected_reason = TRANSFER_REJECT_REASON
        existing_user.updated_at = now

    pending_user.mark_approved()
    for unit in UserPropertyUnit.query.filter_by(user_id=pending_user.id).all():
        unit.set_ownership(OWNER, 100)

    _record_history(existing_unit.id, existing_user.id, pending_user.id, CHANGE_TRANSFER,
                    previous_ratio, 100, '소유권 이전 (매매)')

    return ConflictResolutionResult(True, '소유권이 이전되었습니다.', pending_user.id)


def _handle_add_co_owner(pending_user, existing_user, conflicted_unit,
                         existing_ratio, new_ratio, adjustments):
    existing_unit = _existing_owner_unit(existing_user, conflicted_unit)
    if existing_unit is None:
        raise ConflictResolutionError('물건지 정보를 찾을 수 없습니다.')

    building_unit_id = conflicted_unit.building_unit_id
    pnu = conflicted_unit.pnu
    previous_ratio = existing_unit.land_ownership_ratio or 100

    if adjustments is not None:
        others_total = sum(a.new_ratio for a in adjustments)
    else:
        others = fetch_existing_co_owners(building_unit_id, pnu, [existing_user.id, pending_user.id])
        others_total = sum(o.land_ownership_ratio for o in others)

    total = round(others_total + existing_ratio + new_ratio, 6)
    if total > 100:
        raise ConflictResolutionError(
            f'지분율 합계가 100%를 초과합니다. (현재 합계: {_format_ratio(total)}%)'
        )
    if total < 100:
        raise ConflictResolutionError(
            f'지분율 합계가 100%에 도달하지 않습니다. (현재 합계: {_format_ratio(total)}%)'
        )

    existing_unit.set_ownership(CO_OWNER, existing_ratio)
    if previous_ratio != existing_ratio:
        _record_history(existing_unit.id, existing_user.id, existing_user.id, CHANGE_RATIO_CHANGED,
                        previous_ratio, existing_ratio, RATIO_CHANGE_REASON)

    for adjustment in adjustments or []:
        if adjustment.previous_ratio == adjustment.new_ratio:
            continue
        query = UserPropertyUnit.query.filter(UserPropertyUnit.user_id == adjustment.user_id)
        other_unit = _same_property_filter(query, building_unit_id, pnu).first()
        if other_unit is None:
            logger.warning(f"Co-owner {adjustment.user_id} has no unit on the property; adjustment skipped")
            continue
        other_unit.set_ownership(other_unit.ownership_type, adjustment.new_ratio)
        _record_history(other_unit.id, adjustment.user_id, adjustment.user_id, CHANGE_RATIO_CHANGED,
                        adjustment.previous_ratio, adjustment.new_ratio, RATIO_CHANGE_REASON)

    pending_user.mark_approved()
    for unit in UserPropertyUnit.query.filter_by(user_id=pending_user.id).all():
        unit.set_ownership(CO_OWNER, new_ratio)
        _record_history(unit.id, None, pending_user.id, CHANGE_CO_OWNER_ADDED,
                        0, new_ratio, '공동소유자로 신규 등록')

    return ConflictResolutionResult(
        True,
        f'공동 소유자로 추가되었습니다. (기존 {_format_ratio(existing_ratio)}%, 신규 {_format_ratio(new_ratio)}%)',
        pending_user.id,
    )


def _handle_add_proxy(pending_user, existing_user, relationship_type):
    pending_user.mark_approved()

    label = '소유주 가족' if relationship_type == FAMILY else '대리인'
    for unit in UserPropertyUnit.query.filter_by(user_id=pending_user.id).all():
        unit.set_ownership(relationship_type, 0, notes=f'{label} (원 소유주: {existing_user.name})')

    db.session.add(UserRelationship(
        user_id=existing_user.id,
        related_user_id=pending_user.id,
        relationship_type=relationship_type,
        verified=False,
    ))

    # Owner notification is not delivered; the registration is logged for the union office
    logger.info(
        f"Registered {OWNERSHIP_TYPE_LABELS[relationship_type]} {pending_user.id} "
        f"for owner {existing_user.id} (union={existing_user.union_id})"
    )

    return ConflictResolutionResult(True, f'{label}으로 등록되었습니다.', pending_user.id)


def resolve_conflict(request: ConflictResolutionRequest) -> ConflictResolutionResult:
    """
    Apply one resolution action in a single transaction.

    Raises:
        ValueError: unknown action or a share ratio outside 0..100
        NotFound: pending user, existing user or conflicted unit missing

    Returns:
        ConflictResolutionResult; refused resolutions come back with success=False
        and nothing written
    """
    if request.action not in ACTIONS:
        raise ValueError('Invalid action')

    # Missing or zero shares fall back to 50
    existing_ratio = request.share_ratio_for_existing or 50
    new_ratio = request.share_ratio_for_new or 50
    _ratio(existing_ratio, 'shareRatioForExisting')
    _ratio(new_ratio, 'shareRatioForNew')

    relationship_type = request.relationship_type or FAMILY
    if request.action == ACTION_ADD_PROXY and relationship_type not in (FAMILY, PROXY):
        raise ValueError('relationshipType must be FAMILY or PROXY')

    pending_user = db.session.get(User, request.pending_user_id) if request.pending_user_id else None
    if pending_user is None:
        raise NotFound('승인 대기 사용자 정보를 찾을 수 없습니다.')
    existing_user = db.session.get(User, request.existing_user_id) if request.existing_user_id else None
    if existing_user is None:
        raise NotFound('기존 사용자 정보를 찾을 수 없습니다.')

    conflicted_unit = None
    if request.action in (ACTION_TRANSFER, ACTION_ADD_CO_OWNER):
        if request.conflicted_property_unit_id:
            conflicted_unit = db.session.get(UserPropertyUnit, request.conflicted_property_unit_id)
        if conflicted_unit is None:
            raise NotFound('물건지 정보를 찾을 수 없습니다.')

    try:
        if pending_user.id == existing_user.id:
            raise ConflictResolutionError('동일한 사용자끼리는 충돌을 해결할 수 없습니다.')
        if pending_user.union_id != existing_user.union_id:
            raise ConflictResolutionError('같은 조합의 사용자가 아닙니다.')
        if pending_user.user_status != PENDING_APPROVAL:
            raise ConflictResolutionError('승인 대기 상태의 사용자가 아닙니다.')

        if request.action == ACTION_UPDATE:
            result = _handle_same_person(pending_user, existing_user)
        elif request.action == ACTION_TRANSFER:
            result = _handle_transfer(pending_user, existing_user, conflicted_unit)
        elif request.action == ACTION_ADD_CO_OWNER:
            result = _handle_add_co_owner(pending_user, existing_user, conflicted_unit,
                                          existing_ratio, new_ratio, request.other_co_owner_adjustments)
        else:
            result = _handle_add_proxy(pending_user, existing_user, relationship_type)

        db.session.commit()
    except ConflictResolutionError as e:
        db.session.rollback()
        logger.info(f"Conflict resolution '{request.action}' refused: {e.message}")
        observe_conflict_resolution(request.action, 'refused')
        return ConflictResolutionResult(False, e.message)
    except Exception:
        db.session.rollback()
        observe_conflict_resolution(request.action, 'error')
        raise

    logger.info(
        f"Conflict resolved: action={request.action} pending={pending_user.id} "
        f"existing={existing_user.id} resolved={result.resolved_user_id}"
    )
    observe_conflict_resolution(request.action, 'success')
    return result


def create_conflict_comparison_data(pending_user, conflict: PropertyConflict) -> ConflictComparisonData:
    """Side-by-side view of the pending registrant and the existing owner"""
    return ConflictComparisonData(
        pending={
            'name': pending_user.name,
            'phone': pending_user.phone_number,
            'propertyAddress': pending_user.property_address,
            'dong': conflict.dong,
            'ho': conflict.ho,
        },
        existing={
            'userId': conflict.existing_owner.user_id,
            'name': conflict.existing_owner.name,
            'phone': conflict.existing_owner.phone,
            'propertyAddress': conflict.address,
            'dong': conflict.dong,
            'ho': conflict.ho,
            'ownershipType': conflict.existing_owner.ownership_type,
            'status': conflict.existing_owner.status,
        },
    )
