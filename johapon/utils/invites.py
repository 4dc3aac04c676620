"""
Invites

FLOW OVERVIEW
- create_admin_invite / create_member_invite
  • New PENDING invite with the configured lifetime; the invitation mail is best effort.
- find_valid_invite(model, token)
  • PENDING invite by token. An expired one is flipped to EXPIRED and treated as absent.
- invite_prefill(invite)
  • Registration form prefill stored in the register-prefill cookie.
"""

import logging

from flask import current_app

from ..models import db, AdminInvite, MemberInvite
from ..models.invite import INVITE_PENDING
from .notifications import send_invite_email


logger = logging.getLogger(__name__)


def _expires_in_hours():
    return current_app.config.get('INVITE_EXPIRES_HOURS', 72)


def create_admin_invite(union, name=None, phone_number=None, email=None):
    invite = AdminInvite(union.id, name=name, phone_number=phone_number, email=email,
                         expires_in_hours=_expires_in_hours())
    db.session.add(invite)
    db.session.commit()
    email_sent = send_invite_email(invite)
    return invite, email_sent


def create_member_invite(union, name=None, phone_number=None, email=None, property_address=None):
    invite = MemberInvite(union.id, name=name, phone_number=phone_number, email=email,
                          property_address=property_address,
                          expires_in_hours=_expires_in_hours())
    db.session.add(invite)
    db.session.commit()
    email_sent = send_invite_email(invite)
    return invite, email_sent


def find_valid_invite(model, token):
    if not token:
        return None

    invite = model.query.filter_by(invite_token=token, status=INVITE_PENDING).first()
    if invite is None:
        logger.warning(f"Invalid {model.invite_type} invite token")
        return None

    if invite.is_expired():
        invite.mark_expired()
        db.session.commit()
        logger.warning(f"{model.invite_type} invite {invite.id} expired")
        return None

    return invite


def invite_prefill(invite):
    return {
        'name': invite.name or '',
        'phone_number': invite.phone_number or '',
        'property_address': getattr(invite, 'property_address', None) or '',
        'invite_type': invite.invite_type,
        'invite_token': invite.invite_token,
    }
