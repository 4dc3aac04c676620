"""
Database Models Package

FLOW OVERVIEW
- Centralizes SQLAlchemy DB instance and model imports for convenient usage.
- Exposes: db, Union, AuthIdentity, User, UserAuthLink, UserPropertyUnit,
  PropertyOwnershipHistory, UserRelationship, AccessToken, AccessTokenLog,
  AdminInvite, MemberInvite, MemberAccessLog.
"""

from .database import db
from .union import Union
from .user import AuthIdentity, User, UserAuthLink
from .property_unit import UserPropertyUnit, PropertyOwnershipHistory, UserRelationship
from .access_token import AccessToken, AccessTokenLog
from .invite import AdminInvite, MemberInvite
from .access_log import MemberAccessLog

__all__ = [
    'db',
    'Union',
    'AuthIdentity',
    'User',
    'UserAuthLink',
    'UserPropertyUnit',
    'PropertyOwnershipHistory',
    'UserRelationship',
    'AccessToken',
    'AccessTokenLog',
    'AdminInvite',
    'MemberInvite',
    'MemberAccessLog',
]
