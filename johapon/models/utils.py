"""
Model Utilities

This module contains identifier and token generators for the models package.
"""

import secrets
import string
import uuid
from datetime import datetime


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


def generate_access_token_key(length=32):
    """Generate a URL-safe guest access token key"""
    alphabet = string.ascii_letters + string.digits + '_-'
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def generate_invite_token():
    """Generate a secure invitation token"""
    return secrets.token_urlsafe(32)


def utcnow():
    return datetime.utcnow()
