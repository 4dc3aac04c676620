"""
Routes Package

This package contains all Flask route blueprints.
"""

from .auth import auth_bp
from .main import main_bp
from .members import members_bp
from .admin import admin_bp

__all__ = [
    'auth_bp',
    'main_bp',
    'members_bp',
    'admin_bp',
]
