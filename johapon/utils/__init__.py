"""
Utilities Package

This package contains the service modules behind the routes.
"""

from . import auth_utils
from . import validators
from . import error_handlers

__all__ = [
    'auth_utils',
    'validators',
    'error_handlers'
]
