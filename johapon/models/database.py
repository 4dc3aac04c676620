"""
Database Configuration

FLOW OVERVIEW
- Provides the global SQLAlchemy instance `db` used across all models.
- Initialized in app factory (johapon/__init__.py) with app context.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
