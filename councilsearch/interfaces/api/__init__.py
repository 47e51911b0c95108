"""
API Interface - FastAPI REST API.

Public search plus the admin endpoints that manage the index connector.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
