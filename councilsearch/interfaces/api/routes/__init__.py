"""
API Routes.
"""

from . import health, search, sync

__all__ = ["health", "search", "sync"]
