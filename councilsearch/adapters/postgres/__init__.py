"""
Postgres Adapter - relational system of record.
"""

from .repository import PostgresRepository

__all__ = ["PostgresRepository"]
