"""
Sync Contracts - Interfaces for the sync domain.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SyncStore(Protocol):
    """Contract for the relational store the connector reads from."""

    async def count(self, query: str, *params: Any, timeout: float | None = None) -> int:
        """Rows ``query`` would return."""
        ...

    async def fetch(
        self,
        query: str,
        *params: Any,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Rows of ``query`` as dictionaries."""
        ...

    async def find_existing_city_ids(
        self,
        city_ids: list[str],
        timeout: float | None = None,
    ) -> set[str]:
        """Subset of ``city_ids`` present in the scope catalog."""
        ...


@runtime_checkable
class ConnectorClient(Protocol):
    """Contract for the connector management API."""

    async def get_connector(
        self,
        connector_id: str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        ...

    async def update_connector_filtering(
        self,
        connector_id: str,
        filtering: dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        ...

    async def list_sync_jobs(
        self,
        connector_id: str,
        size: int = 1,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        ...
