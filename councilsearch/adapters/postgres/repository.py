"""
Postgres Repository - Raw query access to the relational system of record.

Features:
- Async operations via an asyncpg connection pool
- COUNT(*) helpers used by sync validation
- City (scope) catalog lookups
- Per-city released meeting statistics for the index status report
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import asyncpg

from councilsearch.config.errors import StorageError, TransientInfraError

logger = logging.getLogger(__name__)

__all__ = ["PostgresRepository"]

_CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


class PostgresRepository:
    """
    Postgres repository for the queries the search core issues.

    Example:
        >>> repo = PostgresRepository("postgresql://localhost/councilsearch")
        >>> await repo.initialize()
        >>> await repo.count("SELECT 1")
        1
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 5,
    ) -> None:
        """
        Initialize repository.

        Args:
            dsn: Postgres connection string
            min_size: Minimum pool size
            max_size: Maximum pool size
        """
        self.dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: asyncpg.Pool | None = None

    async def initialize(self) -> None:
        """Create the connection pool."""
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=self._min_size,
                    max_size=self._max_size,
                )
            except _CONNECTION_ERRORS as e:
                raise TransientInfraError(
                    f"Database unreachable: {type(e).__name__}"
                ) from e
            logger.info("Postgres pool ready (max_size=%d)", self._max_size)

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.initialize()
        if self._pool is None:
            raise StorageError("Postgres pool is not available")
        return self._pool

    async def fetch(
        self,
        query: str,
        *params: Any,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a raw query and return rows as dictionaries."""
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(query, *params, timeout=timeout)
        except _CONNECTION_ERRORS as e:
            raise TransientInfraError(
                f"Database query interrupted: {type(e).__name__}"
            ) from e
        return [_row_to_dict(row) for row in rows]

    async def count(
        self,
        query: str,
        *params: Any,
        timeout: float | None = None,
    ) -> int:
        """Count the rows a query would return, without returning them."""
        pool = await self._get_pool()
        count_query = f"SELECT COUNT(*) AS count FROM ({query}) AS validation_query"
        try:
            value = await pool.fetchval(count_query, *params, timeout=timeout)
        except _CONNECTION_ERRORS as e:
            raise TransientInfraError(
                f"Database query interrupted: {type(e).__name__}"
            ) from e
        return int(value or 0)

    async def _read(
        self,
        what: str,
        query: str,
        *params: Any,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch for fixed application queries; server errors become StorageError."""
        try:
            return await self.fetch(query, *params, timeout=timeout)
        except asyncpg.PostgresError as e:
            raise StorageError(
                f"Failed to read {what}: {e}",
                details={"sqlstate": getattr(e, "sqlstate", None)},
            ) from e

    async def list_cities(
        self,
        include_unlisted: bool = False,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """List cities with their display names and center point."""
        query = """
            SELECT
                c.id,
                c.name,
                c.name_en,
                c."isListed" AS is_listed,
                ST_Y(ST_Centroid(c.geometry)) AS center_lat,
                ST_X(ST_Centroid(c.geometry)) AS center_lon
            FROM "City" c
            WHERE $1 OR c."isListed" = true
            ORDER BY c.name
        """
        return await self._read("city catalog", query, include_unlisted, timeout=timeout)

    async def find_existing_city_ids(
        self,
        city_ids: list[str],
        timeout: float | None = None,
    ) -> set[str]:
        """Return the subset of ``city_ids`` present in the City table."""
        if not city_ids:
            return set()
        rows = await self.fetch(
            'SELECT id FROM "City" WHERE id = ANY($1::text[])',
            list(city_ids),
            timeout=timeout,
        )
        return {row["id"] for row in rows}

    async def released_meeting_stats(
        self,
        city_ids: list[str],
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Per city: released meeting count and the latest released meeting."""
        query = """
            SELECT
                m."cityId" AS city_id,
                COUNT(*) AS total_meetings,
                (ARRAY_AGG(m.id ORDER BY m."dateTime" DESC, m."createdAt" DESC))[1]
                    AS latest_meeting_id
            FROM "CouncilMeeting" m
            WHERE m."cityId" = ANY($1::text[]) AND m.released = true
            GROUP BY m."cityId"
        """
        return await self._read("meeting stats", query, list(city_ids), timeout=timeout)

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None


def _row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
    """Convert a record, decoding json/jsonb text columns."""
    result: dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, str) and value[:1] in ("[", "{"):
            try:
                result[key] = json.loads(value)
                continue
            except ValueError:
                logger.debug("Column %s is text, not JSON", key)
        result[key] = value
    return result
