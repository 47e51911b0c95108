"""
City Catalog - Known city scopes read from the relational store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import CityScope, GeoPoint

if TYPE_CHECKING:
    from councilsearch.adapters.postgres import PostgresRepository

__all__ = ["PostgresCityCatalog"]


class PostgresCityCatalog:
    """City catalog backed by the City table. Read on every call."""

    def __init__(
        self,
        repo: PostgresRepository,
        include_unlisted: bool = False,
        timeout: float | None = None,
    ) -> None:
        self._repo = repo
        self._include_unlisted = include_unlisted
        self._timeout = timeout

    async def list_cities(self) -> list[CityScope]:
        rows = await self._repo.list_cities(
            include_unlisted=self._include_unlisted,
            timeout=self._timeout,
        )
        cities = []
        for row in rows:
            center = None
            if row.get("center_lat") is not None and row.get("center_lon") is not None:
                center = GeoPoint(lat=row["center_lat"], lon=row["center_lon"])
            cities.append(
                CityScope(
                    id=row["id"],
                    name=row["name"],
                    name_en=row.get("name_en") or "",
                    center=center,
                )
            )
        return cities
