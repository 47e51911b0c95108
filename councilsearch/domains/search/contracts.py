"""
Search Contracts - Interfaces for search domain.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from .models import CityScope, ExtractedFilters, GeoLocation, GeoPoint


@runtime_checkable
class FilterExtractor(Protocol):
    """Contract for turning free text into structured filters."""

    async def extract(
        self,
        query: str,
        cities: list[CityScope],
        today: date,
    ) -> ExtractedFilters:
        """Extract filters; absent filters are explicit nulls."""
        ...


@runtime_checkable
class LocationResolver(Protocol):
    """Contract for resolving a place phrase inside a city."""

    async def resolve(
        self,
        location_name: str,
        city: CityScope | None,
        center: GeoPoint | None,
    ) -> GeoLocation | None:
        """Return a point+radius, or None when nothing matches."""
        ...


@runtime_checkable
class CityCatalog(Protocol):
    """Contract for listing the known city scopes."""

    async def list_cities(self) -> list[CityScope]:
        """Return every searchable city."""
        ...
