"""
Location resolution - place phrase to geo point(s).

``resolve_locations`` fans a phrase out over candidate cities concurrently;
a city whose lookup fails contributes nothing. ``PlacesLocationResolver``
is the places-service implementation of the ``LocationResolver`` contract.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .contracts import LocationResolver
from .models import CityScope, GeoLocation, GeoPoint
from .retry import summarize_error

if TYPE_CHECKING:
    from councilsearch.adapters.geocoding import PlacesClient

logger = logging.getLogger(__name__)

__all__ = ["PlacesLocationResolver", "resolve_locations"]


async def resolve_locations(
    resolver: LocationResolver,
    location_name: str,
    cities: list[CityScope],
    max_concurrency: int = 8,
) -> list[GeoLocation]:
    """
    Resolve ``location_name`` inside each city, concurrently.

    Args:
        resolver: Location resolver
        location_name: Place phrase from the query
        cities: Cities to try
        max_concurrency: Upper bound on lookups in flight

    Returns:
        Every successful match, in city order
    """
    if not cities:
        return []

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def resolve_one(city: CityScope) -> GeoLocation | None:
        async with semaphore:
            return await resolver.resolve(location_name, city, city.center)

    results = await asyncio.gather(
        *(resolve_one(city) for city in cities),
        return_exceptions=True,
    )

    locations: list[GeoLocation] = []
    for city, result in zip(cities, results):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            logger.warning(
                "Location lookup failed: location='%s' city=%s error=%s",
                location_name,
                city.id,
                summarize_error(result),
            )
            continue
        if result is not None:
            locations.append(result)

    logger.info(
        "Resolved location '%s' in %d of %d cities",
        location_name,
        len(locations),
        len(cities),
    )
    return locations


class PlacesLocationResolver:
    """
    Resolve places with the places web service.

    Example:
        >>> resolver = PlacesLocationResolver(PlacesClient(api_key="..."))
        >>> await resolver.resolve("Σύνταγμα", athens, athens.center)
    """

    def __init__(
        self,
        client: PlacesClient,
        radius_km: float = 5.0,
        bias_radius_m: int = 20000,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._radius_km = radius_km
        self._bias_radius_m = bias_radius_m
        self._timeout = timeout

    async def resolve(
        self,
        location_name: str,
        city: CityScope | None,
        center: GeoPoint | None,
    ) -> GeoLocation | None:
        """Return the first suggestion's coordinates, or None."""
        text = f"{location_name}, {city.name}" if city else location_name
        suggestions = await self._client.autocomplete(
            text,
            center=(center.lat, center.lon) if center else None,
            radius_m=self._bias_radius_m,
            timeout=self._timeout,
        )
        if not suggestions:
            return None

        coordinates = await self._client.place_coordinates(
            suggestions[0].place_id,
            timeout=self._timeout,
        )
        if coordinates is None:
            return None

        lat, lon = coordinates
        return GeoLocation(
            point=GeoPoint(lat=lat, lon=lon),
            radius_km=self._radius_km,
            label=suggestions[0].description or location_name,
        )
