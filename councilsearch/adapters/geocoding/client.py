"""
Places Client - Place autocomplete and details lookups.

Used by the location resolver to turn a place phrase ("Πλατεία Συντάγματος")
into coordinates, biased towards a city center.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from councilsearch.config.errors import ErrorCode, CouncilSearchError, TransientInfraError

logger = logging.getLogger(__name__)

__all__ = ["PlacesClient", "PlaceSuggestion"]

_OK_STATUSES = {"OK", "ZERO_RESULTS"}


@dataclass
class PlaceSuggestion:
    """Autocomplete suggestion."""

    place_id: str
    description: str = ""


class PlacesClient:
    """
    Places web service client.

    Example:
        >>> client = PlacesClient(api_key="...")
        >>> suggestions = await client.autocomplete("Σύνταγμα, Αθήνα", (37.97, 23.73))
        >>> lat, lon = await client.place_coordinates(suggestions[0].place_id)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/place",
        timeout: float = 10.0,
        language: str = "el",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.language = language
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        timeout: float | None,
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.get(
                path,
                params={**params, "key": self._api_key, "language": self.language},
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise TransientInfraError(f"Places API unreachable: {type(e).__name__}") from e
        if response.is_error:
            # The request URL carries the API key; keep it out of the error
            raise CouncilSearchError(
                ErrorCode.LOCATION_LOOKUP_FAILED,
                f"Places API returned HTTP {response.status_code}",
                details={"status_code": response.status_code, "path": path},
            )

        data = response.json()
        status = data.get("status", "OK")
        if status not in _OK_STATUSES:
            raise CouncilSearchError(
                ErrorCode.LOCATION_LOOKUP_FAILED,
                f"Places API returned {status}",
                details={"error_message": data.get("error_message")},
            )
        return data

    async def autocomplete(
        self,
        text: str,
        center: tuple[float, float] | None = None,
        radius_m: int = 20000,
        timeout: float | None = None,
    ) -> list[PlaceSuggestion]:
        """
        Suggest places for free text.

        Args:
            text: Place phrase, usually suffixed with the city name
            center: Optional (lat, lon) bias point
            radius_m: Bias radius in meters
            timeout: Per-call timeout override

        Returns:
            Suggestions, best first
        """
        params: dict[str, Any] = {"input": text}
        if center is not None:
            params["location"] = f"{center[0]},{center[1]}"
            params["radius"] = radius_m

        data = await self._get("/autocomplete/json", params, timeout)
        return [
            PlaceSuggestion(place_id=p["place_id"], description=p.get("description", ""))
            for p in data.get("predictions", [])
            if p.get("place_id")
        ]

    async def place_coordinates(
        self,
        place_id: str,
        timeout: float | None = None,
    ) -> tuple[float, float] | None:
        """Return (lat, lon) for a place, or None when it has no geometry."""
        data = await self._get(
            "/details/json",
            {"place_id": place_id, "fields": "geometry"},
            timeout,
        )
        location = data.get("result", {}).get("geometry", {}).get("location")
        if not location:
            return None
        return float(location["lat"]), float(location["lng"])

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
