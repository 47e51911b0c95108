"""
Tests for the places client adapter.
"""

from __future__ import annotations

import httpx
import pytest

from councilsearch.config.errors import CouncilSearchError, ErrorCode

from .client import PlacesClient


async def test_autocomplete_sends_bias_and_parses_predictions() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "predictions": [
                    {"place_id": "p1", "description": "Πλατεία Συντάγματος, Αθήνα"},
                    {"description": "no id"},
                ],
            },
        )

    client = PlacesClient("key", transport=httpx.MockTransport(handler))
    suggestions = await client.autocomplete("Σύνταγμα, Αθήνα", center=(37.98, 23.73), radius_m=500)
    await client.close()

    assert [s.place_id for s in suggestions] == ["p1"]
    params = seen[0].url.params
    assert params["input"] == "Σύνταγμα, Αθήνα"
    assert params["location"] == "37.98,23.73"
    assert params["radius"] == "500"
    assert params["language"] == "el"


async def test_place_coordinates() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"status": "OK", "result": {"geometry": {"location": {"lat": 37.9, "lng": 23.7}}}},
        )

    client = PlacesClient("key", transport=httpx.MockTransport(handler))
    assert await client.place_coordinates("p1") == (37.9, 23.7)
    await client.close()


async def test_zero_results_is_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "predictions": []})

    client = PlacesClient("key", transport=httpx.MockTransport(handler))
    assert await client.autocomplete("Ατλαντίδα") == []
    await client.close()


async def test_denied_request_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})

    client = PlacesClient("key", transport=httpx.MockTransport(handler))
    with pytest.raises(CouncilSearchError) as exc_info:
        await client.autocomplete("Σύνταγμα")
    await client.close()

    assert exc_info.value.code == ErrorCode.LOCATION_LOOKUP_FAILED


async def test_http_error_hides_api_key() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="forbidden")

    client = PlacesClient("secret-places-key", transport=httpx.MockTransport(handler))
    with pytest.raises(CouncilSearchError) as exc_info:
        await client.autocomplete("Σύνταγμα")
    await client.close()

    assert exc_info.value.code == ErrorCode.LOCATION_LOOKUP_FAILED
    assert exc_info.value.details["status_code"] == 403
    assert "secret-places-key" not in str(exc_info.value)
    assert "secret-places-key" not in str(exc_info.value.to_dict())
