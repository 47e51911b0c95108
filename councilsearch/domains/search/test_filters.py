"""
Tests for LLM filter extraction.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from councilsearch.config.errors import ExtractionError

from .filters import LLMFilterExtractor, build_extraction_prompt
from .models import CityScope, GeoPoint

ATHENS = CityScope(
    id="athens", name="Αθήνα", name_en="Athens", center=GeoPoint(lat=37.98, lon=23.73)
)
CHANIA = CityScope(id="chania", name="Χανιά", name_en="Chania")


def _reply(date_range: dict | None = None, **overrides) -> str:
    body = {"cityIds": None, "dateRange": date_range, "isLatest": None, "locationName": None}
    body.update(overrides)
    return json.dumps(body)


def test_extraction_prompt_lists_cities_and_date() -> None:
    prompt = build_extraction_prompt([ATHENS, CHANIA], date(2025, 3, 1))
    assert "2025-03-01" in prompt
    assert "- Αθήνα (Athens): athens" in prompt
    assert "{cities}" not in prompt


@pytest.fixture
def mock_llm() -> AsyncMock:
    return AsyncMock()


async def test_extractor_parses_reply(mock_llm: AsyncMock) -> None:
    mock_llm.generate.return_value = _reply(
        {"start": "2025-02-01T00:00:00", "end": "2025-03-01T00:00:00"},
        cityIds=["athens"],
        locationName="κέντρο",
    )
    extractor = LLMFilterExtractor(mock_llm, model="llama3.2")

    filters = await extractor.extract(
        "παιδικές χαρές στο κέντρο", [ATHENS, CHANIA], date(2025, 3, 1)
    )

    assert filters.city_ids == ["athens"]
    assert filters.date_range is not None
    assert filters.location_name == "κέντρο"
    assert mock_llm.generate.await_args.kwargs["json_output"] is True


async def test_extractor_keeps_date_only_bounds(mock_llm: AsyncMock) -> None:
    mock_llm.generate.return_value = _reply({"start": "2024-01-01", "end": "2024-01-31"})
    extractor = LLMFilterExtractor(mock_llm)

    filters = await extractor.extract("τον Ιανουάριο του 2024", [ATHENS], date(2025, 3, 1))

    assert filters.date_range is not None
    assert filters.date_range.start == date(2024, 1, 1)
    assert filters.date_range.end == date(2024, 1, 31)
    assert not isinstance(filters.date_range.end, datetime)


async def test_extractor_accepts_mixed_timezone_bounds(mock_llm: AsyncMock) -> None:
    mock_llm.generate.return_value = _reply(
        {"start": "2025-02-01T00:00:00", "end": "2025-03-01T00:00:00Z"}
    )
    extractor = LLMFilterExtractor(mock_llm)

    filters = await extractor.extract("τον Φεβρουάριο", [ATHENS], date(2025, 3, 1))

    assert filters.date_range is not None
    assert filters.date_range.end == datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "reply",
    [
        "not json",
        json.dumps({"cityIds": None, "dateRange": None}),
        _reply(cityIds=["atlantis"]),
        _reply({"start": "2025-03-02T00:00:00Z", "end": "2025-03-01T12:00:00"}),
    ],
    ids=["invalid-json", "missing-keys", "unknown-city", "inverted-mixed-timezone-range"],
)
async def test_extractor_rejects_bad_replies(mock_llm: AsyncMock, reply: str) -> None:
    mock_llm.generate.return_value = reply
    extractor = LLMFilterExtractor(mock_llm)

    with pytest.raises(ExtractionError):
        await extractor.extract("x", [ATHENS], date(2025, 3, 1))


async def test_extractor_model_failure(mock_llm: AsyncMock) -> None:
    request = httpx.Request("POST", "http://ollama.test/api/generate")
    mock_llm.generate.side_effect = httpx.HTTPStatusError(
        "server error", request=request, response=httpx.Response(500, request=request)
    )
    extractor = LLMFilterExtractor(mock_llm)

    with pytest.raises(ExtractionError):
        await extractor.extract("x", [ATHENS], date(2025, 3, 1))
