"""
Tests for the search service and response parsing.
"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from councilsearch.adapters.elasticsearch import ElasticsearchResponseError

from .models import ComposedFilterSet, SearchRequest
from .query_builder import build_plan
from .retry import RetryPolicy
from .service import SearchService, parse_search_response

RESPONSE: dict[str, Any] = {
    "took": 12,
    "hits": {
        "total": {"value": 2, "relation": "eq"},
        "hits": [
            {
                "_id": "doc-1",
                "_score": 0.03,
                "_source": {"id": "subject-1", "public_subject_name": "Πεζοδρόμια"},
                "inner_hits": {
                    "speaker_segments": {
                        "hits": {"hits": [{"_source": {"segment_id": "seg-7"}}]}
                    },
                    "contributions": {"hits": {"hits": []}},
                },
            },
            {"_id": "doc-2", "_score": 0.02, "_source": {}},
        ],
    },
}


def test_parse_search_response() -> None:
    hits, total = parse_search_response(RESPONSE)

    assert total == 2
    assert [h.subject_id for h in hits] == ["subject-1", "doc-2"]
    assert hits[0].matched_segment_ids == ["seg-7"]
    assert hits[0].matched_contribution_ids == []


def test_parse_empty_response() -> None:
    assert parse_search_response({}) == ([], 0)


@pytest.fixture
def mock_builder() -> AsyncMock:
    builder = AsyncMock()
    builder.build.side_effect = lambda request: build_plan(request, ComposedFilterSet())
    return builder


@pytest.fixture
def mock_es() -> AsyncMock:
    client = AsyncMock()
    client.search.return_value = RESPONSE
    return client


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(mock_builder: AsyncMock, mock_es: AsyncMock, sleep: AsyncMock) -> SearchService:
    return SearchService(mock_builder, mock_es, RetryPolicy(sleep=sleep), timeout=5.0)


async def test_search_returns_hits(service: SearchService, mock_es: AsyncMock) -> None:
    response = await service.search(SearchRequest(query="πεζοδρόμια"))

    assert response.total == 2
    assert response.took_ms == 12
    assert response.filters == ComposedFilterSet()
    index, body = mock_es.search.await_args.args
    assert index == "subjects"
    assert "rrf" in body["retriever"]
    assert mock_es.search.await_args.kwargs == {"timeout": 5.0}


async def test_search_retries_cold_start(
    service: SearchService,
    mock_es: AsyncMock,
    sleep: AsyncMock,
) -> None:
    mock_es.search.side_effect = [
        ElasticsearchResponseError(
            500, {"error": {"reason": "Model is being loaded"}}, "/subjects/_search"
        ),
        RESPONSE,
    ]

    response = await service.search(SearchRequest(query="πεζοδρόμια"))

    assert response.total == 2
    assert mock_es.search.await_count == 2
    sleep.assert_awaited_once()


async def test_search_propagates_engine_error(service: SearchService, mock_es: AsyncMock) -> None:
    mock_es.search.side_effect = ElasticsearchResponseError(
        400, {"error": {"type": "parsing_exception", "reason": "bad query"}}, "/subjects/_search"
    )

    with pytest.raises(ElasticsearchResponseError):
        await service.search(SearchRequest(query="x"))

    assert mock_es.search.await_count == 1


async def test_search_deadline_covers_planning(
    mock_builder: AsyncMock, mock_es: AsyncMock, sleep: AsyncMock
) -> None:
    """Test a slow filter extraction counts against the overall deadline."""

    async def slow_build(request: SearchRequest) -> None:
        await asyncio.sleep(10)

    mock_builder.build.side_effect = slow_build
    service = SearchService(mock_builder, mock_es, RetryPolicy(sleep=sleep), deadline=0.05)

    with pytest.raises(asyncio.TimeoutError):
        await service.search(SearchRequest(query="πεζοδρόμια"))

    mock_es.search.assert_not_awaited()


async def test_search_deadline_bounds_retries(
    mock_builder: AsyncMock, mock_es: AsyncMock
) -> None:
    mock_es.search.side_effect = ElasticsearchResponseError(
        503, {"error": {"reason": "Model is being loaded"}}, "/subjects/_search"
    )
    retry = RetryPolicy(max_attempts=10, initial_delay_ms=1000, max_delay_ms=1000)
    service = SearchService(mock_builder, mock_es, retry, deadline=0.05)

    with pytest.raises(asyncio.TimeoutError):
        await service.search(SearchRequest(query="πεζοδρόμια"))

    assert mock_es.search.await_count == 1
