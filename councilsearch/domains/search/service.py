"""
Search Service - Builds the ranked plan, executes it with retries, parses hits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from .models import RankedRetrievalPlan, SearchHit, SearchRequest, SearchResponse
from .query_builder import CONTRIBUTIONS_INNER_HITS, SEGMENTS_INNER_HITS, QueryBuilder
from .retry import RetryPolicy, summarize_error

if TYPE_CHECKING:
    from councilsearch.adapters.elasticsearch import ElasticsearchClient

logger = logging.getLogger(__name__)

__all__ = ["SearchService", "parse_search_response"]


def _inner_hit_ids(hit: dict[str, Any], name: str, key: str) -> list[str]:
    inner = hit.get("inner_hits", {}).get(name, {}).get("hits", {}).get("hits", [])
    ids = []
    for item in inner:
        value = (item.get("_source") or {}).get(key)
        if value is not None:
            ids.append(str(value))
    return ids


def parse_search_response(response: dict[str, Any]) -> tuple[list[SearchHit], int]:
    """Extract hits and the exact total from a search engine response."""
    hits_block = response.get("hits", {})
    total = hits_block.get("total", 0)
    total_value = total.get("value", 0) if isinstance(total, dict) else int(total)

    hits = []
    for hit in hits_block.get("hits", []):
        source = hit.get("_source") or {}
        subject_id = source.get("id", hit.get("_id"))
        if subject_id is None:
            logger.warning("Search hit without id skipped: score=%s", hit.get("_score"))
            continue
        hits.append(
            SearchHit(
                subject_id=str(subject_id),
                score=hit.get("_score") or 0.0,
                source=source,
                matched_segment_ids=_inner_hit_ids(hit, SEGMENTS_INNER_HITS, "segment_id"),
                matched_contribution_ids=_inner_hit_ids(
                    hit, CONTRIBUTIONS_INNER_HITS, "contribution_id"
                ),
            )
        )
    return hits, total_value


class SearchService:
    """
    End-to-end hybrid search.

    Example:
        >>> service = SearchService(builder, es_client, RetryPolicy())
        >>> response = await service.search(SearchRequest(query="πεζοδρόμια"))
        >>> response.total
    """

    def __init__(
        self,
        builder: QueryBuilder,
        client: ElasticsearchClient,
        retry: RetryPolicy,
        timeout: float | None = None,
        deadline: float | None = None,
    ) -> None:
        """
        Initialize search service.

        Args:
            builder: Query builder
            client: Search engine client
            retry: Retry policy for cold starts
            timeout: Per-request timeout in seconds
            deadline: Overall deadline in seconds for planning and execution,
                retries included
        """
        self._builder = builder
        self._client = client
        self._retry = retry
        self._timeout = timeout
        self._deadline = deadline

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Execute a search request."""
        start = time.perf_counter()
        logger.info(
            "Search session started: query='%s' cities=%s persons=%s parties=%s topics=%s "
            "date_range=%s locations=%d",
            request.query[:50],
            request.city_ids,
            request.person_ids,
            request.party_ids,
            request.topic_ids,
            request.date_range,
            len(request.locations or []),
        )

        try:
            if self._deadline is not None:
                plan, response = await asyncio.wait_for(self._run(request), self._deadline)
            else:
                plan, response = await self._run(request)
        except Exception as e:
            logger.error(
                "Search session failed: query='%s' error=%s",
                request.query[:50],
                summarize_error(e),
            )
            raise

        hits, total = parse_search_response(response)
        logger.info(
            "Search session completed: query='%s' total=%d returned=%d took=%sms "
            "branches=%d latency_ms=%.1f",
            request.query[:50],
            total,
            len(hits),
            response.get("took"),
            len(plan.branches),
            (time.perf_counter() - start) * 1000,
        )
        return SearchResponse(
            hits=hits,
            total=total,
            took_ms=int(response.get("took") or 0),
            filters=plan.filters,
        )

    async def _run(self, request: SearchRequest) -> tuple[RankedRetrievalPlan, dict[str, Any]]:
        plan = await self._builder.build(request)
        body = plan.to_request_body()
        response = await self._retry.execute(
            lambda: self._client.search(plan.index, body, timeout=self._timeout),
            context="Search",
        )
        return plan, response
