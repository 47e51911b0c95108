"""
Index Status - Per-city comparison of the relational store and the index.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .models import CityIndexStatus, IndexStatusReport

if TYPE_CHECKING:
    from councilsearch.adapters.elasticsearch import ElasticsearchClient
    from councilsearch.adapters.postgres import PostgresRepository

logger = logging.getLogger(__name__)

__all__ = ["IndexStatusService", "build_status_aggregation"]

CITY_FIELD = "city_id"
MEETING_FIELD = "councilMeeting_id"
MEETING_DATE_FIELD = "meeting_date"
RELEASED_FIELD = "meeting_released"
UPDATED_FIELD = "updated_at"


def build_status_aggregation(city_count: int) -> dict[str, Any]:
    """Size-0 search body: last update time, and per city its subjects and meetings."""
    return {
        "size": 0,
        "query": {"term": {RELEASED_FIELD: True}},
        "aggs": {
            "last_updated": {"max": {"field": UPDATED_FIELD}},
            "cities": {
                "terms": {"field": CITY_FIELD, "size": city_count or 100},
                "aggs": {
                    "latest_meeting": {
                        "top_hits": {
                            "size": 1,
                            "sort": [{MEETING_DATE_FIELD: {"order": "desc"}}],
                            "_source": [MEETING_FIELD],
                        }
                    },
                    "total_meetings": {"cardinality": {"field": MEETING_FIELD}},
                },
            },
        },
    }


def _epoch_ms_to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)


class IndexStatusService:
    """Reports which cities are indexed and whether their meetings are current."""

    def __init__(
        self,
        repo: PostgresRepository,
        client: ElasticsearchClient,
        index: str = "subjects",
        timeout: float | None = None,
    ) -> None:
        self._repo = repo
        self._client = client
        self._index = index
        self._timeout = timeout

    async def city_status(self) -> IndexStatusReport:
        cities = await self._repo.list_cities(include_unlisted=True, timeout=self._timeout)
        city_ids = [city["id"] for city in cities]
        stats = {
            row["city_id"]: row
            for row in await self._repo.released_meeting_stats(city_ids, timeout=self._timeout)
        }

        response = await self._client.search(
            self._index,
            build_status_aggregation(len(city_ids)),
            timeout=self._timeout,
        )
        aggregations = response.get("aggregations") or {}
        buckets = {
            bucket["key"]: bucket
            for bucket in (aggregations.get("cities") or {}).get("buckets", [])
        }

        report = []
        for city in cities:
            db = stats.get(city["id"], {})
            bucket = buckets.get(city["id"])
            latest_index = None
            if bucket:
                top = bucket.get("latest_meeting", {}).get("hits", {}).get("hits", [])
                if top:
                    latest_index = (top[0].get("_source") or {}).get(MEETING_FIELD)
            report.append(
                CityIndexStatus(
                    city_id=city["id"],
                    city_name=city["name"],
                    is_listed=bool(city.get("is_listed", True)),
                    total_meetings_db=int(db.get("total_meetings") or 0),
                    latest_meeting_id_db=db.get("latest_meeting_id"),
                    total_meetings_index=int(
                        (bucket or {}).get("total_meetings", {}).get("value") or 0
                    ),
                    total_subjects_index=int((bucket or {}).get("doc_count") or 0),
                    latest_meeting_id_index=latest_index,
                    is_in_index=bucket is not None,
                )
            )

        report.sort(key=lambda status: status.city_name)
        out_of_sync = [status.city_id for status in report if not status.in_sync]
        if out_of_sync:
            logger.info("Cities out of sync with the index: %s", out_of_sync)
        return IndexStatusReport(
            last_sync=_epoch_ms_to_datetime(
                (aggregations.get("last_updated") or {}).get("value")
            ),
            cities=report,
        )
