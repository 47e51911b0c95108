"""
Search Models - Data types for search domain.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

if TYPE_CHECKING:
    from councilsearch.config.settings import Settings

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _as_utc(value: date, day_time: time) -> datetime:
    """Comparable instant for a bound; dates take ``day_time`` on that day."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, day_time)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GeoPoint(BaseModel):
    """Latitude/longitude pair."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    model_config = {"frozen": True}


class GeoLocation(BaseModel):
    """A point with the radius (km) to match around it."""

    point: GeoPoint
    radius_km: float = Field(default=5.0, gt=0)
    label: str | None = None

    model_config = {"frozen": True}


class DateRange(BaseModel):
    """
    Inclusive date range. Accepts ISO 8601 dates or datetimes.

    Date-only bounds stay dates, so an end date covers that whole day.
    Naive datetimes are read as UTC when compared with aware ones.
    """

    start: datetime | date
    end: datetime | date

    model_config = {"frozen": True}

    @field_validator("start", "end", mode="before")
    @classmethod
    def _keep_date_only(cls, value: Any) -> Any:
        if isinstance(value, str) and _DATE_ONLY.match(value.strip()):
            return date.fromisoformat(value.strip())
        return value

    @model_validator(mode="after")
    def _start_before_end(self) -> DateRange:
        if _as_utc(self.start, time.min) > _as_utc(self.end, time.max):
            raise ValueError("date range start must not be after end")
        return self


class SearchConfig(BaseModel):
    """Search tuning knobs. Every option is named; no free-form maps."""

    size: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    enable_semantic_search: bool = True
    rank_window_size: int = Field(default=100, ge=1)
    rank_constant: int = Field(default=60, ge=1)
    detailed: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchConfig:
        """Deployment defaults; callers merge per-request options on top."""
        return cls(
            size=settings.search_page_size,
            enable_semantic_search=settings.search_enable_semantic,
            rank_window_size=settings.search_rank_window_size,
            rank_constant=settings.search_rank_constant,
        )

    def merged(self, **overrides: Any) -> SearchConfig:
        """Shallow merge: overrides that are not None replace defaults."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return self.model_validate({**self.model_dump(), **values})


class SearchRequest(BaseModel):
    """Search request with optional explicit (UI) filters."""

    query: str = Field(..., min_length=1)
    city_ids: list[str] | None = None
    person_ids: list[str] | None = None
    party_ids: list[str] | None = None
    topic_ids: list[str] | None = None
    date_range: DateRange | None = None
    locations: list[GeoLocation] | None = None
    config: SearchConfig = Field(default_factory=SearchConfig)

    model_config = {"frozen": True}

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value.strip()


class ExtractedFilters(BaseModel):
    """
    Filters implied by the query text.

    Every field is required but nullable: an absent filter must arrive as an
    explicit null, never as a missing key.
    """

    city_ids: list[str] | None = Field(..., alias="cityIds")
    date_range: DateRange | None = Field(..., alias="dateRange")
    is_latest: bool | None = Field(..., alias="isLatest")
    location_name: str | None = Field(..., alias="locationName")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class CityScope(BaseModel):
    """Catalog entry for a city the search can be scoped to."""

    id: str
    name: str
    name_en: str = ""
    center: GeoPoint | None = None

    model_config = {"frozen": True}


class ComposedFilterSet(BaseModel):
    """Explicit request filters merged with extracted ones."""

    city_ids: list[str] | None = None
    person_ids: list[str] | None = None
    party_ids: list[str] | None = None
    topic_ids: list[str] | None = None
    date_range: DateRange | None = None
    locations: list[GeoLocation] | None = None
    location_label: str | None = None

    model_config = {"frozen": True}

    @property
    def released_only(self) -> bool:
        """Unreleased meetings are never searchable."""
        return True


class RetrievalBranch(BaseModel):
    """One retriever of the fused plan."""

    name: str  # "lexical" or "semantic"
    query: dict[str, Any]


class RankedRetrievalPlan(BaseModel):
    """Executable ranked query: retrieval branches plus fusion parameters."""

    index: str
    size: int
    offset: int
    track_total_hits: bool = True
    branches: list[RetrievalBranch]
    rank_window_size: int
    rank_constant: int
    filters: ComposedFilterSet

    def to_request_body(self) -> dict[str, Any]:
        """Render the search request body."""
        standard = [{"standard": {"query": b.query}} for b in self.branches]
        if len(standard) == 1:
            retriever: dict[str, Any] = standard[0]
        else:
            retriever = {
                "rrf": {
                    "retrievers": standard,
                    "rank_window_size": self.rank_window_size,
                    "rank_constant": self.rank_constant,
                }
            }
        return {
            "size": self.size,
            "from": self.offset,
            "track_total_hits": self.track_total_hits,
            "retriever": retriever,
        }


class SearchHit(BaseModel):
    """Single ranked hit."""

    subject_id: str
    score: float = 0.0
    source: dict[str, Any] = Field(default_factory=dict)
    matched_segment_ids: list[str] = Field(default_factory=list)
    matched_contribution_ids: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Ranked hits with the exact total."""

    hits: list[SearchHit]
    total: int
    took_ms: int = 0
    filters: ComposedFilterSet | None = None
