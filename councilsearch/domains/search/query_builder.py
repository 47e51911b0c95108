"""
Query Builder - Composes the ranked hybrid search request.

Steps:
1. Ask the filter extractor what the query text implies (city, dates, place)
2. Merge implied filters over the explicit ones and resolve the place phrase
3. Build one shared filter set (released-only is always applied)
4. Lexical branch: weighted multi-field match plus nested segment and
   contribution matches that report which sub-records matched
5. Semantic branch (optional): meaning-based match on title and description
6. Fuse both with reciprocal rank fusion
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

from .contracts import CityCatalog, FilterExtractor, LocationResolver
from .locations import resolve_locations
from .models import (
    ComposedFilterSet,
    ExtractedFilters,
    GeoLocation,
    RankedRetrievalPlan,
    RetrievalBranch,
    SearchRequest,
)

logger = logging.getLogger(__name__)

__all__ = [
    "QueryBuilder",
    "build_filter_clauses",
    "build_lexical_query",
    "build_plan",
    "build_semantic_query",
    "compose_filters",
]

# Index field names (produced by the sync connector)
FIELD_NAME = "public_subject_name"
FIELD_DESCRIPTION = "public_subject_description"
FIELD_LOCATION_TEXT = "public_subject_location_text"
FIELD_LOCATION_GEO = "public_subject_location_geojson"
FIELD_CITY_ID = "public_subject_city_id"
FIELD_RELEASED = "public_subject_meeting_released"
FIELD_MEETING_DATE = "public_subject_meeting_date"
FIELD_PERSON_ID = "public_subject_introduced_by_person_id"
FIELD_PARTY_ID = "public_subject_introduced_by_party_id"
FIELD_TOPIC_ID = "public_subject_topic_id"
PATH_SEGMENTS = "public_subject_speaker_segments"
PATH_CONTRIBUTIONS = "public_subject_contributions"

SEGMENTS_INNER_HITS = "speaker_segments"
CONTRIBUTIONS_INNER_HITS = "contributions"

# Boosts
NAME_BOOST = 4
DESCRIPTION_BOOST = 3
LOCATION_TEXT_BOOST = 3
SEGMENT_BOOST = 2
CONTRIBUTION_BOOST = 2
SEMANTIC_NAME_BOOST = 2.0
SEMANTIC_DESCRIPTION_BOOST = 1.0


def compose_filters(
    request: SearchRequest,
    extracted: ExtractedFilters,
    resolved_locations: list[GeoLocation] | None = None,
) -> ComposedFilterSet:
    """
    Merge extracted filters over explicit ones.

    Extracted city scope and date range win when present; resolved locations
    replace the explicit ones only when at least one place was resolved.
    """
    locations = resolved_locations or request.locations
    location_label = extracted.location_name if resolved_locations else None

    return ComposedFilterSet(
        city_ids=extracted.city_ids if extracted.city_ids is not None else request.city_ids,
        person_ids=request.person_ids,
        party_ids=request.party_ids,
        topic_ids=request.topic_ids,
        date_range=(
            extracted.date_range if extracted.date_range is not None else request.date_range
        ),
        locations=locations,
        location_label=location_label,
    )


def _geo_distance(location: GeoLocation) -> dict[str, Any]:
    return {
        "geo_distance": {
            "distance": f"{location.radius_km}km",
            FIELD_LOCATION_GEO: {
                "lat": location.point.lat,
                "lon": location.point.lon,
            },
        }
    }


def build_filter_clauses(filters: ComposedFilterSet) -> list[dict[str, Any]]:
    """Build the filter clauses shared by every retrieval branch."""
    clauses: list[dict[str, Any]] = [{"term": {FIELD_RELEASED: filters.released_only}}]

    if filters.city_ids:
        clauses.append({"terms": {FIELD_CITY_ID: filters.city_ids}})

    if filters.person_ids:
        clauses.append({"terms": {FIELD_PERSON_ID: filters.person_ids}})
        clauses.append(
            {
                "nested": {
                    "path": PATH_SEGMENTS,
                    "query": {
                        "bool": {
                            "must": [
                                {
                                    "terms": {
                                        f"{PATH_SEGMENTS}.speaker.person_id": filters.person_ids
                                    }
                                }
                            ]
                        }
                    },
                }
            }
        )

    if filters.party_ids:
        clauses.append({"terms": {FIELD_PARTY_ID: filters.party_ids}})

    if filters.topic_ids:
        clauses.append({"terms": {FIELD_TOPIC_ID: filters.topic_ids}})

    if filters.date_range:
        clauses.append(
            {
                "range": {
                    FIELD_MEETING_DATE: {
                        "gte": filters.date_range.start.isoformat(),
                        "lte": filters.date_range.end.isoformat(),
                    }
                }
            }
        )

    if filters.locations:
        if len(filters.locations) == 1:
            clauses.append(_geo_distance(filters.locations[0]))
        else:
            clauses.append(
                {
                    "bool": {
                        "should": [_geo_distance(loc) for loc in filters.locations],
                        "minimum_should_match": 1,
                    }
                }
            )

    return clauses


def _boosted_match(field: str, text: str, boost: float) -> dict[str, Any]:
    return {"match": {field: {"query": text, "boost": boost}}}


def build_lexical_query(
    text: str,
    filters: ComposedFilterSet,
    filter_clauses: list[dict[str, Any]],
) -> dict[str, Any]:
    """Keyword branch over subject fields and nested sub-records."""
    fields = [f"{FIELD_NAME}^{NAME_BOOST}", f"{FIELD_DESCRIPTION}^{DESCRIPTION_BOOST}"]
    if filters.location_label:
        fields.append(f"{FIELD_LOCATION_TEXT}^{LOCATION_TEXT_BOOST}")

    return {
        "bool": {
            "should": [
                {
                    "multi_match": {
                        "query": text,
                        "fields": fields,
                        "type": "best_fields",
                        "operator": "or",
                    }
                },
                {
                    "nested": {
                        "path": PATH_SEGMENTS,
                        "query": {
                            "bool": {
                                "should": [
                                    _boosted_match(f"{PATH_SEGMENTS}.text", text, SEGMENT_BOOST),
                                    _boosted_match(f"{PATH_SEGMENTS}.summary", text, SEGMENT_BOOST),
                                ],
                                "minimum_should_match": 1,
                            }
                        },
                        "inner_hits": {
                            "name": SEGMENTS_INNER_HITS,
                            "_source": [f"{PATH_SEGMENTS}.segment_id"],
                        },
                    }
                },
                {
                    "nested": {
                        "path": PATH_CONTRIBUTIONS,
                        "query": _boosted_match(
                            f"{PATH_CONTRIBUTIONS}.text", text, CONTRIBUTION_BOOST
                        ),
                        "inner_hits": {
                            "name": CONTRIBUTIONS_INNER_HITS,
                            "_source": [f"{PATH_CONTRIBUTIONS}.contribution_id"],
                        },
                    }
                },
            ],
            "minimum_should_match": 1,
            "filter": filter_clauses,
        }
    }


def build_semantic_query(text: str, filter_clauses: list[dict[str, Any]]) -> dict[str, Any]:
    """Meaning-based branch; title weighs more than description."""
    return {
        "bool": {
            "should": [
                {
                    "semantic": {
                        "field": f"{FIELD_NAME}.semantic",
                        "query": text,
                        "boost": SEMANTIC_NAME_BOOST,
                    }
                },
                {
                    "semantic": {
                        "field": f"{FIELD_DESCRIPTION}.semantic",
                        "query": text,
                        "boost": SEMANTIC_DESCRIPTION_BOOST,
                    }
                },
            ],
            "minimum_should_match": 1,
            "filter": filter_clauses,
        }
    }


def build_plan(
    request: SearchRequest,
    filters: ComposedFilterSet,
    index: str = "subjects",
) -> RankedRetrievalPlan:
    """Assemble the fused plan for already-composed filters."""
    config = request.config
    # Both branches get the same filter list
    filter_clauses = build_filter_clauses(filters)

    branches = [
        RetrievalBranch(
            name="lexical",
            query=build_lexical_query(request.query, filters, filter_clauses),
        )
    ]
    if config.enable_semantic_search:
        branches.append(
            RetrievalBranch(
                name="semantic",
                query=build_semantic_query(request.query, filter_clauses),
            )
        )

    return RankedRetrievalPlan(
        index=index,
        size=config.size,
        offset=config.offset,
        track_total_hits=True,
        branches=branches,
        rank_window_size=config.rank_window_size,
        rank_constant=config.rank_constant,
        filters=filters,
    )


class QueryBuilder:
    """
    Builds ranked retrieval plans from search requests.

    Example:
        >>> builder = QueryBuilder(extractor, resolver, catalog)
        >>> plan = await builder.build(SearchRequest(query="παιδικές χαρές"))
        >>> body = plan.to_request_body()
    """

    def __init__(
        self,
        extractor: FilterExtractor,
        resolver: LocationResolver,
        catalog: CityCatalog,
        index: str = "subjects",
        location_concurrency: int = 8,
        today: Callable[[], date] = date.today,
    ) -> None:
        """
        Initialize query builder.

        Args:
            extractor: Filter extractor collaborator
            resolver: Location resolver collaborator
            catalog: Source of known city scopes
            index: Search index name
            location_concurrency: Max concurrent location lookups
            today: Clock used for relative date phrases
        """
        self._extractor = extractor
        self._resolver = resolver
        self._catalog = catalog
        self._index = index
        self._location_concurrency = location_concurrency
        self._today = today

    async def build(self, request: SearchRequest) -> RankedRetrievalPlan:
        """
        Build the plan for a request.

        Extraction failures propagate; the builder never searches with
        filters silently dropped.
        """
        cities = await self._catalog.list_cities()
        extracted = await self._extractor.extract(request.query, cities, self._today())
        logger.info(
            "Extracted filters: cities=%s date_range=%s latest=%s location=%s",
            extracted.city_ids,
            extracted.date_range,
            extracted.is_latest,
            extracted.location_name,
        )

        resolved: list[GeoLocation] | None = None
        if extracted.location_name:
            scope_ids = extracted.city_ids if extracted.city_ids is not None else request.city_ids
            if scope_ids:
                targets = [c for c in cities if c.id in set(scope_ids)]
            else:
                targets = list(cities)
            resolved = await resolve_locations(
                self._resolver,
                extracted.location_name,
                targets,
                max_concurrency=self._location_concurrency,
            )

        filters = compose_filters(request, extracted, resolved)
        return build_plan(request, filters, index=self._index)
