"""
Search Domain - Hybrid lexical + semantic search over council subjects.

This domain handles:
- Filter extraction from query text and merging with explicit filters
- Location resolution fan-out
- Ranked retrieval plan construction (reciprocal rank fusion)
- Cold-start aware retries against the search engine
"""

from .catalog import PostgresCityCatalog
from .contracts import CityCatalog, FilterExtractor, LocationResolver
from .filters import LLMFilterExtractor
from .locations import PlacesLocationResolver, resolve_locations
from .models import (
    CityScope,
    ComposedFilterSet,
    DateRange,
    ExtractedFilters,
    GeoLocation,
    GeoPoint,
    RankedRetrievalPlan,
    RetrievalBranch,
    SearchConfig,
    SearchHit,
    SearchRequest,
    SearchResponse,
)
from .query_builder import QueryBuilder, build_filter_clauses, build_plan, compose_filters
from .retry import RetryEvent, RetryPolicy, is_retryable
from .service import SearchService

__all__ = [
    # Contracts
    "FilterExtractor",
    "LocationResolver",
    "CityCatalog",
    # Models
    "GeoPoint",
    "GeoLocation",
    "DateRange",
    "SearchConfig",
    "SearchRequest",
    "ExtractedFilters",
    "CityScope",
    "ComposedFilterSet",
    "RetrievalBranch",
    "RankedRetrievalPlan",
    "SearchHit",
    "SearchResponse",
    # Implementations
    "QueryBuilder",
    "compose_filters",
    "build_filter_clauses",
    "build_plan",
    "RetryPolicy",
    "RetryEvent",
    "is_retryable",
    "SearchService",
    "LLMFilterExtractor",
    "PlacesLocationResolver",
    "resolve_locations",
    "PostgresCityCatalog",
]
