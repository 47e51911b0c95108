"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of clients and services. The CLI builds its
services through the same functions.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from councilsearch.adapters import (
    ElasticsearchClient,
    OllamaClient,
    PlacesClient,
    PostgresRepository,
)
from councilsearch.config import get_settings
from councilsearch.domains.search import (
    LLMFilterExtractor,
    PlacesLocationResolver,
    PostgresCityCatalog,
    QueryBuilder,
    RetryPolicy,
    SearchService,
)
from councilsearch.domains.sync import (
    ConnectorConfigService,
    IndexStatusService,
    SyncPreviewService,
    SyncQueryTemplate,
    SyncValidator,
)

logger = logging.getLogger(__name__)


# --- Adapters ---


@lru_cache
def get_elasticsearch_client() -> ElasticsearchClient:
    """Get search engine client singleton."""
    settings = get_settings()
    return ElasticsearchClient(
        settings.elasticsearch_url,
        api_key=settings.elasticsearch_api_key,
        timeout=settings.request_timeout,
    )


@lru_cache
def get_postgres_repository() -> PostgresRepository:
    """Get Postgres repository singleton."""
    settings = get_settings()
    return PostgresRepository(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )


@lru_cache
def get_ollama_client() -> OllamaClient:
    settings = get_settings()
    return OllamaClient(settings.ollama_url, timeout=settings.ollama_timeout)


@lru_cache
def get_places_client() -> PlacesClient:
    settings = get_settings()
    if not settings.places_api_key:
        logger.warning("PLACES_API_KEY is not set; location lookups will fail")
    return PlacesClient(settings.places_api_key or "", base_url=settings.places_base_url)


# --- Search ---


@lru_cache
def get_retry_policy() -> RetryPolicy:
    return RetryPolicy.from_settings(get_settings())


@lru_cache
def get_query_builder() -> QueryBuilder:
    settings = get_settings()
    return QueryBuilder(
        extractor=LLMFilterExtractor(
            get_ollama_client(),
            model=settings.ollama_model,
            timeout=settings.ollama_timeout,
        ),
        resolver=PlacesLocationResolver(
            get_places_client(),
            radius_km=settings.location_radius_km,
            bias_radius_m=settings.location_bias_radius_m,
            timeout=settings.request_timeout,
        ),
        catalog=PostgresCityCatalog(get_postgres_repository(), timeout=settings.request_timeout),
        index=settings.elasticsearch_index,
        location_concurrency=settings.location_resolution_concurrency,
    )


@lru_cache
def get_search_service() -> SearchService:
    """Get search service singleton."""
    settings = get_settings()
    return SearchService(
        get_query_builder(),
        get_elasticsearch_client(),
        get_retry_policy(),
        timeout=settings.request_timeout,
        deadline=settings.search_deadline,
    )


# --- Sync ---


@lru_cache
def get_sync_template() -> SyncQueryTemplate:
    return SyncQueryTemplate()


@lru_cache
def get_connector_service() -> ConnectorConfigService:
    """Get connector configuration service singleton."""
    settings = get_settings()
    return ConnectorConfigService(
        get_elasticsearch_client(),
        get_sync_template(),
        get_retry_policy(),
        connector_id=settings.connector_id,
        table=settings.connector_table,
        liveness_window=settings.connector_liveness_window,
        timeout=settings.request_timeout,
        deadline=settings.sync_deadline,
    )


@lru_cache
def get_sync_validator() -> SyncValidator:
    """Get sync validator singleton."""
    settings = get_settings()
    return SyncValidator(
        get_postgres_repository(),
        get_sync_template(),
        get_connector_service(),
        get_retry_policy(),
        count_timeout=settings.count_query_timeout,
        deadline=settings.sync_deadline,
    )


@lru_cache
def get_preview_service() -> SyncPreviewService:
    settings = get_settings()
    return SyncPreviewService(
        get_postgres_repository(),
        get_sync_template(),
        get_sync_validator(),
        timeout=settings.count_query_timeout,
    )


@lru_cache
def get_index_status_service() -> IndexStatusService:
    settings = get_settings()
    return IndexStatusService(
        get_postgres_repository(),
        get_elasticsearch_client(),
        index=settings.elasticsearch_index,
        timeout=settings.request_timeout,
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    await get_postgres_repository().initialize()


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    await get_postgres_repository().close()
    await get_elasticsearch_client().close()
    await get_ollama_client().close()
    await get_places_client().close()
