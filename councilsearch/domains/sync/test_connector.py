"""
Tests for the connector config service.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from councilsearch.adapters.elasticsearch import ElasticsearchResponseError
from councilsearch.config.errors import ConfigurationError, ErrorCode, TransientInfraError
from councilsearch.domains.search.retry import RetryPolicy

from .connector import ConnectorConfigService
from .template import SyncQueryTemplate

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def connector_document(query: str | None, last_seen: datetime | None = None) -> dict[str, Any]:
    snippet = {
        "value": [{"tables": ["Subject"], "query": query}] if query else [],
        "updated_at": "2025-02-28T09:30:00Z",
    }
    return {
        "id": "councilsearch-postgresql",
        "index_name": "subjects",
        "status": "connected",
        "last_seen": last_seen.isoformat() if last_seen else None,
        "filtering": [
            {
                "domain": "DEFAULT",
                "active": {"advanced_snippet": snippet, "rules": []},
                "draft": {"advanced_snippet": {"value": []}, "rules": []},
            }
        ],
    }


@pytest.fixture
def template() -> SyncQueryTemplate:
    return SyncQueryTemplate()


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(
    mock_client: AsyncMock,
    template: SyncQueryTemplate,
    sleep: AsyncMock,
) -> ConnectorConfigService:
    return ConnectorConfigService(
        client=mock_client,
        template=template,
        retry=RetryPolicy(sleep=sleep),
        now=lambda: NOW,
    )


async def test_get_config_parses_document(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    template: SyncQueryTemplate,
) -> None:
    query = template.render(["athens"])
    mock_client.get_connector.return_value = connector_document(query)

    config = await service.get_config()

    assert config.id == "councilsearch-postgresql"
    assert config.current_query == query
    mock_client.get_connector.assert_awaited_once_with("councilsearch-postgresql", timeout=None)


async def test_get_config_not_found_is_configuration_error(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    sleep: AsyncMock,
) -> None:
    """Test a missing connector fails at once, without retries."""
    mock_client.get_connector.side_effect = ElasticsearchResponseError(
        404,
        {"error": {"type": "resource_not_found_exception", "reason": "connector missing"}},
        "/_connector/councilsearch-postgresql",
    )

    with pytest.raises(ConfigurationError) as exc_info:
        await service.get_config()

    assert exc_info.value.code == ErrorCode.CONNECTOR_NOT_FOUND
    assert mock_client.get_connector.await_count == 1
    sleep.assert_not_awaited()


async def test_get_config_retries_transient_failure(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    sleep: AsyncMock,
) -> None:
    mock_client.get_connector.side_effect = [
        TransientInfraError("Elasticsearch unreachable: ConnectError"),
        connector_document(None),
    ]

    config = await service.get_config()

    assert config.current_query is None
    assert mock_client.get_connector.await_count == 2
    sleep.assert_awaited_once_with(2.0)


async def test_active_snippet_preferred_over_draft(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
) -> None:
    document = connector_document("SELECT 'active'")
    document["filtering"][0]["draft"]["advanced_snippet"]["value"] = [
        {"tables": ["Subject"], "query": "SELECT 'draft'"}
    ]
    mock_client.get_connector.return_value = document

    config = await service.get_config()

    assert config.current_query == "SELECT 'active'"


async def test_draft_used_without_active(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
) -> None:
    document = connector_document(None)
    document["filtering"][0]["draft"]["advanced_snippet"]["value"] = [
        {"tables": ["Subject"], "query": "SELECT 'draft'"}
    ]
    mock_client.get_connector.return_value = document

    config = await service.get_config()

    assert config.current_query == "SELECT 'draft'"


async def test_update_filtering_query_pushes_snippet(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    template: SyncQueryTemplate,
) -> None:
    mock_client.update_connector_filtering.return_value = {"result": "updated"}

    await service.update_filtering_query(["chania", "athens"])

    connector_id, filtering = mock_client.update_connector_filtering.await_args.args
    assert connector_id == "councilsearch-postgresql"
    assert filtering == {
        "advanced_snippet": {
            "value": [{"tables": ["Subject"], "query": template.render(["athens", "chania"])}]
        }
    }


async def test_connector_status_connected(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    template: SyncQueryTemplate,
) -> None:
    mock_client.get_connector.return_value = connector_document(
        template.render(["athens", "chania"]),
        last_seen=NOW - timedelta(minutes=10),
    )

    status = await service.get_connector_status()

    assert status.current_scope_ids == ["athens", "chania"]
    assert status.is_valid
    assert status.is_connected
    assert status.status == "connected"
    assert status.query_updated_at == datetime(2025, 2, 28, 9, 30, tzinfo=timezone.utc)


async def test_connector_status_stale_connector(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
    template: SyncQueryTemplate,
) -> None:
    """Test a connector last seen more than an hour ago counts as disconnected."""
    mock_client.get_connector.return_value = connector_document(
        template.render(["athens"]),
        last_seen=NOW - timedelta(hours=2),
    )

    status = await service.get_connector_status()

    assert not status.is_connected
    assert status.is_valid


async def test_connector_status_without_query(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
) -> None:
    mock_client.get_connector.return_value = connector_document(None)

    status = await service.get_connector_status()

    assert status.current_scope_ids == []
    assert status.current_query is None
    assert not status.is_valid
    assert not status.is_connected


async def test_latest_sync_job(service: ConnectorConfigService, mock_client: AsyncMock) -> None:
    mock_client.list_sync_jobs.return_value = {
        "count": 1,
        "results": [{"id": "job-1", "status": "completed", "indexed_document_count": 120}],
    }

    job = await service.get_latest_sync_job()

    assert job is not None
    assert job.id == "job-1"
    assert job.indexed_document_count == 120


async def test_latest_sync_job_none_on_failure(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
) -> None:
    mock_client.list_sync_jobs.side_effect = ElasticsearchResponseError(500, "boom", "/_sync_job")

    assert await service.get_latest_sync_job() is None


async def test_latest_sync_job_none_when_empty(
    service: ConnectorConfigService,
    mock_client: AsyncMock,
) -> None:
    mock_client.list_sync_jobs.return_value = {"count": 0, "results": []}

    assert await service.get_latest_sync_job() is None
