"""
Connector Config Service - Reads and writes the live sync connector.

The connector document is the remote source of truth for which cities are
indexed. Other operators can edit it out-of-band, so it is fetched on every
call and never cached.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from councilsearch.config.errors import ConfigurationError, ErrorCode
from councilsearch.domains.search.retry import RetryPolicy, summarize_error

from .contracts import ConnectorClient
from .models import ConnectorConfig, ConnectorStatus, SyncJob
from .template import SyncQueryTemplate

logger = logging.getLogger(__name__)

__all__ = ["ConnectorConfigService"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectorConfigService:
    """
    Thin wrapper around the connector management endpoints.

    Example:
        >>> service = ConnectorConfigService(es_client, SyncQueryTemplate(), RetryPolicy())
        >>> status = await service.get_connector_status()
        >>> status.current_scope_ids
        ['athens', 'chania']
    """

    def __init__(
        self,
        client: ConnectorClient,
        template: SyncQueryTemplate,
        retry: RetryPolicy,
        connector_id: str = "councilsearch-postgresql",
        table: str = "Subject",
        liveness_window: timedelta = timedelta(hours=1),
        timeout: float | None = None,
        deadline: float | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize connector service.

        Args:
            client: Connector management client
            template: Sync query template
            retry: Retry policy for transient failures
            connector_id: Connector document ID
            table: Table the advanced snippet is registered for
            liveness_window: Connector counts as connected if seen within this window
            timeout: Default per-request timeout in seconds
            deadline: Overall deadline in seconds per call, retries included
            now: Clock, replaceable in tests
        """
        self._client = client
        self._template = template
        self._retry = retry
        self.connector_id = connector_id
        self.table = table
        self._liveness_window = liveness_window
        self._timeout = timeout
        self._deadline = deadline
        self._now = now

    async def get_config(self, timeout: float | None = None) -> ConnectorConfig:
        """
        Fetch the connector document.

        Raises:
            ConfigurationError: The connector does not exist (not retried)
        """
        timeout = timeout if timeout is not None else self._timeout

        async def fetch() -> dict[str, Any]:
            try:
                return await self._client.get_connector(self.connector_id, timeout=timeout)
            except Exception as e:
                if getattr(e, "status_code", None) == 404:
                    raise ConfigurationError(
                        f"Connector '{self.connector_id}' not found",
                        details={"connector_id": self.connector_id},
                        code=ErrorCode.CONNECTOR_NOT_FOUND,
                    ) from e
                raise

        data = await self._retry.execute(
            fetch, context="Get connector config", timeout=self._deadline
        )
        return ConnectorConfig.model_validate(data)

    def build_filtering(self, scope_ids: list[str]) -> dict[str, Any]:
        """Filtering body holding the materialized query as an advanced snippet."""
        query = self._template.render(scope_ids)
        return {"advanced_snippet": {"value": [{"tables": [self.table], "query": query}]}}

    async def update_filtering_query(
        self,
        scope_ids: list[str],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        Replace the connector's advanced snippet with the query for ``scope_ids``.

        Only call with scope IDs that passed the existence check. The replace
        is by value, so repeating it is harmless.
        """
        filtering = self.build_filtering(scope_ids)
        timeout = timeout if timeout is not None else self._timeout
        result = await self._retry.execute(
            lambda: self._client.update_connector_filtering(
                self.connector_id, filtering, timeout=timeout
            ),
            context="Update connector filtering",
            timeout=self._deadline,
        )
        logger.info(
            "Connector filtering updated: connector=%s cities=%s",
            self.connector_id,
            sorted(set(scope_ids)),
        )
        return result

    def is_connected(self, config: ConnectorConfig) -> bool:
        if config.last_seen is None:
            return False
        last_seen = config.last_seen
        if last_seen.tzinfo is None:
            last_seen = last_seen.replace(tzinfo=timezone.utc)
        return last_seen > self._now() - self._liveness_window

    async def get_connector_status(self) -> ConnectorStatus:
        """Scope, query and liveness of the live connector."""
        config = await self.get_config()
        query = config.current_query
        scope_ids = self._template.extract_scope_ids(query) if query else []
        return ConnectorStatus(
            current_scope_ids=scope_ids,
            current_query=query,
            query_updated_at=config.query_updated_at,
            is_valid=bool(scope_ids),
            is_connected=self.is_connected(config),
            last_seen=config.last_seen,
            status=config.status,
        )

    async def get_latest_sync_job(self) -> SyncJob | None:
        """Most recent sync run, or None when it cannot be determined."""
        try:
            response = await self._client.list_sync_jobs(
                self.connector_id, size=1, timeout=self._timeout
            )
            results = response.get("results") or []
            return SyncJob.model_validate(results[0]) if results else None
        except Exception as e:
            logger.warning(
                "Latest sync job unavailable: connector=%s error=%s",
                self.connector_id,
                summarize_error(e),
            )
            return None
