"""
Elasticsearch Client - Async HTTP client for the search engine.

This is the ONLY place that talks to the search engine. It covers:
- The query protocol (ranked search with retrievers)
- Index aggregations used by the index status report
- The connector management protocol (config, filtering, sync jobs)

Connectivity failures are raised as ``TransientInfraError``; non-2xx
responses as ``ElasticsearchResponseError`` carrying status and body, so the
retry classifier can inspect both.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from councilsearch.config.errors import ErrorCode, SearchError, TransientInfraError

logger = logging.getLogger(__name__)

__all__ = ["ElasticsearchClient", "ElasticsearchResponseError"]


class ElasticsearchResponseError(SearchError):
    """Search engine answered with a non-2xx status."""

    def __init__(self, status_code: int, body: Any, path: str) -> None:
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(
            f"Elasticsearch API error: {status_code} {self.reason or ''}".strip(),
            details={"status_code": status_code, "path": path},
            code=(
                ErrorCode.SEARCH_INDEX_UNAVAILABLE
                if status_code == 503
                else ErrorCode.SEARCH_FAILED
            ),
        )

    @property
    def error_type(self) -> str:
        if isinstance(self.body, dict):
            error = self.body.get("error")
            if isinstance(error, dict):
                return str(error.get("type") or "")
        return ""

    @property
    def reason(self) -> str:
        if isinstance(self.body, dict):
            error = self.body.get("error")
            if isinstance(error, dict):
                return str(error.get("reason") or "")
            if isinstance(error, str):
                return error
        if isinstance(self.body, str):
            return self.body[:200]
        return ""


class ElasticsearchClient:
    """
    Search engine REST client.

    Example:
        >>> client = ElasticsearchClient("http://localhost:9200", api_key="...")
        >>> response = await client.search("subjects", {"query": {"match_all": {}}})
        >>> config = await client.get_connector("councilsearch-postgresql")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            base_url: Search engine URL
            api_key: API key sent as ``Authorization: ApiKey ...``
            timeout: Default request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"ApiKey {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(
                method,
                path,
                json=json,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as e:
            raise TransientInfraError(
                f"Elasticsearch unreachable: {type(e).__name__}",
                details={"path": path},
            ) from e

        if response.is_error:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            logger.error(
                "Elasticsearch API error: %s %s %d",
                method,
                path,
                response.status_code,
            )
            raise ElasticsearchResponseError(response.status_code, body, path)

        return response.json()

    async def search(
        self,
        index: str,
        body: dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run a search request against an index."""
        return await self._request("POST", f"/{index}/_search", json=body, timeout=timeout)

    async def get_connector(
        self,
        connector_id: str,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Fetch a connector document."""
        return await self._request("GET", f"/_connector/{connector_id}", timeout=timeout)

    async def update_connector_filtering(
        self,
        connector_id: str,
        filtering: dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Replace a connector's filtering configuration."""
        return await self._request(
            "PUT",
            f"/_connector/{connector_id}/_filtering",
            json=filtering,
            timeout=timeout,
        )

    async def list_sync_jobs(
        self,
        connector_id: str,
        size: int = 1,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """List the most recent sync jobs of a connector."""
        return await self._request(
            "GET",
            "/_connector/_sync_job",
            params={"connector_id": connector_id, "size": size},
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
