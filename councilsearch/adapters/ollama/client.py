"""
Ollama Client - Local LLM used to read filters out of free-text queries.

Features:
- Async HTTP client
- JSON-constrained generation
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from councilsearch.config.errors import TransientInfraError

logger = logging.getLogger(__name__)

__all__ = ["OllamaClient"]


class OllamaClient:
    """
    Ollama local LLM client.

    Example:
        >>> client = OllamaClient()
        >>> text = await client.generate("llama3.2", "Return {} as JSON", json_output=True)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Ollama client.

        Args:
            base_url: Ollama server URL
            timeout: Request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def generate(
        self,
        model: str,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.0,
        json_output: bool = False,
        timeout: float | None = None,
    ) -> str:
        """
        Generate text response.

        Args:
            model: Model name (e.g., "llama3.2")
            prompt: User prompt
            system: Optional system prompt
            temperature: Sampling temperature
            json_output: Constrain the reply to valid JSON
            timeout: Per-call timeout override in seconds

        Returns:
            Generated text
        """
        client = await self._get_client()

        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature},
        }
        if system:
            payload["system"] = system
        if json_output:
            payload["format"] = "json"

        try:
            response = await client.post(
                "/api/generate",
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise TransientInfraError(f"Ollama unreachable: {type(e).__name__}") from e
        response.raise_for_status()

        data = response.json()
        return data.get("response", "")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
