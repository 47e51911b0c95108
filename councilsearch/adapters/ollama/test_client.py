"""
Tests for the Ollama client adapter.
"""

from __future__ import annotations

import json

import httpx
import pytest

from councilsearch.config.errors import TransientInfraError

from .client import OllamaClient


async def test_generate_json_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": '{"cityIds": null}', "done": True})

    client = OllamaClient("http://ollama.test/", transport=httpx.MockTransport(handler))
    text = await client.generate("llama3.2", "extract", system="rules", json_output=True)
    await client.close()

    assert text == '{"cityIds": null}'
    assert seen[0].url.path == "/api/generate"
    payload = json.loads(seen[0].content)
    assert payload["model"] == "llama3.2"
    assert payload["format"] == "json"
    assert payload["system"] == "rules"
    assert payload["stream"] is False


async def test_plain_generation_has_no_format() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": "ok"})

    client = OllamaClient(transport=httpx.MockTransport(handler))
    await client.generate("llama3.2", "hello")
    await client.close()

    assert "format" not in json.loads(seen[0].content)


async def test_unreachable_server_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = OllamaClient(transport=httpx.MockTransport(handler))
    with pytest.raises(TransientInfraError):
        await client.generate("llama3.2", "hello")
    await client.close()


async def test_server_error_raises_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "model not found"})

    client = OllamaClient(transport=httpx.MockTransport(handler))
    with pytest.raises(httpx.HTTPStatusError):
        await client.generate("missing", "hello")
    await client.close()
