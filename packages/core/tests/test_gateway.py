"""Tests for the Ollama HTTP client, driven through httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from mdcouncil_core.gateway import GatewayError, OllamaClient


def _client(handler) -> OllamaClient:
    transport = httpx.MockTransport(handler)
    return OllamaClient("http://ollama.test:11434/", client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
class TestGenerate:
    async def test_posts_non_streaming_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "[]", "done": True})

        async with _client(handler) as client:
            text = await client.generate("llama3.1:8b", "Review this", options={"temperature": 0.5})

        assert text == "[]"
        assert seen["url"] == "http://ollama.test:11434/api/generate"
        assert seen["body"] == {
            "model": "llama3.1:8b",
            "prompt": "Review this",
            "stream": False,
            "options": {"temperature": 0.5},
        }

    async def test_keep_alive_zero_is_sent(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"done": True})

        async with _client(handler) as client:
            assert await client.generate("mistral:7b", "", keep_alive=0) == ""

        assert bodies[0]["keep_alive"] == 0
        assert "options" not in bodies[0]

    async def test_http_error_status_raises_gateway_error(self):
        async with _client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(GatewayError, match="HTTP 500"):
                await client.generate("llama3.1:8b", "hi")

    async def test_connection_error_raises_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError, match="failed"):
                await client.generate("llama3.1:8b", "hi")

    async def test_timeout_raises_gateway_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError, match="timed out"):
                await client.generate("llama3.1:8b", "hi", timeout=2)

    async def test_non_json_body_raises_gateway_error(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(GatewayError, match="non-JSON"):
                await client.generate("llama3.1:8b", "hi")


@pytest.mark.asyncio
class TestListRunning:
    async def test_returns_model_entries(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/api/ps"
            return httpx.Response(
                200, json={"models": [{"name": "llama3.1:8b", "size_vram": 5_000_000_000}, "junk"]}
            )

        async with _client(handler) as client:
            models = await client.list_running()

        assert models == [{"name": "llama3.1:8b", "size_vram": 5_000_000_000}]

    async def test_empty_listing(self):
        async with _client(lambda request: httpx.Response(200, json={})) as client:
            assert await client.list_running() == []


class TestFromConfig:
    def test_reads_url_and_timeouts(self):
        client = OllamaClient.from_config(
            {"ollama_url": "http://gpu-box:11434", "list_timeout": 2.0, "generate_timeout": 30.0}
        )
        assert client.base_url == "http://gpu-box:11434"
        assert client.list_timeout == 2.0
        assert client.generate_timeout == 30.0
