"""Async client for the local Ollama inference server.

Only the two endpoints the review pipeline needs are wrapped:

    POST /api/generate   one complete (non-streaming) generation, or an
                         unload when keep_alive=0
    GET  /api/ps         models currently resident on the device

Every transport problem (connection refused, timeout, non-2xx status,
undecodable body) is raised as GatewayError so callers have exactly one
exception type to recover from.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"


class GatewayError(Exception):
    """The inference server could not be reached or returned an error."""


class OllamaClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        list_timeout: float = 5.0,
        generate_timeout: float = 600.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.list_timeout = list_timeout
        self.generate_timeout = generate_timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: dict) -> OllamaClient:
        return cls(
            base_url=config.get("ollama_url") or DEFAULT_BASE_URL,
            list_timeout=config.get("list_timeout", 5.0),
            generate_timeout=config.get("generate_timeout", 600.0),
        )

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> OllamaClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, timeout: float, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http().request(method, url, json=payload, timeout=timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise GatewayError(f"{method} {path} timed out after {timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise GatewayError(f"{method} {path} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{method} {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise GatewayError(f"{method} {path} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise GatewayError(f"{method} {path} returned unexpected JSON: {type(data).__name__}")
        return data

    async def generate(
        self,
        model: str,
        prompt: str,
        options: dict | None = None,
        keep_alive: int | str | None = None,
        timeout: float | None = None,
    ) -> str:
        """Run one non-streaming generation and return the response text."""
        payload: dict = {"model": model, "prompt": prompt, "stream": False}
        if options:
            payload["options"] = options
        if keep_alive is not None:
            payload["keep_alive"] = keep_alive
        data = await self._request("POST", "/api/generate", timeout or self.generate_timeout, payload)
        return data.get("response") or ""

    async def list_running(self) -> list[dict]:
        """Return the raw ``models`` entries of ``GET /api/ps``."""
        data = await self._request("GET", "/api/ps", self.list_timeout)
        models = data.get("models") or []
        return [m for m in models if isinstance(m, dict)]
