"""Shared fixtures for mdcouncil-core tests."""

from __future__ import annotations

import pytest

from mdcouncil_core.config import ReviewSettings
from mdcouncil_core.gateway import GatewayError
from mdcouncil_core.models import Reviewer


class FakeGateway:
    """In-memory stand-in for OllamaClient.

    ``responses`` maps a model name to the reply text, or to a callable that
    receives the prompt. Models in ``fail_generate`` raise GatewayError on
    review calls; models in ``fail_load`` raise on the one-token load probe.
    Resident models are tracked so residency decisions can be asserted.
    """

    def __init__(self, responses=None, resident=None, fail_generate=(), fail_load=(), fail_list=False):
        self.responses = dict(responses or {})
        self.resident: list[str] = list(resident or [])
        self.fail_generate = set(fail_generate)
        self.fail_load = set(fail_load)
        self.fail_list = fail_list
        self.calls: list[tuple] = []

    async def list_running(self) -> list[dict]:
        self.calls.append(("ps",))
        if self.fail_list:
            raise GatewayError("GET /api/ps failed: connection refused")
        return [{"name": name, "size": 4_000_000_000, "size_vram": 4_000_000_000} for name in self.resident]

    async def generate(self, model, prompt, options=None, keep_alive=None, timeout=None) -> str:
        if keep_alive == 0:
            self.calls.append(("unload", model))
            self.resident = [name for name in self.resident if name != model]
            return ""
        if options == {"num_predict": 1}:
            self.calls.append(("load", model))
            if model in self.fail_load:
                raise GatewayError(f"POST /api/generate returned HTTP 404 for {model}")
            if model not in self.resident:
                self.resident.append(model)
            return "Hello"

        self.calls.append(("generate", model, prompt, options))
        if model in self.fail_generate:
            raise GatewayError("POST /api/generate failed: connection refused")
        reply = self.responses.get(model, "[]")
        return reply(prompt) if callable(reply) else reply

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)

    def residency_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("load", "unload")]


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def fast_settings():
    """Settings with the settle delays zeroed out."""
    return ReviewSettings(unload_settle_seconds=0, swap_settle_seconds=0)


@pytest.fixture
def make_reviewer():
    def _make(reviewer_id, model="llama3.1:8b", is_editor=False, enabled=True, **kwargs):
        return Reviewer(
            id=reviewer_id,
            name=kwargs.pop("name", reviewer_id.replace("_", " ").title()),
            model=model,
            system_prompt=kwargs.pop("system_prompt", f"You are {reviewer_id}."),
            is_editor=is_editor,
            enabled=enabled,
            **kwargs,
        )

    return _make
