"""Tests for the model residency controller."""

import pytest

from mdcouncil_core.events import EventChannel
from mdcouncil_core.residency import ModelResidencyController, format_bytes, model_matches


def _controller(gateway, events=None):
    return ModelResidencyController(gateway, events, unload_settle_seconds=0, swap_settle_seconds=0)


class TestModelMatches:
    def test_exact_name(self):
        assert model_matches("llama3.1:8b", "llama3.1:8b")

    def test_tag_suffix(self):
        assert model_matches("llama3:latest", "llama3")

    def test_prefix_without_colon_does_not_match(self):
        assert not model_matches("llama3.1:8b", "llama3")

    def test_other_tag_does_not_match(self):
        assert not model_matches("llama3:70b", "llama3")


class TestFormatBytes:
    def test_zero(self):
        assert format_bytes(0) == "0 B"

    def test_gigabytes(self):
        assert format_bytes(5 * 1024**3) == "5 GB"

    def test_fractional(self):
        assert format_bytes(1536) == "1.5 KB"


@pytest.mark.asyncio
class TestEnsureLoaded:
    async def test_already_resident_is_noop(self, make_gateway):
        gateway = make_gateway(resident=["llama3.1:8b"])
        controller = _controller(gateway)

        assert await controller.ensure_loaded("llama3.1:8b") is True
        assert gateway.residency_calls() == []
        assert controller.state.status["llama3.1:8b"] == "ready"

    async def test_tagged_resident_counts_as_loaded(self, make_gateway):
        gateway = make_gateway(resident=["mistral:latest"])
        controller = _controller(gateway)

        assert await controller.ensure_loaded("mistral") is True
        assert gateway.residency_calls() == []

    async def test_evicts_everything_before_loading(self, make_gateway):
        gateway = make_gateway(resident=["mistral:7b", "phi3:mini"])
        controller = _controller(gateway)

        assert await controller.ensure_loaded("llama3.1:8b") is True
        assert gateway.residency_calls() == [
            ("unload", "mistral:7b"),
            ("unload", "phi3:mini"),
            ("load", "llama3.1:8b"),
        ]
        assert gateway.resident == ["llama3.1:8b"]
        assert controller.state.resident == {"llama3.1:8b"}

    async def test_load_failure_reports_false(self, make_gateway):
        gateway = make_gateway(fail_load={"missing:1b"})
        events = EventChannel()
        controller = _controller(gateway, events)

        assert await controller.ensure_loaded("missing:1b") is False
        assert controller.state.status["missing:1b"] == "error"
        assert events.transitions("residency", "missing:1b") == [("missing:1b", "loading"), ("missing:1b", "error")]

    async def test_status_transitions_published_in_order(self, make_gateway):
        gateway = make_gateway(resident=["mistral:7b"])
        events = EventChannel()
        controller = _controller(gateway, events)

        await controller.ensure_loaded("llama3.1:8b")

        assert events.transitions("residency") == [
            ("mistral:7b", "unloading"),
            ("mistral:7b", "idle"),
            ("llama3.1:8b", "loading"),
            ("llama3.1:8b", "ready"),
        ]

    async def test_list_failure_treated_as_nothing_resident(self, make_gateway):
        gateway = make_gateway(fail_list=True)
        controller = _controller(gateway)

        assert await controller.ensure_loaded("llama3.1:8b") is True
        assert gateway.residency_calls() == [("load", "llama3.1:8b")]


@pytest.mark.asyncio
class TestEvict:
    async def test_evict_all_returns_count(self, make_gateway):
        gateway = make_gateway(resident=["a:1", "b:2"])
        controller = _controller(gateway)

        assert await controller.evict_all() == 2
        assert gateway.resident == []

    async def test_evict_tolerates_model_still_listed(self, make_gateway, mocker):
        gateway = make_gateway(resident=["stubborn:1"])
        # Unload "succeeds" but the model never leaves the listing.
        mocker.patch.object(gateway, "generate", mocker.AsyncMock(return_value=""))
        controller = _controller(gateway)

        assert await controller.evict("stubborn:1") is True
        assert controller.state.status["stubborn:1"] == "idle"

    async def test_evict_settles_before_requery(self, make_gateway, mocker):
        gateway = make_gateway(resident=["a:1"])
        sleep = mocker.patch("mdcouncil_core.residency.asyncio.sleep", mocker.AsyncMock())
        controller = ModelResidencyController(gateway, unload_settle_seconds=0.5)

        await controller.evict("a:1")

        sleep.assert_awaited_once_with(0.5)


@pytest.mark.asyncio
async def test_swap_evicts_once_then_loads_once(make_gateway):
    gateway = make_gateway(resident=["N"])
    controller = _controller(gateway)

    assert await controller.ensure_loaded("M") is True
    assert gateway.residency_calls() == [("unload", "N"), ("load", "M")]


@pytest.mark.asyncio
async def test_different_tag_of_same_model_is_swapped_out(make_gateway):
    gateway = make_gateway(resident=["llama3:70b"])
    controller = _controller(gateway)

    assert await controller.ensure_loaded("llama3") is True
    assert gateway.residency_calls() == [("unload", "llama3:70b"), ("load", "llama3")]
