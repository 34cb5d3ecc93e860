"""Model residency on the shared inference device.

The device can hold roughly one large model at a time, and loading one is
slow. The controller therefore supports exactly one transition: evict
everything that is resident, then load the requested model. It owns the
process-wide ModelResidencyState; nothing else writes to it.

Every operation is best-effort and returns a plain value instead of raising.
"""

from __future__ import annotations

import asyncio
import logging

from mdcouncil_core.events import EventChannel
from mdcouncil_core.gateway import GatewayError, OllamaClient
from mdcouncil_core.models import ModelResidencyState, ResidentModel

logger = logging.getLogger(__name__)

_LOAD_PROMPT = "Hi"


def model_matches(resident_name: str, model: str) -> bool:
    """True when ``resident_name`` is ``model``, or ``model`` with the implicit ``:latest`` tag."""
    return resident_name == model or resident_name == f"{model}:latest"


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f}".rstrip("0").rstrip(".") + f" {units[unit]}"


class ModelResidencyController:
    def __init__(
        self,
        gateway: OllamaClient,
        events: EventChannel | None = None,
        unload_settle_seconds: float = 0.5,
        swap_settle_seconds: float = 1.0,
        load_timeout: float = 300.0,
    ):
        self.gateway = gateway
        self.events = events or EventChannel()
        self.unload_settle_seconds = unload_settle_seconds
        self.swap_settle_seconds = swap_settle_seconds
        self.load_timeout = load_timeout
        self.state = ModelResidencyState()

    def _set_status(self, model: str, status: str, detail: str = "") -> None:
        self.state.status[model] = status
        self.events.publish("residency", model, status, detail)

    async def list_resident(self) -> list[ResidentModel]:
        """Models currently resident. A gateway failure reads as "nothing resident"."""
        try:
            raw = await self.gateway.list_running()
        except GatewayError as e:
            logger.warning("Could not list resident models: %s", e)
            return []
        loaded = [ResidentModel.from_api(m) for m in raw]
        self.state.resident = {m.name for m in loaded}
        return loaded

    async def is_resident(self, model: str, loaded: list[ResidentModel] | None = None) -> bool:
        if loaded is None:
            loaded = await self.list_resident()
        return any(model_matches(m.name, model) for m in loaded)

    async def evict(self, model: str) -> bool:
        """Ask the gateway to unload ``model`` (keep_alive=0) and confirm after a settle delay.

        A model that still shows as resident afterwards is logged and tolerated.
        Returns False only when the unload request itself failed.
        """
        self._set_status(model, "unloading", f"Unloading {model}...")
        try:
            await self.gateway.generate(model, "", keep_alive=0, timeout=self.load_timeout)
        except GatewayError as e:
            logger.warning("Unload request for %s failed: %s", model, e)
            self._set_status(model, "error", str(e))
            return False

        await asyncio.sleep(self.unload_settle_seconds)

        loaded = await self.list_resident()
        if await self.is_resident(model, loaded):
            logger.warning("Model %s still appears resident after unload request", model)
        self.state.resident.discard(model)
        self._set_status(model, "idle", f"{model} unloaded")
        return True

    async def evict_all(self) -> int:
        """Unload every resident model; returns how many unload requests went through."""
        loaded = await self.list_resident()
        evicted = 0
        for resident in loaded:
            if await self.evict(resident.name):
                evicted += 1
        return evicted

    async def ensure_loaded(self, model: str) -> bool:
        """Make ``model`` the resident model. True when it is loaded and answering.

        Already resident → no-op. Otherwise every resident model is evicted
        first, then a one-token generation forces ``model`` in and proves it
        responds.
        """
        loaded = await self.list_resident()
        if await self.is_resident(model, loaded):
            self._set_status(model, "ready", f"{model} already loaded")
            return True

        if loaded:
            self.events.message(f"Freeing device memory ({len(loaded)} model(s) loaded)...")
            for resident in loaded:
                await self.evict(resident.name)
            await asyncio.sleep(self.swap_settle_seconds)

        self._set_status(model, "loading", f"Loading {model}...")
        try:
            await self.gateway.generate(model, _LOAD_PROMPT, options={"num_predict": 1}, timeout=self.load_timeout)
        except GatewayError as e:
            logger.error("Failed to load model %s: %s", model, e)
            self._set_status(model, "error", str(e))
            return False

        self.state.resident.add(model)
        self._set_status(model, "ready", f"{model} loaded and ready")
        return True
