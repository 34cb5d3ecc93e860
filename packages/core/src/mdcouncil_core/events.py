"""Ordered stream of review progress events.

The orchestrator, task runner and residency controller all publish into one
EventChannel owned by the orchestrator. Consumers either read ``history``
after the fact, register a synchronous listener, or pull from an
``asyncio.Queue`` returned by ``listen()``. All three see events in the exact
order they were published. The orchestrator clears ``history`` when a new
session starts; queues stay attached until ``unlisten()``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)

# kind      subject          status
# phase     "review"         one of REVIEW_PHASES
# reviewer  reviewer id      one of REVIEWER_PROGRESS
# residency model name       one of RESIDENCY_STATUSES
# synthesis editor id        "in_progress" | "complete" | "error"
# message   ""               "" (free-text progress line in ``detail``)
EVENT_KINDS = ("phase", "reviewer", "residency", "synthesis", "message")


@dataclass
class ReviewEvent:
    kind: str
    subject: str
    status: str
    detail: str = ""
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventChannel:
    def __init__(self) -> None:
        self.history: list[ReviewEvent] = []
        self._listeners: list[Callable[[ReviewEvent], None]] = []
        self._queues: list[asyncio.Queue] = []

    def publish(self, kind: str, subject: str, status: str, detail: str = "") -> ReviewEvent:
        event = ReviewEvent(kind=kind, subject=subject, status=status, detail=detail)
        self.history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Listener failures never reach the publisher.
                logger.warning("Event listener %r failed: %s", listener, e)
        for queue in self._queues:
            queue.put_nowait(event)
        return event

    def message(self, detail: str) -> ReviewEvent:
        return self.publish("message", "", "", detail)

    def subscribe(self, listener: Callable[[ReviewEvent], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def listen(self) -> asyncio.Queue:
        """Return a queue that receives every event published from now on."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unlisten(self, queue: asyncio.Queue) -> None:
        """Stop feeding a queue returned by listen()."""
        if queue in self._queues:
            self._queues.remove(queue)

    def transitions(self, kind: str, subject: str | None = None) -> list[tuple[str, str]]:
        """(subject, status) pairs of one kind, in publish order."""
        return [
            (e.subject, e.status)
            for e in self.history
            if e.kind == kind and (subject is None or e.subject == subject)
        ]

    def clear(self) -> None:
        """Drop recorded history. Listeners and queues stay attached."""
        self.history.clear()
