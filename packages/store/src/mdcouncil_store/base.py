"""Abstract store interface.

Any storage backend for review history implements this interface. The CLI
depends on BaseStore, not on a concrete backend, so backends are swappable
without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdcouncil_store.models import ReviewRecord


class BaseStore(ABC):
    """Pluggable persistence layer for completed council reviews."""

    @abstractmethod
    def save(self, record: ReviewRecord) -> None:
        """Persist a completed review record."""

    @abstractmethod
    def list_reviews(self, document_path: str | None = None) -> list[ReviewRecord]:
        """Return reviews, oldest first, optionally filtered by document path.

        Returns an empty list if no reviews exist - never raises.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
