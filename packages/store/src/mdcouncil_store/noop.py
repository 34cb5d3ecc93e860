"""No-op store - the default when no store is configured."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mdcouncil_store.base import BaseStore

if TYPE_CHECKING:
    from mdcouncil_store.models import ReviewRecord


class NoOpStore(BaseStore):
    """Silently discards all records. Set ``store: sqlite`` in .mdcouncil.yml to keep history."""

    def save(self, record: ReviewRecord) -> None:
        pass

    def list_reviews(self, document_path: str | None = None) -> list[ReviewRecord]:
        return []
