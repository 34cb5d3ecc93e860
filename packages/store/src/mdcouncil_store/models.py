"""Review history data models.

Decoupled from mdcouncil_core so the store layer can be used independently
and the core has no knowledge of persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FindingRecord:
    """One finding and the user's decision on it."""

    reviewer: str
    line: int
    type: str
    severity: str
    status: str  # "pending" | "accepted" | "rejected" | "dismissed"
    comment: str


@dataclass
class ReviewRecord:
    """A completed council review persisted to the store.

    The CLI maps the core's ReviewSession/ReviewDocument to a ReviewRecord
    before calling store.save().
    """

    session_id: str
    document_path: str
    reviewed_at: str  # ISO-8601 UTC timestamp
    reviewers: list[str]
    summary: str
    total_findings: int
    overall_assessment: str = ""
    findings: list[FindingRecord] = field(default_factory=list)
