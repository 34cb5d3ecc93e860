"""Council review data model.

Every record is a plain dataclass. Enumerated fields are plain strings checked
against the tuples below, so records serialise to YAML/JSON/SQLite without any
conversion layer.
"""

from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

FINDING_TYPES = ("suggestion", "warning", "error", "praise", "question")
SEVERITIES = ("low", "medium", "high")
FINDING_STATUSES = ("pending", "accepted", "rejected", "dismissed")
PRIORITIES = ("high", "medium", "low")

# Ordered: a session only ever moves to the right. cancel_review() is the one
# path back to "idle".
REVIEW_PHASES = ("idle", "council_reviewing", "editor_synthesizing", "user_deciding", "complete")

REVIEWER_PROGRESS = ("pending", "in_progress", "complete", "error")
RESIDENCY_STATUSES = ("idle", "unloading", "loading", "ready", "error")

DEFAULT_CONFIDENCE = 0.8


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Reviewer:
    """A configured reviewer role: one model, one system prompt."""

    id: str
    name: str
    model: str
    system_prompt: str = ""
    icon: str = ""
    color: str = ""
    is_editor: bool = False
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> Reviewer:
        """Build a Reviewer from one entry of the ``reviewers`` config list."""
        if not isinstance(data, dict):
            raise ValueError(f"Reviewer entry must be a mapping, got {type(data).__name__}.")
        reviewer_id = data.get("id")
        model = data.get("model")
        if not reviewer_id or not model:
            raise ValueError(f"Reviewer entry needs both 'id' and 'model': {data!r}")
        return cls(
            id=str(reviewer_id),
            name=str(data.get("name") or reviewer_id),
            model=str(model),
            system_prompt=str(data.get("system_prompt") or ""),
            icon=str(data.get("icon") or ""),
            color=str(data.get("color") or ""),
            is_editor=bool(data.get("is_editor", False)),
            enabled=bool(data.get("enabled", True)),
        )

    @property
    def label(self) -> str:
        return f"{self.icon} {self.name}".strip()


@dataclass
class Selection:
    """A slice of the document, 1-based inclusive line numbers."""

    text: str
    start_line: int
    end_line: int


@dataclass
class Finding:
    """One structured unit of reviewer feedback.

    Content fields are written once by the task runner. Afterwards only
    ``status`` changes, and only through the orchestrator.
    """

    reviewer_id: str
    reviewer_name: str
    start_line: int
    end_line: int
    type: str
    severity: str
    comment: str
    original_text: str = ""
    suggested_fix: str | None = None
    reviewer_icon: str = ""
    reviewer_color: str = ""
    confidence: float = DEFAULT_CONFIDENCE
    status: str = "pending"
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=_now)


@dataclass
class ReviewSession:
    id: str
    document_path: str
    content: str
    reviewer_ids: list[str]
    status: str = "in_progress"  # "in_progress" | "complete"
    findings: list[Finding] = field(default_factory=list)
    summary: str | None = None
    started_at: datetime = field(default_factory=_now)


@dataclass
class CouncilFeedback:
    """Everything one council reviewer contributed to a run."""

    reviewer_id: str
    reviewer_name: str
    reviewer_icon: str
    model: str
    findings: list[Finding] = field(default_factory=list)
    summary: str = ""
    error: str | None = None


@dataclass
class PrioritizedChange:
    priority: str  # "high" | "medium" | "low"
    description: str
    reason: str | None = None
    related_finding_ids: list[str] = field(default_factory=list)


@dataclass
class EditorSynthesis:
    reviewer_id: str
    model: str
    overall_assessment: str
    prioritized_changes: list[PrioritizedChange] = field(default_factory=list)
    conflicting_feedback: list[str] = field(default_factory=list)
    recommended_focus: str | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass
class ReviewDocument:
    """Aggregation of one full council run.

    ``council_feedback`` is append-only with one entry per participating
    council reviewer. ``editor_synthesis`` is set at most once, after the last
    council entry.
    """

    session_id: str
    document_path: str
    content: str
    council_feedback: list[CouncilFeedback] = field(default_factory=list)
    editor_synthesis: EditorSynthesis | None = None

    def all_findings(self) -> list[Finding]:
        return [f for entry in self.council_feedback for f in entry.findings]

    def find_finding(self, finding_id: str) -> Finding | None:
        for finding in self.all_findings():
            if finding.id == finding_id:
                return finding
        return None

    def filter_findings(self, reviewer_id: str | None = None, finding_type: str | None = None) -> list[Finding]:
        findings = self.all_findings()
        if reviewer_id:
            findings = [f for f in findings if f.reviewer_id == reviewer_id]
        if finding_type:
            findings = [f for f in findings if f.type == finding_type]
        return findings

    def finding_stats(self) -> dict:
        """Counts used by the results view: total, by status and by type."""
        findings = self.all_findings()
        by_status = Counter(f.status for f in findings)
        by_type = Counter(f.type for f in findings)
        return {
            "total": len(findings),
            "by_status": {s: by_status.get(s, 0) for s in FINDING_STATUSES},
            "by_type": {t: by_type.get(t, 0) for t in FINDING_TYPES},
        }


@dataclass
class ResidentModel:
    """One entry of the gateway's resident-model listing."""

    name: str
    size: int = 0
    size_vram: int = 0
    digest: str = ""
    expires_at: str = ""

    @classmethod
    def from_api(cls, data: dict) -> ResidentModel:
        return cls(
            name=data.get("name", ""),
            size=data.get("size", 0) or 0,
            size_vram=data.get("size_vram", 0) or 0,
            digest=data.get("digest", "") or "",
            expires_at=data.get("expires_at", "") or "",
        )


@dataclass
class ModelResidencyState:
    """Which models are resident on the inference device, plus UI status."""

    resident: set[str] = field(default_factory=set)
    status: dict[str, str] = field(default_factory=dict)
