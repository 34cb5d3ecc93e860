"""Council review orchestration.

One ReviewOrchestrator owns all mutable review state: the current phase, the
session and its ReviewDocument, per-reviewer progress, the residency
controller and the event channel. Collaborators get handles to the pieces
they need; nothing is global.

Phases move strictly forward within a session:

    idle → council_reviewing → editor_synthesizing → user_deciding → complete

editor_synthesizing is skipped when no editor is configured. complete is
reached only through complete_review(), called by the UI once the user has
dealt with the findings. cancel_review() is the only way back to idle.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass

from mdcouncil_core.config import ReviewSettings
from mdcouncil_core.events import EventChannel, ReviewEvent
from mdcouncil_core.gateway import OllamaClient
from mdcouncil_core.models import (
    FINDING_STATUSES,
    REVIEW_PHASES,
    CouncilFeedback,
    Finding,
    ReviewDocument,
    Reviewer,
    ReviewSession,
    Selection,
    new_id,
)
from mdcouncil_core.residency import ModelResidencyController
from mdcouncil_core.runner import ReviewerTaskRunner, TaskOutcome
from mdcouncil_core.synthesis import EditorSynthesizer

logger = logging.getLogger(__name__)


@dataclass
class _RunToken:
    """Cooperative cancellation flag for one run, checked after every await."""

    cancelled: bool = False


def group_by_model(reviewers: list[Reviewer]) -> list[Reviewer]:
    """Reorder so reviewers sharing a model are adjacent.

    Groups keep the order in which each model first appears, and reviewers
    keep their relative order inside a group: A,A,B,A,B → A,A,A,B,B.
    """
    groups: dict[str, list[Reviewer]] = {}
    for reviewer in reviewers:
        groups.setdefault(reviewer.model, []).append(reviewer)
    return [r for group in groups.values() for r in group]


def build_reviewer_summary(reviewer: Reviewer, outcome: TaskOutcome) -> str:
    """One-line tally for a council reviewer's feedback entry."""
    if outcome.error is not None:
        return f"{reviewer.name} failed: {outcome.error}"
    counts = Counter(f.type for f in outcome.findings)
    return (
        f"{reviewer.name} found {len(outcome.findings)} item(s): "
        f"{counts['error']} errors, {counts['warning']} warnings, {counts['suggestion']} suggestions."
    )


def build_session_summary(
    findings: list[Finding],
    reviewer_count: int,
    errors: list[str],
    synthesis_error: str | None = None,
) -> str:
    """Closing summary for a session, including any failures."""
    by_type = Counter(f.type for f in findings)
    by_severity = Counter(f.severity for f in findings)

    parts = [f"{reviewer_count} reviewer(s) found {len(findings)} item(s)."]
    if by_severity["high"]:
        parts.append(f"{by_severity['high']} high priority.")
    if by_severity["medium"]:
        parts.append(f"{by_severity['medium']} medium priority.")
    if by_type["error"]:
        parts.append(f"{by_type['error']} error(s).")
    if by_type["warning"]:
        parts.append(f"{by_type['warning']} warning(s).")
    if by_type["suggestion"]:
        parts.append(f"{by_type['suggestion']} suggestion(s).")
    if by_type["praise"]:
        parts.append(f"{by_type['praise']} praise.")
    if by_type["question"]:
        parts.append(f"{by_type['question']} question(s).")
    if errors:
        parts.append(f"({len(errors)} reviewer(s) had errors: {'; '.join(errors)})")
    if synthesis_error:
        parts.append(f"No editor synthesis available: {synthesis_error}")
    return " ".join(parts)


class ReviewOrchestrator:
    def __init__(
        self,
        reviewers: list[Reviewer],
        gateway: OllamaClient,
        settings: ReviewSettings | None = None,
        residency: ModelResidencyController | None = None,
        events: EventChannel | None = None,
    ):
        self.reviewers = list(reviewers)
        self.gateway = gateway
        self.settings = settings or ReviewSettings()
        self.events = events or EventChannel()
        self.residency = residency or ModelResidencyController(
            gateway,
            self.events,
            unload_settle_seconds=self.settings.unload_settle_seconds,
            swap_settle_seconds=self.settings.swap_settle_seconds,
            load_timeout=self.settings.load_timeout,
        )
        self.runner = ReviewerTaskRunner(gateway, self.settings, self.events)
        self.synthesizer = EditorSynthesizer(gateway, self.settings)

        self.phase = "idle"
        self.session: ReviewSession | None = None
        self.document: ReviewDocument | None = None
        self.reviewer_progress: dict[str, str] = {}
        self.errors: list[str] = []
        self._token: _RunToken | None = None

        self.events.subscribe(self._track_progress)

    # ------------------------------------------------------------------ #
    # Observable state                                                     #
    # ------------------------------------------------------------------ #

    @property
    def is_reviewing(self) -> bool:
        return self._token is not None and not self._token.cancelled

    @property
    def is_shutting_down(self) -> bool:
        """True between cancel_review() and the cancelled run unwinding."""
        return self._token is not None and self._token.cancelled

    @property
    def residency_status(self) -> dict[str, str]:
        return dict(self.residency.state.status)

    def editor_reviewer(self) -> Reviewer | None:
        return next((r for r in self.reviewers if r.is_editor and r.enabled), None)

    def partition(self, reviewer_ids: list[str]) -> tuple[list[Reviewer], Reviewer | None]:
        """Split the requested reviewers into (council, editor).

        Unknown and disabled ids are ignored. Council order follows the
        roster. When no editor is among the requested ids, the roster's
        enabled editor (if any) is used.
        """
        wanted = set(reviewer_ids)
        unknown = wanted - {r.id for r in self.reviewers}
        if unknown:
            logger.warning("Ignoring unknown reviewer id(s): %s", ", ".join(sorted(unknown)))
        requested = [r for r in self.reviewers if r.id in wanted and r.enabled]
        council = [r for r in requested if not r.is_editor]
        editor = next((r for r in requested if r.is_editor), None) or self.editor_reviewer()
        return council, editor

    # ------------------------------------------------------------------ #
    # UI-facing operations                                                 #
    # ------------------------------------------------------------------ #

    def start_review(
        self,
        document_path: str,
        content: str,
        reviewer_ids: list[str],
        selection: Selection | None = None,
    ) -> asyncio.Task | None:
        """Begin a review in the background and return its task.

        Must be called from inside a running event loop. Progress is
        observable through ``phase``, ``reviewer_progress`` and ``events``.
        Returns None when no council reviewer was requested.
        """
        plan = self._begin(document_path, content, reviewer_ids)
        if plan is None:
            return None
        token, council, editor = plan
        return asyncio.get_running_loop().create_task(self._execute(token, council, editor, selection))

    async def run_review(
        self,
        document_path: str,
        content: str,
        reviewer_ids: list[str],
        selection: Selection | None = None,
    ) -> ReviewDocument | None:
        """Run a whole review and return its ReviewDocument (None if cancelled or empty)."""
        plan = self._begin(document_path, content, reviewer_ids)
        if plan is None:
            return None
        token, council, editor = plan
        return await self._execute(token, council, editor, selection)

    def cancel_review(self) -> bool:
        """Stop the running review after its in-flight reviewer settles.

        The partial session and document are discarded immediately and the
        phase returns to idle. Returns False when nothing is running.
        """
        if not self.is_reviewing:
            return False
        self._token.cancelled = True
        self.session = None
        self.document = None
        self.reviewer_progress = {}
        self.errors = []
        self.phase = "idle"
        self.events.publish("phase", "review", "idle", "Review cancelled")
        logger.info("Review cancelled")
        return True

    def update_finding_status(self, finding_id: str, status: str) -> Finding:
        """Record the user's decision on one finding. Only valid while user_deciding."""
        if status not in FINDING_STATUSES:
            raise ValueError(f"Unknown finding status: {status!r}. Choose one of {', '.join(FINDING_STATUSES)}.")
        if self.document is None or self.phase != "user_deciding":
            raise RuntimeError("No review is waiting for decisions.")
        finding = self.document.find_finding(finding_id)
        if finding is None:
            raise ValueError(f"No finding with id {finding_id!r} in the current review.")
        finding.status = status
        return finding

    def complete_review(self) -> ReviewDocument:
        """Close the decision phase. The session is immutable afterwards."""
        if self.document is None or self.session is None or self.phase != "user_deciding":
            raise RuntimeError("No review is waiting for decisions.")
        self.session.status = "complete"
        self._set_phase("complete", "Review complete")
        return self.document

    # ------------------------------------------------------------------ #
    # Run internals                                                        #
    # ------------------------------------------------------------------ #

    def _begin(self, document_path: str, content: str, reviewer_ids: list[str]):
        if self.is_shutting_down:
            raise RuntimeError("The previous review is still shutting down.")
        if self._token is not None:
            raise RuntimeError("A review is already in progress.")

        council, editor = self.partition(reviewer_ids)
        if not council:
            logger.warning("No council reviewers enabled; nothing to review.")
            self.events.message("No council reviewers enabled")
            return None

        # Event history covers one session.
        self.events.clear()
        token = _RunToken()
        self._token = token
        self.session = ReviewSession(
            id=new_id(),
            document_path=document_path,
            content=content,
            reviewer_ids=[r.id for r in council] + ([editor.id] if editor else []),
        )
        self.document = ReviewDocument(session_id=self.session.id, document_path=document_path, content=content)
        self.reviewer_progress = {r.id: "pending" for r in council}
        self.errors = []
        # A new session starts from idle even if the previous one completed.
        self.phase = "idle"
        return token, council, editor

    async def _execute(
        self,
        token: _RunToken,
        council: list[Reviewer],
        editor: Reviewer | None,
        selection: Selection | None,
    ) -> ReviewDocument | None:
        session, document = self.session, self.document
        try:
            self.events.message(f"Council convened with {len(council)} reviewer(s)...")
            self._set_phase("council_reviewing")

            if self.settings.execution_mode == "parallel":
                await self._run_council_parallel(token, council, session, document, selection)
            else:
                await self._run_council_sequential(token, council, session, document, selection)
            if token.cancelled:
                return None

            synthesis_error = None
            if editor is not None:
                self._set_phase("editor_synthesizing")
                synthesis_error = await self._run_synthesis(token, editor, document)
                if token.cancelled:
                    return None
            else:
                self.events.message("No editor configured - skipping synthesis")

            session.summary = build_session_summary(session.findings, len(council), self.errors, synthesis_error)
            self._set_phase("user_deciding", "Ready for your review")
            logger.info("Review of %s finished: %s", session.document_path, session.summary)
            return document
        finally:
            if self._token is token:
                self._token = None

    async def _run_council_sequential(self, token, council, session, document, selection) -> None:
        order = group_by_model(council) if self.settings.group_by_model else list(council)
        current_model = None
        model_ready = False
        for reviewer in order:
            if token.cancelled:
                return
            # Consecutive reviewers on the same model share one residency check.
            if reviewer.model != current_model:
                current_model = reviewer.model
                model_ready = await self.residency.ensure_loaded(reviewer.model)
                if token.cancelled:
                    return

            if not model_ready:
                error = f"model {reviewer.model} could not be loaded"
                self.events.publish("reviewer", reviewer.id, "error", f"{reviewer.label} skipped: {error}")
                self._record(reviewer, TaskOutcome(reviewer_id=reviewer.id, error=error), session, document)
                continue

            outcome = await self.runner.run(reviewer, document.content, selection)
            if token.cancelled:
                return
            self._record(reviewer, outcome, session, document)

    async def _run_council_parallel(self, token, council, session, document, selection) -> None:
        # No residency planning here: every reviewer is dispatched at once and
        # the gateway is left to serialize or reject overlapping requests.
        outcomes = await asyncio.gather(*(self.runner.run(r, document.content, selection) for r in council))
        if token.cancelled:
            return
        for reviewer, outcome in zip(council, outcomes):
            self._record(reviewer, outcome, session, document)

    async def _run_synthesis(self, token, editor: Reviewer, document: ReviewDocument) -> str | None:
        """Run the editor; returns an error message when no synthesis was produced."""
        self.events.publish("synthesis", editor.id, "in_progress", f"{editor.label} is synthesizing feedback...")
        if self.settings.execution_mode != "parallel":
            if not await self.residency.ensure_loaded(editor.model):
                error = f"model {editor.model} could not be loaded"
                self.events.publish("synthesis", editor.id, "error", f"{editor.label} skipped: {error}")
                return error
            if token.cancelled:
                return None

        synthesis = await self.synthesizer.synthesize(editor, document)
        if token.cancelled:
            return None
        if synthesis is None:
            self.events.publish("synthesis", editor.id, "error", f"{editor.label} synthesis failed")
            return "editor synthesis failed"
        document.editor_synthesis = synthesis
        self.events.publish("synthesis", editor.id, "complete", f"{editor.label} synthesis complete")
        return None

    def _record(self, reviewer: Reviewer, outcome: TaskOutcome, session: ReviewSession, document: ReviewDocument):
        document.council_feedback.append(
            CouncilFeedback(
                reviewer_id=reviewer.id,
                reviewer_name=reviewer.name,
                reviewer_icon=reviewer.icon,
                model=reviewer.model,
                findings=list(outcome.findings),
                summary=build_reviewer_summary(reviewer, outcome),
                error=outcome.error,
            )
        )
        session.findings.extend(outcome.findings)
        if outcome.error is not None:
            self.errors.append(f"{reviewer.name}: {outcome.error}")

    def _set_phase(self, phase: str, detail: str = "") -> None:
        if REVIEW_PHASES.index(phase) <= REVIEW_PHASES.index(self.phase):
            raise RuntimeError(f"Illegal phase transition {self.phase} → {phase}")
        self.phase = phase
        self.events.publish("phase", "review", phase, detail)

    def _track_progress(self, event: ReviewEvent) -> None:
        if event.kind == "reviewer" and event.subject in self.reviewer_progress:
            self.reviewer_progress[event.subject] = event.status
