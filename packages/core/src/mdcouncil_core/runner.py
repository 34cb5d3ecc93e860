"""Reviewer task runner: one reviewer, one document, end to end.

Every reviewer goes through the same algorithm:
    run() → build_review_prompt()
          → _call_with_retry() → gateway.generate()
          → parse_feedback() → _to_findings()

Only the reviewer record changes between runs (system prompt, model), so the
runner is a single class rather than one subclass per reviewer. It never
touches model residency: the orchestrator plans load/unload across the whole
council before calling run().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from mdcouncil_core.config import ReviewSettings
from mdcouncil_core.events import EventChannel
from mdcouncil_core.gateway import GatewayError, OllamaClient
from mdcouncil_core.models import Finding, Reviewer, Selection
from mdcouncil_core.parser import ParsedFeedback, infer_severity, parse_feedback
from mdcouncil_core.utils.document import get_text_at_line

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """What one reviewer task produced. ``error`` is set when the task failed."""

    reviewer_id: str
    findings: list[Finding] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_review_prompt(reviewer: Reviewer, content: str, selection: Selection | None = None) -> str:
    """Build the prompt for one reviewer.

    The output format block is fixed for every reviewer so the feedback
    parser only has to understand one schema.
    """
    if selection:
        target = (
            f"Selected text (lines {selection.start_line}-{selection.end_line}):\n```\n{selection.text}\n```"
        )
        noun = "selected text"
    else:
        target = f"Full document:\n```\n{content}\n```"
        noun = "document"

    return f"""{reviewer.system_prompt}

Please review the following {noun} and provide your feedback.

{target}

### Output Format:
Respond with a JSON array only:

[
  {{
    "line": <line number in the document (integer)>,
    "type": "<suggestion|warning|error|praise|question>",
    "text": "<the exact original text you are commenting on>",
    "comment": "<your feedback>",
    "suggestion": "<optional replacement text>"
  }}
]

Only report actual issues or opportunities for improvement. Be specific and constructive.
If there is nothing to report, return: []"""


class ReviewerTaskRunner:
    def __init__(self, gateway: OllamaClient, settings: ReviewSettings | None = None, events: EventChannel | None = None):
        self.gateway = gateway
        self.settings = settings or ReviewSettings()
        self.events = events or EventChannel()

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def run(self, reviewer: Reviewer, content: str, selection: Selection | None = None) -> TaskOutcome:
        """Review ``content`` (or ``selection``) with one reviewer. Never raises.

        On any failure the reviewer's progress is marked ``error`` and the
        outcome carries the message with no findings.
        """
        self.events.publish("reviewer", reviewer.id, "in_progress", f"{reviewer.label} is reviewing...")
        try:
            prompt = build_review_prompt(reviewer, content, selection)
            raw = await self._call_with_retry(reviewer, prompt)
            findings = self._to_findings(reviewer, parse_feedback(raw), content)
        except asyncio.CancelledError:
            self.events.publish("reviewer", reviewer.id, "error", f"{reviewer.label} cancelled")
            raise
        except Exception as e:
            logger.error("Reviewer %s failed: %s", reviewer.name, e)
            self.events.publish("reviewer", reviewer.id, "error", f"{reviewer.label} failed: {e}")
            return TaskOutcome(reviewer_id=reviewer.id, error=str(e) or type(e).__name__)

        self.events.publish(
            "reviewer", reviewer.id, "complete", f"{reviewer.label} complete - {len(findings)} comment(s)"
        )
        return TaskOutcome(reviewer_id=reviewer.id, findings=findings)

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    async def _call_with_retry(self, reviewer: Reviewer, prompt: str) -> str:
        """Call the gateway, retrying transport failures with exponential backoff.

        ``max_retries`` is the total number of attempts; the last failure is
        re-raised for run() to record.
        """
        attempts = max(1, self.settings.max_retries)
        options = self.settings.sampling_options(self.settings.analysis_temperature_offset)
        for attempt in range(attempts - 1):
            try:
                return await self._generate(reviewer, prompt, options)
            except GatewayError as e:
                delay = 2**attempt
                logger.warning(
                    "Reviewer %s: gateway error (attempt %d/%d): %s. Retrying in %ds...",
                    reviewer.name,
                    attempt + 1,
                    attempts,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        return await self._generate(reviewer, prompt, options)

    async def _generate(self, reviewer: Reviewer, prompt: str, options: dict) -> str:
        return await self.gateway.generate(
            reviewer.model, prompt, options=options, timeout=self.settings.generate_timeout
        )

    def _to_findings(self, reviewer: Reviewer, feedback: list[ParsedFeedback], content: str) -> list[Finding]:
        findings = []
        for item in feedback:
            findings.append(
                Finding(
                    reviewer_id=reviewer.id,
                    reviewer_name=reviewer.name,
                    reviewer_icon=reviewer.icon,
                    reviewer_color=reviewer.color,
                    start_line=item.line,
                    end_line=item.line,
                    original_text=item.text or get_text_at_line(content, item.line),
                    type=item.type,
                    severity=infer_severity(item.type, item.comment),
                    comment=item.comment,
                    suggested_fix=item.suggestion,
                )
            )
        return findings
