"""Editor synthesis: one extra inference call over the whole council's findings."""

from __future__ import annotations

import json
import logging
import re

from mdcouncil_core.config import ReviewSettings
from mdcouncil_core.gateway import GatewayError, OllamaClient
from mdcouncil_core.models import PRIORITIES, EditorSynthesis, PrioritizedChange, ReviewDocument, Reviewer
from mdcouncil_core.utils.document import truncate

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_FALLBACK_ASSESSMENT_CHARS = 500


def render_council_digest(document: ReviewDocument) -> str:
    """One section per council reviewer: header, tally line, one line per finding."""
    sections = []
    for entry in document.council_feedback:
        label = f"{entry.reviewer_icon} {entry.reviewer_name}".strip()
        lines = [f"### {label} ({entry.model}):", entry.summary]
        for f in entry.findings:
            fix = f' → "{f.suggested_fix}"' if f.suggested_fix else ""
            lines.append(f"  - Line {f.start_line}: [{f.type}] {f.comment}{fix}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def build_synthesis_prompt(editor: Reviewer, document: ReviewDocument, char_limit: int) -> str:
    digest = render_council_digest(document) or "(The council produced no feedback.)"
    return f"""{editor.system_prompt}

## Document Being Reviewed
Path: {document.document_path}

```
{truncate(document.content, char_limit)}
```

## Council Feedback
{digest}

## Your Task
As the Editor, synthesize all council feedback and provide:
1. An overall assessment of the document
2. Prioritized list of recommended changes
3. Any conflicting feedback that needs the user's decision
4. What the user should focus on first

Respond in JSON format:
{{
  "overallAssessment": "Brief summary of the document's current state and quality",
  "prioritizedChanges": [
    {{"priority": "high", "description": "what to change", "reason": "why this is important"}},
    {{"priority": "medium", "description": "...", "reason": "..."}},
    {{"priority": "low", "description": "...", "reason": "..."}}
  ],
  "conflictingFeedback": ["any disagreements between reviewers that need user input"],
  "recommendedFocus": "what the user should work on first"
}}"""


def _extract_object(text: str) -> dict | None:
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Failed to parse editor synthesis JSON")
        return None
    return data if isinstance(data, dict) else None


def _to_change(item) -> PrioritizedChange | None:
    if isinstance(item, str):
        return PrioritizedChange(priority="medium", description=item)
    if not isinstance(item, dict):
        return None
    priority = item.get("priority")
    related = item.get("relatedComments") or item.get("relatedFindings") or []
    return PrioritizedChange(
        priority=priority if priority in PRIORITIES else "medium",
        description=str(item.get("description") or ""),
        reason=str(item["reason"]) if item.get("reason") else None,
        related_finding_ids=[str(r) for r in related] if isinstance(related, list) else [],
    )


def parse_synthesis(raw: str, editor: Reviewer) -> EditorSynthesis:
    """Build an EditorSynthesis from the editor's raw reply. Degrades, never raises."""
    data = _extract_object(raw) or {}

    assessment = data.get("overallAssessment")
    if not isinstance(assessment, str) or not assessment.strip():
        assessment = raw.strip()[:_FALLBACK_ASSESSMENT_CHARS]

    raw_changes = data.get("prioritizedChanges")
    changes = []
    if isinstance(raw_changes, list):
        changes = [c for c in (_to_change(item) for item in raw_changes) if c is not None]

    conflicts = data.get("conflictingFeedback")
    focus = data.get("recommendedFocus")
    return EditorSynthesis(
        reviewer_id=editor.id,
        model=editor.model,
        overall_assessment=assessment,
        prioritized_changes=changes,
        conflicting_feedback=[str(c) for c in conflicts] if isinstance(conflicts, list) else [],
        recommended_focus=focus if isinstance(focus, str) and focus else None,
    )


class EditorSynthesizer:
    def __init__(self, gateway: OllamaClient, settings: ReviewSettings | None = None):
        self.gateway = gateway
        self.settings = settings or ReviewSettings()

    async def synthesize(self, editor: Reviewer, document: ReviewDocument) -> EditorSynthesis | None:
        """Run the editor over ``document``'s council feedback.

        Returns None only when the gateway call fails; an unparseable reply
        still yields a (degraded) synthesis.
        """
        prompt = build_synthesis_prompt(editor, document, self.settings.synthesis_char_limit)
        options = self.settings.sampling_options(self.settings.synthesis_temperature_offset)
        try:
            raw = await self.gateway.generate(
                editor.model, prompt, options=options, timeout=self.settings.generate_timeout
            )
        except GatewayError as e:
            logger.error("Editor synthesis failed: %s", e)
            return None
        return parse_synthesis(raw, editor)
