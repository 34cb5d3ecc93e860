"""Turn a reviewer's free-form response into structured feedback.

Models are asked for a JSON array but nothing obliges them to produce one, so
parsing is an ordered cascade of strategies. Each strategy returns None when it
finds nothing; the first one that yields at least one item wins:

    1. extract_json_array     first JSON-array-of-objects substring
    2. extract_line_patterns  "Line N: ...", "N. ...", bullet lists
    3. fallback_single        the whole response as one general comment

Nothing in here raises on malformed input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from mdcouncil_core.models import FINDING_TYPES

logger = logging.getLogger(__name__)

_JSON_ARRAY_RE = re.compile(r"\[\s*\{.*?\}\s*\]", re.DOTALL)

# Tried in order; the first pattern with at least one kept match is used alone.
# Group 1 is the (optional) line number, group 2 the comment.
_LINE_PATTERNS = [
    re.compile(r"[Ll]ine\s*(\d+):\s*(.+)"),
    re.compile(r"^\s*(\d+)\.\s*(.+)", re.MULTILINE),
    re.compile(r"^\s*[•\-*]\s*(?:[Ll]ine\s*)?(\d+)?:?\s*(.+)", re.MULTILINE),
]

_MIN_COMMENT_CHARS = 10  # matched comments this short are noise
_MIN_FALLBACK_CHARS = 20
MAX_FALLBACK_CHARS = 500

_TYPE_KEYWORDS = [
    ("error", ("error", "incorrect", "wrong")),
    ("warning", ("warning", "caution", "careful")),
    ("praise", ("good", "great", "excellent", "well")),
    ("question", ("?", "unclear", "clarify")),
]


@dataclass
class ParsedFeedback:
    line: int
    type: str
    comment: str
    text: str = ""
    suggestion: str | None = None


def infer_type(comment: str) -> str:
    lower = comment.lower()
    for finding_type, keywords in _TYPE_KEYWORDS:
        if any(k in lower for k in keywords):
            return finding_type
    return "suggestion"


def infer_severity(finding_type: str, comment: str) -> str:
    if finding_type == "error":
        return "high"
    if finding_type == "warning":
        return "medium"
    if finding_type == "praise":
        return "low"

    lower = comment.lower()
    if any(k in lower for k in ("critical", "must", "immediately")):
        return "high"
    if any(k in lower for k in ("should", "consider", "might")):
        return "medium"
    return "low"


def _coerce_line(value) -> int:
    try:
        line = int(value)
    except (TypeError, ValueError, OverflowError):
        return 1
    return line if line > 0 else 1


def _as_text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def extract_json_array(response: str) -> Optional[list[ParsedFeedback]]:
    match = _JSON_ARRAY_RE.search(response)
    if not match:
        return None
    try:
        items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse JSON feedback array: %s", e)
        return None
    if not isinstance(items, list):
        return None

    feedback = []
    for item in items:
        if not isinstance(item, dict):
            continue
        comment = _as_text(item.get("comment"))
        finding_type = item.get("type") or "suggestion"
        if finding_type not in FINDING_TYPES:
            finding_type = infer_type(comment)
        suggestion = item.get("suggestion")
        feedback.append(
            ParsedFeedback(
                line=_coerce_line(item.get("line") or 1),
                type=finding_type,
                comment=comment,
                text=_as_text(item.get("text")),
                suggestion=_as_text(suggestion) if suggestion else None,
            )
        )
    return feedback or None


def extract_line_patterns(response: str) -> Optional[list[ParsedFeedback]]:
    for pattern in _LINE_PATTERNS:
        feedback = []
        for match in pattern.finditer(response):
            content = match.group(2).strip()
            if len(content) <= _MIN_COMMENT_CHARS:
                continue
            line = _coerce_line(match.group(1))
            feedback.append(ParsedFeedback(line=line, type=infer_type(content), comment=content))
        if feedback:
            logger.debug("Line pattern %r matched %d item(s)", pattern.pattern, len(feedback))
            return feedback
    return None


def fallback_single(response: str) -> Optional[list[ParsedFeedback]]:
    stripped = response.strip()
    if len(stripped) <= _MIN_FALLBACK_CHARS:
        return None
    return [ParsedFeedback(line=1, type="suggestion", comment=stripped[:MAX_FALLBACK_CHARS])]


STRATEGIES: list[Callable[[str], Optional[list[ParsedFeedback]]]] = [
    extract_json_array,
    extract_line_patterns,
    fallback_single,
]


def parse_feedback(response: str) -> list[ParsedFeedback]:
    """Run the strategy cascade over ``response``; [] when nothing is usable."""
    if not response or not response.strip():
        return []
    for strategy in STRATEGIES:
        result = strategy(response)
        if result:
            return result
    return []
