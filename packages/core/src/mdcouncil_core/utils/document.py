"""Small helpers for slicing the markdown document handed to reviewers."""

from __future__ import annotations

from mdcouncil_core.models import Selection

TRUNCATION_MARKER = "\n... (truncated)"


def get_text_at_line(content: str, line: int) -> str:
    """Return the literal text of 1-based ``line``, clamped to the document's range."""
    lines = content.split("\n")
    index = max(0, min(line - 1, len(lines) - 1))
    return lines[index]


def truncate(content: str, limit: int) -> str:
    """Cut ``content`` to ``limit`` characters, flagging the cut inline."""
    if limit <= 0 or len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_MARKER


def make_selection(content: str, start_line: int, end_line: int) -> Selection:
    """Build a Selection from a 1-based inclusive line range of ``content``.

    Raises ValueError for an empty or inverted range; a range running past
    the end of the document is clamped.
    """
    lines = content.split("\n")
    if start_line < 1 or end_line < start_line:
        raise ValueError(f"Invalid line range: {start_line}-{end_line}")
    if start_line > len(lines):
        raise ValueError(f"Line {start_line} is past the end of the document ({len(lines)} lines)")
    end_line = min(end_line, len(lines))
    return Selection(text="\n".join(lines[start_line - 1 : end_line]), start_line=start_line, end_line=end_line)
