"""Table-of-contents generation.

``build_toc`` turns the heading list into a nested Markdown list whose
links use the same anchors the linter resolves against. ``update_toc``
splices that list between marker comments so a guide can keep its TOC
current with ``guidelint toc --write``::

    ## Table of Contents

    <!-- toc -->
    * [Configuration](#configuration)
      * [Initializers](#initializers)
    <!-- tocstop -->
"""

from __future__ import annotations

import re

from guidelint.core.errors import TocMarkerError
from guidelint.document.anchors import heading_plain_text
from guidelint.document.model import Document
from guidelint.document.parser import DEFAULT_TOC_PATTERN, parse_document

TOC_START = "<!-- toc -->"
TOC_STOP = "<!-- tocstop -->"

_START_RE = re.compile(r"^\s*<!--\s*toc\s*-->\s*$", re.IGNORECASE)
_STOP_RE = re.compile(r"^\s*<!--\s*tocstop\s*-->\s*$", re.IGNORECASE)


def _escape_link_text(text: str) -> str:
    return text.replace("[", r"\[").replace("]", r"\]")


def build_toc(document: Document, *, min_level: int = 2, max_level: int = 3, bullet: str = "*") -> str:
    """Nested Markdown list of ``[text](#anchor)`` entries for headings in range.

    The heading that introduces the TOC is left out. Returns an empty
    string when no heading falls in ``[min_level, max_level]``.
    """
    if min_level > max_level:
        raise ValueError(f"min_level ({min_level}) is greater than max_level ({max_level})")

    headings = [
        h for h in document.headings
        if min_level <= h.level <= max_level and h != document.toc_heading
    ]
    if not headings:
        return ""

    top = min(h.level for h in headings)
    lines = []
    for heading in headings:
        indent = "  " * (heading.level - top)
        text = _escape_link_text(heading_plain_text(heading.text))
        lines.append(f"{indent}{bullet} [{text}](#{heading.anchor})")
    return "\n".join(lines)


def _find_markers(lines: list[str], document: Document) -> tuple[int, int]:
    fenced = {
        n
        for fence in document.fences
        for n in range(fence.open_line, (fence.close_line or len(lines)) + 1)
    }
    starts = [i for i, line in enumerate(lines) if _START_RE.match(line) and i + 1 not in fenced]
    stops = [i for i, line in enumerate(lines) if _STOP_RE.match(line) and i + 1 not in fenced]

    if not starts or not stops:
        raise TocMarkerError(
            f"Markers {TOC_START} and {TOC_STOP} not found",
            path=str(document.path) if document.path else None,
        )
    if len(starts) > 1 or len(stops) > 1:
        raise TocMarkerError(
            f"Expected exactly one {TOC_START} / {TOC_STOP} pair, found {len(starts)} and {len(stops)}",
            path=str(document.path) if document.path else None,
        )
    if stops[0] < starts[0]:
        raise TocMarkerError(
            f"{TOC_STOP} on line {stops[0] + 1} comes before {TOC_START} on line {starts[0] + 1}",
            path=str(document.path) if document.path else None,
        )
    return starts[0], stops[0]


def update_toc(
    text: str,
    *,
    min_level: int = 2,
    max_level: int = 3,
    toc_heading_pattern: str = DEFAULT_TOC_PATTERN,
    source: str = "<string>",
) -> str:
    """Return *text* with a freshly generated TOC between the marker comments.

    Raises:
        TocMarkerError: markers are missing, repeated, or out of order
    """
    document = parse_document(text, source=source, toc_heading_pattern=toc_heading_pattern)
    lines = text.splitlines()
    start, stop = _find_markers(lines, document)

    toc = build_toc(document, min_level=min_level, max_level=max_level)
    body = toc.splitlines() if toc else []
    updated = lines[: start + 1] + body + lines[stop:]

    result = "\n".join(updated)
    if text.endswith("\n"):
        result += "\n"
    return result


__all__ = ["TOC_START", "TOC_STOP", "build_toc", "update_toc"]
