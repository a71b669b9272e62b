"""Heading slugs and explicit HTML anchors.

Slugs follow the algorithm GitHub uses when rendering Markdown, so a
``[Routing](#routing)`` link that works on GitHub resolves here too:

1. strip inline markup (code spans, emphasis, links, HTML tags)
2. lowercase
3. drop everything except letters, digits, ``_``, ``-`` and spaces
4. replace each space with ``-``

Repeated slugs get ``-1``, ``-2``, ... suffixes in document order.
"""

from __future__ import annotations

import re

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_IMAGE_OR_LINK_RE = re.compile(r"!?\[([^\]]*)\]\([^)]*\)|!?\[([^\]]*)\]\[[^\]]*\]")
_CODE_SPAN_RE = re.compile(r"(`+)(.+?)\1")
_EMPHASIS_STAR_RE = re.compile(r"\*+")
_EMPHASIS_UNDERSCORE_RE = re.compile(r"(?<![\w])_+|_+(?![\w])")
_SLUG_DROP_RE = re.compile(r"[^\w\- ]", re.UNICODE)

_NAMED_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*?\bname\s*=\s*["']([^"']+)["']""", re.IGNORECASE
)
_ID_ATTR_RE = re.compile(
    r"""<[a-zA-Z][\w-]*\b[^>]*?(?<![\w-])id\s*=\s*["']([^"']+)["']""", re.IGNORECASE
)


def heading_plain_text(text: str) -> str:
    """Return the text a renderer would display for a heading."""
    text = _CODE_SPAN_RE.sub(lambda m: m.group(2).strip(), text)
    text = _IMAGE_OR_LINK_RE.sub(lambda m: m.group(1) if m.group(1) is not None else m.group(2), text)
    text = _HTML_TAG_RE.sub("", text)
    text = _EMPHASIS_STAR_RE.sub("", text)
    text = _EMPHASIS_UNDERSCORE_RE.sub("", text)
    return text.strip()


def slugify(text: str) -> str:
    """GitHub-style slug for heading *text*.

    >>> slugify("Migrations & Schema")
    'migrations--schema'
    >>> slugify("`has_many :through`")
    'has_many-through'
    """
    plain = heading_plain_text(text).lower()
    return _SLUG_DROP_RE.sub("", plain).replace(" ", "-")


class SlugAllocator:
    """Hands out unique anchor ids in document order."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def allocate(self, text: str) -> tuple[str, str]:
        """Return ``(base_slug, unique_anchor)`` for heading *text*."""
        base = slugify(text)
        anchor = base
        while anchor in self._counts:
            self._counts[base] += 1
            anchor = f"{base}-{self._counts[base]}"
        self._counts[anchor] = 0
        return base, anchor

    def reset(self) -> None:
        self._counts.clear()


def html_anchor_names(line: str) -> list[str]:
    """Explicit anchor ids declared on *line* (``<a name>`` and ``id=``), in order."""
    found: list[tuple[int, str]] = []
    for match in _NAMED_ANCHOR_RE.finditer(line):
        found.append((match.start(), match.group(1)))
    for match in _ID_ATTR_RE.finditer(line):
        found.append((match.start(), match.group(1)))
    seen: set[str] = set()
    names: list[str] = []
    for _, name in sorted(found):
        if name not in seen:
            seen.add(name)
            names.append(name)
    return names


__all__ = [
    "heading_plain_text",
    "slugify",
    "SlugAllocator",
    "html_anchor_names",
]
