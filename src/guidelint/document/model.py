"""Data models for parsed Markdown style guides.

Frozen dataclasses describing what the parser found in a document:
headings, anchors, links, fenced code blocks, the table of contents,
and the style-guide structure built on top of them (sections, rules,
bad/good code examples). All fields use primitive types so results
serialize straight to JSON.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import unquote


class LinkKind(str, Enum):
    """Classification of a link target."""

    ANCHOR = "anchor"
    EXTERNAL = "external"
    MAILTO = "mailto"
    RELATIVE = "relative"


class LinkStyle(str, Enum):
    """How the link was written in the source."""

    INLINE = "inline"
    REFERENCE = "reference"
    AUTOLINK = "autolink"


class AnchorSource(str, Enum):
    """Where an anchor id comes from."""

    HEADING = "heading"
    HTML = "html"


class ExampleVerdict(str, Enum):
    """Classification of a code example inside a rule."""

    BAD = "bad"
    GOOD = "good"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Heading:
    """A Markdown heading.

    Attributes:
        level: 1-6.
        text: Heading text with inline markup left as written.
        line: 1-based line number.
        slug: Base slug before duplicate suffixing.
        anchor: Final anchor id (``slug`` or ``slug-N``).
    """

    level: int
    text: str
    line: int
    slug: str
    anchor: str


@dataclass(frozen=True)
class Anchor:
    """A resolvable in-document anchor id."""

    name: str
    line: int
    source: AnchorSource


@dataclass(frozen=True)
class Link:
    """A link occurrence in the document body.

    Attributes:
        text: Link text (alt text for images).
        target: Resolved target URL or fragment. Empty for undefined references.
        line: 1-based line number.
        kind: Target classification.
        style: How the link was written.
        label: Reference label, normalized (reference links only).
        is_image: True for ``![alt](src)``.
    """

    text: str
    target: str
    line: int
    kind: LinkKind
    style: LinkStyle = LinkStyle.INLINE
    label: str | None = None
    is_image: bool = False

    @property
    def fragment(self) -> str:
        """Anchor name without the leading ``#`` (anchor links only)."""
        if self.kind is not LinkKind.ANCHOR:
            return ""
        return unquote(self.target[1:])


@dataclass(frozen=True)
class ReferenceDefinition:
    """``[label]: url "title"`` definition."""

    label: str
    url: str
    line: int


@dataclass(frozen=True)
class CodeFence:
    """A fenced code block.

    Attributes:
        open_line: Line of the opening fence.
        close_line: Line of the closing fence, None when never closed.
        marker: The fence character (`` ` `` or ``~``).
        length: Length of the opening fence run.
        info: First word of the info string (language), may be empty.
        content: Lines between the fences joined with newlines.
    """

    open_line: int
    close_line: int | None
    marker: str
    length: int
    info: str = ""
    content: str = ""

    @property
    def closed(self) -> bool:
        return self.close_line is not None


@dataclass(frozen=True)
class TocEntry:
    """A table-of-contents entry: an anchor link inside the TOC block."""

    text: str
    target: str
    line: int
    depth: int = 0

    @property
    def fragment(self) -> str:
        return unquote(self.target.lstrip("#"))


@dataclass(frozen=True)
class CodeExample:
    """A fenced code block attached to a style rule."""

    language: str
    verdict: ExampleVerdict
    line: int
    code: str


@dataclass(frozen=True)
class Rule:
    """A single advisory bullet of the style guide.

    Attributes:
        section: Heading path, outermost first.
        summary: Bullet text with HTML tags and self-link markers removed.
        line: Line of the bullet.
        anchor: Explicit ``<a name>`` id at the start of the bullet, if any.
        self_link: Target of a trailing ``[[link](#x)]`` marker, if any.
        examples: Code examples belonging to the bullet.
    """

    section: tuple[str, ...]
    summary: str
    line: int
    anchor: str | None = None
    self_link: str | None = None
    examples: tuple[CodeExample, ...] = ()

    @property
    def has_bad_example(self) -> bool:
        return any(e.verdict is ExampleVerdict.BAD for e in self.examples)

    @property
    def has_good_example(self) -> bool:
        return any(e.verdict is ExampleVerdict.GOOD for e in self.examples)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["section"] = list(self.section)
        data["examples"] = [
            {"language": e.language, "verdict": e.verdict.value, "line": e.line}
            for e in self.examples
        ]
        return data


@dataclass
class Section:
    """A node of the heading tree."""

    heading: Heading
    children: list[Section] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.heading.text

    def walk(self):
        """Yield this section and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def rule_count(self) -> int:
        return sum(len(s.rules) for s in self.walk())


@dataclass
class Document:
    """Everything the parser extracted from one Markdown file.

    Attributes:
        source: Display name (path or ``<string>``).
        text: Original text.
        path: File path when loaded from disk.
        headings: Headings in document order.
        anchors: Anchor id → first definition.
        duplicate_anchors: Explicit HTML anchors defined more than once.
        links: Link occurrences outside code.
        definitions: Reference label → definition.
        fences: Fenced code blocks.
        toc_heading: Heading that introduces the TOC, if any.
        toc: TOC entries in order.
        undefined_references: Reference links whose label has no definition.
    """

    source: str
    text: str
    path: Path | None = None
    headings: list[Heading] = field(default_factory=list)
    anchors: dict[str, Anchor] = field(default_factory=dict)
    duplicate_anchors: list[Anchor] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    definitions: dict[str, ReferenceDefinition] = field(default_factory=dict)
    fences: list[CodeFence] = field(default_factory=list)
    toc_heading: Heading | None = None
    toc: list[TocEntry] = field(default_factory=list)
    undefined_references: list[Link] = field(default_factory=list)

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    @property
    def has_toc(self) -> bool:
        return bool(self.toc)

    @property
    def toc_lines(self) -> frozenset[int]:
        return frozenset(entry.line for entry in self.toc)

    def has_anchor(self, name: str) -> bool:
        return name in self.anchors

    def external_links(self) -> list[Link]:
        return [link for link in self.links if link.kind is LinkKind.EXTERNAL]

    def anchor_links(self) -> list[Link]:
        return [link for link in self.links if link.kind is LinkKind.ANCHOR]

    def summary(self) -> dict[str, int]:
        return {
            "headings": len(self.headings),
            "anchors": len(self.anchors),
            "links": len(self.links),
            "external_links": len(self.external_links()),
            "fences": len(self.fences),
            "toc_entries": len(self.toc),
        }
