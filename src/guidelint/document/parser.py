"""Line-oriented Markdown scanner.

Turns Markdown text into a ``Document``: headings with their anchors,
explicit HTML anchors, fenced code blocks, links and reference
definitions, and the table of contents. Parsing is pure regex over
lines; it never renders and never imports a Markdown engine, so line
numbers always refer to the source text.

Two passes::

    pass 1 (blocks)   fences, HTML comments, headings, setext underlines,
                      reference definitions, <a name> / id= anchors
    pass 2 (inline)   links on every line outside fences and comments,
                      with code spans blanked out first
    then              table-of-contents detection

Usage::

    from guidelint.document.parser import load_document

    doc = load_document(Path("README.md"))
    for entry in doc.toc:
        print(entry.target, doc.has_anchor(entry.fragment))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from guidelint.core.errors import DocumentNotFoundError, DocumentReadError
from guidelint.core.logging import get_logger
from guidelint.document.anchors import SlugAllocator, heading_plain_text, html_anchor_names
from guidelint.document.model import (
    Anchor,
    AnchorSource,
    CodeFence,
    Document,
    Heading,
    Link,
    LinkKind,
    LinkStyle,
    ReferenceDefinition,
    TocEntry,
)

logger = get_logger(__name__)

DEFAULT_TOC_PATTERN = r"^(table of contents|contents|toc)$"

_FENCE_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_FENCE_CLOSE_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})\s*$")
_ATX_RE = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t]*$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<underline>=+|-+)[ \t]*$")
_LIST_ITEM_RE = re.compile(r"^(?P<indent>\s*)(?:[-*+]|\d{1,9}[.)])(?:\s+|$)")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}>")
_DEFINITION_RE = re.compile(
    r"""^ {0,3}\[(?P<label>[^\]]+)\]:\s*<?(?P<url>[^\s>]+)>?(?:\s+(?:"[^"]*"|'[^']*'|\([^)]*\)))?\s*$"""
)
_CODE_SPAN_RE = re.compile(r"(`+)(.+?)\1")
_COMMENT_INLINE_RE = re.compile(r"<!--.*?-->")

_INLINE_LINK_RE = re.compile(
    r"""(?P<bang>!?)\[(?P<text>(?:[^\[\]]|\[[^\[\]]*\])*)\]"""
    r"""\(\s*<?(?P<target>(?:[^()\s<>]|\([^()\s]*\))*)>?"""
    r"""(?:\s+(?:"[^"]*"|'[^']*'|\([^)]*\)))?\s*\)"""
)
_REFERENCE_LINK_RE = re.compile(r"(?P<bang>!?)\[(?P<text>[^\[\]]+)\]\[(?P<label>[^\[\]]*)\]")
_SHORTCUT_LINK_RE = re.compile(r"(?<![\]\\])\[(?P<label>[^\[\]]+)\](?![\[(:])")
_AUTOLINK_RE = re.compile(r"<(?P<target>(?:https?://|mailto:)[^>\s]+)>", re.IGNORECASE)
_HREF_RE = re.compile(r"""<a\b[^>]*?\bhref\s*=\s*["'](?P<target>[^"']+)["']""", re.IGNORECASE)


def normalize_label(label: str) -> str:
    """Reference labels match case-insensitively with collapsed whitespace."""
    return " ".join(label.split()).lower()


def classify_target(target: str) -> LinkKind:
    """Classify a link target."""
    if target.startswith("#"):
        return LinkKind.ANCHOR
    lowered = target.lower()
    if lowered.startswith(("http://", "https://", "//")):
        return LinkKind.EXTERNAL
    if lowered.startswith("mailto:"):
        return LinkKind.MAILTO
    return LinkKind.RELATIVE


def _blank(text: str, start: int, end: int) -> str:
    return text[:start] + " " * (end - start) + text[end:]


def _blank_code_spans(line: str) -> str:
    return _CODE_SPAN_RE.sub(lambda m: " " * len(m.group(0)), line)


def _indent_width(text: str) -> int:
    """Columns of leading whitespace, tabs expanded to 4."""
    expanded = text.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(" "))


def front_matter_end(lines: list[str]) -> int:
    """Index of the first line after a leading ``---`` YAML block (0 if none)."""
    if not lines or lines[0].strip() != "---":
        return 0
    for index in range(1, len(lines)):
        if lines[index].strip() in ("---", "..."):
            return index + 1
    return 0


@dataclass
class _OpenFence:
    open_line: int
    marker: str
    length: int
    info: str
    body: list[str]
    max_indent: int = 3


class MarkdownParser:
    """Parse Markdown text into a ``Document``.

    Args:
        toc_heading_pattern: Regex (case-insensitive) matched against the
            plain text of headings to find the table-of-contents heading.
    """

    def __init__(self, toc_heading_pattern: str = DEFAULT_TOC_PATTERN):
        self.toc_heading_re = re.compile(toc_heading_pattern, re.IGNORECASE)

    def parse(self, text: str, *, source: str = "<string>", path: Path | None = None) -> Document:
        doc = Document(source=source, text=text, path=path)
        lines = text.splitlines()
        inline_lines = self._scan_blocks(lines, doc)
        self._scan_links(inline_lines, doc)
        self._detect_toc(lines, doc)
        logger.debug("document_parsed", source=source, **doc.summary())
        return doc

    # ------------------------------------------------------------------
    # Pass 1: blocks
    # ------------------------------------------------------------------

    def _scan_blocks(self, lines: list[str], doc: Document) -> dict[int, str]:
        """Collect block structure. Returns line number → text to scan for links."""
        slugs = SlugAllocator()
        inline_lines: dict[int, str] = {}
        fence: _OpenFence | None = None
        in_comment = False
        # (line, text, list content column) of the paragraph a setext underline may close
        previous_paragraph: tuple[int, str, int] | None = None
        # content column of the innermost open list item, 0 outside lists
        list_content = 0
        after_blank = False
        body_start = front_matter_end(lines)

        for index, raw in enumerate(lines):
            lineno = index + 1
            if index < body_start:
                continue

            if fence is not None:
                close = _FENCE_CLOSE_RE.match(raw)
                if (
                    close
                    and _indent_width(close.group("indent")) <= fence.max_indent
                    and close.group("fence")[0] == fence.marker
                    and len(close.group("fence")) >= fence.length
                ):
                    doc.fences.append(CodeFence(
                        open_line=fence.open_line,
                        close_line=lineno,
                        marker=fence.marker,
                        length=fence.length,
                        info=fence.info,
                        content="\n".join(fence.body),
                    ))
                    fence = None
                else:
                    fence.body.append(raw)
                continue

            line = raw
            if in_comment:
                if "-->" not in line:
                    continue
                line = " " * (line.index("-->") + 3) + line[line.index("-->") + 3:]
                in_comment = False
            line = _COMMENT_INLINE_RE.sub(lambda m: " " * len(m.group(0)), line)
            if "<!--" in line:
                line = line[: line.index("<!--")]
                in_comment = True

            width = _indent_width(line)
            if line.strip():
                item = _LIST_ITEM_RE.match(line)
                if item and width <= list_content + 3:
                    marker = item.group(0).expandtabs(4)
                    list_content = len(marker) + (0 if marker[-1:].isspace() else 1)
                elif width < list_content and (
                    after_blank or _ATX_RE.match(line) or _SETEXT_RE.match(line)
                ):
                    list_content = 0
            after_blank = not line.strip()

            # deeper indentation is an indented code block, not a fence
            opening = _FENCE_OPEN_RE.match(line)
            if (
                opening
                and width <= list_content + 3
                and not (opening.group("fence")[0] == "`" and "`" in opening.group("info"))
            ):
                info = opening.group("info").strip()
                fence = _OpenFence(
                    open_line=lineno,
                    marker=opening.group("fence")[0],
                    length=len(opening.group("fence")),
                    info=info.split()[0] if info else "",
                    body=[],
                    max_indent=list_content + 3,
                )
                previous_paragraph = None
                continue

            if not line.strip():
                previous_paragraph = None
                continue

            definition = _DEFINITION_RE.match(line)
            if definition:
                label = normalize_label(definition.group("label"))
                doc.definitions.setdefault(
                    label,
                    ReferenceDefinition(label=label, url=definition.group("url"), line=lineno),
                )
                previous_paragraph = None
                continue

            atx = _ATX_RE.match(line)
            setext = _SETEXT_RE.match(line)
            if atx:
                text = _ATX_CLOSING_RE.sub("", atx.group("text") or "").strip()
                self._add_heading(doc, slugs, len(atx.group("hashes")), text, lineno)
                previous_paragraph = None
            elif (
                setext
                and previous_paragraph is not None
                and previous_paragraph[2] <= width <= previous_paragraph[2] + 3
            ):
                level = 1 if setext.group("underline")[0] == "=" else 2
                prev_line, prev_text, _ = previous_paragraph
                self._add_heading(doc, slugs, level, prev_text.strip(), prev_line)
                previous_paragraph = None
                continue
            elif _LIST_ITEM_RE.match(line) or _BLOCKQUOTE_RE.match(line):
                previous_paragraph = None
            else:
                # lazy continuations keep the item column
                previous_paragraph = (lineno, line, list_content)

            scan = _blank_code_spans(line)
            for name in html_anchor_names(scan):
                self._add_html_anchor(doc, name, lineno)
            inline_lines[lineno] = scan

        if fence is not None:
            doc.fences.append(CodeFence(
                open_line=fence.open_line,
                close_line=None,
                marker=fence.marker,
                length=fence.length,
                info=fence.info,
                content="\n".join(fence.body),
            ))
        return inline_lines

    def _add_heading(
        self, doc: Document, slugs: SlugAllocator, level: int, text: str, lineno: int
    ) -> None:
        if not heading_plain_text(text):
            return
        slug, anchor = slugs.allocate(text)
        heading = Heading(level=level, text=text, line=lineno, slug=slug, anchor=anchor)
        doc.headings.append(heading)
        if anchor not in doc.anchors:
            doc.anchors[anchor] = Anchor(name=anchor, line=lineno, source=AnchorSource.HEADING)

    def _add_html_anchor(self, doc: Document, name: str, lineno: int) -> None:
        anchor = Anchor(name=name, line=lineno, source=AnchorSource.HTML)
        if name in doc.anchors:
            doc.duplicate_anchors.append(anchor)
        else:
            doc.anchors[name] = anchor

    # ------------------------------------------------------------------
    # Pass 2: inline links
    # ------------------------------------------------------------------

    def _scan_links(self, inline_lines: dict[int, str], doc: Document) -> None:
        for lineno in sorted(inline_lines):
            found: list[tuple[int, Link]] = []
            line = inline_lines[lineno]

            for match in _INLINE_LINK_RE.finditer(line):
                target = match.group("target")
                found.append((match.start(), Link(
                    text=match.group("text"),
                    target=target,
                    line=lineno,
                    kind=classify_target(target),
                    is_image=bool(match.group("bang")),
                )))
            line = _INLINE_LINK_RE.sub(lambda m: " " * len(m.group(0)), line)

            for match in _REFERENCE_LINK_RE.finditer(line):
                label = normalize_label(match.group("label") or match.group("text"))
                definition = doc.definitions.get(label)
                link = Link(
                    text=match.group("text"),
                    target=definition.url if definition else "",
                    line=lineno,
                    kind=classify_target(definition.url) if definition else LinkKind.RELATIVE,
                    style=LinkStyle.REFERENCE,
                    label=label,
                    is_image=bool(match.group("bang")),
                )
                if definition:
                    found.append((match.start(), link))
                else:
                    doc.undefined_references.append(link)
            line = _REFERENCE_LINK_RE.sub(lambda m: " " * len(m.group(0)), line)

            for match in _SHORTCUT_LINK_RE.finditer(line):
                label = normalize_label(match.group("label"))
                definition = doc.definitions.get(label)
                if definition is None:
                    continue
                found.append((match.start(), Link(
                    text=match.group("label"),
                    target=definition.url,
                    line=lineno,
                    kind=classify_target(definition.url),
                    style=LinkStyle.REFERENCE,
                    label=label,
                )))
                line = _blank(line, match.start(), match.end())

            for match in _AUTOLINK_RE.finditer(line):
                target = match.group("target")
                found.append((match.start(), Link(
                    text=target,
                    target=target,
                    line=lineno,
                    kind=classify_target(target),
                    style=LinkStyle.AUTOLINK,
                )))

            for match in _HREF_RE.finditer(line):
                target = match.group("target")
                found.append((match.start(), Link(
                    text="",
                    target=target,
                    line=lineno,
                    kind=classify_target(target),
                )))

            doc.links.extend(link for _, link in sorted(found, key=lambda item: item[0]))

    # ------------------------------------------------------------------
    # Table of contents
    # ------------------------------------------------------------------

    def _detect_toc(self, lines: list[str], doc: Document) -> None:
        toc_heading = next(
            (h for h in doc.headings if self.toc_heading_re.search(heading_plain_text(h.text))),
            None,
        )
        fence_lines = {
            n
            for fence in doc.fences
            for n in range(fence.open_line, (fence.close_line or len(lines)) + 1)
        }

        if toc_heading is not None:
            following = [h for h in doc.headings if h.line > toc_heading.line and h.level <= toc_heading.level]
            end = following[0].line if following else len(lines) + 1
            doc.toc_heading = toc_heading
            doc.toc = self._toc_entries(lines, doc, self._toc_list_lines(lines, toc_heading.line + 1, end, fence_lines))
            return

        first_h2 = next((h.line for h in doc.headings if h.level >= 2), len(lines) + 1)
        anchor_lines = {link.line for link in doc.anchor_links()}
        for block in self._list_blocks(lines, end=first_h2, skip=fence_lines):
            if len(block) >= 2 and all(lineno in anchor_lines for lineno in block):
                doc.toc = self._toc_entries(lines, doc, block)
                return

    def _toc_list_lines(self, lines: list[str], start: int, end: int, skip: set[int]) -> list[int]:
        """List-item lines of the first list after the TOC heading."""
        items: list[int] = []
        for lineno in range(start, min(end, len(lines) + 1)):
            if lineno in skip:
                if items:
                    break
                continue
            line = lines[lineno - 1]
            if _LIST_ITEM_RE.match(line):
                items.append(lineno)
            elif not line.strip() or (items and line[:1].isspace()):
                continue
            elif items:
                break
        return items

    def _toc_entries(self, lines: list[str], doc: Document, item_lines: list[int]) -> list[TocEntry]:
        indents: dict[int, int] = {}
        for lineno in item_lines:
            item = _LIST_ITEM_RE.match(lines[lineno - 1])
            if item:
                indents[lineno] = len(item.group("indent").expandtabs(4))
        depth_of = {width: depth for depth, width in enumerate(sorted(set(indents.values())))}

        return [
            TocEntry(
                text=link.text,
                target=link.target,
                line=link.line,
                depth=depth_of[indents[link.line]],
            )
            for link in doc.anchor_links()
            if link.line in indents
        ]

    def _list_blocks(self, lines: list[str], *, end: int, skip: set[int]) -> list[list[int]]:
        """Runs of consecutive list-item lines before line *end*."""
        blocks: list[list[int]] = []
        current: list[int] = []
        for lineno in range(1, min(end, len(lines) + 1)):
            if lineno not in skip and _LIST_ITEM_RE.match(lines[lineno - 1]):
                current.append(lineno)
            elif current:
                blocks.append(current)
                current = []
        if current:
            blocks.append(current)
        return blocks


def parse_document(
    text: str,
    *,
    source: str = "<string>",
    path: Path | None = None,
    toc_heading_pattern: str = DEFAULT_TOC_PATTERN,
) -> Document:
    """Parse Markdown *text* into a ``Document``."""
    return MarkdownParser(toc_heading_pattern).parse(text, source=source, path=path)


def load_document(path: Path, *, toc_heading_pattern: str = DEFAULT_TOC_PATTERN) -> Document:
    """Read and parse a Markdown file.

    Raises:
        DocumentNotFoundError: *path* does not exist or is not a file
        DocumentReadError: the file cannot be read or is not UTF-8
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(f"Document not found: {path}", path=str(path))
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentReadError(f"Cannot read {path}: {exc}", path=str(path), cause=exc) from exc
    return parse_document(text, source=str(path), path=path, toc_heading_pattern=toc_heading_pattern)


__all__ = [
    "DEFAULT_TOC_PATTERN",
    "MarkdownParser",
    "classify_target",
    "normalize_label",
    "parse_document",
    "load_document",
]
