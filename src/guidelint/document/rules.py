"""Style-guide structure: section tree, rule bullets, bad/good examples.

A style guide is a heading tree whose leaves hold advisory bullets.
Each top-level bullet is a *rule*; the fenced blocks under it are its
examples. Guides in the bbatsov tradition mark rules like this::

    * <a name="config-initializers"></a>
      Put custom initialization code in `config/initializers`.
      <sup>[[link](#config-initializers)]</sup>

      ```ruby
      # bad
      ...
      # good
      ...
      ```

``extract_rules`` returns one ``Rule`` per bullet with its anchor,
self-link target, cleaned summary and classified examples.
"""

from __future__ import annotations

import re

from guidelint.document.anchors import heading_plain_text
from guidelint.document.model import (
    CodeExample,
    CodeFence,
    Document,
    ExampleVerdict,
    Heading,
    Rule,
    Section,
)

_TOP_LEVEL_ITEM_RE = re.compile(r"^(?P<indent> {0,3})(?:[-*+]|\d{1,9}[.)])\s+(?P<text>.*)$")
_LEADING_ANCHOR_RE = re.compile(r"""^\s*<a\s+(?:name|id)\s*=\s*["'](?P<name>[^"']+)["']\s*/?>\s*(?:</a>)?""", re.IGNORECASE)
_SELF_LINK_RE = re.compile(r"(?:<sup>)?\s*\[\[[^\]]*\]\((?P<target>#[^)\s]+)\)\]\s*(?:</sup>)?", re.IGNORECASE)
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_VERDICT_RE = re.compile(
    r"^\s*(?:#|-#|//|--|;|<%#|<!--|/\*|\{#)\s*(?P<verdict>bad|good)\b", re.IGNORECASE
)


def extract_sections(document: Document) -> list[Section]:
    """Build the heading tree. Returns root sections in document order.

    Deeper headings nest under the nearest preceding shallower heading;
    a heading with no shallower predecessor becomes a root.
    """
    roots: list[Section] = []
    stack: list[Section] = []
    by_line: dict[int, Section] = {}

    for heading in document.headings:
        section = Section(heading=heading)
        by_line[heading.line] = section
        while stack and stack[-1].heading.level >= heading.level:
            stack.pop()
        if stack:
            stack[-1].children.append(section)
        else:
            roots.append(section)
        stack.append(section)

    for rule in extract_rules(document):
        owner = _owning_heading(document.headings, rule.line)
        if owner is not None:
            by_line[owner.line].rules.append(rule)
    return roots


def extract_rules(document: Document) -> list[Rule]:
    """Extract one ``Rule`` per top-level bullet outside the table of contents."""
    lines = document.lines
    fence_by_open = {fence.open_line: fence for fence in document.fences}
    fence_lines = {
        n
        for fence in document.fences
        for n in range(fence.open_line, (fence.close_line or len(lines)) + 1)
    }
    heading_lines = {h.line: h for h in document.headings}
    setext_underlines = {h.line + 1 for h in document.headings if _is_setext(lines, h)}
    toc_lines = document.toc_lines
    toc_heading = document.toc_heading

    rules: list[Rule] = []
    stack: list[Heading] = []
    current: dict | None = None

    def finish() -> None:
        nonlocal current
        if current is not None:
            rules.append(_build_rule(current))
            current = None

    for lineno in range(1, len(lines) + 1):
        line = lines[lineno - 1]

        if lineno in heading_lines:
            finish()
            heading = heading_lines[lineno]
            while stack and stack[-1].level >= heading.level:
                stack.pop()
            stack.append(heading)
            continue
        if lineno in setext_underlines:
            continue

        if lineno in fence_by_open:
            if current is not None:
                current["fences"].append(fence_by_open[lineno])
            continue
        if lineno in fence_lines:
            continue

        in_toc = lineno in toc_lines or (toc_heading is not None and toc_heading in stack)
        if in_toc:
            finish()
            continue
        item = _TOP_LEVEL_ITEM_RE.match(line)
        if item and current is not None and len(item.group("indent")) > current["indent"]:
            # nested bullet: part of the current rule
            item = None
        if item:
            finish()
            current = {
                "section": tuple(heading_plain_text(h.text) for h in stack),
                "line": lineno,
                "indent": len(item.group("indent")),
                "text": [item.group("text")],
                "fences": [],
                "open": True,
            }
            continue

        if current is None:
            continue
        if not line.strip():
            current["open"] = False
        elif current["open"]:
            # continuation, including lazy unindented lines
            if not current["fences"]:
                current["text"].append(line.strip())
        elif not line[:1].isspace():
            # unindented paragraph after a blank line ends the list
            finish()

    finish()
    return rules


def classify_examples(fence: CodeFence) -> list[CodeExample]:
    """Split a fence into examples at ``# bad`` / ``# good`` comment lines."""
    segments: list[tuple[ExampleVerdict, int, list[str]]] = []
    verdict = ExampleVerdict.NEUTRAL
    start = fence.open_line + 1
    body: list[str] = []

    for offset, code_line in enumerate(fence.content.splitlines()):
        match = _VERDICT_RE.match(code_line)
        if match:
            if any(part.strip() for part in body):
                segments.append((verdict, start, body))
            verdict = ExampleVerdict(match.group("verdict").lower())
            start = fence.open_line + 1 + offset
            body = [code_line]
        else:
            body.append(code_line)
    if any(part.strip() for part in body) or not segments:
        segments.append((verdict, start, body))

    return [
        CodeExample(
            language=fence.info.lower(),
            verdict=segment_verdict,
            line=segment_line,
            code="\n".join(segment_body),
        )
        for segment_verdict, segment_line, segment_body in segments
    ]


def _build_rule(state: dict) -> Rule:
    text = " ".join(part for part in state["text"] if part)

    anchor = None
    leading = _LEADING_ANCHOR_RE.match(text)
    if leading:
        anchor = leading.group("name")
        text = text[leading.end():]

    self_link = None
    markers = list(_SELF_LINK_RE.finditer(text))
    if markers:
        self_link = markers[-1].group("target")[1:]
        text = _SELF_LINK_RE.sub(" ", text)

    summary = " ".join(_HTML_TAG_RE.sub("", text).split())
    examples: list[CodeExample] = []
    for fence in state["fences"]:
        examples.extend(classify_examples(fence))

    return Rule(
        section=state["section"],
        summary=summary,
        line=state["line"],
        anchor=anchor,
        self_link=self_link,
        examples=tuple(examples),
    )


def _is_setext(lines: list[str], heading: Heading) -> bool:
    if heading.line >= len(lines):
        return False
    return bool(re.match(r"^ {0,3}(=+|-+)\s*$", lines[heading.line])) and not lines[heading.line - 1].lstrip().startswith("#")


def _owning_heading(headings: list[Heading], line: int) -> Heading | None:
    owner = None
    for heading in headings:
        if heading.line > line:
            break
        owner = heading
    return owner


__all__ = ["extract_sections", "extract_rules", "classify_examples"]
