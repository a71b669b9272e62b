"""Document linter: static checks for Markdown style guides.

Catches structural problems in a guide *before* it is published:
broken table-of-contents anchors, unclosed code fences, dangling
in-document links, and style-guide conventions such as rules that show
a bad example without the good one. Extensible via a rule registry so
teams can add house checks.

Architecture::

    lint_document(document)
    │
    ├── _check_toc_anchors              E001
    ├── _check_unclosed_fences          E002
    ├── _check_anchor_links             E003
    ├── _check_undefined_references     E004
    ├── _check_relative_links           E005
    ├── _check_duplicate_slugs          W001
    ├── _check_duplicate_html_anchors   W002
    ├── _check_heading_jumps            W003
    ├── _check_rule_self_links          W004
    ├── _check_unpaired_bad_examples    W005
    ├── _check_missing_toc              W006
    ├── _check_fence_languages          I001
    ├── _check_toc_coverage             I002
    ├── _check_unused_definitions       I003
    └── (custom rules via register_lint_rule)
    │
    ▼
    LintResult
    ├── diagnostics: list[LintDiagnostic]
    ├── passed → bool (no errors)
    ├── errors / warnings / infos
    └── summary() → str

Example::

    from guidelint.document.parser import load_document
    from guidelint.lint.linter import lint_document

    result = lint_document(load_document(Path("README.md")))
    if not result.passed:
        for d in result.errors:
            print(f"{d.line}: [{d.code}] {d.message}")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from difflib import get_close_matches
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from guidelint.core.logging import LogContext, get_logger
from guidelint.core.settings import GuidelintSettings, find_project_root
from guidelint.document.anchors import heading_plain_text
from guidelint.document.model import AnchorSource, Document, LinkKind, LinkStyle, Rule
from guidelint.document.rules import extract_rules

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Diagnostic model
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """Severity level for a lint diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class LintDiagnostic:
    """A single lint finding.

    Attributes:
        code: Short identifier (e.g. ``"E001"``).
        severity: ``error``, ``warning``, or ``info``.
        message: Human-readable description.
        line: 1-based line in the document (if applicable).
        suggestion: Recommended fix (optional).
    """

    code: str
    severity: Severity
    message: str
    line: int | None = None
    suggestion: str | None = None

    def __str__(self) -> str:
        location = f"{self.line}: " if self.line else ""
        hint = f" ({self.suggestion})" if self.suggestion else ""
        return f"{location}[{self.code}] {self.severity.value.upper()}: {self.message}{hint}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
            "line": self.line,
            "suggestion": self.suggestion,
        }


@dataclass
class LintResult:
    """Aggregated result of linting a document.

    Attributes:
        document_name: Source name of the linted document.
        diagnostics: All findings from all rules, ordered by line.
    """

    document_name: str
    diagnostics: list[LintDiagnostic] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True if there are no error-level diagnostics."""
        return not any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def errors(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def infos(self) -> list[LintDiagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.INFO]

    def summary(self) -> str:
        """One-line summary of the lint result."""
        counts = {
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "infos": len(self.infos),
        }
        status = "PASS" if self.passed else "FAIL"
        parts = [f"{status}: {self.document_name}"]
        for label, count in counts.items():
            if count:
                parts.append(f"{count} {label}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "document": self.document_name,
            "passed": self.passed,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "info_count": len(self.infos),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def __str__(self) -> str:
        lines = [self.summary()]
        for d in self.diagnostics:
            lines.append(f"  {d}")
        return "\n".join(lines)


@dataclass
class LintContext:
    """What every rule receives: the document plus settings."""

    document: Document
    settings: GuidelintSettings

    @cached_property
    def rules(self) -> list[Rule]:
        return extract_rules(self.document)


# ---------------------------------------------------------------------------
# Rule registry
# ---------------------------------------------------------------------------

# Type alias for lint rules: takes a LintContext, returns diagnostics
LintRule = Callable[[LintContext], list[LintDiagnostic]]

_RULES: list[tuple[str, LintRule]] = []


def register_lint_rule(name: str, rule: LintRule) -> None:
    """Register a custom lint rule.

    Parameters
    ----------
    name
        Human-readable rule name (e.g. ``"check_house_headings"``).
    rule
        Callable that takes a ``LintContext`` and returns a list of
        ``LintDiagnostic`` objects.
    """
    _RULES.append((name, rule))
    logger.debug("lint_rule_registered", rule=name)


def list_lint_rules() -> list[str]:
    """Return names of all registered lint rules (built-in + custom)."""
    return [name for name, _ in _BUILT_IN_RULES] + [name for name, _ in _RULES]


def clear_custom_rules() -> None:
    """Remove all custom lint rules (built-in rules are preserved)."""
    _RULES.clear()


# ---------------------------------------------------------------------------
# Built-in rules: errors
# ---------------------------------------------------------------------------

def _check_toc_anchors(ctx: LintContext) -> list[LintDiagnostic]:
    """E001: TOC entry links to an anchor that does not exist."""
    doc = ctx.document
    return [
        LintDiagnostic(
            code="E001",
            severity=Severity.ERROR,
            message=f"Table of contents entry '{entry.text}' links to missing anchor '#{entry.fragment}'.",
            line=entry.line,
            suggestion=_closest_anchor_hint(doc, entry.fragment),
        )
        for entry in doc.toc
        if not doc.has_anchor(entry.fragment)
    ]


def _check_unclosed_fences(ctx: LintContext) -> list[LintDiagnostic]:
    """E002: Fenced code block is never closed."""
    return [
        LintDiagnostic(
            code="E002",
            severity=Severity.ERROR,
            message=f"Code fence opened with '{fence.marker * fence.length}' is never closed.",
            line=fence.open_line,
            suggestion=f"Add a closing '{fence.marker * fence.length}' line.",
        )
        for fence in ctx.document.fences
        if not fence.closed
    ]


def _check_anchor_links(ctx: LintContext) -> list[LintDiagnostic]:
    """E003: In-document ``#anchor`` link outside the TOC does not resolve."""
    doc = ctx.document
    toc_lines = doc.toc_lines
    diagnostics: list[LintDiagnostic] = []
    for link in doc.anchor_links():
        if link.line in toc_lines or not link.fragment:
            continue
        if not doc.has_anchor(link.fragment):
            diagnostics.append(
                LintDiagnostic(
                    code="E003",
                    severity=Severity.ERROR,
                    message=f"Link to missing anchor '#{link.fragment}'.",
                    line=link.line,
                    suggestion=_closest_anchor_hint(doc, link.fragment),
                )
            )
    return diagnostics


def _check_undefined_references(ctx: LintContext) -> list[LintDiagnostic]:
    """E004: Reference-style link uses an undefined label."""
    return [
        LintDiagnostic(
            code="E004",
            severity=Severity.ERROR,
            message=f"Reference link '[{link.text}][{link.label}]' has no definition.",
            line=link.line,
            suggestion=f"Add '[{link.label}]: <url>' or fix the label.",
        )
        for link in ctx.document.undefined_references
    ]


def _check_relative_links(ctx: LintContext) -> list[LintDiagnostic]:
    """E005: Relative link points at a file that does not exist."""
    doc = ctx.document
    if doc.path is None:
        return []
    base = Path(doc.path).parent
    diagnostics: list[LintDiagnostic] = []
    for link in doc.links:
        if link.kind is not LinkKind.RELATIVE or not link.target:
            continue
        parts = urlsplit(link.target)
        # ftp:, tel: and other schemes are not files
        if parts.scheme or parts.netloc:
            continue
        target_path = unquote(parts.path)
        if not target_path:
            continue
        if target_path.startswith("/"):
            resolved = find_project_root(base) / target_path.lstrip("/")
        else:
            resolved = base / target_path
        if not resolved.exists():
            diagnostics.append(
                LintDiagnostic(
                    code="E005",
                    severity=Severity.ERROR,
                    message=f"Relative link target '{link.target}' does not exist.",
                    line=link.line,
                )
            )
    return diagnostics


# ---------------------------------------------------------------------------
# Built-in rules: warnings
# ---------------------------------------------------------------------------

def _check_duplicate_slugs(ctx: LintContext) -> list[LintDiagnostic]:
    """W001: Two headings produce the same base slug."""
    first_seen: dict[str, int] = {}
    diagnostics: list[LintDiagnostic] = []
    for heading in ctx.document.headings:
        if heading.slug in first_seen:
            diagnostics.append(
                LintDiagnostic(
                    code="W001",
                    severity=Severity.WARNING,
                    message=(
                        f"Heading '{heading_plain_text(heading.text)}' repeats the anchor "
                        f"'#{heading.slug}' from line {first_seen[heading.slug]}; "
                        f"it is reachable only as '#{heading.anchor}'."
                    ),
                    line=heading.line,
                    suggestion="Rename one of the headings.",
                )
            )
        else:
            first_seen[heading.slug] = heading.line
    return diagnostics


def _check_duplicate_html_anchors(ctx: LintContext) -> list[LintDiagnostic]:
    """W002: Explicit anchor name defined more than once."""
    doc = ctx.document
    diagnostics: list[LintDiagnostic] = []
    for duplicate in doc.duplicate_anchors:
        original = doc.anchors[duplicate.name]
        what = "heading anchor" if original.source is AnchorSource.HEADING else "anchor"
        diagnostics.append(
            LintDiagnostic(
                code="W002",
                severity=Severity.WARNING,
                message=f"Anchor '{duplicate.name}' already defined as {what} on line {original.line}.",
                line=duplicate.line,
                suggestion="Give each anchor a unique name.",
            )
        )
    return diagnostics


def _check_heading_jumps(ctx: LintContext) -> list[LintDiagnostic]:
    """W003: Heading level increases by more than one."""
    diagnostics: list[LintDiagnostic] = []
    previous = None
    for heading in ctx.document.headings:
        if previous is not None and heading.level > previous.level + 1:
            diagnostics.append(
                LintDiagnostic(
                    code="W003",
                    severity=Severity.WARNING,
                    message=f"Heading level jumps from h{previous.level} to h{heading.level}.",
                    line=heading.line,
                    suggestion=f"Use h{previous.level + 1} or add the missing level.",
                )
            )
        previous = heading
    return diagnostics


def _check_rule_self_links(ctx: LintContext) -> list[LintDiagnostic]:
    """W004: Rule's ``[[link](#x)]`` marker points somewhere other than its own anchor."""
    diagnostics: list[LintDiagnostic] = []
    for rule in ctx.rules:
        if rule.anchor and rule.self_link and rule.anchor != rule.self_link:
            diagnostics.append(
                LintDiagnostic(
                    code="W004",
                    severity=Severity.WARNING,
                    message=f"Rule anchor '{rule.anchor}' but its self-link points to '#{rule.self_link}'.",
                    line=rule.line,
                    suggestion=f"Change the link to '#{rule.anchor}'.",
                )
            )
    return diagnostics


def _check_unpaired_bad_examples(ctx: LintContext) -> list[LintDiagnostic]:
    """W005: Rule shows a ``bad`` example but no ``good`` one."""
    return [
        LintDiagnostic(
            code="W005",
            severity=Severity.WARNING,
            message=f"Rule '{_short(rule.summary)}' has a bad example but no good example.",
            line=rule.line,
            suggestion="Add a '# good' example next to the bad one.",
        )
        for rule in ctx.rules
        if rule.has_bad_example and not rule.has_good_example
    ]


def _check_missing_toc(ctx: LintContext) -> list[LintDiagnostic]:
    """W006: Document has sections but no table of contents."""
    doc = ctx.document
    sections = [h for h in doc.headings if h.level == 2]
    if len(sections) >= 2 and not doc.has_toc:
        return [
            LintDiagnostic(
                code="W006",
                severity=Severity.WARNING,
                message=f"Document has {len(sections)} sections but no table of contents.",
                suggestion="Add a '## Table of Contents' list or run 'guidelint toc --write'.",
            )
        ]
    return []


# ---------------------------------------------------------------------------
# Built-in rules: infos
# ---------------------------------------------------------------------------

def _check_fence_languages(ctx: LintContext) -> list[LintDiagnostic]:
    """I001: Fenced code block has no language tag."""
    if not ctx.settings.require_fence_language:
        return []
    return [
        LintDiagnostic(
            code="I001",
            severity=Severity.INFO,
            message="Code fence has no language tag.",
            line=fence.open_line,
            suggestion="Add a language after the opening fence (e.g. ```ruby).",
        )
        for fence in ctx.document.fences
        if not fence.info
    ]


def _check_toc_coverage(ctx: LintContext) -> list[LintDiagnostic]:
    """I002: Level 2/3 heading is not listed in the TOC."""
    doc = ctx.document
    if not doc.has_toc:
        return []
    listed = {entry.fragment for entry in doc.toc}
    return [
        LintDiagnostic(
            code="I002",
            severity=Severity.INFO,
            message=f"Section '{heading_plain_text(heading.text)}' is not listed in the table of contents.",
            line=heading.line,
        )
        for heading in doc.headings
        if heading.level in (2, 3)
        and heading != doc.toc_heading
        and (doc.toc_heading is None or heading.line > doc.toc_heading.line)
        and heading.anchor not in listed
    ]


def _check_unused_definitions(ctx: LintContext) -> list[LintDiagnostic]:
    """I003: Reference definition is never used."""
    doc = ctx.document
    used = {link.label for link in doc.links if link.style is LinkStyle.REFERENCE}
    return [
        LintDiagnostic(
            code="I003",
            severity=Severity.INFO,
            message=f"Reference definition '[{definition.label}]' is never used.",
            line=definition.line,
        )
        for label, definition in doc.definitions.items()
        if label not in used
    ]


# Ordered list of built-in rules
_BUILT_IN_RULES: list[tuple[str, LintRule]] = [
    ("check_toc_anchors", _check_toc_anchors),
    ("check_unclosed_fences", _check_unclosed_fences),
    ("check_anchor_links", _check_anchor_links),
    ("check_undefined_references", _check_undefined_references),
    ("check_relative_links", _check_relative_links),
    ("check_duplicate_slugs", _check_duplicate_slugs),
    ("check_duplicate_html_anchors", _check_duplicate_html_anchors),
    ("check_heading_jumps", _check_heading_jumps),
    ("check_rule_self_links", _check_rule_self_links),
    ("check_unpaired_bad_examples", _check_unpaired_bad_examples),
    ("check_missing_toc", _check_missing_toc),
    ("check_fence_languages", _check_fence_languages),
    ("check_toc_coverage", _check_toc_coverage),
    ("check_unused_definitions", _check_unused_definitions),
]

# Code → one-line description, for ``guidelint list-rules``
RULE_CODES: dict[str, str] = {
    "E001": "TOC entry links to a missing anchor",
    "E002": "Code fence never closed",
    "E003": "In-document link to a missing anchor",
    "E004": "Reference link with undefined label",
    "E005": "Relative link to a missing file",
    "W001": "Headings share the same anchor slug",
    "W002": "Explicit anchor defined more than once",
    "W003": "Heading level jumps by more than one",
    "W004": "Rule self-link points to another anchor",
    "W005": "Bad example without a good example",
    "W006": "No table of contents",
    "I001": "Code fence without language tag",
    "I002": "Section missing from the table of contents",
    "I003": "Unused reference definition",
    "L001": "External link is broken (--check-links)",
    "L002": "External link could not be verified (--check-links)",
    "X001": "Lint rule raised an exception",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _short(text: str, width: int = 60) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def _closest_anchor_hint(doc: Document, fragment: str) -> str | None:
    matches = get_close_matches(fragment, list(doc.anchors), n=1, cutoff=0.75)
    if matches:
        return f"Did you mean '#{matches[0]}'?"
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def lint_document(document: Document,
                  *, settings: GuidelintSettings | None = None,
                  include_infos: bool = True,
                  extra_rules: list[LintRule] | None = None) -> LintResult:
    """Run all lint rules against a parsed document.

    Parameters
    ----------
    document
        The document to lint.
    settings
        Lint settings; defaults to ``GuidelintSettings()``.
    include_infos
        If ``False``, info-level diagnostics are suppressed.
    extra_rules
        One-shot rules to run in addition to built-in and registered rules.

    Returns
    -------
    LintResult
        Diagnostics from all rules, sorted by line.
    """
    settings = settings or GuidelintSettings()
    ctx = LintContext(document=document, settings=settings)
    result = LintResult(document_name=document.source)
    all_rules = list(_BUILT_IN_RULES) + list(_RULES)

    if extra_rules:
        for i, rule in enumerate(extra_rules):
            all_rules.append((f"extra_rule_{i}", rule))

    with LogContext(document=document.source):
        for rule_name, rule in all_rules:
            try:
                result.diagnostics.extend(rule(ctx))
            except Exception:
                logger.warning("lint_rule_failed", rule=rule_name, exc_info=True)
                result.diagnostics.append(
                    LintDiagnostic(
                        code="X001",
                        severity=Severity.WARNING,
                        message=f"Lint rule '{rule_name}' raised an exception.",
                    )
                )

        result.diagnostics = [
            d for d in result.diagnostics
            if not settings.is_disabled(d.code)
            and (include_infos or d.severity != Severity.INFO)
        ]
        result.diagnostics.sort(key=lambda d: (d.line or 0, d.code))
        logger.debug("document_linted", summary=result.summary())
    return result


__all__ = [
    "Severity",
    "LintDiagnostic",
    "LintResult",
    "LintContext",
    "LintRule",
    "RULE_CODES",
    "register_lint_rule",
    "list_lint_rules",
    "clear_custom_rules",
    "lint_document",
]
