"""
guidelint - lint, check and render Markdown style guides.

Checks that keep a long-lived guide trustworthy: every table-of-contents
link resolves to a heading, every code fence is closed, and (opt-in)
every external link still answers.
"""

__version__ = "0.3.0"

from guidelint.document.parser import load_document, parse_document  # noqa: E402
from guidelint.lint.linter import LintResult, lint_document  # noqa: E402
from guidelint.orchestrator import GuideOrchestrator, GuideReport  # noqa: E402

__all__ = [
    "__version__",
    "parse_document",
    "load_document",
    "lint_document",
    "LintResult",
    "GuideOrchestrator",
    "GuideReport",
]
