"""Document linter."""

from guidelint.lint.linter import (
    LintDiagnostic,
    LintResult,
    Severity,
    clear_custom_rules,
    lint_document,
    list_lint_rules,
    register_lint_rule,
)

__all__ = [
    "LintDiagnostic",
    "LintResult",
    "Severity",
    "clear_custom_rules",
    "lint_document",
    "list_lint_rules",
    "register_lint_rule",
]
