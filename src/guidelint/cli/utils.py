"""
CLI utility helpers: consoles, settings loading, error mapping, output.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from guidelint.core.errors import GuidelintError
from guidelint.core.logging import configure_logging
from guidelint.core.settings import GuidelintSettings, load_settings
from guidelint.lint.linter import LintResult, Severity

console = Console()
err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_USAGE = 2

_SEVERITY_STYLE = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}


# ── Error handling ───────────────────────────────────────────────────────


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Turn ``GuidelintError`` into a one-line message and exit code 2."""
    try:
        yield
    except GuidelintError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {escape(exc.message)}")
        raise typer.Exit(code=EXIT_USAGE) from exc


# ── Settings ─────────────────────────────────────────────────────────────


def make_settings(config: Path | None = None, **overrides: Any) -> GuidelintSettings:
    """Load settings for a command and configure logging from them.

    Raises ``typer.Exit(2)`` on invalid configuration.
    """
    with exit_on_error():
        settings = load_settings(config, **overrides)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings


# ── Output helpers ───────────────────────────────────────────────────────


def echo_json(payload: Any) -> None:
    """Plain JSON on stdout (no Rich highlighting, so it stays parseable)."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_lint_result(result: LintResult) -> None:
    """Render one document's diagnostics."""
    status = "[green]PASS[/green]" if result.passed else "[bold red]FAIL[/bold red]"
    console.print(f"{status} [bold]{escape(result.document_name)}[/bold]")
    for d in result.diagnostics:
        location = f"{d.line}:" if d.line else "-:"
        style = _SEVERITY_STYLE[d.severity]
        console.print(
            f"  [dim]{location:>6}[/dim] [{style}]{d.code}[/{style}] {escape(d.message)}"
        )
        if d.suggestion:
            console.print(f"         [dim]{escape(d.suggestion)}[/dim]")


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(escape("" if v is None else str(v)) for v in row.values()))
    console.print(table)
