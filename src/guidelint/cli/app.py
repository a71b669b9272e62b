"""
Root Typer application for the guidelint CLI.

Commands::

    guidelint lint PATHS...      lint documents (optionally check links)
    guidelint links PATHS...     check external links only
    guidelint toc FILE           print or rewrite the table of contents
    guidelint render FILE        render a standalone HTML page
    guidelint rules FILE         list the rules of a style guide
    guidelint outline FILE       section tree with rule counts
    guidelint list-rules         diagnostic codes

Exit codes: 0 success, 1 lint/link failures, 2 usage or configuration errors.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.tree import Tree

from guidelint import __version__
from guidelint.cli.utils import (
    EXIT_FAILURE,
    console,
    echo_json,
    err_console,
    exit_on_error,
    make_settings,
    print_lint_result,
    print_table,
)
from guidelint.document.anchors import heading_plain_text
from guidelint.document.parser import load_document
from guidelint.document.rules import extract_rules, extract_sections
from guidelint.links.checker import Verdict, check_links, document_urls
from guidelint.lint.linter import RULE_CODES, list_lint_rules
from guidelint.orchestrator import GuideOrchestrator
from guidelint.render.html import render_html
from guidelint.render.toc import build_toc, update_toc

app = typer.Typer(
    name="guidelint",
    help="guidelint: lint, check and render Markdown style guides.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML config file (default: nearest .guidelint.yml).",
    exists=True,
    dir_okay=False,
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("guidelint")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"guidelint {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """guidelint CLI: keep style guides navigable and their links alive."""


# ── guidelint lint ───────────────────────────────────────────────────────


@app.command("lint")
def lint_cmd(
    paths: list[Path] = typer.Argument(..., help="Markdown files or directories."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
    no_infos: bool = typer.Option(False, "--no-infos", help="Hide info-level diagnostics."),
    links: bool = typer.Option(False, "--check-links", help="Also check external links (network)."),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Lint style guides for broken anchors, unclosed fences and more.

    Example:
        guidelint lint README.md
        guidelint lint docs/ --strict --json
    """
    settings = make_settings(config)
    with exit_on_error():
        orchestrator = GuideOrchestrator(paths, settings)
        report = orchestrator.run(check_links=links, include_infos=not no_infos)

    if json_out:
        echo_json(report.to_dict())
    else:
        for result in report.results:
            print_lint_result(result)
        for path, message in report.failures.items():
            err_console.print(f"[bold red]FAIL[/bold red] {escape(path)}: {escape(message)}")
        status = "[green]passed[/green]" if report.passed else "[bold red]failed[/bold red]"
        console.print(
            f"\n{len(report.results)} document(s) {status}: "
            f"{report.total_errors} error(s), {report.total_warnings} warning(s), "
            f"{report.total_infos} info(s)"
        )

    if not report.passed:
        raise typer.Exit(code=EXIT_FAILURE)
    if strict and report.total_warnings:
        raise typer.Exit(code=EXIT_FAILURE)


# ── guidelint links ──────────────────────────────────────────────────────


@app.command("links")
def links_cmd(
    paths: list[Path] = typer.Argument(..., help="Markdown files or directories."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Per-request timeout in seconds."),
    concurrency: int | None = typer.Option(None, "--concurrency", "-n", help="Simultaneous requests."),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Check every external link in the given documents.

    Example:
        guidelint links README.md --timeout 5
    """
    settings = make_settings(config, link_timeout=timeout, link_concurrency=concurrency)
    with exit_on_error():
        orchestrator = GuideOrchestrator(paths, settings)
        documents = orchestrator.load()
    urls = [url for doc in documents.values() for url in document_urls(doc)]
    statuses = check_links(urls, settings=settings) if urls else []

    if json_out:
        echo_json({
            "links": [s.to_dict() for s in statuses],
            "failures": orchestrator.failures,
        })
    else:
        print_table(
            [
                {"url": s.url, "verdict": s.verdict.value, "status": s.status_code, "error": s.error}
                for s in statuses
            ],
            title="External links",
        )
        for path, message in orchestrator.failures.items():
            err_console.print(f"[bold red]FAIL[/bold red] {escape(path)}: {escape(message)}")

    if orchestrator.failures or any(s.verdict is Verdict.BROKEN for s in statuses):
        raise typer.Exit(code=EXIT_FAILURE)


# ── guidelint toc ────────────────────────────────────────────────────────


@app.command("toc")
def toc_cmd(
    file: Path = typer.Argument(..., help="Markdown file."),
    write: bool = typer.Option(
        False, "--write", "-w", help="Rewrite the TOC between <!-- toc --> and <!-- tocstop -->."
    ),
    min_level: int = typer.Option(2, "--min-level", min=1, max=6, help="Shallowest heading level."),
    max_level: int = typer.Option(3, "--max-level", min=1, max=6, help="Deepest heading level."),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Print a table of contents, or update it in place with --write.

    Example:
        guidelint toc README.md
        guidelint toc README.md --write --max-level 2
    """
    if min_level > max_level:
        err_console.print("[bold red]Error[/bold red]: --min-level is greater than --max-level")
        raise typer.Exit(code=2)
    settings = make_settings(config)

    with exit_on_error():
        document = load_document(file, toc_heading_pattern=settings.toc_heading_pattern)
        if not write:
            typer.echo(build_toc(document, min_level=min_level, max_level=max_level))
            return
        updated = update_toc(
            document.text,
            min_level=min_level,
            max_level=max_level,
            toc_heading_pattern=settings.toc_heading_pattern,
            source=document.source,
        )

    if updated == document.text:
        console.print(f"[dim]Table of contents already up to date: {escape(str(file))}[/dim]")
        return
    file.write_text(updated, encoding="utf-8")
    console.print(f"[green]Updated[/green] table of contents in {escape(str(file))}")


# ── guidelint render ─────────────────────────────────────────────────────


@app.command("render")
def render_cmd(
    file: Path = typer.Argument(..., help="Markdown file."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write HTML to file instead of stdout."),
    title: str | None = typer.Option(None, "--title", help="Page title (default: first h1)."),
    template_dir: Path | None = typer.Option(
        None, "--template-dir", help="Directory with a custom page.html.j2.", file_okay=False
    ),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Render a style guide to a standalone HTML page.

    Example:
        guidelint render README.md -o guide.html
    """
    settings = make_settings(config)
    with exit_on_error():
        document = load_document(file, toc_heading_pattern=settings.toc_heading_pattern)
        html = render_html(document, title=title, template_dir=template_dir)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(html, encoding="utf-8")
        console.print(f"Written to {escape(str(output))}")
    else:
        typer.echo(html)


# ── guidelint rules ──────────────────────────────────────────────────────


@app.command("rules")
def rules_cmd(
    file: Path = typer.Argument(..., help="Markdown style guide."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    section: str | None = typer.Option(
        None, "--section", "-s", help="Only rules under headings containing this text."
    ),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """List the advisory rules of a style guide.

    Example:
        guidelint rules README.md --section Migrations
    """
    settings = make_settings(config)
    with exit_on_error():
        document = load_document(file, toc_heading_pattern=settings.toc_heading_pattern)
    rules = extract_rules(document)
    if section:
        needle = section.lower()
        rules = [r for r in rules if any(needle in title.lower() for title in r.section)]

    if json_out:
        echo_json([r.to_dict() for r in rules])
        return

    print_table(
        [
            {
                "line": r.line,
                "section": " › ".join(r.section[1:] or r.section),
                "anchor": r.anchor or "",
                "examples": _example_marks(r),
                "rule": r.summary if len(r.summary) <= 80 else r.summary[:77] + "...",
            }
            for r in rules
        ],
        title=f"{len(rules)} rule(s)",
    )


def _example_marks(rule) -> str:
    marks = []
    if rule.has_bad_example:
        marks.append("bad")
    if rule.has_good_example:
        marks.append("good")
    return "/".join(marks)


# ── guidelint outline ────────────────────────────────────────────────────


@app.command("outline")
def outline_cmd(
    file: Path = typer.Argument(..., help="Markdown style guide."),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Show the heading tree with rule counts and anchors."""
    settings = make_settings(config)
    with exit_on_error():
        document = load_document(file, toc_heading_pattern=settings.toc_heading_pattern)

    tree = Tree(f"[bold]{escape(document.source)}[/bold]")

    def add(node: Tree, sections) -> None:
        for s in sections:
            count = f" [dim]({s.rule_count} rules)[/dim]" if s.rule_count else ""
            child = node.add(
                f"{escape(heading_plain_text(s.title))} [cyan]#{escape(s.heading.anchor)}[/cyan]{count}"
            )
            add(child, s.children)

    add(tree, extract_sections(document))
    console.print(tree)


# ── guidelint list-rules ─────────────────────────────────────────────────


@app.command("list-rules")
def list_rules_cmd(
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """List diagnostic codes and registered lint rules."""
    severities = {"E": "error", "W": "warning", "I": "info", "L": "error/warning", "X": "warning"}
    rows = [
        {"code": code, "severity": severities.get(code[0], ""), "description": description}
        for code, description in RULE_CODES.items()
    ]
    if json_out:
        echo_json({"codes": rows, "rules": list_lint_rules()})
        return
    print_table(rows, title="Diagnostic codes")
