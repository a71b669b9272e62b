"""
Guide orchestrator.

Coordinates a lint run over many files: discovering Markdown files,
parsing each once, linting, checking external links across all
documents in one pass, and rendering HTML output.

Example:
    >>> orchestrator = GuideOrchestrator([Path("docs")])
    >>> report = orchestrator.run(check_links=True)
    >>> report.passed
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from guidelint.core.errors import DocumentError, DocumentNotFoundError, GuidelintError
from guidelint.core.logging import get_logger
from guidelint.core.settings import GuidelintSettings
from guidelint.document.model import Document
from guidelint.document.parser import load_document
from guidelint.links.checker import LinkStatus, Verdict, check_links, document_urls, link_diagnostics
from guidelint.lint.linter import LintResult, lint_document
from guidelint.render.html import HtmlRenderer

logger = get_logger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")


@dataclass
class GuideReport:
    """Outcome of linting one or more documents.

    Attributes:
        results: One ``LintResult`` per successfully parsed document.
        link_statuses: Link check results (empty unless links were checked).
        failures: Documents that could not be loaded, as ``path → message``.
    """

    results: list[LintResult] = field(default_factory=list)
    link_statuses: list[LinkStatus] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.failures and all(r.passed for r in self.results)

    @property
    def total_errors(self) -> int:
        return sum(len(r.errors) for r in self.results) + len(self.failures)

    @property
    def total_warnings(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    @property
    def total_infos(self) -> int:
        return sum(len(r.infos) for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "documents": len(self.results),
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
            "total_infos": self.total_infos,
            "results": [r.to_dict() for r in self.results],
            "links": [s.to_dict() for s in self.link_statuses],
            "failures": dict(self.failures),
        }


class GuideOrchestrator:
    """Run guidelint over files and directories.

    Manifesto:
        One command checks a whole documentation tree. Each document is
        parsed once and shared by the linter, the link checker and the
        renderer. Broken files are reported, never silently dropped.

    Architecture:
        ```
        GuideOrchestrator
              │
              ├──► discover()      directories → *.md (skip patterns)
              │
              ├──► load()          parse each file once
              │
              ├──► lint_document() per document
              │
              ├──► check_links()   all external URLs, one pass
              │         │
              │         ▼
              │    L001 / L002 merged into each LintResult
              │
              └──► GuideReport
        ```

    Args:
        paths: Files and/or directories.
        settings: Validated settings (defaults to ``GuidelintSettings()``).
    """

    def __init__(self, paths: list[Path], settings: GuidelintSettings | None = None):
        self.paths = [Path(p) for p in paths]
        self.settings = settings or GuidelintSettings()
        self.documents: dict[Path, Document] = {}
        self.failures: dict[str, str] = {}
        self.roots: dict[Path, Path] = {}

    def discover(self) -> list[Path]:
        """Expand directories into Markdown files, sorted, without duplicates.

        Raises:
            DocumentNotFoundError: a given path does not exist
        """
        found: list[Path] = []
        for path in self.paths:
            if path.is_dir():
                for candidate in sorted(path.rglob("*")):
                    if (
                        candidate.is_file()
                        and candidate.suffix.lower() in MARKDOWN_SUFFIXES
                        and not self.settings.should_skip(candidate.relative_to(path))
                    ):
                        found.append(candidate)
                        self.roots.setdefault(candidate, path)
            elif path.exists():
                found.append(path)
                self.roots.setdefault(path, path.parent)
            else:
                raise DocumentNotFoundError(f"Path not found: {path}", path=str(path))
        return list(dict.fromkeys(found))

    def load(self) -> dict[Path, Document]:
        """Parse every discovered file. Unreadable files are recorded in ``failures``."""
        self.documents = {}
        self.failures = {}
        for path in self.discover():
            try:
                self.documents[path] = load_document(
                    path, toc_heading_pattern=self.settings.toc_heading_pattern
                )
            except DocumentError as exc:
                logger.error("document_load_failed", path=str(path), error=str(exc))
                self.failures[str(path)] = exc.message
        logger.info("documents_loaded", count=len(self.documents), failed=len(self.failures))
        return self.documents

    def run(self, *, check_links: bool = False, include_infos: bool = True) -> GuideReport:
        """Lint all documents, optionally checking external links."""
        if not self.documents and not self.failures:
            self.load()

        report = GuideReport(failures=dict(self.failures))
        results = {
            path: lint_document(doc, settings=self.settings, include_infos=include_infos)
            for path, doc in self.documents.items()
        }

        if check_links:
            urls = [url for doc in self.documents.values() for url in document_urls(doc)]
            report.link_statuses = check_links_for(urls, self.settings)
            for path, doc in self.documents.items():
                extra = [
                    d for d in link_diagnostics(report.link_statuses, doc)
                    if not self.settings.is_disabled(d.code)
                ]
                if extra:
                    result = results[path]
                    result.diagnostics.extend(extra)
                    result.diagnostics.sort(key=lambda d: (d.line or 0, d.code))

        report.results = list(results.values())
        logger.info(
            "guide_run_finished",
            documents=len(report.results),
            errors=report.total_errors,
            warnings=report.total_warnings,
        )
        return report

    def render_all(self, output_dir: Path, *, title: str | None = None) -> dict[Path, Path]:
        """Render every document to ``output_dir``, mirroring its path under the input root.

        ``docs/ruby/style.md`` given as ``docs`` becomes ``ruby/style.html``. Two
        inputs that land on the same page get ``-1``, ``-2`` suffixes.

        Returns:
            Mapping of source path to written HTML path.
        """
        if not self.documents and not self.failures:
            self.load()
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        renderer = HtmlRenderer()

        written: dict[Path, Path] = {}
        taken: set[Path] = set()
        for path, doc in self.documents.items():
            target = self._unique_target(output_dir, path, taken)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(renderer.render(doc, title=title), encoding="utf-8")
            except (GuidelintError, OSError) as exc:
                logger.error("render_failed", path=str(path), error=str(exc))
                self.failures[str(path)] = str(exc)
                continue
            written[path] = target
            logger.info("document_written", source=str(path), output=str(target))
        return written

    def _unique_target(self, output_dir: Path, path: Path, taken: set[Path]) -> Path:
        root = self.roots.get(path)
        relative = path.relative_to(root) if root is not None else Path(path.name)
        target = output_dir / relative.with_suffix(".html")
        counter = 0
        while target in taken:
            counter += 1
            target = output_dir / relative.with_name(f"{relative.stem}-{counter}.html")
        taken.add(target)
        return target


def check_links_for(urls: list[str], settings: GuidelintSettings) -> list[LinkStatus]:
    """Check *urls* once each and log a one-line tally."""
    if not urls:
        return []
    statuses = check_links(urls, settings=settings)
    logger.debug(
        "links_checked",
        total=len(statuses),
        broken=sum(1 for s in statuses if s.verdict is Verdict.BROKEN),
    )
    return statuses


__all__ = ["GuideReport", "GuideOrchestrator", "MARKDOWN_SUFFIXES"]
