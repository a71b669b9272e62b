"""
HTML rendering for style guides.

Renders the Markdown body with markdown-it-py and wraps it in a Jinja2
page template with a sidebar table of contents.

Architecture:
    ```
    Document ──► markdown-it-py tokens
                     │
                     ▼
             heading ids from Document.headings
             (same anchors the linter checks)
                     │
                     ▼
             HTML body + sidebar entries
                     │
                     ▼
             Jinja2 template (page.html.j2)
                     │
                     ▼
             standalone HTML page
    ```

Heading ids are taken from the parsed document by source line, so an
anchor that passes ``guidelint lint`` is exactly the ``id`` in the page.
Templates can be overridden with ``template_dir``; it must provide
``page.html.j2``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from markdown_it import MarkdownIt

from guidelint import __version__
from guidelint.core.errors import RenderError
from guidelint.core.logging import get_logger
from guidelint.document.anchors import SlugAllocator, heading_plain_text
from guidelint.document.model import Document
from guidelint.document.parser import front_matter_end

logger = get_logger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
PAGE_TEMPLATE = "page.html.j2"


@dataclass(frozen=True)
class SidebarEntry:
    """One sidebar link."""

    text: str
    anchor: str
    depth: int


class HtmlRenderer:
    """Render a ``Document`` to a standalone HTML page.

    Args:
        template_dir: Directory holding ``page.html.j2`` (defaults to the bundled template).
        sidebar_levels: Inclusive heading-level range shown in the sidebar.
    """

    template_name = PAGE_TEMPLATE

    def __init__(
        self,
        template_dir: Path | None = None,
        *,
        sidebar_levels: tuple[int, int] = (2, 3),
    ):
        self.template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
        self.sidebar_levels = sidebar_levels
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.md = MarkdownIt("commonmark", {"html": True}).enable("table")

    def render_body(self, document: Document) -> str:
        """Markdown body to HTML with ``id`` attributes on every heading."""
        lines = document.text.splitlines()
        offset = front_matter_end(lines)
        body = "\n".join(lines[offset:])

        by_line = {h.line: h for h in document.headings}
        fallback = SlugAllocator()
        for heading in document.headings:
            fallback.allocate(heading.text)

        tokens = self.md.parse(body)
        for index, token in enumerate(tokens):
            if token.type != "heading_open":
                continue
            heading = by_line.get(token.map[0] + 1 + offset) if token.map else None
            if heading is not None:
                token.attrSet("id", heading.anchor)
                continue
            # heading the line scanner does not see (e.g. inside a blockquote)
            content = tokens[index + 1].content if index + 1 < len(tokens) else ""
            if heading_plain_text(content):
                token.attrSet("id", fallback.allocate(content)[1])
        return self.md.renderer.render(tokens, self.md.options, {})

    def sidebar(self, document: Document) -> list[SidebarEntry]:
        low, high = self.sidebar_levels
        headings = [
            h for h in document.headings
            if low <= h.level <= high and h != document.toc_heading
        ]
        if not headings:
            return []
        top = min(h.level for h in headings)
        return [
            SidebarEntry(text=heading_plain_text(h.text), anchor=h.anchor, depth=h.level - top)
            for h in headings
        ]

    def render(self, document: Document, *, title: str | None = None, **extra: Any) -> str:
        """Render *document* as a full HTML page.

        Raises:
            RenderError: template missing or failing to render
        """
        context = {
            "title": title or default_title(document),
            "body": self.render_body(document),
            "sidebar": self.sidebar(document),
            "source": document.source,
            "generated_at": datetime.now(),
            "version": __version__,
            **extra,
        }
        try:
            template = self.env.get_template(self.template_name)
            html = template.render(**context)
        except TemplateError as exc:
            raise RenderError(
                f"Cannot render {document.source} with {self.template_dir / self.template_name}: {exc}",
                path=str(document.path) if document.path else None,
                cause=exc,
            ) from exc
        logger.debug("document_rendered", source=document.source, bytes=len(html))
        return html


def default_title(document: Document) -> str:
    """First level-1 heading, else the file stem, else the source name."""
    for heading in document.headings:
        if heading.level == 1:
            return heading_plain_text(heading.text)
    if document.path is not None:
        return Path(document.path).stem
    return document.source


def render_html(document: Document, *, title: str | None = None, template_dir: Path | None = None) -> str:
    """Render *document* to a standalone HTML page."""
    return HtmlRenderer(template_dir).render(document, title=title)


__all__ = ["HtmlRenderer", "SidebarEntry", "default_title", "render_html"]
