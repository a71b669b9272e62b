"""TOC generation and HTML rendering."""

from guidelint.render.html import HtmlRenderer, render_html
from guidelint.render.toc import build_toc, update_toc

__all__ = ["HtmlRenderer", "render_html", "build_toc", "update_toc"]
