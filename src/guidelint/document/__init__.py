"""Markdown document model, parser, anchors and style-guide structure."""

from guidelint.document.model import Document, Heading, Link, LinkKind, Rule, Section
from guidelint.document.parser import load_document, parse_document
from guidelint.document.rules import extract_rules, extract_sections

__all__ = [
    "Document",
    "Heading",
    "Link",
    "LinkKind",
    "Rule",
    "Section",
    "load_document",
    "parse_document",
    "extract_rules",
    "extract_sections",
]
