"""guidelint command-line interface (Typer + Rich)."""

from guidelint.cli.app import app

__all__ = ["app"]
