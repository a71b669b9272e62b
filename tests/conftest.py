"""
Shared pytest fixtures and configuration for guidelint tests.

This module provides:
- Environment isolation (no GUIDELINT_* variables, no stray config files)
- Lint rule registry cleanup
- The Rails style guide excerpt used across test modules
"""

import os
import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure guidelint package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from guidelint.document.model import Document
from guidelint.document.parser import parse_document
from guidelint.lint.linter import clear_custom_rules

FIXTURES = Path(__file__).parent / "fixtures"


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch) -> Generator[None, None, None]:
    """Run each test in an empty directory with no GUIDELINT_* variables."""
    for key in list(os.environ):
        if key.startswith("GUIDELINT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture(autouse=True)
def clean_lint_rules() -> Generator[None, None, None]:
    """Clear custom lint rules before and after each test."""
    clear_custom_rules()
    yield
    clear_custom_rules()


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def rails_guide_text() -> str:
    return (FIXTURES / "rails_style_guide_excerpt.md").read_text(encoding="utf-8")


@pytest.fixture
def rails_guide(rails_guide_text) -> Document:
    return parse_document(rails_guide_text, source="rails_style_guide_excerpt.md")


@pytest.fixture
def rails_guide_path(tmp_path, rails_guide_text) -> Path:
    """The excerpt copied into the per-test directory."""
    path = tmp_path / "README.md"
    path.write_text(rails_guide_text, encoding="utf-8")
    return path
