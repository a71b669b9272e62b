"""Tests for guidelint.render.toc (TOC generation and in-place update)."""

import textwrap

import pytest

from guidelint.core.errors import TocMarkerError
from guidelint.document.parser import parse_document
from guidelint.render.toc import build_toc, update_toc

GUIDE = textwrap.dedent("""\
    # Guide

    ## Table of Contents

    <!-- toc -->
    * [Old](#old)
    <!-- tocstop -->

    ## Layout

    ### Indentation [2 spaces]

    ## Syntax

    #### Deep
""")

EXPECTED_TOC = textwrap.dedent("""\
    * [Layout](#layout)
      * [Indentation \\[2 spaces\\]](#indentation-2-spaces)
    * [Syntax](#syntax)""")


class TestBuildToc:
    def test_nested_entries(self):
        assert build_toc(parse_document(GUIDE)) == EXPECTED_TOC

    def test_level_range(self):
        toc = build_toc(parse_document(GUIDE), max_level=2)
        assert toc == "* [Layout](#layout)\n* [Syntax](#syntax)"

    def test_indent_is_relative_to_shallowest_level(self):
        toc = build_toc(parse_document(GUIDE), min_level=3, max_level=4)
        assert toc == "* [Indentation \\[2 spaces\\]](#indentation-2-spaces)\n  * [Deep](#deep)"

    def test_custom_bullet(self):
        toc = build_toc(parse_document(GUIDE), max_level=2, bullet="-")
        assert toc.splitlines()[0] == "- [Layout](#layout)"

    def test_matches_hand_written_toc(self, rails_guide):
        assert build_toc(rails_guide) == (
            "* [Configuration](#configuration)\n"
            "* [Routing](#routing)\n"
            "* [Migrations](#migrations)"
        )

    def test_no_headings_in_range(self):
        assert build_toc(parse_document("# Only a title\n")) == ""

    def test_invalid_range(self):
        with pytest.raises(ValueError):
            build_toc(parse_document(GUIDE), min_level=3, max_level=2)


class TestUpdateToc:
    def test_replaces_block_between_markers(self):
        updated = update_toc(GUIDE)
        lines = updated.splitlines()
        start = lines.index("<!-- toc -->")
        stop = lines.index("<!-- tocstop -->")
        assert "\n".join(lines[start + 1:stop]) == EXPECTED_TOC
        assert "[Old](#old)" not in updated

    def test_rest_of_document_untouched(self):
        updated = update_toc(GUIDE)
        assert updated.startswith("# Guide\n\n## Table of Contents\n\n<!-- toc -->\n")
        assert updated.endswith("## Syntax\n\n#### Deep\n")

    def test_idempotent(self):
        once = update_toc(GUIDE)
        assert update_toc(once) == once

    def test_trailing_newline_follows_input(self):
        assert not update_toc(GUIDE.rstrip("\n")).endswith("\n")

    def test_empty_toc_leaves_markers_adjacent(self):
        text = "# Title\n\n<!-- toc -->\n* stale\n<!-- tocstop -->\n"
        assert update_toc(text) == "# Title\n\n<!-- toc -->\n<!-- tocstop -->\n"

    def test_markers_inside_fences_are_ignored(self):
        text = textwrap.dedent("""\
            # Guide

            <!-- toc -->
            <!-- tocstop -->

            ## Usage

            ```markdown
            <!-- toc -->
            <!-- tocstop -->
            ```
        """)
        updated = update_toc(text)
        assert "<!-- toc -->\n* [Usage](#usage)\n<!-- tocstop -->\n\n## Usage" in updated
        assert updated.endswith("```markdown\n<!-- toc -->\n<!-- tocstop -->\n```\n")


class TestMarkerErrors:
    def test_missing_markers(self):
        with pytest.raises(TocMarkerError, match="not found"):
            update_toc("# Guide\n\n## Usage\n")

    def test_missing_stop(self):
        with pytest.raises(TocMarkerError):
            update_toc("# Guide\n\n<!-- toc -->\n\n## Usage\n")

    def test_repeated_markers(self):
        text = "<!-- toc -->\n<!-- tocstop -->\n<!-- toc -->\n<!-- tocstop -->\n"
        with pytest.raises(TocMarkerError, match="exactly one"):
            update_toc(text)

    def test_stop_before_start(self):
        with pytest.raises(TocMarkerError, match="comes before"):
            update_toc("<!-- tocstop -->\n## Usage\n<!-- toc -->\n")
