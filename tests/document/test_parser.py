"""Tests for guidelint.document.parser: blocks, links and TOC detection."""

from __future__ import annotations

import textwrap

import pytest

from guidelint.core.errors import DocumentNotFoundError, DocumentReadError
from guidelint.document.model import AnchorSource, LinkKind, LinkStyle
from guidelint.document.parser import classify_target, load_document, normalize_label, parse_document


def _parse(text: str, **kwargs):
    return parse_document(textwrap.dedent(text).lstrip("\n"), **kwargs)


# ---------------------------------------------------------------------------
# Headings
# ---------------------------------------------------------------------------

class TestHeadings:
    def test_atx_levels_and_lines(self):
        doc = _parse("""
            # Title

            ## Section

            ### Sub
        """)
        assert [(h.level, h.text, h.line) for h in doc.headings] == [
            (1, "Title", 1),
            (2, "Section", 3),
            (3, "Sub", 5),
        ]

    def test_closing_hashes_are_stripped(self):
        doc = _parse("## Routing ##\n")
        assert doc.headings[0].text == "Routing"
        assert doc.headings[0].anchor == "routing"

    def test_setext_headings(self):
        doc = _parse("""
            Guide
            =====

            Bundler
            -------
        """)
        assert [(h.level, h.text, h.line) for h in doc.headings] == [
            (1, "Guide", 1),
            (2, "Bundler", 4),
        ]

    def test_dashes_after_lazy_list_line_are_a_break(self):
        doc = _parse("""
            * item
            lazy continuation
            ---
        """)
        assert doc.headings == []

    def test_setext_heading_inside_list_item(self):
        doc = _parse("""
            * item

              Title
              ---
        """)
        assert [(h.level, h.text, h.line) for h in doc.headings] == [(2, "Title", 3)]

    def test_hash_without_space_is_not_a_heading(self):
        doc = _parse("#hashtag\n")
        assert doc.headings == []

    def test_headings_inside_fences_are_ignored(self):
        doc = _parse("""
            ```ruby
            # bad
            ```
        """)
        assert doc.headings == []

    def test_duplicate_headings_get_suffixed_anchors(self):
        doc = _parse("""
            ## Examples

            ## Examples
        """)
        assert [h.anchor for h in doc.headings] == ["examples", "examples-1"]
        assert [h.slug for h in doc.headings] == ["examples", "examples"]
        assert doc.has_anchor("examples-1")

    def test_front_matter_is_skipped(self):
        doc = _parse("""
            ---
            title: Guide
            ---

            # Guide
        """)
        assert [h.line for h in doc.headings] == [5]


# ---------------------------------------------------------------------------
# Anchors
# ---------------------------------------------------------------------------

class TestAnchors:
    def test_html_anchor_registered(self, rails_guide):
        anchor = rails_guide.anchors["config-initializers"]
        assert anchor.source is AnchorSource.HTML
        assert anchor.line == 15

    def test_heading_anchor_registered(self, rails_guide):
        assert rails_guide.anchors["routing"].source is AnchorSource.HEADING

    def test_duplicate_html_anchor_recorded(self):
        doc = _parse("""
            <a name="x"></a>

            <a name="x"></a>
        """)
        assert [a.line for a in doc.duplicate_anchors] == [3]

    def test_anchor_in_code_span_is_ignored(self):
        doc = _parse('Write `<a name="x"></a>` to add an anchor.\n')
        assert not doc.has_anchor("x")


# ---------------------------------------------------------------------------
# Fences
# ---------------------------------------------------------------------------

class TestFences:
    def test_closed_fence(self):
        doc = _parse("""
            ```ruby
            puts 1
            ```
        """)
        fence = doc.fences[0]
        assert (fence.open_line, fence.close_line, fence.info) == (1, 3, "ruby")
        assert fence.closed
        assert fence.content == "puts 1"

    def test_unclosed_fence(self):
        doc = _parse("""
            Text

            ```ruby
            puts 1
        """)
        assert len(doc.fences) == 1
        assert doc.fences[0].open_line == 3
        assert not doc.fences[0].closed

    def test_shorter_fence_does_not_close(self):
        doc = _parse("""
            ````markdown
            ```ruby
            ```
            ````
        """)
        assert len(doc.fences) == 1
        assert doc.fences[0].close_line == 4

    def test_tilde_fence_not_closed_by_backticks(self):
        doc = _parse("""
            ~~~
            ```
            ~~~
        """)
        assert doc.fences[0].marker == "~"
        assert doc.fences[0].close_line == 3

    def test_indented_fence_in_list_item(self, rails_guide):
        fence = next(f for f in rails_guide.fences if f.info == "ruby")
        assert (fence.open_line, fence.close_line) == (30, 38)

    def test_four_space_indent_is_code_not_fence(self):
        doc = _parse("## Usage\n\n    ```ruby\n\n## Next\n")
        assert doc.fences == []
        assert [h.text for h in doc.headings] == ["Usage", "Next"]

    def test_fence_in_nested_list_item(self):
        doc = _parse("""
            * Rule
              * Nested

                  ```ruby
                  x = 1
                  ```

            ## After
        """)
        assert [(f.open_line, f.close_line) for f in doc.fences] == [(4, 6)]
        assert [h.text for h in doc.headings] == ["After"]

    def test_overindented_closing_fence_is_content(self):
        doc = _parse("```\ncode\n    ```\n```\n")
        assert doc.fences[0].close_line == 4
        assert doc.fences[0].content == "code\n    ```"

    def test_inline_triple_backticks_do_not_open_fence(self):
        doc = _parse("Use ```code``` sparingly.\n")
        assert doc.fences == []

    def test_links_inside_fence_are_ignored(self):
        doc = _parse("""
            ```
            [x](#missing)
            ```
        """)
        assert doc.links == []


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

class TestLinks:
    def test_inline_links_classified(self):
        doc = _parse("[a](#anchor) [b](https://rubyonrails.org) [c](docs/x.md) [d](mailto:me@example.com)\n")
        assert [link.kind for link in doc.links] == [
            LinkKind.ANCHOR,
            LinkKind.EXTERNAL,
            LinkKind.RELATIVE,
            LinkKind.MAILTO,
        ]

    def test_link_with_parentheses_in_target(self):
        doc = _parse("[wiki](https://en.wikipedia.org/wiki/Ruby_(programming_language))\n")
        assert doc.links[0].target == "https://en.wikipedia.org/wiki/Ruby_(programming_language)"

    def test_link_with_title(self):
        doc = _parse('[Rails](https://rubyonrails.org "Rails home")\n')
        assert doc.links[0].target == "https://rubyonrails.org"

    def test_image(self):
        doc = _parse("![logo](images/logo.png)\n")
        assert doc.links[0].is_image
        assert doc.links[0].kind is LinkKind.RELATIVE

    def test_reference_links(self):
        doc = _parse("""
            See [the guide][guide] and [Guide][].

            [guide]: https://guides.rubyonrails.org
        """)
        refs = [link for link in doc.links if link.style is LinkStyle.REFERENCE]
        assert [link.target for link in refs] == ["https://guides.rubyonrails.org"] * 2
        assert doc.definitions["guide"].line == 3

    def test_shortcut_reference_link(self):
        doc = _parse("""
            Read [Guide] first.

            [guide]: https://guides.rubyonrails.org
        """)
        assert doc.links[0].label == "guide"

    def test_undefined_reference(self):
        doc = _parse("See [the guide][nope].\n")
        assert doc.links == []
        assert [link.label for link in doc.undefined_references] == ["nope"]

    def test_brackets_without_definition_are_text(self):
        doc = _parse("Arrays like [1, 2, 3] are fine.\n")
        assert doc.links == []
        assert doc.undefined_references == []

    def test_autolink_and_href(self):
        doc = _parse('<https://example.com> and <a href="#top">top</a>\n')
        assert [(link.target, link.style) for link in doc.links] == [
            ("https://example.com", LinkStyle.AUTOLINK),
            ("#top", LinkStyle.INLINE),
        ]

    def test_links_in_code_spans_are_ignored(self):
        doc = _parse("Write `[x](#y)` for a link.\n")
        assert doc.links == []

    def test_links_in_html_comments_are_ignored(self):
        doc = _parse("""
            <!--
            [x](#hidden)
            -->
            [y](#shown)
        """)
        assert [link.target for link in doc.links] == ["#shown"]

    def test_fragment_is_unquoted(self):
        doc = _parse("[x](#caf%C3%A9)\n")
        assert doc.links[0].fragment == "café"

    def test_self_link_inside_double_brackets(self, rails_guide):
        targets = [link.target for link in rails_guide.links if link.line == 17]
        assert targets == ["#config-initializers"]


class TestHelpers:
    @pytest.mark.parametrize(
        ("target", "kind"),
        [
            ("#x", LinkKind.ANCHOR),
            ("http://a.b", LinkKind.EXTERNAL),
            ("HTTPS://A.B", LinkKind.EXTERNAL),
            ("//cdn.example.com/x.js", LinkKind.EXTERNAL),
            ("mailto:a@b.c", LinkKind.MAILTO),
            ("../CONTRIBUTING.md", LinkKind.RELATIVE),
        ],
    )
    def test_classify_target(self, target, kind):
        assert classify_target(target) is kind

    def test_normalize_label(self):
        assert normalize_label("  Rails   Guide ") == "rails guide"


# ---------------------------------------------------------------------------
# Table of contents
# ---------------------------------------------------------------------------

class TestTableOfContents:
    def test_detected_under_heading(self, rails_guide):
        assert rails_guide.toc_heading.text == "Table of Contents"
        assert [e.target for e in rails_guide.toc] == ["#configuration", "#routing", "#migrations"]
        assert rails_guide.toc_lines == frozenset({9, 10, 11})

    def test_nested_depth(self):
        doc = _parse("""
            ## Contents

            * [A](#a)
              * [B](#b)
            * [C](#c)

            ## A
        """)
        assert [(e.target, e.depth) for e in doc.toc] == [("#a", 0), ("#b", 1), ("#c", 0)]

    def test_custom_heading_pattern(self):
        doc = _parse(
            """
            ## Index

            * [A](#a)
            """,
            toc_heading_pattern=r"^index$",
        )
        assert doc.toc_heading.text == "Index"
        assert len(doc.toc) == 1

    def test_fallback_to_leading_link_list(self):
        doc = _parse("""
            # Guide

            * [Setup](#setup)
            * [Usage](#usage)

            ## Setup

            ## Usage
        """)
        assert doc.toc_heading is None
        assert [e.fragment for e in doc.toc] == ["setup", "usage"]

    def test_no_toc(self):
        doc = _parse("""
            # Guide

            * plain item
            * another

            ## Setup
        """)
        assert not doc.has_toc


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoadDocument:
    def test_load(self, rails_guide_path):
        doc = load_document(rails_guide_path)
        assert doc.path == rails_guide_path
        assert doc.source == str(rails_guide_path)
        assert len(doc.headings) == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            load_document(tmp_path / "nope.md")
        assert exc_info.value.context.path.endswith("nope.md")

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "latin1.md"
        path.write_bytes("# Caf\xe9\n".encode("latin-1"))
        with pytest.raises(DocumentReadError):
            load_document(path)

    def test_summary_counts(self, rails_guide):
        summary = rails_guide.summary()
        assert summary["headings"] == 5
        assert summary["fences"] == 1
        assert summary["toc_entries"] == 3
        assert summary["external_links"] == 1
