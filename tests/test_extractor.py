"""
Tests for the structural extractor over the static renderer.
"""

import pytest

from conftest import deck
from html2slides.config import ConversionOptions
from html2slides.extractor import StructuralExtractor, rich_runs
from html2slides.model import ElementKind, Rect


def extract(render, html, **overrides):
    extractor = StructuralExtractor(ConversionOptions(**overrides))
    document = extractor.extract(render(html))
    return document, extractor


class TestSegmentation:
    """Tests for finding slide roots."""

    def test_slides_in_document_order(self, render):
        document, extractor = extract(render, deck("<h1>One</h1>", "<h1>Two</h1>", "<h1>Three</h1>"))
        assert extractor.matched_selector == ".slide"
        assert [s.title for s in document.slides] == ["One", "Two", "Three"]
        assert [s.index for s in document.slides] == [0, 1, 2]

    def test_nested_matches_are_one_slide(self, render):
        html = '<body><div class="slide"><div class="slide"><p>x</p></div></div></body>'
        document, _ = extract(render, html)
        assert len(document) == 1

    def test_body_fallback(self, render):
        document, extractor = extract(render, "<body><div><h2>Only</h2></div></body>")
        assert extractor.matched_selector is None
        assert len(document) == 1
        assert document.slides[0].title == "Only"

    def test_title_skips_icon_glyphs(self, render):
        document, _ = extract(render, deck('<h1><i class="material-icons">home</i> Welcome</h1>'))
        assert document.slides[0].title == "Welcome"

    def test_untitled_slide(self, render):
        document, _ = extract(render, deck("<p>no heading</p>"))
        assert document.slides[0].title == "Slide 1"

    def test_slide_background_and_transition(self, render):
        html = (
            '<body><section class="slide" data-transition="cube" '
            'style="background: #123456"><p>x</p></section></body>'
        )
        slide = extract(render, html)[0].slides[0]
        assert slide.background.kind == "solidColor"
        assert slide.background.color == "123456"
        assert slide.transition == "push"


class TestElements:
    """Tests for classification and text handling."""

    def test_heading_and_paragraph(self, render):
        document, _ = extract(render, deck("<h1>Hello</h1><p>Body <strong>bold</strong> text</p>"))
        heading, paragraph = document.slides[0].elements
        assert heading.kind == ElementKind.HEADING
        assert heading.heading_level == 1
        assert heading.style.bold
        assert paragraph.kind == ElementKind.PARAGRAPH
        assert paragraph.text == "Body bold text"
        assert [(r.text, r.bold) for r in paragraph.runs] == [
            ("Body ", False),
            ("bold", True),
            (" text", False),
        ]

    def test_source_whitespace_is_not_a_line_break(self, render):
        document, _ = extract(render, deck("<p>one\n      two</p><p>a<br>b</p>"))
        first, second = document.slides[0].elements
        assert first.text == "one two"
        assert second.text == "a\nb"

    def test_hidden_nodes_skipped(self, render):
        document, _ = extract(render, deck('<p style="display:none">gone</p><p>kept</p>'))
        assert [e.text for e in document.slides[0].elements] == ["kept"]

    def test_table_with_spans(self, render):
        html = deck(
            "<table><tr><th colspan='2'>Head</th></tr>"
            "<tr><td>a</td><td rowspan='2'>b</td></tr><tr><td>c</td></tr></table>"
        )
        (table,) = extract(render, html)[0].slides[0].elements
        assert table.kind == ElementKind.TABLE
        data = table.table_data
        assert data.column_count == 2
        assert data.rows[0][0].is_header
        assert data.rows[0][0].colspan == 2
        assert data.rows[1][1].rowspan == 2
        assert [c.text for c in data.rows[2]] == ["c"]

    def test_nested_list(self, render):
        html = deck("<ol><li>One<ul><li>Sub</li></ul></li><li>Two</li></ol>")
        (lst,) = extract(render, html)[0].slides[0].elements
        data = lst.list_data
        assert data.ordered
        assert [i.text for i in data.items] == ["One", "Two"]
        assert data.items[0].children.items[0].text == "Sub"
        assert not data.items[0].children.ordered

    def test_icon_text_blanked(self, render):
        html = deck('<h2><i class="material-icons">star</i> Rating</h2>')
        (heading,) = extract(render, html)[0].slides[0].elements
        assert heading.text == "Rating"
        (icon,) = heading.children
        assert icon.kind == ElementKind.ICON
        assert icon.text == ""
        assert icon.icon.name == "star"

    def test_round_box_is_shape(self, render):
        html = deck('<div style="width:100px;height:100px;border-radius:50%;background:#f00"></div>')
        (shape,) = extract(render, html)[0].slides[0].elements
        assert shape.kind == ElementKind.SHAPE
        assert shape.style.border_radius == pytest.approx(50.0)
        assert shape.style.background_color == "FF0000"

    def test_empty_container_dropped(self, render):
        document, _ = extract(render, deck("<div></div><p>x</p>"))
        assert [e.kind for e in document.slides[0].elements] == [ElementKind.PARAGRAPH]

    def test_css_variables(self, render):
        html = deck(
            '<div class="box"></div>',
            head="<style>:root { --accent: #ff6600; } .box { width: 10px; height: 10px; "
            "border: 2px solid var(--accent); background: var(--accent); }</style>",
        )
        (box,) = extract(render, html)[0].slides[0].elements
        assert box.style.background_color == "FF6600"
        assert box.style.border.color == "FF6600"

    def test_animations_follow_option(self, render):
        html = deck('<h1 style="animation: fadeInUp 1s">Hi</h1>')
        on = extract(render, html)[0].slides[0].elements[0]
        off = extract(render, html, preserve_animations=False)[0].slides[0].elements[0]
        assert [a.archetype for a in on.animations] == ["Float"]
        assert off.animations == []


class TestPlacement:
    """Tests for boxes without a rendered layout."""

    def test_positioned_box(self, render):
        html = deck(
            '<div style="position:absolute;left:100px;top:50px;width:200px;height:80px;'
            'background:#333"></div>'
        )
        (box,) = extract(render, html)[0].slides[0].elements
        assert box.geometry == Rect(100, 50, 200, 80)

    def test_flow_stacks_blocks(self, render):
        html = deck('<div style="height:100px;background:#111"></div><div style="height:40px;background:#222"></div>')
        first, second = extract(render, html)[0].slides[0].elements
        assert second.geometry.y == pytest.approx(first.geometry.bottom)

    def test_rich_runs_merge_same_format(self, render):
        renderer = render("<body><p>a <span>b</span> <em>c</em></p></body>")
        (body,) = renderer.snapshot(None)
        paragraph = body.children[0]
        runs = rich_runs(paragraph)
        assert [(r.text, r.italic) for r in runs] == [("a b ", False), ("c", True)]
