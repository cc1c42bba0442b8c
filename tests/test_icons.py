"""
Tests for icon detection, glyph fallbacks and node re-identification.
"""

from html2slides.icons import (
    classify_icon,
    glyph_path,
    glyph_svg,
    icon_name,
    is_icon,
    locate_node,
    match_by_position,
    match_by_text,
    normalize_glyph_name,
)
from html2slides.model import Element, ElementKind, IconInfo, Rect
from html2slides.rendering import RenderedNode


def node(tag="i", classes="", text="", children=(), style=None, rect=None, node_id="n1"):
    content = [text] if text else []
    content.extend(children)
    return RenderedNode(
        node_id=node_id,
        tag=tag,
        attrs={"class": classes} if classes else {},
        style=style or {},
        rect=rect,
        content=content,
    )


class TestDetection:
    """Tests for deciding what is an icon."""

    def test_material_ligature(self):
        assert is_icon(node(classes="material-icons", text="home"))

    def test_font_awesome_prefix(self):
        n = node(classes="fa-solid fa-house")
        assert is_icon(n)
        assert icon_name(n) == "fa-house"

    def test_glyph_text_in_italic_tag(self):
        assert is_icon(node(text="arrow_forward"))

    def test_real_italic_text_is_not_an_icon(self):
        assert not is_icon(node(text="Important note"))

    def test_icon_font_span(self):
        n = node(tag="span", text="check", style={"font-family": "Material Symbols Outlined"})
        assert is_icon(n)

    def test_wrapper_with_content_is_not_an_icon(self):
        inner = node(tag="p", text="text", node_id="n2")
        assert not is_icon(node(tag="span", classes="icon", children=[inner]))

    def test_svg_icon(self):
        svg = RenderedNode(node_id="n2", tag="svg", markup="<svg><path d='M0 0'/></svg>")
        info = classify_icon(node(tag="span", classes="icon", children=[svg], style={"color": "#f00"}))
        assert info.is_font_glyph is False
        assert info.svg_markup.startswith("<svg")
        assert info.fill == "FF0000"

    def test_classify_non_icon(self):
        assert classify_icon(node(tag="div", text="hello")) is None

    def test_generic_icon_class_keeps_emoji(self):
        assert not is_icon(node(tag="div", classes="icon", text="\U0001F4CA"))

    def test_generic_icon_prefix_keeps_words(self):
        assert not is_icon(node(tag="span", classes="icon-label", text="Quarterly"))
        assert not is_icon(node(tag="span", classes="icon-label", text="quarterly"))

    def test_generic_icon_prefix_with_icon_font(self):
        n = node(tag="span", classes="icon-home", style={"font-family": "IcoFont Icons"})
        assert is_icon(n)
        assert icon_name(n) == "icon-home"

    def test_family_class_needs_glyph_text(self):
        assert not is_icon(node(tag="span", classes="material-icons", text="Read more"))

    def test_private_use_codepoint(self):
        assert is_icon(node(tag="span", classes="fa", text="\uf015"))

    def test_short_italic_word_is_not_an_icon(self):
        assert not is_icon(node(text="etc"))
        assert is_icon(node(text="home"))


class TestGlyphs:
    """Tests for the glyph vector fallback."""

    def test_prefix_and_alias(self):
        assert normalize_glyph_name("fa-arrow-right") == "arrow_right"
        assert glyph_path("fa-arrow-right") == glyph_path("arrow_forward")

    def test_svg_document(self):
        svg = glyph_svg("home", "00FF00")
        assert 'viewBox="0 0 24 24"' in svg
        assert 'fill="#00FF00"' in svg

    def test_unknown(self):
        assert glyph_svg("definitely_not_a_glyph") is None


class TestLocateNode:
    """Tests for the ordered match strategies."""

    def _element(self, node_id=None, page_rect=None):
        return Element(
            kind=ElementKind.ICON,
            tag="i",
            node_id=node_id,
            classes=("material-icons",),
            icon=IconInfo(name="home", page_rect=page_rect),
        )

    def test_by_node_id_first(self):
        a = node(classes="material-icons", text="home", node_id="a")
        b = node(classes="material-icons", text="home", node_id="b")
        assert locate_node(self._element(node_id="b"), [a, b]) is b

    def test_by_text(self):
        other = node(classes="material-icons", text="star", node_id="x")
        target = node(classes="material-icons", text="home", node_id="y")
        assert match_by_text(self._element(), [other, target]) is target

    def test_by_position(self):
        far = node(classes="material-icons", text="a", rect=Rect(300, 300, 24, 24), node_id="x")
        near = node(classes="material-icons", text="b", rect=Rect(102, 98, 24, 24), node_id="y")
        element = self._element(page_rect=Rect(100, 100, 24, 24))
        assert match_by_position(element, [far, near]) is near

    def test_nothing_matches(self):
        assert locate_node(self._element(node_id="zz"), []) is None
