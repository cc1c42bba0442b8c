"""
Tests for slides defined inside inline script arrays.
"""

from html2slides import HTMLToSlidesConverter
from html2slides.rendering import StaticRenderer, strip_node_ids
from html2slides.scripted import (
    build_scripted_document,
    decode_item,
    extract_script_slides,
    find_array_literal,
    split_array_items,
)

SCRIPTED_PAGE = """<!DOCTYPE html>
<html><head>
<style>.title { color: #336699; }</style>
<link rel="stylesheet" href="deck.css">
<link rel="icon" href="favicon.ico">
</head><body>
<div id="app"></div>
<script src="vendor.js"></script>
<script>
  // slides = ['<p>commented out</p>'];
  const slides = [
    { title: 'Intro', html: '<h1 class="title">Intro</h1>' },
    { title: 'Next', html: '<h1>Next</h1>' + "<p>More</p>" },
  ];
  let current = 0;
</script>
</body></html>"""


class TestScanner:
    """Tests for finding and splitting array literals."""

    def test_comment_is_skipped(self):
        source = "// slides = [1]\nconst slides = ['<h1>A</h1>'];"
        assert find_array_literal(source) == "['<h1>A</h1>']"

    def test_string_is_skipped(self):
        source = 'var s = "x pages: [1]"; var pages = [\'<p>a</p>\'];'
        assert find_array_literal(source, ("pages",)) == "['<p>a</p>']"

    def test_object_key_form(self):
        source = "init({ 'slides': [`<p>x</p>`], speed: 3 })"
        assert find_array_literal(source) == "[`<p>x</p>`]"

    def test_nested_brackets_balance(self):
        source = "const slides = [{ html: '<p>]</p>', tags: [1, 2] }]; foo();"
        assert find_array_literal(source) == "[{ html: '<p>]</p>', tags: [1, 2] }]"

    def test_no_array(self):
        assert find_array_literal("const deck = {};") is None

    def test_split_items(self):
        assert split_array_items("['a', \"b,c\", [1,2], ]") == ["'a'", '"b,c"', "[1,2]"]


class TestDecode:
    """Tests for turning one array item into markup."""

    def test_object_markup_property(self):
        assert decode_item("{ title: 'A', html: '<h1>A</h1>' }") == "<h1>A</h1>"

    def test_property_priority(self):
        assert decode_item("{ body: '<p>b</p>', content: '<p>c</p>' }") == "<p>c</p>"

    def test_concatenation(self):
        assert decode_item("'<h1>' + \"Title\" + '</h1>'") == "<h1>Title</h1>"

    def test_template_expressions_removed(self):
        assert decode_item("`<p>${name}</p>`") == "<p></p>"

    def test_escapes(self):
        assert decode_item(r"'a\nb é \x41 \u{1F600}'") == "a\nb é A \U0001F600"

    def test_line_continuation(self):
        assert decode_item("'one \\\ntwo'") == "one two"

    def test_non_strings(self):
        assert decode_item("42") is None
        assert decode_item("{ id: 3 }") is None
        assert decode_item("someVariable") is None
        assert decode_item("'a' + b") is None


class TestScriptedDocument:
    """Tests for rebuilding a static deck from script slides."""

    def test_extract(self):
        assert extract_script_slides(SCRIPTED_PAGE) == [
            '<h1 class="title">Intro</h1>',
            "<h1>Next</h1><p>More</p>",
        ]

    def test_plain_text_items_ignored(self):
        html = "<body><script>const slides = ['just text', 'more text'];</script></body>"
        assert extract_script_slides(html) == []

    def test_build_keeps_stylesheets(self):
        built = build_scripted_document(SCRIPTED_PAGE, ["<h1>A</h1>", "<h1>B</h1>"])
        assert built.count('<section class="slide">') == 2
        assert ".title { color: #336699; }" in built
        assert "deck.css" in built
        assert "favicon.ico" not in built
        assert "<script" not in built

    def test_built_document_renders(self):
        built = build_scripted_document(SCRIPTED_PAGE, extract_script_slides(SCRIPTED_PAGE))
        renderer = StaticRenderer().open(built)
        (first, _) = renderer.snapshot(".slide")
        assert first.children[0].style["color"] == "#336699"

    def test_stepped_markup_drops_snapshot_ids(self):
        markup = '<div class="app" data-h2s-id="n4"><h1 data-h2s-id="n5">A</h1></div>'
        assert strip_node_ids(markup) == '<div class="app"><h1>A</h1></div>'

    def test_converter_falls_back_to_script(self):
        converter = HTMLToSlidesConverter(SCRIPTED_PAGE)
        summary = converter.preview()
        assert [s["title"] for s in summary] == ["Intro", "Next"]
        assert summary[1]["element_count"] == 2
