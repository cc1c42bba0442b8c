"""
End-to-end tests: HTML in, python-pptx deck out.
"""

import base64

import pytest
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_FILL
from pptx.enum.shapes import MSO_SHAPE, MSO_SHAPE_TYPE
from pptx.oxml.ns import qn
from pptx.util import Inches, Pt

from conftest import deck, png_bytes
from html2slides.emitter import decode_data_uri, load_image
from html2slides.errors import UnresolvableAsset


def data_uri(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def texts(slide):
    return [shape.text_frame.text for shape in slide.shapes if shape.has_text_frame]


def pictures(slide):
    return [s for s in slide.shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]


class TestAssets:
    """Tests for image source resolution."""

    def test_base64_data_uri(self):
        media_type, data = decode_data_uri(data_uri(b"\x89PNG"))
        assert media_type == "image/png"
        assert data == b"\x89PNG"

    def test_plain_data_uri(self):
        media_type, data = decode_data_uri("data:image/svg+xml,%3Csvg%3E%3C/svg%3E")
        assert media_type == "image/svg+xml"
        assert data == b"<svg></svg>"

    def test_local_file_relative_to_base_dir(self, tmp_path):
        (tmp_path / "logo.png").write_bytes(png_bytes())
        media_type, data = load_image("logo.png?v=2", tmp_path)
        assert data == png_bytes()
        assert media_type == "image/*"

    @pytest.mark.parametrize("src", ["https://example.com/a.png", "//cdn.example.com/a.png", "missing.png", ""])
    def test_unresolvable(self, src, tmp_path):
        with pytest.raises(UnresolvableAsset):
            load_image(src, tmp_path)


class TestDeck:
    """Tests for deck-level output."""

    def test_slides_in_order(self, convert):
        prs, _ = convert(deck("<h1>One</h1>", "<h1>Two</h1>", "<h1>Three</h1>"))
        assert len(prs.slides) == 3
        assert [texts(slide) for slide in prs.slides] == [["One"], ["Two"], ["Three"]]

    def test_slide_size_and_properties(self, convert):
        prs, _ = convert(deck("<p>x</p>"), aspect_ratio="4:3", title="Quarterly", author="Ops")
        assert prs.slide_width == Inches(10.0)
        assert prs.slide_height == Inches(7.5)
        assert prs.core_properties.title == "Quarterly"
        assert prs.core_properties.author == "Ops"

    def test_progress_callback(self):
        from html2slides import HTMLToSlidesConverter

        calls = []
        HTMLToSlidesConverter(deck("<p>a</p>", "<p>b</p>")).convert(lambda i, n: calls.append((i, n)))
        assert calls == [(1, 2), (2, 2)]

    def test_bytes_input(self):
        from html2slides import HTMLToSlidesConverter, MalformedInput

        assert HTMLToSlidesConverter(deck("<p>ü</p>").encode("utf-8")).preview()[0]["element_count"] == 1
        with pytest.raises(MalformedInput):
            HTMLToSlidesConverter(b"<p>caf\xe9</p>")

    def test_preview(self):
        from html2slides import HTMLToSlidesConverter

        html = '<body><section class="slide" style="background:#fff"><h1>Intro</h1><p>a</p></section>' \
               '<section class="slide"><p>b</p></section></body>'
        summary = HTMLToSlidesConverter(html).preview()
        assert summary == [
            {"index": 0, "title": "Intro", "element_count": 2, "has_background": True},
            {"index": 1, "title": "Slide 2", "element_count": 1, "has_background": False},
        ]

    def test_solid_background(self, convert):
        html = '<body><section class="slide" style="background-color:#123456"><p>x</p></section></body>'
        prs, _ = convert(html)
        fill = prs.slides[0].background.fill
        assert fill.fore_color.rgb == RGBColor(0x12, 0x34, 0x56)


class TestShapes:
    """Tests for boxes, shapes and text."""

    def test_round_square_is_one_oval(self, convert):
        prs, _ = convert(
            deck('<div style="width:100px;height:100px;border-radius:50%;background:#f00"></div>')
        )
        (shape,) = prs.slides[0].shapes
        assert shape.shape_type == MSO_SHAPE_TYPE.AUTO_SHAPE
        assert shape.auto_shape_type == MSO_SHAPE.OVAL
        assert shape.fill.fore_color.rgb == RGBColor(0xFF, 0x00, 0x00)

    def test_rounded_card_with_text(self, convert):
        prs, _ = convert(
            deck('<div style="width:400px;height:100px;border-radius:12px;background:#eee">Card</div>')
        )
        shapes = list(prs.slides[0].shapes)
        assert len(shapes) == 2
        assert shapes[0].auto_shape_type == MSO_SHAPE.ROUNDED_RECTANGLE
        assert shapes[1].text_frame.text == "Card"

    def test_gradient_box_is_one_picture(self, convert):
        prs, _ = convert(
            deck('<div style="width:200px;height:100px;background:linear-gradient(#fff,#000)"></div>')
        )
        shapes = list(prs.slides[0].shapes)
        assert len(shapes) == 1
        assert shapes[0].shape_type == MSO_SHAPE_TYPE.PICTURE

    def test_runs_keep_formatting(self, convert):
        prs, _ = convert(deck("<p>Body <strong>bold</strong> text</p>"))
        (shape,) = prs.slides[0].shapes
        runs = shape.text_frame.paragraphs[0].runs
        assert [r.text for r in runs] == ["Body ", "bold", " text"]
        assert runs[1].font.bold is True
        assert all(r.font.name == "Arial" for r in runs)

    def test_line_breaks_become_paragraphs(self, convert):
        prs, _ = convert(deck("<p>first<br>second</p>"))
        (shape,) = prs.slides[0].shapes
        assert [p.text for p in shape.text_frame.paragraphs] == ["first", "second"]

    def test_border_without_color_uses_text_color(self, convert):
        prs, _ = convert(deck('<div style="width:200px;height:100px;border:2px solid;color:#f00"></div>'))
        (shape,) = prs.slides[0].shapes
        assert shape.line.color.rgb == RGBColor(0xFF, 0x00, 0x00)
        assert shape.line.width == Pt(1.5)

    def test_transparent_border_has_no_line(self, convert):
        prs, _ = convert(
            deck('<div style="width:200px;height:100px;background:#eee;border:2px solid transparent"></div>')
        )
        (shape,) = prs.slides[0].shapes
        assert shape.line.fill.type == MSO_FILL.BACKGROUND

    def test_link(self, convert):
        prs, _ = convert(deck('<a href="https://example.com">site</a>'))
        run = prs.slides[0].shapes[0].text_frame.paragraphs[0].runs[0]
        assert run.text == "site"
        assert run.hyperlink.address == "https://example.com"


class TestIconsAndImages:
    """Tests for bitmaps on the slide."""

    def test_icon_text_never_emitted(self, convert, fake_svg):
        prs, _ = convert(
            deck(
                '<h2><i class="material-icons">home</i> Welcome</h2>'
                '<p><span class="material-icons">star</span> Rated</p>'
            )
        )
        slide = prs.slides[0]
        all_text = " ".join(texts(slide))
        assert "home" not in all_text
        assert "star" not in all_text
        assert "Welcome" in all_text
        assert len(pictures(slide)) == 2
        assert len(fake_svg) == 2

    def test_generic_icon_wrappers_keep_content(self, convert):
        prs, _ = convert(
            deck(
                '<div class="card"><div class="icon">\U0001F4CA</div><h3>Revenue</h3></div>'
                '<p>Total: <span class="icon-label">Quarterly</span></p>'
            )
        )
        all_text = " ".join(texts(prs.slides[0]))
        assert "\U0001F4CA" in all_text
        assert "Revenue" in all_text
        assert "Total: Quarterly" in all_text

    def test_data_uri_image_aspect_fit(self, convert):
        html = deck(f'<img src="{data_uri(png_bytes((20, 10)))}" style="width:400px;height:100px">')
        prs, _ = convert(html)
        (picture,) = pictures(prs.slides[0])
        assert picture.width / picture.height == pytest.approx(2.0, rel=0.01)

    def test_remote_image_is_a_warning(self, convert):
        prs, converter = convert(
            deck('<img src="https://example.com/a.png" style="width:10px;height:10px"><p>kept</p>')
        )
        assert pictures(prs.slides[0]) == []
        assert texts(prs.slides[0]) == ["kept"]
        assert any("remote image not embedded" in w for w in converter.warnings)


class TestTablesAndLists:
    """Tests for native tables and bulleted lists."""

    def test_table_spans_merge(self, convert):
        html = deck(
            "<table><tr><th colspan='2'>Head</th></tr>"
            "<tr><td>a</td><td>b</td></tr></table>"
        )
        prs, _ = convert(html)
        (frame,) = prs.slides[0].shapes
        assert frame.has_table
        table = frame.table
        assert table.cell(0, 0).is_merge_origin
        assert table.cell(0, 1).is_spanned
        assert table.cell(0, 0).text == "Head"
        assert table.cell(1, 1).text == "b"
        assert table.cell(0, 0).text_frame.paragraphs[0].runs[0].font.bold is True

    def test_cell_borders_precede_fill(self, convert):
        prs, _ = convert(deck("<table><tr><td>a</td></tr></table>"))
        tc_pr = prs.slides[0].shapes[0].table.cell(0, 0)._tc.tcPr
        tags = [child.tag for child in tc_pr]
        assert tags[:4] == [qn("a:lnL"), qn("a:lnR"), qn("a:lnT"), qn("a:lnB")]
        assert qn("a:solidFill") in tags

    def test_nested_list_levels(self, convert):
        prs, _ = convert(deck("<ol><li>One<ul><li>Sub</li></ul></li><li>Two</li></ol>"))
        (shape,) = prs.slides[0].shapes
        paragraphs = shape.text_frame.paragraphs
        assert [(p.text, p.level) for p in paragraphs] == [("One", 0), ("Sub", 1), ("Two", 0)]
        p_pr = paragraphs[0]._p.pPr
        assert p_pr.find(qn("a:buAutoNum")) is not None
        assert paragraphs[1]._p.pPr.find(qn("a:buChar")).get("char") == "◦"


class TestTiming:
    """Tests for animations and slide transitions in the output."""

    def test_animation_and_transition(self, convert):
        html = (
            '<body><section class="slide" data-transition="fade">'
            '<h1 style="animation: fadeIn 1s">Hi</h1></section></body>'
        )
        prs, _ = convert(html)
        element = prs.slides[0]._element
        assert element.find(qn("p:transition")) is not None
        timing = element.find(qn("p:timing"))
        assert timing is not None
        spids = {target.get("spid") for target in timing.iter(qn("p:spTgt"))}
        assert spids == {str(prs.slides[0].shapes[0].shape_id)}

    def test_filled_text_animates_box_and_text(self, convert):
        prs, _ = convert(deck('<p style="background:#eee;animation: fadeIn 1s">Hello</p>'))
        slide = prs.slides[0]
        box, text = slide.shapes
        assert text.text_frame.text == "Hello"
        timing = slide._element.find(qn("p:timing"))
        spids = {target.get("spid") for target in timing.iter(qn("p:spTgt"))}
        assert spids == {str(box.shape_id), str(text.shape_id)}
        node_types = [ctn.get("nodeType") for ctn in timing.iter(qn("p:cTn")) if ctn.get("presetID")]
        assert node_types == ["clickEffect", "withEffect"]

    def test_animations_disabled(self, convert):
        prs, _ = convert(deck('<h1 style="animation: fadeIn 1s">Hi</h1>'), preserve_animations=False)
        assert prs.slides[0]._element.find(qn("p:timing")) is None
