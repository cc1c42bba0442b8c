"""
Tests for the style normalizer.
"""

import math

import pytest

from html2slides.model import Border
from html2slides.styles import (
    normalize_style,
    parse_alpha,
    parse_border,
    parse_border_radius,
    parse_border_shorthand,
    parse_color,
    parse_font_family,
    parse_font_size,
    parse_gradient,
    parse_opacity,
    parse_shadow,
    parse_text_align,
    split_top_level,
)


class TestColors:
    """Tests for color canonicalization."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("#abc", "AABBCC"),
            ("#1A2b3C", "1A2B3C"),
            ("#11223380", "112233"),
            ("rgb(255, 0, 0)", "FF0000"),
            ("rgb(0 128 255)", "0080FF"),
            ("rgba(0, 0, 0, 0.5)", "000000"),
            ("hsl(120, 100%, 50%)", "00FF00"),
            ("red", "FF0000"),
            ("White", "FFFFFF"),
        ],
    )
    def test_parse_color(self, value, expected):
        assert parse_color(value) == expected

    @pytest.mark.parametrize("value", [None, "", "transparent", "rgba(0,0,0,0)", "notacolor"])
    def test_absent_colors(self, value):
        assert parse_color(value) is None

    def test_alpha(self):
        assert parse_alpha("rgba(10, 20, 30, 0.25)") == pytest.approx(0.25)
        assert parse_alpha("#000") == 1.0
        assert parse_alpha("transparent") == 0.0


class TestFonts:
    """Tests for font size and family mapping."""

    def test_px_to_points(self):
        assert parse_font_size("24px") == pytest.approx(18.0)

    def test_em(self):
        assert parse_font_size("2em") == pytest.approx(24.0)

    def test_clamped(self):
        assert parse_font_size("4px") == 8.0
        assert parse_font_size("400px") == 96.0

    def test_default(self):
        assert parse_font_size(None, default=20.0) == 20.0

    def test_first_family_wins(self):
        assert parse_font_family("'Helvetica Neue', Roboto, sans-serif") == "Arial"
        assert parse_font_family("Fancy Display, serif", font_map={}) == "Fancy Display"
        assert parse_font_family(None, default="Calibri") == "Calibri"

    def test_text_align(self):
        assert parse_text_align("center") == "center"
        assert parse_text_align(None) == "left"


class TestBorders:
    """Tests for borders and corner radius."""

    def test_border_width_in_points(self):
        assert parse_border("solid", "2px", "#333") == Border(style="solid", color="333333", width_pt=1.5)

    def test_zero_width_is_no_border(self):
        assert parse_border("solid", "0px", "#333") is None

    def test_dashed(self):
        assert parse_border("dotted", "1px", "red").style == "dash"

    def test_missing_color_is_current_color(self):
        assert parse_border("solid", "2px", "").color is None
        assert parse_border("solid", "2px", "currentColor").color is None

    def test_transparent_is_no_border(self):
        assert parse_border("solid", "2px", "transparent") is None
        assert parse_border("solid", "2px", "rgba(0, 0, 0, 0)") is None

    def test_shorthand_any_order(self):
        border = parse_border_shorthand("#ff0000 dashed 4px")
        assert border.color == "FF0000"
        assert border.style == "dash"
        assert border.width_pt == 3.0

    def test_radius_px(self):
        assert parse_border_radius("12px") == 12.0

    def test_radius_percent_needs_reference(self):
        assert parse_border_radius("50%", 100.0) == 50.0
        assert parse_border_radius("50%") == 0.0


class TestShadow:
    """Tests for box-shadow parsing."""

    def test_diagonal_shadow(self):
        shadow = parse_shadow("4px 4px 8px rgba(0, 0, 0, 0.3)")
        assert shadow.angle == pytest.approx(45.0)
        assert shadow.offset_px == pytest.approx(math.hypot(4, 4))
        assert shadow.blur_px == 8.0
        assert shadow.color == "000000"

    def test_straight_down(self):
        assert parse_shadow("0 6px 12px #333").angle == pytest.approx(90.0)

    def test_inset_ignored(self):
        assert parse_shadow("inset 0 0 4px #000") is None

    def test_none(self):
        assert parse_shadow("none") is None


class TestGradient:
    """Tests for gradient parsing."""

    def test_direction_keyword(self):
        spec = parse_gradient("linear-gradient(to right, #ff0000, #0000ff)")
        assert spec.kind == "linear"
        assert spec.angle == 90.0
        assert [s.color for s in spec.stops] == ["FF0000", "0000FF"]
        assert [s.position for s in spec.stops] == [0.0, 100.0]

    def test_corner_keyword(self):
        assert parse_gradient("linear-gradient(to bottom right, red, blue)").angle == 135.0

    def test_default_angle(self):
        assert parse_gradient("linear-gradient(#fff, #000)").angle == 180.0

    def test_rgb_stops_with_positions(self):
        spec = parse_gradient("linear-gradient(45deg, rgb(255, 0, 0) 10%, rgba(0, 0, 255, 0.8) 90%)")
        assert spec.angle == 45.0
        assert [(s.color, s.position) for s in spec.stops] == [("FF0000", 10.0), ("0000FF", 90.0)]

    def test_missing_positions_interpolated(self):
        spec = parse_gradient("linear-gradient(90deg, red, lime, blue)")
        assert [s.position for s in spec.stops] == [0.0, 50.0, 100.0]

    def test_radial_shape_clause_dropped(self):
        spec = parse_gradient("radial-gradient(circle at center, #fff 0%, #000 100%)")
        assert spec.kind == "radial"
        assert len(spec.stops) == 2

    def test_single_stop_is_not_a_gradient(self):
        assert parse_gradient("linear-gradient(red)") is None


class TestNormalizeStyle:
    """Tests for the full style record."""

    def test_record(self):
        style = normalize_style(
            {
                "font-size": "32px",
                "font-weight": "700",
                "font-style": "italic",
                "color": "#fff",
                "background-color": "rgba(0, 0, 0, 0.5)",
                "text-align": "center",
                "text-decoration-line": "underline line-through",
                "opacity": "0.8",
            }
        )
        assert style.font_size == pytest.approx(24.0)
        assert style.bold and style.italic
        assert style.underline and style.strike
        assert style.color == "FFFFFF"
        assert style.background_color == "000000"
        assert style.background_alpha == pytest.approx(0.5)
        assert style.align == "center"
        assert style.opacity == pytest.approx(0.8)

    def test_gradient_background(self):
        style = normalize_style({"background-image": "linear-gradient(red, blue)"})
        assert style.gradient.startswith("linear-gradient")
        assert style.background_image is None
        assert style.has_fill

    def test_url_background(self):
        style = normalize_style({"background-image": "url('bg.png')"})
        assert style.gradient is None
        assert style.background_image == "bg.png"

    def test_animation_none_dropped(self):
        assert normalize_style({"animation": "none 0s ease 0s 1 normal none running"}).animation is None

    def test_split_top_level(self):
        assert split_top_level("rgb(1, 2, 3) 0%, blue") == ["rgb(1, 2, 3) 0%", "blue"]
        assert split_top_level("1px  solid rgb(1, 2, 3)", " ") == ["1px", "solid", "rgb(1, 2, 3)"]

    def test_opacity_percent(self):
        assert parse_opacity("50%") == pytest.approx(0.5)
