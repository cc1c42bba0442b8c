"""
Tests for CSS animation / transition mapping and the PresentationML timing.
"""

import pytest
from pptx import Presentation
from pptx.oxml.ns import qn

from html2slides.animation import (
    infer_from_transform,
    lookup_effect,
    map_styles,
    parse_animation,
    parse_easing,
    parse_time,
    parse_transition,
    slide_transition,
)
from html2slides.model import AnimationSpec, StyleRecord
from html2slides.timing import apply_timing, apply_transition, click_groups, timing_xml


class TestAnimationShorthand:
    """Tests for the animation shorthand parser."""

    def test_tokens_classified(self):
        (anim,) = parse_animation("fadeIn 1s ease-in 0.5s")
        assert anim.name == "fadeIn"
        assert anim.duration_ms == 1000.0
        assert anim.delay_ms == 500.0
        assert anim.easing == "easeIn"

    def test_token_order_does_not_matter(self):
        (anim,) = parse_animation("300ms linear slideInLeft both")
        assert anim.name == "slideInLeft"
        assert anim.duration_ms == 300.0
        assert anim.easing == "linear"

    def test_infinite_and_count(self):
        assert parse_animation("bounce 2s infinite")[0].iterations == -1
        assert parse_animation("pulse 1s 3")[0].iterations == 3

    def test_multiple(self):
        assert [a.name for a in parse_animation("fadeIn 1s, pulse 2s 1s")] == ["fadeIn", "pulse"]

    def test_none(self):
        assert parse_animation("none") == []

    def test_times_and_easing(self):
        assert parse_time("1.5s") == 1500.0
        assert parse_time("ease") is None
        assert parse_easing("cubic-bezier(0.42, 0, 1, 1)") == "easeIn"
        assert parse_easing("cubic-bezier(0, 0, 0.58, 1)") == "easeOut"
        assert parse_easing("cubic-bezier(0.42, 0, 0.58, 1)") == "easeInOut"
        assert parse_easing("steps(4)") == "linear"


class TestEffectLookup:
    """Tests for keyframe name → effect archetype."""

    def test_exact(self):
        assert lookup_effect("slideInLeft") == ("Fly", "entrance", "left")

    def test_normalized(self):
        assert lookup_effect("fade-in") == ("Fade", "entrance", None)

    def test_substring_prefers_longest_key(self):
        assert lookup_effect("mySlideInLeftFx") == ("Fly", "entrance", "left")

    def test_exit(self):
        assert lookup_effect("zoomOut")[1] == "exit"

    def test_zoom_variant_is_a_subtype(self):
        (effect,) = map_styles(StyleRecord(animation="zoomOut 1s"))
        assert (effect.archetype, effect.category) == ("Zoom", "exit")
        assert effect.subtype == "Out"
        assert effect.direction is None

    def test_inferred_zoom_subtype(self):
        style = StyleRecord(transition="transform 0.4s", transform="scale(0.8)")
        (effect,) = map_styles(style)
        assert effect.subtype == "In"
        assert effect.direction is None

    def test_unknown_is_fade(self):
        assert lookup_effect("sparkle") == ("Fade", "entrance", None)


class TestTransitions:
    """Tests for the transition shorthand and transform inference."""

    def test_zero_duration_dropped(self):
        transitions = parse_transition("opacity 0.3s ease, transform 0s")
        assert len(transitions) == 1
        assert transitions[0].property == "opacity"
        assert transitions[0].duration_ms == 300.0

    @pytest.mark.parametrize(
        "transform, expected",
        [
            ("matrix(1, 0, 0, 1, 0, 30)", ("Fly", "down")),
            ("matrix(1, 0, 0, 1, -40, 0)", ("Fly", "left")),
            ("matrix(0.5, 0, 0, 0.5, 0, 0)", ("Zoom", "In")),
            ("translateY(-20px)", ("Fly", "up")),
            ("translateX(-50px)", ("Fly", "left")),
            ("scale(0.5)", ("Zoom", "In")),
            ("rotate(45deg)", ("Spin", None)),
        ],
    )
    def test_infer_from_transform(self, transform, expected):
        assert infer_from_transform(transform) == expected

    def test_identity_matrix(self):
        assert infer_from_transform("matrix(1, 0, 0, 1, 0, 0)") is None

    def test_map_styles(self):
        style = StyleRecord(
            animation="fadeInUp 1s",
            transition="transform 0.5s ease-out 0.2s",
            transform="translateY(40px)",
        )
        effects = map_styles(style)
        assert [e.archetype for e in effects] == ["Float", "Fly"]
        assert effects[1].direction == "down"
        assert effects[1].delay_ms == 200.0
        assert effects[1].easing == "easeOut"

    def test_slide_transition_names(self):
        assert slide_transition("cube") == "push"
        assert slide_transition("Dissolve") == "dissolve"
        assert slide_transition("sparkle") == "fade"
        assert slide_transition(None) is None


class TestTimingXml:
    """Tests for PresentationML timing and transitions."""

    def _slide(self):
        prs = Presentation()
        return prs.slides.add_slide(prs.slide_layouts[6])

    def test_timing_xml_groups(self):
        xml = timing_xml(
            [
                (2, AnimationSpec(archetype="Fade"), False),
                (3, AnimationSpec(archetype="Fly", direction="left", category="entrance"), False),
            ]
        )
        assert xml.count('nodeType="clickEffect"') == 2
        assert 'presetClass="entr"' in xml
        assert '<p:spTgt spid="3"/>' in xml

    def test_with_previous_joins_click_group(self):
        effects = [
            (2, AnimationSpec(archetype="Fade"), False),
            (3, AnimationSpec(archetype="Fade"), True),
            (4, AnimationSpec(archetype="Fade"), False),
        ]
        assert [[spid for spid, _ in group] for group in click_groups(effects)] == [[2, 3], [4]]
        xml = timing_xml(effects)
        assert xml.count('nodeType="clickEffect"') == 2
        assert xml.count('nodeType="withEffect"') == 1
        assert xml.count('<p:cond delay="indefinite"/>') == 2

    def test_zoom_out_exit_shrinks(self):
        xml = timing_xml([(2, AnimationSpec(archetype="Zoom", category="exit", subtype="Out"), False)])
        assert '<p:from x="100000" y="100000"/><p:to x="0" y="0"/>' in xml

    def test_zoom_out_entrance_settles_from_large(self):
        xml = timing_xml([(2, AnimationSpec(archetype="Zoom", subtype="Out"), False)])
        assert '<p:from x="200000" y="200000"/><p:to x="100000" y="100000"/>' in xml

    def test_apply_timing(self):
        slide = self._slide()
        apply_timing(slide, [(2, AnimationSpec(archetype="Zoom", subtype="In"), False)])
        timing = slide._element.find(qn("p:timing"))
        assert timing is not None
        assert timing.find(".//" + qn("p:animScale")) is not None

    def test_transition_precedes_timing(self):
        slide = self._slide()
        apply_transition(slide, "fade")
        apply_timing(slide, [(2, AnimationSpec(archetype="Fade"), False)])
        tags = [child.tag for child in slide._element]
        assert tags.index(qn("p:transition")) < tags.index(qn("p:timing"))

    def test_no_effects_no_timing(self):
        slide = self._slide()
        apply_timing(slide, [])
        assert slide._element.find(qn("p:timing")) is None
