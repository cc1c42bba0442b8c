"""
animation.py - CSS animation / transition shorthands to slide effects.

Produces ``AnimationSpec`` descriptors only; the timing XML lives in
``timing.py``.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from .model import AnimationSpec, StyleRecord
from .styles import split_top_level

DEFAULT_DURATION_MS = 1000.0

# ── Effect table ──────────────────────────────────────────────────────────────
# CSS keyframe name → (archetype, category, direction or subtype)
ANIMATION_MAP = MappingProxyType(
    {
        # Entrance
        "fadeIn": ("Fade", "entrance", None),
        "fadeInUp": ("Float", "entrance", "up"),
        "fadeInDown": ("Float", "entrance", "down"),
        "fadeInLeft": ("Float", "entrance", "left"),
        "fadeInRight": ("Float", "entrance", "right"),
        "slideInUp": ("Fly", "entrance", "up"),
        "slideInDown": ("Fly", "entrance", "down"),
        "slideInLeft": ("Fly", "entrance", "left"),
        "slideInRight": ("Fly", "entrance", "right"),
        "zoomIn": ("Zoom", "entrance", "In"),
        "bounceIn": ("Bounce", "entrance", None),
        "rotateIn": ("Spin", "entrance", None),
        "flipInX": ("Flip", "entrance", "vertical"),
        "flipInY": ("Flip", "entrance", "horizontal"),
        "lightSpeedIn": ("Fly", "entrance", "right"),
        "backInUp": ("Fly", "entrance", "up"),
        "backInDown": ("Fly", "entrance", "down"),
        # Emphasis
        "pulse": ("Pulse", "emphasis", None),
        "heartBeat": ("Pulse", "emphasis", None),
        "bounce": ("Bounce", "emphasis", None),
        "shake": ("Shake", "emphasis", None),
        "headShake": ("Shake", "emphasis", None),
        "swing": ("Swing", "emphasis", None),
        "tada": ("Teeter", "emphasis", None),
        "wobble": ("Wobble", "emphasis", None),
        "jello": ("Wobble", "emphasis", None),
        "flash": ("Flash", "emphasis", None),
        "rubberBand": ("Pulse", "emphasis", None),
        "spin": ("Spin", "emphasis", None),
        # Exit
        "fadeOut": ("Fade", "exit", None),
        "fadeOutUp": ("Float", "exit", "up"),
        "fadeOutDown": ("Float", "exit", "down"),
        "slideOutUp": ("Fly", "exit", "up"),
        "slideOutDown": ("Fly", "exit", "down"),
        "slideOutLeft": ("Fly", "exit", "left"),
        "slideOutRight": ("Fly", "exit", "right"),
        "zoomOut": ("Zoom", "exit", "Out"),
        "bounceOut": ("Bounce", "exit", None),
        "rotateOut": ("Spin", "exit", None),
        # Generic words seen in hand-written keyframes
        "fade": ("Fade", "entrance", None),
        "slide": ("Fly", "entrance", "up"),
        "float": ("Float", "entrance", "up"),
        "zoom": ("Zoom", "entrance", "In"),
        "scale": ("Zoom", "entrance", "In"),
        "rotate": ("Spin", "entrance", None),
        "appear": ("Appear", "entrance", None),
        "reveal": ("Wipe", "entrance", "up"),
        "wipe": ("Wipe", "entrance", "left"),
    }
)

EASING_MAP = MappingProxyType(
    {
        "linear": "linear",
        "ease": "easeInOut",
        "ease-in": "easeIn",
        "ease-out": "easeOut",
        "ease-in-out": "easeInOut",
        "step-start": "linear",
        "step-end": "linear",
    }
)

DIRECTION_KEYWORDS = frozenset({"normal", "reverse", "alternate", "alternate-reverse"})
FILL_MODE_KEYWORDS = frozenset({"none", "forwards", "backwards", "both"})
PLAY_STATE_KEYWORDS = frozenset({"running", "paused"})

# data-transition name → PresentationML transition element
SLIDE_TRANSITIONS = MappingProxyType(
    {
        "fade": "fade",
        "slide": "push",
        "push": "push",
        "cover": "cover",
        "wipe": "wipe",
        "split": "split",
        "reveal": "cover",
        "random": "random",
        "zoom": "zoom",
        "cube": "push",
        "box": "zoom",
        "blinds": "blinds",
        "checkerboard": "checker",
        "circle": "circle",
        "dissolve": "dissolve",
        "none": "fade",
    }
)
DEFAULT_SLIDE_TRANSITION = "fade"

_TIME_RE = re.compile(r"^(-?\d*\.?\d+)(ms|s)$", re.IGNORECASE)
_FUNCTION_RE = re.compile(r"^([a-z-]+)\((.*)\)$", re.IGNORECASE | re.DOTALL)
_NUMBER_RE = re.compile(r"^\d*\.?\d+$")
_NORMALIZE_RE = re.compile(r"[-_\s]")


@dataclass
class CssAnimation:
    name: str
    duration_ms: float = 0.0
    delay_ms: float = 0.0
    easing: str = "easeInOut"
    iterations: int = 1
    direction: str = "normal"


@dataclass
class CssTransition:
    property: str = "all"
    duration_ms: float = 0.0
    delay_ms: float = 0.0
    easing: str = "easeInOut"


def parse_time(token: str) -> Optional[float]:
    """CSS time token in milliseconds, None when *token* is not a time."""
    m = _TIME_RE.match(token.strip())
    if not m:
        return None
    value = float(m.group(1))
    return value * 1000.0 if m.group(2).lower() == "s" else value


def parse_easing(token: str, easing_map: Mapping[str, str] = EASING_MAP) -> Optional[str]:
    token = token.strip().lower()
    if token in easing_map:
        return easing_map[token]
    m = _FUNCTION_RE.match(token)
    if not m:
        return None
    func = m.group(1)
    if func == "steps":
        return "linear"
    if func == "cubic-bezier":
        try:
            x1, _, x2, _ = (float(p) for p in m.group(2).split(","))
        except ValueError:
            return "easeInOut"
        if x1 > 0 and x2 >= 1:
            return "easeIn"
        if x1 == 0 and x2 < 1:
            return "easeOut"
        return "easeInOut"
    return None


def _parse_single_animation(value: str) -> Optional[CssAnimation]:
    name = None
    times: list[float] = []
    easing = "easeInOut"
    iterations = 1
    direction = "normal"

    for token in split_top_level(value, " "):
        lower = token.lower()
        time = parse_time(lower)
        if time is not None:
            times.append(time)
            continue
        mapped = parse_easing(lower)
        if mapped is not None:
            easing = mapped
            continue
        if lower == "infinite":
            iterations = -1
            continue
        if _NUMBER_RE.match(lower):
            iterations = max(1, int(float(lower)))
            continue
        if lower in DIRECTION_KEYWORDS:
            direction = lower
            continue
        if lower in FILL_MODE_KEYWORDS or lower in PLAY_STATE_KEYWORDS:
            continue
        if name is None:
            name = token.strip("'\"")

    if not name:
        return None
    return CssAnimation(
        name=name,
        duration_ms=times[0] if times else 0.0,
        delay_ms=times[1] if len(times) > 1 else 0.0,
        easing=easing,
        iterations=iterations,
        direction=direction,
    )


def parse_animation(value: Optional[str]) -> list[CssAnimation]:
    """Parse the ``animation`` shorthand (comma-separated list allowed)."""
    if not value or value.strip().lower() in ("none", "initial", "unset"):
        return []
    result = []
    for part in split_top_level(value, ","):
        parsed = _parse_single_animation(part)
        if parsed is not None:
            result.append(parsed)
    return result


def _normalize(name: str) -> str:
    return _NORMALIZE_RE.sub("", name).lower()


_NORMALIZED_KEYS = tuple(
    sorted(((_normalize(k), k) for k in ANIMATION_MAP), key=lambda kv: len(kv[0]), reverse=True)
)


def lookup_effect(
    name: str, animation_map: Mapping[str, tuple] = ANIMATION_MAP
) -> tuple[str, str, Optional[str]]:
    """Archetype for a keyframe name: exact key, then substring, then Fade."""
    if name in animation_map:
        return animation_map[name]
    normalized = _normalize(name)
    if animation_map is ANIMATION_MAP:
        keys = _NORMALIZED_KEYS
    else:
        keys = sorted(((_normalize(k), k) for k in animation_map), key=lambda kv: len(kv[0]), reverse=True)
    for norm_key, key in keys:
        if norm_key == normalized:
            return animation_map[key]
    for norm_key, key in keys:
        if norm_key and norm_key in normalized:
            return animation_map[key]
    return ("Fade", "entrance", None)


# Archetypes whose table value is a variant (In/Out) rather than a side.
SUBTYPE_ARCHETYPES = frozenset({"Zoom"})


def _placement(archetype: str, value: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """(direction, subtype) for a table or inferred value."""
    if archetype in SUBTYPE_ARCHETYPES:
        return None, value
    return value, None


def to_effect(css: CssAnimation) -> AnimationSpec:
    archetype, category, value = lookup_effect(css.name)
    direction, subtype = _placement(archetype, value)
    return AnimationSpec(
        archetype=archetype,
        category=category,
        direction=direction,
        subtype=subtype,
        delay_ms=css.delay_ms,
        duration_ms=css.duration_ms or DEFAULT_DURATION_MS,
        easing=css.easing,
        iterations=css.iterations,
    )


# ── Transitions ───────────────────────────────────────────────────────────────


def parse_transition(value: Optional[str]) -> list[CssTransition]:
    """Parse the ``transition`` shorthand; zero-duration entries are dropped."""
    if not value or value.strip().lower() in ("none", "initial", "unset"):
        return []
    result = []
    for part in split_top_level(value, ","):
        prop = None
        times: list[float] = []
        easing = "easeInOut"
        for token in split_top_level(part, " "):
            lower = token.lower()
            time = parse_time(lower)
            if time is not None:
                times.append(time)
                continue
            mapped = parse_easing(lower)
            if mapped is not None:
                easing = mapped
                continue
            if prop is None:
                prop = lower
        duration = times[0] if times else 0.0
        if duration <= 0 or prop == "none":
            continue
        result.append(
            CssTransition(
                property=prop or "all",
                duration_ms=duration,
                delay_ms=times[1] if len(times) > 1 else 0.0,
                easing=easing,
            )
        )
    return result


def _function_args(transform: str, name: str) -> Optional[list[float]]:
    m = re.search(rf"\b{name}\(([^)]*)\)", transform, re.IGNORECASE)
    if not m:
        return None
    values = []
    for part in re.split(r"[,\s]+", m.group(1).strip()):
        number = re.match(r"-?\d*\.?\d+", part)
        if number:
            values.append(float(number.group(0)))
    return values


def infer_from_transform(value: Optional[str]) -> Optional[tuple[str, Optional[str]]]:
    """Guess (archetype, direction or subtype) from a starting ``transform``."""
    if not value or value.strip().lower() == "none":
        return None

    matrix = _function_args(value, "matrix")
    if matrix is not None and len(matrix) == 6:
        a, b, c, d, tx, ty = matrix
        if ty:
            return ("Fly", "up" if ty < 0 else "down")
        if tx:
            return ("Fly", "left" if tx < 0 else "right")
        if b or c:
            return ("Spin", None)
        if (a, d) != (1.0, 1.0):
            return ("Zoom", "In")
        return None

    for axis in ("translateY", "translate3d", "translate"):
        args = _function_args(value, axis)
        if not args:
            continue
        if axis == "translateY":
            dy = args[0]
            dx = 0.0
        else:
            dx = args[0]
            dy = args[1] if len(args) > 1 else 0.0
        if dy:
            return ("Fly", "up" if dy < 0 else "down")
        if dx:
            return ("Fly", "left" if dx < 0 else "right")
    args = _function_args(value, "translateX")
    if args and args[0]:
        return ("Fly", "left" if args[0] < 0 else "right")
    if re.search(r"\bscale[XYZ3d]*\(", value, re.IGNORECASE):
        return ("Zoom", "In")
    if re.search(r"\brotate[XYZ3d]*\(", value, re.IGNORECASE):
        return ("Spin", None)
    return None


def map_styles(style: StyleRecord) -> list[AnimationSpec]:
    """All effects an element's computed style asks for, animations first."""
    effects = [to_effect(css) for css in parse_animation(style.animation)]
    for transition in parse_transition(style.transition):
        prop = transition.property
        archetype = value = None
        if prop == "opacity":
            archetype = "Fade"
        elif prop == "transform" or (prop == "all" and style.transform):
            inferred = infer_from_transform(style.transform)
            if inferred is not None:
                archetype, value = inferred
        if archetype is None:
            continue
        direction, subtype = _placement(archetype, value)
        effects.append(
            AnimationSpec(
                archetype=archetype,
                category="entrance",
                direction=direction,
                subtype=subtype,
                delay_ms=transition.delay_ms,
                duration_ms=transition.duration_ms,
                easing=transition.easing,
            )
        )
    return effects


def slide_transition(
    name: Optional[str], transitions: Mapping[str, str] = SLIDE_TRANSITIONS
) -> Optional[str]:
    """PresentationML transition for a ``data-transition`` name."""
    if not name:
        return None
    return transitions.get(name.strip().lower(), DEFAULT_SLIDE_TRANSITION)
