"""
styles.py - CSS value parsing for html2slides.

Every parser is total: malformed or missing input resolves to a safe
default (usually None) instead of raising. Lookup tables are immutable
module-level maps passed in as defaulted parameters so callers can inject
their own.
"""

import colorsys
import math
import re
from types import MappingProxyType
from typing import Mapping, Optional

from .model import Border, GradientSpec, GradientStop, Shadow, StyleRecord

# ── Lookup tables ─────────────────────────────────────────────────────────────
NAMED_COLORS = MappingProxyType(
    {
        "white": "FFFFFF",
        "black": "000000",
        "red": "FF0000",
        "green": "008000",
        "lime": "00FF00",
        "blue": "0000FF",
        "yellow": "FFFF00",
        "cyan": "00FFFF",
        "aqua": "00FFFF",
        "magenta": "FF00FF",
        "fuchsia": "FF00FF",
        "gray": "808080",
        "grey": "808080",
        "silver": "C0C0C0",
        "maroon": "800000",
        "olive": "808000",
        "navy": "000080",
        "purple": "800080",
        "teal": "008080",
        "orange": "FFA500",
        "pink": "FFC0CB",
        "gold": "FFD700",
        "brown": "A52A2A",
        "indigo": "4B0082",
        "violet": "EE82EE",
        "coral": "FF7F50",
        "salmon": "FA8072",
        "crimson": "DC143C",
        "tomato": "FF6347",
        "skyblue": "87CEEB",
        "steelblue": "4682B4",
        "royalblue": "4169E1",
        "darkblue": "00008B",
        "darkgreen": "006400",
        "darkred": "8B0000",
        "darkgray": "A9A9A9",
        "darkgrey": "A9A9A9",
        "lightgray": "D3D3D3",
        "lightgrey": "D3D3D3",
        "whitesmoke": "F5F5F5",
        "gainsboro": "DCDCDC",
        "beige": "F5F5DC",
        "ivory": "FFFFF0",
        "khaki": "F0E68C",
        "lavender": "E6E6FA",
        "turquoise": "40E0D0",
        "tan": "D2B48C",
        "chocolate": "D2691E",
    }
)

# Web fonts → fonts that exist on every PowerPoint install.
FONT_MAP = MappingProxyType(
    {
        # Sans-serif
        "arial": "Arial",
        "helvetica": "Arial",
        "helvetica neue": "Arial",
        "-apple-system": "Arial",
        "blinkmacsystemfont": "Arial",
        "system-ui": "Arial",
        "segoe ui": "Arial",
        "roboto": "Arial",
        "inter": "Arial",
        "open sans": "Arial",
        "lato": "Arial",
        "montserrat": "Arial",
        "sans-serif": "Arial",
        # Serif
        "times new roman": "Times New Roman",
        "times": "Times New Roman",
        "georgia": "Georgia",
        "merriweather": "Georgia",
        "playfair display": "Georgia",
        "serif": "Times New Roman",
        # Monospace
        "verdana": "Verdana",
        "courier new": "Courier New",
        "courier": "Courier New",
        "monospace": "Courier New",
        "consolas": "Courier New",
        "monaco": "Courier New",
        "menlo": "Courier New",
        "fira code": "Courier New",
        "jetbrains mono": "Courier New",
        # CJK
        "microsoft yahei": "Microsoft YaHei",
        "微软雅黑": "Microsoft YaHei",
        "simhei": "SimHei",
        "黑体": "SimHei",
        "simsun": "SimSun",
        "宋体": "SimSun",
        "pingfang sc": "PingFang SC",
        "hiragino sans gb": "Hiragino Sans GB",
        "stheiti": "SimHei",
        "noto sans sc": "Microsoft YaHei",
        "source han sans sc": "Microsoft YaHei",
    }
)

ALIGN_MAP = MappingProxyType(
    {
        "left": "left",
        "center": "center",
        "right": "right",
        "justify": "justify",
        "start": "left",
        "end": "right",
        "-webkit-center": "center",
    }
)

# Direction phrases of linear-gradient(), in CSS degrees.
GRADIENT_DIRECTIONS = MappingProxyType(
    {
        "to top": 0.0,
        "to right": 90.0,
        "to bottom": 180.0,
        "to left": 270.0,
        "to top right": 45.0,
        "to right top": 45.0,
        "to bottom right": 135.0,
        "to right bottom": 135.0,
        "to bottom left": 225.0,
        "to left bottom": 225.0,
        "to top left": 315.0,
        "to left top": 315.0,
    }
)

# Words that may appear in a gradient body but are never colors.
GRADIENT_KEYWORDS = frozenset(
    {
        "to",
        "top",
        "bottom",
        "left",
        "right",
        "center",
        "at",
        "circle",
        "ellipse",
        "closest-side",
        "closest-corner",
        "farthest-side",
        "farthest-corner",
        "deg",
        "turn",
        "rad",
        "grad",
        "in",
        "srgb",
        "oklab",
        "oklch",
    }
)

DEFAULT_FONT_SIZE_PT = 18.0
MIN_FONT_SIZE_PT = 8.0
MAX_FONT_SIZE_PT = 96.0
BASE_FONT_PX = 16.0
PX_TO_PT = 0.75
SHADOW_OPACITY = 0.35

_NUMBER_RE = re.compile(r"(-?\d*\.?\d+)\s*([a-z%]*)", re.IGNORECASE)
_HEX_RE = re.compile(r"^#([0-9a-f]{3,8})$", re.IGNORECASE)
_RGB_RE = re.compile(r"^rgba?\((.*)\)$", re.IGNORECASE | re.DOTALL)
_HSL_RE = re.compile(r"^hsla?\((.*)\)$", re.IGNORECASE | re.DOTALL)
_GRADIENT_RE = re.compile(
    r"(repeating-)?(linear|radial)-gradient\((.*)\)", re.IGNORECASE | re.DOTALL
)
_STOP_RE = re.compile(
    r"(#[0-9a-fA-F]{3,8}|(?:rgba?|hsla?)\([^)]*\)|[a-zA-Z][a-zA-Z-]*)"
    r"(?:\s+(-?\d*\.?\d+)(%|px)?)?"
)
_ANGLE_RE = re.compile(r"^(-?\d*\.?\d+)(deg|turn|rad|grad)$", re.IGNORECASE)
_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.IGNORECASE)


# ── Generic helpers ───────────────────────────────────────────────────────────


def split_top_level(value: str, sep: str = ",") -> list[str]:
    """Split on *sep* outside parentheses. ``sep=" "`` splits on any whitespace."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in value:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        is_sep = ch.isspace() if sep == " " else ch == sep
        if is_sep and depth == 0:
            token = "".join(current).strip()
            if token:
                parts.append(token)
            current = []
            continue
        current.append(ch)
    token = "".join(current).strip()
    if token:
        parts.append(token)
    return parts


def parse_number(value, default: Optional[float] = None) -> Optional[float]:
    """Leading number of a CSS value, ignoring its unit."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    m = _NUMBER_RE.search(str(value))
    if not m:
        return default
    try:
        return float(m.group(1))
    except ValueError:
        return default


def parse_px(value, default: float = 0.0) -> float:
    """Length in px; only px, unitless and pt values are understood."""
    if value is None:
        return default
    m = _NUMBER_RE.match(str(value).strip())
    if not m:
        return default
    number = float(m.group(1))
    unit = m.group(2).lower()
    if unit in ("", "px"):
        return number
    if unit == "pt":
        return number / PX_TO_PT
    if unit in ("em", "rem"):
        return number * BASE_FONT_PX
    return default


def extract_url(value: Optional[str]) -> Optional[str]:
    """First ``url(...)`` target of a CSS value."""
    if not value:
        return None
    m = _URL_RE.search(value)
    return m.group(1).strip() if m else None


# ── Color ─────────────────────────────────────────────────────────────────────


def _channel(token: str) -> Optional[float]:
    token = token.strip()
    if not token:
        return None
    try:
        if token.endswith("%"):
            return float(token[:-1]) * 255.0 / 100.0
        return float(token)
    except ValueError:
        return None


def _color_args(body: str) -> list[str]:
    # rgb(1, 2, 3 / 0.5) and rgb(1 2 3) are both valid
    body = body.replace("/", " ")
    if "," in body:
        return [p.strip() for p in body.split(",")]
    return body.split()


def _alpha_value(token: str) -> float:
    token = token.strip()
    try:
        if token.endswith("%"):
            return float(token[:-1]) / 100.0
        return float(token)
    except ValueError:
        return 1.0


def _to_hex(r: float, g: float, b: float) -> str:
    clamp = lambda v: max(0, min(255, int(round(v))))  # noqa: E731
    return f"{clamp(r):02X}{clamp(g):02X}{clamp(b):02X}"


def parse_alpha(value: Optional[str]) -> float:
    """Alpha component of a color value (1.0 when absent or unparsable)."""
    if not value:
        return 1.0
    value = value.strip().lower()
    if value == "transparent":
        return 0.0
    m = _HEX_RE.match(value)
    if m:
        digits = m.group(1)
        if len(digits) == 4:
            return int(digits[3] * 2, 16) / 255.0
        if len(digits) == 8:
            return int(digits[6:8], 16) / 255.0
        return 1.0
    for pattern in (_RGB_RE, _HSL_RE):
        m = pattern.match(value)
        if m:
            args = _color_args(m.group(1))
            if len(args) >= 4:
                return max(0.0, min(1.0, _alpha_value(args[3])))
            return 1.0
    return 1.0


def parse_color(
    value: Optional[str], names: Mapping[str, str] = NAMED_COLORS
) -> Optional[str]:
    """Canonicalize a CSS color to uppercase 6-digit hex (no ``#``).

    Returns None for empty, unknown, ``transparent`` and fully transparent
    values.
    """
    if not value or not isinstance(value, str):
        return None
    value = value.strip().lower()
    if not value or value in ("transparent", "none", "inherit", "initial", "currentcolor"):
        return None

    m = _HEX_RE.match(value)
    if m:
        digits = m.group(1)
        if len(digits) in (3, 4):
            return "".join(c * 2 for c in digits[:3]).upper()
        if len(digits) in (6, 8):
            return digits[:6].upper()
        return None

    m = _RGB_RE.match(value)
    if m:
        args = _color_args(m.group(1))
        if len(args) < 3:
            return None
        channels = [_channel(a) for a in args[:3]]
        if any(c is None for c in channels):
            return None
        if len(args) >= 4 and _alpha_value(args[3]) <= 0:
            return None
        return _to_hex(*channels)

    m = _HSL_RE.match(value)
    if m:
        args = _color_args(m.group(1))
        if len(args) < 3:
            return None
        try:
            hue = float(args[0].replace("deg", "")) % 360 / 360.0
            sat = float(args[1].rstrip("%")) / 100.0
            light = float(args[2].rstrip("%")) / 100.0
        except ValueError:
            return None
        if len(args) >= 4 and _alpha_value(args[3]) <= 0:
            return None
        r, g, b = colorsys.hls_to_rgb(hue, light, sat)
        return _to_hex(r * 255, g * 255, b * 255)

    return names.get(value)


# ── Fonts & text ──────────────────────────────────────────────────────────────


def parse_font_size(value, default: float = DEFAULT_FONT_SIZE_PT) -> float:
    """Convert a CSS font size to points, clamped to a readable range."""
    if value is None or value == "":
        return default
    m = _NUMBER_RE.search(str(value))
    if not m:
        return default
    number = float(m.group(1))
    unit = m.group(2).lower()
    if unit == "px":
        points = number * PX_TO_PT
    elif unit == "pt":
        points = number
    elif unit in ("em", "rem"):
        points = number * BASE_FONT_PX * PX_TO_PT
    elif unit == "%":
        points = number / 100.0 * BASE_FONT_PX * PX_TO_PT
    else:
        points = number or default
    return max(MIN_FONT_SIZE_PT, min(points, MAX_FONT_SIZE_PT))


def parse_font_family(
    value: Optional[str],
    font_map: Mapping[str, str] = FONT_MAP,
    default: str = "Arial",
) -> str:
    """First family of a font stack, mapped to a cross-platform font."""
    if not value:
        return default
    first = value.split(",")[0].strip().strip("'\"").strip()
    if not first:
        return default
    return font_map.get(first.lower(), first)


def is_bold(weight) -> bool:
    if weight is None:
        return False
    weight = str(weight).strip().lower()
    if weight in ("bold", "bolder"):
        return True
    number = parse_number(weight)
    return number is not None and number >= 700


def is_italic(style: Optional[str]) -> bool:
    return bool(style) and style.strip().lower().split(" ")[0] in ("italic", "oblique")


def parse_text_decoration(value: Optional[str]) -> tuple[bool, bool]:
    """Return (underline, strikethrough)."""
    if not value:
        return False, False
    value = value.lower()
    return "underline" in value, "line-through" in value


def parse_text_align(value: Optional[str], align_map: Mapping[str, str] = ALIGN_MAP) -> str:
    if not value:
        return "left"
    return align_map.get(value.strip().lower(), "left")


def parse_opacity(value, default: float = 1.0) -> float:
    if value is None or value == "":
        return default
    text = str(value).strip()
    number = parse_number(text)
    if number is None:
        return default
    if text.endswith("%"):
        number /= 100.0
    return max(0.0, min(1.0, number))


# ── Borders & radius ──────────────────────────────────────────────────────────


def parse_border(
    style: Optional[str], width, color: Optional[str]
) -> Optional[Border]:
    """Border descriptor, or None unless the width is a number above zero.

    Browsers report ``border-style: solid`` with a zero width on plenty of
    elements, so the width decides.
    """
    style = (style or "solid").strip().lower().split(" ")[0]
    if style in ("none", "hidden"):
        return None
    width_px = parse_px(str(width).split()[0] if width else None, 0.0)
    if width_px <= 0:
        return None
    # per-side colors: the first one wins
    colors = split_top_level(color, " ") if color else []
    first = colors[0].strip().lower() if colors else "currentcolor"
    parsed = None if first == "currentcolor" else parse_color(first)
    if parsed is None and first != "currentcolor":
        # transparent border
        return None
    # None means currentColor; the emitter uses the text color
    return Border(
        style="dash" if style in ("dashed", "dotted") else "solid",
        color=parsed,
        width_pt=round(width_px * PX_TO_PT, 2),
    )


def parse_border_shorthand(value: Optional[str]) -> Optional[Border]:
    """Parse ``border: 1px solid #ccc`` in any token order."""
    if not value:
        return None
    width = style = color = None
    for token in split_top_level(value, " "):
        lower = token.lower()
        if lower in (
            "none", "hidden", "solid", "dashed", "dotted", "double",
            "groove", "ridge", "inset", "outset",
        ):
            style = lower
        elif _NUMBER_RE.fullmatch(lower) or lower in ("thin", "medium", "thick"):
            width = {"thin": "1px", "medium": "3px", "thick": "5px"}.get(lower, lower)
        else:
            color = token
    if style is None:
        return None
    return parse_border(style, width, color)


def parse_border_radius(value, reference: Optional[float] = None) -> float:
    """Raw pixel radius of the first corner.

    Deliberately not converted to any target unit; the geometry engine does
    that once. Percentages need *reference* (the box's shorter side).
    """
    if value is None or value == "":
        return 0.0
    first = str(value).strip().split()[0].split("/")[0]
    m = _NUMBER_RE.match(first)
    if not m:
        return 0.0
    number = float(m.group(1))
    unit = m.group(2).lower()
    if unit == "%":
        if not reference:
            return 0.0
        return max(0.0, number / 100.0 * reference)
    if unit in ("", "px"):
        return max(0.0, number)
    return max(0.0, parse_px(first, 0.0))


# ── Shadow ────────────────────────────────────────────────────────────────────


def parse_shadow(value: Optional[str]) -> Optional[Shadow]:
    """Parse the first ``box-shadow`` layer: ``h v blur? spread? color?``."""
    if not value or value.strip().lower() == "none":
        return None
    layers = split_top_level(value, ",")
    if not layers:
        return None
    tokens = split_top_level(layers[0], " ")
    if any(t.lower() == "inset" for t in tokens):
        return None
    lengths: list[float] = []
    color = None
    for token in tokens:
        m = _NUMBER_RE.fullmatch(token)
        if m and m.group(2).lower() in ("", "px"):
            lengths.append(float(m.group(1)))
        elif color is None:
            color = parse_color(token)
    if len(lengths) < 2:
        return None
    h, v = lengths[0], lengths[1]
    blur = lengths[2] if len(lengths) > 2 else 0.0
    angle = math.degrees(math.atan2(v, h)) % 360.0
    return Shadow(
        offset_px=math.hypot(h, v),
        angle=round(angle, 2),
        blur_px=max(0.0, blur),
        color=color or "000000",
        opacity=SHADOW_OPACITY,
    )


# ── Gradient ──────────────────────────────────────────────────────────────────


def _parse_angle(token: str) -> Optional[float]:
    m = _ANGLE_RE.match(token.strip().lower())
    if not m:
        return None
    number = float(m.group(1))
    unit = m.group(2)
    if unit == "turn":
        number *= 360.0
    elif unit == "rad":
        number = math.degrees(number)
    elif unit == "grad":
        number *= 0.9
    return number % 360.0


def _resolve_direction(head: str) -> Optional[float]:
    phrase = " ".join(head.lower().split())
    for key in sorted(GRADIENT_DIRECTIONS, key=len, reverse=True):
        if phrase.startswith(key):
            return GRADIENT_DIRECTIONS[key]
    return _parse_angle(phrase)


def _distribute_positions(stops: list[tuple[str, Optional[float]]]) -> list[GradientStop]:
    """Fill missing stop positions: ends at 0/100, interior interpolated."""
    positions = [p for _, p in stops]
    if positions[0] is None:
        positions[0] = 0.0
    if positions[-1] is None:
        positions[-1] = 100.0
    i = 0
    while i < len(positions):
        if positions[i] is None:
            start = i - 1
            end = i
            while positions[end] is None:
                end += 1
            span = end - start
            for k in range(start + 1, end):
                positions[k] = positions[start] + (positions[end] - positions[start]) * (k - start) / span
            i = end
        i += 1
    result: list[GradientStop] = []
    previous = 0.0
    for (color, _), position in zip(stops, positions):
        position = max(previous, min(100.0, position))
        result.append(GradientStop(color=color, position=round(position, 2)))
        previous = position
    return result


def parse_gradient(value: Optional[str]) -> Optional[GradientSpec]:
    """Parse a ``linear-gradient()`` / ``radial-gradient()`` value.

    The body is matched greedily to the end of the string: color functions
    such as ``rgb(...)`` carry their own parentheses.
    """
    if not value or "gradient" not in value.lower():
        return None
    m = _GRADIENT_RE.search(value)
    if not m:
        return None
    kind = m.group(2).lower()
    body = m.group(3)
    parts = split_top_level(body, ",")
    if not parts:
        return None

    angle = 180.0
    if kind == "linear":
        direction = _resolve_direction(parts[0])
        if direction is not None:
            angle = direction
            parts = parts[1:]
    elif parts and parse_color(split_top_level(parts[0], " ")[0]) is None:
        # radial shape / position clause
        parts = parts[1:]

    raw_stops: list[tuple[str, Optional[float]]] = []
    for part in parts:
        for sm in _STOP_RE.finditer(part):
            token = sm.group(1)
            if token.lower() in GRADIENT_KEYWORDS:
                continue
            color = parse_color(token)
            if color is None:
                continue
            position = None
            if sm.group(2) is not None and sm.group(3) == "%":
                position = float(sm.group(2))
            raw_stops.append((color, position))
            break

    if len(raw_stops) < 2:
        return None
    return GradientSpec(kind=kind, angle=angle, stops=_distribute_positions(raw_stops))


# ── Full style record ─────────────────────────────────────────────────────────


def _border_from(raw: Mapping[str, str]) -> Optional[Border]:
    if raw.get("border-width") or raw.get("border-style"):
        border = parse_border(
            raw.get("border-style"), raw.get("border-width"), raw.get("border-color")
        )
        if border is not None:
            return border
    if raw.get("border"):
        return parse_border_shorthand(raw.get("border"))
    return None


def normalize_style(
    raw: Mapping[str, str],
    default_font_face: str = "Arial",
    default_font_size: float = DEFAULT_FONT_SIZE_PT,
    radius_reference: Optional[float] = None,
) -> StyleRecord:
    """Build a target-agnostic StyleRecord from computed CSS values."""
    raw = raw or {}
    underline, strike = parse_text_decoration(
        raw.get("text-decoration-line") or raw.get("text-decoration")
    )

    background_image = raw.get("background-image") or ""
    gradient = background_image if "gradient" in background_image.lower() else None
    image_url = None if gradient else extract_url(background_image)

    background_color = raw.get("background-color")
    animation = raw.get("animation")
    transition = raw.get("transition")
    transform = raw.get("transform")

    return StyleRecord(
        font_face=parse_font_family(raw.get("font-family"), default=default_font_face),
        font_size=parse_font_size(raw.get("font-size"), default=default_font_size),
        bold=is_bold(raw.get("font-weight")),
        italic=is_italic(raw.get("font-style")),
        underline=underline,
        strike=strike,
        align=parse_text_align(raw.get("text-align")),
        color=parse_color(raw.get("color")),
        background_color=parse_color(background_color),
        background_alpha=parse_alpha(background_color),
        border=_border_from(raw),
        shadow=parse_shadow(raw.get("box-shadow")),
        border_radius=parse_border_radius(raw.get("border-radius"), radius_reference),
        opacity=parse_opacity(raw.get("opacity")),
        gradient=gradient,
        background_image=image_url,
        animation=animation if animation and not animation.startswith("none") else None,
        transition=transition or None,
        transform=transform if transform and transform != "none" else None,
        line_height=raw.get("line-height"),
    )
