"""
icons.py - Icon detection and glyph fallbacks.

Icon fonts render a ligature or a private-use codepoint that means nothing
once the font is gone, so icon elements must never be emitted as text.
This module decides which nodes are icons, names their glyph, finds the
rendered node again for capture, and holds a small table of vector paths
for well-known glyph names.
"""

import re
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from .model import Element, IconInfo
from .rendering import RenderedNode
from .styles import parse_color

# ── Classification ────────────────────────────────────────────────────────────
FAMILY_CLASSES = frozenset(
    {
        "material-icons",
        "material-icons-outlined",
        "material-icons-round",
        "material-icons-sharp",
        "material-icons-two-tone",
        "material-symbols-outlined",
        "material-symbols-rounded",
        "material-symbols-sharp",
        "fa",
        "fas",
        "far",
        "fab",
        "fal",
        "fad",
        "fa-solid",
        "fa-regular",
        "fa-brands",
        "fa-light",
        "fa-duotone",
        "bi",
        "mdi",
        "iconfont",
        "glyphicon",
        "ti",
        "ri",
        "lni",
        "feather",
    }
)

ICON_PREFIXES = (
    "fa-",
    "bi-",
    "mdi-",
    "icon-",
    "ti-",
    "ri-",
    "glyphicon-",
    "ion-",
    "la-",
    "lni-",
)

# Modifier classes of icon libraries; they never name a glyph.
MODIFIER_CLASSES = frozenset(
    {
        "fa-solid",
        "fa-regular",
        "fa-brands",
        "fa-light",
        "fa-duotone",
        "fa-fw",
        "fa-lg",
        "fa-xs",
        "fa-sm",
        "fa-spin",
        "fa-pulse",
        "fa-border",
        "fa-inverse",
        "fa-2x",
        "fa-3x",
        "fa-4x",
        "fa-5x",
    }
)

INLINE_TAGS = frozenset({"i", "span", "em", "small", "b", "strong", "a", "label"})

_PREFIX_TOKEN_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+){1,4}$")
_GLYPH_TEXT_RE = re.compile(r"^[a-z][a-z0-9_]{1,39}$")

# Wrapper names page authors use for anything icon-like. They only mark an
# icon alongside a family class, an icon font, or a lone inline svg.
GENERIC_CLASSES = frozenset({"icon", "icons"})
GENERIC_PREFIXES = ("icon-",)


def _prefixed_token(classes, generic: bool = True) -> Optional[str]:
    for cls in classes:
        lower = cls.lower()
        if lower in MODIFIER_CLASSES:
            continue
        if not generic and lower.startswith(GENERIC_PREFIXES):
            continue
        if lower.startswith(ICON_PREFIXES) and _PREFIX_TOKEN_RE.match(lower):
            return lower
    return None


def _uses_icon_font(node: RenderedNode) -> bool:
    family = node.style.get("font-family", "").lower()
    return "icon" in family or "symbol" in family


def _is_private_use(char: str) -> bool:
    code = ord(char)
    return 0xE000 <= code <= 0xF8FF or code >= 0xF0000


def is_glyph_text(text: str) -> bool:
    """Empty, a ligature name, or private-use codepoints only."""
    text = text.strip()
    if not text:
        return True
    return bool(_GLYPH_TEXT_RE.match(text)) or all(_is_private_use(c) for c in text)


def is_icon(node: RenderedNode) -> bool:
    classes = {c.lower() for c in node.classes}
    # wrappers holding real content are containers, not icons
    if [c for c in node.children if c.tag != "svg"]:
        return False
    text = node.text.strip()
    if node.children:
        marked = classes & (FAMILY_CLASSES | GENERIC_CLASSES) or _prefixed_token(classes)
        return not text and bool(marked)
    if not is_glyph_text(text):
        return False
    if classes & FAMILY_CLASSES:
        return True
    if node.tag not in INLINE_TAGS:
        return False
    if _uses_icon_font(node):
        return bool(text or _prefixed_token(classes))
    if _prefixed_token(classes, generic=False):
        return True
    # a bare <i> holds a ligature only when it names a glyph
    return node.tag == "i" and bool(text) and ("_" in text or glyph_path(text) is not None)


def icon_name(node: RenderedNode) -> str:
    """Glyph name: the per-icon class token, else the ligature text."""
    token = _prefixed_token(node.classes)
    if token:
        return token
    return node.text.strip()


def classify_icon(node: RenderedNode) -> Optional[IconInfo]:
    """IconInfo for icon nodes, None for everything else."""
    if not is_icon(node):
        return None
    fill = parse_color(node.style.get("color"))
    page_rect = node.rect.copy() if node.rect is not None else None
    svg = next((c for c in node.children if c.tag == "svg"), None)
    if svg is not None:
        return IconInfo(
            name=icon_name(node),
            is_font_glyph=False,
            svg_markup=svg.markup,
            fill=fill,
            page_rect=page_rect,
        )
    return IconInfo(name=icon_name(node), is_font_glyph=True, fill=fill, page_rect=page_rect)


# ── Node re-identification ────────────────────────────────────────────────────
POSITION_TOLERANCE_PX = 5.0


def match_by_node_id(element: Element, nodes: list[RenderedNode]) -> Optional[RenderedNode]:
    if not element.node_id:
        return None
    return next((n for n in nodes if n.node_id == element.node_id), None)


def match_by_text(element: Element, nodes: list[RenderedNode]) -> Optional[RenderedNode]:
    """Same tag, same classes and same glyph name."""
    if element.icon is None:
        return None
    classes = set(element.classes)
    for node in nodes:
        if node.tag != element.tag or set(node.classes) != classes:
            continue
        if icon_name(node) == element.icon.name:
            return node
    return None


def match_by_position(element: Element, nodes: list[RenderedNode]) -> Optional[RenderedNode]:
    if element.icon is None or element.icon.page_rect is None:
        return None
    target = element.icon.page_rect
    for node in nodes:
        if node.rect is None or node.tag != element.tag:
            continue
        if (
            abs(node.rect.x - target.x) <= POSITION_TOLERANCE_PX
            and abs(node.rect.y - target.y) <= POSITION_TOLERANCE_PX
        ):
            return node
    return None


MATCH_STRATEGIES: tuple[Callable[[Element, list[RenderedNode]], Optional[RenderedNode]], ...] = (
    match_by_node_id,
    match_by_text,
    match_by_position,
)


def locate_node(
    element: Element, nodes: list[RenderedNode], strategies=MATCH_STRATEGIES
) -> Optional[RenderedNode]:
    """First rendered node any strategy accepts, in order."""
    for strategy in strategies:
        node = strategy(element, nodes)
        if node is not None:
            return node
    return None


# ── Glyph vector table ────────────────────────────────────────────────────────
# Material Icons path data on a 24×24 grid.
GLYPH_PATHS = MappingProxyType(
    {
        "home": "M10 20v-6h4v6h5v-8h3L12 3 2 12h3v8z",
        "check": "M9 16.17L4.83 12l-1.42 1.41L9 19 21 7l-1.41-1.41z",
        "close": "M19 6.41L17.59 5 12 10.59 6.41 5 5 6.41 10.59 12 5 17.59 6.41 19 12 13.41 17.59 19 19 17.59 13.41 12z",
        "star": "M12 17.27L18.18 21l-1.64-7.03L22 9.24l-7.19-.61L12 2 9.19 8.63 2 9.24l5.46 4.73L5.82 21z",
        "favorite": "M12 21.35l-1.45-1.32C5.4 15.36 2 12.28 2 8.5 2 5.42 4.42 3 7.5 3c1.74 0 3.41.81 4.5 2.09C13.09 3.81 14.76 3 16.5 3 19.58 3 22 5.42 22 8.5c0 3.78-3.4 6.86-8.55 11.54L12 21.35z",
        "add": "M19 13h-6v6h-2v-6H5v-2h6V5h2v6h6v2z",
        "remove": "M19 13H5v-2h14v2z",
        "menu": "M3 18h18v-2H3v2zm0-5h18v-2H3v2zm0-7v2h18V6H3z",
        "arrow_forward": "M12 4l-1.41 1.41L16.17 11H4v2h12.17l-5.58 5.59L12 20l8-8z",
        "arrow_back": "M20 11H7.83l5.59-5.59L12 4l-8 8 8 8 1.41-1.41L7.83 13H20v-2z",
        "trending_up": "M16 6l2.29 2.29-4.88 4.88-4-4L2 16.59 3.41 18l6-6 4 4 6.3-6.29L22 12V6z",
        "check_circle": "M12 2C6.48 2 2 6.48 2 12s4.48 10 10 10 10-4.48 10-10S17.52 2 12 2zm-2 15l-5-5 1.41-1.41L10 14.17l7.59-7.59L19 8l-9 9z",
        "info": "M12 2C6.48 2 2 6.48 2 12s4.48 10 10 10 10-4.48 10-10S17.52 2 12 2zm1 15h-2v-6h2v6zm0-8h-2V7h2v2z",
        "warning": "M1 21h22L12 2 1 21zm12-3h-2v-2h2v2zm0-4h-2v-4h2v4z",
        "person": "M12 12c2.21 0 4-1.79 4-4s-1.79-4-4-4-4 1.79-4 4 1.79 4 4 4zm0 2c-2.67 0-8 1.34-8 4v2h16v-2c0-2.66-5.33-4-8-4z",
        "email": "M20 4H4c-1.1 0-1.99.9-1.99 2L2 18c0 1.1.9 2 2 2h16c1.1 0 2-.9 2-2V6c0-1.1-.9-2-2-2zm0 4l-8 5-8-5V6l8 5 8-5v2z",
        "phone": "M6.62 10.79c1.44 2.83 3.76 5.14 6.59 6.59l2.2-2.2c.27-.27.67-.36 1.02-.24 1.12.37 2.33.57 3.57.57.55 0 1 .45 1 1V20c0 .55-.45 1-1 1-9.39 0-17-7.61-17-17 0-.55.45-1 1-1h3.5c.55 0 1 .45 1 1 0 1.25.2 2.45.57 3.57.11.35.03.74-.25 1.02l-2.2 2.2z",
        "play_arrow": "M8 5v14l11-7z",
        "search": "M15.5 14h-.79l-.28-.27C15.41 12.59 16 11.11 16 9.5 16 5.91 13.09 3 9.5 3S3 5.91 3 9.5 5.91 16 9.5 16c1.61 0 3.09-.59 4.23-1.57l.27.28v.79l5 4.99L20.49 19l-4.99-5zm-6 0C7.01 14 5 11.99 5 9.5S7.01 5 9.5 5 14 7.01 14 9.5 11.99 14 9.5 14z",
    }
)

GLYPH_ALIASES = MappingProxyType(
    {
        "mail": "email",
        "envelope": "email",
        "done": "check",
        "heart": "favorite",
        "times": "close",
        "xmark": "close",
        "x": "close",
        "bars": "menu",
        "list": "menu",
        "plus": "add",
        "minus": "remove",
        "user": "person",
        "house": "home",
        "play": "play_arrow",
        "arrow_right": "arrow_forward",
        "arrow_left": "arrow_back",
        "chart_line": "trending_up",
        "circle_check": "check_circle",
        "check_circle_fill": "check_circle",
        "circle_info": "info",
        "info_circle": "info",
        "exclamation_triangle": "warning",
        "triangle_exclamation": "warning",
        "magnifying_glass": "search",
    }
)


def normalize_glyph_name(name: str) -> str:
    name = name.strip().lower()
    for prefix in ICON_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
            break
    return name.replace("-", "_")


def glyph_path(
    name: str,
    paths: Mapping[str, str] = GLYPH_PATHS,
    aliases: Mapping[str, str] = GLYPH_ALIASES,
) -> Optional[str]:
    key = normalize_glyph_name(name)
    key = aliases.get(key, key)
    return paths.get(key)


def glyph_svg(name: str, color: Optional[str] = None) -> Optional[str]:
    """Standalone SVG document for a known glyph name, None when unknown."""
    path = glyph_path(name)
    if path is None:
        return None
    fill = f"#{color}" if color else "#000000"
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" '
        f'width="24" height="24"><path fill="{fill}" d="{path}"/></svg>'
    )
