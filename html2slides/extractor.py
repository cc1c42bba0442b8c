"""
extractor.py - Rendered node trees to the normalized slide model.

Slides are found by a priority list of selectors. Each slide root is walked
depth-first in document order and every node becomes an ``Element``
carrying its box (source px, relative to the slide), a normalized style and
any animation effects. Nothing here raises for odd content: unknown nodes
become generic elements and nodes without a rendered box get one from
explicit CSS sizes, the flow position or a text-size estimate.
"""

import re
from dataclasses import dataclass, replace
from typing import Optional

from .animation import map_styles, slide_transition
from .config import ConversionOptions
from .geometry import estimate_text_box
from .icons import classify_icon, is_icon
from .model import (
    Background,
    Element,
    ElementKind,
    ListData,
    ListItem,
    Rect,
    Slide,
    SlideDocument,
    TableCell,
    TableData,
    TextRun,
)
from .rendering import Renderer, RenderedNode
from .styles import (
    extract_url,
    is_bold,
    is_italic,
    normalize_style,
    parse_color,
    parse_gradient,
    parse_px,
    parse_text_decoration,
)

# Tried in order; the first selector matching anything decides the slides.
SLIDE_SELECTORS = (
    ".slide",
    "[data-slide]",
    "section",
    ".page",
    ".swiper-slide",
    ".carousel-item",
)

HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

BLOCK_TAGS = frozenset(
    {
        "div",
        "section",
        "article",
        "header",
        "footer",
        "main",
        "aside",
        "nav",
        "figure",
        "figcaption",
        "blockquote",
        "pre",
        "form",
        "fieldset",
        "hr",
        "li",
        "dl",
        "dt",
        "dd",
        "address",
        "details",
        "summary",
        "body",
    }
)

INLINE_TEXT_TAGS = frozenset(
    {
        "span",
        "a",
        "strong",
        "b",
        "em",
        "i",
        "u",
        "s",
        "del",
        "ins",
        "code",
        "label",
        "small",
        "mark",
        "sub",
        "sup",
        "button",
        "abbr",
        "cite",
        "kbd",
        "q",
        "time",
        "font",
        "strike",
    }
)

# Children that keep a text block collapsible into rich runs.
INLINE_FORMAT_TAGS = INLINE_TEXT_TAGS - {"button"}

DEFAULT_FONT_PX = 16.0
HR_HEIGHT_PX = 2.0
HR_COLOR = "CCCCCC"

_LENGTH_RE = re.compile(r"^(-?\d*\.?\d+)(px|pt|em|rem|%|vw|vh)?$", re.IGNORECASE)


@dataclass
class _WalkContext:
    """Per-parent state of the tree walk."""

    root_rect: Optional[Rect]  # slide root in page coordinates (rendered only)
    origin_x: float
    origin_y: float
    width: float
    height: float
    cursor_y: float
    canvas: tuple[float, float]

    def child(self, box: Rect) -> "_WalkContext":
        return _WalkContext(
            root_rect=self.root_rect,
            origin_x=box.x,
            origin_y=box.y,
            width=box.w,
            height=box.h,
            cursor_y=box.y,
            canvas=self.canvas,
        )


def _font_px(style: dict) -> float:
    return parse_px(style.get("font-size"), DEFAULT_FONT_PX) or DEFAULT_FONT_PX


def _length(value: Optional[str], reference: float, canvas: tuple[float, float]) -> Optional[float]:
    """Explicit CSS length in px; None for auto, missing or unknown units."""
    if not value:
        return None
    m = _LENGTH_RE.match(value.strip())
    if not m:
        return None
    number = float(m.group(1))
    unit = (m.group(2) or "px").lower()
    if unit == "%":
        return number / 100.0 * reference
    if unit == "vw":
        return number / 100.0 * canvas[0]
    if unit == "vh":
        return number / 100.0 * canvas[1]
    return parse_px(f"{number}{unit}", 0.0)


def _is_positioned(node: RenderedNode) -> bool:
    return node.style.get("position", "").strip().lower() in ("absolute", "fixed")


def _is_text_block(node: RenderedNode) -> bool:
    """True when every element child is inline formatting (and no icon)."""
    children = node.children
    return all(c.tag in INLINE_FORMAT_TAGS and not is_icon(c) and _is_text_block(c) for c in children)


def rich_runs(node: RenderedNode) -> list[TextRun]:
    """Formatting runs of a text block, adjacent identical runs merged."""
    runs: list[TextRun] = []

    def visit(current: RenderedNode, underline: bool, strike: bool):
        style = current.style
        decoration = parse_text_decoration(style.get("text-decoration-line") or style.get("text-decoration"))
        underline = underline or decoration[0]
        strike = strike or decoration[1]
        for item in current.content:
            if isinstance(item, RenderedNode):
                visit(item, underline, strike)
                continue
            if not item:
                continue
            runs.append(
                TextRun(
                    text=item,
                    bold=is_bold(style.get("font-weight")),
                    italic=is_italic(style.get("font-style")),
                    underline=underline,
                    strike=strike,
                    color=parse_color(style.get("color")),
                )
            )

    visit(node, False, False)

    merged: list[TextRun] = []
    for run in runs:
        if merged and _same_format(merged[-1], run):
            merged[-1].text += run.text
            continue
        if merged and merged[-1].text.endswith((" ", "\n")) and run.text.startswith(" "):
            run.text = run.text.lstrip(" ")
        merged.append(run)

    if merged:
        merged[0].text = merged[0].text.lstrip()
        merged[-1].text = merged[-1].text.rstrip()
    for run in merged:
        run.text = re.sub(r" ?\n ?", "\n", re.sub(r" {2,}", " ", run.text))
    return [r for r in merged if r.text]


def _same_format(a: TextRun, b: TextRun) -> bool:
    return (a.bold, a.italic, a.underline, a.strike, a.color) == (
        b.bold,
        b.italic,
        b.underline,
        b.strike,
        b.color,
    )


def _span(value: Optional[str]) -> int:
    try:
        return max(1, int(value or 1))
    except ValueError:
        return 1


def extract_table(node: RenderedNode, options: ConversionOptions) -> TableData:
    rows: list[RenderedNode] = []
    for child in node.children:
        if child.tag in ("thead", "tbody", "tfoot"):
            rows.extend(c for c in child.children if c.tag == "tr")
        elif child.tag == "tr":
            rows.append(child)

    data = TableData()
    for row in rows:
        cells = []
        for cell in row.children:
            if cell.tag not in ("td", "th"):
                continue
            cells.append(
                TableCell(
                    text=cell.text,
                    is_header=cell.tag == "th",
                    colspan=_span(cell.attrs.get("colspan")),
                    rowspan=_span(cell.attrs.get("rowspan")),
                    style=normalize_style(
                        cell.style, options.default_font_face, options.default_font_size
                    ),
                )
            )
        if cells:
            data.rows.append(cells)
    return data


def extract_list(node: RenderedNode, options: ConversionOptions) -> ListData:
    data = ListData(ordered=node.tag == "ol")
    for item in node.children:
        if item.tag != "li":
            continue
        nested = None
        parts = []
        for piece in item.content:
            if isinstance(piece, RenderedNode) and piece.tag in ("ul", "ol"):
                if nested is None:
                    nested = extract_list(piece, options)
                continue
            parts.append(piece if isinstance(piece, str) else piece.text)
        text = " ".join(" ".join(parts).split())
        data.items.append(
            ListItem(
                text=text,
                style=normalize_style(item.style, options.default_font_face, options.default_font_size),
                children=nested,
            )
        )
    return data


def _list_length(data: ListData) -> int:
    return sum(1 + (_list_length(i.children) if i.children else 0) for i in data.items)


def _visible_text(node: RenderedNode) -> str:
    """Text of *node* without the glyph names of icons inside it."""
    parts = []
    for item in node.content:
        if isinstance(item, str):
            parts.append(item)
        elif not is_icon(item):
            parts.append(_visible_text(item))
    return " ".join("".join(parts).split())


def find_title(root: RenderedNode) -> Optional[str]:
    """First heading depth-first, else the first element with a title class."""
    for node in root.walk():
        if node.tag in HEADING_TAGS:
            text = _visible_text(node)
            if text:
                return text
    for node in root.walk():
        if any("title" in c.lower() for c in node.classes):
            text = _visible_text(node)
            if text:
                return text
    return None


def slide_background(root: RenderedNode) -> Background:
    image = root.style.get("background-image") or ""
    color = parse_color(root.style.get("background-color"))
    if "gradient" in image.lower():
        gradient = parse_gradient(image)
        if gradient is not None:
            return Background(kind="gradient", gradient=gradient, color=color)
    url = extract_url(image)
    if url:
        return Background(kind="image", image_url=url, color=color)
    if color:
        return Background(kind="solidColor", color=color)
    return Background()


class StructuralExtractor:
    """Builds a SlideDocument from a renderer that has an open document."""

    def __init__(self, options: Optional[ConversionOptions] = None, selectors=SLIDE_SELECTORS):
        self.options = options or ConversionOptions()
        self.selectors = selectors
        self.matched_selector: Optional[str] = None

    def segment(self, renderer: Renderer) -> list[RenderedNode]:
        """Slide roots, outermost matches of the first selector that matches."""
        self.matched_selector = None
        for selector in self.selectors:
            if renderer.count(selector) > 0:
                roots = renderer.snapshot(selector)
                if roots:
                    self.matched_selector = selector
                    return roots
        return renderer.snapshot(None)

    def extract(self, renderer: Renderer) -> SlideDocument:
        roots = self.segment(renderer)
        canvas = self.source_canvas(roots, renderer.canvas_size())
        slides = tuple(self.build_slide(root, index, canvas) for index, root in enumerate(roots))
        return SlideDocument(slides=slides, source_width=canvas[0], source_height=canvas[1])

    def source_canvas(
        self, roots: list[RenderedNode], fallback: tuple[float, float]
    ) -> tuple[float, float]:
        """Largest slide-root size, else the renderer's canvas."""
        width = height = 0.0
        for root in roots:
            if root.rect is not None and not root.rect.is_empty:
                w, h = root.rect.w, root.rect.h
            else:
                w = _length(root.style.get("width"), fallback[0], fallback) or 0.0
                h = _length(root.style.get("height"), fallback[1], fallback) or 0.0
            width = max(width, w)
            height = max(height, h)
        return (width or fallback[0], height or fallback[1])

    def build_slide(self, root: RenderedNode, index: int, canvas: tuple[float, float]) -> Slide:
        slide = Slide(
            index=index,
            title=find_title(root) or f"Slide {index + 1}",
            background=slide_background(root),
            transition=slide_transition(root.attrs.get("data-transition")),
        )
        root_rect = root.rect if root.rect is not None and not root.rect.is_empty else None
        ctx = _WalkContext(
            root_rect=root_rect,
            origin_x=0.0,
            origin_y=0.0,
            width=canvas[0],
            height=canvas[1],
            cursor_y=0.0,
            canvas=canvas,
        )
        if root.text and _is_text_block(root):
            # text-only slide root
            element = self._element(root, ctx, kind=ElementKind.TEXT)
            if element is not None:
                slide.elements.append(element)
            return slide
        for child in root.children:
            element = self._element(child, ctx)
            if element is not None:
                slide.elements.append(element)
        return slide

    # ── Tree walk ────────────────────────────────────────────────────────────

    def _classify(self, node: RenderedNode) -> ElementKind:
        tag = node.tag
        if tag in HEADING_TAGS:
            return ElementKind.HEADING
        if tag == "p":
            return ElementKind.PARAGRAPH
        if tag == "img":
            return ElementKind.IMAGE
        if tag == "table":
            return ElementKind.TABLE
        if tag in ("ul", "ol"):
            return ElementKind.LIST
        if tag == "svg":
            return ElementKind.VECTOR_GRAPHIC
        if tag in BLOCK_TAGS:
            return ElementKind.CONTAINER
        if tag in INLINE_TEXT_TAGS:
            return ElementKind.TEXT
        return ElementKind.GENERIC

    def _element(
        self, node: RenderedNode, ctx: _WalkContext, kind: Optional[ElementKind] = None
    ) -> Optional[Element]:
        icon = classify_icon(node) if kind is None else None
        if icon is not None:
            kind = ElementKind.ICON
        elif kind is None:
            kind = self._classify(node)

        element = Element(
            kind=kind,
            tag=node.tag,
            node_id=node.node_id,
            classes=node.classes,
            icon=icon,
            href=node.attrs.get("href"),
        )
        if kind == ElementKind.HEADING:
            element.heading_level = int(node.tag[1])

        collapsible = kind not in (
            ElementKind.ICON,
            ElementKind.TABLE,
            ElementKind.LIST,
            ElementKind.VECTOR_GRAPHIC,
            ElementKind.IMAGE,
        ) and _is_text_block(node)

        if kind == ElementKind.ICON:
            # glyph text is meaningless without the icon font
            element.text = ""
            element.svg_markup = icon.svg_markup
        elif kind == ElementKind.IMAGE:
            element.src = node.attrs.get("src")
            element.alt = node.attrs.get("alt")
        elif kind == ElementKind.TABLE:
            element.table_data = extract_table(node, self.options)
        elif kind == ElementKind.LIST:
            element.list_data = extract_list(node, self.options)
        elif kind == ElementKind.VECTOR_GRAPHIC:
            element.svg_markup = node.markup
        elif collapsible:
            element.text = node.text
            if node.children:
                element.runs = rich_runs(node)
        else:
            element.text = node.own_text

        box = self._place(node, element, ctx)
        walk_children = not collapsible and kind not in (
            ElementKind.ICON,
            ElementKind.TABLE,
            ElementKind.LIST,
            ElementKind.VECTOR_GRAPHIC,
            ElementKind.IMAGE,
        )
        if walk_children:
            child_ctx = ctx.child(box)
            for child in node.children:
                built = self._element(child, child_ctx)
                if built is not None:
                    element.children.append(built)
            if box.h <= 0 and element.children:
                bottom = max(c.geometry.bottom for c in element.children)
                box.h = max(0.0, bottom - box.y)

        if not _is_positioned(node) and node.rect is None:
            ctx.cursor_y = max(ctx.cursor_y, box.y + box.h)

        element.style = normalize_style(
            node.style,
            self.options.default_font_face,
            self.options.default_font_size,
            radius_reference=min(box.w, box.h) if not box.is_empty else None,
        )
        if node.tag == "hr":
            kind = element.kind = ElementKind.SHAPE
            if not element.style.has_fill:
                element.style.background_color = (
                    element.style.border.color if element.style.border and element.style.border.color else HR_COLOR
                )
            element.style.border = None
            box.h = max(box.h, HR_HEIGHT_PX)
        elif (
            kind == ElementKind.CONTAINER
            and not element.text
            and not element.children
            and element.style.is_visible_box
        ):
            element.kind = ElementKind.SHAPE

        element.geometry = box
        element.source_geometry = box.copy()

        if self.options.preserve_animations:
            element.animations = map_styles(element.style)

        if self._is_empty(element):
            return None
        return element

    def _is_empty(self, element: Element) -> bool:
        if element.kind in (ElementKind.CONTAINER, ElementKind.GENERIC, ElementKind.TEXT):
            return (
                not element.text
                and not element.children
                and not element.style.is_visible_box
                and not element.style.background_image
            )
        if element.kind == ElementKind.IMAGE:
            return not element.src
        return False

    # ── Geometry ─────────────────────────────────────────────────────────────

    def _place(self, node: RenderedNode, element: Element, ctx: _WalkContext) -> Rect:
        """Box relative to the slide root, in source px."""
        if node.rect is not None and not node.rect.is_empty:
            origin = ctx.root_rect or Rect()
            return Rect(
                x=node.rect.x - origin.x,
                y=node.rect.y - origin.y,
                w=node.rect.w,
                h=node.rect.h,
            )

        style = node.style
        left = _length(style.get("left"), ctx.width, ctx.canvas)
        top = _length(style.get("top"), ctx.height, ctx.canvas)
        width = _length(style.get("width"), ctx.width, ctx.canvas)
        height = _length(style.get("height"), ctx.height, ctx.canvas)

        x = ctx.origin_x + (left or 0.0)
        if top is not None:
            y = ctx.origin_y + top
        elif _is_positioned(node):
            y = ctx.origin_y
        else:
            y = ctx.cursor_y

        font_px = _font_px(style)
        text = self._measured_text(element)
        inline = element.kind in (ElementKind.TEXT, ElementKind.ICON) or node.tag == "img"

        if width is None:
            if inline and text:
                width = estimate_text_box(text, font_px, self.options.text_metrics)[0]
            elif element.kind == ElementKind.ICON:
                width = font_px
            elif not inline:
                width = max(0.0, ctx.width - (left or 0.0))
            else:
                width = 0.0
        if height is None:
            if text:
                metrics = replace(
                    self.options.text_metrics,
                    max_width_px=max(1.0, min(self.options.text_metrics.max_width_px, width or ctx.width)),
                )
                height = estimate_text_box(text, font_px, metrics)[1]
            elif element.kind == ElementKind.ICON:
                height = font_px
            elif element.kind == ElementKind.TABLE and element.table_data is not None:
                height = len(element.table_data.rows) * font_px * 2.0
            elif element.kind == ElementKind.LIST and element.list_data is not None:
                height = _list_length(element.list_data) * font_px * self.options.text_metrics.line_height
            else:
                height = 0.0
        return Rect(x=x, y=y, w=width, h=height)

    @staticmethod
    def _measured_text(element: Element) -> str:
        if element.runs:
            return "".join(r.text for r in element.runs)
        return element.text
