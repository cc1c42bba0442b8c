"""
geometry.py - Source pixel boxes to slide inches, and shape selection.

One uniform scale-and-center transform is computed per document; every
element box goes through it and is then clamped onto the slide canvas.
"""

from typing import Optional

from .config import TextMetrics
from .model import Element, Rect, SlideDocument, Transform

# ── Units ─────────────────────────────────────────────────────────────────────
PX_PER_INCH = 96.0

# ── Clamping ──────────────────────────────────────────────────────────────────
CANVAS_MARGIN = 0.1  # inches
MIN_SHAPE_SIZE = 0.05  # inches

# ── Shape decision ────────────────────────────────────────────────────────────
# PowerPoint's roundRect adjustment draws visibly rounder corners than the
# same CSS radius; the correction divides it back down.
ROUNDING_CORRECTION = 1.2
MAX_ROUNDING_RATIO = 0.4
MAX_RADIUS_RATIO = 0.5
ELLIPSE_RATIO = 0.48
SQUARE_TOLERANCE_PX = 2.0

RECTANGLE = "rect"
ROUNDED_RECTANGLE = "roundRect"
ELLIPSE = "ellipse"


def px_to_inches(value: float) -> float:
    return value / PX_PER_INCH


def compute_transform(
    source_w_px: float, source_h_px: float, target_w_in: float, target_h_in: float
) -> Transform:
    """Uniform scale that fits the source canvas on the slide, centered."""
    source_w = px_to_inches(source_w_px) if source_w_px > 0 else target_w_in
    source_h = px_to_inches(source_h_px) if source_h_px > 0 else target_h_in
    scale = min(target_w_in / source_w, target_h_in / source_h)
    return Transform(
        scale=scale,
        offset_x=(target_w_in - source_w * scale) / 2,
        offset_y=(target_h_in - source_h * scale) / 2,
    )


def to_inches(rect: Rect) -> Rect:
    return Rect(
        x=px_to_inches(rect.x),
        y=px_to_inches(rect.y),
        w=px_to_inches(rect.w),
        h=px_to_inches(rect.h),
    )


def clamp_rect(
    rect: Rect,
    canvas_w: float,
    canvas_h: float,
    margin: float = CANVAS_MARGIN,
    min_size: float = MIN_SHAPE_SIZE,
) -> Rect:
    """Keep a box fully on the canvas.

    An origin outside the canvas moves to the margin; a box running past the
    far edge is shrunk, never moved.
    """
    x, y, w, h = rect.x, rect.y, max(rect.w, 0.0), max(rect.h, 0.0)

    if x < 0 or x >= canvas_w:
        x = margin
    if y < 0 or y >= canvas_h:
        y = margin

    if x + w > canvas_w:
        w = canvas_w - x
    if y + h > canvas_h:
        h = canvas_h - y

    w = max(w, min_size)
    h = max(h, min_size)
    # the floor may push a box at the very edge back over it
    if x + w > canvas_w:
        x = max(0.0, canvas_w - w)
    if y + h > canvas_h:
        y = max(0.0, canvas_h - h)
    return Rect(x=x, y=y, w=w, h=h)


def apply_transform(
    document: SlideDocument, transform: Transform, canvas: tuple[float, float]
) -> None:
    """Rewrite every element box in place from source px to clamped inches.

    ``source_geometry`` keeps the pixel box for shape decisions.
    """
    canvas_w, canvas_h = canvas
    for slide in document.slides:
        for element in slide.walk():
            element.source_geometry = element.geometry.copy()
            placed = transform.apply(to_inches(element.geometry))
            element.geometry = clamp_rect(placed, canvas_w, canvas_h)


def radius_ratio(radius_px: float, rect_in: Rect, scale: float) -> float:
    """Corner radius as a fraction of the box's shorter side (max 0.5)."""
    shorter = min(rect_in.w, rect_in.h)
    if radius_px <= 0 or shorter <= 0:
        return 0.0
    radius_in = px_to_inches(radius_px) * scale
    return min(radius_in / shorter, MAX_RADIUS_RATIO)


def rounding_adjustment(
    ratio: float,
    correction: float = ROUNDING_CORRECTION,
    maximum: float = MAX_ROUNDING_RATIO,
) -> float:
    if ratio <= 0:
        return 0.0
    return min(ratio / correction, maximum)


def decide_shape(
    width: float,
    height: float,
    ratio: float,
    tolerance: float = SQUARE_TOLERANCE_PX,
) -> tuple[str, float]:
    """Return (shape kind, roundRect adjustment).

    *width*/*height* are in the same unit as *tolerance* (source px).
    """
    if abs(width - height) < tolerance and ratio >= ELLIPSE_RATIO:
        return ELLIPSE, 0.0
    if ratio > 0:
        return ROUNDED_RECTANGLE, rounding_adjustment(ratio)
    return RECTANGLE, 0.0


def shape_for(element: Element, scale: float) -> tuple[str, float]:
    """Shape decision for a transformed element."""
    ratio = radius_ratio(element.style.border_radius, element.geometry, scale)
    source = element.source_geometry
    if source.is_empty:
        # no pixel box: compare in inches, converted back to px
        width = element.geometry.w * PX_PER_INCH / scale
        height = element.geometry.h * PX_PER_INCH / scale
    else:
        width, height = source.w, source.h
    return decide_shape(width, height, ratio)


def _is_wide(ch: str) -> bool:
    code = ord(ch)
    return (
        0x1100 <= code <= 0x115F
        or 0x2E80 <= code <= 0xA4CF
        or 0xAC00 <= code <= 0xD7A3
        or 0xF900 <= code <= 0xFAFF
        or 0xFE30 <= code <= 0xFE4F
        or 0xFF00 <= code <= 0xFF60
        or 0xFFE0 <= code <= 0xFFE6
    )


def text_units(line: str, metrics: Optional[TextMetrics] = None) -> float:
    """Width of a line in average-character units; full-width glyphs count double."""
    metrics = metrics or TextMetrics()
    return sum(metrics.wide_char_units if _is_wide(ch) else 1.0 for ch in line)


def estimate_text_box(
    text: str, font_size_px: float, metrics: Optional[TextMetrics] = None
) -> tuple[float, float]:
    """Rough (width, height) in px for text that was never laid out."""
    metrics = metrics or TextMetrics()
    lines = text.split("\n") if text else [""]
    char_px = font_size_px * metrics.avg_char_width
    line_px = font_size_px * metrics.line_height

    widest = 0.0
    line_count = 0
    for line in lines:
        units = text_units(line, metrics)
        width = units * char_px
        wraps = max(1, int(-(-width // metrics.max_width_px))) if width else 1
        line_count += wraps
        widest = max(widest, min(width, metrics.max_width_px))
    return widest, line_count * line_px
