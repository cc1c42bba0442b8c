"""
rasterize.py - Bitmap fallbacks for things a slide shape cannot express.

Runs after the geometry transform, so every bitmap is sized from the final
box: 2x the target pixel size at 96 dpi. Covers CSS gradients (element and
slide backgrounds), font-glyph icons and inline SVG.
"""

import math
import re
import warnings
from io import BytesIO
from typing import Optional

from PIL import Image, ImageDraw

from .errors import UnresolvableAsset
from .geometry import ELLIPSE, PX_PER_INCH, radius_ratio, shape_for
from .icons import glyph_svg, locate_node
from .model import Element, ElementKind, GradientSpec, GradientStop, Rect, SlideDocument
from .rendering import Renderer, RenderedNode
from .styles import parse_gradient

RASTER_SCALE = 2.0
MIN_COVERAGE = 0.01  # fraction of non-transparent pixels in a capture
MAX_RASTER_SIDE = 4096
RADIAL_STEPS = 256

GRADIENT_KINDS = frozenset(
    {
        ElementKind.CONTAINER,
        ElementKind.SHAPE,
        ElementKind.TEXT,
        ElementKind.HEADING,
        ElementKind.PARAGRAPH,
        ElementKind.GENERIC,
    }
)

SVG_NS = "http://www.w3.org/2000/svg"


def raster_size(rect: Rect, scale: float = RASTER_SCALE) -> tuple[int, int]:
    """Pixel size of a bitmap for a box given in inches."""
    width = int(round(rect.w * PX_PER_INCH * scale))
    height = int(round(rect.h * PX_PER_INCH * scale))
    return (max(1, min(width, MAX_RASTER_SIDE)), max(1, min(height, MAX_RASTER_SIDE)))


def _hex_rgb(color: str) -> tuple[int, int, int]:
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def color_at(stops: list[GradientStop], t: float) -> tuple[int, int, int]:
    """Interpolated stop color at *t* in [0, 1]."""
    position = max(0.0, min(1.0, t)) * 100.0
    if position <= stops[0].position:
        return _hex_rgb(stops[0].color)
    for left, right in zip(stops, stops[1:]):
        if position <= right.position:
            span = right.position - left.position
            f = (position - left.position) / span if span > 0 else 1.0
            a, b = _hex_rgb(left.color), _hex_rgb(right.color)
            return tuple(int(round(a[i] + (b[i] - a[i]) * f)) for i in range(3))
    return _hex_rgb(stops[-1].color)


def linear_gradient_image(spec: GradientSpec, width: int, height: int) -> Image.Image:
    """Draw a top-to-bottom ramp on a square, rotate it to the CSS angle, crop."""
    theta = math.radians(spec.angle)
    length = abs(width * math.sin(theta)) + abs(height * math.cos(theta))
    side = int(math.ceil(math.hypot(width, height))) + 2
    start = (side - length) / 2.0

    column = Image.new("RGB", (1, side))
    column.putdata(
        [color_at(spec.stops, (y + 0.5 - start) / length if length else 0.0) for y in range(side)]
    )
    square = column.resize((side, side), Image.Resampling.NEAREST)
    # PIL rotates counter-clockwise; the ramp itself points at 180deg
    square = square.rotate(180.0 - spec.angle, resample=Image.Resampling.BICUBIC, expand=False)
    left = (side - width) // 2
    top = (side - height) // 2
    return square.crop((left, top, left + width, top + height))


def radial_gradient_image(spec: GradientSpec, width: int, height: int) -> Image.Image:
    """Concentric ellipses from the outermost stop inwards."""
    image = Image.new("RGB", (width, height), color_at(spec.stops, 1.0))
    draw = ImageDraw.Draw(image)
    cx, cy = width / 2.0, height / 2.0
    # farthest-corner ellipse
    rx, ry = cx * math.sqrt(2), cy * math.sqrt(2)
    steps = max(2, min(RADIAL_STEPS, int(max(width, height))))
    for i in range(steps, 0, -1):
        t = i / steps
        draw.ellipse(
            (cx - rx * t, cy - ry * t, cx + rx * t, cy + ry * t),
            fill=color_at(spec.stops, t),
        )
    return image


def shape_mask(
    size: tuple[int, int], shape: str = "rect", radius: float = 0.0, opacity: float = 1.0
) -> Image.Image:
    width, height = size
    alpha = max(0, min(255, int(round(255 * opacity))))
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    box = (0, 0, width - 1, height - 1)
    if shape == ELLIPSE:
        draw.ellipse(box, fill=alpha)
    elif radius > 0:
        draw.rounded_rectangle(box, radius=radius, fill=alpha)
    else:
        draw.rectangle(box, fill=alpha)
    return mask


def gradient_png(
    spec: GradientSpec,
    size: tuple[int, int],
    shape: str = "rect",
    radius: float = 0.0,
    opacity: float = 1.0,
) -> bytes:
    width, height = size
    if spec.kind == "radial":
        image = radial_gradient_image(spec, width, height)
    else:
        image = linear_gradient_image(spec, width, height)
    image = image.convert("RGBA")
    image.putalpha(shape_mask(size, shape, radius, opacity))
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def coverage(png: bytes) -> float:
    """Fraction of pixels that are not fully transparent."""
    with Image.open(BytesIO(png)) as image:
        alpha = image.convert("RGBA").getchannel("A")
        histogram = alpha.histogram()
    total = sum(histogram)
    return (total - histogram[0]) / total if total else 0.0


def prepare_svg(markup: str, color: Optional[str] = None) -> str:
    """Make inline SVG markup standalone: namespace and currentColor."""
    if "xmlns=" not in markup.split(">", 1)[0]:
        markup = re.sub(r"<svg\b", f'<svg xmlns="{SVG_NS}"', markup, count=1)
    fill = f"#{color}" if color else "#000000"
    return re.sub(r"currentColor", fill, markup, flags=re.IGNORECASE)


def svg_to_png(markup: str, size: tuple[int, int]) -> bytes:
    try:
        import cairosvg
    except (ImportError, OSError) as exc:
        raise UnresolvableAsset(f"SVG rendering needs cairosvg and libcairo: {exc}") from exc
    try:
        return cairosvg.svg2png(
            bytestring=markup.encode("utf-8"), output_width=size[0], output_height=size[1]
        )
    except Exception as exc:
        raise UnresolvableAsset(f"Could not render SVG: {exc}") from exc


class RasterizationCoordinator:
    """Attaches PNG payloads to elements (and slide backgrounds) in place."""

    def __init__(
        self,
        renderer: Optional[Renderer] = None,
        scale: float = 1.0,
        canvas: tuple[float, float] = (13.333, 7.5),
        font_timeout_ms: int = 2000,
    ):
        self.renderer = renderer
        self.scale = scale
        self.canvas = canvas
        self.font_timeout_ms = font_timeout_ms
        self.warnings: list[str] = []

    def run(self, document: SlideDocument):
        nodes: list[RenderedNode] = self.renderer.nodes() if self.renderer is not None else []
        if self.renderer is not None and self._has_glyph_icons(document):
            if not self.renderer.wait_for_fonts(self.font_timeout_ms):
                warnings.warn(
                    f"Icon fonts were not ready after {self.font_timeout_ms} ms; "
                    "captured glyphs may be blank"
                )

        for slide in document.slides:
            label = f"Slide {slide.index + 1}"
            if slide.background.kind == "gradient" and slide.background.gradient is not None:
                try:
                    slide.background.bitmap = gradient_png(
                        slide.background.gradient,
                        raster_size(Rect(w=self.canvas[0], h=self.canvas[1])),
                    )
                except (OSError, ValueError) as exc:
                    self.warnings.append(f"{label}: background gradient skipped ({exc})")
            for element in slide.walk():
                try:
                    self.rasterize(element, nodes)
                except UnresolvableAsset as exc:
                    self.warnings.append(f"{label}: {exc}")
                except (OSError, ValueError) as exc:
                    self.warnings.append(f"{label}: <{element.tag}> not rasterized ({exc})")

    @staticmethod
    def _has_glyph_icons(document: SlideDocument) -> bool:
        return any(
            e.kind == ElementKind.ICON and e.icon is not None and e.icon.is_font_glyph
            for slide in document.slides
            for e in slide.walk()
        )

    def rasterize(self, element: Element, nodes: list[RenderedNode]):
        size = raster_size(element.geometry)
        if element.kind == ElementKind.ICON and element.icon is not None:
            if element.icon.is_font_glyph:
                element.bitmap = self._capture(element, nodes) or self._glyph(element, size)
            elif element.icon.svg_markup:
                color = element.icon.fill or element.style.color
                element.bitmap = svg_to_png(prepare_svg(element.icon.svg_markup, color), size)
            return
        if element.kind == ElementKind.VECTOR_GRAPHIC:
            if not element.svg_markup:
                raise UnresolvableAsset("inline <svg> without markup")
            element.bitmap = svg_to_png(prepare_svg(element.svg_markup, element.style.color), size)
            return
        if element.kind in GRADIENT_KINDS and element.style.gradient:
            spec = parse_gradient(element.style.gradient)
            if spec is None:
                raise UnresolvableAsset(f"unsupported gradient {element.style.gradient[:60]!r}")
            shape, _ = shape_for(element, self.scale)
            ratio = radius_ratio(element.style.border_radius, element.geometry, self.scale)
            element.bitmap = gradient_png(
                spec, size, shape, radius=ratio * min(size), opacity=element.style.opacity
            )

    def _capture(self, element: Element, nodes: list[RenderedNode]) -> Optional[bytes]:
        if self.renderer is None or not nodes:
            return None
        node = locate_node(element, nodes)
        if node is None:
            return None
        png = self.renderer.capture(node.node_id)
        if png and coverage(png) >= MIN_COVERAGE:
            return png
        return None

    def _glyph(self, element: Element, size: tuple[int, int]) -> Optional[bytes]:
        svg = glyph_svg(element.icon.name, element.icon.fill or element.style.color)
        if svg is None:
            return None
        side = min(size)
        return svg_to_png(svg, (side, side))
