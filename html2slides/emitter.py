"""
emitter.py - Walks a transformed, rasterized SlideDocument into the encoder.

Elements are emitted in tree order, parents before children, so a card's
background shape sits below the text it holds.
"""

import base64
import binascii
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote

from .config import ConversionOptions
from .encoder import PptxEncoder
from .errors import UnresolvableAsset
from .geometry import shape_for
from .model import TEXT_KINDS, Border, Element, ElementKind, Slide, SlideDocument, StyleRecord
from .rasterize import prepare_svg, raster_size, svg_to_png

ProgressCallback = Callable[[int, int], None]

_DATA_URI_RE = re.compile(r"^data:([\w.+-]+/[\w.+-]+)?((?:;[\w-]+=[^;,]*)*)(;base64)?,(.*)$", re.DOTALL)

BOX_KINDS = frozenset({ElementKind.CONTAINER, ElementKind.SHAPE, ElementKind.GENERIC})


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """(media type, payload) of a ``data:`` URI."""
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise UnresolvableAsset("malformed data URI")
    media_type = (match.group(1) or "text/plain").lower()
    payload = match.group(4)
    if match.group(3):
        try:
            return media_type, base64.b64decode(payload)
        except (binascii.Error, ValueError) as exc:
            raise UnresolvableAsset(f"bad base64 in data URI: {exc}") from exc
    return media_type, unquote(payload).encode("utf-8")


def load_image(src: Optional[str], base_dir: Optional[Path] = None) -> tuple[str, bytes]:
    """Resolve an image source to (media type, bytes).

    Data URIs and local files only; remote URLs are never fetched.
    """
    if not src:
        raise UnresolvableAsset("image without src")
    if src.startswith("data:"):
        return decode_data_uri(src)
    if re.match(r"^(https?:)?//", src, re.IGNORECASE):
        raise UnresolvableAsset(f"remote image not embedded: {src[:80]}")
    path_str = unquote(src.split("?", 1)[0].split("#", 1)[0])
    if path_str.startswith("file://"):
        path_str = path_str[len("file://"):]
    path = Path(path_str)
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path
    if not path.is_file():
        raise UnresolvableAsset(f"image not found: {src[:80]}")
    media_type = "image/svg+xml" if path.suffix.lower() == ".svg" else "image/*"
    return media_type, path.read_bytes()


def _border(style: StyleRecord) -> Optional[Border]:
    """The element's border; one without a color takes the text color."""
    border = style.border
    if border is None or border.color:
        return border
    return replace(border, color=style.color or "000000")


class EmissionWalker:
    """Emits every slide of a document through a PptxEncoder."""

    def __init__(
        self,
        encoder: PptxEncoder,
        options: Optional[ConversionOptions] = None,
        scale: float = 1.0,
        progress: Optional[ProgressCallback] = None,
    ):
        self.encoder = encoder
        self.options = options or ConversionOptions()
        self.scale = scale
        self.progress = progress
        self.warnings: list[str] = []

    def emit(self, document: SlideDocument):
        total = len(document)
        for slide in document.slides:
            self.emit_slide(slide)
            if self.progress is not None:
                self.progress(slide.index + 1, total)

    def emit_slide(self, slide: Slide):
        self.encoder.add_slide()
        self._background(slide)
        self.encoder.set_transition(slide.transition)
        for element in slide.elements:
            self._emit(element, f"Slide {slide.index + 1}")

    # ── Background ───────────────────────────────────────────────────────────

    def _background(self, slide: Slide):
        background = slide.background
        if background.kind == "solidColor":
            self.encoder.set_background(color=background.color)
        elif background.kind == "gradient":
            self.encoder.set_background(color=background.color, image=background.bitmap)
        elif background.kind == "image":
            try:
                _, data = load_image(background.image_url, self.options.base_dir)
            except UnresolvableAsset as exc:
                self.warnings.append(f"Slide {slide.index + 1}: background {exc}")
                data = None
            self.encoder.set_background(color=background.color, image=data)

    # ── Elements ─────────────────────────────────────────────────────────────

    def _emit(self, element: Element, label: str):
        try:
            shapes = self._dispatch(element, label)
        except UnresolvableAsset as exc:
            self.warnings.append(f"{label}: {exc}")
            shapes = []
        if self.options.preserve_animations:
            for spec in element.animations:
                # fill and text of one element move together
                for position, shape in enumerate(shapes):
                    self.encoder.animate(shape, spec, with_previous=position > 0)
        for child in element.children:
            self._emit(child, label)

    def _dispatch(self, element: Element, label: str) -> list:
        """Every shape emitted for *element*, bottom first."""
        kind = element.kind
        if element.bitmap is not None:
            shapes = [self.encoder.add_image(element.geometry, element.bitmap)]
            if kind != ElementKind.ICON and (element.text or element.runs):
                # text goes on top of the rasterized fill
                shapes.append(self._text(element, with_fill=False))
            return shapes
        if kind == ElementKind.ICON:
            return []
        if kind == ElementKind.VECTOR_GRAPHIC:
            self.warnings.append(f"{label}: inline <svg> could not be rasterized, skipped")
            return []
        if kind == ElementKind.IMAGE:
            return [self._image(element)]
        if kind == ElementKind.TABLE:
            return [self.encoder.add_table(element.table_data, element.geometry, element.style)]
        if kind == ElementKind.LIST:
            return [self.encoder.add_list(element.list_data, element.geometry, element.style)]
        if kind in TEXT_KINDS or kind in BOX_KINDS:
            return self._box_and_text(element)
        return []

    def _box_and_text(self, element: Element) -> list:
        shapes = []
        style = element.style
        if style.background_color or style.border is not None:
            shapes.append(self._shape(element))
        if element.text or element.runs:
            shapes.append(self._text(element, with_fill=False))
        return shapes

    def _shape(self, element: Element):
        style = element.style
        kind, adjustment = shape_for(element, self.scale)
        return self.encoder.add_shape(
            kind,
            element.geometry,
            fill=style.background_color,
            line=_border(style),
            adjustment=adjustment,
            shadow=style.shadow,
            transparency=1.0 - style.background_alpha * style.opacity,
        )

    def _text(self, element: Element, with_fill: bool = True):
        style = element.style
        return self.encoder.add_text(
            element.geometry,
            style,
            text=element.text,
            runs=element.runs or None,
            fill=style.background_color if with_fill else None,
            line=_border(style) if with_fill else None,
            href=element.href,
        )

    def _image(self, element: Element):
        media_type, data = load_image(element.src, self.options.base_dir)
        if media_type == "image/svg+xml":
            markup = prepare_svg(data.decode("utf-8", errors="replace"))
            data = svg_to_png(markup, raster_size(element.geometry))
        return self.encoder.add_image(element.geometry, data)
