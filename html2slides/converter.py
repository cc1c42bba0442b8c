"""
converter.py - Orchestrates one HTML → PPTX conversion.

render → extract → transform → rasterize → emit, strictly in that order.
The renderer is closed on every path; the presentation is only serialized
once every slide has been emitted.
"""

import warnings
from pathlib import Path
from typing import Optional, Union

from .config import ConversionOptions
from .emitter import EmissionWalker, ProgressCallback
from .encoder import PptxEncoder
from .errors import MalformedInput
from .extractor import StructuralExtractor
from .geometry import apply_transform, compute_transform
from .model import SlideDocument, Transform
from .rasterize import RasterizationCoordinator
from .rendering import BrowserRenderer, Renderer, make_renderer
from .scripted import build_scripted_document, extract_script_slides


class HTMLToSlidesConverter:
    """Converts one HTML document to a PowerPoint deck."""

    def __init__(
        self,
        html_content: Union[str, bytes],
        options: Optional[ConversionOptions] = None,
        renderer: Optional[Renderer] = None,
    ):
        if isinstance(html_content, bytes):
            try:
                html_content = html_content.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise MalformedInput(f"HTML is not valid UTF-8: {exc}") from exc
        self.html = html_content
        self.options = options or ConversionOptions()
        self.renderer = renderer
        self.warnings: list[str] = []
        self.document: Optional[SlideDocument] = None
        self.transform: Optional[Transform] = None

    def _make_renderer(self) -> Renderer:
        if self.renderer is not None:
            return self.renderer
        return make_renderer(
            self.options.renderer,
            (self.options.viewport_width, self.options.viewport_height),
            settle_delay_ms=self.options.settle_delay_ms,
        )

    def parse(self, rasterize: bool = True) -> SlideDocument:
        """Build the transformed (and, by default, rasterized) slide document."""
        with self._make_renderer() as renderer:
            renderer.open(self.html)
            extractor = StructuralExtractor(self.options)
            document = extractor.extract(renderer)
            if extractor.matched_selector is None:
                document = self._scripted(renderer, extractor) or document

            canvas = self.options.slide_size
            self.transform = compute_transform(
                document.source_width, document.source_height, *canvas
            )
            apply_transform(document, self.transform, canvas)

            if rasterize:
                coordinator = RasterizationCoordinator(
                    renderer,
                    scale=self.transform.scale,
                    canvas=canvas,
                    font_timeout_ms=self.options.font_timeout_ms,
                )
                coordinator.run(document)
                self.warnings.extend(coordinator.warnings)

        if not document.slides:
            warnings.warn("No slides found in the document")
        self.document = document
        return document

    def _scripted(self, renderer: Renderer, extractor: StructuralExtractor) -> Optional[SlideDocument]:
        """Slides injected from an inline script array, when the page has one."""
        markups = extract_script_slides(self.html)
        if not markups:
            return None
        if isinstance(renderer, BrowserRenderer):
            stepped = renderer.step_slides(len(markups))
            if len(stepped) == len(markups):
                markups = stepped
        renderer.open(build_scripted_document(self.html, markups))
        return extractor.extract(renderer)

    def convert(self, progress: Optional[ProgressCallback] = None) -> bytes:
        """Run the whole pipeline and return the .pptx bytes."""
        document = self.parse()
        encoder = PptxEncoder(self.options, scale=self.transform.scale)
        walker = EmissionWalker(encoder, self.options, self.transform.scale, progress)
        walker.emit(document)
        self.warnings.extend(walker.warnings)
        return encoder.serialize()

    def preview(self) -> list[dict]:
        """Per-slide summary without rasterizing or encoding."""
        document = self.document or self.parse(rasterize=False)
        return [
            {
                "index": slide.index,
                "title": slide.title,
                "element_count": sum(1 for _ in slide.walk()),
                "has_background": slide.background.kind != "none",
            }
            for slide in document.slides
        ]

    def save(self, output_path, progress: Optional[ProgressCallback] = None):
        """Convert and write the deck to *output_path*."""
        data = self.convert(progress)
        Path(output_path).write_bytes(data)
        return output_path


def convert_html(
    html: str,
    output_path=None,
    options: Optional[ConversionOptions] = None,
) -> bytes:
    """One-call conversion; also writes the file when *output_path* is given."""
    converter = HTMLToSlidesConverter(html, options)
    data = converter.convert()
    if output_path is not None:
        Path(output_path).write_bytes(data)
    for message in converter.warnings:
        warnings.warn(message)
    return data
