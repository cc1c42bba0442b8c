"""
Pytest configuration and fixtures shared by the html2slides tests.
"""

from io import BytesIO

import pytest
from PIL import Image
from pptx import Presentation

from html2slides import ConversionOptions, HTMLToSlidesConverter
from html2slides.rendering import StaticRenderer


def png_bytes(size=(8, 8), color=(255, 0, 0, 255)) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def deck(*sections: str, head: str = "") -> str:
    """A minimal document with one ``section.slide`` per argument."""
    body = "".join(f'<section class="slide">{s}</section>' for s in sections)
    return f"<!DOCTYPE html><html><head>{head}</head><body>{body}</body></html>"


@pytest.fixture
def options() -> ConversionOptions:
    return ConversionOptions()


@pytest.fixture
def render():
    """Open HTML in a StaticRenderer; closed after the test."""
    renderers = []

    def _render(html: str) -> StaticRenderer:
        renderer = StaticRenderer()
        renderer.open(html)
        renderers.append(renderer)
        return renderer

    yield _render
    for renderer in renderers:
        renderer.close()


@pytest.fixture
def fake_svg(monkeypatch):
    """Replace cairosvg rendering with a solid PNG of the requested size."""
    calls = []

    def _svg_to_png(markup, size):
        calls.append((markup, size))
        return png_bytes(size)

    monkeypatch.setattr("html2slides.rasterize.svg_to_png", _svg_to_png)
    monkeypatch.setattr("html2slides.emitter.svg_to_png", _svg_to_png)
    return calls


@pytest.fixture
def convert():
    """Convert HTML and return (Presentation, converter)."""

    def _convert(html: str, **option_overrides):
        converter = HTMLToSlidesConverter(html, ConversionOptions(**option_overrides))
        data = converter.convert()
        return Presentation(BytesIO(data)), converter

    return _convert
