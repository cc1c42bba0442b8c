"""html2slides - convert HTML slide decks to PowerPoint presentations."""

from .config import ASPECT_RATIO_PRESETS, ConversionOptions, TextMetrics
from .converter import HTMLToSlidesConverter, convert_html
from .errors import CollaboratorUnavailable, ConversionError, MalformedInput, UnresolvableAsset
from .model import Element, ElementKind, Slide, SlideDocument
from .verify import format_report, verify_deck

__version__ = "0.1.0"

__all__ = [
    "ASPECT_RATIO_PRESETS",
    "CollaboratorUnavailable",
    "ConversionError",
    "ConversionOptions",
    "Element",
    "ElementKind",
    "HTMLToSlidesConverter",
    "MalformedInput",
    "Slide",
    "SlideDocument",
    "TextMetrics",
    "UnresolvableAsset",
    "convert_html",
    "format_report",
    "verify_deck",
]
