"""Conversion options and presets."""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Optional

# ── Slide dimensions ──────────────────────────────────────────────────────────
# Target canvas per aspect-ratio preset, in inches (width, height).
ASPECT_RATIO_PRESETS = MappingProxyType(
    {
        "16:9": (13.333, 7.5),
        "16:10": (10.0, 6.25),
        "4:3": (10.0, 7.5),
        "A4": (10.833, 7.5),
    }
)
DEFAULT_ASPECT_RATIO = "16:9"

# ── Rendering defaults ────────────────────────────────────────────────────────
DEFAULT_VIEWPORT = (1920, 1080)
DEFAULT_FONT = "Arial"
DEFAULT_FONT_SIZE = 18.0

RENDERERS = ("static", "browser")


@dataclass(frozen=True)
class TextMetrics:
    """Heuristics for sizing text that the renderer did not lay out.

    Only used when no rendered box and no explicit width/height exist.
    """

    avg_char_width: float = 0.6  # fraction of the font size
    wide_char_units: float = 2.0  # CJK / full-width characters
    line_height: float = 1.5  # multiple of the font size
    max_width_px: float = 1600.0


@dataclass
class ConversionOptions:
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    default_font_face: str = DEFAULT_FONT
    default_font_size: float = DEFAULT_FONT_SIZE
    preserve_animations: bool = True
    title: str = "Converted Presentation"
    author: str = "html2slides"
    subject: str = ""
    company: str = ""
    renderer: str = "static"
    viewport_width: int = DEFAULT_VIEWPORT[0]
    viewport_height: int = DEFAULT_VIEWPORT[1]
    font_timeout_ms: int = 2000
    settle_delay_ms: int = 500
    base_dir: Optional[Path] = None
    text_metrics: TextMetrics = field(default_factory=TextMetrics)

    def __post_init__(self):
        if self.aspect_ratio not in ASPECT_RATIO_PRESETS:
            raise ValueError(
                f"Unknown aspect ratio {self.aspect_ratio!r}; "
                f"expected one of {', '.join(ASPECT_RATIO_PRESETS)}"
            )
        if self.renderer not in RENDERERS:
            raise ValueError(
                f"Unknown renderer {self.renderer!r}; expected one of {', '.join(RENDERERS)}"
            )
        if self.base_dir is not None:
            self.base_dir = Path(self.base_dir)

    @property
    def slide_size(self) -> tuple[float, float]:
        """Target canvas (width, height) in inches."""
        return ASPECT_RATIO_PRESETS[self.aspect_ratio]
