"""
verify.py - Post-conversion deck check.

Reads a finished .pptx back with python-pptx and reports three kinds of
problems: shapes that leave the slide canvas, text that likely overflows
its box, and text boxes that overlap each other.

Usage:
    python -m html2slides.verify path/to/file.pptx [--verbose]
"""

import math
import sys
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from pptx import Presentation

from .config import TextMetrics
from .geometry import text_units

EMU_PER_INCH = 914400
EMU_PER_PT = 12700

BOUNDS_TOLERANCE = 0.01  # inches
OVERFLOW_RATIO = 0.15  # of the available height
OVERFLOW_MIN = 0.05  # inches
OVERLAP_MIN = 0.10  # inches, thinner overlaps are adjacent boxes


@dataclass
class BoundsIssue:
    slide_num: int
    shape_index: int
    text_preview: str
    left: float
    top: float
    right: float
    bottom: float


@dataclass
class TextOverflow:
    slide_num: int
    shape_index: int
    text_preview: str
    font_size_pt: float
    shape_width: float  # inches
    shape_height: float  # inches
    needed_height: float  # inches
    estimated_lines: int

    @property
    def overflow_inches(self) -> float:
        return self.needed_height - self.shape_height


@dataclass
class ShapeOverlap:
    slide_num: int
    shape_a_index: int
    shape_b_index: int
    overlap_width: float
    overlap_height: float

    @property
    def severity(self) -> str:
        thickness = min(self.overlap_width, self.overlap_height)
        if thickness > 0.5:
            return "SEVERE"
        if thickness > 0.2:
            return "MODERATE"
        return "MINOR"


@dataclass
class SlideReport:
    slide_num: int
    total_shapes: int
    out_of_bounds: list[BoundsIssue] = field(default_factory=list)
    overflows: list[TextOverflow] = field(default_factory=list)
    overlaps: list[ShapeOverlap] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.out_of_bounds or self.overflows or self.overlaps)


@dataclass
class DeckReport:
    name: str
    slide_width: float
    slide_height: float
    slides: list[SlideReport] = field(default_factory=list)

    @property
    def total_slides(self) -> int:
        return len(self.slides)

    @property
    def total_out_of_bounds(self) -> int:
        return sum(len(s.out_of_bounds) for s in self.slides)

    @property
    def total_overflows(self) -> int:
        return sum(len(s.overflows) for s in self.slides)

    @property
    def total_overlaps(self) -> int:
        return sum(len(s.overlaps) for s in self.slides)

    @property
    def slides_with_issues(self) -> int:
        return sum(1 for s in self.slides if s.has_issues)

    @property
    def is_clean(self) -> bool:
        return self.slides_with_issues == 0


def _bbox(shape) -> tuple[float, float, float, float]:
    left = (shape.left or 0) / EMU_PER_INCH
    top = (shape.top or 0) / EMU_PER_INCH
    return (
        left,
        top,
        left + (shape.width or 0) / EMU_PER_INCH,
        top + (shape.height or 0) / EMU_PER_INCH,
    )


def _text(shape) -> str:
    return shape.text_frame.text if shape.has_text_frame else ""


def _preview(shape, max_len: int = 40) -> str:
    text = _text(shape).replace("\n", "|")[:max_len]
    return text if text.strip() else "(no text)"


def _paragraph_size(paragraph, default: float = 18.0) -> float:
    for run in paragraph.runs:
        if run.font.size is not None:
            return run.font.size / EMU_PER_PT
    return default


def estimate_height(text_frame, width_in: float, metrics: Optional[TextMetrics] = None) -> tuple[float, int]:
    """(height in inches, line count) for a text frame wrapped at *width_in*."""
    metrics = metrics or TextMetrics()
    width_pt = width_in * 72.0
    height = 0.0
    lines = 0
    for paragraph in text_frame.paragraphs:
        size = _paragraph_size(paragraph)
        spacing = paragraph.line_spacing if isinstance(paragraph.line_spacing, float) else metrics.line_height
        line_in = size / 72.0 * spacing
        text = paragraph.text.strip()
        if not text:
            height += 0.4 * line_in
            continue
        rendered = text_units(text, metrics) * metrics.avg_char_width * size
        count = 1 if rendered <= width_pt else math.ceil(rendered / width_pt)
        height += count * line_in
        lines += count
    return height, lines


def check_bounds(slide, slide_num: int, width: float, height: float) -> list[BoundsIssue]:
    issues = []
    for index, shape in enumerate(slide.shapes):
        left, top, right, bottom = _bbox(shape)
        if (
            left < -BOUNDS_TOLERANCE
            or top < -BOUNDS_TOLERANCE
            or right > width + BOUNDS_TOLERANCE
            or bottom > height + BOUNDS_TOLERANCE
        ):
            issues.append(BoundsIssue(slide_num, index, _preview(shape), left, top, right, bottom))
    return issues


def check_overflow(
    shape, slide_num: int, index: int, metrics: Optional[TextMetrics] = None
) -> Optional[TextOverflow]:
    if not shape.has_text_frame or not _text(shape).strip():
        return None
    tf = shape.text_frame
    width = (shape.width or 0) / EMU_PER_INCH
    height = (shape.height or 0) / EMU_PER_INCH
    margins_w = ((tf.margin_left or 0) + (tf.margin_right or 0)) / EMU_PER_INCH
    margins_h = ((tf.margin_top or 0) + (tf.margin_bottom or 0)) / EMU_PER_INCH
    avail_w, avail_h = width - margins_w, height - margins_h
    if avail_w <= 0 or avail_h <= 0:
        return None
    needed, lines = estimate_height(tf, avail_w, metrics)
    overflow = needed - avail_h
    if overflow > avail_h * OVERFLOW_RATIO and overflow > OVERFLOW_MIN:
        return TextOverflow(
            slide_num=slide_num,
            shape_index=index,
            text_preview=_preview(shape, 60),
            font_size_pt=max((_paragraph_size(p) for p in tf.paragraphs), default=18.0),
            shape_width=width,
            shape_height=height,
            needed_height=needed + margins_h,
            estimated_lines=lines,
        )
    return None


def check_overlaps(slide, slide_num: int) -> list[ShapeOverlap]:
    """Overlaps between shapes that both carry text; fills behind text are fine."""
    boxes = [(i, _bbox(s)) for i, s in enumerate(slide.shapes) if _text(s).strip()]
    overlaps = []
    for a in range(len(boxes)):
        a_idx, (al, at, ar, ab) = boxes[a]
        for b in range(a + 1, len(boxes)):
            b_idx, (bl, bt, br, bb) = boxes[b]
            w = min(ar, br) - max(al, bl)
            h = min(ab, bb) - max(at, bt)
            if w <= 0 or h <= 0 or min(w, h) < OVERLAP_MIN:
                continue
            overlaps.append(ShapeOverlap(slide_num, a_idx, b_idx, w, h))
    return overlaps


def verify_presentation(prs, name: str = "presentation", metrics: Optional[TextMetrics] = None) -> DeckReport:
    width = prs.slide_width / EMU_PER_INCH
    height = prs.slide_height / EMU_PER_INCH
    report = DeckReport(name=name, slide_width=width, slide_height=height)
    for number, slide in enumerate(prs.slides, start=1):
        shapes = list(slide.shapes)
        slide_report = SlideReport(slide_num=number, total_shapes=len(shapes))
        slide_report.out_of_bounds = check_bounds(slide, number, width, height)
        for index, shape in enumerate(shapes):
            overflow = check_overflow(shape, number, index, metrics)
            if overflow:
                slide_report.overflows.append(overflow)
        slide_report.overlaps = check_overlaps(slide, number)
        report.slides.append(slide_report)
    return report


def verify_deck(source: Union[str, Path, bytes], metrics: Optional[TextMetrics] = None) -> DeckReport:
    """Verify a .pptx given as a path or as the bytes a conversion returned."""
    if isinstance(source, (bytes, bytearray)):
        return verify_presentation(Presentation(BytesIO(source)), "presentation", metrics)
    path = Path(source)
    return verify_presentation(Presentation(str(path)), path.stem, metrics)


def format_report(report: DeckReport, verbose: bool = False) -> str:
    lines = [f"\n{'=' * 70}", report.name, "=" * 70]
    if report.is_clean:
        lines.append("  ALL CLEAN - no out-of-bounds shapes, overflow or overlap detected")
        return "\n".join(lines)

    parts = []
    if report.total_out_of_bounds:
        parts.append(f"{report.total_out_of_bounds} out of bounds")
    if report.total_overflows:
        parts.append(f"{report.total_overflows} overflows")
    if report.total_overlaps:
        parts.append(f"{report.total_overlaps} overlaps")
    lines.append(f"  {', '.join(parts)} across {report.slides_with_issues}/{report.total_slides} slides")

    for sr in report.slides:
        if not sr.has_issues:
            if verbose:
                lines.append(f"\n  Slide {sr.slide_num}: CLEAN")
            continue
        lines.append(f"\n  Slide {sr.slide_num}:")
        for issue in sr.out_of_bounds:
            lines.append(
                f"    [BOUNDS] shape {issue.shape_index} at "
                f'({issue.left:.2f}", {issue.top:.2f}")-({issue.right:.2f}", {issue.bottom:.2f}")'
                f' outside {report.slide_width:.2f}"x{report.slide_height:.2f}"'
            )
        for ov in sr.overflows:
            lines.append(
                f"    [OVERFLOW] {ov.font_size_pt:.0f}pt in"
                f' {ov.shape_width:.1f}"x{ov.shape_height:.2f}" needs {ov.needed_height:.2f}"'
            )
            lines.append(f'      "{ov.text_preview}"')
        for ol in sr.overlaps:
            lines.append(
                f"    [OVERLAP-{ol.severity}] shapes {ol.shape_a_index} & {ol.shape_b_index}: "
                f'{ol.overlap_width:.2f}"x{ol.overlap_height:.2f}"'
            )
    return "\n".join(lines)


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m html2slides.verify <file_or_dir> [--verbose]")
        sys.exit(1)

    path = Path(sys.argv[1])
    verbose = "--verbose" in sys.argv
    files = sorted(path.glob("*.pptx")) if path.is_dir() else [path]
    if not files:
        print(f"No .pptx files found at {path}")
        sys.exit(1)

    dirty = 0
    for pptx_file in files:
        report = verify_deck(pptx_file)
        print(format_report(report, verbose))
        dirty += report.slides_with_issues
    sys.exit(1 if dirty else 0)


if __name__ == "__main__":
    main()
