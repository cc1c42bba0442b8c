"""
cli.py - html2slides command line.

Usage:
    html2slides <input.html> [output.pptx] [--aspect-ratio 16:9] [--renderer static]

If output path is not specified, uses the input filename with .pptx extension.
"""

import argparse
import sys
from pathlib import Path

from .config import ASPECT_RATIO_PRESETS, DEFAULT_ASPECT_RATIO, DEFAULT_FONT, DEFAULT_FONT_SIZE, RENDERERS, ConversionOptions
from .converter import HTMLToSlidesConverter
from .errors import ConversionError, MalformedInput
from .verify import format_report, verify_deck


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="html2slides",
        description="Convert HTML slide decks to PowerPoint presentations.",
    )
    parser.add_argument("input", help="Input HTML file path")
    parser.add_argument(
        "output", nargs="?", help="Output PPTX file path (default: same name as input)"
    )
    parser.add_argument(
        "--aspect-ratio",
        choices=list(ASPECT_RATIO_PRESETS),
        default=DEFAULT_ASPECT_RATIO,
        help="Slide size preset (default: %(default)s)",
    )
    parser.add_argument(
        "--renderer",
        choices=RENDERERS,
        default="static",
        help="static (no browser) or browser (headless Chromium via Playwright)",
    )
    parser.add_argument("--title", help="Presentation title (default: the input file name)")
    parser.add_argument("--author", default="html2slides", help="Presentation author")
    parser.add_argument("--font-face", default=DEFAULT_FONT, help="Fallback font face")
    parser.add_argument(
        "--font-size", type=float, default=DEFAULT_FONT_SIZE, help="Fallback font size in points"
    )
    parser.add_argument(
        "--no-animations", action="store_true", help="Do not write animations and transitions timing"
    )
    parser.add_argument(
        "--preview", action="store_true", help="List the slides that would be created and exit"
    )
    parser.add_argument(
        "--verify", action="store_true", help="Check the written deck for overflow and overlaps"
    )
    return parser


def _print_warnings(messages: list[str]):
    if messages:
        print(f"\nWarnings ({len(messages)}):", file=sys.stderr)
        for w in messages:
            print(f"  - {w}", file=sys.stderr)


def _progress(done: int, total: int):
    print(f"  slide {done}/{total}")


def main(argv=None):
    args = build_parser().parse_args(argv)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        output_path = Path(args.output)
    else:
        output_path = input_path.with_suffix(".pptx")

    options = ConversionOptions(
        aspect_ratio=args.aspect_ratio,
        renderer=args.renderer,
        title=args.title or input_path.stem,
        author=args.author,
        default_font_face=args.font_face,
        default_font_size=args.font_size,
        preserve_animations=not args.no_animations,
        base_dir=input_path.resolve().parent,
    )
    try:
        converter = HTMLToSlidesConverter(input_path.read_bytes(), options)
    except MalformedInput as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.preview:
            for item in converter.preview():
                background = " [background]" if item["has_background"] else ""
                print(
                    f"  {item['index'] + 1:>3}. {item['title']} "
                    f"({item['element_count']} elements){background}"
                )
            _print_warnings(converter.warnings)
            return

        print(f"Converting: {input_path}")
        print(f"Output: {output_path}")
        converter.save(output_path, progress=_progress)
    except ConversionError as exc:
        _print_warnings(converter.warnings)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _print_warnings(converter.warnings)
    num_slides = len(converter.document.slides)
    print(f"Done! Created {output_path} ({num_slides} slides)")

    if args.verify:
        print(format_report(verify_deck(output_path)))


if __name__ == "__main__":
    main()
