"""
Tests for the html2slides command line.
"""

import pytest
from pptx import Presentation

from conftest import deck
from html2slides.cli import build_parser, main


@pytest.fixture
def html_file(tmp_path):
    path = tmp_path / "talk.html"
    path.write_text(deck("<h1>Welcome</h1>", "<h1>Agenda</h1><p>Items</p>"), encoding="utf-8")
    return path


class TestCli:
    """Tests for argument handling and the conversion entry point."""

    def test_defaults(self):
        args = build_parser().parse_args(["in.html"])
        assert args.output is None
        assert args.aspect_ratio == "16:9"
        assert args.renderer == "static"
        assert not args.no_animations

    def test_missing_input(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([str(tmp_path / "nope.html")])
        assert exc_info.value.code == 1
        assert "Input file not found" in capsys.readouterr().err

    def test_bad_aspect_ratio(self, html_file):
        with pytest.raises(SystemExit) as exc_info:
            main([str(html_file), "--aspect-ratio", "21:9"])
        assert exc_info.value.code == 2

    def test_convert_default_output(self, html_file, capsys):
        main([str(html_file)])
        output = html_file.with_suffix(".pptx")
        assert output.exists()
        prs = Presentation(str(output))
        assert len(prs.slides) == 2
        assert prs.core_properties.title == "talk"
        out = capsys.readouterr().out
        assert "slide 2/2" in out
        assert "Done! Created" in out
        assert "(2 slides)" in out

    def test_explicit_output_and_options(self, html_file, tmp_path):
        output = tmp_path / "out" / "deck.pptx"
        output.parent.mkdir()
        main([str(html_file), str(output), "--aspect-ratio", "4:3", "--title", "Review"])
        prs = Presentation(str(output))
        assert prs.slide_width == 9144000
        assert prs.core_properties.title == "Review"

    def test_preview_writes_nothing(self, html_file, capsys):
        main([str(html_file), "--preview"])
        out = capsys.readouterr().out
        assert "1. Welcome (1 elements)" in out
        assert "2. Agenda (2 elements)" in out
        assert not html_file.with_suffix(".pptx").exists()

    def test_verify_report(self, html_file, capsys):
        main([str(html_file), "--verify"])
        assert "=" * 70 in capsys.readouterr().out

    def test_undecodable_input(self, tmp_path, capsys):
        path = tmp_path / "latin.html"
        path.write_bytes(b"<p>caf\xe9</p>")
        with pytest.raises(SystemExit) as exc_info:
            main([str(path)])
        assert exc_info.value.code == 1
        assert "not valid UTF-8" in capsys.readouterr().err
