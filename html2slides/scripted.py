"""
scripted.py - Slides that only exist inside an inline script.

Some decks keep their slides in a JavaScript array and inject one at a time.
The scanner here finds ``slides = [ ... ]`` (or ``slides: [ ... ]``), splits
the literal into items and decodes each into markup. It understands string,
template and comment syntax well enough to balance brackets; it is not a
JavaScript parser.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

SLIDE_ARRAY_NAMES = ("slides", "pages", "slideData", "slidesData")
MARKUP_PROPERTIES = ("html", "content", "template", "body")

_QUOTES = "'\"`"
_OPENERS = "([{"
_CLOSERS = ")]}"
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_TEMPLATE_EXPR_RE = re.compile(r"\$\{[^{}]*\}")
_CODE_POINT_RE = re.compile(r"\{([0-9a-fA-F]{1,6})\}")


def _skip(source: str, i: int) -> Optional[int]:
    """Index just past a string, template or comment starting at *i*, else None."""
    ch = source[i]
    if ch in _QUOTES:
        j = i + 1
        while j < len(source):
            if source[j] == "\\":
                j += 2
                continue
            if source[j] == ch:
                return j + 1
            j += 1
        return len(source)
    if source.startswith("//", i):
        end = source.find("\n", i)
        return len(source) if end < 0 else end + 1
    if source.startswith("/*", i):
        end = source.find("*/", i + 2)
        return len(source) if end < 0 else end + 2
    return None


def _balanced_end(source: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at *start*."""
    depth = 0
    i = start
    while i < len(source):
        skipped = _skip(source, i)
        if skipped is not None:
            i = skipped
            continue
        ch = source[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def find_array_literal(source: str, names=SLIDE_ARRAY_NAMES) -> Optional[str]:
    """First ``name = [...]`` / ``name: [...]`` array literal, brackets included."""
    pattern = re.compile(
        r"(?<![\w$.])[\"']?(" + "|".join(re.escape(n) for n in names) + r")[\"']?\s*[=:]\s*\["
    )
    i = 0
    while i < len(source):
        match = pattern.match(source, i)
        if match:
            start = match.end() - 1
            end = _balanced_end(source, start)
            if end is not None:
                return source[start:end + 1]
            return None
        skipped = _skip(source, i)
        i = skipped if skipped is not None else i + 1
    return None


def _split_top_level(body: str, sep: str) -> list[str]:
    parts = []
    depth = 0
    current = 0
    i = 0
    while i < len(body):
        skipped = _skip(body, i)
        if skipped is not None:
            i = skipped
            continue
        ch = body[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(body[current:i])
            current = i + 1
        i += 1
    parts.append(body[current:])
    return parts


def split_array_items(literal: str) -> list[str]:
    """Top-level items of an array literal, trimmed, empty items dropped."""
    literal = literal.strip()
    if literal.startswith("["):
        literal = literal[1:]
    if literal.endswith("]"):
        literal = literal[:-1]
    return [item.strip() for item in _split_top_level(literal, ",") if item.strip()]


def _unescape(body: str) -> str:
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt == "\n":
            i += 2  # line continuation
        elif nxt == "u" and _CODE_POINT_RE.match(body, i + 2):
            match = _CODE_POINT_RE.match(body, i + 2)
            out.append(chr(int(match.group(1), 16)))
            i = match.end()
        elif nxt == "u" and re.match(r"[0-9a-fA-F]{4}", body[i + 2:i + 6]):
            out.append(chr(int(body[i + 2:i + 6], 16)))
            i += 6
        elif nxt == "x" and re.match(r"[0-9a-fA-F]{2}", body[i + 2:i + 4]):
            out.append(chr(int(body[i + 2:i + 4], 16)))
            i += 4
        else:
            out.append(_SIMPLE_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def _string_value(expr: str) -> Optional[str]:
    """Value of a string literal or a ``+`` chain of string literals."""
    pieces = [p.strip() for p in _split_top_level(expr.strip(), "+")]
    values = []
    for piece in pieces:
        if len(piece) < 2 or piece[0] not in _QUOTES or piece[-1] != piece[0]:
            return None
        if _skip(piece, 0) != len(piece):
            return None
        body = piece[1:-1]
        if piece[0] == "`":
            body = _TEMPLATE_EXPR_RE.sub("", body)
        values.append(_unescape(body))
    return "".join(values) if values else None


def _object_properties(literal: str) -> dict[str, str]:
    body = literal.strip()[1:-1]
    props = {}
    for entry in _split_top_level(body, ","):
        key, sep, value = entry.partition(":")
        if not sep:
            continue
        key = key.strip().strip("'\"`")
        props[key] = value.strip()
    return props


def decode_item(item: str, properties=MARKUP_PROPERTIES) -> Optional[str]:
    """Markup carried by one array item, None for anything else."""
    item = item.strip()
    if item.startswith("{") and item.endswith("}"):
        props = _object_properties(item)
        for name in properties:
            if name in props:
                value = _string_value(props[name])
                if value is not None:
                    return value
        return None
    return _string_value(item)


def extract_script_slides(html: str, names=SLIDE_ARRAY_NAMES) -> list[str]:
    """Markup of every slide in the first inline script array that holds markup."""
    soup = BeautifulSoup(html, "lxml")
    for script in soup.find_all("script"):
        if script.get("src"):
            continue
        source = script.string or script.get_text()
        if not source:
            continue
        for name in names:
            literal = find_array_literal(source, (name,))
            if literal is None:
                continue
            markups = [decode_item(item) for item in split_array_items(literal)]
            markups = [m for m in markups if m and "<" in m]
            if markups:
                return markups
    return []


def build_scripted_document(html: str, markups: list[str]) -> str:
    """A static document with one ``section.slide`` per markup item.

    Stylesheets of the original head are kept so the slides render the same.
    """
    soup = BeautifulSoup(html, "lxml")
    head = []
    if soup.head is not None:
        for tag in soup.head.find_all(["style", "link", "meta"]):
            if tag.name == "link" and "stylesheet" not in (tag.get("rel") or []):
                continue
            head.append(str(tag))
    for style in (soup.body.find_all("style") if soup.body is not None else []):
        head.append(str(style))
    sections = "".join(f'<section class="slide">{markup}</section>' for markup in markups)
    return f"<!DOCTYPE html><html><head>{''.join(head)}</head><body>{sections}</body></html>"
