"""
rendering.py - Rendering engines that turn an HTML document into a node tree.

Two engines share one interface:

- ``StaticRenderer`` parses the markup with BeautifulSoup/lxml and computes
  a useful subset of CSS (stylesheet rules in source order, inline styles,
  custom properties, inheritance). It never lays anything out, so nodes
  carry no rects.
- ``BrowserRenderer`` drives headless Chromium through Playwright and
  reports real computed styles and bounding boxes, and can screenshot
  single nodes.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Optional, Union

import soupsieve as sv
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .config import DEFAULT_VIEWPORT
from .errors import CollaboratorUnavailable
from .model import Rect
from .styles import parse_color, split_top_level

NODE_ID_ATTR = "data-h2s-id"

SKIP_TAGS = frozenset(
    {"script", "style", "head", "template", "noscript", "meta", "link", "title"}
)

INHERITED_PROPERTIES = (
    "color",
    "font-family",
    "font-size",
    "font-weight",
    "font-style",
    "text-align",
    "line-height",
)

# Computed properties serialized for every node.
STYLE_PROPERTIES = INHERITED_PROPERTIES + (
    "display",
    "position",
    "left",
    "top",
    "width",
    "height",
    "background-color",
    "background-image",
    "border-width",
    "border-style",
    "border-color",
    "border-radius",
    "box-shadow",
    "opacity",
    "text-decoration-line",
    "animation",
    "transition",
    "transform",
)

# ── User-agent defaults ───────────────────────────────────────────────────────
UA_STYLES = MappingProxyType(
    {
        "h1": {"font-size": "2em", "font-weight": "bold"},
        "h2": {"font-size": "1.5em", "font-weight": "bold"},
        "h3": {"font-size": "1.17em", "font-weight": "bold"},
        "h4": {"font-size": "1em", "font-weight": "bold"},
        "h5": {"font-size": "0.83em", "font-weight": "bold"},
        "h6": {"font-size": "0.67em", "font-weight": "bold"},
        "th": {"font-weight": "bold", "text-align": "center"},
        "strong": {"font-weight": "bold"},
        "b": {"font-weight": "bold"},
        "em": {"font-style": "italic"},
        "i": {"font-style": "italic"},
        "cite": {"font-style": "italic"},
        "u": {"text-decoration": "underline"},
        "ins": {"text-decoration": "underline"},
        "s": {"text-decoration": "line-through"},
        "del": {"text-decoration": "line-through"},
        "strike": {"text-decoration": "line-through"},
        "code": {"font-family": "monospace"},
        "pre": {"font-family": "monospace"},
        "kbd": {"font-family": "monospace"},
    }
)

FONT_SIZE_KEYWORDS = MappingProxyType(
    {
        "xx-small": 9.0,
        "x-small": 10.0,
        "small": 13.0,
        "medium": 16.0,
        "large": 18.0,
        "x-large": 24.0,
        "xx-large": 32.0,
        "xxx-large": 48.0,
    }
)

ROOT_FONT_PX = 16.0

# Pseudo-classes that describe interaction state; never matched statically.
_DYNAMIC_PSEUDO_RE = re.compile(
    r":(hover|focus|focus-within|focus-visible|active|visited|target|before|after|"
    r"placeholder|selection|first-line|first-letter|marker)\b",
    re.IGNORECASE,
)
_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_WS_RE = re.compile(r"\s+")
_VAR_RE = re.compile(r"var\(\s*--([\w-]+)\s*(?:,\s*((?:[^()]|\([^()]*\))*))?\)")
_LENGTH_RE = re.compile(r"^(-?\d*\.?\d+)(px|pt|em|rem|%)?$", re.IGNORECASE)
_NODE_ID_RE = re.compile(r"\s" + re.escape(NODE_ID_ATTR) + r"=\"[^\"]*\"")


@dataclass
class RenderedNode:
    """One element of a rendered document."""

    node_id: str
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    style: dict[str, str] = field(default_factory=dict)
    rect: Optional[Rect] = None
    content: list[Union[str, "RenderedNode"]] = field(default_factory=list)
    markup: Optional[str] = None

    @property
    def children(self) -> list["RenderedNode"]:
        return [c for c in self.content if isinstance(c, RenderedNode)]

    @property
    def classes(self) -> tuple[str, ...]:
        return tuple(self.attrs.get("class", "").split())

    @property
    def own_text(self) -> str:
        """Text of direct text children only."""
        return _collapse("".join(c for c in self.content if isinstance(c, str)))

    @property
    def text(self) -> str:
        return _collapse(self._raw_text())

    def _raw_text(self) -> str:
        parts = []
        for item in self.content:
            parts.append(item if isinstance(item, str) else item._raw_text())
        return "".join(parts)

    def walk(self) -> Iterator["RenderedNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


def _collapse(text: str) -> str:
    """Collapse whitespace per line, keeping newlines from ``<br>``."""
    lines = [" ".join(line.split()) for line in text.split("\n")]
    return "\n".join(lines).strip()


def outermost(nodes: list) -> list:
    """Drop every node that is nested inside another node of the list."""
    ids = {id(n) for n in nodes}
    result = []
    for node in nodes:
        parent = node.parent
        nested = False
        while parent is not None:
            if id(parent) in ids:
                nested = True
                break
            parent = parent.parent
        if not nested:
            result.append(node)
    return result


class Renderer:
    """Base class for rendering engines; usable as a context manager."""

    def __init__(self, viewport: tuple[int, int] = DEFAULT_VIEWPORT):
        self.viewport = viewport
        self._index: dict[str, RenderedNode] = {}

    def open(self, html: str):
        raise NotImplementedError

    def canvas_size(self) -> tuple[float, float]:
        return float(self.viewport[0]), float(self.viewport[1])

    def count(self, selector: str) -> int:
        raise NotImplementedError

    def snapshot(self, selector: Optional[str] = None) -> list[RenderedNode]:
        raise NotImplementedError

    def nodes(self) -> list[RenderedNode]:
        """Every node of the most recent snapshot, document order."""
        return list(self._index.values())

    def node(self, node_id: str) -> Optional[RenderedNode]:
        return self._index.get(node_id)

    def wait_for_fonts(self, timeout_ms: int) -> bool:
        return True

    def capture(self, node_id: str) -> Optional[bytes]:
        return None

    def close(self):
        pass

    def _remember(self, roots: list[RenderedNode]):
        self._index = {}
        for root in roots:
            for node in root.walk():
                self._index[node.node_id] = node

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


# ── Static CSS helpers ────────────────────────────────────────────────────────


def extract_css_vars(soup: BeautifulSoup) -> dict[str, str]:
    """Extract CSS custom properties from <style> blocks and inline styles."""
    result: dict[str, str] = {}
    for style_tag in soup.find_all("style"):
        css_text = _COMMENT_RE.sub("", style_tag.string or "")
        for m in re.finditer(r"--([\w-]+)\s*:\s*([^;}]+)", css_text):
            result[m.group(1).strip()] = m.group(2).strip()
    for tag in soup.find_all(style=True):
        for m in re.finditer(r"--([\w-]+)\s*:\s*([^;]+)", tag.get("style", "")):
            result.setdefault(m.group(1).strip(), m.group(2).strip())
    return result


def resolve_vars(value: str, css_vars: dict[str, str], depth: int = 10) -> str:
    """Substitute ``var(--name, fallback)`` references."""

    def replace(m):
        if m.group(1) in css_vars:
            return css_vars[m.group(1)]
        return (m.group(2) or "").strip()

    while "var(" in value and depth > 0:
        value = _VAR_RE.sub(replace, value)
        depth -= 1
    return value


def iter_css_rules(css: str) -> Iterator[tuple[str, str]]:
    """Yield (selector list, declaration block) pairs; at-rules are skipped."""
    css = _COMMENT_RE.sub("", css)
    i = 0
    length = len(css)
    while i < length:
        brace = css.find("{", i)
        if brace == -1:
            return
        prelude = css[i:brace].strip()
        # statement at-rules (@import ...;) end before the block
        if ";" in prelude and prelude.lstrip().startswith("@"):
            prelude = prelude[prelude.rfind(";") + 1 :].strip()
        depth = 1
        j = brace + 1
        while j < length and depth:
            if css[j] == "{":
                depth += 1
            elif css[j] == "}":
                depth -= 1
            j += 1
        body = css[brace + 1 : j - 1]
        i = j
        if prelude.startswith("@") or not prelude:
            continue
        yield prelude, body


def parse_declarations(block: str) -> list[tuple[str, str]]:
    result = []
    for declaration in split_top_level(block, ";"):
        prop, sep, value = declaration.partition(":")
        if not sep:
            continue
        value = re.sub(r"!\s*important\s*$", "", value.strip(), flags=re.IGNORECASE).strip()
        prop = prop.strip().lower()
        if prop and value:
            result.append((prop, value))
    return result


def _background_longhands(value: str) -> dict[str, str]:
    result = {"background-color": "", "background-image": ""}
    m = re.search(r"(repeating-)?(linear|radial)-gradient\(", value, re.IGNORECASE)
    if m:
        result["background-image"] = value[m.start() :]
        head = value[: m.start()]
    else:
        url = re.search(r"url\([^)]*\)", value, re.IGNORECASE)
        if url:
            result["background-image"] = url.group(0)
        head = value
    for token in split_top_level(head, " "):
        if parse_color(token) is not None or token.lower() == "transparent":
            result["background-color"] = token
            break
    return result


def _border_longhands(value: str) -> dict[str, str]:
    result = {"border-width": "", "border-style": "", "border-color": ""}
    for token in split_top_level(value, " "):
        lower = token.lower()
        if lower in ("none", "hidden", "solid", "dashed", "dotted", "double",
                     "groove", "ridge", "inset", "outset"):
            result["border-style"] = lower
        elif _LENGTH_RE.match(lower) or lower in ("thin", "medium", "thick"):
            result["border-width"] = lower
        else:
            result["border-color"] = token
    if result["border-style"] and not result["border-width"]:
        result["border-width"] = "3px"
    return result


def _font_longhands(value: str) -> dict[str, str]:
    result = {}
    tokens = split_top_level(value, " ")
    for index, token in enumerate(tokens):
        lower = token.lower()
        if lower in ("italic", "oblique"):
            result["font-style"] = lower
        elif lower in ("bold", "bolder", "lighter") or re.fullmatch(r"[1-9]00", lower):
            result["font-weight"] = lower
        elif _LENGTH_RE.match(lower.split("/")[0]) or lower.split("/")[0] in FONT_SIZE_KEYWORDS:
            size, _, line_height = token.partition("/")
            result["font-size"] = size
            if line_height:
                result["line-height"] = line_height
            family = " ".join(tokens[index + 1 :])
            if family:
                result["font-family"] = family
            break
    return result


SHORTHANDS = MappingProxyType(
    {
        "background": _background_longhands,
        "border": _border_longhands,
        "font": _font_longhands,
    }
)


def declare(target: dict[str, str], prop: str, value: str):
    """Set a declaration, expanding known shorthands into longhands."""
    expand = SHORTHANDS.get(prop)
    if expand is not None:
        for key, longhand in expand(value).items():
            if longhand:
                target[key] = longhand
            else:
                target.pop(key, None)
        if prop == "border":
            target[prop] = value
        return
    if prop == "text-decoration":
        target["text-decoration-line"] = value
    target[prop] = value


def resolve_font_size(value: Optional[str], parent_px: float) -> float:
    """Absolute font size in px for a declared value."""
    if not value:
        return parent_px
    lower = value.strip().lower()
    if lower in FONT_SIZE_KEYWORDS:
        return FONT_SIZE_KEYWORDS[lower]
    if lower == "smaller":
        return parent_px / 1.2
    if lower == "larger":
        return parent_px * 1.2
    m = _LENGTH_RE.match(lower)
    if not m:
        return parent_px
    number = float(m.group(1))
    unit = (m.group(2) or "px").lower()
    if unit == "em":
        return number * parent_px
    if unit == "rem":
        return number * ROOT_FONT_PX
    if unit == "%":
        return number / 100.0 * parent_px
    if unit == "pt":
        return number / 0.75
    return number


class StaticRenderer(Renderer):
    """Layout-free renderer built on BeautifulSoup + lxml + soupsieve."""

    def __init__(self, viewport: tuple[int, int] = DEFAULT_VIEWPORT):
        super().__init__(viewport)
        self.soup: Optional[BeautifulSoup] = None
        self.css_vars: dict[str, str] = {}
        self._by_tag: dict[int, RenderedNode] = {}
        self._counter = 0

    def open(self, html: str):
        self.soup = BeautifulSoup(html, "lxml")
        self.css_vars = extract_css_vars(self.soup)
        declared = self._collect_declarations()
        self._by_tag = {}
        self._counter = 0
        root = self.soup.html or self.soup
        self._root = self._build(root, declared, {"font-size": f"{ROOT_FONT_PX:g}px", "color": "#000000"})
        return self

    def _collect_declarations(self) -> dict[int, dict[str, str]]:
        """Cascade-free: rules in source order, then the inline style."""
        declared: dict[int, dict[str, str]] = {}
        for style_tag in self.soup.find_all("style"):
            for prelude, body in iter_css_rules(style_tag.string or ""):
                declarations = parse_declarations(body)
                if not declarations:
                    continue
                for selector in split_top_level(prelude, ","):
                    if _DYNAMIC_PSEUDO_RE.search(selector):
                        continue
                    try:
                        matches = sv.select(selector, self.soup)
                    except sv.SelectorSyntaxError:
                        continue
                    for tag in matches:
                        target = declared.setdefault(id(tag), {})
                        for prop, value in declarations:
                            declare(target, prop, self._resolved(prop, value))
        for tag in self.soup.find_all(style=True):
            target = declared.setdefault(id(tag), {})
            for prop, value in parse_declarations(tag.get("style", "")):
                declare(target, prop, self._resolved(prop, value))
        return declared

    def _resolved(self, prop: str, value: str) -> str:
        if prop.startswith("--"):
            return value
        return resolve_vars(value, self.css_vars)

    def _compute(
        self, tag: Tag, declared: dict[str, str], parent: dict[str, str]
    ) -> dict[str, str]:
        style: dict[str, str] = {}
        for prop in INHERITED_PROPERTIES:
            if prop in parent:
                style[prop] = parent[prop]
        for prop, value in UA_STYLES.get(tag.name, {}).items():
            declare(style, prop, value)
        for prop, value in declared.items():
            if prop.startswith("--"):
                continue
            if value.lower() == "inherit":
                if prop in parent:
                    style[prop] = parent[prop]
                continue
            style[prop] = value

        # inherited sizes are already absolute px
        parent_px = resolve_font_size(parent.get("font-size"), ROOT_FONT_PX)
        font_px = resolve_font_size(style.get("font-size"), parent_px)
        style["font-size"] = f"{round(font_px, 2):g}px"
        return style

    def _build(self, tag: Tag, declared: dict[int, dict[str, str]], parent_style: dict[str, str]) -> Optional[RenderedNode]:
        style = self._compute(tag, declared.get(id(tag), {}), parent_style)
        if style.get("display", "").strip().lower() == "none":
            return None
        if tag.has_attr("hidden"):
            return None
        self._counter += 1
        attrs = {
            key: " ".join(value) if isinstance(value, list) else str(value)
            for key, value in tag.attrs.items()
        }
        node = RenderedNode(node_id=f"n{self._counter}", tag=tag.name, attrs=attrs, style=style)
        self._by_tag[id(tag)] = node
        if tag.name == "svg":
            node.markup = str(tag)
            return node
        for child in tag.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                if type(child) is NavigableString:
                    node.content.append(_WS_RE.sub(" ", str(child)))
                continue
            if not isinstance(child, Tag) or child.name in SKIP_TAGS:
                continue
            if child.name == "br":
                node.content.append("\n")
                continue
            built = self._build(child, declared, style)
            if built is not None:
                node.content.append(built)
        return node

    def count(self, selector: str) -> int:
        try:
            return len([t for t in sv.select(selector, self.soup) if id(t) in self._by_tag])
        except sv.SelectorSyntaxError:
            return 0

    def snapshot(self, selector: Optional[str] = None) -> list[RenderedNode]:
        if self.soup is None:
            raise CollaboratorUnavailable("StaticRenderer.snapshot() called before open()")
        if selector is None:
            body = self.soup.body
            roots = [self._by_tag[id(body)]] if body is not None and id(body) in self._by_tag else []
        else:
            try:
                matches = sv.select(selector, self.soup)
            except sv.SelectorSyntaxError:
                matches = []
            matches = [t for t in matches if id(t) in self._by_tag]
            roots = [self._by_tag[id(t)] for t in outermost(matches)]
        self._remember(roots)
        return roots


# ── Browser renderer ──────────────────────────────────────────────────────────

_SNAPSHOT_JS = """
([selector, props, skip, attr]) => {
  window.__h2sCounter = window.__h2sCounter || 0;
  const SKIP = new Set(skip);
  const idOf = (el) => {
    if (!el.getAttribute(attr)) {
      window.__h2sCounter += 1;
      el.setAttribute(attr, "n" + window.__h2sCounter);
    }
    return el.getAttribute(attr);
  };
  const ser = (el) => {
    const cs = getComputedStyle(el);
    if (cs.display === "none") return null;
    const style = {};
    for (const p of props) style[p] = cs.getPropertyValue(p);
    const r = el.getBoundingClientRect();
    const attrs = {};
    for (const a of el.attributes) attrs[a.name] = a.value;
    const tag = el.tagName.toLowerCase();
    const node = {
      id: idOf(el), tag, attrs, style, content: [], markup: null,
      rect: [r.left + window.scrollX, r.top + window.scrollY, r.width, r.height],
    };
    if (tag === "svg") { node.markup = el.outerHTML; return node; }
    for (const child of el.childNodes) {
      if (child.nodeType === Node.TEXT_NODE) node.content.push(child.textContent.replace(/\\s+/g, " "));
      else if (child.nodeType === Node.ELEMENT_NODE) {
        const name = child.tagName.toLowerCase();
        if (name === "br") node.content.push("\\n");
        else if (!SKIP.has(name)) {
          const c = ser(child);
          if (c) node.content.push(c);
        }
      }
    }
    return node;
  };
  const all = selector ? Array.from(document.querySelectorAll(selector)) : [document.body];
  const roots = all.filter((el) => !all.some((o) => o !== el && o.contains(el)));
  return roots.map((el) => {
    const cs = getComputedStyle(el);
    if (cs.display === "none" || cs.visibility === "hidden" || cs.opacity === "0") {
      // inactive slides of a deck are hidden; show them for measurement
      el.style.setProperty("display", cs.display === "none" ? "block" : cs.display, "important");
      el.style.setProperty("visibility", "visible", "important");
      el.style.setProperty("opacity", "1", "important");
    }
    return ser(el);
  }).filter(Boolean);
}
"""

_FONTS_JS = """
(timeout) => Promise.race([
  document.fonts.ready.then(() => true),
  new Promise((resolve) => setTimeout(() => resolve(false), timeout)),
])
"""

_STEP_JS = """
(index) => {
  const hook = ["showSlide", "goToSlide", "renderSlide"].find((n) => typeof window[n] === "function");
  if (!hook) return null;
  window[hook](index);
  return hook;
}
"""


def _node_from_json(data: dict) -> RenderedNode:
    x, y, w, h = data.get("rect") or (0, 0, 0, 0)
    node = RenderedNode(
        node_id=data["id"],
        tag=data["tag"],
        attrs=data.get("attrs") or {},
        style=data.get("style") or {},
        rect=Rect(x=x, y=y, w=w, h=h),
        markup=data.get("markup"),
    )
    for item in data.get("content") or []:
        node.content.append(item if isinstance(item, str) else _node_from_json(item))
    return node


def strip_node_ids(markup: str) -> str:
    """Drop snapshot ids so markup shared between slides stays unambiguous."""
    return _NODE_ID_RE.sub("", markup)


class BrowserRenderer(Renderer):
    """Headless Chromium through the Playwright sync API."""

    def __init__(
        self,
        viewport: tuple[int, int] = DEFAULT_VIEWPORT,
        settle_delay_ms: int = 500,
        device_scale_factor: float = 2.0,
    ):
        super().__init__(viewport)
        self.settle_delay_ms = settle_delay_ms
        self.device_scale_factor = device_scale_factor
        self._playwright = None
        self._browser = None
        self._page = None

    def open(self, html: str):
        try:
            from playwright.sync_api import Error as PlaywrightError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:
            raise CollaboratorUnavailable(
                "Playwright not installed. Run: pip install 'html2slides[browser]' && "
                "python -m playwright install chromium"
            ) from exc

        try:
            if self._page is None:
                self._playwright = sync_playwright().start()
                self._browser = self._playwright.chromium.launch(headless=True)
                self._page = self._browser.new_page(
                    viewport={"width": self.viewport[0], "height": self.viewport[1]},
                    device_scale_factor=self.device_scale_factor,
                )
            # a second open() reuses the page
            self._page.set_content(html, wait_until="load")
            self._page.wait_for_timeout(self.settle_delay_ms)
        except PlaywrightError as exc:
            self.close()
            raise CollaboratorUnavailable(f"Could not render the document: {exc}") from exc
        return self

    def _require_page(self):
        if self._page is None:
            raise CollaboratorUnavailable("BrowserRenderer used before open()")
        return self._page

    def count(self, selector: str) -> int:
        from playwright.sync_api import Error as PlaywrightError

        try:
            return self._require_page().locator(selector).count()
        except PlaywrightError:
            return 0

    def snapshot(self, selector: Optional[str] = None) -> list[RenderedNode]:
        page = self._require_page()
        data = page.evaluate(
            _SNAPSHOT_JS, [selector, list(STYLE_PROPERTIES), sorted(SKIP_TAGS), NODE_ID_ATTR]
        )
        roots = [_node_from_json(item) for item in data]
        self._remember(roots)
        return roots

    def wait_for_fonts(self, timeout_ms: int) -> bool:
        return bool(self._require_page().evaluate(_FONTS_JS, timeout_ms))

    def capture(self, node_id: str) -> Optional[bytes]:
        from playwright.sync_api import Error as PlaywrightError

        locator = self._require_page().locator(f'[{NODE_ID_ATTR}="{node_id}"]')
        try:
            return locator.screenshot(omit_background=True, timeout=2000)
        except PlaywrightError:
            return None

    def step_slides(self, count: int) -> list[str]:
        """Drive the page's own slide hooks and return each slide's body markup."""
        page = self._require_page()
        markups = []
        for index in range(count):
            if page.evaluate(_STEP_JS, index) is None:
                break
            page.wait_for_timeout(self.settle_delay_ms)
            markups.append(strip_node_ids(page.evaluate("() => document.body.innerHTML")))
        return markups

    def close(self):
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        self._page = None


def make_renderer(name: str, viewport: tuple[int, int] = DEFAULT_VIEWPORT, settle_delay_ms: int = 500) -> Renderer:
    if name == "browser":
        return BrowserRenderer(viewport, settle_delay_ms=settle_delay_ms)
    return StaticRenderer(viewport)
