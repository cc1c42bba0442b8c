"""Normalized slide model shared by every stage of the conversion."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, Optional


class ElementKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    TEXT = "text"
    IMAGE = "image"
    TABLE = "table"
    LIST = "list"
    CONTAINER = "container"
    SHAPE = "shape"
    ICON = "icon"
    VECTOR_GRAPHIC = "vectorGraphic"
    GENERIC = "generic"


# Kinds whose element text is emitted as a text box.
TEXT_KINDS = frozenset(
    {ElementKind.HEADING, ElementKind.PARAGRAPH, ElementKind.TEXT}
)


@dataclass
class Rect:
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def copy(self) -> "Rect":
        return replace(self)


@dataclass
class Border:
    style: str  # "solid" | "dash"
    color: Optional[str]
    width_pt: float


@dataclass
class Shadow:
    offset_px: float
    angle: float  # degrees, 0 = right, 90 = down
    blur_px: float
    color: str = "000000"
    opacity: float = 0.35


@dataclass
class GradientStop:
    color: str
    position: float  # 0-100


@dataclass
class GradientSpec:
    kind: str  # "linear" | "radial"
    angle: float  # CSS degrees: 0 = to top, 90 = to right
    stops: list[GradientStop] = field(default_factory=list)


@dataclass
class StyleRecord:
    font_face: str = "Arial"
    font_size: float = 18.0  # points
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    align: str = "left"
    color: Optional[str] = None
    background_color: Optional[str] = None
    background_alpha: float = 1.0
    border: Optional[Border] = None
    shadow: Optional[Shadow] = None
    border_radius: float = 0.0  # source pixels, never unit-converted here
    opacity: float = 1.0
    gradient: Optional[str] = None  # raw CSS gradient value
    background_image: Optional[str] = None  # url of a non-gradient background
    animation: Optional[str] = None
    transition: Optional[str] = None
    transform: Optional[str] = None
    line_height: Optional[str] = None

    @property
    def has_fill(self) -> bool:
        return bool(self.background_color or self.gradient)

    @property
    def is_visible_box(self) -> bool:
        """True when the box paints something (fill, gradient or border)."""
        return self.has_fill or self.border is not None


@dataclass
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    color: Optional[str] = None


@dataclass
class TableCell:
    text: str
    is_header: bool = False
    colspan: int = 1
    rowspan: int = 1
    style: StyleRecord = field(default_factory=StyleRecord)


@dataclass
class TableData:
    rows: list[list[TableCell]] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return max((sum(c.colspan for c in row) for row in self.rows), default=0)


@dataclass
class ListItem:
    text: str
    style: StyleRecord = field(default_factory=StyleRecord)
    children: Optional["ListData"] = None


@dataclass
class ListData:
    ordered: bool = False
    items: list[ListItem] = field(default_factory=list)


@dataclass
class IconInfo:
    name: str = ""
    is_font_glyph: bool = True
    svg_markup: Optional[str] = None
    fill: Optional[str] = None
    page_rect: Optional[Rect] = None  # rendered box in page coordinates


@dataclass
class AnimationSpec:
    archetype: str
    category: str = "entrance"  # entrance | emphasis | exit
    direction: Optional[str] = None
    subtype: Optional[str] = None
    delay_ms: float = 0.0
    duration_ms: float = 1000.0
    easing: str = "easeInOut"
    iterations: int = 1


@dataclass
class Element:
    kind: ElementKind
    tag: str = ""
    geometry: Rect = field(default_factory=Rect)
    style: StyleRecord = field(default_factory=StyleRecord)
    children: list["Element"] = field(default_factory=list)
    node_id: Optional[str] = None
    classes: tuple[str, ...] = ()
    text: str = ""
    runs: list[TextRun] = field(default_factory=list)
    heading_level: int = 0
    src: Optional[str] = None
    alt: Optional[str] = None
    href: Optional[str] = None
    table_data: Optional[TableData] = None
    list_data: Optional[ListData] = None
    svg_markup: Optional[str] = None
    icon: Optional[IconInfo] = None
    animations: list[AnimationSpec] = field(default_factory=list)
    source_geometry: Rect = field(default_factory=Rect)
    bitmap: Optional[bytes] = None

    def walk(self) -> Iterator["Element"]:
        """Yield this element and its descendants, parents first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class Background:
    kind: str = "none"  # none | solidColor | gradient | image
    color: Optional[str] = None
    gradient: Optional[GradientSpec] = None
    image_url: Optional[str] = None
    bitmap: Optional[bytes] = None


@dataclass
class Slide:
    index: int
    title: str
    background: Background = field(default_factory=Background)
    elements: list[Element] = field(default_factory=list)
    transition: Optional[str] = None

    def walk(self) -> Iterator[Element]:
        for element in self.elements:
            yield from element.walk()


@dataclass
class SlideDocument:
    slides: tuple[Slide, ...]
    source_width: float
    source_height: float

    def __len__(self) -> int:
        return len(self.slides)

    def __iter__(self) -> Iterator[Slide]:
        return iter(self.slides)


@dataclass
class Transform:
    """Uniform scale-and-center transform, one per document (inches)."""

    scale: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    def apply(self, rect: Rect) -> Rect:
        return Rect(
            x=rect.x * self.scale + self.offset_x,
            y=rect.y * self.scale + self.offset_y,
            w=rect.w * self.scale,
            h=rect.h * self.scale,
        )
