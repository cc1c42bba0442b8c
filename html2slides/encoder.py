"""
encoder.py - Presentation encoder over python-pptx.

Every geometry argument is a Rect in slide inches. Colors are 6-digit hex
strings as produced by the style normalizer. Slides are written in call
order; animation timing for a slide is flushed when the next slide starts
or when the deck is serialized.
"""

from io import BytesIO
from typing import Optional

from PIL import Image
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_LINE_DASH_STYLE
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, MSO_AUTO_SIZE, PP_ALIGN
from pptx.oxml import parse_xml
from pptx.oxml.ns import nsdecls, qn
from pptx.util import Emu, Inches, Pt

from .config import ConversionOptions
from .errors import CollaboratorUnavailable, UnresolvableAsset
from .geometry import ELLIPSE, PX_PER_INCH, RECTANGLE, ROUNDED_RECTANGLE
from .model import AnimationSpec, Border, ListData, Rect, Shadow, StyleRecord, TableData, TextRun
from .timing import Effect, apply_timing, apply_transition

BLANK_LAYOUT = 6

SHAPE_TYPES = {
    RECTANGLE: MSO_SHAPE.RECTANGLE,
    ROUNDED_RECTANGLE: MSO_SHAPE.ROUNDED_RECTANGLE,
    ELLIPSE: MSO_SHAPE.OVAL,
}

ALIGNMENTS = {
    "left": PP_ALIGN.LEFT,
    "center": PP_ALIGN.CENTER,
    "right": PP_ALIGN.RIGHT,
    "justify": PP_ALIGN.JUSTIFY,
}

# ── Table styling ─────────────────────────────────────────────────────────────
HEADER_FILL = "E7E6E6"
CELL_FILL = "FFFFFF"
CELL_BORDER = "CFCFCF"
CELL_BORDER_PT = 0.75
TABLE_TEXT = "000000"

# ── List styling ──────────────────────────────────────────────────────────────
BULLET_CHARS = ("•", "◦", "▪")
LIST_INDENT = Emu(342900)  # 0.375"
BULLET_HANGING = Emu(228600)  # 0.25"


def rgb(color: str) -> RGBColor:
    return RGBColor.from_string(color.upper())


def _set_font(run, style: StyleRecord, run_style: Optional[TextRun] = None, size: Optional[float] = None):
    """Apply font properties to a run. Every run gets an explicit font name."""
    font = run.font
    font.name = style.font_face
    font.size = Pt(size or style.font_size)
    font.bold = run_style.bold if run_style else style.bold
    font.italic = run_style.italic if run_style else style.italic
    font.underline = run_style.underline if run_style else style.underline
    color = (run_style.color if run_style else None) or style.color
    if color:
        font.color.rgb = rgb(color)
    if run_style.strike if run_style else style.strike:
        run._r.get_or_add_rPr().set("strike", "sngStrike")


def _line_spacing(value: Optional[str]) -> Optional[float]:
    """Unitless CSS line-height as a paragraph multiple."""
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if 0.5 <= number <= 3.0 else None


def _split_paragraphs(runs: list[TextRun]) -> list[list[TextRun]]:
    paragraphs: list[list[TextRun]] = [[]]
    for r in runs:
        parts = r.text.split("\n")
        for i, part in enumerate(parts):
            if i > 0:
                paragraphs.append([])
            if part:
                paragraphs[-1].append(TextRun(part, r.bold, r.italic, r.underline, r.strike, r.color))
    return paragraphs


def _set_alpha(fill, transparency: float):
    """Write a:alpha (0..100000) under the fill's srgbClr."""
    if transparency <= 0:
        return
    solid = fill._xPr.find(qn("a:solidFill"))
    color = solid.find(qn("a:srgbClr")) if solid is not None else None
    if color is None:
        return
    alpha = max(0, min(100000, int(round((1.0 - transparency) * 100000))))
    color.append(parse_xml(f'<a:alpha {nsdecls("a")} val="{alpha}"/>'))


class PptxEncoder:
    """Writes slides, shapes and timing into a python-pptx Presentation."""

    def __init__(self, options: Optional[ConversionOptions] = None, scale: float = 1.0):
        self.options = options or ConversionOptions()
        self.scale = scale  # source px to slide inches, for shadows
        try:
            self.prs = Presentation()
            width, height = self.options.slide_size
            self.prs.slide_width = Inches(width)
            self.prs.slide_height = Inches(height)
            self.blank_layout = self.prs.slide_layouts[BLANK_LAYOUT]
        except (OSError, KeyError, IndexError, ValueError) as exc:
            raise CollaboratorUnavailable(f"Could not create a presentation: {exc}") from exc

        props = self.prs.core_properties
        props.title = self.options.title
        props.author = self.options.author
        props.subject = self.options.subject
        if self.options.company:
            props.category = self.options.company

        self.slide = None
        self._effects: list[Effect] = []

    # ── Slides ───────────────────────────────────────────────────────────────

    def add_slide(self):
        self._flush_timing()
        self.slide = self.prs.slides.add_slide(self.blank_layout)
        return self.slide

    def _flush_timing(self):
        if self.slide is not None and self._effects:
            apply_timing(self.slide, self._effects)
        self._effects = []

    def set_background(self, color: Optional[str] = None, image: Optional[bytes] = None):
        """Solid background color and/or a full-bleed picture behind every shape."""
        if color:
            fill = self.slide.background.fill
            fill.solid()
            fill.fore_color.rgb = rgb(color)
        if image:
            width, height = self.options.slide_size
            pic = self.slide.shapes.add_picture(BytesIO(image), 0, 0, Inches(width), Inches(height))
            # move to the back of the z-order
            tree = self.slide.shapes._spTree
            tree.remove(pic._element)
            tree.insert(2, pic._element)

    def set_transition(self, name: Optional[str]):
        apply_transition(self.slide, name)

    # ── Text ─────────────────────────────────────────────────────────────────

    def add_text(
        self,
        box: Rect,
        style: StyleRecord,
        text: str = "",
        runs: Optional[list[TextRun]] = None,
        fill: Optional[str] = None,
        line: Optional[Border] = None,
        href: Optional[str] = None,
    ):
        """Add a text box. *runs* win over *text*; "\\n" starts a new paragraph."""
        shape = self.slide.shapes.add_textbox(
            Inches(box.x), Inches(box.y), Inches(box.w), Inches(box.h)
        )
        tf = shape.text_frame
        tf.word_wrap = True
        tf.auto_size = MSO_AUTO_SIZE.NONE
        tf.vertical_anchor = MSO_ANCHOR.TOP
        tf.margin_left = tf.margin_right = tf.margin_top = tf.margin_bottom = 0

        paragraphs = _split_paragraphs(runs or [TextRun(text)])
        spacing = _line_spacing(style.line_height)
        for p_idx, p_runs in enumerate(paragraphs):
            p = tf.paragraphs[0] if p_idx == 0 else tf.add_paragraph()
            p.alignment = ALIGNMENTS.get(style.align, PP_ALIGN.LEFT)
            if spacing:
                p.line_spacing = spacing
            if not p_runs:
                # Empty paragraph (blank line)
                run = p.add_run()
                run.text = ""
                _set_font(run, style)
                continue
            for r in p_runs:
                run = p.add_run()
                run.text = r.text
                _set_font(run, style, r if runs else None)
                if href:
                    run.hyperlink.address = href

        self._fill(shape, fill, style.background_alpha * style.opacity)
        self._line(shape, line)
        return shape

    # ── Pictures ─────────────────────────────────────────────────────────────

    def add_image(self, box: Rect, data: bytes, fit: bool = True):
        """Add a picture, aspect-fit and centered inside *box* unless fit=False."""
        left, top, width, height = box.x, box.y, box.w, box.h
        if fit:
            try:
                with Image.open(BytesIO(data)) as image:
                    iw, ih = image.size
            except OSError as exc:
                raise UnresolvableAsset(f"Unreadable image data: {exc}") from exc
            if iw > 0 and ih > 0:
                ratio = min(box.w / iw, box.h / ih)
                width, height = iw * ratio, ih * ratio
                left = box.x + (box.w - width) / 2
                top = box.y + (box.h - height) / 2
        return self.slide.shapes.add_picture(
            BytesIO(data), Inches(left), Inches(top), Inches(width), Inches(height)
        )

    # ── Shapes ───────────────────────────────────────────────────────────────

    def add_shape(
        self,
        kind: str,
        box: Rect,
        fill: Optional[str] = None,
        line: Optional[Border] = None,
        adjustment: float = 0.0,
        shadow: Optional[Shadow] = None,
        transparency: float = 0.0,
    ):
        """Add a filled shape (card background, badge, divider, etc.)."""
        shape = self.slide.shapes.add_shape(
            SHAPE_TYPES.get(kind, MSO_SHAPE.RECTANGLE),
            Inches(box.x),
            Inches(box.y),
            Inches(box.w),
            Inches(box.h),
        )
        if kind == ROUNDED_RECTANGLE:
            shape.adjustments[0] = adjustment
        self._fill(shape, fill, 1.0 - transparency)
        self._line(shape, line)
        if shadow is not None:
            self._shadow(shape, shadow)
        return shape

    def _fill(self, shape, color: Optional[str], alpha: float = 1.0):
        if color:
            shape.fill.solid()
            shape.fill.fore_color.rgb = rgb(color)
            _set_alpha(shape.fill, 1.0 - alpha)
        else:
            shape.fill.background()

    def _line(self, shape, border: Optional[Border]):
        if border is None or not border.color or border.width_pt <= 0:
            shape.line.fill.background()
            return
        shape.line.color.rgb = rgb(border.color)
        shape.line.width = Pt(border.width_pt)
        if border.style == "dash":
            shape.line.dash_style = MSO_LINE_DASH_STYLE.DASH

    def _shadow(self, shape, shadow: Shadow):
        """Outer shadow; offsets are source px scaled like the geometry."""
        dist = int(Inches(shadow.offset_px / PX_PER_INCH * self.scale))
        blur = int(Inches(shadow.blur_px / PX_PER_INCH * self.scale))
        direction = int(round(shadow.angle % 360 * 60000))
        alpha = int(round(shadow.opacity * 100000))
        sp_pr = shape._element.spPr
        existing = sp_pr.find(qn("a:effectLst"))
        if existing is not None:
            sp_pr.remove(existing)
        sp_pr.append(
            parse_xml(
                f'<a:effectLst {nsdecls("a")}>'
                f'<a:outerShdw blurRad="{blur}" dist="{dist}" dir="{direction}" '
                'algn="ctr" rotWithShape="0">'
                f'<a:srgbClr val="{shadow.color.upper()}"><a:alpha val="{alpha}"/></a:srgbClr>'
                "</a:outerShdw></a:effectLst>"
            )
        )

    # ── Tables ───────────────────────────────────────────────────────────────

    def add_table(self, table_data: TableData, box: Rect, style: StyleRecord):
        rows = len(table_data.rows)
        cols = table_data.column_count
        if rows == 0 or cols == 0:
            return None
        graphic = self.slide.shapes.add_table(
            rows, cols, Inches(box.x), Inches(box.y), Inches(box.w), Inches(box.h)
        )
        table = graphic.table
        for column in table.columns:
            column.width = Inches(box.w / cols)
        for row in table.rows:
            row.height = Inches(box.h / rows)

        occupied: set[tuple[int, int]] = set()
        for r, row in enumerate(table_data.rows):
            c = 0
            for cell_data in row:
                while (r, c) in occupied:
                    c += 1
                if c >= cols:
                    break
                cell = table.cell(r, c)
                last_r = min(r + cell_data.rowspan - 1, rows - 1)
                last_c = min(c + cell_data.colspan - 1, cols - 1)
                span = {(rr, cc) for rr in range(r, last_r + 1) for cc in range(c, last_c + 1)}
                if span & occupied:
                    # crossing spans stay unmerged
                    last_r, last_c = r, c
                    span = {(r, c)}
                if (last_r, last_c) != (r, c):
                    cell.merge(table.cell(last_r, last_c))
                occupied |= span
                self._table_cell(cell, cell_data, style)
                c = last_c + 1
        return graphic

    def _table_cell(self, cell, cell_data, table_style: StyleRecord):
        cell_style = cell_data.style
        tf = cell.text_frame
        tf.word_wrap = True
        p = tf.paragraphs[0]
        p.alignment = ALIGNMENTS.get(cell_style.align, PP_ALIGN.LEFT)
        run = p.add_run()
        run.text = cell_data.text
        font = run.font
        font.name = cell_style.font_face or table_style.font_face
        font.size = Pt(cell_style.font_size or table_style.font_size)
        font.bold = cell_data.is_header or cell_style.bold
        font.italic = cell_style.italic
        font.color.rgb = rgb(cell_style.color or TABLE_TEXT)

        cell.fill.solid()
        if cell_style.background_color:
            cell.fill.fore_color.rgb = rgb(cell_style.background_color)
        else:
            cell.fill.fore_color.rgb = rgb(HEADER_FILL if cell_data.is_header else CELL_FILL)
        self._cell_borders(cell)

    @staticmethod
    def _cell_borders(cell):
        tc_pr = cell._tc.get_or_add_tcPr()
        width = int(Pt(CELL_BORDER_PT))
        # lnL, lnR, lnT, lnB must precede the cell fill
        for tag in reversed(("a:lnL", "a:lnR", "a:lnT", "a:lnB")):
            existing = tc_pr.find(qn(tag))
            if existing is not None:
                tc_pr.remove(existing)
            tc_pr.insert(
                0,
                parse_xml(
                    f'<{tag} {nsdecls("a")} w="{width}">'
                    f'<a:solidFill><a:srgbClr val="{CELL_BORDER}"/></a:solidFill>'
                    f"</{tag}>"
                ),
            )

    # ── Lists ────────────────────────────────────────────────────────────────

    def add_list(self, list_data: ListData, box: Rect, style: StyleRecord):
        shape = self.slide.shapes.add_textbox(
            Inches(box.x), Inches(box.y), Inches(box.w), Inches(box.h)
        )
        tf = shape.text_frame
        tf.word_wrap = True
        tf.auto_size = MSO_AUTO_SIZE.NONE
        tf.margin_left = tf.margin_right = tf.margin_top = tf.margin_bottom = 0
        self._list_items(tf, list_data, style, level=0, first=[True])
        return shape

    def _list_items(self, tf, list_data: ListData, style: StyleRecord, level: int, first: list):
        for item in list_data.items:
            if first[0]:
                p = tf.paragraphs[0]
                first[0] = False
            else:
                p = tf.add_paragraph()
            p.alignment = ALIGNMENTS.get(style.align, PP_ALIGN.LEFT)
            p.level = min(level, 8)
            self._bullet(p, list_data.ordered, level)
            run = p.add_run()
            run.text = item.text
            _set_font(run, item.style)
            if item.children is not None:
                self._list_items(tf, item.children, style, level + 1, first)

    @staticmethod
    def _bullet(paragraph, ordered: bool, level: int):
        p_pr = paragraph._p.get_or_add_pPr()
        p_pr.set("marL", str(int(LIST_INDENT * (level + 1))))
        p_pr.set("indent", str(-int(BULLET_HANGING)))
        if ordered:
            p_pr.append(parse_xml(f'<a:buAutoNum {nsdecls("a")} type="arabicPeriod"/>'))
        else:
            char = BULLET_CHARS[level % len(BULLET_CHARS)]
            p_pr.append(parse_xml(f'<a:buFont {nsdecls("a")} typeface="Arial"/>'))
            p_pr.append(parse_xml(f'<a:buChar {nsdecls("a")} char="{char}"/>'))

    # ── Animation ────────────────────────────────────────────────────────────

    def animate(self, shape, spec: AnimationSpec, with_previous: bool = False):
        """Queue an effect for *shape*; written with the slide's timing.

        With *with_previous* the effect starts together with the one queued
        before it instead of waiting for a click.
        """
        self._effects.append((shape.shape_id, spec, with_previous))

    # ── Output ───────────────────────────────────────────────────────────────

    def serialize(self) -> bytes:
        self._flush_timing()
        buf = BytesIO()
        self.prs.save(buf)
        return buf.getvalue()

    def save(self, output_path):
        data = self.serialize()
        with open(output_path, "wb") as fh:
            fh.write(data)
        return output_path
