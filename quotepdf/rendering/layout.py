# quotepdf/rendering/layout.py
from __future__ import annotations

import io
from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

from reportlab.pdfgen import canvas

from quotepdf.errors import PageGeometryError

if TYPE_CHECKING:
    from quotepdf.rendering.translations import Labels


# =========================
# Page + layout constants
# =========================

A4_WIDTH = 595.28
A4_HEIGHT = 841.89
MARGIN_LEFT = 50
MARGIN_RIGHT = 50
MARGIN_TOP = 50
MARGIN_BOTTOM = 50
CONTENT_WIDTH = A4_WIDTH - MARGIN_LEFT - MARGIN_RIGHT

# Header
TITLE_FS = 24
TITLE_GAP = 35
ISSUER_FS = 12
ISSUER_GAP = 18
HEADER_FS = 11
HEADER_LINE_GAP = 18
HEADER_BOTTOM_GAP = 30
EXPIRY_X_OFFSET = 200
LOGO_MAX_W = 120
LOGO_MAX_H = 60
LOGO_GAP = 15

# Section labels / party block
SECTION_FS = 12
PARTY_NAME_FS = 14
PARTY_LABEL_GAP = 18
PARTY_BOTTOM_GAP = 30

# Items table
BODY_FS = 10
ITEM_COL_WIDTHS: Tuple[float, ...] = (250, 60, 100, 100)
ITEM_DESC_WRAP_W = 240
ITEM_LINE_H = 14
ITEM_ROW_PADDING = 6
ITEM_MIN_ROW_H = 20
ITEMS_LABEL_GAP = 25
ITEMS_HEADER_ROW_H = 25
SECTION_BOTTOM_GAP = 10
ITEMS_HEADER_BLOCK_H = ITEMS_LABEL_GAP + ITEMS_HEADER_ROW_H + SECTION_BOTTOM_GAP
CELL_PAD = 5
ROW_TEXT_DROP = 10
ROW_RULE_RISE = 3

# Financial summary
SUMMARY_BLOCK_W = 150
SUMMARY_VALUE_DX = 80
SUMMARY_LINE_GAP = 18
SUMMARY_TAX_GAP = 22
SUMMARY_RULE_RISE = 8
SUMMARY_TOTAL_FS = 12
SUMMARY_BOTTOM_GAP = 30
SUMMARY_BLOCK_H = SUMMARY_LINE_GAP + SUMMARY_TAX_GAP + SUMMARY_BOTTOM_GAP

# Installment schedule
TERM_FS = 9
TERM_COL_WIDTHS: Tuple[float, ...] = (80, 100, 150, 150)
TERM_TABLE_W = 480
TERMS_LABEL_GAP = 25
TERMS_HEADER_ROW_H = 22
TERM_ROW_H = 20

# Notes
NOTES_LABEL_GAP = 18
NOTES_LINE_H = 14
NOTES_WRAP_INSET = 10

# Bank / signature
BANK_LABEL_GAP = 20
BANK_LINE_GAP = 16
PASSBOOK_TOP_GAP = 10
PASSBOOK_MAX_W = 200
PASSBOOK_MAX_H = 120
SIGNATURE_LABEL_GAP = 20
SIGNATURE_MAX_W = 150
SIGNATURE_MAX_H = 80
IMAGE_BOTTOM_GAP = 10

# Footer / pagination
FOOTER_FS = 8
FOOTER_DROP = 20
CONTINUED_TOP_GAP = 20

# Colors (rgb 0..1)
HEADER_FILL = (0.95, 0.95, 0.95)
RULE_GRAY = (0.5, 0.5, 0.5)


@dataclass(frozen=True)
class PageSpec:
    w: float = A4_WIDTH
    h: float = A4_HEIGHT
    margin_l: float = MARGIN_LEFT
    margin_r: float = MARGIN_RIGHT
    margin_t: float = MARGIN_TOP
    margin_b: float = MARGIN_BOTTOM

    @classmethod
    def a4(cls) -> "PageSpec":
        return cls()

    @property
    def x0(self) -> float:
        return self.margin_l

    @property
    def x1(self) -> float:
        return self.w - self.margin_r

    @property
    def content_w(self) -> float:
        return self.x1 - self.x0

    @property
    def top_y(self) -> float:
        return self.h - self.margin_t

    @property
    def bottom_y(self) -> float:
        return self.margin_b

    def validate(self) -> None:
        if self.w <= 0 or self.h <= 0:
            raise PageGeometryError(f"Page size must be positive, got {self.w}x{self.h}")
        if min(self.margin_l, self.margin_r, self.margin_t, self.margin_b) < 0:
            raise PageGeometryError("Margins must not be negative")
        if self.content_w <= ITEM_COL_WIDTHS[0]:
            raise PageGeometryError(
                f"Content width {self.content_w:g} is narrower than the description column ({ITEM_COL_WIDTHS[0]:g})"
            )
        if self.top_y - self.bottom_y <= ITEMS_HEADER_BLOCK_H:
            raise PageGeometryError("Vertical margins leave no room for content")


def fit_image_box(img_w: float, img_h: float, max_w: float, max_h: float) -> Tuple[float, float]:
    """
    Scale (img_w, img_h) to fit inside max_w x max_h, preserving aspect ratio.
    """
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Image has no area: {img_w}x{img_h}")
    scale = min(max_w / img_w, max_h / img_h)
    return img_w * scale, img_h * scale


def column_xs(x0: float, widths: Tuple[float, ...]) -> Tuple[float, ...]:
    xs = []
    x = x0
    for w in widths:
        xs.append(x)
        x += w
    return tuple(xs)


# =========================
# Per-document drawing context
# =========================

@dataclass
class PageContext:
    """
    Everything one generation draws against: its own canvas, page geometry,
    font and labels. Created per document and never shared.
    """
    c: canvas.Canvas
    buf: io.BytesIO
    ps: PageSpec
    font: str
    locale: str
    labels: "Labels"
    full_width_numbers: bool = True
    page_no: int = 1

    def text(self, x: float, y: float, s: str, size: float) -> None:
        self.c.setFont(self.font, size)
        self.c.setFillColorRGB(0, 0, 0)
        self.c.drawString(x, y, s)

    def centered_text(self, y: float, s: str, size: float) -> None:
        self.c.setFont(self.font, size)
        self.c.setFillColorRGB(0, 0, 0)
        self.c.drawCentredString(self.ps.w / 2.0, y, s)

    def rule(self, x_start: float, x_end: float, y: float, width: float) -> None:
        self.c.setStrokeColorRGB(*RULE_GRAY)
        self.c.setLineWidth(width)
        self.c.line(x_start, y, x_end, y)

    def shaded_rect(self, x: float, y: float, w: float, h: float) -> None:
        self.c.setFillColorRGB(*HEADER_FILL)
        self.c.rect(x, y, w, h, stroke=0, fill=1)
        self.c.setFillColorRGB(0, 0, 0)

    def draw_footer(self) -> None:
        self.c.setFont(self.font, FOOTER_FS)
        self.c.setFillColorRGB(*RULE_GRAY)
        self.c.drawCentredString(
            self.ps.w / 2.0,
            self.ps.bottom_y - FOOTER_DROP,
            self.labels.page.format(n=self.page_no),
        )
        self.c.setFillColorRGB(0, 0, 0)

    def new_page(self) -> float:
        """
        Close the current page and return the y where content resumes.
        """
        self.draw_footer()
        self.c.showPage()
        self.page_no += 1
        return self.ps.top_y - CONTINUED_TOP_GAP

    def ensure_room(self, y: float, need: float) -> float:
        if (y - need) < self.ps.bottom_y:
            return self.new_page()
        return y

    def finish(self) -> bytes:
        self.draw_footer()
        self.c.showPage()
        self.c.save()
        return self.buf.getvalue()
