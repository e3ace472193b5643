# quotepdf/rendering/renderer.py
from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import structlog
from reportlab.pdfgen import canvas

from quotepdf.errors import DocumentGenerationError, QuotePdfError
from quotepdf.rendering import layout as L
from quotepdf.rendering.fonts import register_font
from quotepdf.rendering.formatting import (
    format_date,
    format_pdf_amount,
    format_pdf_number,
    format_quantity,
    installment_label,
    percent_label,
)
from quotepdf.rendering.images import (
    EmbeddedImage,
    HttpImageFetcher,
    ImageFetcher,
    ImageLoadError,
    load_image,
)
from quotepdf.rendering.layout import PageContext, PageSpec
from quotepdf.rendering.snapshot import BankDetails, DocumentSnapshot, Installment, LineItem, LocalizedText
from quotepdf.rendering.text_wrap import measure_with, row_height, wrap_text
from quotepdf.rendering.translations import labels_for
from quotepdf.services.snapshot_editor import validate_snapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RenderOptions:
    page: PageSpec = field(default_factory=PageSpec.a4)
    full_width_numbers: bool = True
    validate: bool = True


# =========================
# Shared helpers
# =========================

def _amount(ctx: PageContext, value, currency: str) -> str:
    return format_pdf_amount(value, currency, full_width=ctx.full_width_numbers)


def _number(ctx: PageContext, value, currency: str) -> str:
    return format_pdf_number(value, currency, full_width=ctx.full_width_numbers)


async def _load_or_skip(fetcher: ImageFetcher, ref: str, kind: str) -> Optional[EmbeddedImage]:
    result = await load_image(fetcher, ref, kind)
    if isinstance(result, ImageLoadError):
        logger.warning("image_load_failed", kind=result.kind, ref=result.ref, error=result.reason)
        return None
    return result


def _draw_image(ctx: PageContext, img: EmbeddedImage, x: float, y_top: float, w: float, h: float) -> None:
    ctx.c.drawImage(img.reader, x, y_top - h, width=w, height=h, mask="auto")


# =========================
# Header
# =========================

async def draw_header(
    ctx: PageContext,
    data: DocumentSnapshot,
    fetcher: ImageFetcher,
) -> float:
    """
    Logo (optional), centered title, document number and the two dates.
    Returns y below the header block.
    """
    t = ctx.labels
    y = ctx.ps.top_y

    if data.logo_image_ref:
        logo = await _load_or_skip(fetcher, data.logo_image_ref, "logo")
        if logo is not None:
            w, h = L.fit_image_box(logo.width, logo.height, L.LOGO_MAX_W, L.LOGO_MAX_H)
            _draw_image(ctx, logo, (ctx.ps.w - w) / 2.0, y, w, h)
            y -= h + L.LOGO_GAP

    ctx.centered_text(y, t.title, L.TITLE_FS)
    y -= L.TITLE_GAP

    if data.issuer_display_name is not None:
        issuer = data.issuer_display_name.pick(ctx.locale)
        if issuer:
            ctx.centered_text(y, issuer, L.ISSUER_FS)
            y -= L.ISSUER_GAP

    x0 = ctx.ps.x0
    ctx.text(x0, y, f"{t.document_number}: {data.document_number}", L.HEADER_FS)
    y -= L.HEADER_LINE_GAP

    ctx.text(x0, y, f"{t.issue_date}: {format_date(data.issue_date, ctx.locale)}", L.HEADER_FS)
    ctx.text(
        x0 + L.EXPIRY_X_OFFSET,
        y,
        f"{t.expiry_date}: {format_date(data.expiry_date, ctx.locale)}",
        L.HEADER_FS,
    )
    y -= L.HEADER_BOTTOM_GAP

    return y


# =========================
# Party info
# =========================

def draw_party_info(ctx: PageContext, name: Optional[LocalizedText], y: float) -> float:
    ctx.text(ctx.ps.x0, y, ctx.labels.customer, L.SECTION_FS)
    y -= L.PARTY_LABEL_GAP

    display = name.pick(ctx.locale) if name is not None else ""
    ctx.text(ctx.ps.x0, y, display or "-", L.PARTY_NAME_FS)
    y -= L.PARTY_BOTTOM_GAP

    return y


# =========================
# Items table
# =========================

def item_description_lines(ctx: PageContext, item: LineItem) -> List[str]:
    measure = measure_with(ctx.font, L.BODY_FS)
    return wrap_text(item.description.pick(ctx.locale), L.ITEM_DESC_WRAP_W, measure)


def item_row_height(line_count: int) -> float:
    return row_height(line_count, L.ITEM_LINE_H, L.ITEM_ROW_PADDING, L.ITEM_MIN_ROW_H)


def _draw_items_header_row(ctx: PageContext, y: float) -> float:
    t = ctx.labels
    xs = L.column_xs(ctx.ps.x0, L.ITEM_COL_WIDTHS)

    ctx.shaded_rect(ctx.ps.x0, y - 5, ctx.ps.content_w, L.ITEMS_HEADER_ROW_H)
    for x, header in zip(xs, (t.description, t.quantity, t.unit_price, t.amount)):
        ctx.text(x + L.CELL_PAD, y + 3, header, L.BODY_FS)

    return y - L.ITEMS_HEADER_ROW_H


def _draw_item_row(
    ctx: PageContext,
    item: LineItem,
    lines: Sequence[str],
    currency: str,
    y: float,
) -> None:
    xs = L.column_xs(ctx.ps.x0, L.ITEM_COL_WIDTHS)

    ctx.rule(ctx.ps.x0, ctx.ps.x0 + ctx.ps.content_w, y + L.ROW_RULE_RISE, 0.5)

    for i, ln in enumerate(lines):
        ctx.text(xs[0] + L.CELL_PAD, y - L.ROW_TEXT_DROP - i * L.ITEM_LINE_H, ln, L.BODY_FS)

    text_y = y - L.ROW_TEXT_DROP
    ctx.text(xs[1] + L.CELL_PAD, text_y, format_quantity(item.quantity), L.BODY_FS)
    ctx.text(xs[2] + L.CELL_PAD, text_y, _number(ctx, item.unit_price, currency), L.BODY_FS)
    ctx.text(xs[3] + L.CELL_PAD, text_y, _number(ctx, item.line_total, currency), L.BODY_FS)


def draw_items_table(
    ctx: PageContext,
    items: Sequence[LineItem],
    currency: str,
    y: float,
) -> float:
    """
    Section label, shaded header row, then one row per item sized to its
    wrapped description. Rows that would cross the bottom margin move to a
    new page, which repeats the header row. The label and header only stay
    on the current page when the first row fits under them.
    """
    rows = []
    for item in items:
        lines = item_description_lines(ctx, item)
        rows.append((item, lines, item_row_height(len(lines))))

    first = rows[0][2] if rows else L.SECTION_BOTTOM_GAP
    # never ask for more than a fresh page holds
    page_room = ctx.ps.top_y - L.CONTINUED_TOP_GAP - ctx.ps.bottom_y
    y = ctx.ensure_room(y, min(L.ITEMS_LABEL_GAP + L.ITEMS_HEADER_ROW_H + first, page_room))

    ctx.text(ctx.ps.x0, y, ctx.labels.items, L.SECTION_FS)
    y -= L.ITEMS_LABEL_GAP

    y = _draw_items_header_row(ctx, y)

    on_page = 0
    for item, lines, need in rows:
        if on_page and (y - need) < ctx.ps.bottom_y:
            y = ctx.new_page()
            y = _draw_items_header_row(ctx, y)
            on_page = 0

        if (y - need) < ctx.ps.bottom_y:
            # taller than a whole page; drawn anyway, past the margin
            logger.warning(
                "row_exceeds_page",
                page=ctx.page_no,
                row_height=need,
                available=y - ctx.ps.bottom_y,
            )

        _draw_item_row(ctx, item, lines, currency, y)
        y -= need
        on_page += 1

    return y - L.SECTION_BOTTOM_GAP


# =========================
# Financial summary
# =========================

def draw_financial_summary(ctx: PageContext, data: DocumentSnapshot, y: float) -> float:
    t = ctx.labels
    y = ctx.ensure_room(y, L.SUMMARY_BLOCK_H)

    right_x = ctx.ps.x0 + ctx.ps.content_w - L.SUMMARY_BLOCK_W
    value_x = right_x + L.SUMMARY_VALUE_DX
    cur = data.currency_code

    ctx.text(right_x, y, f"{t.subtotal}:", L.BODY_FS)
    ctx.text(value_x, y, _amount(ctx, data.subtotal, cur), L.BODY_FS)
    y -= L.SUMMARY_LINE_GAP

    ctx.text(right_x, y, f"{t.tax} ({percent_label(data.tax_rate)}):", L.BODY_FS)
    ctx.text(value_x, y, _amount(ctx, data.tax_amount, cur), L.BODY_FS)
    y -= L.SUMMARY_TAX_GAP

    ctx.rule(right_x, ctx.ps.x0 + ctx.ps.content_w, y + L.SUMMARY_RULE_RISE, 1)

    ctx.text(right_x, y, f"{t.total}:", L.SUMMARY_TOTAL_FS)
    ctx.text(value_x, y, _amount(ctx, data.total, cur), L.SUMMARY_TOTAL_FS)
    y -= L.SUMMARY_BOTTOM_GAP

    return y


# =========================
# Installment schedule (optional)
# =========================

def _draw_terms_header_row(ctx: PageContext, y: float) -> float:
    t = ctx.labels
    xs = L.column_xs(ctx.ps.x0, L.TERM_COL_WIDTHS)

    ctx.shaded_rect(ctx.ps.x0, y - 5, L.TERM_TABLE_W, L.TERMS_HEADER_ROW_H)
    for x, header in zip(xs, (t.term_number, t.percentage, t.due_date, t.term_amount)):
        ctx.text(x + L.CELL_PAD, y + 2, header, L.TERM_FS)

    return y - L.TERMS_HEADER_ROW_H


def draw_installments(
    ctx: PageContext,
    terms: Optional[Sequence[Installment]],
    currency: str,
    y: float,
) -> float:
    if not terms:
        return y

    y = ctx.ensure_room(y, L.TERMS_LABEL_GAP + L.TERMS_HEADER_ROW_H + L.TERM_ROW_H)

    ctx.text(ctx.ps.x0, y, ctx.labels.payment_terms, L.SECTION_FS)
    y -= L.TERMS_LABEL_GAP

    y = _draw_terms_header_row(ctx, y)
    xs = L.column_xs(ctx.ps.x0, L.TERM_COL_WIDTHS)

    for term in terms:
        if (y - L.TERM_ROW_H) < ctx.ps.bottom_y:
            y = ctx.new_page()
            y = _draw_terms_header_row(ctx, y)

        ctx.rule(ctx.ps.x0, ctx.ps.x0 + L.TERM_TABLE_W, y + L.ROW_RULE_RISE, 0.5)

        text_y = y - L.ROW_TEXT_DROP
        ctx.text(xs[0] + L.CELL_PAD, text_y, installment_label(term.index, ctx.locale), L.TERM_FS)
        ctx.text(xs[1] + L.CELL_PAD, text_y, percent_label(term.percentage), L.TERM_FS)
        ctx.text(xs[2] + L.CELL_PAD, text_y, format_date(term.due_date, ctx.locale), L.TERM_FS)
        ctx.text(xs[3] + L.CELL_PAD, text_y, _amount(ctx, term.amount, currency), L.TERM_FS)

        y -= L.TERM_ROW_H

    return y - L.SECTION_BOTTOM_GAP


# =========================
# Notes (optional)
# =========================

def notes_lines(ctx: PageContext, notes: LocalizedText) -> List[str]:
    text = notes.pick(ctx.locale)
    if not text:
        return []
    measure = measure_with(ctx.font, L.BODY_FS)
    return wrap_text(text, ctx.ps.content_w - L.NOTES_WRAP_INSET, measure)


def draw_notes(ctx: PageContext, notes: Optional[LocalizedText], y: float) -> float:
    if notes is None:
        return y

    y = ctx.ensure_room(y, L.NOTES_LABEL_GAP + L.NOTES_LINE_H)

    ctx.text(ctx.ps.x0, y, ctx.labels.notes, L.SECTION_FS)
    y -= L.NOTES_LABEL_GAP

    for ln in notes_lines(ctx, notes):
        y = ctx.ensure_room(y, L.NOTES_LINE_H)
        ctx.text(ctx.ps.x0, y, ln, L.BODY_FS)
        y -= L.NOTES_LINE_H

    return y - L.SECTION_BOTTOM_GAP


# =========================
# Bank info / signature (optional)
# =========================

async def draw_bank_info(
    ctx: PageContext,
    bank: Optional[BankDetails],
    fetcher: ImageFetcher,
    y: float,
) -> float:
    if bank is None or bank.is_empty:
        return y

    t = ctx.labels
    y = ctx.ensure_room(y, L.BANK_LABEL_GAP + L.BANK_LINE_GAP)

    ctx.text(ctx.ps.x0, y, t.bank_info, L.SECTION_FS)
    y -= L.BANK_LABEL_GAP

    for label, value in ((t.bank_name, bank.bank_name), (t.bank_account, bank.account), (t.bank_code, bank.code)):
        if not value:
            continue
        y = ctx.ensure_room(y, L.BANK_LINE_GAP)
        ctx.text(ctx.ps.x0, y, f"{label}: {value}", L.BODY_FS)
        y -= L.BANK_LINE_GAP

    if bank.passbook_image_ref:
        y -= L.PASSBOOK_TOP_GAP
        passbook = await _load_or_skip(fetcher, bank.passbook_image_ref, "passbook")
        if passbook is not None:
            w, h = L.fit_image_box(passbook.width, passbook.height, L.PASSBOOK_MAX_W, L.PASSBOOK_MAX_H)
            y = ctx.ensure_room(y, h + L.IMAGE_BOTTOM_GAP)
            _draw_image(ctx, passbook, ctx.ps.x0, y, w, h)
            y -= h + L.IMAGE_BOTTOM_GAP

    return y - L.SECTION_BOTTOM_GAP


async def draw_signature(
    ctx: PageContext,
    signature_ref: str,
    fetcher: ImageFetcher,
    y: float,
) -> float:
    if not signature_ref:
        return y

    y = ctx.ensure_room(y, L.SIGNATURE_LABEL_GAP + L.SIGNATURE_MAX_H + L.IMAGE_BOTTOM_GAP)

    ctx.text(ctx.ps.x0, y, ctx.labels.company_signature, L.SECTION_FS)
    y -= L.SIGNATURE_LABEL_GAP

    signature = await _load_or_skip(fetcher, signature_ref, "signature")
    if signature is not None:
        w, h = L.fit_image_box(signature.width, signature.height, L.SIGNATURE_MAX_W, L.SIGNATURE_MAX_H)
        _draw_image(ctx, signature, ctx.ps.x0, y, w, h)
        y -= h + L.IMAGE_BOTTOM_GAP

    return y


# =========================
# Assembler
# =========================

Section = Callable[[float], Awaitable[float]]


def _optional_sections(
    ctx: PageContext,
    data: DocumentSnapshot,
    fetcher: ImageFetcher,
) -> List[Tuple[str, Section]]:
    """
    Installments -> notes -> bank -> signature, keeping only those with data.
    """

    async def installments(y: float) -> float:
        return draw_installments(ctx, data.installment_schedule, data.currency_code, y)

    async def notes(y: float) -> float:
        return draw_notes(ctx, data.notes, y)

    async def bank(y: float) -> float:
        return await draw_bank_info(ctx, data.bank_details, fetcher, y)

    async def signature(y: float) -> float:
        return await draw_signature(ctx, data.signature_image_ref, fetcher, y)

    candidates = [
        ("installments", data.has_installments, installments),
        ("notes", data.has_notes, notes),
        ("bank", data.bank_details is not None and not data.bank_details.is_empty, bank),
        ("signature", bool(data.signature_image_ref), signature),
    ]
    return [(name, fn) for name, present, fn in candidates if present]


def new_page_context(page: PageSpec, font: str, locale: str, full_width_numbers: bool = True) -> PageContext:
    buf = io.BytesIO()
    # invariant=1: no creation date or random document id, so reruns are byte-identical
    c = canvas.Canvas(buf, pagesize=(page.w, page.h), invariant=1)
    return PageContext(
        c=c,
        buf=buf,
        ps=page,
        font=font,
        locale=locale,
        labels=labels_for(locale),
        full_width_numbers=full_width_numbers,
    )


async def generate_quotation_pdf(
    data: DocumentSnapshot,
    locale: str,
    font_bytes: bytes,
    *,
    fetcher: Optional[ImageFetcher] = None,
    options: Optional[RenderOptions] = None,
) -> bytes:
    """
    Render one quotation to PDF bytes.

    Header -> party -> items -> summary -> [installments] -> [notes]
    -> [bank] -> [signature]. Image problems are logged and skipped; any
    other failure aborts this document only.
    """
    opts = options or RenderOptions()
    opts.page.validate()
    labels_for(locale)

    if opts.validate:
        validate_snapshot(data)

    font = register_font(font_bytes)
    fetcher = fetcher or HttpImageFetcher()

    ctx = new_page_context(opts.page, font, locale, opts.full_width_numbers)
    log = logger.bind(document_number=data.document_number, locale=locale)

    try:
        y = await draw_header(ctx, data, fetcher)
        y = draw_party_info(ctx, data.counterparty_name, y)
        y = draw_items_table(ctx, data.line_items, data.currency_code, y)
        y = draw_financial_summary(ctx, data, y)

        for name, section in _optional_sections(ctx, data, fetcher):
            y = await section(y)
            log.debug("section_drawn", section=name, y=y, page=ctx.page_no)

        out = ctx.finish()
    except QuotePdfError:
        raise
    except Exception as e:
        raise DocumentGenerationError(f"Failed to render {data.document_number}: {type(e).__name__}: {e}") from e

    log.info("quotation_rendered", pages=ctx.page_no, size=len(out))
    return out
