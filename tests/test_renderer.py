"""Tests for quotepdf.rendering.renderer - layout stages and the assembler."""

import dataclasses
import io
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest
from pypdf import PdfReader

from quotepdf.errors import (
    FontEmbedError,
    PageGeometryError,
    SnapshotValidationError,
    UnsupportedLocaleError,
)
from quotepdf.rendering import renderer
from quotepdf.rendering.images import HttpImageFetcher
from quotepdf.rendering.layout import ITEMS_HEADER_BLOCK_H, PageSpec
from quotepdf.rendering.renderer import (
    RenderOptions,
    draw_bank_info,
    draw_financial_summary,
    draw_header,
    draw_installments,
    draw_items_table,
    draw_notes,
    draw_party_info,
    draw_signature,
    generate_quotation_pdf,
    item_description_lines,
    item_row_height,
)
from quotepdf.rendering.snapshot import BankDetails, LineItem, LocalizedText
from quotepdf.services.snapshot_editor import json_to_snapshot, normalize_snapshot_fields


def item(desc: str, total: str = "0") -> LineItem:
    return LineItem(
        description=LocalizedText(zh=desc, en=desc),
        quantity=Decimal("1"),
        unit_price=Decimal(total),
        line_total=Decimal(total),
    )


@pytest.fixture
def capture_ctx(monkeypatch, make_ctx):
    """Make generate_quotation_pdf draw on a recording context and expose it."""
    made = []

    def fake_new_page_context(page, font, locale, full_width_numbers=True):
        ctx = make_ctx(locale=locale, full_width_numbers=full_width_numbers, page=page)
        made.append(ctx)
        return ctx

    monkeypatch.setattr(renderer, "new_page_context", fake_new_page_context)
    return made


class TestItemsTable:
    def test_zero_items_only_header_block(self, make_ctx):
        ctx = make_ctx()
        y = draw_items_table(ctx, [], "TWD", 700)

        assert y == 700 - ITEMS_HEADER_BLOCK_H
        assert y == 640
        assert ctx.strings() == ["報價項目", "品項說明", "數量", "單價", "金額"]

    def test_short_description_uses_min_row_height(self, make_ctx):
        ctx = make_ctx()
        lines = item_description_lines(ctx, item("Design fee"))
        assert len(lines) == 1
        assert item_row_height(len(lines)) == 20

        y = draw_items_table(ctx, [item("Design fee")], "TWD", 700)
        assert y == 700 - 25 - 25 - 20 - 10

    def test_long_description_grows_row(self, make_ctx):
        ctx = make_ctx()
        long_item = item("Construction drawings with elevations and ceiling plan " * 8)
        lines = item_description_lines(ctx, long_item)

        assert len(lines) > 1
        need = item_row_height(len(lines))
        assert need == max(20, len(lines) * 14 + 6)
        assert draw_items_table(ctx, [long_item], "TWD", 700) == 700 - 50 - need - 10

    def test_300_cjk_characters_wrap_deterministically(self, make_ctx):
        ctx = make_ctx()
        cjk = item("報價單品項說明文字" * 33 + "報價單")
        assert len(cjk.description.zh) == 300

        first = item_description_lines(ctx, cjk)
        second = item_description_lines(make_ctx(), cjk)

        assert first == second
        assert "".join(first) == cjk.description.zh

    def test_amounts_full_width_by_default(self, make_ctx):
        ctx = make_ctx()
        draw_items_table(ctx, [item("Design fee", "60000")], "TWD", 700)
        assert "６０，０００" in ctx.strings()

    def test_amounts_ascii_when_disabled(self, make_ctx):
        ctx = make_ctx(full_width_numbers=False)
        draw_items_table(ctx, [item("Design fee", "60000")], "TWD", 700)
        assert "60,000" in ctx.strings()

    def test_rows_past_bottom_margin_move_to_new_page(self, make_ctx):
        ctx = make_ctx()
        items = [item(f"Item {n}", "100") for n in range(60)]

        draw_items_table(ctx, items, "TWD", 700)

        assert ctx.page_no > 1
        # header row repeated on every page the table spans
        assert ctx.strings().count("品項說明") == ctx.page_no
        assert all(t[1] >= ctx.ps.bottom_y for t in ctx.texts)

    def test_header_block_moves_with_first_row(self, make_ctx):
        ctx = make_ctx()
        # 60 pt of label and header fit above the margin, the first row does not
        y0 = ctx.ps.bottom_y + ITEMS_HEADER_BLOCK_H + 5

        draw_items_table(ctx, [item("Design fee", "100")], "TWD", y0)

        assert ctx.page_no == 2
        assert ctx.strings().count("品項說明") == 1
        label = [t for t in ctx.texts if t[2] == "報價項目"]
        assert label[0][1] == pytest.approx(ctx.ps.top_y - 20)

    def test_zero_items_keep_header_block_reservation(self, make_ctx):
        ctx = make_ctx()
        y0 = ctx.ps.bottom_y + ITEMS_HEADER_BLOCK_H + 5

        assert draw_items_table(ctx, [], "TWD", y0) == y0 - ITEMS_HEADER_BLOCK_H
        assert ctx.page_no == 1

    def test_row_taller_than_page_is_logged(self, monkeypatch, make_ctx):
        log = MagicMock()
        monkeypatch.setattr(renderer, "logger", log)
        ctx = make_ctx()
        huge = item("Construction drawings with elevations and ceiling plan " * 150)
        need = item_row_height(len(item_description_lines(ctx, huge)))
        assert need > ctx.ps.top_y - ctx.ps.bottom_y

        draw_items_table(ctx, [item("Design fee"), huge], "TWD", 700)

        # no page with a header row and nothing under it
        assert ctx.page_no == 2
        assert ctx.strings().count("品項說明") == 2
        log.warning.assert_called_once()
        args, kwargs = log.warning.call_args
        assert args[0] == "row_exceeds_page"
        assert kwargs["row_height"] == need
        assert kwargs["page"] == 2

    def test_rows_that_fit_do_not_warn(self, monkeypatch, make_ctx):
        log = MagicMock()
        monkeypatch.setattr(renderer, "logger", log)

        draw_items_table(make_ctx(), [item(f"Item {n}", "100") for n in range(60)], "TWD", 700)

        log.warning.assert_not_called()


class TestFinancialSummary:
    def test_twd_totals_zh(self, make_ctx, sample_snapshot):
        ctx = make_ctx()
        y = draw_financial_summary(ctx, sample_snapshot, 500)

        assert y == 500 - 18 - 22 - 30
        strings = ctx.strings()
        assert "TWD　８６，０００" in strings
        assert "TWD　４，３００" in strings
        assert "稅金 (5%):" in strings

        total = [t for t in ctx.texts if t[2] == "TWD　９０，３００"]
        assert len(total) == 1
        _, total_y, _, size = total[0]
        assert size == 12

        rule_y = ctx.rules[-1][2]
        assert rule_y > total_y

    def test_english_labels(self, make_ctx, sample_snapshot):
        ctx = make_ctx(locale="en")
        draw_financial_summary(ctx, sample_snapshot, 500)
        assert "Total:" in ctx.strings()

    def test_normalized_consulting_quote(self, make_ctx, consulting_fields):
        fields = normalize_snapshot_fields(consulting_fields)

        assert [it["line_total"] for it in fields["line_items"]] == ["50000", "36000"]
        assert (fields["subtotal"], fields["tax_amount"], fields["total"]) == ("86000", "4300", "90300")

        ctx = make_ctx()
        draw_financial_summary(ctx, json_to_snapshot(fields), 500)

        total = [t for t in ctx.texts if t[2] == "TWD　９０，３００"]
        assert len(total) == 1
        assert total[0][3] == 12
        assert ctx.rules[-1][2] > total[0][1]


class TestOptionalStages:
    def test_notes_absent_leaves_y(self, make_ctx):
        ctx = make_ctx()
        assert draw_notes(ctx, None, 432.5) == 432.5
        assert ctx.texts == []

    def test_notes_blank_paragraph_keeps_line_slot(self, make_ctx):
        ctx = make_ctx(locale="en")
        y = draw_notes(ctx, LocalizedText(en="First\n\nThird"), 500)
        assert y == 500 - 18 - 3 * 14 - 10

    def test_installments_absent_leaves_y(self, make_ctx):
        ctx = make_ctx()
        assert draw_installments(ctx, None, "TWD", 432.5) == 432.5
        assert draw_installments(ctx, (), "TWD", 432.5) == 432.5

    def test_installments_table(self, make_ctx, two_installments):
        ctx = make_ctx()
        y = draw_installments(ctx, two_installments, "TWD", 500)

        assert y == 500 - 25 - 22 - 2 * 20 - 10
        strings = ctx.strings()
        assert "付款條件" in strings
        assert "第1期" in strings and "第2期" in strings
        assert "30%" in strings
        assert "2025年1月31日" in strings
        assert "-" in strings
        assert "TWD　２７，０９０" in strings

    @pytest.mark.asyncio
    async def test_bank_text_only(self, make_ctx, bank_details, dict_fetcher):
        ctx = make_ctx(locale="en")
        y = await draw_bank_info(ctx, bank_details, dict_fetcher(), 700)

        assert y == 700 - 20 - 3 * 16 - 10
        assert "Bank: Example Bank" in ctx.strings()

    @pytest.mark.asyncio
    async def test_bank_skips_empty_lines(self, make_ctx, dict_fetcher):
        ctx = make_ctx(locale="en")
        y = await draw_bank_info(ctx, BankDetails(account="123"), dict_fetcher(), 700)
        assert y == 700 - 20 - 16 - 10

    @pytest.mark.asyncio
    async def test_bank_with_passbook(self, make_ctx, bank_details, dict_fetcher, png_bytes):
        ctx = make_ctx()
        bank = dataclasses.replace(bank_details, passbook_image_ref="passbook.png")
        y = await draw_bank_info(ctx, bank, dict_fetcher({"passbook.png": png_bytes}), 700)

        # 240x120 fits the 200x120 box as 200x100
        assert y == pytest.approx(700 - 20 - 48 - 10 - 100 - 10 - 10)

    @pytest.mark.asyncio
    async def test_bank_passbook_missing_is_skipped(self, make_ctx, bank_details, dict_fetcher):
        ctx = make_ctx()
        bank = dataclasses.replace(bank_details, passbook_image_ref="gone.png")
        y = await draw_bank_info(ctx, bank, dict_fetcher(), 700)
        assert y == 700 - 20 - 48 - 10 - 10

    @pytest.mark.asyncio
    async def test_signature(self, make_ctx, dict_fetcher, jpeg_bytes):
        ctx = make_ctx()
        y = await draw_signature(ctx, "sig.jpg", dict_fetcher({"sig.jpg": jpeg_bytes}), 700)

        # 300x160 fits the 150x80 box exactly
        assert y == pytest.approx(700 - 20 - 80 - 10)
        assert "公司簽章" in ctx.strings()

    @pytest.mark.asyncio
    async def test_signature_absent(self, make_ctx, dict_fetcher):
        ctx = make_ctx()
        assert await draw_signature(ctx, "", dict_fetcher(), 700) == 700


class TestHeader:
    @pytest.mark.asyncio
    async def test_header_layout(self, make_ctx, sample_snapshot, dict_fetcher):
        ctx = make_ctx()
        y = await draw_header(ctx, sample_snapshot, dict_fetcher())

        assert y == pytest.approx(ctx.ps.top_y - 35 - 18 - 30)
        strings = ctx.strings()
        assert strings[0] == "報價單"
        assert "報價單編號: Q-2025-0001" in strings
        assert "開立日期: 2025年1月15日" in strings
        assert "有效期限: 2025年2月14日" in strings

    @pytest.mark.asyncio
    async def test_logo_pushes_content_down(self, make_ctx, sample_snapshot, dict_fetcher, png_bytes):
        data = dataclasses.replace(sample_snapshot, logo_image_ref="logo.png")
        ctx = make_ctx()
        y = await draw_header(ctx, data, dict_fetcher({"logo.png": png_bytes}))

        assert y == pytest.approx(ctx.ps.top_y - 60 - 15 - 35 - 18 - 30)

    @pytest.mark.asyncio
    async def test_logo_404_matches_no_logo(self, monkeypatch, make_ctx, sample_snapshot, dict_fetcher):
        log = MagicMock()
        monkeypatch.setattr(renderer, "logger", log)

        data = dataclasses.replace(sample_snapshot, logo_image_ref="https://img.test/logo.png")
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404))) as client:
            y_missing = await draw_header(make_ctx(), data, HttpImageFetcher(client=client))

        y_plain = await draw_header(make_ctx(), sample_snapshot, dict_fetcher())

        assert y_missing == y_plain
        log.warning.assert_called_once()
        args, kwargs = log.warning.call_args
        assert args[0] == "image_load_failed"
        assert kwargs["kind"] == "logo"
        assert kwargs["ref"] == "https://img.test/logo.png"

    @pytest.mark.asyncio
    async def test_issuer_line(self, make_ctx, sample_snapshot, dict_fetcher):
        data = dataclasses.replace(sample_snapshot, issuer_display_name=LocalizedText(zh="好室設計", en="Goodroom"))
        ctx = make_ctx()
        y = await draw_header(ctx, data, dict_fetcher())

        assert "好室設計" in ctx.strings()
        assert y == pytest.approx(ctx.ps.top_y - 35 - 18 - 18 - 30)

    def test_party_info_without_name(self, make_ctx):
        ctx = make_ctx()
        assert draw_party_info(ctx, None, 600) == 600 - 18 - 30
        assert ctx.strings() == ["客戶", "-"]


class TestGenerate:
    @pytest.mark.asyncio
    async def test_returns_pdf(self, sample_snapshot, font_bytes, dict_fetcher):
        data = await generate_quotation_pdf(sample_snapshot, "zh", font_bytes, fetcher=dict_fetcher())

        assert data.startswith(b"%PDF")
        assert len(PdfReader(io.BytesIO(data)).pages) == 1

    @pytest.mark.asyncio
    async def test_english_text_is_extractable(self, sample_snapshot, font_bytes, dict_fetcher):
        data = await generate_quotation_pdf(sample_snapshot, "en", font_bytes, fetcher=dict_fetcher())
        text = PdfReader(io.BytesIO(data)).pages[0].extract_text()

        assert "Quotation" in text
        assert "Q-2025-0001" in text

    @pytest.mark.asyncio
    async def test_output_is_deterministic(self, sample_snapshot, font_bytes, dict_fetcher, png_bytes, two_installments):
        data = dataclasses.replace(
            sample_snapshot,
            logo_image_ref="logo.png",
            installment_schedule=two_installments,
            notes=LocalizedText(zh="備註內容", en="Notes"),
        )
        images = {"logo.png": png_bytes}

        first = await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher(images))
        second = await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher(images))

        assert first == second

    @pytest.mark.asyncio
    async def test_installments_without_notes(self, capture_ctx, sample_snapshot, font_bytes, dict_fetcher, two_installments):
        data = dataclasses.replace(sample_snapshot, installment_schedule=two_installments)

        await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher())

        strings = capture_ctx[0].strings()
        assert "付款條件" in strings
        assert "第1期" in strings and "第2期" in strings
        assert "備註" not in strings
        assert "匯款資訊" not in strings
        assert "公司簽章" not in strings

    @pytest.mark.asyncio
    async def test_section_order(self, capture_ctx, sample_snapshot, font_bytes, dict_fetcher, two_installments, bank_details, jpeg_bytes):
        data = dataclasses.replace(
            sample_snapshot,
            installment_schedule=two_installments,
            notes=LocalizedText(zh="備註內容"),
            bank_details=bank_details,
            signature_image_ref="sig.jpg",
        )

        await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher({"sig.jpg": jpeg_bytes}))

        strings = capture_ctx[0].strings()
        order = ["報價單", "客戶", "報價項目", "總計:", "付款條件", "備註", "匯款資訊", "公司簽章"]
        positions = [strings.index(s) for s in order]
        assert positions == sorted(positions)

    @pytest.mark.asyncio
    async def test_missing_images_do_not_fail(self, sample_snapshot, font_bytes, dict_fetcher):
        data = dataclasses.replace(
            sample_snapshot,
            logo_image_ref="logo.png",
            signature_image_ref="sig.png",
            bank_details=BankDetails(passbook_image_ref="passbook.png"),
        )
        out = await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher())
        assert out.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_many_items_paginate(self, sample_snapshot, font_bytes, dict_fetcher):
        items = tuple(item(f"Item {n}", "100") for n in range(80))
        data = dataclasses.replace(
            sample_snapshot,
            line_items=items,
            subtotal=Decimal("8000"),
            tax_amount=Decimal("400"),
            total=Decimal("8400"),
        )

        out = await generate_quotation_pdf(data, "en", font_bytes, fetcher=dict_fetcher())

        reader = PdfReader(io.BytesIO(out))
        assert len(reader.pages) > 1
        assert "Page 2" in reader.pages[1].extract_text()

    @pytest.mark.asyncio
    async def test_inconsistent_totals_rejected(self, sample_snapshot, font_bytes, dict_fetcher):
        data = dataclasses.replace(sample_snapshot, total=Decimal("99999"))
        with pytest.raises(SnapshotValidationError):
            await generate_quotation_pdf(data, "zh", font_bytes, fetcher=dict_fetcher())

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(self, sample_snapshot, font_bytes, dict_fetcher):
        data = dataclasses.replace(sample_snapshot, total=Decimal("99999"))
        out = await generate_quotation_pdf(
            data, "zh", font_bytes, fetcher=dict_fetcher(), options=RenderOptions(validate=False)
        )
        assert out.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_unsupported_locale(self, sample_snapshot, font_bytes, dict_fetcher):
        with pytest.raises(UnsupportedLocaleError) as exc:
            await generate_quotation_pdf(sample_snapshot, "fr", font_bytes, fetcher=dict_fetcher())
        assert exc.value.locale == "fr"

    @pytest.mark.asyncio
    async def test_empty_font_rejected(self, sample_snapshot, dict_fetcher):
        with pytest.raises(FontEmbedError):
            await generate_quotation_pdf(sample_snapshot, "zh", b"", fetcher=dict_fetcher())

    @pytest.mark.asyncio
    async def test_bad_page_geometry_rejected(self, sample_snapshot, font_bytes, dict_fetcher):
        with pytest.raises(PageGeometryError):
            await generate_quotation_pdf(
                sample_snapshot, "zh", font_bytes, fetcher=dict_fetcher(), options=RenderOptions(page=PageSpec(w=200))
            )
