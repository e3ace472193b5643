# scripts/render_sample_quotation.py
from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

import reportlab
from pypdf import PdfReader

from quotepdf.config import get_settings
from quotepdf.core.logging import configure_logging
from quotepdf.rendering.fonts import load_font_bytes
from quotepdf.rendering.renderer import RenderOptions, generate_quotation_pdf
from quotepdf.services.export_service import export_filename
from quotepdf.services.snapshot_editor import json_to_snapshot, normalize_snapshot_fields


def _guess_font_path() -> Path:
    candidates = [
        get_settings().font_path,
        Path("fonts/NotoSansTC-Regular.ttf"),
        # Latin only; CJK glyphs render as boxes but layout still runs
        Path(reportlab.__file__).parent / "fonts" / "Vera.ttf",
    ]
    for p in candidates:
        if p.exists():
            return p
    return candidates[0]


def sample_fields() -> dict:
    return {
        "document_number": "Q-2025-0001",
        "issue_date": "2025-01-15",
        "expiry_date": "2025-02-14",
        "counterparty_name": {"zh": "範例科技股份有限公司", "en": "Example Tech Co., Ltd."},
        "issuer_display_name": {"zh": "好室設計", "en": "Goodroom Design"},
        "currency_code": "TWD",
        "tax_rate": "5",
        "line_items": [
            {
                "description": {"zh": "室內設計規劃", "en": "Interior design planning"},
                "quantity": "1",
                "unit_price": "60000",
            },
            {
                "description": {
                    "zh": "現場丈量與施工圖繪製，包含平面配置圖、立面圖、水電配置圖及天花板圖。" * 3,
                    "en": "Site survey and construction drawings, including floor plan, "
                    "elevations, plumbing and electrical layout and ceiling plan. " * 2,
                },
                "quantity": "2",
                "unit_price": "13000",
            },
        ],
        "installment_schedule": [
            {"index": 1, "percentage": "30", "amount": "27090", "due_date": "2025-01-31",
             "name": {"zh": "簽約金", "en": "Deposit"}},
            {"index": 2, "percentage": "70", "amount": "63210", "due_date": "2025-03-31",
             "name": {"zh": "尾款", "en": "Balance"}},
        ],
        "notes": {
            "zh": "本報價單有效期限為三十日。\n\n如有任何問題請與我們聯絡。",
            "en": "This quotation is valid for 30 days.\n\nPlease contact us with any questions.",
        },
        "bank_details": {"bank_name": "Example Bank", "account": "012-345-678901", "code": "012"},
    }


def _print_text(pdf_bytes: bytes) -> None:
    r = PdfReader(io.BytesIO(pdf_bytes))
    print(f"\n--- {len(r.pages)} page(s) ---")
    for n, page in enumerate(r.pages, start=1):
        print(f"[page {n}]")
        print(page.extract_text())


async def main() -> None:
    configure_logging()

    font_path = _guess_font_path()
    print("Font :", font_path.resolve())
    font_bytes = load_font_bytes(font_path)

    fields = normalize_snapshot_fields(sample_fields())
    data = json_to_snapshot(fields)

    print("subtotal :", data.subtotal)
    print("tax      :", data.tax_amount)
    print("total    :", data.total)

    locales = sys.argv[1:] or ["zh", "en"]
    opts = RenderOptions(full_width_numbers=get_settings().full_width_numbers)

    for locale in locales:
        out_bytes = await generate_quotation_pdf(data, locale, font_bytes, options=opts)

        out_path = Path("tmp") / export_filename(data.document_number, locale)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(out_bytes)

        print("\nCreated:", out_path.resolve())
        _print_text(out_bytes)


if __name__ == "__main__":
    asyncio.run(main())
