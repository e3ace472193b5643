"""Pytest configuration and fixtures for quotation PDF tests.

Provides fonts, sample snapshots, images and a drawing context that
records what was drawn.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Tuple

import pytest
import reportlab
from PIL import Image
from reportlab.pdfgen import canvas

from quotepdf.rendering.fonts import register_font
from quotepdf.rendering.layout import PageContext, PageSpec
from quotepdf.rendering.snapshot import (
    BankDetails,
    DocumentSnapshot,
    Installment,
    LineItem,
    LocalizedText,
)
from quotepdf.rendering.translations import labels_for


@dataclass
class RecordingContext(PageContext):
    """PageContext that also keeps every string and rule it draws."""

    texts: List[Tuple[float, float, str, float]] = field(default_factory=list)
    rules: List[Tuple[float, float, float, float]] = field(default_factory=list)

    def text(self, x, y, s, size):
        self.texts.append((x, y, s, size))
        super().text(x, y, s, size)

    def centered_text(self, y, s, size):
        self.texts.append((self.ps.w / 2.0, y, s, size))
        super().centered_text(y, s, size)

    def rule(self, x_start, x_end, y, width):
        self.rules.append((x_start, x_end, y, width))
        super().rule(x_start, x_end, y, width)

    def strings(self) -> List[str]:
        return [t[2] for t in self.texts]


class DictFetcher:
    """Serves image bytes from a dict; unknown refs behave like missing files."""

    def __init__(self, images: Dict[str, bytes] | None = None):
        self.images = dict(images or {})
        self.calls: List[str] = []

    async def fetch(self, ref: str) -> bytes:
        self.calls.append(ref)
        if ref not in self.images:
            raise FileNotFoundError(ref)
        return self.images[ref]


def make_image(fmt: str, size: Tuple[int, int]) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, fmt)
    return buf.getvalue()


@pytest.fixture(scope="session")
def font_bytes() -> bytes:
    """Bitstream Vera shipped with reportlab. CJK glyphs are missing but metrics still work."""
    return (Path(reportlab.__file__).parent / "fonts" / "Vera.ttf").read_bytes()


@pytest.fixture(scope="session")
def font_name(font_bytes: bytes) -> str:
    return register_font(font_bytes)


@pytest.fixture
def make_ctx(font_name: str):
    def _make(locale: str = "zh", full_width_numbers: bool = True, page: PageSpec | None = None) -> RecordingContext:
        ps = page or PageSpec.a4()
        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=(ps.w, ps.h), invariant=1)
        return RecordingContext(
            c=c,
            buf=buf,
            ps=ps,
            font=font_name,
            locale=locale,
            labels=labels_for(locale),
            full_width_numbers=full_width_numbers,
        )

    return _make


@pytest.fixture
def png_bytes() -> bytes:
    return make_image("PNG", (240, 120))


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image("JPEG", (300, 160))


@pytest.fixture
def sample_snapshot() -> DocumentSnapshot:
    """TWD quotation: 86,000 subtotal, 5% tax, 90,300 total."""
    return DocumentSnapshot(
        document_number="Q-2025-0001",
        issue_date=date(2025, 1, 15),
        expiry_date=date(2025, 2, 14),
        line_items=(
            LineItem(
                description=LocalizedText(zh="室內設計規劃", en="Interior design planning"),
                quantity=Decimal("1"),
                unit_price=Decimal("60000"),
                line_total=Decimal("60000"),
            ),
            LineItem(
                description=LocalizedText(zh="施工圖繪製", en="Construction drawings"),
                quantity=Decimal("2"),
                unit_price=Decimal("13000"),
                line_total=Decimal("26000"),
            ),
        ),
        subtotal=Decimal("86000"),
        tax_rate=Decimal("5"),
        tax_amount=Decimal("4300"),
        total=Decimal("90300"),
        currency_code="TWD",
        counterparty_name=LocalizedText(zh="範例科技", en="Example Tech"),
    )


@pytest.fixture
def two_installments() -> Tuple[Installment, ...]:
    return (
        Installment(index=1, percentage=Decimal("30"), amount=Decimal("27090"), due_date=date(2025, 1, 31)),
        Installment(index=2, percentage=Decimal("70"), amount=Decimal("63210")),
    )


@pytest.fixture
def bank_details() -> BankDetails:
    return BankDetails(bank_name="Example Bank", account="012-345-678901", code="012")


@pytest.fixture
def sample_fields() -> dict:
    """Editable JSON form of the sample quotation."""
    return {
        "document_number": "Q-2025-0001",
        "issue_date": "2025-01-15",
        "expiry_date": "2025-02-14",
        "counterparty_name": {"zh": "範例科技", "en": "Example Tech"},
        "currency_code": "TWD",
        "line_items": [
            {"description": {"zh": "室內設計規劃", "en": "Interior design planning"},
             "quantity": "1", "unit_price": "60000", "line_total": "60000"},
            {"description": "Construction drawings",
             "quantity": "2", "unit_price": "13000", "line_total": "26000"},
        ],
        "subtotal": "86000",
        "tax_rate": "5",
        "tax_amount": "4300",
        "total": "90300",
    }


@pytest.fixture
def dict_fetcher():
    """Factory: dict_fetcher({ref: bytes}) -> fetcher serving those images."""
    return DictFetcher


@pytest.fixture
def consulting_fields() -> dict:
    """Two TWD lines before normalization: 50,000 consulting and 12 months of hosting at 3,000."""
    return {
        "document_number": "Q-2025-0002",
        "issue_date": "2025-03-01",
        "expiry_date": "2025-03-31",
        "currency_code": "TWD",
        "tax_rate": "5",
        "line_items": [
            {"description": "Consulting Service", "quantity": "1", "unit_price": "50000"},
            {"description": "Hosting", "quantity": "12", "unit_price": "3000"},
        ],
    }
