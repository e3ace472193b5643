# quotepdf/rendering/snapshot.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class LocalizedText:
    zh: str = ""
    en: str = ""

    def pick(self, locale: str) -> str:
        """
        Branch for `locale`. Unknown locales read the English branch.
        """
        if locale == "zh":
            return self.zh or ""
        return self.en or ""


@dataclass(frozen=True)
class LineItem:
    description: LocalizedText
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Installment:
    index: int
    percentage: Decimal
    amount: Decimal
    due_date: Optional[date] = None
    name: Optional[LocalizedText] = None


@dataclass(frozen=True)
class BankDetails:
    bank_name: str = ""
    account: str = ""
    code: str = ""
    passbook_image_ref: str = ""

    @property
    def has_text_lines(self) -> bool:
        return bool(self.bank_name or self.account or self.code)

    @property
    def is_empty(self) -> bool:
        return not (self.has_text_lines or self.passbook_image_ref)


@dataclass(frozen=True)
class DocumentSnapshot:
    document_number: str
    issue_date: date
    expiry_date: date

    line_items: Tuple[LineItem, ...]

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    currency_code: str

    counterparty_name: Optional[LocalizedText] = None
    notes: Optional[LocalizedText] = None
    installment_schedule: Optional[Tuple[Installment, ...]] = None

    issuer_display_name: Optional[LocalizedText] = None
    logo_image_ref: str = ""
    signature_image_ref: str = ""
    bank_details: Optional[BankDetails] = None

    @property
    def has_installments(self) -> bool:
        return bool(self.installment_schedule)

    @property
    def has_notes(self) -> bool:
        return self.notes is not None

    @property
    def has_media(self) -> bool:
        has_bank = self.bank_details is not None and not self.bank_details.is_empty
        return has_bank or bool(self.signature_image_ref)
