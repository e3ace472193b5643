# quotepdf/rendering/translations.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from quotepdf.errors import UnsupportedLocaleError


@dataclass(frozen=True)
class Labels:
    title: str
    document_number: str
    issue_date: str
    expiry_date: str
    customer: str
    items: str
    description: str
    quantity: str
    unit_price: str
    amount: str
    subtotal: str
    tax: str
    total: str
    payment_terms: str
    term_number: str
    percentage: str
    due_date: str
    term_amount: str
    notes: str
    bank_info: str
    bank_name: str
    bank_account: str
    bank_code: str
    company_signature: str
    page: str  # str.format template with {n}


_LABELS: Dict[str, Labels] = {
    "zh": Labels(
        title="報價單",
        document_number="報價單編號",
        issue_date="開立日期",
        expiry_date="有效期限",
        customer="客戶",
        items="報價項目",
        description="品項說明",
        quantity="數量",
        unit_price="單價",
        amount="金額",
        subtotal="小計",
        tax="稅金",
        total="總計",
        payment_terms="付款條件",
        term_number="期數",
        percentage="比例",
        due_date="付款日期",
        term_amount="金額",
        notes="備註",
        bank_info="匯款資訊",
        bank_name="銀行名稱",
        bank_account="帳號",
        bank_code="銀行代碼",
        company_signature="公司簽章",
        page="第 {n} 頁",
    ),
    "en": Labels(
        title="Quotation",
        document_number="Quotation No.",
        issue_date="Issue Date",
        expiry_date="Valid Until",
        customer="Customer",
        items="Items",
        description="Description",
        quantity="Qty",
        unit_price="Unit Price",
        amount="Amount",
        subtotal="Subtotal",
        tax="Tax",
        total="Total",
        payment_terms="Payment Terms",
        term_number="Term",
        percentage="Percentage",
        due_date="Due Date",
        term_amount="Amount",
        notes="Notes",
        bank_info="Bank Information",
        bank_name="Bank",
        bank_account="Account",
        bank_code="Bank Code",
        company_signature="Company Signature",
        page="Page {n}",
    ),
}


def labels_for(locale: str) -> Labels:
    try:
        return _LABELS[locale]
    except KeyError:
        raise UnsupportedLocaleError(locale) from None


def register_labels(locale: str, labels: Labels) -> None:
    _LABELS[locale] = labels


def supported_locales() -> tuple[str, ...]:
    return tuple(_LABELS)
