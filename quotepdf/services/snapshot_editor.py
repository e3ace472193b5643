# quotepdf/services/snapshot_editor.py
from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from quotepdf.errors import SnapshotValidationError
from quotepdf.rendering.formatting import currency_exponent, quantize_money
from quotepdf.rendering.snapshot import (
    BankDetails,
    DocumentSnapshot,
    Installment,
    LineItem,
    LocalizedText,
)


def _dec(s: Any) -> Decimal:
    t = str(s if s is not None else "").replace(",", "").strip()
    if not t:
        return Decimal("0")
    try:
        d = Decimal(t)
    except InvalidOperation as e:
        raise SnapshotValidationError([f"not a number: {s!r}"]) from e
    if not d.is_finite():
        raise SnapshotValidationError([f"not a finite number: {s!r}"])
    return d


def _date(s: Any, field_name: str) -> date:
    if isinstance(s, date):
        return s
    try:
        return date.fromisoformat(str(s or "").strip()[:10])
    except ValueError as e:
        raise SnapshotValidationError([f"{field_name}: not an ISO date: {s!r}"]) from e


def _localized(v: Any) -> Optional[LocalizedText]:
    """
    {"zh": ..., "en": ...} or a plain string (used for both branches).
    """
    if v is None:
        return None
    if isinstance(v, LocalizedText):
        return v
    if isinstance(v, str):
        return LocalizedText(zh=v, en=v)
    if isinstance(v, dict):
        return LocalizedText(zh=str(v.get("zh") or ""), en=str(v.get("en") or ""))
    raise SnapshotValidationError([f"not a localized text: {v!r}"])


def _localized_to_json(v: Optional[LocalizedText]) -> Optional[dict]:
    if v is None:
        return None
    return {"zh": v.zh, "en": v.en}


def json_to_snapshot(j: dict) -> DocumentSnapshot:
    items: List[LineItem] = []
    for x in (j.get("line_items") or []):
        items.append(
            LineItem(
                description=_localized(x.get("description")) or LocalizedText(),
                quantity=_dec(x.get("quantity")),
                unit_price=_dec(x.get("unit_price")),
                line_total=_dec(x.get("line_total")),
            )
        )

    schedule = None
    raw_terms = j.get("installment_schedule")
    if raw_terms:
        schedule = tuple(
            Installment(
                index=int(x.get("index") or 0),
                percentage=_dec(x.get("percentage")),
                amount=_dec(x.get("amount")),
                due_date=_date(x["due_date"], "due_date") if x.get("due_date") else None,
                name=_localized(x.get("name")),
            )
            for x in raw_terms
        )

    bank = None
    raw_bank = j.get("bank_details")
    if raw_bank:
        bank = BankDetails(
            bank_name=raw_bank.get("bank_name") or "",
            account=raw_bank.get("account") or "",
            code=raw_bank.get("code") or "",
            passbook_image_ref=raw_bank.get("passbook_image_ref") or "",
        )

    return DocumentSnapshot(
        document_number=(j.get("document_number") or "").strip(),
        issue_date=_date(j.get("issue_date"), "issue_date"),
        expiry_date=_date(j.get("expiry_date"), "expiry_date"),
        line_items=tuple(items),
        subtotal=_dec(j.get("subtotal")),
        tax_rate=_dec(j.get("tax_rate")),
        tax_amount=_dec(j.get("tax_amount")),
        total=_dec(j.get("total")),
        currency_code=(j.get("currency_code") or "").strip().upper(),
        counterparty_name=_localized(j.get("counterparty_name")),
        notes=_localized(j.get("notes")),
        installment_schedule=schedule,
        issuer_display_name=_localized(j.get("issuer_display_name")),
        logo_image_ref=j.get("logo_image_ref") or "",
        signature_image_ref=j.get("signature_image_ref") or "",
        bank_details=bank,
    )


def snapshot_to_json(doc: DocumentSnapshot) -> dict:
    return {
        "document_number": doc.document_number,
        "issue_date": doc.issue_date.isoformat(),
        "expiry_date": doc.expiry_date.isoformat(),
        "counterparty_name": _localized_to_json(doc.counterparty_name),
        "line_items": [
            {
                "description": _localized_to_json(it.description),
                "quantity": str(it.quantity),
                "unit_price": str(it.unit_price),
                "line_total": str(it.line_total),
            }
            for it in doc.line_items
        ],
        "subtotal": str(doc.subtotal),
        "tax_rate": str(doc.tax_rate),
        "tax_amount": str(doc.tax_amount),
        "total": str(doc.total),
        "currency_code": doc.currency_code,
        "notes": _localized_to_json(doc.notes),
        "installment_schedule": (
            [
                {
                    "index": t.index,
                    "percentage": str(t.percentage),
                    "amount": str(t.amount),
                    "due_date": t.due_date.isoformat() if t.due_date else None,
                    "name": _localized_to_json(t.name),
                }
                for t in doc.installment_schedule
            ]
            if doc.installment_schedule is not None
            else None
        ),
        "issuer_display_name": _localized_to_json(doc.issuer_display_name),
        "logo_image_ref": doc.logo_image_ref,
        "signature_image_ref": doc.signature_image_ref,
        "bank_details": (
            {
                "bank_name": doc.bank_details.bank_name,
                "account": doc.bank_details.account,
                "code": doc.bank_details.code,
                "passbook_image_ref": doc.bank_details.passbook_image_ref,
            }
            if doc.bank_details is not None
            else None
        ),
    }


def normalize_snapshot_fields(fields: dict) -> dict:
    """
    Recompute line totals, subtotal, tax and total from quantities, unit
    prices and the tax rate, rounded to the currency's minor unit.
    """
    currency = (fields.get("currency_code") or "").strip().upper()
    subtotal = Decimal("0")

    for it in (fields.get("line_items") or []):
        line_total = quantize_money(_dec(it.get("quantity")) * _dec(it.get("unit_price")), currency)
        it["line_total"] = str(line_total)
        subtotal += line_total

    subtotal = quantize_money(subtotal, currency)
    tax = quantize_money(subtotal * _dec(fields.get("tax_rate")) / Decimal(100), currency)
    total = quantize_money(subtotal + tax, currency)

    fields["subtotal"] = str(subtotal)
    fields["tax_amount"] = str(tax)
    fields["total"] = str(total)

    return fields


def _non_finite_amounts(doc: DocumentSnapshot) -> List[str]:
    named = [
        ("subtotal", doc.subtotal),
        ("tax_rate", doc.tax_rate),
        ("tax_amount", doc.tax_amount),
        ("total", doc.total),
    ]
    for n, it in enumerate(doc.line_items, start=1):
        named += [
            (f"line {n} quantity", it.quantity),
            (f"line {n} unit_price", it.unit_price),
            (f"line {n} line_total", it.line_total),
        ]
    for t in (doc.installment_schedule or ()):
        named += [
            (f"installment {t.index} percentage", t.percentage),
            (f"installment {t.index} amount", t.amount),
        ]
    return [name for name, v in named if not Decimal(v).is_finite()]


def validate_snapshot(doc: DocumentSnapshot) -> None:
    """
    Boundary checks before rendering. Installment percentages are not
    required to add up to 100.
    """
    problems: List[str] = []
    tolerance = Decimal(1).scaleb(-currency_exponent(doc.currency_code))

    if not doc.document_number:
        problems.append("document_number is empty")
    if not doc.currency_code:
        problems.append("currency_code is empty")
    if doc.expiry_date < doc.issue_date:
        problems.append("expiry_date is before issue_date")

    # NaN / Infinity cannot be compared; report them and stop here
    non_finite = _non_finite_amounts(doc)
    if non_finite:
        problems.extend(f"{name} is not a finite number" for name in non_finite)
        raise SnapshotValidationError(problems)

    for n, it in enumerate(doc.line_items, start=1):
        if it.quantity < 0:
            problems.append(f"line {n}: negative quantity")

    items_sum = sum((it.line_total for it in doc.line_items), Decimal("0"))
    if abs(items_sum - doc.subtotal) > tolerance:
        problems.append(f"line totals ({items_sum}) do not add up to subtotal ({doc.subtotal})")

    if abs(doc.subtotal + doc.tax_amount - doc.total) > tolerance:
        problems.append(
            f"subtotal ({doc.subtotal}) + tax ({doc.tax_amount}) does not equal total ({doc.total})"
        )

    for t in (doc.installment_schedule or ()):
        if t.index < 1:
            problems.append(f"installment index must be >= 1, got {t.index}")

    if problems:
        raise SnapshotValidationError(problems)
