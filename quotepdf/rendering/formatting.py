# quotepdf/rendering/formatting.py
from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

# Currencies quoted without minor units.
ZERO_DECIMAL_CURRENCIES = frozenset({"TWD", "JPY", "KRW", "VND", "IDR", "CLP", "ISK", "HUF"})

_FULL_WIDTH = str.maketrans({
    "0": "０", "1": "１", "2": "２", "3": "３", "4": "４",
    "5": "５", "6": "６", "7": "７", "8": "８", "9": "９",
    ",": "，", ".": "．", " ": "　",
})

_EN_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

AMOUNT_SEPARATOR = "　"


def _dec(x: Any) -> Decimal:
    if x is None or str(x).strip() == "":
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def currency_exponent(currency: str) -> int:
    return 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2


def quantize_money(value: Any, currency: str) -> Decimal:
    exp = currency_exponent(currency)
    return _dec(value).quantize(Decimal(1).scaleb(-exp), rounding=ROUND_HALF_UP)


def format_amount(value: Any, currency: str) -> str:
    """
    Thousands-separated amount: 90300 -> "90,300" (TWD), 12.5 -> "12.50" (USD).
    """
    q = quantize_money(value, currency)
    exp = currency_exponent(currency)
    return f"{q:,.{exp}f}"


def to_full_width(s: str) -> str:
    return (s or "").translate(_FULL_WIDTH)


def format_pdf_number(value: Any, currency: str, full_width: bool = True) -> str:
    s = format_amount(value, currency)
    return to_full_width(s) if full_width else s


def format_pdf_amount(value: Any, currency: str, full_width: bool = True) -> str:
    return f"{currency}{AMOUNT_SEPARATOR}{format_pdf_number(value, currency, full_width)}"


def format_quantity(q: Any) -> str:
    d = _dec(q)
    if d == d.to_integral_value():
        return str(d.quantize(Decimal(1)))
    return format(d.normalize(), "f")


def format_date(d: Optional[date], locale: str) -> str:
    if d is None:
        return "-"
    if locale == "zh":
        return f"{d.year}年{d.month}月{d.day}日"
    return f"{_EN_MONTHS[d.month - 1]} {d.day}, {d.year}"


def percent_label(p: Any) -> str:
    return f"{format_quantity(p)}%"


def installment_label(index: int, locale: str) -> str:
    if locale == "zh":
        return f"第{index}期"
    return str(index)
