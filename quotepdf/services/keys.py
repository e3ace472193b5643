# quotepdf/services/keys.py
from __future__ import annotations

from datetime import datetime, timezone


def utc_day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def rendered_key(filename: str, day: str | None = None) -> str:
    # quotations/YYYY-MM-DD/<number>_<locale>.pdf
    return f"quotations/{day or utc_day()}/{filename}"
