# quotepdf/rendering/fonts.py
from __future__ import annotations

import hashlib
import io
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from quotepdf.errors import FontEmbedError


def font_name_for(font_bytes: bytes) -> str:
    digest = hashlib.sha1(font_bytes).hexdigest()[:12]
    return f"QuoteFont-{digest}"


def register_font(font_bytes: bytes) -> str:
    """
    Register raw TTF bytes with reportlab and return the face name.

    The name is derived from the content, so registering the same bytes twice
    is a no-op and concurrent generations share one read-only face.
    """
    if not font_bytes:
        raise FontEmbedError("Font data is empty")

    name = font_name_for(font_bytes)
    if name in pdfmetrics.getRegisteredFontNames():
        return name

    try:
        pdfmetrics.registerFont(TTFont(name, io.BytesIO(font_bytes)))
    except Exception as e:
        raise FontEmbedError(f"Cannot embed font: {e}") from e
    return name


def load_font_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise FontEmbedError(f"Cannot read font file {path}: {e}") from e
