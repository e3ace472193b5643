# scripts/debug_wrap_lines.py
from __future__ import annotations

import sys

from quotepdf.config import get_settings
from quotepdf.rendering import layout as L
from quotepdf.rendering.fonts import load_font_bytes, register_font
from quotepdf.rendering.text_wrap import measure_with, row_height, wrap_text


def main() -> None:
    text = sys.argv[1] if len(sys.argv) > 1 else "室內設計與施工規劃說明" * 30
    width = float(sys.argv[2]) if len(sys.argv) > 2 else L.ITEM_DESC_WRAP_W

    font = register_font(load_font_bytes(get_settings().font_path))
    measure = measure_with(font, L.BODY_FS)

    lines = wrap_text(text, width, measure)
    print("CHARS:", len(text), "WIDTH:", width, "LINES:", len(lines))
    print("ROW HEIGHT:", row_height(len(lines), L.ITEM_LINE_H, L.ITEM_ROW_PADDING, L.ITEM_MIN_ROW_H))

    for i, ln in enumerate(lines, start=1):
        print(f"[{i:3}] ({measure(ln):6.1f}) {ln}")


if __name__ == "__main__":
    main()
