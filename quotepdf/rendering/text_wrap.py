# quotepdf/rendering/text_wrap.py
from __future__ import annotations

from typing import Callable, List

from reportlab.pdfbase.pdfmetrics import stringWidth

Measure = Callable[[str], float]


def measure_with(font: str, size: float) -> Measure:
    def measure(s: str) -> float:
        return stringWidth(s, font, size)

    return measure


def wrap_text(text: str, max_width: float, measure: Measure) -> List[str]:
    """
    Greedy character wrap.

    Characters are added to the current line until the next one would push
    it past max_width; the line is then flushed and the character starts the
    next one. Works per character, not per word, so CJK text wraps anywhere
    and Latin words may be split. Each "\\n" ends a paragraph; a blank
    paragraph produces an empty line.
    """
    lines: List[str] = []

    for paragraph in (text or "").split("\n"):
        if not paragraph.strip():
            lines.append("")
            continue

        cur = ""
        for ch in paragraph:
            test = cur + ch
            if cur and measure(test) > max_width:
                lines.append(cur)
                cur = ch
            else:
                cur = test

        if cur:
            lines.append(cur)

    return lines


def row_height(line_count: int, line_height: float, padding: float, minimum: float) -> float:
    return max(minimum, line_count * line_height + padding)
