# quotepdf/errors.py
from __future__ import annotations

from typing import Sequence


class QuotePdfError(Exception):
    """Base class for failures that abort one document generation."""


class FontEmbedError(QuotePdfError):
    pass


class PageGeometryError(QuotePdfError):
    pass


class UnsupportedLocaleError(QuotePdfError):
    def __init__(self, locale: str):
        super().__init__(f"Unsupported locale: {locale!r}")
        self.locale = locale


class SnapshotValidationError(QuotePdfError):
    """
    Raised at the engine boundary when the snapshot is inconsistent.
    `problems` lists every issue found, not just the first.
    """

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("Invalid quotation snapshot: " + "; ".join(self.problems))


class DocumentGenerationError(QuotePdfError):
    pass
