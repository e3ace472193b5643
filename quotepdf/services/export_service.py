# quotepdf/services/export_service.py
from __future__ import annotations

import asyncio
import io
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog
from pypdf import PdfReader, PdfWriter

from quotepdf.errors import QuotePdfError
from quotepdf.rendering.images import ImageFetcher
from quotepdf.rendering.renderer import RenderOptions, generate_quotation_pdf
from quotepdf.rendering.snapshot import DocumentSnapshot
from quotepdf.services.keys import rendered_key

logger = structlog.get_logger(__name__)

_UNSAFE = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def export_filename(document_number: str, locale: str) -> str:
    """
    "{number}_{locale}.pdf" with path separators and other characters
    that are unsafe in file names removed.
    """
    number = _UNSAFE.sub("", document_number or "").strip() or "quotation"
    return f"{number}_{locale}.pdf"


@dataclass(frozen=True)
class RenderRequest:
    snapshot: DocumentSnapshot
    locale: str


@dataclass(frozen=True)
class RenderResult:
    document_number: str
    locale: str
    filename: str
    pdf: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.pdf is not None


async def render_batch(
    requests: Sequence[RenderRequest],
    font_bytes: bytes,
    fetcher: Optional[ImageFetcher] = None,
    concurrency: int = 4,
    options: Optional[RenderOptions] = None,
) -> List[RenderResult]:
    """
    Render many quotations concurrently. Every document gets its own page
    context; a failure is recorded on that document's result and the rest
    of the batch keeps going. Results follow the order of `requests`.
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def one(req: RenderRequest) -> RenderResult:
        number = req.snapshot.document_number
        filename = export_filename(number, req.locale)
        async with sem:
            try:
                pdf = await generate_quotation_pdf(
                    req.snapshot,
                    req.locale,
                    font_bytes,
                    fetcher=fetcher,
                    options=options,
                )
            except QuotePdfError as e:
                logger.error("batch_item_failed", document_number=number, locale=req.locale, error=str(e))
                return RenderResult(number, req.locale, filename, error=f"{type(e).__name__}: {e}")
        return RenderResult(number, req.locale, filename, pdf=pdf)

    results = await asyncio.gather(*(one(r) for r in requests))

    failed = sum(1 for r in results if not r.ok)
    logger.info("batch_rendered", total=len(results), failed=failed)
    return list(results)


def bundle_pdfs(documents: Sequence[bytes]) -> bytes:
    """
    Concatenate rendered PDFs into one file, in order.
    """
    if not documents:
        raise ValueError("Nothing to bundle")

    writer = PdfWriter()
    for data in documents:
        reader = PdfReader(io.BytesIO(data))
        for page in reader.pages:
            writer.add_page(page)

    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


def store_rendered(storage, document_number: str, locale: str, data: bytes, day: str | None = None) -> str:
    """
    Upload a rendered quotation and return its object key.
    """
    key = rendered_key(export_filename(document_number, locale), day)
    storage.upload_pdf_bytes(key, data)
    logger.info("quotation_stored", key=key, size=len(data))
    return key


def download_url(storage, key: str, document_number: str, locale: str, expires_seconds: int = 3600) -> str:
    """
    Presigned link to a stored quotation that downloads as
    "{number}_{locale}.pdf".
    """
    return storage.presign_download(key, export_filename(document_number, locale), expires_seconds)
