# quotepdf/api_main.py
from __future__ import annotations

from functools import lru_cache
from typing import List
from urllib.parse import quote

import structlog
from fastapi import Body, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

from quotepdf.config import get_settings
from quotepdf.core.logging import configure_logging
from quotepdf.errors import QuotePdfError, SnapshotValidationError, UnsupportedLocaleError
from quotepdf.rendering.fonts import load_font_bytes
from quotepdf.rendering.images import HttpImageFetcher, ImageFetcher
from quotepdf.rendering.renderer import RenderOptions, generate_quotation_pdf
from quotepdf.rendering.snapshot import DocumentSnapshot
from quotepdf.rendering.translations import labels_for
from quotepdf.services.export_service import (
    RenderRequest,
    bundle_pdfs,
    download_url,
    export_filename,
    render_batch,
    store_rendered,
)
from quotepdf.services.snapshot_editor import json_to_snapshot
from quotepdf.storage.s3_storage import get_storage

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Quotation PDF API")

# CORS for local frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_font_bytes() -> bytes:
    # read once per process
    return load_font_bytes(get_settings().font_path)


def get_fetcher() -> ImageFetcher:
    return HttpImageFetcher(timeout=get_settings().image_timeout_seconds)


def render_options() -> RenderOptions:
    return RenderOptions(full_width_numbers=get_settings().full_width_numbers)


def _parse_snapshot(fields: object) -> DocumentSnapshot:
    if not isinstance(fields, dict):
        raise HTTPException(status_code=400, detail="Body must be a quotation JSON object")
    try:
        return json_to_snapshot(fields)
    except SnapshotValidationError as e:
        raise HTTPException(status_code=422, detail={"problems": e.problems}) from e
    except (TypeError, ValueError, AttributeError) as e:
        raise HTTPException(status_code=422, detail={"problems": [f"{type(e).__name__}: {e}"]}) from e


def _check_locale(locale: str) -> None:
    try:
        labels_for(locale)
    except UnsupportedLocaleError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _pdf_response(data: bytes, filename: str, headers: dict | None = None) -> Response:
    if filename.isascii():
        disp = f'attachment; filename="{filename}"'
    else:
        # header values are latin-1
        disp = f"attachment; filename*=UTF-8''{quote(filename)}"
    h = {"Content-Disposition": disp}
    h.update(headers or {})
    return Response(content=data, media_type="application/pdf", headers=h)


@app.get("/")
def root():
    return {"ok": True, "try": ["/docs", "/api/health"]}


@app.get("/api/health")
def health():
    return {"ok": True}


@app.post("/api/quotations/pdf")
async def render_quotation(
    body: dict = Body(...),
    locale: str = Query(default="zh"),
    store: bool = False,
):
    """
    body = { ...quotation snapshot json... }
    Returns the rendered PDF as an attachment. With store=true the file is
    also uploaded; its key is returned in X-Storage-Key and a presigned
    download link in X-Download-Url.
    """
    _check_locale(locale)
    data = _parse_snapshot(body)
    log = logger.bind(document_number=data.document_number, locale=locale)

    try:
        pdf = await generate_quotation_pdf(
            data,
            locale,
            get_font_bytes(),
            fetcher=get_fetcher(),
            options=render_options(),
        )
    except SnapshotValidationError as e:
        raise HTTPException(status_code=422, detail={"problems": e.problems}) from e
    except QuotePdfError as e:
        log.error("quotation_render_failed", error=f"{type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="PDF generation failed") from e

    headers = {}
    if store:
        try:
            storage = get_storage()
            key = store_rendered(storage, data.document_number, locale, pdf)
            headers["X-Storage-Key"] = key
            headers["X-Download-Url"] = download_url(
                storage, key, data.document_number, locale, get_settings().download_url_ttl_seconds
            )
        except Exception as e:
            log.error("quotation_store_failed", error=f"{type(e).__name__}: {e}")
            raise HTTPException(status_code=500, detail="Storing the PDF failed") from e

    return _pdf_response(pdf, export_filename(data.document_number, locale), headers)


@app.post("/api/quotations/pdf/batch")
async def render_quotation_batch(
    body: dict = Body(...),
    locale: str = Query(default="zh"),
):
    """
    body = { "documents": [ {...snapshot json..., "locale": "en"?}, ... ] }
    Each document may override the query locale. Returns one merged PDF;
    documents that failed are listed in X-Failed-Documents.
    """
    _check_locale(locale)

    docs = body.get("documents")
    if not isinstance(docs, list) or not docs:
        raise HTTPException(status_code=400, detail="Missing documents")

    requests: List[RenderRequest] = []
    for fields in docs:
        doc_locale = (fields.get("locale") if isinstance(fields, dict) else None) or locale
        _check_locale(doc_locale)
        requests.append(RenderRequest(snapshot=_parse_snapshot(fields), locale=doc_locale))

    try:
        font_bytes = get_font_bytes()
    except QuotePdfError as e:
        logger.error("font_load_failed", error=str(e))
        raise HTTPException(status_code=500, detail="PDF generation failed") from e

    results = await render_batch(
        requests,
        font_bytes,
        fetcher=get_fetcher(),
        concurrency=get_settings().batch_concurrency,
        options=render_options(),
    )

    ok = [r for r in results if r.ok]
    failed = [r for r in results if not r.ok]
    if not ok:
        raise HTTPException(status_code=500, detail="PDF generation failed for every document")

    headers = {}
    if failed:
        headers["X-Failed-Documents"] = ",".join(quote(r.filename) for r in failed)

    return _pdf_response(bundle_pdfs([r.pdf for r in ok]), f"quotations_{locale}.pdf", headers)
