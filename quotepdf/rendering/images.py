# quotepdf/rendering/images.py
from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import httpx
from PIL import Image
from reportlab.lib.utils import ImageReader

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SOI = b"\xff\xd8\xff"


class ImageFetcher(Protocol):
    async def fetch(self, ref: str) -> bytes:
        ...


class HttpImageFetcher:
    """
    Fetch image bytes by reference.
      - http(s) URLs: GET via httpx, non-2xx is an error
      - anything else: treated as a local path (file:// prefix allowed)
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client
        self._timeout = timeout

    async def fetch(self, ref: str) -> bytes:
        if ref.lower().startswith(("http://", "https://")):
            if self._client is not None:
                return await self._get(self._client, ref)
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                return await self._get(client, ref)

        path = Path(ref[len("file://"):] if ref.startswith("file://") else ref)
        return await asyncio.to_thread(path.read_bytes)

    @staticmethod
    async def _get(client: httpx.AsyncClient, url: str) -> bytes:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.content


@dataclass(frozen=True)
class EmbeddedImage:
    reader: ImageReader
    width: int
    height: int
    fmt: str


@dataclass(frozen=True)
class ImageLoadError:
    kind: str
    ref: str
    reason: str


ImageResult = Union[EmbeddedImage, ImageLoadError]


def format_from_reference(ref: str) -> str:
    return "png" if ".png" in (ref or "").lower() else "jpeg"


def detect_image_format(ref: str, data: bytes) -> str:
    """
    Magic bytes first; when they match neither PNG nor JPEG, fall back to the
    reference name (".png" anywhere in it means PNG, otherwise JPEG).
    """
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(JPEG_SOI):
        return "jpeg"
    return format_from_reference(ref)


def decode_image(ref: str, data: bytes) -> EmbeddedImage:
    fmt = detect_image_format(ref, data)
    img = Image.open(io.BytesIO(data), formats=[fmt.upper()])
    img.load()
    w, h = img.size
    if not w or not h:
        raise ValueError(f"image has no area ({w}x{h})")
    return EmbeddedImage(reader=ImageReader(img), width=w, height=h, fmt=fmt)


async def load_image(fetcher: ImageFetcher, ref: str, kind: str) -> ImageResult:
    """
    Fetch and decode one optional image. Problems come back as an
    ImageLoadError value so the caller can fall back to "no image".
    """
    try:
        data = await fetcher.fetch(ref)
    except (httpx.HTTPError, OSError, ValueError) as e:
        return ImageLoadError(kind=kind, ref=ref, reason=f"fetch failed: {type(e).__name__}: {e}")

    try:
        return decode_image(ref, data)
    except Exception as e:
        return ImageLoadError(kind=kind, ref=ref, reason=f"decode failed: {type(e).__name__}: {e}")
