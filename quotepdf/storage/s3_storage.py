# quotepdf/storage/s3_storage.py
from __future__ import annotations

from urllib.parse import quote

import boto3
from botocore.client import Config

from quotepdf.config import Settings, get_settings


def attachment_disposition(filename: str) -> str:
    # RFC 6266 form so CJK document numbers survive the round trip
    name = " ".join((filename or "").split()) or "quotation.pdf"
    return f"attachment; filename*=UTF-8''{quote(name)}"


class S3Storage:
    def __init__(self, settings: Settings | None = None, client=None):
        settings = settings or get_settings()

        self.bucket = settings.s3_bucket
        if not self.bucket:
            raise RuntimeError("S3_BUCKET not set")

        if client is not None:
            self.s3 = client
            return

        session = boto3.Session(profile_name=settings.aws_profile) if settings.aws_profile else boto3.Session()
        self.s3 = session.client(
            "s3",
            region_name=settings.aws_region,
            config=Config(signature_version="s3v4"),
        )

    def upload_pdf_bytes(self, key: str, data: bytes) -> None:
        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="application/pdf",
        )

    def presign_download(self, key: str, filename: str, expires_seconds: int = 3600) -> str:
        """
        Time-limited GET URL for a stored quotation. The browser saves it
        under `filename` instead of the object key.
        """
        return self.s3.generate_presigned_url(
            ClientMethod="get_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ResponseContentDisposition": attachment_disposition(filename),
                "ResponseContentType": "application/pdf",
            },
            ExpiresIn=int(expires_seconds),
        )


_storage: S3Storage | None = None


def get_storage() -> S3Storage:
    """Process-wide storage client, created on first use."""
    global _storage
    if _storage is None:
        _storage = S3Storage()
    return _storage
