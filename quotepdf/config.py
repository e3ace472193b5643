# quotepdf/config.py
"""
Runtime configuration.

Values come from environment variables (a local .env is loaded if present).
In deployed environments they are injected by the platform instead.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    font_path: Path
    image_timeout_seconds: float = 10.0
    full_width_numbers: bool = True
    batch_concurrency: int = 4

    # storage (optional)
    s3_bucket: str | None = None
    aws_region: str = "us-east-1"
    aws_profile: str | None = None
    download_url_ttl_seconds: int = 3600

    log_level: str = "INFO"
    json_logs: bool = False


def load_settings() -> Settings:
    return Settings(
        font_path=Path(os.getenv("QUOTEPDF_FONT_PATH") or "fonts/NotoSansTC-Regular.ttf"),
        image_timeout_seconds=float(os.getenv("QUOTEPDF_IMAGE_TIMEOUT", "10")),
        full_width_numbers=_env_bool("QUOTEPDF_FULL_WIDTH_NUMBERS", True),
        batch_concurrency=max(1, int(os.getenv("QUOTEPDF_BATCH_CONCURRENCY", "4"))),
        s3_bucket=os.getenv("S3_BUCKET") or None,
        aws_region=os.getenv("AWS_REGION") or "us-east-1",
        aws_profile=os.getenv("AWS_PROFILE") or None,
        download_url_ttl_seconds=max(60, int(os.getenv("QUOTEPDF_DOWNLOAD_URL_TTL", "3600"))),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        json_logs=_env_bool("JSON_LOGS", False),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
