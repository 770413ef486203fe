"""Service configuration read from ``CLEANSHARE_*`` environment variables.

Kept free of side effects so both the CLI and the FastAPI app can import it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


@dataclass
class ServiceSettings:
    """Runtime settings for the API service and batch runs."""

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_token: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    max_upload_mb: int = 25
    batch_limit: int = 3
    default_preset: Optional[str] = None
    audit_path: Optional[str] = None
    readiness_check_ocr: bool = True
    readiness_tesseract_langs: List[str] = field(default_factory=lambda: ["eng"])

    @staticmethod
    def from_env() -> "ServiceSettings":
        return ServiceSettings(
            api_host=os.environ.get("CLEANSHARE_API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("CLEANSHARE_API_PORT", "8000")),
            api_token=os.environ.get("CLEANSHARE_API_TOKEN") or None,
            cors_origins=_split_csv(os.environ.get("CLEANSHARE_API_CORS_ORIGINS")),
            max_upload_mb=int(os.environ.get("CLEANSHARE_MAX_UPLOAD_MB", "25")),
            batch_limit=max(1, int(os.environ.get("CLEANSHARE_BATCH_LIMIT", "3"))),
            default_preset=os.environ.get("CLEANSHARE_DEFAULT_PRESET") or None,
            audit_path=os.environ.get("CLEANSHARE_AUDIT_PATH") or None,
            readiness_check_ocr=_parse_bool(
                os.environ.get("CLEANSHARE_READY_CHECK_OCR"), default=True
            ),
            readiness_tesseract_langs=_split_csv(os.environ.get("CLEANSHARE_READY_TESS_LANGS"))
            or ["eng"],
        )


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    """Return cached service settings."""
    return ServiceSettings.from_env()


def reset_settings_cache() -> None:
    """Reset cached settings (useful in tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
