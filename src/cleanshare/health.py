"""Readiness checks for API / Kubernetes probes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pytesseract

from .settings import ServiceSettings


@dataclass
class HealthCheckResult:
    name: str
    status: str  # "pass" | "fail" | "warn"
    detail: Optional[str] = None
    required: bool = True


def _check_tesseract(langs: List[str]) -> HealthCheckResult:
    # Image inputs and scanned pages need Tesseract; PDFs with a text layer don't.
    try:
        pytesseract.get_tesseract_version()
    except (pytesseract.TesseractNotFoundError, OSError) as exc:
        return HealthCheckResult(name="tesseract", status="fail", detail=str(exc))

    try:
        available = set(pytesseract.get_languages(config=""))
    except (pytesseract.TesseractError, OSError):
        available = set()
    missing = [lang for lang in langs if lang not in available]
    if missing and available:
        return HealthCheckResult(
            name="tesseract",
            status="warn",
            detail=f"Missing language packs: {', '.join(missing)}",
        )
    if missing:
        return HealthCheckResult(
            name="tesseract",
            status="warn",
            detail="Could not enumerate language packs; ensure tessdata is mounted.",
        )
    return HealthCheckResult(name="tesseract", status="pass")


def _check_presets() -> HealthCheckResult:
    from .presets import list_builtin_presets

    names = list_builtin_presets()
    if not names:
        return HealthCheckResult(name="presets", status="warn", detail="No builtin presets", required=False)
    return HealthCheckResult(name="presets", status="pass", detail=", ".join(names), required=False)


def run_readiness_checks(settings: ServiceSettings) -> List[HealthCheckResult]:
    checks: List[HealthCheckResult] = []
    if settings.readiness_check_ocr:
        checks.append(_check_tesseract(settings.readiness_tesseract_langs))
    checks.append(_check_presets())
    return checks
