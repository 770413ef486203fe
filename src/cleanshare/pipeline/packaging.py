"""Output packaging: report, proposed filename and the final result."""

from __future__ import annotations

from collections import Counter
from pathlib import PurePath
from typing import List, Sequence

from cleanshare.errors import FatalIOError
from cleanshare.types import ApplyResult, Detection, RedactionReport

from .resolution import Resolution


def build_report(detections: Sequence[Detection], resolution: Resolution) -> RedactionReport:
    applied = resolution.instructions
    return RedactionReport(
        total_detections=len(detections),
        redacted_count=len(applied),
        skipped_count=len(resolution.errors),
        by_kind=dict(Counter(i.detection.kind.value for i in applied)),
        by_style=dict(Counter(i.style.value for i in applied)),
    )


def proposed_filename(source_name: str, extension: str) -> str:
    """``invoice.pdf`` -> ``invoice.redacted.pdf``."""
    stem = PurePath(source_name or "document").stem or "document"
    return f"{stem}.redacted.{extension.lstrip('.').lower()}"


def package(
    data: bytes,
    *,
    source_name: str,
    extension: str,
    media_type: str,
    report: RedactionReport,
    errors: List[str],
) -> ApplyResult:
    """Assemble the final :class:`ApplyResult`.

    Raises
    ------
    FatalIOError
        If the rendered payload is empty.
    """
    if not data:
        raise FatalIOError(f"Redaction produced no output for {source_name}")
    return ApplyResult(
        data=data,
        filename=proposed_filename(source_name, extension),
        media_type=media_type,
        report=report,
        errors=list(errors),
    )


__all__ = ["build_report", "proposed_filename", "package"]
