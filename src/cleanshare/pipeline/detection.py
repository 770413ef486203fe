"""Detection assembly: tokens and barcode hits in, scored detections out."""

from __future__ import annotations

import itertools
import secrets
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from cleanshare.detectors import classify
from cleanshare.geometry import corners_to_box, normalize
from cleanshare.logging import get_logger
from cleanshare.patterns import PatternEngine
from cleanshare.scoring import score
from cleanshare.types import (
    AnalyzeResult,
    BarcodeHit,
    Detection,
    DetectionKind,
    Token,
)

logger = get_logger(__name__)


@dataclass
class PageTokens:
    """Everything the token sources produced for one page."""

    page_index: int
    tokens: List[Token] = field(default_factory=list)
    barcodes: List[BarcodeHit] = field(default_factory=list)


class IdFactory:
    """Issue ``det-<session>-<n>`` ids, unique for one analysis session."""

    def __init__(self, session: Optional[str] = None) -> None:
        self.session = session or secrets.token_hex(4)
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"det-{self.session}-{next(self._counter)}"


def _token_detection(
    token: Token, ids: IdFactory, engine: Optional[PatternEngine]
) -> Optional[Detection]:
    match = classify(token.text, engine)
    if match is None:
        return None
    box = normalize(token.source_bbox, token.page_width, token.page_height, token.page_index)
    if box is None:
        return None
    return Detection(
        id=ids(),
        kind=match.kind,
        box=box,
        confidence=score(match.kind, match.confidence, token.confidence),
        reason=match.reason,
        preview=token.text,
    )


def _barcode_detection(hit: BarcodeHit, ids: IdFactory) -> Optional[Detection]:
    box = corners_to_box(hit.points, hit.page_width, hit.page_height, hit.page_index)
    if box is None:
        return None
    return Detection(
        id=ids(),
        kind=DetectionKind.BARCODE,
        box=box,
        confidence=score(DetectionKind.BARCODE, 1.0),
        reason=f"{hit.symbology} code",
        preview=hit.payload or None,
    )


def assemble(
    pages: Iterable[PageTokens],
    page_count: int,
    *,
    enabled_kinds: Optional[Sequence[DetectionKind]] = None,
    confidence_threshold: Optional[float] = None,
    engine: Optional[PatternEngine] = None,
    session: Optional[str] = None,
) -> AnalyzeResult:
    """Classify, locate and score every token, then filter.

    Tokens whose page size is unknown are dropped before classification and
    counted in the result's warnings. ``enabled_kinds`` empty or ``None``
    keeps every kind.
    """
    ids = IdFactory(session)
    allowed = set(enabled_kinds or ())
    threshold = confidence_threshold or 0.0
    detections: List[Detection] = []
    dropped = 0
    for page in pages:
        for token in page.tokens:
            if not token.page_width or not token.page_height:
                dropped += 1
                continue
            det = _token_detection(token, ids, engine)
            if det is not None:
                detections.append(det)
        for hit in page.barcodes:
            det = _barcode_detection(hit, ids)
            if det is not None:
                detections.append(det)

    kept = [
        d
        for d in detections
        if (not allowed or d.kind in allowed)
        and d.confidence >= threshold
        and d.box.page < page_count
    ]
    warnings: List[str] = []
    if dropped:
        logger.warning("Dropped tokens without page size", extra={"fields": {"count": dropped}})
        warnings.append(f"{dropped} token(s) dropped: unknown page size")
    logger.info(
        "Assembled detections",
        extra={"fields": {"session": ids.session, "found": len(detections), "kept": len(kept)}},
    )
    return AnalyzeResult(detections=kept, pages=max(1, page_count), warnings=warnings)


__all__ = ["PageTokens", "IdFactory", "assemble"]
