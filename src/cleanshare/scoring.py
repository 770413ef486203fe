"""Confidence scoring: OCR certainty combined with pattern strength."""

from __future__ import annotations

from typing import Dict, Optional

from .types import DetectionKind

OCR_CEILING = 0.95

# Flat bonus for kinds confirmed by a checksum or a strict structure.
CHECKSUM_BONUS: Dict[DetectionKind, float] = {
    DetectionKind.PAN: 0.15,
    DetectionKind.IBAN: 0.15,
    DetectionKind.API_KEY: 0.10,
    DetectionKind.SSN: 0.05,
    DetectionKind.JWT: 0.05,
}

HEURISTIC_PENALTY: Dict[DetectionKind, float] = {
    DetectionKind.NAME: 0.7,
}


def score(
    kind: DetectionKind,
    pattern_confidence: float,
    ocr_confidence: Optional[float] = None,
) -> float:
    """Return the final confidence of a detection in ``[0, 1]``.

    The OCR confidence is capped at 0.95 and scales the pattern confidence so
    that a perfect read keeps it unchanged. Checksum-validated kinds then get
    their bonus (capped at 1.0) and heuristic kinds their penalty.

    For a fixed OCR confidence this is monotonic in the pattern confidence,
    and PAN (0.9 + 0.15) always outranks the looser PHONE, PASSPORT and
    ADDRESS readings of the same digits.
    """
    base = OCR_CEILING if ocr_confidence is None else min(max(ocr_confidence, 0.0), OCR_CEILING)
    value = min(OCR_CEILING, base * max(0.0, min(pattern_confidence, 1.0)) / OCR_CEILING)
    value += CHECKSUM_BONUS.get(kind, 0.0)
    value *= HEURISTIC_PENALTY.get(kind, 1.0)
    return round(min(1.0, max(0.0, value)), 4)


__all__ = ["score", "CHECKSUM_BONUS", "HEURISTIC_PENALTY", "OCR_CEILING"]
