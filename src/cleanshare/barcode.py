"""QR code and linear barcode scanning with OpenCV."""

from __future__ import annotations

from typing import List

import cv2
import numpy as np
from PIL import Image

from .errors import ExtractionError
from .types import BarcodeHit


def _as_bgr(img: Image.Image) -> np.ndarray:
    return cv2.cvtColor(np.array(img.convert("RGB")), cv2.COLOR_RGB2BGR)


def _qr_hits(arr: np.ndarray, page_index: int, width: int, height: int) -> List[BarcodeHit]:
    detector = cv2.QRCodeDetector()
    ok, payloads, points, _ = detector.detectAndDecodeMulti(arr)
    if not ok or points is None:
        return []
    hits: List[BarcodeHit] = []
    for payload, quad in zip(payloads, points):
        hits.append(
            BarcodeHit(
                points=tuple((float(x), float(y)) for x, y in quad),
                payload=(payload or "")[:64],
                page_index=page_index,
                page_width=float(width),
                page_height=float(height),
                symbology="QR",
            )
        )
    return hits


def _linear_hits(arr: np.ndarray, page_index: int, width: int, height: int) -> List[BarcodeHit]:
    # cv2.barcode ships with opencv >= 4.8 main modules.
    module = getattr(cv2, "barcode", None)
    if module is None:
        return []
    detector = module.BarcodeDetector()
    result = detector.detectAndDecodeWithType(arr)
    ok, payloads, _types, points = result
    if not ok or points is None:
        return []
    hits: List[BarcodeHit] = []
    for payload, quad in zip(payloads, points):
        hits.append(
            BarcodeHit(
                points=tuple((float(x), float(y)) for x, y in quad),
                payload=(payload or "")[:64],
                page_index=page_index,
                page_width=float(width),
                page_height=float(height),
                symbology="LINEAR",
            )
        )
    return hits


def scan(img: Image.Image, page_index: int = 0) -> List[BarcodeHit]:
    """Locate barcodes/QR codes on an image.

    Each hit carries its four corner points in pixel space; the assembler
    reduces them to an axis-aligned box.
    """
    width, height = img.size
    arr = _as_bgr(img)
    try:
        return _qr_hits(arr, page_index, width, height) + _linear_hits(
            arr, page_index, width, height
        )
    except cv2.error as exc:
        raise ExtractionError(f"Barcode scan failed: {exc}", page_index=page_index) from exc


__all__ = ["scan"]
