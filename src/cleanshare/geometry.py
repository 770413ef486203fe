"""Coordinate normalization between token sources and output substrates.

Every token source in this package reports top-left-origin boxes: Tesseract
in pixels, PyMuPDF text layers in points relative to ``page.rect``. They are
all normalized into the canonical ``Box`` (fractions of the page, top-left
origin) without any axis flip.

Boxes describe the page as displayed, after any ``/Rotate``. That is the frame
OCR rasters are in. Writers that work on the unrotated page go through
:func:`derotate` first.

The Y axis is flipped exactly once, in :func:`to_pdf_user_space`, which only
the vector compositor calls when it writes PDF content-stream operators. Do
not flip anywhere else; a second flip silently mispositions redactions.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from .types import Box

Rect = Tuple[float, float, float, float]


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, v))


def normalize(
    source_bbox: Sequence[float],
    width: Optional[float],
    height: Optional[float],
    page: int = 0,
) -> Optional[Box]:
    """Convert an ``(x0, y0, x1, y1)`` source rectangle into a ``Box``.

    Parameters
    ----------
    source_bbox:
        Corners in source units (pixels or points), top-left origin.
    width, height:
        Dimensions of the page/image in the same units.
    page:
        Zero-based page index.

    Returns
    -------
    Box or None
        ``None`` when the page dimensions are missing or zero, in which case
        the token must not be classified.
    """
    if not width or not height or width <= 0 or height <= 0:
        return None
    x0, y0, x1, y1 = (float(v) for v in source_bbox)
    if x1 < x0:
        x0, x1 = x1, x0
    if y1 < y0:
        y0, y1 = y1, y0
    nx0 = _clamp01(x0 / width)
    ny0 = _clamp01(y0 / height)
    nx1 = _clamp01(x1 / width)
    ny1 = _clamp01(y1 / height)
    return Box(x=nx0, y=ny0, w=nx1 - nx0, h=ny1 - ny0, page=page)


def denormalize(box: Box, width: float, height: float) -> Rect:
    """Inverse of :func:`normalize` for boxes that were inside the page."""
    return (
        box.x * width,
        box.y * height,
        (box.x + box.w) * width,
        (box.y + box.h) * height,
    )


def corners_to_box(
    points: Iterable[Tuple[float, float]],
    width: Optional[float],
    height: Optional[float],
    page: int = 0,
) -> Optional[Box]:
    """Reduce a quadrilateral (e.g. barcode corners) to an axis-aligned box."""
    pts = list(points)
    if not pts:
        return None
    xs = [float(p[0]) for p in pts]
    ys = [float(p[1]) for p in pts]
    return normalize((min(xs), min(ys), max(xs), max(ys)), width, height, page)


def to_pixel_rect(box: Box, width: int, height: int) -> Tuple[int, int, int, int]:
    """Absolute raster rectangle ``(x, y, w, h)`` clamped to the canvas."""
    x0 = max(0, min(width, int(round(box.x * width))))
    y0 = max(0, min(height, int(round(box.y * height))))
    x1 = max(x0, min(width, int(round((box.x + box.w) * width))))
    y1 = max(y0, min(height, int(round((box.y + box.h) * height))))
    return x0, y0, x1 - x0, y1 - y0


def to_page_rect(box: Box, page_width: float, page_height: float) -> Rect:
    """Absolute PyMuPDF page-space rectangle (top-left origin, no flip)."""
    return denormalize(box, page_width, page_height)


def derotate(box: Box, rotation: int) -> Box:
    """Map a displayed-frame box back onto the unrotated page.

    ``rotation`` is the page's ``/Rotate`` value, clockwise degrees.
    """
    r = rotation % 360
    x, y, w, h = box.x, box.y, box.w, box.h
    if r == 90:
        x, y, w, h = y, 1.0 - x - w, h, w
    elif r == 180:
        x, y = 1.0 - x - w, 1.0 - y - h
    elif r == 270:
        x, y, w, h = 1.0 - y - h, x, h, w
    x, y = _clamp01(x), _clamp01(y)
    return Box(x=x, y=y, w=min(w, 1.0 - x), h=min(h, 1.0 - y), page=box.page)


def to_pdf_user_space(
    box: Box,
    page_width: float,
    page_height: float,
    origin: Tuple[float, float] = (0.0, 0.0),
) -> Rect:
    """Convert a box to PDF user space ``(x, y, w, h)`` with bottom-left origin.

    This is the single Y-axis flip point of the whole package.
    """
    ox, oy = origin
    w = box.w * page_width
    h = box.h * page_height
    x = ox + box.x * page_width
    y = oy + (1.0 - box.y - box.h) * page_height
    return x, y, w, h


__all__ = [
    "normalize",
    "denormalize",
    "corners_to_box",
    "to_pixel_rect",
    "to_page_rect",
    "derotate",
    "to_pdf_user_space",
]
