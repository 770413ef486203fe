"""PDF text-layer reader built on PyMuPDF.

PyMuPDF reports words on the unrotated page. They are turned into the
displayed frame with ``page.rotation_matrix`` so text-layer tokens line up
with OCR tokens from rasters of the same page. Points, origin at the
top-left of ``page.rect``; no axis flip happens here.
"""

from __future__ import annotations

import threading
from typing import List

import pymupdf

from .errors import ExtractionError, FatalIOError
from .types import CoordinateSystem, Token

# PyMuPDF is not thread-safe. Every open/read/write of a document holds this.
PDF_LOCK = threading.RLock()


def open_pdf(data: bytes) -> pymupdf.Document:
    """Open PDF bytes, raising :class:`FatalIOError` if they are unreadable.

    Callers must hold :data:`PDF_LOCK` while they use the document.
    """
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise FatalIOError(f"Cannot open PDF: {exc}") from exc
    if doc.needs_pass:
        doc.close()
        raise FatalIOError("PDF is encrypted")
    if doc.page_count == 0:
        doc.close()
        raise FatalIOError("PDF has no pages")
    return doc


def page_tokens(page: pymupdf.Page, page_index: int) -> List[Token]:
    """Return the words of a page's text layer as point-space tokens."""
    try:
        words = page.get_text("words")
    except RuntimeError as exc:
        raise ExtractionError(f"Text layer unreadable: {exc}", page_index=page_index) from exc
    width, height = page.rect.width, page.rect.height
    turn = page.rotation_matrix
    tokens: List[Token] = []
    for x0, y0, x1, y1, text, *_ in words:
        text = (text or "").strip()
        if not text:
            continue
        shown = pymupdf.Rect(x0, y0, x1, y1) * turn
        tokens.append(
            Token(
                text=text,
                source_bbox=(shown.x0, shown.y0, shown.x1, shown.y1),
                coordinate_system=CoordinateSystem.POINT_TOP_LEFT,
                page_index=page_index,
                page_width=width,
                page_height=height,
                confidence=None,
            )
        )
    return tokens


__all__ = ["PDF_LOCK", "open_pdf", "page_tokens"]
