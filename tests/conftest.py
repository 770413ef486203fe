from __future__ import annotations

import io

import pymupdf
import pytest
from PIL import Image

from cleanshare.pipeline import RunConfig
from cleanshare.types import CoordinateSystem, Token

CARD = "4111111111111111"
EMAIL = "jane.doe@example.com"


def make_pdf(lines, *, metadata=None, pages=1) -> bytes:
    doc = pymupdf.open()
    for _ in range(pages):
        page = doc.new_page(width=612, height=792)
        y = 100
        for line in lines:
            page.insert_text((72, y), line, fontsize=12)
            y += 40
    if metadata:
        doc.set_metadata(metadata)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(size=(200, 100), color=(255, 255, 255), *, exif=None) -> bytes:
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    if exif is not None:
        img.save(buf, format="JPEG", exif=exif)
    else:
        img.save(buf, format="PNG")
    return buf.getvalue()


def pixel_token(text, bbox, size=(200, 100), conf=0.9, page=0) -> Token:
    return Token(
        text=text,
        source_bbox=bbox,
        coordinate_system=CoordinateSystem.PIXEL_TOP_LEFT,
        page_index=page,
        page_width=float(size[0]),
        page_height=float(size[1]),
        confidence=conf,
    )


@pytest.fixture
def text_pdf() -> bytes:
    return make_pdf(
        [f"Card {CARD}", f"Contact {EMAIL}"],
        metadata={"author": "Jane Doe", "title": "Quarterly statement"},
    )


@pytest.fixture
def offline_cfg() -> RunConfig:
    """Text layer only: no Tesseract, no Poppler."""
    return RunConfig(ocr_fallback=False, scan_barcodes=False)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    from cleanshare import settings

    monkeypatch.delenv("CLEANSHARE_AUDIT_PATH", raising=False)
    monkeypatch.delenv("CLEANSHARE_HMAC_KEY", raising=False)
    settings.reset_settings_cache()
    yield
    settings.reset_settings_cache()
