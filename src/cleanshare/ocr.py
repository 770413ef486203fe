"""OCR utilities.

Functions in this module rasterize PDFs into images and turn Tesseract's
word-level TSV into :class:`~cleanshare.types.Token` records (pixel units,
top-left origin).

Enhancements for difficult documents:
- Optional preprocessing (grayscale, adaptive binarization) using OpenCV.
  Only geometry-preserving steps are applied so word boxes stay valid for the
  original image.
- Optional auto-PSM retry to maximize token recovery on noisy pages
"""

from __future__ import annotations

import io
import os
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import pandas as pd
import pymupdf
import pytesseract
from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFSyntaxError,
)
from PIL import Image

from .errors import ExtractionError
from .logging import get_logger
from .textlayer import PDF_LOCK
from .types import CoordinateSystem, Token

logger = get_logger(__name__)


def pdf_to_images(data: bytes, dpi: int = 200) -> List[Image.Image]:
    """Convert PDF bytes into a list of PIL images (one per page).

    Attempts to use ``pdf2image`` first (requires Poppler). If Poppler is
    unavailable, falls back to rasterization via PyMuPDF.

    Environment
    -----------
    POPPLER_PATH:
        Optional explicit path to the Poppler binaries for pdf2image.
    """
    poppler_path = os.environ.get("POPPLER_PATH")
    try:
        if poppler_path:
            return convert_from_bytes(data, dpi=dpi, poppler_path=poppler_path)
        return convert_from_bytes(data, dpi=dpi)
    except PDFInfoNotInstalledError:
        logger.info("Poppler not found, rasterizing with PyMuPDF")
    except (PDFPageCountError, PDFSyntaxError) as exc:
        raise ExtractionError(f"Cannot rasterize PDF: {exc}") from exc
    with PDF_LOCK, pymupdf.open(stream=data, filetype="pdf") as doc:
        return [render_page(page, dpi) for page in doc]


def render_page(page: "pymupdf.Page", dpi: int, clip: Any = None) -> Image.Image:
    """Rasterize one PyMuPDF page (or a clip of it) to an RGB image."""
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=pymupdf.Matrix(zoom, zoom), clip=clip, alpha=False)
    return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)


def _preprocess_image(img: Image.Image, *, binarize: bool = True) -> Image.Image:
    """Grayscale and optionally binarize an image for OCR."""
    arr = np.array(img.convert("RGB"))
    work = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
    if binarize:
        work = cv2.adaptiveThreshold(
            work, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 35, 15
        )
    return Image.fromarray(work)


def image_ocr_tsv(
    img: Image.Image,
    lang: str = "eng",
    psm: int = 3,
    *,
    preprocess: bool = True,
    binarize: bool = True,
    auto_psm: bool = True,
    min_tokens: int = 5,
    tess_configs: Optional[Dict[str, Any]] = None,
) -> pd.DataFrame:
    """Run Tesseract OCR on an image and return word-level TSV.

    Parameters
    ----------
    img:
        Input image to OCR.
    lang:
        Tesseract language code.
    psm:
        Page segmentation mode (0-13).
    auto_psm:
        Retry alternate PSMs when fewer than ``min_tokens`` words come back.

    Returns
    -------
    pandas.DataFrame
        Columns ``level,page_num,block_num,par_num,line_num,word_num,left,
        top,width,height,conf,text`` with empty words removed.
    """
    if preprocess:
        img = _preprocess_image(img, binarize=binarize)

    options: Dict[str, Any] = {"preserve_interword_spaces": 1}
    if tess_configs:
        options.update(tess_configs)
    extra = " ".join(f"-c {k}={v}" for k, v in options.items())

    def run(psm_value: int) -> pd.DataFrame:
        df = pytesseract.image_to_data(
            img,
            lang=lang,
            config=f"--oem 1 --psm {psm_value} {extra}",
            output_type=pytesseract.Output.DATAFRAME,
        )
        df = df.dropna(subset=["text"])
        df = df[df["text"].astype(str).str.strip() != ""]
        return df.reset_index(drop=True)

    tsv = run(psm)
    if auto_psm and len(tsv) < min_tokens:
        best = tsv
        for alt in (6, 4, 11):
            if alt == psm:
                continue
            try:
                alt_df = run(alt)
            except pytesseract.TesseractError as exc:
                logger.debug("PSM retry failed", extra={"fields": {"psm": alt, "error": str(exc)}})
                continue
            if len(alt_df) > len(best):
                best = alt_df
        tsv = best
    return tsv


def tsv_to_tokens(
    tsv: pd.DataFrame, page_index: int, width: int, height: int
) -> List[Token]:
    """Convert Tesseract TSV rows into pixel-space tokens."""
    tokens: List[Token] = []
    for row in tsv.itertuples(index=False):
        text = str(row.text).strip()
        conf = float(row.conf)
        if not text or conf < 0:
            continue
        left, top = float(row.left), float(row.top)
        tokens.append(
            Token(
                text=text,
                source_bbox=(left, top, left + float(row.width), top + float(row.height)),
                coordinate_system=CoordinateSystem.PIXEL_TOP_LEFT,
                page_index=page_index,
                page_width=float(width),
                page_height=float(height),
                confidence=min(1.0, conf / 100.0),
            )
        )
    return tokens


def image_tokens(
    img: Image.Image, page_index: int = 0, **ocr_options: Any
) -> List[Token]:
    """OCR an image into tokens.

    ``ocr_options`` are forwarded to :func:`image_ocr_tsv`.

    Raises
    ------
    ExtractionError
        If Tesseract is missing or fails on this image.
    """
    try:
        tsv = image_ocr_tsv(img, **ocr_options)
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as exc:
        raise ExtractionError(f"OCR failed: {exc}", page_index=page_index) from exc
    width, height = img.size
    return tsv_to_tokens(tsv, page_index, width, height)


def load_image(data: bytes) -> Image.Image:
    """Decode image bytes into a fully loaded PIL image."""
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


__all__ = [
    "pdf_to_images",
    "render_page",
    "image_ocr_tsv",
    "tsv_to_tokens",
    "image_tokens",
    "load_image",
]
