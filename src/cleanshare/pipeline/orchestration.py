"""High-level orchestration for CleanShare analyze/apply runs.

``analyze`` and ``apply`` are synchronous pipelines over one document.
``analyze_document`` and ``apply_redactions`` are the async facade: decode,
OCR and encode run in worker threads so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from cleanshare import barcode
from cleanshare.audit import AuditSink, JsonlAuditSink, NullAuditSink, build_record
from cleanshare.errors import ExtractionError, FatalIOError
from cleanshare.logging import get_logger
from cleanshare.ocr import image_tokens, load_image, pdf_to_images
from cleanshare.patterns import build_engine
from cleanshare.presets import load_preset
from cleanshare.settings import get_settings
from cleanshare.textlayer import PDF_LOCK, open_pdf, page_tokens
from cleanshare.types import AnalyzeResult, ApplyResult, RedactionAction, Token

from .config import AnalyzeOptions, ApplyOptions, RunConfig
from .detection import PageTokens, assemble
from .packaging import build_report, package
from .rendering import RenderOutput, render_image, render_pdf
from .resolution import resolve

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"


@dataclass
class DocumentInput:
    """Raw document bytes plus the sniffed type."""

    data: bytes
    name: str = "document"
    kind: str = "image"  # "pdf" | "image"
    image_format: Optional[str] = None

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "document") -> "DocumentInput":
        if not data:
            raise FatalIOError(f"Empty input: {name}")
        if PDF_MAGIC in data[:1024]:
            return cls(data=data, name=name, kind="pdf")
        try:
            with Image.open(io.BytesIO(data)) as probe:
                fmt = probe.format
        except (UnidentifiedImageError, OSError) as exc:
            raise FatalIOError(f"Unsupported input type: {name}") from exc
        return cls(data=data, name=name, kind="image", image_format=fmt)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "DocumentInput":
        p = Path(path)
        if not p.is_file():
            raise FatalIOError(f"Input not found: {path}")
        return cls.from_bytes(p.read_bytes(), name=p.name)

    @property
    def is_pdf(self) -> bool:
        return self.kind == "pdf"

    def image(self) -> Image.Image:
        try:
            img = load_image(self.data)
        except (UnidentifiedImageError, OSError) as exc:
            raise FatalIOError(f"Cannot decode image {self.name}: {exc}") from exc
        return ImageOps.exif_transpose(img).convert("RGB")

    def page_count(self) -> int:
        if not self.is_pdf:
            return 1
        with PDF_LOCK, open_pdf(self.data) as pdf:
            return len(pdf)


DocumentLike = Union[DocumentInput, bytes, str, Path]


def as_document(file: DocumentLike, name: Optional[str] = None) -> DocumentInput:
    if isinstance(file, DocumentInput):
        return file
    if isinstance(file, (bytes, bytearray)):
        return DocumentInput.from_bytes(bytes(file), name=name or "document")
    return DocumentInput.from_path(file)


def _ocr_options(cfg: RunConfig) -> dict:
    return {
        "lang": cfg.lang,
        "psm": cfg.psm,
        "preprocess": cfg.preprocess,
        "binarize": cfg.binarize,
        "auto_psm": cfg.auto_psm,
        "min_tokens": cfg.min_tokens_for_psm,
        "tess_configs": cfg.tess_configs,
    }


def _page_from_image(
    img: Image.Image, index: int, cfg: RunConfig, warnings: List[str], *, ocr: bool = True
) -> PageTokens:
    page = PageTokens(page_index=index)
    if ocr:
        try:
            page.tokens = image_tokens(img, index, **_ocr_options(cfg))
        except ExtractionError as exc:
            logger.warning("OCR failed; page skipped", extra={"fields": {"page": index, "error": str(exc)}})
            warnings.append(f"page {index + 1}: {exc}")
    if cfg.scan_barcodes:
        try:
            page.barcodes = barcode.scan(img, index)
        except ExtractionError as exc:
            logger.warning("Barcode scan failed", extra={"fields": {"page": index, "error": str(exc)}})
            warnings.append(f"page {index + 1}: {exc}")
    return page


def _text_layer(pdf_page, index: int, cfg: RunConfig, warnings: List[str]) -> List[Token]:
    if not cfg.use_text_layer:
        return []
    try:
        return page_tokens(pdf_page, index)
    except ExtractionError as exc:
        logger.warning("Text layer unreadable", extra={"fields": {"page": index}})
        warnings.append(f"page {index + 1}: {exc}")
        return []


def _extract_pdf(data: bytes, cfg: RunConfig, warnings: List[str]) -> Tuple[List[PageTokens], int]:
    # Only the PyMuPDF reads hold the lock; OCR below runs unlocked.
    with PDF_LOCK, open_pdf(data) as pdf:
        count = len(pdf)
        layers = [_text_layer(p, index, cfg, warnings) for index, p in enumerate(pdf)]

    pages: List[PageTokens] = []
    images: Optional[List[Image.Image]] = None

    def raster(index: int) -> Optional[Image.Image]:
        nonlocal images
        if images is None:
            try:
                images = pdf_to_images(data, dpi=cfg.dpi)
            except ExtractionError as exc:
                logger.warning("Rasterization failed", extra={"fields": {"error": str(exc)}})
                warnings.append(str(exc))
                images = []
        return images[index] if index < len(images) else None

    for index, tokens in enumerate(layers):
        need_ocr = not tokens and cfg.ocr_fallback
        if need_ocr or cfg.scan_barcodes:
            img = raster(index)
            if img is not None:
                page = _page_from_image(img, index, cfg, warnings, ocr=need_ocr)
                page.tokens = tokens + page.tokens
                pages.append(page)
                continue
        pages.append(PageTokens(page_index=index, tokens=tokens))
    return pages, count


def extract(doc: DocumentInput, cfg: RunConfig) -> Tuple[List[PageTokens], int, List[str]]:
    """Collect tokens and barcode hits for every page of ``doc``."""
    warnings: List[str] = []
    if doc.is_pdf:
        pages, count = _extract_pdf(doc.data, cfg, warnings)
    else:
        pages, count = [_page_from_image(doc.image(), 0, cfg, warnings)], 1
    logger.info(
        "Extracted tokens",
        extra={
            "fields": {
                "document": doc.name,
                "pages": count,
                "tokens": sum(len(p.tokens) for p in pages),
            }
        },
    )
    return pages, count, warnings


def analyze(
    file: DocumentLike,
    options: Optional[AnalyzeOptions] = None,
    cfg: Optional[RunConfig] = None,
) -> AnalyzeResult:
    """Detect sensitive tokens in a document.

    Explicit ``enabled_kinds``/``confidence_threshold`` win over the preset's;
    custom patterns from both are evaluated, the caller's first.
    """
    doc = as_document(file)
    cfg = cfg or RunConfig()
    options = options or AnalyzeOptions()
    preset = load_preset(options.preset_id)
    enabled = options.enabled_kinds
    if enabled is None and preset is not None:
        enabled = preset.enabled_kinds
    threshold = options.confidence_threshold
    if threshold is None and preset is not None:
        threshold = preset.confidence_threshold
    patterns = list(options.custom_patterns) + (preset.all_patterns() if preset else [])
    engine = build_engine(patterns)
    engine.validate()

    pages, count, warnings = extract(doc, cfg)
    result = assemble(
        pages,
        count,
        enabled_kinds=enabled,
        confidence_threshold=threshold,
        engine=engine,
    )
    result.warnings = warnings + engine.warnings + result.warnings
    if options.preset_id and preset is None:
        result.warnings.append(f"preset {options.preset_id!r} not loaded; no preset filtering")
    return result


def default_audit_sink() -> AuditSink:
    path = get_settings().audit_path
    return JsonlAuditSink(path) if path else NullAuditSink()


def apply(
    file: DocumentLike,
    actions: Sequence[RedactionAction],
    options: ApplyOptions,
    cfg: Optional[RunConfig] = None,
    audit: Optional[AuditSink] = None,
) -> ApplyResult:
    """Apply redaction actions using the detections passed in ``options``.

    Raises
    ------
    FatalIOError
        If the document cannot be read or no output can be produced.
    """
    doc = as_document(file)
    cfg = cfg or RunConfig()
    pages = options.pages or doc.page_count()
    resolution = resolve(actions, options.detections, pages)
    if doc.is_pdf:
        rendered: RenderOutput = render_pdf(doc.data, resolution.instructions, cfg)
    else:
        rendered = render_image(
            doc.image(),
            resolution.instructions,
            cfg,
            output=options.output,
            image_format=options.image_format,
            quality=options.quality,
        )
    report = build_report(options.detections, resolution)
    errors = [str(e) for e in resolution.errors]
    result = package(
        rendered.data,
        source_name=doc.name,
        extension=rendered.extension,
        media_type=rendered.media_type,
        report=report,
        errors=errors,
    )
    sink = audit if audit is not None else default_audit_sink()
    sink.record(build_record(doc.name, doc.data, result.data, result.filename, report, errors))
    logger.info(
        "Applied redactions",
        extra={
            "fields": {
                "document": doc.name,
                "redacted": report.redacted_count,
                "skipped": report.skipped_count,
            }
        },
    )
    return result


async def analyze_document(
    file: DocumentLike,
    options: Optional[AnalyzeOptions] = None,
    cfg: Optional[RunConfig] = None,
) -> AnalyzeResult:
    """Async facade over :func:`analyze`."""
    doc = await asyncio.to_thread(as_document, file)
    return await asyncio.to_thread(analyze, doc, options, cfg)


async def apply_redactions(
    file: DocumentLike,
    actions: Sequence[RedactionAction],
    options: ApplyOptions,
    cfg: Optional[RunConfig] = None,
    audit: Optional[AuditSink] = None,
) -> ApplyResult:
    """Async facade over :func:`apply`."""
    doc = await asyncio.to_thread(as_document, file)
    return await asyncio.to_thread(apply, doc, actions, options, cfg, audit)


__all__ = [
    "DocumentInput",
    "as_document",
    "extract",
    "analyze",
    "apply",
    "analyze_document",
    "apply_redactions",
    "default_audit_sink",
]
