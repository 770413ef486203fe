"""Vector PDF redaction with PyMuPDF.

The source document is copied page by page into a fresh document (links,
annotations and embedded files are left behind). For every page with
actions:

1. the text, vector and image content under each region is removed with
   redaction annotations (page space, no flip). Rotated pages are drawn
   unrotated and turned back afterwards;
2. styles are appended as raw content-stream operators in PDF user space,
   converted through :func:`cleanshare.geometry.to_pdf_user_space`;
3. BLUR and PIXELATE regions are rendered from the *source* page, run
   through the raster compositor and placed back as images.

Document metadata and XMP are cleared unconditionally.
"""

from __future__ import annotations

import io
import math
import random
from typing import Dict, Iterable, List, Optional, Tuple

import pymupdf

from .errors import FatalIOError
from .geometry import derotate, to_page_rect, to_pdf_user_space
from .logging import get_logger
from .ocr import render_page
from .redact import RasterCompositor
from .styles import (
    DEFAULT_GRADIENT_END,
    DEFAULT_PATTERN_BACKGROUND,
    DEFAULT_TEXT_COLOR,
    StyleRenderer,
    label_text,
    parse_color,
    truncate,
)
from .textlayer import PDF_LOCK, open_pdf
from .types import Box, PatternType, ResolvedAction

logger = get_logger(__name__)

Region = Tuple[float, float, float, float]

FONT_NAME = "helv"
# No glyph metrics are available for the raw stream; assume an average width.
GLYPH_WIDTH = 0.6
GRADIENT_BANDS = 24


def _n(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".") or "0"


def _rgb(value: Optional[str], default: str) -> str:
    r, g, b = parse_color(value, default)
    return f"{_n(r / 255)} {_n(g / 255)} {_n(b / 255)}"


def _pdf_string(text: str) -> str:
    safe = text.encode("latin-1", "replace").decode("latin-1")
    return "(" + safe.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)") + ")"


def _page_box(doc: pymupdf.Document, page: pymupdf.Page) -> Tuple[float, float, float, float]:
    """Raw ``/CropBox`` (falling back to ``/MediaBox``) in PDF user space."""
    for key in ("CropBox", "MediaBox"):
        kind, value = doc.xref_get_key(page.xref, key)
        if kind == "array":
            llx, lly, urx, ury = (float(v) for v in value.strip("[]").split())
            return min(llx, urx), min(lly, ury), max(llx, urx), max(lly, ury)
    r = page.rect
    return 0.0, 0.0, r.width, r.height


def _set_key_path(doc: pymupdf.Document, xref: int, path: str, value: str) -> None:
    """``xref_set_key`` for a ``/``-separated path that may cross indirect objects."""
    keys = path.split("/")
    i = 1
    while i < len(keys):
        kind, found = doc.xref_get_key(xref, "/".join(keys[:i]))
        if kind == "xref":
            xref = int(found.split()[0])
            keys = keys[i:]
            i = 1
        else:
            i += 1
    doc.xref_set_key(xref, "/".join(keys), value)


class PdfCanvas:
    """Collects content-stream operators for one page and appends them."""

    def __init__(self, doc: pymupdf.Document, page: pymupdf.Page) -> None:
        self.doc = doc
        self.page = page
        self.ops: List[str] = []
        self._gstates: Dict[str, str] = {}
        self._font_ready = False

    def gstate(self, opacity: float) -> Optional[str]:
        if opacity >= 1.0:
            return None
        name = f"csGS{int(round(opacity * 100))}"
        if name not in self._gstates:
            _set_key_path(
                self.doc,
                self.page.xref,
                f"Resources/ExtGState/{name}",
                f"<</ca {_n(opacity)}/CA {_n(opacity)}>>",
            )
            self._gstates[name] = name
        return name

    def font(self) -> str:
        if not self._font_ready:
            self.page.insert_font(fontname=FONT_NAME)
            self._font_ready = True
        return FONT_NAME

    def push(self, opacity: float = 1.0) -> None:
        self.ops.append("q")
        name = self.gstate(opacity)
        if name:
            self.ops.append(f"/{name} gs")

    def pop(self) -> None:
        self.ops.append("Q")

    def rect_path(self, region: Region, radius: float = 0.0) -> None:
        x, y, w, h = region
        r = min(radius, w / 2, h / 2)
        if r <= 0:
            self.ops.append(f"{_n(x)} {_n(y)} {_n(w)} {_n(h)} re")
            return
        k = r * 0.5523
        x1, y1 = x + w, y + h
        self.ops.extend(
            [
                f"{_n(x + r)} {_n(y)} m",
                f"{_n(x1 - r)} {_n(y)} l",
                f"{_n(x1 - r + k)} {_n(y)} {_n(x1)} {_n(y + r - k)} {_n(x1)} {_n(y + r)} c",
                f"{_n(x1)} {_n(y1 - r)} l",
                f"{_n(x1)} {_n(y1 - r + k)} {_n(x1 - r + k)} {_n(y1)} {_n(x1 - r)} {_n(y1)} c",
                f"{_n(x + r)} {_n(y1)} l",
                f"{_n(x + r - k)} {_n(y1)} {_n(x)} {_n(y1 - r + k)} {_n(x)} {_n(y1 - r)} c",
                f"{_n(x)} {_n(y + r)} l",
                f"{_n(x)} {_n(y + r - k)} {_n(x + r - k)} {_n(y)} {_n(x + r)} {_n(y)} c",
                "h",
            ]
        )

    def clip(self, region: Region) -> None:
        self.rect_path(region)
        self.ops.append("W n")

    def line(self, x0: float, y0: float, x1: float, y1: float) -> None:
        self.ops.append(f"{_n(x0)} {_n(y0)} m {_n(x1)} {_n(y1)} l S")

    def text(self, x: float, y: float, size: float, value: str) -> None:
        font = self.font()
        self.ops.append(
            f"BT /{font} {_n(size)} Tf {_n(x)} {_n(y)} Td {_pdf_string(value)} Tj ET"
        )

    def commit(self) -> None:
        if not self.ops:
            return
        self.page.wrap_contents()
        xref = self.doc.get_new_xref()
        self.doc.update_object(xref, "<<>>")
        self.doc.update_stream(xref, ("\n".join(self.ops) + "\n").encode("latin-1"))
        refs = list(self.page.get_contents()) + [xref]
        self.doc.xref_set_key(
            self.page.xref, "Contents", "[" + " ".join(f"{r} 0 R" for r in refs) + "]"
        )
        self.ops = []


class VectorCompositor(StyleRenderer):
    """Apply resolved actions to one page of the output document.

    ``source_page`` is the matching page of the untouched input, used to
    sample pixels for BLUR and PIXELATE.
    """

    def __init__(
        self,
        doc: pymupdf.Document,
        page: pymupdf.Page,
        source_page: pymupdf.Page,
        *,
        raster_dpi: int = 150,
        blur_radius: float = 8.0,
        label_padding: int = 8,
    ) -> None:
        self.doc = doc
        self.page = page
        self.source_page = source_page
        self.raster_dpi = raster_dpi
        self.blur_radius = blur_radius
        self.label_padding = label_padding
        self.canvas = PdfCanvas(doc, page)
        llx, lly, urx, ury = _page_box(doc, page)
        self.origin = (llx, lly)
        self.width = urx - llx
        self.height = ury - lly
        self._images: List[Tuple[pymupdf.Rect, bytes]] = []

    def apply(self, actions: Iterable[ResolvedAction]) -> None:
        drawn = [a for a in actions if a.draws]
        if not drawn:
            return
        # Boxes are in the displayed frame; draw on the unrotated page and
        # put the rotation back afterwards.
        rotation = self.page.rotation
        source_rotation = self.source_page.rotation
        self.page.set_rotation(0)
        self.source_page.set_rotation(0)
        try:
            self._apply(drawn, [derotate(a.box, rotation) for a in drawn])
        finally:
            self.page.set_rotation(rotation)
            self.source_page.set_rotation(source_rotation)

    def _apply(self, drawn: List[ResolvedAction], boxes: List[Box]) -> None:
        rect = self.page.rect
        for action, box in zip(drawn, boxes):
            self._pending_raster(action, box)
        for box in boxes:
            self.page.add_redact_annot(
                pymupdf.Rect(to_page_rect(box, rect.width, rect.height)), fill=False
            )
        self.page.apply_redactions(images=pymupdf.PDF_REDACT_IMAGE_PIXELS)
        for action, box in zip(drawn, boxes):
            region = to_pdf_user_space(box, self.width, self.height, self.origin)
            self.render(action, region)
        self.canvas.commit()
        for target, png in self._images:
            self.page.insert_image(target, stream=png)

    def _pending_raster(self, action: ResolvedAction, box: Box) -> None:
        method = self.STYLE_METHODS[action.style]
        if method not in ("blur", "pixelate"):
            return
        rect = self.page.rect
        target = pymupdf.Rect(to_page_rect(box, rect.width, rect.height))
        if target.is_empty:
            return
        clip = render_page(self.source_page, self.raster_dpi, clip=target)
        compositor = RasterCompositor(clip, blur_radius=self.blur_radius, inflate_px=0)
        compositor.render(action, (0, 0, clip.width, clip.height))
        buf = io.BytesIO()
        compositor.canvas.save(buf, format="PNG")
        self._images.append((target, buf.getvalue()))

    def _fill(self, action: ResolvedAction, region: Region, *, border: bool) -> None:
        cfg = action.config
        c = self.canvas
        c.push(cfg.opacity)
        c.ops.append(f"{_rgb(cfg.color, '#000000')} rg")
        width = cfg.border_width
        stroke = cfg.border_color
        if border:
            width = width or 2.0
            stroke = stroke or cfg.color
        c.rect_path(region, cfg.corner_radius)
        if width and stroke:
            c.ops.append(f"{_rgb(stroke, '#000000')} RG {_n(width)} w B")
        else:
            c.ops.append("f")
        c.pop()

    def box(self, action: ResolvedAction, region: Region) -> None:
        self._fill(action, region, border=False)

    def vector_overlay(self, action: ResolvedAction, region: Region) -> None:
        self._fill(action, region, border=True)

    def blur(self, action: ResolvedAction, region: Region) -> None:
        # Placed as an image in apply().
        return None

    pixelate = blur

    def label(self, action: ResolvedAction, region: Region) -> None:
        cfg = action.config
        x, y, w, h = region
        size = cfg.font_size or max(8.0, h * 0.6)
        limit = w - self.label_padding
        text = truncate(
            label_text(action), lambda s: len(s) * size * GLYPH_WIDTH <= limit, ellipsis="..."
        )
        c = self.canvas
        c.push(cfg.opacity)
        c.ops.append(f"{_rgb(cfg.color, '#000000')} rg")
        c.rect_path(region, cfg.corner_radius)
        c.ops.append("f")
        if text:
            est = len(text) * size * GLYPH_WIDTH
            c.ops.append(f"{_rgb(cfg.secondary_color, DEFAULT_TEXT_COLOR)} rg")
            c.text(x + max(0.0, (w - est) / 2), y + h / 2 - size * 0.35, size, text)
        c.pop()

    def pattern(self, action: ResolvedAction, region: Region) -> None:
        cfg = action.config
        x, y, w, h = region
        c = self.canvas
        c.push(cfg.opacity)
        c.clip(region)
        c.ops.append(f"{_rgb(cfg.secondary_color, DEFAULT_PATTERN_BACKGROUND)} rg")
        c.rect_path(region)
        c.ops.append("f")
        c.ops.append(f"{_rgb(cfg.color, '#000000')} RG 2 w")
        kind = cfg.pattern_type
        if kind is PatternType.DIAGONAL:
            for i in _steps(-h, w + h, 8):
                c.line(x + i, y, x + i + h, y + h)
        elif kind is PatternType.CROSS_HATCH:
            for i in _steps(-h, w + h, 6):
                c.line(x + i, y, x + i + h, y + h)
                c.line(x + i, y + h, x + i + h, y)
        elif kind is PatternType.DOTS:
            c.ops.append("1 J 3 w")
            for dx in _steps(0, w, 8):
                for dy in _steps(0, h, 8):
                    c.line(x + dx + 4, y + dy + 4, x + dx + 4, y + dy + 4)
        elif kind is PatternType.WAVES:
            points = [
                (x + i, y + h / 2 + math.sin(i / max(w, 1.0) * math.pi * 4) * h * 0.2)
                for i in _steps(0, w, 2)
            ]
            if len(points) > 1:
                head = f"{_n(points[0][0])} {_n(points[0][1])} m"
                tail = " ".join(f"{_n(px)} {_n(py)} l" for px, py in points[1:])
                c.ops.append(f"{head} {tail} S")
        elif kind is PatternType.NOISE:
            c.ops.append("1 J 2 w")
            rng = random.Random(f"{_n(x)}:{_n(y)}:{_n(w)}:{_n(h)}")
            for _ in range(int(w * h // 20)):
                nx, ny = x + rng.uniform(0, w), y + rng.uniform(0, h)
                c.line(nx, ny, nx, ny)
        c.pop()

    def gradient(self, action: ResolvedAction, region: Region) -> None:
        cfg = action.config
        x, y, w, h = region
        start = parse_color(cfg.color)
        end = parse_color(cfg.secondary_color, DEFAULT_GRADIENT_END)
        bands = max(1, min(GRADIENT_BANDS, int(w)))
        step = w / bands
        c = self.canvas
        c.push(cfg.opacity)
        for i in range(bands):
            t = i / max(bands - 1, 1)
            r, g, b = (s + (e - s) * t for s, e in zip(start, end))
            c.ops.append(f"{_n(r / 255)} {_n(g / 255)} {_n(b / 255)} rg")
            # Overlap each band slightly so no seam shows between them.
            c.rect_path((x + i * step, y, step + 0.5, h))
            c.ops.append("f")
        c.pop()


def _steps(start: float, stop: float, step: float) -> List[float]:
    out = []
    v = float(start)
    while v < stop:
        out.append(v)
        v += step
    return out


def scrub_metadata(doc: pymupdf.Document) -> None:
    """Clear the info dictionary and the XMP stream."""
    doc.set_metadata({})
    doc.del_xml_metadata()


def redact_pdf(
    data: bytes,
    actions: Iterable[ResolvedAction],
    *,
    raster_dpi: int = 150,
    blur_radius: float = 8.0,
    label_padding: int = 8,
) -> bytes:
    """Return redacted PDF bytes; ``data`` itself is never modified."""
    by_page: Dict[int, List[ResolvedAction]] = {}
    for action in actions:
        by_page.setdefault(action.box.page, []).append(action)
    with PDF_LOCK:
        source = open_pdf(data)
        out = pymupdf.open()
        try:
            out.insert_pdf(source, links=False, annots=False)
            for index, page in enumerate(out):
                page_actions = by_page.get(index)
                if not page_actions:
                    continue
                VectorCompositor(
                    out,
                    page,
                    source[index],
                    raster_dpi=raster_dpi,
                    blur_radius=blur_radius,
                    label_padding=label_padding,
                ).apply(page_actions)
            logger.debug("Redacted PDF pages", extra={"fields": {"pages": sorted(by_page)}})
            scrub_metadata(out)
            try:
                return out.tobytes(garbage=4, deflate=True)
            except (RuntimeError, ValueError) as exc:
                raise FatalIOError(f"Cannot write redacted PDF: {exc}") from exc
        finally:
            out.close()
            source.close()


__all__ = ["PdfCanvas", "VectorCompositor", "redact_pdf", "scrub_metadata"]
