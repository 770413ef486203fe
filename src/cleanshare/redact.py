"""Raster redaction.

Draws redaction styles onto a Pillow copy of a page image and re-encodes the
result (PNG/JPEG, or a compact PDF through ``img2pdf``). Re-encoding from the
canvas means EXIF/XMP from the input never reach the output.
"""

from __future__ import annotations

import io
import math
import random
from typing import Callable, Iterable, List, Tuple

import img2pdf
import numpy as np
from PIL import Image, ImageDraw, ImageFilter, ImageFont

from .geometry import to_pixel_rect
from .styles import (
    DEFAULT_GRADIENT_END,
    DEFAULT_PATTERN_BACKGROUND,
    DEFAULT_TEXT_COLOR,
    StyleRenderer,
    default_font_size,
    label_text,
    parse_color,
    pixel_size,
    truncate,
)
from .types import PatternType, ResolvedAction

PixelRect = Tuple[int, int, int, int]


def _inflate(box: PixelRect, px: int, W: int, H: int) -> PixelRect:
    """Inflate a rectangle while clamping to image bounds."""
    x, y, w, h = box
    x2 = max(0, x - px)
    y2 = max(0, y - px)
    w2 = min(W - x2, w + 2 * px)
    h2 = min(H - y2, h + 2 * px)
    return (x2, y2, w2, h2)


class RasterCompositor(StyleRenderer):
    """Apply resolved actions to one page image.

    Parameters
    ----------
    image:
        Source page image. It is never modified; BLUR and PIXELATE sample it
        directly so stacked redactions do not feed on each other.
    blur_radius:
        Gaussian radius for BLUR, in pixels.
    label_padding:
        Horizontal room kept free around LABEL/MASK_LAST4 text.
    inflate_px:
        Pixels added on every side of each region for safer coverage.
    """

    def __init__(
        self,
        image: Image.Image,
        *,
        blur_radius: float = 8.0,
        label_padding: int = 8,
        inflate_px: int = 1,
    ) -> None:
        self.source = image.convert("RGB")
        self.canvas = self.source.copy()
        self.blur_radius = blur_radius
        self.label_padding = label_padding
        self.inflate_px = inflate_px

    def apply(self, actions: Iterable[ResolvedAction]) -> Image.Image:
        W, H = self.canvas.size
        for action in actions:
            if not action.draws:
                continue
            rect = _inflate(to_pixel_rect(action.box, W, H), self.inflate_px, W, H)
            if rect[2] <= 0 or rect[3] <= 0:
                continue
            self.render(action, rect)
        return self.canvas

    def _layer(
        self, region: PixelRect, opacity: float, paint: Callable[[Image.Image], Image.Image]
    ) -> None:
        """Paint a region-sized tile and blend it back with ``opacity``.

        Drawing happens in tile-local coordinates, which also clips every
        primitive to the region.
        """
        x, y, w, h = region
        tile = self.canvas.crop((x, y, x + w, y + h))
        painted = paint(tile.copy())
        if opacity < 1.0:
            painted = Image.blend(tile, painted, opacity)
        self.canvas.paste(painted, (x, y))

    def _fill(self, action: ResolvedAction, region: PixelRect, *, border: bool) -> None:
        cfg = action.config
        _, _, w, h = region
        fill = parse_color(cfg.color)
        outline = None
        width = 0
        if border:
            width = max(1, int(round(cfg.border_width or 2)))
            outline = parse_color(cfg.border_color or cfg.color)
        elif cfg.border_width and cfg.border_color:
            width = int(round(cfg.border_width))
            outline = parse_color(cfg.border_color)

        def paint(tile: Image.Image) -> Image.Image:
            draw = ImageDraw.Draw(tile)
            shape = [0, 0, w - 1, h - 1]
            if cfg.corner_radius > 0:
                draw.rounded_rectangle(
                    shape, radius=cfg.corner_radius, fill=fill, outline=outline, width=width
                )
            else:
                draw.rectangle(shape, fill=fill, outline=outline, width=width)
            return tile

        self._layer(region, cfg.opacity, paint)

    def box(self, action: ResolvedAction, region: PixelRect) -> None:
        self._fill(action, region, border=False)

    def vector_overlay(self, action: ResolvedAction, region: PixelRect) -> None:
        self._fill(action, region, border=True)

    def blur(self, action: ResolvedAction, region: PixelRect) -> None:
        x, y, w, h = region
        W, H = self.source.size
        margin = int(math.ceil(self.blur_radius * 2))
        x0, y0 = max(0, x - margin), max(0, y - margin)
        x1, y1 = min(W, x + w + margin), min(H, y + h + margin)
        blurred = self.source.crop((x0, y0, x1, y1)).filter(
            ImageFilter.GaussianBlur(self.blur_radius)
        )
        inner = blurred.crop((x - x0, y - y0, x - x0 + w, y - y0 + h))
        self.canvas.paste(inner, (x, y))

    def pixelate(self, action: ResolvedAction, region: PixelRect) -> None:
        x, y, w, h = region
        cell = pixel_size(w, h)
        small = self.source.crop((x, y, x + w, y + h)).resize(
            (max(1, math.ceil(w / cell)), max(1, math.ceil(h / cell))), Image.BOX
        )
        self.canvas.paste(small.resize((w, h), Image.NEAREST), (x, y))

    def label(self, action: ResolvedAction, region: PixelRect) -> None:
        cfg = action.config
        _, _, w, h = region
        fill = parse_color(cfg.color)
        ink = parse_color(cfg.secondary_color, DEFAULT_TEXT_COLOR)
        font = ImageFont.load_default(size=cfg.font_size or default_font_size(h))
        limit = w - self.label_padding

        def paint(tile: Image.Image) -> Image.Image:
            draw = ImageDraw.Draw(tile)
            shape = [0, 0, w - 1, h - 1]
            if cfg.corner_radius > 0:
                draw.rounded_rectangle(shape, radius=cfg.corner_radius, fill=fill)
            else:
                draw.rectangle(shape, fill=fill)
            text = truncate(label_text(action), lambda s: draw.textlength(s, font=font) <= limit)
            if text:
                draw.text((w / 2, h / 2), text, fill=ink, font=font, anchor="mm")
            return tile

        self._layer(region, cfg.opacity, paint)

    def pattern(self, action: ResolvedAction, region: PixelRect) -> None:
        cfg = action.config
        x, y, w, h = region
        ink = parse_color(cfg.color)
        background = parse_color(cfg.secondary_color, DEFAULT_PATTERN_BACKGROUND)
        kind = cfg.pattern_type

        def paint(tile: Image.Image) -> Image.Image:
            draw = ImageDraw.Draw(tile)
            draw.rectangle([0, 0, w, h], fill=background)
            if kind is PatternType.DIAGONAL:
                for i in range(-h, w + h, 8):
                    draw.line([(i, 0), (i + h, h)], fill=ink, width=2)
            elif kind is PatternType.CROSS_HATCH:
                for i in range(-h, w + h, 6):
                    draw.line([(i, 0), (i + h, h)], fill=ink, width=2)
                for i in range(0, w + h, 6):
                    draw.line([(i, h), (i - h, 0)], fill=ink, width=2)
            elif kind is PatternType.DOTS:
                for dx in range(0, w, 8):
                    for dy in range(0, h, 8):
                        cx, cy = dx + 4, dy + 4
                        draw.ellipse([cx - 1.5, cy - 1.5, cx + 1.5, cy + 1.5], fill=ink)
            elif kind is PatternType.WAVES:
                points = [
                    (i, h / 2 + math.sin(i / max(w, 1) * math.pi * 4) * h * 0.2)
                    for i in range(0, w, 2)
                ]
                if len(points) > 1:
                    draw.line(points, fill=ink, width=2)
            elif kind is PatternType.NOISE:
                rng = random.Random(f"{x}:{y}:{w}:{h}")
                for _ in range(w * h // 20):
                    nx, ny = rng.uniform(0, w), rng.uniform(0, h)
                    draw.ellipse([nx - 1, ny - 1, nx + 1, ny + 1], fill=ink)
            return tile

        self._layer(region, cfg.opacity, paint)

    def gradient(self, action: ResolvedAction, region: PixelRect) -> None:
        cfg = action.config
        _, _, w, h = region
        start = np.array(parse_color(cfg.color), dtype=np.float32)
        end = np.array(parse_color(cfg.secondary_color, DEFAULT_GRADIENT_END), dtype=np.float32)

        def paint(tile: Image.Image) -> Image.Image:
            ys, xs = np.mgrid[0:h, 0:w].astype(np.float32)
            # Projection onto the top-left to bottom-right diagonal.
            t = (xs * w + ys * h) / float(max(w * w + h * h, 1))
            t = np.clip(t, 0.0, 1.0)[..., None]
            arr = start * (1.0 - t) + end * t
            return Image.fromarray(arr.astype(np.uint8), "RGB")

        self._layer(region, cfg.opacity, paint)


def redact_image(
    img: Image.Image, actions: Iterable[ResolvedAction], **options
) -> Image.Image:
    """Return a redacted copy of ``img``; ``options`` go to :class:`RasterCompositor`."""
    return RasterCompositor(img, **options).apply(actions)


def encode_image(img: Image.Image, fmt: str = "PNG", quality: int = 92) -> bytes:
    """Encode a canvas as PNG or JPEG without carrying over any metadata."""
    buf = io.BytesIO()
    if img.mode != "RGB":
        img = img.convert("RGB")
    if fmt.upper() == "JPEG":
        img.save(buf, format="JPEG", quality=quality)
    else:
        img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def images_to_pdf(images: List[Image.Image], quality: int = 95) -> bytes:
    """Bundle page images into a compact PDF."""
    pages = [encode_image(im, "JPEG", quality) for im in images]
    return img2pdf.convert(pages)


__all__ = ["RasterCompositor", "redact_image", "encode_image", "images_to_pdf"]
