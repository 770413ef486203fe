"""Rendering helpers: run the right compositor and encode its output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from PIL import Image

from cleanshare.redact import encode_image, images_to_pdf, redact_image
from cleanshare.types import ResolvedAction
from cleanshare.vector import redact_pdf

from .config import RunConfig

IMAGE_MEDIA_TYPES = {"PNG": ("png", "image/png"), "JPEG": ("jpg", "image/jpeg")}


@dataclass
class RenderOutput:
    data: bytes
    extension: str
    media_type: str


def render_image(
    img: Image.Image,
    instructions: Sequence[ResolvedAction],
    cfg: RunConfig,
    *,
    output: Optional[Literal["image", "pdf"]] = None,
    image_format: str = "PNG",
    quality: int = 92,
) -> RenderOutput:
    """Redact one raster image and encode it as an image or a single-page PDF."""
    canvas = redact_image(
        img,
        [i for i in instructions if i.box.page == 0],
        blur_radius=cfg.blur_radius,
        label_padding=cfg.label_padding,
    )
    if output == "pdf":
        return RenderOutput(images_to_pdf([canvas], quality=quality), "pdf", "application/pdf")
    ext, media_type = IMAGE_MEDIA_TYPES[image_format.upper()]
    return RenderOutput(encode_image(canvas, image_format, quality), ext, media_type)


def render_pdf(
    data: bytes, instructions: Sequence[ResolvedAction], cfg: RunConfig
) -> RenderOutput:
    out = redact_pdf(
        data,
        instructions,
        raster_dpi=cfg.raster_dpi,
        blur_radius=cfg.blur_radius,
        label_padding=cfg.label_padding,
    )
    return RenderOutput(out, "pdf", "application/pdf")


__all__ = ["RenderOutput", "render_image", "render_pdf"]
