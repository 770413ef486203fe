"""Configuration primitives for the CleanShare pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from cleanshare.types import CustomPattern, Detection, DetectionKind


@dataclass
class RunConfig:
    """Runtime configuration for extraction and compositing."""

    lang: str = "eng"
    psm: int = 3
    dpi: int = 200
    preprocess: bool = True
    binarize: bool = True
    auto_psm: bool = True
    min_tokens_for_psm: int = 5
    tess_configs: Optional[Dict[str, Any]] = None
    use_text_layer: bool = True
    ocr_fallback: bool = True
    scan_barcodes: bool = True
    blur_radius: float = 8.0
    label_padding: int = 8
    raster_dpi: int = 150


class AnalyzeOptions(BaseModel):
    """Per-call detection options.

    ``preset_id`` selects a packaged or on-disk preset; explicit
    ``enabled_kinds`` / ``confidence_threshold`` / ``custom_patterns`` take
    precedence over the preset's values.
    """

    preset_id: Optional[str] = None
    enabled_kinds: Optional[List[DetectionKind]] = None
    confidence_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    custom_patterns: List[CustomPattern] = Field(default_factory=list)


class ApplyOptions(BaseModel):
    """Per-call redaction options.

    ``detections`` must be the list returned by the analysis of this very
    document; there is no implicit "last result".
    """

    detections: List[Detection] = Field(default_factory=list)
    pages: Optional[int] = Field(default=None, ge=1)
    output: Optional[Literal["image", "pdf"]] = None
    image_format: Literal["PNG", "JPEG"] = "PNG"
    quality: int = Field(default=92, ge=1, le=100)


__all__ = ["RunConfig", "AnalyzeOptions", "ApplyOptions"]
