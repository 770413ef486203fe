"""Core data model shared by detection, resolution and compositing.

Wire-facing records (``Box``, ``Detection``, ``CustomPattern``,
``RedactionAction`` ...) are pydantic models so they validate and serialize
the same way from the CLI, the HTTP service and library callers. ``Detection``
and ``Box`` are frozen: once the assembler emits them nothing mutates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import regex as re
from pydantic import BaseModel, ConfigDict, Field, field_validator

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Tolerance for boxes that touch the page edge after float rounding.
BOX_EPSILON = 1e-6


class DetectionKind(str, Enum):
    """Kinds of sensitive content the detectors can report."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    PAN = "PAN"
    IBAN = "IBAN"
    SSN = "SSN"
    PASSPORT = "PASSPORT"
    JWT = "JWT"
    API_KEY = "API_KEY"
    BARCODE = "BARCODE"
    ADDRESS = "ADDRESS"
    NAME = "NAME"
    FACE = "FACE"
    OTHER = "OTHER"


class RedactionStyle(str, Enum):
    """Visual or structural treatment applied to a detection's region."""

    BOX = "BOX"
    BLUR = "BLUR"
    PIXELATE = "PIXELATE"
    LABEL = "LABEL"
    MASK_LAST4 = "MASK_LAST4"
    PATTERN = "PATTERN"
    GRADIENT = "GRADIENT"
    SOLID_COLOR = "SOLID_COLOR"
    VECTOR_OVERLAY = "VECTOR_OVERLAY"
    REMOVE_METADATA = "REMOVE_METADATA"


class PatternType(str, Enum):
    DIAGONAL = "diagonal"
    DOTS = "dots"
    CROSS_HATCH = "cross-hatch"
    WAVES = "waves"
    NOISE = "noise"


class CoordinateSystem(str, Enum):
    """Unit and origin of a token source's bounding boxes."""

    PIXEL_TOP_LEFT = "pixel_top_left"
    POINT_TOP_LEFT = "point_top_left"


class Box(BaseModel):
    """Normalized top-left-origin rectangle on a zero-based page."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0)
    y: float = Field(ge=0.0)
    w: float = Field(ge=0.0)
    h: float = Field(ge=0.0)
    page: int = Field(default=0, ge=0)

    @field_validator("w")
    @classmethod
    def _fits_width(cls, value: float, info) -> float:
        x = info.data.get("x", 0.0)
        if x + value > 1.0 + BOX_EPSILON:
            raise ValueError("box exceeds page width")
        return value

    @field_validator("h")
    @classmethod
    def _fits_height(cls, value: float, info) -> float:
        y = info.data.get("y", 0.0)
        if y + value > 1.0 + BOX_EPSILON:
            raise ValueError("box exceeds page height")
        return value


class Detection(BaseModel):
    """A classified, located, confidence-scored sensitive token."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: DetectionKind
    box: Box
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    preview: Optional[str] = None


class CustomPattern(BaseModel):
    """User-supplied regex rule evaluated before the built-in detectors."""

    id: str
    name: str
    pattern: str
    kind: DetectionKind = DetectionKind.OTHER
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    case_sensitive: bool = False
    description: str = ""


class RedactionConfig(BaseModel):
    """Optional per-action styling parameters."""

    color: Optional[str] = None
    secondary_color: Optional[str] = None
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    pattern_type: PatternType = PatternType.DIAGONAL
    border_width: float = Field(default=0.0, ge=0.0)
    border_color: Optional[str] = None
    corner_radius: float = Field(default=0.0, ge=0.0)
    label_text: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0.0)

    @field_validator("color", "secondary_color", "border_color")
    @classmethod
    def _hex_color(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not HEX_COLOR_RE.match(value):
            raise ValueError(f"expected a #rrggbb color, got {value!r}")
        return value


class RedactionAction(BaseModel):
    """A caller's request to redact one detection with a given style."""

    detection_id: str
    style: RedactionStyle = RedactionStyle.BOX
    config: RedactionConfig = Field(default_factory=RedactionConfig)


class AnalyzeResult(BaseModel):
    detections: List[Detection] = Field(default_factory=list)
    pages: int = 1
    warnings: List[str] = Field(default_factory=list)


class RedactionReport(BaseModel):
    total_detections: int = 0
    redacted_count: int = 0
    skipped_count: int = 0
    by_kind: Dict[str, int] = Field(default_factory=dict)
    by_style: Dict[str, int] = Field(default_factory=dict)


class ApplyResult(BaseModel):
    data: bytes
    filename: str
    media_type: str
    report: RedactionReport
    errors: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Token:
    """A raw text token as reported by a token source.

    ``source_bbox`` is ``(x0, y0, x1, y1)`` in the units of
    ``coordinate_system`` relative to a page of ``page_width`` by
    ``page_height``. ``confidence`` is the OCR confidence in ``[0, 1]``.
    """

    text: str
    source_bbox: Tuple[float, float, float, float]
    coordinate_system: CoordinateSystem
    page_index: int
    page_width: float
    page_height: float
    confidence: Optional[float] = None


@dataclass(frozen=True)
class BarcodeHit:
    """A decoded barcode/QR symbol located by its four corner points."""

    points: Tuple[Tuple[float, float], ...]
    payload: str
    page_index: int
    page_width: float
    page_height: float
    symbology: str = "QR"


@dataclass(frozen=True)
class ResolvedAction:
    """A redaction action bound to its detection, ready for a compositor.

    ``box`` stays normalized; each compositor converts it to its own
    substrate units through :mod:`cleanshare.geometry`.
    """

    detection: Detection
    box: Box
    style: RedactionStyle
    config: RedactionConfig

    @property
    def draws(self) -> bool:
        return self.style is not RedactionStyle.REMOVE_METADATA


def as_kind(value: Any) -> DetectionKind:
    """Coerce a wire string (any case) into a ``DetectionKind``."""
    if isinstance(value, DetectionKind):
        return value
    return DetectionKind(str(value).strip().upper())


__all__ = [
    "DetectionKind",
    "RedactionStyle",
    "PatternType",
    "CoordinateSystem",
    "Box",
    "Detection",
    "CustomPattern",
    "RedactionConfig",
    "RedactionAction",
    "AnalyzeResult",
    "RedactionReport",
    "ApplyResult",
    "Token",
    "BarcodeHit",
    "ResolvedAction",
    "as_kind",
]
