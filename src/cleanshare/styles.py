"""Redaction style strategy shared by the raster and vector compositors.

:class:`StyleRenderer` owns the one mapping from :class:`RedactionStyle` to a
drawing method. Backends subclass it and implement the primitives for their
substrate; nothing else switches on the style.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Optional, Tuple

from .types import RedactionStyle, ResolvedAction

RGB = Tuple[int, int, int]
Region = Tuple[float, float, float, float]

DEFAULT_COLOR = "#000000"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_PATTERN_BACKGROUND = "#f0f0f0"
DEFAULT_GRADIENT_END = "#808080"
ELLIPSIS = "…"
MASK_KEEP = 4


def parse_color(value: Optional[str], default: str = DEFAULT_COLOR) -> RGB:
    """Parse ``#rgb``/``#rrggbb`` into an RGB tuple of ints."""
    raw = (value or default).lstrip("#")
    if len(raw) == 3:
        raw = "".join(c * 2 for c in raw)
    return int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16)


def mask_last4(preview: Optional[str]) -> str:
    """Mask every alphanumeric but the last four; separators are kept.

    >>> mask_last4("4111 1111 1111 1111")
    '**** **** **** 1111'
    """
    text = preview or ""
    out = []
    kept = 0
    for ch in reversed(text):
        if ch.isalnum():
            if kept < MASK_KEEP:
                out.append(ch)
                kept += 1
            else:
                out.append("*")
        else:
            out.append(ch)
    return "".join(reversed(out))


def label_text(action: ResolvedAction) -> str:
    if action.style is RedactionStyle.MASK_LAST4:
        return mask_last4(action.detection.preview)
    return action.config.label_text or action.detection.kind.value


def pixel_size(w: float, h: float) -> int:
    """Pixelation cell edge for a region."""
    return max(4, int(math.floor(min(w, h) / 10)))


def truncate(text: str, fits: Callable[[str], bool], ellipsis: str = ELLIPSIS) -> str:
    """Shorten ``text`` until ``fits`` accepts it, marking the cut with ``ellipsis``."""
    if fits(text):
        return text
    cut = text
    while cut:
        cut = cut[:-1]
        if fits(cut + ellipsis):
            return cut + ellipsis
    return ""


def default_font_size(h: float) -> float:
    return max(10.0, math.floor(h * 0.6))


class StyleRenderer:
    """Dispatch resolved actions to per-style drawing methods.

    Subclasses receive ``region`` as ``(x, y, w, h)`` in their own substrate
    units. ``solid_color``, ``mask_last4`` and ``remove_metadata`` have
    shared defaults; the rest are backend specific.
    """

    STYLE_METHODS: Dict[RedactionStyle, str] = {
        RedactionStyle.BOX: "box",
        RedactionStyle.SOLID_COLOR: "solid_color",
        RedactionStyle.BLUR: "blur",
        RedactionStyle.PIXELATE: "pixelate",
        RedactionStyle.LABEL: "label",
        RedactionStyle.MASK_LAST4: "mask_last4",
        RedactionStyle.PATTERN: "pattern",
        RedactionStyle.GRADIENT: "gradient",
        RedactionStyle.VECTOR_OVERLAY: "vector_overlay",
        RedactionStyle.REMOVE_METADATA: "remove_metadata",
    }

    def render(self, action: ResolvedAction, region: Region) -> None:
        method = getattr(self, self.STYLE_METHODS[action.style])
        method(action, region)

    def box(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def solid_color(self, action: ResolvedAction, region: Region) -> None:
        self.box(action, region)

    def blur(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def pixelate(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def label(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def mask_last4(self, action: ResolvedAction, region: Region) -> None:
        self.label(action, region)

    def pattern(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def gradient(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def vector_overlay(self, action: ResolvedAction, region: Region) -> None:
        raise NotImplementedError

    def remove_metadata(self, action: ResolvedAction, region: Region) -> None:
        # Handled when the output is written.
        return None


__all__ = [
    "StyleRenderer",
    "parse_color",
    "mask_last4",
    "label_text",
    "pixel_size",
    "truncate",
    "default_font_size",
]
