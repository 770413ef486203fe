"""Error taxonomy for the CleanShare pipeline.

``ExtractionError``, ``ValidationError`` and ``ResolutionError`` are
recoverable: the offending page, rule or action is skipped and reported while
the rest of the document keeps going. ``FatalIOError`` aborts a single
document; batch drivers report it and carry on with the other documents.
"""

from __future__ import annotations


class CleanShareError(Exception):
    """Base class for all pipeline errors."""


class ExtractionError(CleanShareError):
    """OCR or PDF decoding failed for a page or file."""

    def __init__(self, message: str, page_index: int | None = None) -> None:
        super().__init__(message)
        self.page_index = page_index


class ValidationError(CleanShareError):
    """A user-supplied rule (custom regex, preset) is malformed."""

    def __init__(self, message: str, rule_id: str | None = None) -> None:
        super().__init__(message)
        self.rule_id = rule_id


class ResolutionError(CleanShareError):
    """A redaction action references an unknown detection or page."""

    def __init__(self, message: str, detection_id: str | None = None) -> None:
        super().__init__(message)
        self.detection_id = detection_id


class FatalIOError(CleanShareError):
    """The input cannot be read or the output cannot be produced."""


__all__ = [
    "CleanShareError",
    "ExtractionError",
    "ValidationError",
    "ResolutionError",
    "FatalIOError",
]
