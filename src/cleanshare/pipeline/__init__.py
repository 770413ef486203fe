"""Composable building blocks for the CleanShare analyze/apply pipeline."""

from .config import AnalyzeOptions, ApplyOptions, RunConfig
from .detection import PageTokens, assemble
from .orchestration import (
    DocumentInput,
    analyze,
    analyze_document,
    apply,
    apply_redactions,
)
from .packaging import build_report, package, proposed_filename
from .resolution import Resolution, default_actions, resolve

__all__ = [
    "RunConfig",
    "AnalyzeOptions",
    "ApplyOptions",
    "PageTokens",
    "assemble",
    "Resolution",
    "resolve",
    "default_actions",
    "build_report",
    "package",
    "proposed_filename",
    "DocumentInput",
    "analyze",
    "apply",
    "analyze_document",
    "apply_redactions",
]
