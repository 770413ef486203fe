"""CleanShare

Local detection of sensitive tokens (cards, IBANs, SSNs, secrets, contact
details, barcodes ...) in images and PDFs, and redaction with configurable
styles. See ``cleanshare.pipeline`` for the analyze/apply APIs and
``cleanshare.cli`` / ``cleanshare.api`` for user entrypoints.
"""

__all__ = [
    "pipeline",
    "detectors",
    "patterns",
    "scoring",
    "geometry",
    "ocr",
    "textlayer",
    "barcode",
    "styles",
    "redact",
    "vector",
    "presets",
    "audit",
    "batch",
    "api",
    "cli",
    "logging",
    "settings",
    "health",
]

__version__ = "0.1.0"
