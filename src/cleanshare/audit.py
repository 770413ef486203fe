"""Audit/history records for redaction runs.

Each apply call can be recorded as one JSON line holding hashes of the input
and output, the redaction report and any errors. No document content is
stored. When ``CLEANSHARE_HMAC_KEY`` is set the record is signed with
HMAC-SHA256 for tamper detection.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import orjson

from .types import RedactionReport


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_record(
    source_name: str,
    input_data: bytes,
    output_data: bytes,
    output_name: str,
    report: RedactionReport,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    from cleanshare import __version__ as version

    record: Dict[str, Any] = {
        "version": version,
        "timestamp": int(time.time()),
        "input": {"name": source_name, "sha256": sha256_bytes(input_data)},
        "output": {"name": output_name, "sha256": sha256_bytes(output_data)},
        "report": report.model_dump(),
        "errors": errors or [],
    }
    key = os.environ.get("CLEANSHARE_HMAC_KEY")
    if key:
        sig = hmac.new(key.encode("utf-8"), orjson.dumps(record), hashlib.sha256).hexdigest()
        record["hmac"] = {"alg": "HMAC-SHA256", "key_hint": "env:CLEANSHARE_HMAC_KEY", "value": sig}
    return record


def verify_record(record: Dict[str, Any], key: str) -> bool:
    """Check a signed record against ``key``."""
    sig = (record.get("hmac") or {}).get("value")
    if not sig:
        return False
    body = {k: v for k, v in record.items() if k != "hmac"}
    expected = hmac.new(key.encode("utf-8"), orjson.dumps(body), hashlib.sha256).hexdigest()
    return hmac.compare_digest(sig, expected)


class AuditSink(Protocol):
    def record(self, entry: Dict[str, Any]) -> None: ...


class NullAuditSink:
    """Discard audit records."""

    def record(self, entry: Dict[str, Any]) -> None:
        return None


class JsonlAuditSink:
    """Append audit records to a JSON Lines file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def record(self, entry: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = orjson.dumps(entry) + b"\n"
        with self._lock, open(self.path, "ab") as f:
            f.write(line)

    def read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "rb") as f:
            return [orjson.loads(line) for line in f if line.strip()]


__all__ = [
    "AuditSink",
    "NullAuditSink",
    "JsonlAuditSink",
    "build_record",
    "verify_record",
    "sha256_bytes",
]
