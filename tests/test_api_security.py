import importlib

import orjson
import pymupdf
import pytest
from fastapi.testclient import TestClient

import cleanshare.settings as settings
from cleanshare.health import HealthCheckResult

from conftest import CARD

AUTH = {"Authorization": "Bearer super-secret"}


def _make_client(monkeypatch: pytest.MonkeyPatch, **env):
    monkeypatch.setenv("CLEANSHARE_API_TOKEN", "super-secret")
    monkeypatch.setenv("CLEANSHARE_READY_CHECK_OCR", "false")
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    settings.reset_settings_cache()
    import cleanshare.api as api  # noqa: F401

    api = importlib.reload(api)
    return TestClient(api.app), api


def test_redact_requires_bearer_token(monkeypatch: pytest.MonkeyPatch):
    client, _ = _make_client(monkeypatch)

    resp = client.post(
        "/redact",
        files={"file": ("dummy.pdf", b"%PDF-1.0\n", "application/pdf")},
    )
    assert resp.status_code == 401

    resp_ok = client.post(
        "/redact",
        headers=AUTH,
        files={"file": ("dummy.pdf", b"%PDF-1.0\n", "application/pdf")},
    )
    assert resp_ok.status_code in {400, 415}


def test_readyz_reflects_health(monkeypatch: pytest.MonkeyPatch):
    client, api = _make_client(monkeypatch)

    def fake_checks(_settings):
        return [HealthCheckResult(name="tesseract", status="fail", detail="missing", required=True)]

    monkeypatch.setattr(api, "run_readiness_checks", fake_checks)
    resp = client.get("/readyz")
    assert resp.status_code == 503
    payload = resp.json()
    assert payload["ready"] is False
    assert payload["checks"][0]["name"] == "tesseract"


def test_probes_are_public(monkeypatch: pytest.MonkeyPatch):
    client, _ = _make_client(monkeypatch)
    assert client.get("/livez").json()["status"] == "ok"
    ready = client.get("/readyz")
    assert ready.status_code == 200
    assert ready.json()["checks"][0]["name"] == "presets"


def test_unsupported_upload_is_rejected(monkeypatch: pytest.MonkeyPatch):
    client, _ = _make_client(monkeypatch)
    resp = client.post(
        "/analyze", headers=AUTH, files={"file": ("notes.txt", b"hello", "text/plain")}
    )
    assert resp.status_code == 415


def test_oversized_upload_is_rejected(monkeypatch: pytest.MonkeyPatch):
    client, _ = _make_client(monkeypatch, CLEANSHARE_MAX_UPLOAD_MB="0")
    resp = client.post(
        "/analyze", headers=AUTH, files={"file": ("a.pdf", b"%PDF-1.4", "application/pdf")}
    )
    assert resp.status_code == 413


def test_bad_options_are_422(monkeypatch: pytest.MonkeyPatch, text_pdf):
    client, _ = _make_client(monkeypatch)
    resp = client.post(
        "/analyze",
        headers=AUTH,
        files={"file": ("s.pdf", text_pdf, "application/pdf")},
        data={"options": '{"confidence_threshold": 7}'},
    )
    assert resp.status_code == 422


def test_analyze_then_redact(monkeypatch: pytest.MonkeyPatch, text_pdf):
    client, _ = _make_client(monkeypatch)
    analyzed = client.post(
        "/analyze",
        headers=AUTH,
        files={"file": ("statement.pdf", text_pdf, "application/pdf")},
        data={"options": '{"preset_id": "finance"}'},
    )
    assert analyzed.status_code == 200
    detections = analyzed.json()["detections"]
    assert {d["kind"] for d in detections} == {"PAN", "EMAIL"}

    payload = {"options": {"detections": detections}, "preset_id": "finance"}
    redacted = client.post(
        "/redact",
        headers=AUTH,
        files={"file": ("statement.pdf", text_pdf, "application/pdf")},
        data={"payload": orjson.dumps(payload).decode()},
    )
    assert redacted.status_code == 200
    assert redacted.headers["content-type"] == "application/pdf"
    assert "statement.redacted.pdf" in redacted.headers["content-disposition"]
    report = orjson.loads(redacted.headers["x-cleanshare-report"])
    assert report["report"]["by_style"] == {"MASK_LAST4": 1, "BOX": 1}
    assert report["errors"] == []
    with pymupdf.open(stream=redacted.content, filetype="pdf") as doc:
        assert CARD not in doc[0].get_text()
