from cleanshare.audit import JsonlAuditSink, build_record, sha256_bytes, verify_record
from cleanshare.types import RedactionReport


def test_record_holds_hashes_not_content():
    record = build_record("in.pdf", b"secret input", b"clean output", "in.redacted.pdf", RedactionReport())
    assert record["input"]["sha256"] == sha256_bytes(b"secret input")
    assert record["output"]["name"] == "in.redacted.pdf"
    assert "hmac" not in record
    assert b"secret input".decode() not in str(record)


def test_hmac_signature_round_trips_through_jsonl(tmp_path, monkeypatch):
    monkeypatch.setenv("CLEANSHARE_HMAC_KEY", "k3y")
    record = build_record("a.png", b"a", b"b", "a.redacted.png", RedactionReport(redacted_count=2))
    sink = JsonlAuditSink(tmp_path / "logs" / "audit.jsonl")
    sink.record(record)
    sink.record(record)
    entries = sink.read()
    assert len(entries) == 2
    assert verify_record(entries[0], "k3y")
    assert not verify_record(entries[0], "other")
    entries[1]["report"]["redacted_count"] = 0
    assert not verify_record(entries[1], "k3y")


def test_unsigned_record_does_not_verify():
    assert not verify_record(build_record("a", b"", b"x", "b", RedactionReport()), "k")


def test_read_missing_log(tmp_path):
    assert JsonlAuditSink(tmp_path / "none.jsonl").read() == []
