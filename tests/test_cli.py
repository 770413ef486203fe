import orjson
import pymupdf
from typer.testing import CliRunner

from cleanshare.cli import app

from conftest import CARD

runner = CliRunner()
OFFLINE = ["--no-barcodes", "--no-ocr-fallback"]


def test_presets_lists_builtins():
    result = runner.invoke(app, ["presets"])
    assert result.exit_code == 0
    assert "finance" in result.output


def test_analyze_writes_json(tmp_path, text_pdf):
    src = tmp_path / "statement.pdf"
    src.write_bytes(text_pdf)
    out = tmp_path / "detections.json"
    result = runner.invoke(
        app, ["analyze", "-i", str(src), "--json", str(out), "--preset", "finance", *OFFLINE]
    )
    assert result.exit_code == 0, result.output
    kinds = {d["kind"] for d in orjson.loads(out.read_bytes())["detections"]}
    assert kinds == {"PAN", "EMAIL"}


def test_redact_from_saved_detections(tmp_path, text_pdf):
    src = tmp_path / "statement.pdf"
    src.write_bytes(text_pdf)
    found = tmp_path / "detections.json"
    runner.invoke(app, ["analyze", "-i", str(src), "--json", str(found), *OFFLINE])
    result = runner.invoke(
        app, ["redact", "-i", str(src), "--detections", str(found), "--style", "BOX"]
    )
    assert result.exit_code == 0, result.output
    out = tmp_path / "statement.redacted.pdf"
    with pymupdf.open(out) as doc:
        assert CARD not in doc[0].get_text()


def test_missing_input_exits_nonzero(tmp_path):
    result = runner.invoke(app, ["analyze", "-i", str(tmp_path / "nope.pdf")])
    assert result.exit_code == 1
