"""Command-line interface for CleanShare.

Provides:
- `analyze`: list sensitive tokens found in a PDF or image.
- `redact`: analyze (or load detections) and write a redacted copy.
- `batch`: redact a directory or glob of inputs concurrently.
- `presets`: list the builtin detection presets.
- `api`: launch the HTTP service.
"""

from __future__ import annotations

import asyncio
from glob import glob
from pathlib import Path
from typing import List, Optional

import orjson
import typer
from rich import print
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from .batch import BatchItemResult, run_batch
from .errors import CleanShareError
from .pipeline import (
    AnalyzeOptions,
    ApplyOptions,
    DocumentInput,
    RunConfig,
    analyze,
    analyze_document,
    apply,
    apply_redactions,
    default_actions,
)
from .presets import Preset, find_builtin_preset, list_builtin_presets, load_preset
from .settings import get_settings
from .types import AnalyzeResult, ApplyResult, Detection, RedactionStyle, as_kind

app = typer.Typer(add_completion=False, help="CleanShare sensitive-data redactor")
console = Console()

SUPPORTED_SUFFIXES = {".pdf", ".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp"}


def _analyze_options(
    preset: Optional[str], kinds: Optional[str], threshold: Optional[float]
) -> AnalyzeOptions:
    enabled = [as_kind(k) for k in kinds.split(",") if k.strip()] if kinds else None
    return AnalyzeOptions(
        preset_id=preset or get_settings().default_preset,
        enabled_kinds=enabled,
        confidence_threshold=threshold,
    )


def _run_config(dpi: int, lang: str, psm: int, barcodes: bool, ocr_fallback: bool) -> RunConfig:
    return RunConfig(
        dpi=dpi, lang=lang, psm=psm, scan_barcodes=barcodes, ocr_fallback=ocr_fallback
    )


def _detections_table(result: AnalyzeResult) -> Table:
    table = Table(title=f"{len(result.detections)} detection(s) on {result.pages} page(s)")
    for col in ("id", "kind", "page", "confidence", "reason"):
        table.add_column(col)
    for det in result.detections:
        table.add_row(
            det.id,
            det.kind.value,
            str(det.box.page + 1),
            f"{det.confidence:.2f}",
            det.reason,
        )
    return table


def _print_report(result: ApplyResult, out_path: Path) -> None:
    report = result.report
    print(f"[green]Redacted:[/green] {out_path}")
    print(
        f"{report.redacted_count}/{report.total_detections} redacted, "
        f"{report.skipped_count} skipped; by style: {report.by_style}"
    )
    for err in result.errors:
        print(f"[yellow]warning:[/yellow] {err}")


@app.command("analyze")
def analyze_cmd(
    input: str = typer.Option(..., "--input", "-i", help="Input PDF or image"),
    preset: Optional[str] = typer.Option(None, help="Preset id or YAML path"),
    kinds: Optional[str] = typer.Option(None, help="Comma-separated kinds to keep"),
    threshold: Optional[float] = typer.Option(None, help="Minimum confidence"),
    json_out: Optional[str] = typer.Option(None, "--json", help="Write detections JSON here"),
    dpi: int = typer.Option(200, help="Rasterization DPI for OCR"),
    lang: str = typer.Option("eng", help="Tesseract language"),
    psm: int = typer.Option(3, help="Tesseract PSM"),
    barcodes: bool = typer.Option(True, "--barcodes/--no-barcodes", help="Scan QR/barcodes"),
    ocr_fallback: bool = typer.Option(
        True, "--ocr-fallback/--no-ocr-fallback", help="OCR PDF pages without a text layer"
    ),
):
    """Detect sensitive tokens and print them."""
    cfg = _run_config(dpi, lang, psm, barcodes, ocr_fallback)
    try:
        result = analyze(input, _analyze_options(preset, kinds, threshold), cfg)
    except CleanShareError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    console.print(_detections_table(result))
    for warning in result.warnings:
        print(f"[yellow]warning:[/yellow] {warning}")
    if json_out:
        Path(json_out).write_bytes(
            orjson.dumps(result.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
        )
        print(f"[green]Detections:[/green] {json_out}")


def _load_detections(path: str) -> List[Detection]:
    raw = orjson.loads(Path(path).read_bytes())
    return AnalyzeResult.model_validate(raw).detections


@app.command("redact")
def redact_cmd(
    input: str = typer.Option(..., "--input", "-i", help="Input PDF or image"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output path"),
    detections: Optional[str] = typer.Option(
        None, help="Detections JSON from `analyze --json` (otherwise analyze first)"
    ),
    preset: Optional[str] = typer.Option(None, help="Preset id or YAML path"),
    style: Optional[RedactionStyle] = typer.Option(None, help="Force one style for all"),
    kinds: Optional[str] = typer.Option(None, help="Comma-separated kinds to keep"),
    threshold: Optional[float] = typer.Option(None, help="Minimum confidence"),
    image_format: str = typer.Option("PNG", help="PNG or JPEG for image outputs"),
    to_pdf: bool = typer.Option(False, "--to-pdf", help="Export image inputs as PDF"),
    quality: int = typer.Option(92, help="JPEG quality"),
    dpi: int = typer.Option(200, help="Rasterization DPI for OCR"),
    lang: str = typer.Option("eng", help="Tesseract language"),
    psm: int = typer.Option(3, help="Tesseract PSM"),
    barcodes: bool = typer.Option(True, "--barcodes/--no-barcodes", help="Scan QR/barcodes"),
):
    """Redact sensitive tokens and write the sanitized copy."""
    cfg = _run_config(dpi, lang, psm, barcodes, True)
    try:
        doc = DocumentInput.from_path(input)
        if detections:
            found = _load_detections(detections)
        else:
            found = analyze(doc, _analyze_options(preset, kinds, threshold), cfg).detections
        actions = default_actions(found, load_preset(preset), style)
        options = ApplyOptions(
            detections=found,
            output="pdf" if to_pdf else None,
            image_format=image_format.upper(),
            quality=quality,
        )
        result = apply(doc, actions, options, cfg)
    except CleanShareError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    out_path = Path(output) if output else Path(input).with_name(result.filename)
    out_path.write_bytes(result.data)
    _print_report(result, out_path)


def _collect_inputs(pattern: str) -> List[str]:
    p = Path(pattern)
    if p.is_dir():
        return sorted(str(fp) for fp in p.iterdir() if fp.suffix.lower() in SUPPORTED_SUFFIXES)
    return sorted(glob(pattern))


@app.command("batch")
def batch_cmd(
    input_dir: str = typer.Option(..., help="Input directory or glob pattern"),
    output_dir: str = typer.Option(..., help="Output directory"),
    limit: Optional[int] = typer.Option(None, help="Documents processed concurrently"),
    preset: Optional[str] = typer.Option(None, help="Preset id or YAML path"),
    style: Optional[RedactionStyle] = typer.Option(None, help="Force one style for all"),
    dpi: int = typer.Option(200, help="Rasterization DPI for OCR"),
    lang: str = typer.Option("eng", help="Tesseract language"),
):
    """Batch redact many inputs with bounded concurrency."""
    files = _collect_inputs(input_dir)
    if not files:
        print("[red]No inputs found[/red]")
        raise typer.Exit(1)
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    cfg = _run_config(dpi, lang, 3, True, True)
    options = _analyze_options(preset, None, None)
    chosen: Optional[Preset] = load_preset(options.preset_id)

    async def worker(path: str) -> str:
        doc = await asyncio.to_thread(DocumentInput.from_path, path)
        found = await analyze_document(doc, options, cfg)
        actions = default_actions(found.detections, chosen, style)
        result = await apply_redactions(
            doc, actions, ApplyOptions(detections=found.detections, pages=found.pages), cfg
        )
        target = out_dir / result.filename
        await asyncio.to_thread(target.write_bytes, result.data)
        return str(target)

    with tqdm(total=len(files), desc="Analyze+Redact") as bar:

        def advance(_: BatchItemResult) -> None:
            bar.update(1)

        report = asyncio.run(
            run_batch(files, worker, limit or get_settings().batch_limit, on_done=advance)
        )
    for item in report.results:
        if not item.ok:
            print(f"[red]failed:[/red] {item.item}: {item.error}")
    print(f"[green]Completed {report.succeeded}/{len(files)} files[/green]")
    if report.failed:
        raise typer.Exit(1)


@app.command("presets")
def presets_cmd():
    """List builtin presets."""
    table = Table(title="Builtin presets")
    for col in ("id", "name", "kinds", "threshold"):
        table.add_column(col)
    for preset_id in list_builtin_presets():
        ref = find_builtin_preset(preset_id)
        if ref is None:
            continue
        p = Preset.from_file(ref)
        table.add_row(
            p.id,
            p.name,
            ", ".join(k.value for k in p.enabled_kinds) or "all",
            "-" if p.confidence_threshold is None else f"{p.confidence_threshold:.2f}",
        )
    console.print(table)


@app.command("api")
def api_cmd(
    host: Optional[str] = typer.Option(None, help="Bind host (defaults to settings)"),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to settings)"),
):
    """Launch the HTTP API with uvicorn."""
    from .api import run

    run(host=host, port=port)


if __name__ == "__main__":
    app()
