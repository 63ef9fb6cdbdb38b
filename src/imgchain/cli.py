from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .config import ServiceConfig
from .errors import PipelineError
from .events import StepEvent
from .logging import get_console, setup_logging
from .magick import MagickEngine
from .normalize import OperationNormalizer
from .service import ImageProcessingService

app = typer.Typer(no_args_is_help=True, add_completion=False)
console = get_console()


def _load_operations(raw: str) -> List[Dict[str, Any]]:
    """Accept a JSON string, a path to a JSON file, or a {"operations": [...]} wrapper."""
    try:
        is_file = Path(raw).is_file()
    except OSError:
        # inline JSON longer than the OS allows for a file name
        is_file = False
    text = Path(raw).read_text(encoding="utf-8") if is_file else raw
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"operations is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("operations")
    if not isinstance(data, list):
        raise typer.BadParameter("operations must be a JSON list or an object with an 'operations' list")
    return data


@app.command()
def process(
    source: str = typer.Argument(..., help="Filename inside the uploads dir, or an http(s) URL"),
    operations: str = typer.Option(..., "--ops", help="Operations as JSON, or a path to a JSON file"),
    uploads_dir: Optional[Path] = typer.Option(None, "--uploads-dir", help="Override IMGCHAIN_UPLOADS_DIR"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Override IMGCHAIN_OUTPUT_DIR"),
    log_level: str = typer.Option("INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
):
    """Run an operation chain and print the final artifact."""
    setup_logging(log_level)
    ops = _load_operations(operations)

    update: Dict[str, Any] = {"log_level": log_level}
    if uploads_dir is not None:
        update["uploads_dir"] = uploads_dir
    if output_dir is not None:
        update["output_dir"] = output_dir
    cfg = ServiceConfig(**{**ServiceConfig.from_env().model_dump(), **update})

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed:.0f}/{task.total:.0f}"),
        TimeElapsedColumn(),
        console=console,
    )
    task_id = progress.add_task("pipeline", total=len(ops))

    def on_event(ev: StepEvent) -> None:
        if ev.kind == "step.start":
            progress.update(task_id, description=f"{ev.step + 1}. {ev.family}")
        elif ev.kind == "step.end":
            progress.update(task_id, completed=ev.step + 1)

    service = ImageProcessingService(cfg, on_event=on_event)
    try:
        with progress:
            result = asyncio.run(service.process(source, ops))
    except PipelineError as exc:
        console.print(f"[bold red]Failed:[/bold red] {exc.message}")
        raise typer.Exit(code=1) from exc

    console.print("\n[bold green]Done.[/bold green]")
    console.print(f"Source: {result.requested} ({result.source})")
    console.print(f"Output: {result.path}")
    for i, command in enumerate(result.commands, 1):
        console.print(f"  {i}. {command}", markup=False, highlight=False)


@app.command()
def normalize(
    operations: str = typer.Argument(..., help="Operations as JSON, or a path to a JSON file"),
):
    """Print the canonical form of each operation without running anything."""
    normalizer = OperationNormalizer()
    table = Table("step", "family", "variant", "params")
    try:
        for i, raw in enumerate(_load_operations(operations)):
            op = normalizer.normalize(raw, step=i)
            table.add_row(str(i + 1), op.family_name, op.variant or "", json.dumps(op.params, ensure_ascii=False))
    except PipelineError as exc:
        console.print(f"[bold red]Invalid:[/bold red] {exc.message}")
        raise typer.Exit(code=1) from exc
    console.print(table)


@app.command()
def check(
    binary: Optional[str] = typer.Option(None, "--binary", help="ImageMagick executable to probe"),
):
    """Report whether ImageMagick is installed."""
    status = asyncio.run(MagickEngine(binary).check_installation())
    if status.get("installed"):
        console.print(f"[green]ImageMagick {status.get('version')}[/green] ({status.get('binary')})")
    else:
        console.print(f"[red]ImageMagick not available:[/red] {status.get('error')}")
        raise typer.Exit(code=1)
