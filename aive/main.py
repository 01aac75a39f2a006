import asyncio
import json
import typer
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from aive.config.loader import load_config
from aive.config.models import AppConfig
from aive.domain.models import InstructionResponse, OperationType
from aive.infrastructure.logging import setup_logging
from aive.infrastructure.event_bus import EventBus
from aive.infrastructure.ffmpeg import FFmpegAdapter
from aive.infrastructure.ffprobe import FFprobeAdapter
from aive.infrastructure.llm import OllamaClient
from aive.infrastructure.registry import OperationRegistry
from aive.pipeline.coordinator import PipelineCoordinator
from aive.pipeline.executor import OperationExecutor
from aive.pipeline.interpreter import CommandInterpreter
from aive.pipeline.materializer import ResultMaterializer
from aive.ui.reporter import ConsoleReporter

app = typer.Typer(help="AIVE - natural-language video editing on top of ffmpeg")
console = Console()

DEFAULT_CONFIG = Path("conf/aive.yaml")


def build_coordinator(config: AppConfig, bus: EventBus) -> PipelineCoordinator:
    """Wires the pipeline components from config."""
    registry = OperationRegistry()
    interpreter = CommandInterpreter(
        OllamaClient(config.llm),
        default_confidence=config.general.default_confidence
    )
    executor = OperationExecutor(
        registry=registry,
        ffmpeg_adapter=FFmpegAdapter(config.engine, debug=config.general.debug),
        ffprobe_adapter=FFprobeAdapter(config.engine.ffprobe_path),
        event_bus=bus,
        config=config.engine
    )
    materializer = ResultMaterializer(config.materializer.inline_threshold_bytes)
    return PipelineCoordinator(interpreter, executor, materializer, registry)


def parse_param(raw: str) -> Tuple[str, Any]:
    """'key=value' with numeric values converted."""
    if "=" not in raw:
        raise typer.BadParameter(f"Expected key=value, got {raw!r}")
    key, value = raw.split("=", 1)
    for cast in (int, float):
        try:
            return key.strip(), cast(value)
        except ValueError:
            continue
    return key.strip(), value


def _setup(config_path: Optional[Path], debug: bool) -> AppConfig:
    load_dotenv()
    config = load_config(config_path)
    if debug:
        config.general.debug = True
    setup_logging(config.general.log_dir, debug=config.general.debug)
    return config


def _print_response(response: InstructionResponse):
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_row("Outcome", response.outcome.value)
    table.add_row("Message", response.message)
    if response.operation:
        op = response.operation
        table.add_row("Operation", f"{op.type.value} {json.dumps(op.parameters)}")
        table.add_row("Status", f"{op.status.value} ({op.progress}%)")
    if response.execution_result and response.execution_result.success:
        table.add_row("Output", f"{response.execution_result.output_path} ({response.execution_result.duration:.1f}s)")
    if response.artifact:
        kind = "path" if response.artifact.large_file else f"inline, {len(response.artifact.buffer or '')} chars"
        table.add_row("Artifact", f"{response.artifact.timestamp_key} ({kind})")
    if response.error:
        table.add_row("Error", f"[red]{response.error}[/red]")
    console.print(table)


@app.command()
def chat(
    message: str = typer.Argument(..., help="Editing instruction, e.g. 'Trim the first 10 seconds'"),
    input_file: Optional[Path] = typer.Option(None, "--input", "-i", help="Video to edit"),
    context: Optional[str] = typer.Option(None, "--context", help="Project context as JSON"),
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to YAML config"),
    as_json: bool = typer.Option(False, "--json", help="Print the full response as JSON"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Interpret an instruction and, given an input video, execute it."""
    config = _setup(config_path, debug)

    project_context: Dict[str, Any] = {}
    if context:
        try:
            project_context = json.loads(context)
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"--context is not valid JSON: {e}")
    if input_file:
        project_context["inputFile"] = str(input_file)

    bus = EventBus()
    coordinator = build_coordinator(config, bus)
    with ConsoleReporter(bus):
        response = asyncio.run(coordinator.handle_instruction(message, project_context or None))

    if as_json:
        typer.echo(json.dumps(response.to_wire(), indent=2))
    else:
        _print_response(response)
    if not response.success:
        raise typer.Exit(code=1)


@app.command()
def process(
    input_path: Path = typer.Argument(..., help="Source video"),
    output_path: Optional[Path] = typer.Argument(None, help="Final output (derived next to input if omitted)"),
    ops: List[OperationType] = typer.Option(..., "--op", help="Operation to apply, repeatable, in order"),
    params: List[str] = typer.Option([], "--param", "-p", help="key=value parameter, applied to every --op"),
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to YAML config"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Run operations directly, without the language model."""
    if not input_path.exists():
        typer.secho(f"Error: {input_path} does not exist.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    config = _setup(config_path, debug)
    parameters = dict(parse_param(p) for p in params)
    operations = [{"type": op.value, "parameters": dict(parameters)} for op in ops]

    bus = EventBus()
    coordinator = build_coordinator(config, bus)
    with ConsoleReporter(bus):
        result = asyncio.run(coordinator.process(input_path, output_path, operations))

    if not result.success:
        typer.secho(f"Processing failed: {result.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.secho(f"Done: {result.output_path} ({result.duration:.1f}s)", fg=typer.colors.GREEN)


@app.command()
def materialize(
    path: Path = typer.Argument(..., help="Artifact to materialize"),
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to YAML config"),
):
    """Show how an artifact would cross the boundary (inline or by path)."""
    config = load_config(config_path)
    materializer = ResultMaterializer(config.materializer.inline_threshold_bytes)
    artifact = asyncio.run(materializer.materialize(path))
    if artifact.large_file:
        typer.echo(f"{artifact.timestamp_key}: large file, path={artifact.path}")
    else:
        typer.echo(f"{artifact.timestamp_key}: inline, {len(artifact.buffer or '')} base64 chars")


@app.command()
def status(
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Path to YAML config"),
):
    """Check that the language model backend is reachable and the model is pulled."""
    load_dotenv()
    config = load_config(config_path)
    interpreter = CommandInterpreter(OllamaClient(config.llm))
    backend = asyncio.run(interpreter.status())
    color = typer.colors.GREEN if backend.available else typer.colors.RED
    typer.secho(f"{backend.status}: {backend.model}", fg=color)
    if backend.error:
        typer.echo(backend.error)
    if not backend.available:
        raise typer.Exit(code=1)


@app.command()
def commands():
    """List example instructions the assistant understands."""
    interpreter = CommandInterpreter(OllamaClient())
    for line in interpreter.available_commands():
        typer.echo(f"- {line}")


if __name__ == "__main__":
    app()
