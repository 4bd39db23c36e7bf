import typer
from pathlib import Path
from typing import List, Optional
from pydantic import ValidationError

from upmix.config.loader import load_config
from upmix.config.models import AppConfig, GeneralConfig
from upmix.infrastructure.logging import setup_logging
from upmix.infrastructure.event_bus import EventBus
from upmix.infrastructure.resources import ResourceHandle
from upmix.infrastructure.ffmpeg import FFmpegAdapter
from upmix.pipeline.orchestrator import Orchestrator
from upmix.ui.console import ConsoleReporter
from upmix.domain.errors import NotReady, PermissionDenied
from upmix.domain.models import FileStatus

app = typer.Typer(help="Upmix - batch stereo to 5.1 surround conversion with ffmpeg")


def expand_inputs(paths: List[Path], extensions: List[str]) -> List[Path]:
    """Expands directories (non-recursive) and drops files with unknown extensions."""
    selected: List[Path] = []
    for path in paths:
        if path.is_dir():
            candidates = sorted(p for p in path.iterdir() if p.is_file())
        else:
            candidates = [path]
        for candidate in candidates:
            if candidate.suffix.lower() not in extensions:
                typer.secho(f"Skipping {candidate.name}: unsupported extension", fg=typer.colors.YELLOW, err=True)
                continue
            selected.append(candidate)
    return selected


@app.command()
def convert(
    files: List[Path] = typer.Argument(..., help="Stereo audio files or directories to upmix"),
    output_dir: Path = typer.Option(..., "--output", "-o", help="Directory for the 5.1 output files"),
    config_path: Optional[Path] = typer.Option(Path("conf/upmix.yaml"), "--config", "-c", help="Path to YAML config"),
    codec: Optional[str] = typer.Option(None, "--codec", help="Override output codec (flac, alac, aac, pcm_s16le, pcm_s24le, ac3, eac3)"),
    ffmpeg_path: Optional[str] = typer.Option(None, "--ffmpeg", help="Path to the ffmpeg executable"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Upmix stereo audio files to 5.1 one at a time."""
    try:
        config = load_config(config_path) if config_path and config_path.exists() else AppConfig()
        overrides = {}
        if codec is not None: overrides["codec"] = codec
        if ffmpeg_path is not None: overrides["ffmpeg_path"] = ffmpeg_path
        if log_path is not None: overrides["log_path"] = str(log_path)
        if debug: overrides["debug"] = True
        if overrides:
            config.general = GeneralConfig(**{**config.general.model_dump(), **overrides})
    except (ValidationError, ValueError) as exc:
        typer.secho(f"Error: invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    inputs = expand_inputs(files, config.general.extensions)
    if not inputs:
        typer.secho("Error: No audio files to upmix.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    bus = EventBus()
    ffmpeg = FFmpegAdapter(
        binary=config.general.ffmpeg_path,
        poll_interval_s=config.general.poll_interval_s,
        kill_timeout_s=config.general.kill_timeout_s,
    )
    orchestrator = Orchestrator(
        config=config,
        event_bus=bus,
        resources=ResourceHandle(),
        ffmpeg_adapter=ffmpeg,
    )
    reporter = ConsoleReporter(bus)

    try:
        orchestrator.set_output_directory(output_dir)
    except PermissionDenied as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    # The output directory must exist and be tokenised before the log file lands in it
    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    logger = setup_logging(output_dir, debug=config.general.debug, log_path=log_path_value)
    logger.info(f"Upmix started: files={len(inputs)}, output={output_dir}")
    logger.info(f"Config: codec={config.general.codec}, ffmpeg={config.general.ffmpeg_path or 'PATH'}, debug={config.general.debug}")

    for path in inputs:
        try:
            orchestrator.add_file(path)
        except PermissionDenied as exc:
            typer.secho(f"Skipping {path.name}: {exc}", fg=typer.colors.YELLOW, err=True)

    with reporter:
        try:
            orchestrator.start()
        except NotReady as exc:
            typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        try:
            while not orchestrator.wait(timeout=0.2):
                pass
        except KeyboardInterrupt:
            orchestrator.cancel()
            try:
                orchestrator.wait()
            except KeyboardInterrupt:
                # Second Ctrl+C: stop waiting for the encoder to settle
                typer.secho("\nUpmix interrupted (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
                raise typer.Exit(code=130)

    jobs = orchestrator.files
    reporter.print_summary(jobs)

    if any(job.status == FileStatus.CANCELLED for job in jobs):
        typer.secho("\nUpmix stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    if any(job.status != FileStatus.UPMIXED for job in jobs):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
