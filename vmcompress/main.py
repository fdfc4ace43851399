import shutil
import signal
import typer
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.table import Table

from vmcompress.config.loader import DEFAULT_CONFIG_PATH, load_config
from vmcompress.domain.errors import CompressionCancelled, CompressionError
from vmcompress.domain.models import QualityTier
from vmcompress.infrastructure.housekeeping import HousekeepingService
from vmcompress.infrastructure.logging import setup_logging
from vmcompress.pipeline.cancellation import CancellationToken
from vmcompress.service import VideoCompressionService
from vmcompress.ui.formatting import format_size, format_time
from vmcompress.ui.progress_view import ProgressView

app = typer.Typer(help="vmcompress - dimension and bitrate capped H.264/AAC video compression")

@app.command()
def compress(
    source: Path = typer.Argument(..., help="Video file to compress"),
    quality: Optional[QualityTier] = typer.Option(None, "--quality", "-q", help="Quality tier (default from config)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Move the result here instead of leaving it in the temp dir"),
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging")
):
    """Compress one video and print the path of the result."""
    if not source.is_file():
        typer.secho(f"Error: File {source} does not exist.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    config = load_config(config_path)
    logger = setup_logging(config.logging.level, config.logging.file, debug=debug)
    tier = quality or config.default_quality

    service = VideoCompressionService(config=config)
    HousekeepingService().cleanup_partial_files(service.temp_dir)

    token = CancellationToken()
    # Ctrl+C cancels cleanly instead of tearing down worker threads mid-write
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        with ProgressView(f"{source.name} [{tier.value}]") as view:
            result = service.compress(source, tier, on_progress=view, cancel_token=token)
    except CompressionCancelled:
        typer.echo("\nInterrupted by user")
        raise typer.Exit(code=130)
    except CompressionError as e:
        typer.secho(f"Error: {e.description}", fg=typer.colors.RED, err=True)
        if e.detail:
            logger.debug(e.detail)
        raise typer.Exit(code=1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        result = Path(shutil.move(str(result), str(output)))
    typer.echo(str(result))

@app.command()
def probe(
    source: Path = typer.Argument(..., help="Video file to inspect"),
    config_path: Optional[Path] = typer.Option(DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to YAML config"),
):
    """Show the source parameters and what each quality tier would produce."""
    config = load_config(config_path)
    setup_logging(config.logging.level, config.logging.file)
    service = VideoCompressionService(config=config)

    try:
        asset = service.probe(source)
    except CompressionError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    console = Console()
    console.print(
        f"[bold]{asset.path.name}[/bold]: {int(asset.natural_size.width)}x{int(asset.natural_size.height)} "
        f"{asset.video_codec}, rotation {asset.transform.rotation}, "
        f"{format_time(asset.duration_seconds)}, audio: {asset.audio_codec or 'none'}, "
        f"{format_size(asset.size_bytes)}"
    )

    table = Table(title="Quality tiers")
    table.add_column("Tier")
    table.add_column("Output size", justify="right")
    table.add_column("Video bitrate", justify="right")
    table.add_column("Audio bitrate", justify="right")
    table.add_column("Estimated file", justify="right")
    for tier in QualityTier:
        plan = service.plan(source, tier, asset=asset)
        profile = tier.profile
        table.add_row(
            tier.value,
            f"{plan.geometry.width}x{plan.geometry.height}",
            "passthrough" if profile.passthrough else f"{profile.video_bit_rate // 1000} kbps",
            "passthrough" if profile.passthrough else f"{profile.audio_bit_rate // 1000} kbps",
            format_size(plan.estimated_size_bytes),
        )
    console.print(table)

if __name__ == "__main__":
    app()
