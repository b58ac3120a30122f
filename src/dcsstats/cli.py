"""
dcsstats CLI - Command Line Interface for dedicated server player stats

Provides commands for:
- Running the batch over all configured sources
- Inspecting the sorties of a single log file
- Generating a default configuration
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dcsstats import __version__
from dcsstats.core.config import (
    LoggingConfig,
    SourceConfig,
    generate_default_config,
    load_config,
)
from dcsstats.core.constants import GRACE_WINDOW_SECONDS, LATE_TERMINAL_DISCARD
from dcsstats.core.errors import DcsStatsError
from dcsstats.core.session import build_session
from dcsstats.core.utils import format_duration, format_timestamp
from dcsstats.pipeline.orchestrator import RunSummary, run_stats
from dcsstats.players import session_play_time, total_play_time
from dcsstats.state_machine import SortieReconstructor

app = typer.Typer(
    name="dcsstats",
    help="Player statistics from flight simulation dedicated server event logs",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure the root logger from the logging section of the config."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
                encoding="utf-8",
            )
        )

    level = logging.DEBUG if verbose else getattr(logging, str(config.level).upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]dcsstats[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
) -> None:
    """dcsstats - sorties and player stats from server logs"""
    ctx.obj = {"verbose": verbose}


@app.command()
def run(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (YAML, TOML or JSON). Searched in default locations if omitted",
        exists=True,
        dir_okay=False,
    ),
    source: Optional[list[Path]] = typer.Option(
        None,
        "--source",
        "-s",
        help="Source directory; may be repeated. Replaces the configured sources",
        exists=True,
        file_okay=False,
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for the JSON artifacts"
    ),
    sorties: bool = typer.Option(False, "--sorties", help="Also write the per-sortie report"),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Decode files with this many threads"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Process all files but write nothing"),
) -> None:
    """
    Process every configured source and write player names and play times.

    Any malformed file aborts the run before anything is written.
    """
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))

    try:
        config = load_config(config_file)
    except DcsStatsError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if source:
        config.sources = [SourceConfig(name=p.name, directory=str(p)) for p in source]
    if output:
        config.output_dir = str(output)
    if sorties:
        config.export.write_sorties = True
    if workers:
        config.pipeline.workers = workers

    configure_logging(config.logging, verbose)

    try:
        summary = run_stats(config, write=not dry_run)
    except (DcsStatsError, OSError) as e:
        logger.error(f"Run aborted: {e}")
        console.print(f"[red]Run aborted, no output written:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    _display_summary(summary)
    for path in summary.written_files:
        console.print(f"[green]Written:[/green] {path}")


def _display_summary(summary: RunSummary) -> None:
    """Display the player table of a run."""
    table = Table(title=f"Players ({summary.player_count})")
    table.add_column("Player ID", style="cyan")
    table.add_column("Name")
    table.add_column("Sessions", justify="right")
    table.add_column("Sorties", justify="right")
    table.add_column("Play Time", justify="right")

    for player in sorted(summary.registry, key=lambda p: p.name.lower()):
        table.add_row(
            player.player_id,
            escape(player.name),
            str(len(player.sessions)),
            str(player.sortie_count),
            format_duration(total_play_time(player)),
        )

    console.print(table)
    console.print(
        f"{summary.files_processed} files, {summary.events_decoded} events, "
        f"{summary.sorties_reconstructed} sorties in {summary.duration_seconds:.2f}s"
    )


@app.command()
def inspect(
    log_file: Path = typer.Argument(
        ...,
        help="Player log file to inspect",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    grace_window: int = typer.Option(
        GRACE_WINDOW_SECONDS, "--grace-window", min=0, help="Grace window in seconds"
    ),
    late_terminal_policy: str = typer.Option(
        LATE_TERMINAL_DISCARD,
        "--late-terminal-policy",
        help="discard or new_sortie",
    ),
) -> None:
    """Show the session metadata and reconstructed sorties of one log file."""
    try:
        reconstructor = SortieReconstructor(grace_window, late_terminal_policy)
        session = build_session(log_file, source=log_file.parent.name)
        session.sorties = reconstructor.reconstruct(session)
    except (DcsStatsError, ValueError, OSError) as e:
        console.print(f"[red]Error reading log:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    play_time = session_play_time(session)

    info_table = Table(title="Session Information", show_header=False)
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Player", escape(f"{session.player_name} ({session.player_id})"))
    info_table.add_row("Mission", escape(session.mission_name))
    info_table.add_row("Started", format_timestamp(session.session_start))
    info_table.add_row("Events", str(session.event_count))
    info_table.add_row("Play Time", format_duration(play_time) if play_time is not None else "n/a")
    console.print(info_table)
    console.print()

    if not session.sorties:
        console.print("[yellow]No sorties found[/yellow]")
        return

    table = Table(title="Sorties")
    table.add_column("#", justify="right")
    table.add_column("Plane", style="cyan")
    table.add_column("Takeoff")
    table.add_column("End")
    table.add_column("Reason")
    table.add_column("Kills", justify="right")
    table.add_column("FF", justify="right")

    for i, sortie in enumerate(session.sorties, 1):
        table.add_row(
            str(i),
            sortie.plane or "-",
            format_timestamp(sortie.start_time),
            format_timestamp(sortie.end_time),
            sortie.end_reason.value if sortie.end_reason else "-",
            str(len(sortie.kills)),
            str(len(sortie.friendly_fires)),
        )

    console.print(table)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("dcsstats.yaml"), help="Where to write the config"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write a default configuration file."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists, use --force to overwrite[/yellow]")
        raise typer.Exit(1)

    try:
        generate_default_config(path)
    except DcsStatsError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]Config written to:[/green] {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
