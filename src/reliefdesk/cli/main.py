"""
ReliefDesk CLI - Main entry point.

Terminal front end for the disaster-recovery grant matching service:
serve the API, run the matching scheduler, and work the grant
application lifecycle of matches.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from reliefdesk import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

# Force UTF-8 on Windows to avoid encoding issues
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        try:
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        except (AttributeError, OSError):
            pass

console = Console(legacy_windows=False)
err_console = Console(stderr=True, legacy_windows=False)

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Disaster-recovery grant matching and application tracking",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: $RELIEFDESK_CONFIG or configs/app.yaml)",
        envvar="RELIEFDESK_CONFIG",
    ),
) -> None:
    """ReliefDesk - Grant matching for disaster-recovery case management."""
    from reliefdesk.core.config import ConfigError, load_app_config
    from reliefdesk.core.logging import setup_logging

    if config_path is not None:
        os.environ["RELIEFDESK_CONFIG"] = str(config_path)

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import db, matches, schedule  # noqa: E402

app.add_typer(matches.app, name="matches", help="Work opportunity matches through the API")
app.add_typer(schedule.app, name="schedule", help="Run the matching scheduler")
app.add_typer(db.app, name="db", help="Database operations")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize ReliefDesk database and configuration.

    Creates required directories, a default configuration file,
    and the database schema.
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn

    from reliefdesk.core.config import load_app_config
    from reliefdesk.persistence.db import init_db

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Creating directories...", total=None)

        for dir_path in (Path("configs"), Path("data"), Path("logs")):
            dir_path.mkdir(parents=True, exist_ok=True)

        progress.update(task, description="Creating default configuration...")

        app_config_path = Path("configs/app.yaml")
        if not app_config_path.exists() or force:
            _create_default_app_config(app_config_path)

        progress.update(task, description="Initializing database...")

        config = load_app_config(app_config_path)
        init_db(config.database.url)

        progress.update(task, description="Done!")

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - ReliefDesk initialized successfully![/bold green]\n\n"
        "Created:\n"
        "  - [cyan]configs/app.yaml[/cyan] - Application configuration\n"
        "  - [cyan]data/[/cyan] - Database storage\n"
        "  - [cyan]logs/[/cyan] - Log files\n\n"
        "Next steps:\n"
        "  1. Start the API: [yellow]reliefdesk serve[/yellow]\n"
        "  2. Run matching: [yellow]reliefdesk matches run[/yellow]\n"
        "  3. Review matches: [yellow]reliefdesk matches list[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


def _create_default_app_config(path: Path) -> None:
    """Create default app.yaml configuration."""
    default_config = """\
# ReliefDesk Configuration
# Values may reference environment variables: ${VAR} or ${VAR:-default}

config_dir: configs
data_dir: data

database:
  url: ${DATABASE_URL:-sqlite:///data/reliefdesk.db}
  echo: false

logging:
  level: INFO
  file: logs/reliefdesk.log
  json_format: true
  rich_console: true

scheduler:
  enabled: true
  matching_interval_minutes: 30
  run_on_start: true
  lock_ttl_minutes: 60

api:
  host: 127.0.0.1
  port: 8000
  allowed_origins:
    - http://localhost:5173
  expose_errors: false

client:
  base_url: ${RELIEFDESK_API_URL:-http://127.0.0.1:8000}
  timeout_seconds: 30
  max_retries: 3
  # user_id: 1
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status() -> None:
    """Show match counts per status and recent matching runs."""
    from rich.table import Table

    from reliefdesk.core.config import load_app_config
    from reliefdesk.core.lifecycle import TAB_ORDER
    from reliefdesk.persistence.db import get_engine, get_session
    from reliefdesk.persistence.repo import MatchRepository, RunRepository

    config = load_app_config()
    db_url = config.database.url
    if db_url.startswith("sqlite:///") and not Path(db_url.replace("sqlite:///", "")).exists():
        err_console.print("[red]ReliefDesk not initialized. Run:[/red] reliefdesk init")
        raise typer.Exit(1)

    get_engine(db_url)

    console.print()
    console.print("[bold]ReliefDesk Status[/bold]")
    console.print()

    with get_session() as session:
        counts = MatchRepository(session).count_by_status()
        runs = RunRepository(session).get_recent(limit=5)

        if counts:
            stats_table = Table(title="Matches by Status", show_header=True, header_style="bold magenta")
            stats_table.add_column("Status", style="cyan")
            stats_table.add_column("Count", justify="right")

            for name in TAB_ORDER[1:]:
                if name in counts:
                    stats_table.add_row(name, str(counts[name]))

            console.print(stats_table)
        else:
            console.print("[dim]No matches yet. Run:[/dim] reliefdesk matches run")

        console.print()

        if runs:
            run_table = Table(title="Recent Matching Runs", show_header=True, header_style="bold magenta")
            run_table.add_column("ID", justify="right")
            run_table.add_column("Type")
            run_table.add_column("Status", justify="center")
            run_table.add_column("New", justify="right")
            run_table.add_column("Rechecked", justify="right")
            run_table.add_column("Started")

            for run_row in runs:
                style = {"COMPLETED": "green", "FAILED": "red"}.get(run_row.status, "yellow")
                run_table.add_row(
                    str(run_row.id),
                    run_row.run_type,
                    f"[{style}]{run_row.status}[/{style}]",
                    str(run_row.matches_new),
                    str(run_row.matches_rechecked),
                    run_row.started_at.strftime("%Y-%m-%d %H:%M"),
                )

            console.print(run_table)


# =============================================================================
# Serve Command
# =============================================================================


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (default from config)"),
    with_scheduler: bool = typer.Option(
        False,
        "--with-scheduler",
        help="Also run the matching scheduler in this process",
    ),
) -> None:
    """Run the REST API server."""
    import uvicorn

    from reliefdesk.core.config import load_app_config
    from reliefdesk.core.scheduler import SchedulerService
    from reliefdesk.persistence.db import dispose_engines, get_engine, init_db

    config = load_app_config()
    init_db(config.database.url)

    scheduler = None
    if with_scheduler and config.scheduler.enabled:
        get_engine(config.database.url)
        scheduler = SchedulerService(config.scheduler)
        scheduler.start_background()

    bind_host = host or config.api.host
    bind_port = port or config.api.port
    console.print(f"[green]Serving ReliefDesk API on http://{bind_host}:{bind_port}[/green]")

    try:
        uvicorn.run(
            "reliefdesk.api.app:create_app",
            factory=True,
            host=bind_host,
            port=bind_port,
            log_level=config.logging.level.lower(),
        )
    finally:
        if scheduler is not None:
            scheduler.shutdown()
        dispose_engines()


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
