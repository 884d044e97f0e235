"""
Matching scheduler commands.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run the matching scheduler",
    no_args_is_help=True,
)


def _load():
    from reliefdesk.core.config import load_app_config
    from reliefdesk.persistence.db import get_engine

    config = load_app_config()
    get_engine(config.database.url)
    return config


@app.command("start")
def start_scheduler(
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Minutes between runs (default from config)",
    ),
    no_initial_run: bool = typer.Option(
        False,
        "--no-initial-run",
        help="Wait one interval before the first run",
    ),
) -> None:
    """Start the matching scheduler in the foreground."""
    from reliefdesk.core.scheduler import SchedulerService

    config = _load()
    scheduler_config = config.scheduler
    if interval is not None:
        scheduler_config = scheduler_config.model_copy(update={"matching_interval_minutes": interval})
    if no_initial_run:
        scheduler_config = scheduler_config.model_copy(update={"run_on_start": False})

    if not scheduler_config.enabled:
        err_console.print("[yellow]Scheduler is disabled in configuration.[/yellow]")
        raise typer.Exit(1)

    console.print(
        f"[bold]Matching every {scheduler_config.matching_interval_minutes} minutes.[/bold] "
        "Press Ctrl+C to stop."
    )

    service = SchedulerService(scheduler_config)
    try:
        service.start()
    except (KeyboardInterrupt, SystemExit):
        console.print("\n[yellow]Scheduler stopped[/yellow]")


@app.command("run-now")
def run_now() -> None:
    """Run matching once against the local database, honouring the run lock."""
    from reliefdesk.core.scheduler import SchedulerService

    config = _load()
    service = SchedulerService(config.scheduler)

    try:
        with console.status("Running matching engine..."):
            count = service.trigger_now()
    except Exception as e:
        err_console.print(f"[red]Matching failed:[/red] {e}")
        raise typer.Exit(1)

    if count is None:
        console.print("[yellow]Another matching run is in progress; skipped.[/yellow]")
        return

    console.print(f"[green]OK[/green] Found {count} new matches")


@app.command("status")
def scheduler_status(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of runs to show"),
) -> None:
    """Show the run lock and recent matching runs."""
    from reliefdesk.core.scheduler import MATCHING_LOCK, LockManager
    from reliefdesk.persistence.db import get_session
    from reliefdesk.persistence.repo import RunRepository

    _load()

    with get_session() as session:
        holder = LockManager(session).holder(MATCHING_LOCK)
        runs = RunRepository(session).get_recent(limit=limit)

        if holder:
            console.print(f"[yellow]Matching run in progress[/yellow] (holder: {holder})")
        else:
            console.print("[green]Idle[/green]")
        console.print()

        if not runs:
            console.print("[dim]No matching runs yet.[/dim]")
            return

        table = Table(title="Matching Runs", show_header=True, header_style="bold magenta")
        table.add_column("ID", justify="right")
        table.add_column("Type")
        table.add_column("Status", justify="center")
        table.add_column("Opportunities", justify="right")
        table.add_column("Clients", justify="right")
        table.add_column("New", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Started")

        for run in runs:
            style = {"COMPLETED": "green", "FAILED": "red"}.get(run.status, "yellow")
            duration = f"{run.duration_seconds:.1f}s" if run.duration_seconds is not None else "-"
            table.add_row(
                str(run.id),
                run.run_type,
                f"[{style}]{run.status}[/{style}]",
                str(run.opportunities_checked),
                str(run.clients_checked),
                str(run.matches_new),
                duration,
                run.started_at.strftime("%Y-%m-%d %H:%M"),
            )

        console.print(table)
