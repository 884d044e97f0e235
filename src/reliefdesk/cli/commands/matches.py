"""
Opportunity match commands, talking to a running API server.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from reliefdesk.client import ApiError, HTTPStatusError, MatchRecord, ReliefDeskClient

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Work opportunity matches through the API",
    no_args_is_help=True,
)

STATUS_STYLES = {
    "pending": "yellow",
    "notified": "cyan",
    "applied": "blue",
    "awarded": "magenta",
    "funded": "green",
    "rejected": "red",
    "archived": "dim",
}

UrlOption = typer.Option(None, "--url", help="API base URL (default from config)", envvar="RELIEFDESK_API_URL")
UserOption = typer.Option(None, "--user", "-u", help="Acting user id", envvar="RELIEFDESK_USER_ID")


@contextmanager
def _api(url: Optional[str] = None, user: Optional[int] = None) -> Iterator[ReliefDeskClient]:
    """Open a client from config; any API failure becomes one error line and exit 1."""
    from reliefdesk.core.config import load_app_config

    config = load_app_config().client
    if url:
        config = config.model_copy(update={"base_url": url})
    if user is not None:
        config = config.model_copy(update={"user_id": user})

    try:
        with ReliefDeskClient.from_config(config) as client:
            yield client
    except HTTPStatusError as e:
        suffix = f" (current status: {e.current_status})" if e.current_status else ""
        err_console.print(f"[red]Error {e.status_code}:[/red] {e.message}{suffix}")
        raise typer.Exit(1)
    except ApiError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _status_text(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _money(amount: float | None) -> str:
    return f"${amount:,.2f}" if amount is not None else "[dim]-[/dim]"


def _next_action(match: MatchRecord) -> str:
    actions = [a.value for a in match.actions]
    return ", ".join(actions) if actions else "[dim]-[/dim]"


def _matches_table(matches: list[MatchRecord], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Opp", justify="right", style="dim")
    table.add_column("Client", justify="right", style="dim")
    table.add_column("Opportunity", style="cyan", max_width=40)
    table.add_column("Survivor", max_width=25)
    table.add_column("Score", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Award", justify="right")
    table.add_column("Next")

    for match in matches:
        table.add_row(
            str(match.opportunity_id),
            str(match.client_id),
            match.opportunity_name or "",
            match.client_name or "",
            f"{match.match_score:.0f}%",
            _status_text(match.status),
            _money(match.award_amount),
            _next_action(match),
        )
    return table


@app.command("list")
def list_matches(
    status: str = typer.Option(
        "all",
        "--status",
        "-s",
        help="Status tab (all, pending, notified, applied, awarded, funded, rejected, archived)",
    ),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Filter by opportunity or survivor name"),
    client_id: Optional[int] = typer.Option(None, "--client", help="Only matches for this survivor"),
    opportunity_id: Optional[int] = typer.Option(None, "--opportunity", help="Only matches for this opportunity"),
    tabs: bool = typer.Option(False, "--tabs", help="Show per-tab counts"),
    url: Optional[str] = UrlOption,
) -> None:
    """List matches the way the status tabs show them.

    Examples:
        reliefdesk matches list --status pending
        reliefdesk matches list --search harvey --tabs
    """
    from reliefdesk.core.lifecycle import TAB_ORDER, filter_matches, tab_counts

    if status not in TAB_ORDER:
        err_console.print(f"[red]Unknown status tab:[/red] {status}")
        raise typer.Exit(1)

    with _api(url) as api:
        if client_id is not None:
            matches = api.list_client_matches(client_id)
        elif opportunity_id is not None:
            matches = api.list_opportunity_matches(opportunity_id)
        else:
            matches = api.list_matches()

    if tabs:
        counts = tab_counts(filter_matches(matches, search=search, status=None))
        console.print("  ".join(f"{tab} [bold]{counts[tab]}[/bold]" for tab in TAB_ORDER))
        console.print()

    shown = filter_matches(matches, search=search, status=status)
    if not shown:
        console.print("[dim]No matches found.[/dim]")
        return

    console.print(_matches_table(shown, f"Matches ({status})"))


@app.command("show")
def show_match(
    opportunity_id: int = typer.Argument(..., help="Funding opportunity id"),
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    url: Optional[str] = UrlOption,
) -> None:
    """Show one match with its timeline and available actions."""
    with _api(url) as api:
        match = api.get_match(opportunity_id, client_id)

    def _ts(value) -> str:
        return value.strftime("%Y-%m-%d %H:%M") if value else "[dim]-[/dim]"

    criteria = "\n".join(
        f"  {name}: {'[green]yes[/green]' if detail.get('matches') else '[red]no[/red]'}"
        for name, detail in match.match_criteria.items()
        if isinstance(detail, dict)
    ) or "  [dim]-[/dim]"

    actions = [a.value for a in match.actions + match.housekeeping_actions]

    console.print(Panel.fit(
        f"[bold]{match.opportunity_name}[/bold] / {match.client_name}\n\n"
        f"Status:       {_status_text(match.status)}\n"
        f"Score:        {match.match_score:.0f}%\n"
        f"Award:        {_money(match.award_amount)}\n"
        f"Deadline:     {match.application_end_date or '-'}\n"
        f"Applied:      {_ts(match.applied_at)}\n"
        f"Awarded:      {_ts(match.awarded_at)}\n"
        f"Funded:       {_ts(match.funded_at)}\n"
        f"Last checked: {_ts(match.last_checked_at)}\n\n"
        f"Criteria:\n{criteria}\n\n"
        f"Notes: {match.notes or '-'}\n"
        f"Actions: {', '.join(actions) if actions else '-'}",
        title=f"Match #{match.id}",
        border_style=STATUS_STYLES.get(match.status, "white"),
    ))


@app.command("apply")
def apply_for_grant(
    opportunity_id: int = typer.Argument(..., help="Funding opportunity id"),
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    url: Optional[str] = UrlOption,
    user: Optional[int] = UserOption,
) -> None:
    """Submit a grant application for a survivor."""
    with _api(url, user) as api:
        result = api.apply(opportunity_id, client_id)
    console.print(f"[green]OK[/green] {result.message} ({_status_text(result.match.status)})")


@app.command("award")
def award_grant(
    opportunity_id: int = typer.Argument(..., help="Funding opportunity id"),
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    amount: float = typer.Option(..., "--amount", "-a", help="Award amount (>= 0)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Replace the match notes"),
    url: Optional[str] = UrlOption,
    user: Optional[int] = UserOption,
) -> None:
    """Record a grant award for an applied match."""
    if not math.isfinite(amount) or amount < 0:
        err_console.print("[red]Error:[/red] Award amount must be a non-negative number")
        raise typer.Exit(1)

    with _api(url, user) as api:
        result = api.award(opportunity_id, client_id, amount, notes=notes)
    console.print(
        f"[green]OK[/green] {result.message}: {_money(result.match.award_amount)} "
        f"({_status_text(result.match.status)})"
    )


@app.command("fund")
def fund_grant(
    opportunity_id: int = typer.Argument(..., help="Funding opportunity id"),
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    url: Optional[str] = UrlOption,
    user: Optional[int] = UserOption,
) -> None:
    """Mark an awarded grant as funded."""
    with _api(url, user) as api:
        result = api.fund(opportunity_id, client_id)
    console.print(f"[green]OK[/green] {result.message} ({_status_text(result.match.status)})")


@app.command("update")
def update_match(
    opportunity_id: int = typer.Argument(..., help="Funding opportunity id"),
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="New status (notified, rejected, archived, ...)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Replace the match notes"),
    url: Optional[str] = UrlOption,
    user: Optional[int] = UserOption,
) -> None:
    """Change notes or move a match to another status (e.g. archive it)."""
    if status is None and notes is None:
        err_console.print("[red]Nothing to update:[/red] pass --status and/or --notes")
        raise typer.Exit(1)

    with _api(url, user) as api:
        match = api.update_match(opportunity_id, client_id, status=status, notes=notes)
    console.print(f"[green]OK[/green] Match #{match.id} is {_status_text(match.status)}")


@app.command("run")
def run_matching(
    url: Optional[str] = UrlOption,
    user: Optional[int] = UserOption,
) -> None:
    """Run the matching engine on the server."""
    with console.status("Running matching engine..."):
        with _api(url, user) as api:
            result = api.run_matching()
    console.print(f"[green]OK[/green] {result.message}")


@app.command("capital")
def list_capital_sources(
    client_id: int = typer.Argument(..., help="Survivor/client id"),
    url: Optional[str] = UrlOption,
) -> None:
    """Show a survivor's capital stack."""
    with _api(url) as api:
        sources = api.list_capital_sources(client_id)

    if not sources:
        console.print("[dim]No capital sources.[/dim]")
        return

    table = Table(title=f"Capital Stack - survivor {client_id}", show_header=True, header_style="bold magenta")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Amount", justify="right")
    table.add_column("Status", justify="center")

    for source in sources:
        style = "green" if source.status == "current" else "yellow"
        table.add_row(source.type, source.name, _money(source.amount), f"[{style}]{source.status}[/{style}]")

    console.print(table)
