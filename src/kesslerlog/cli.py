"""CLI interface for Kesslerlog."""

import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kesslerlog.formatting import fmt1, minutes_to_human
from kesslerlog.models import PERIOD_PRESETS, YEAR_MAX, YEAR_MIN
from kesslerlog.services import GamesService, StatsService
from kesslerlog.store import StoreClient

# Load .env file - try current directory, then home directory
load_dotenv(Path.cwd() / ".env")
load_dotenv(Path.home() / ".kesslerlog" / ".env")

app = typer.Typer(
    name="kesslerlog",
    help="Your personal game diary",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


@app.callback()
def common(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log store requests")):
    _setup_logging(verbose)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the web UI."""
    import uvicorn

    console.print(f"[bold blue]Kesslerlog[/bold blue] on http://{host}:{port}")
    uvicorn.run("kesslerlog.web.app:app", host=host, port=port, reload=reload)


@app.command()
def status():
    """Show the store configuration."""
    store = StoreClient()

    console.print(Panel("[bold]Kesslerlog Status[/bold]", style="blue"))

    if store.configured:
        console.print(f"Store: {store.url}")
    else:
        console.print("Store: [yellow]Not configured[/yellow]")

    console.print(f"Schema: {store.schema}")
    console.print(f"User ID: {store.user_id or '[yellow]not set[/yellow]'}")
    console.print(f"Access token: {'set' if store.access_token else 'using the anon key'}")


@app.command("init-statuses")
def init_statuses():
    """Create the default cycle statuses (safe to run twice)."""
    service = GamesService(StoreClient())

    if not service.ensure_default_statuses():
        console.print(f"[bold red]Error:[/bold red] {service.message}")
        raise typer.Exit(1)

    console.print(f"[green]{service.message}[/green]")
    for s in service.statuses:
        console.print(f"  {s.sort_order:>3}  {s.name} [dim]({s.slug})[/dim]")


@app.command()
def stats(
    period: str = typer.Option("last30", help=f"One of: {', '.join(PERIOD_PRESETS)}"),
    year: int | None = typer.Option(None, min=YEAR_MIN, max=YEAR_MAX, help="Year for the month/year periods"),
    month: int | None = typer.Option(None, min=1, max=12, help="Month for the month period"),
):
    """Print the statistics KPIs for a period."""
    if period not in PERIOD_PRESETS:
        console.print(f"[bold red]Error:[/bold red] unknown period {period!r}")
        raise typer.Exit(2)

    service = StatsService(StoreClient())
    changes: dict = {"period": period}
    if year is not None:
        changes["year"] = year
    if month is not None:
        changes["month"] = month
    service.set_filters(**changes)

    with console.status("[dim]Loading statistics...[/dim]"):
        dashboard = service.refresh_all()

    if dashboard is None:
        console.print(f"[bold red]Error:[/bold red] {service.message}")
        raise typer.Exit(1)

    k = dashboard.kpis
    table = Table(title=f"Statistics ({period})", show_header=False)
    table.add_column("KPI", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Cycles", str(k.cycles))
    table.add_row("Open cycles", str(k.open_cycles))
    table.add_row("Rated cycles", str(k.rated_cycles))
    table.add_row("Average rating", fmt1(k.avg_cycle_rating))
    table.add_row("Last final rating", fmt1(k.last_final_rating))
    table.add_row("Finished sessions", str(k.finished_sessions))
    table.add_row("Average session score", fmt1(k.avg_session_score))
    table.add_row("Average session length (min)", fmt1(k.avg_session_minutes))
    table.add_row("Reviews written", str(k.reviews_written))
    table.add_row("External ratings", str(k.external_ratings_count))
    table.add_row("Total time", minutes_to_human(k.total_minutes))
    console.print(table)

    if dashboard.top_time_by_game:
        console.print("\n[bold]Most played:[/bold]")
        for i, g in enumerate(dashboard.top_time_by_game[:5], 1):
            console.print(f"  {i}. {g.game_title} ({minutes_to_human(g.minutes)})")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
