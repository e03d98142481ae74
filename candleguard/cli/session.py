"""Trading session commands for CandleGuard CLI."""

from datetime import datetime
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from candleguard.models import TIMEFRAMES, TradingSession

console = Console()


def _get_data_store():
    """Get the data store instance."""
    from candleguard.config import default_db_path
    from candleguard.db.store import DataStore

    return DataStore(default_db_path())


@click.group()
def session() -> None:
    """Manage trading sessions.

    A session is a named sequence of candles for one currency pair and
    timeframe. Candle times are derived from the session start.

    \b
    Examples:
      candleguard session create "EUR morning" EUR/USD 5m
      candleguard session list
    """
    pass


@session.command("create")
@click.argument("name")
@click.argument("pair")
@click.argument("timeframe", type=click.Choice(list(TIMEFRAMES)))
@click.option(
    "--start",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]),
    default=None,
    help="Instant of the first candle (default: now).",
)
def create_session(name: str, pair: str, timeframe: str, start: Optional[datetime]) -> None:
    """Create a new trading session.

    NAME is a label (3-100 characters), PAIR a currency pair such as
    EUR/USD, TIMEFRAME the candle duration.
    """
    try:
        new_session = TradingSession(
            name=name,
            pair=pair,
            timeframe=timeframe,
            start=start or datetime.now().replace(second=0, microsecond=0),
        )
    except ValidationError as e:
        console.print(Panel(
            "\n".join(f"[red]{err['loc'][0]}:[/red] {err['msg']}" for err in e.errors()),
            title="[bold red]Invalid session[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)

    try:
        store = _get_data_store()
        store.save_session(new_session)
    except Exception as e:
        console.print(Panel(
            f"[red]Failed to create session:[/red]\n\n{str(e)}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)

    console.print(f"[green]✓ Created session '{new_session.name}'[/green]")
    console.print(f"[dim]ID: {new_session.id}[/dim]")


@session.command("list")
def list_sessions() -> None:
    """List all trading sessions."""
    try:
        store = _get_data_store()
        sessions = store.get_sessions()

        if not sessions:
            console.print(Panel(
                "[dim]No sessions found. Use 'candleguard session create' to start one.[/dim]",
                title="[bold]Sessions[/bold]",
                border_style="dim",
            ))
            return

        table = Table(title="Sessions", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Pair")
        table.add_column("Timeframe")
        table.add_column("Start")
        table.add_column("Candles", justify="right")

        for item in sessions:
            table.add_row(
                item.id,
                item.name,
                item.pair,
                item.timeframe,
                item.start.strftime("%Y-%m-%d %H:%M"),
                str(len(store.get_candles(item.id))),
            )

        console.print(table)

    except Exception as e:
        console.print(Panel(
            f"[red]Failed to list sessions:[/red]\n\n{str(e)}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)
