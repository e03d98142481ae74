"""Candle entry commands for CandleGuard CLI.

Handles adding, validating and getting suggestions for candles.
"""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from candleguard.models import (
    BusinessViolation,
    CandleField,
    FormInput,
    ValidationOutcome,
    ViolationSeverity,
)

console = Console()

SEVERITY_STYLES = {
    ViolationSeverity.INFO: "cyan",
    ViolationSeverity.WARNING: "yellow",
    ViolationSeverity.ERROR: "red",
}


def _get_config():
    """Load pipeline configuration, falling back to defaults."""
    from candleguard.config import load_config

    try:
        return load_config()
    except ValueError as e:
        console.print(f"[yellow]Ignoring invalid config: {e}[/yellow]")
        from candleguard.config import PipelineConfig

        return PipelineConfig()


def _get_data_store():
    """Get the data store instance."""
    from candleguard.config import default_db_path
    from candleguard.db.store import DataStore

    return DataStore(default_db_path())


def _get_pipeline():
    """Build a pipeline from the user configuration."""
    from candleguard.engine import CandlePipeline

    return CandlePipeline(_get_config())


def _load_session(store, session_id: str):
    """Get a session or exit with an error panel."""
    found = store.get_session(session_id)
    if found is None:
        console.print(Panel(
            f"[red]Session '{session_id}' not found.[/red]\n\n"
            "Run [cyan]candleguard session list[/cyan] to see available sessions.",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)
    return found


def candle_options(func):
    """Attach the five raw candle field options to a command."""
    options = [
        click.option("-o", "--open", "open_", default="", help="Opening price."),
        click.option("-H", "--high", default="", help="High price."),
        click.option("-l", "--low", default="", help="Low price."),
        click.option("-c", "--close", default="", help="Closing price."),
        click.option("-V", "--volume", default="", help="Volume (whole number)."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _print_outcome(outcome: ValidationOutcome) -> None:
    if outcome.errors:
        table = Table(title="Errors", show_header=True, header_style="bold red")
        table.add_column("Field", style="bold")
        table.add_column("Message")
        table.add_column("Code", style="dim")
        for error in outcome.errors:
            table.add_row(error.field, error.message, error.code)
        console.print(table)

    if outcome.warnings:
        table = Table(title="Warnings", show_header=True, header_style="bold yellow")
        table.add_column("Field", style="bold")
        table.add_column("Message")
        table.add_column("Severity")
        for warning in outcome.warnings:
            table.add_row(warning.field, warning.message, warning.severity.value)
        console.print(table)


def _print_violations(violations: list[BusinessViolation]) -> None:
    if not violations:
        return

    table = Table(title="Advisories", show_header=True, header_style="bold cyan")
    table.add_column("Rule", style="bold")
    table.add_column("Severity")
    table.add_column("Message")
    table.add_column("Hint", style="dim")
    for violation in violations:
        style = SEVERITY_STYLES[violation.severity]
        table.add_row(
            violation.rule,
            f"[{style}]{violation.severity.value}[/{style}]",
            violation.message,
            violation.suggestion or "",
        )
    console.print(table)


@click.command()
@click.argument("session_id")
@candle_options
@click.option("--index", "candle_index", type=int, default=None,
              help="Candle index (default: next free index).")
def add(
    session_id: str,
    open_: str,
    high: str,
    low: str,
    close: str,
    volume: str,
    candle_index: Optional[int],
) -> None:
    """Validate and store a candle.

    SESSION_ID is the session the candle belongs to.

    \b
    Examples:
      candleguard add SESSION_ID -o 1.0850 -H 1.0870 -l 1.0840 -c 1.0860 -V 1000000
      candleguard add SESSION_ID --index 5 -o 1.09 -H 1.091 -l 1.089 -c 1.0905 -V 800000
    """
    store = _get_data_store()
    current = _load_session(store, session_id)
    pipeline = _get_pipeline()

    if candle_index is None:
        candle_index = store.next_candle_index(session_id)
    if candle_index < 0:
        console.print("[red]Candle index must be non-negative[/red]")
        raise SystemExit(1)

    form = FormInput(open=open_, high=high, low=low, close=close, volume=volume)
    result = pipeline.submit(
        form,
        session_id,
        candle_index,
        current.candle_datetime(candle_index),
        store.get_candles(session_id),
        store.save_candle,
    )

    if not result.success:
        console.print(Panel(
            f"[red]{result.message}[/red]",
            title=f"[bold red]Candle not saved ({result.error_kind.value})[/bold red]",
            border_style="red",
        ))
        _print_outcome(result.outcome)
        _print_violations(result.violations)
        raise SystemExit(1)

    record = result.record
    console.print(Panel(
        f"[bold]#{record.candle_index}[/bold]  {record.timestamp:%Y-%m-%d %H:%M}\n"
        f"O {record.open}  H {record.high}  L {record.low}  C {record.close}  V {record.volume:,}",
        title="[bold green]✓ Candle saved[/bold green]",
        border_style="green",
    ))
    _print_outcome(result.outcome)
    _print_violations(result.violations)


@click.command()
@candle_options
@click.option("--session", "session_id", default=None,
              help="Compare with this session's history as well.")
def validate(
    open_: str,
    high: str,
    low: str,
    close: str,
    volume: str,
    session_id: Optional[str],
) -> None:
    """Check a candle without storing it.

    \b
    Examples:
      candleguard validate -o 1.0850 -H 1.0800 -l 1.0840 -c 1.0860 -V 1000000
      candleguard validate --session SESSION_ID -o 1.0850 -H 1.0870 -l 1.0840 -c 1.0860 -V 1000000
    """
    pipeline = _get_pipeline()
    form = FormInput(open=open_, high=high, low=low, close=close, volume=volume)
    outcome = pipeline.validate(form, session_id or "cli")

    if outcome.is_valid:
        console.print("[green]✓ Candle is valid[/green]")
    else:
        console.print("[red]✗ Candle is invalid[/red]")
    _print_outcome(outcome)

    if outcome.is_valid and session_id:
        store = _get_data_store()
        current = _load_session(store, session_id)
        from candleguard.engine import build_record

        candle_index = store.next_candle_index(session_id)
        record = build_record(
            pipeline.sanitize(form),
            session_id,
            candle_index,
            current.candle_datetime(candle_index),
        )
        _print_violations(pipeline.analyze(record, store.get_candles(session_id)))

    if not outcome.is_valid:
        raise SystemExit(1)


@click.command()
@click.argument("session_id")
@click.argument("field", type=click.Choice([f.value for f in CandleField]), required=False)
@candle_options
@click.option("--autofill", is_flag=True, help="Propose a complete candle instead.")
def suggest(
    session_id: str,
    field: Optional[str],
    open_: str,
    high: str,
    low: str,
    close: str,
    volume: str,
    autofill: bool,
) -> None:
    """Suggest values for a candle field.

    SESSION_ID supplies the history; FIELD is the field being entered.
    Already entered fields can be passed as options.

    \b
    Examples:
      candleguard suggest SESSION_ID open
      candleguard suggest SESSION_ID close -o 1.0850 -H 1.0870 -l 1.0840
      candleguard suggest SESSION_ID --autofill
    """
    store = _get_data_store()
    _load_session(store, session_id)
    pipeline = _get_pipeline()
    history = store.get_candles(session_id)

    if autofill:
        proposal = pipeline.autofill(history)
        if proposal is None:
            console.print("[yellow]No history to derive a candle from[/yellow]")
            return
        table = Table(title="Autofill", show_header=True, header_style="bold cyan")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for candle_field in CandleField:
            table.add_row(candle_field.value, proposal.get(candle_field))
        console.print(table)
        return

    if field is None:
        console.print("[red]Give a FIELD or use --autofill[/red]")
        raise SystemExit(1)

    form = FormInput(open=open_, high=high, low=low, close=close, volume=volume)
    suggestions = pipeline.suggest(field, form, history)
    if not suggestions:
        console.print(f"[yellow]No suggestions for {field}[/yellow]")
        return

    table = Table(title=f"Suggestions: {field}", show_header=True, header_style="bold cyan")
    table.add_column("Value", style="bold")
    table.add_column("Confidence", justify="right")
    table.add_column("Reason", style="dim")
    for item in suggestions:
        table.add_row(item.value, f"{item.confidence}%", item.reason)
    console.print(table)
