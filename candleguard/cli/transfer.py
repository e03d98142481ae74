"""Import/export commands for CandleGuard CLI.

Handles CSV/JSON import into a session, export of a session's candles
and the import template.
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

console = Console()


def _get_data_store():
    """Get the data store instance."""
    from candleguard.config import default_db_path
    from candleguard.db.store import DataStore

    return DataStore(default_db_path())


def _require_session(store, session_id: str) -> None:
    if store.get_session(session_id) is None:
        console.print(Panel(
            f"[red]Session '{session_id}' not found.[/red]",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)


@click.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("session_id")
@click.option("--dry-run", is_flag=True, help="Validate the file without saving.")
def import_candles(path: Path, session_id: str, dry_run: bool) -> None:
    """Import candles from a CSV or JSON file.

    PATH is a .csv or .json file; SESSION_ID the session to import into.
    Invalid rows are reported and skipped.

    \b
    Examples:
      candleguard template --output candles.csv
      candleguard import candles.csv SESSION_ID
      candleguard import candles.json SESSION_ID --dry-run
    """
    from candleguard.transfer import import_file

    store = _get_data_store()
    _require_session(store, session_id)

    result = import_file(path, session_id)
    for error in result.errors:
        console.print(f"[red]✗ {error}[/red]")
    for warning in result.warnings:
        console.print(f"[yellow]! {warning}[/yellow]")

    if result.stats is None:
        raise SystemExit(1)

    saved = 0
    skipped = 0
    if not dry_run:
        for record in result.records:
            if store.save_candle(record):
                saved += 1
            else:
                skipped += 1

    stats = result.stats
    lines = [
        f"Rows: {stats.total}",
        f"Valid: [green]{stats.valid}[/green]",
        f"Invalid: [red]{stats.invalid}[/red]",
    ]
    if dry_run:
        lines.append("[dim]Dry run: nothing saved[/dim]")
    else:
        lines.append(f"Saved: [green]{saved}[/green]")
        if skipped:
            lines.append(f"Skipped (index already used): [yellow]{skipped}[/yellow]")

    console.print(Panel(
        "\n".join(lines),
        title="[bold]Import[/bold]",
        border_style="green" if result.success else "yellow",
    ))

    if not result.success:
        raise SystemExit(1)


@click.command()
@click.argument("session_id")
@click.option(
    "--format", "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format (default: csv).",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout.",
)
def export(session_id: str, fmt: str, output: Optional[Path]) -> None:
    """Export the candles of a session.

    \b
    Examples:
      candleguard export SESSION_ID
      candleguard export SESSION_ID --format json -o candles.json
    """
    from candleguard.transfer import export_csv, export_json

    store = _get_data_store()
    _require_session(store, session_id)
    records = store.get_candles(session_id)

    content = export_csv(records) if fmt == "csv" else export_json(records)
    if output is None:
        click.echo(content)
        return

    output.write_text(content + "\n", encoding="utf-8")
    console.print(f"[green]✓ Exported {len(records)} candles to {output}[/green]")


@click.command()
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout.",
)
def template(output: Optional[Path]) -> None:
    """Print an example CSV file for import."""
    from candleguard.transfer import import_template

    content = import_template()
    if output is None:
        click.echo(content)
        return

    output.write_text(content + "\n", encoding="utf-8")
    console.print(f"[green]✓ Template written to {output}[/green]")
