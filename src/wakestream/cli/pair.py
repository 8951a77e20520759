from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from wakestream.errors import PairingImportError

from .common import build_database, fail, load_settings_or_exit

app = typer.Typer(no_args_is_help=True, help="Manage imported pairings")


@app.command("import")
def import_pairing(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Import a pairing file."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    try:
        record = db.import_pairing(path)
    except (PairingImportError, ValueError) as exc:
        raise fail(exc) from exc

    Console().print(
        f"[green]✓[/green] Paired with {record.name or 'host'} ({record.device_id})"
    )


@app.command("list")
def list_pairings() -> None:
    """List imported pairings."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    pairings = db.load_pairings()

    console = Console()
    if not pairings:
        console.print("No pairings imported.")
        return

    table = Table()
    table.add_column("Device ID", style="cyan")
    table.add_column("Name")
    table.add_column("Broker", style="green")
    table.add_column("MAC Address")
    for record in pairings:
        table.add_row(record.device_id, record.name or "", record.broker, record.mac or "")
    console.print(table)


@app.command("remove")
def remove_pairing(device_id: str = typer.Argument(...)) -> None:
    """Delete an imported pairing."""
    settings = load_settings_or_exit()
    db = build_database(settings)

    console = Console()
    if db.remove_pairing(device_id):
        console.print(f"[green]✓[/green] Removed pairing '{device_id}'")
    else:
        console.print(f"[yellow]![/yellow] Pairing '{device_id}' not found")
        raise typer.Exit(1)


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="pair")
