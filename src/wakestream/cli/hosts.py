from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from wakestream.errors import InvalidMacError
from wakestream.services import ProfileService
from wakestream.utils.redaction import Redactor

from .common import build_database, fail, find_profile_or_exit, load_settings_or_exit

app = typer.Typer(no_args_is_help=True, help="Manage known hosts")


@app.command("list")
def list_hosts(
    redact: bool = typer.Option(
        False, "--redact", help="Redact addresses in output"
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Re-check which hosts are online first"
    ),
) -> None:
    """List known hosts."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    try:
        if refresh:
            asyncio.run(ProfileService(db, settings).refresh_online())
        profiles = db.load_profiles()
    except ValueError as exc:
        raise fail(exc) from exc

    console = Console()
    if not profiles:
        console.print("No hosts defined.")
        console.print("Use 'wakestream hosts add NAME MAC' to add one.")
        return

    redactor = Redactor(enabled=redact)
    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("MAC Address")
    table.add_column("IP", style="green")
    table.add_column("Port")
    table.add_column("Status")

    for profile in profiles:
        status = "[green]online[/green]" if profile.online else "[red]offline[/red]"
        table.add_row(
            profile.id[:8],
            profile.name,
            redactor.redact_mac(profile.mac),
            redactor.redact_ip(profile.ip) if profile.ip else "auto",
            str(profile.port),
            status,
        )

    console.print(table)


@app.command("add")
def add_host(
    name: str = typer.Argument(..., help="Display name"),
    mac: str = typer.Argument(..., help="MAC address, e.g. AA:BB:CC:DD:EE:FF"),
    port: int = typer.Option(8080, "--port", "-p", min=1, max=65535),
    ip: str | None = typer.Option(None, "--ip", help="Known IP (default: auto)"),
    resolve: bool = typer.Option(
        False, "--resolve", help="Resolve the address right away"
    ),
) -> None:
    """Add a host by MAC address."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    try:
        profile = db.add_profile(name, mac, port=port, ip=ip)
    except (InvalidMacError, ValueError) as exc:
        raise fail(exc) from exc

    console = Console()
    console.print(f"[green]✓[/green] Added '{profile.name}' ({profile.mac}) as {profile.id}")

    if resolve:
        service = ProfileService(db, settings)
        found = asyncio.run(service.resolve_profile(profile.id))
        console.print(f"Found IP {found}" if found else "IP not found (yet)")


@app.command("edit")
def edit_host(
    key: str = typer.Argument(..., help="Host id, name or MAC"),
    name: str | None = typer.Option(None, "--name"),
    mac: str | None = typer.Option(None, "--mac", help="New MAC (clears the IP)"),
    port: int | None = typer.Option(None, "--port", min=1, max=65535),
    ip: str | None = typer.Option(None, "--ip", help="Override IP, '' for auto"),
) -> None:
    """Edit a host's fields."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    profile = find_profile_or_exit(db, key)

    patch: dict[str, object] = {}
    if name is not None:
        patch["name"] = name.strip() or "PC"
    if port is not None:
        patch["port"] = port
    if ip is not None:
        patch["ip"] = ip or None
        patch["online"] = False
    if mac is not None:
        patch["mac"] = mac

    if not patch:
        raise fail("Nothing to change")
    try:
        updated = db.update_profile(profile.id, **patch)
    except ValueError as exc:
        raise fail(exc) from exc

    Console().print(f"[green]✓[/green] Updated '{updated.name}'")


@app.command("remove")
def remove_host(key: str = typer.Argument(..., help="Host id, name or MAC")) -> None:
    """Remove a host."""
    settings = load_settings_or_exit()
    db = build_database(settings)
    profile = find_profile_or_exit(db, key)

    db.remove_profile(profile.id)
    Console().print(f"[green]✓[/green] Removed host '{profile.name}'")


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="hosts")
