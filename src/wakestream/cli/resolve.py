from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console

from wakestream.core import Resolver, WakeSignaler
from wakestream.errors import InvalidMacError, WakeError
from wakestream.models import is_valid_mac
from wakestream.services import ProfileService

from .common import build_database, fail, find_profile_or_exit, load_settings_or_exit

logger = logging.getLogger(__name__)


def resolve(
    target: str = typer.Argument(..., help="Host id/name or a MAC address"),
    port: int | None = typer.Option(None, "--port", "-p", min=1, max=65535),
    attempts: int | None = typer.Option(
        None, "--attempts", min=1, help="Override the retry budget"
    ),
) -> None:
    """Find the live IP of a host on the LAN."""
    console = Console()
    settings = load_settings_or_exit()
    discovery = settings.discovery
    if attempts is not None:
        discovery = discovery.model_copy(update={"attempts": attempts})
    resolver = Resolver(
        discovery, on_progress=lambda msg: console.print(f"[dim]{msg}[/dim]")
    )

    db = build_database(settings)
    try:
        profile = db.get_profile(target)
    except ValueError as exc:
        raise fail(exc) from exc
    if profile is None and not is_valid_mac(target):
        raise fail(f"No host matches '{target}'")

    logger.info(
        "Discovery settings: timeout=%.2fs, concurrency=%d, attempts=%d",
        discovery.probe_timeout,
        discovery.concurrency,
        discovery.attempts,
    )
    try:
        if profile is not None:
            service = ProfileService(db, settings, resolver=resolver)
            ip = asyncio.run(service.resolve_profile(profile.id, port=port))
        else:
            ip = asyncio.run(resolver.resolve(target, port))
    except InvalidMacError as exc:
        raise fail(exc) from exc

    if ip is None:
        console.print("[yellow]![/yellow] IP not found. Try 'wakestream wake' first.")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {ip}")


def wake(
    target: str = typer.Argument(..., help="Host id/name or a MAC address"),
    wait: bool = typer.Option(
        False, "--wait", help="Wait until the host answers after waking it"
    ),
) -> None:
    """Send a Wake-on-LAN packet."""
    console = Console()
    settings = load_settings_or_exit()
    db = build_database(settings)

    profile = None
    mac = target
    if not is_valid_mac(target):
        profile = find_profile_or_exit(db, target)
        mac = profile.mac

    try:
        asyncio.run(WakeSignaler().wake(mac))
    except (InvalidMacError, WakeError) as exc:
        raise fail(exc) from exc
    console.print(f"[green]✓[/green] Wake packet sent to {mac}")

    if wait:
        console.print("Waiting for host...")
        service = ProfileService(db, settings)
        if profile is not None:
            ip = asyncio.run(service.wait_until_up(profile.id))
        else:
            ip = asyncio.run(service.resolver.resolve(mac))
        if ip is None:
            console.print("[yellow]![/yellow] Host did not come up")
            raise typer.Exit(1)
        console.print(f"[green]✓[/green] Host is up at {ip}")


def register(app: typer.Typer) -> None:
    app.command("resolve")(resolve)
    app.command("wake")(wake)
