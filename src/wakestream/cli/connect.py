from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from wakestream.core import SessionController
from wakestream.errors import InvalidMacError, NegotiationError, WakeError
from wakestream.models import HostProfile, StatsSnapshot
from wakestream.services import ProfileService

from .common import build_database, fail, load_settings_or_exit


def connect(
    target: str = typer.Argument(..., help="Host id/name or a base URL"),
    codec: str | None = typer.Option(None, "--codec", help="Preferred video codec"),
    fps: int | None = typer.Option(None, "--fps", min=1, max=240),
    width: int | None = typer.Option(None, "--width", min=2),
    height: int | None = typer.Option(None, "--height", min=2),
    bitrate: str | None = typer.Option(None, "--bitrate", help="e.g. 25M"),
    preset: str | None = typer.Option(None, "--preset"),
    capture: str | None = typer.Option(None, "--capture"),
    no_audio: bool = typer.Option(False, "--no-audio"),
    wake: bool = typer.Option(False, "--wake", help="Wake the host if not found"),
) -> None:
    """Stream a host's desktop and print per-second statistics until Ctrl+C."""
    console = Console()
    settings = load_settings_or_exit()

    db = build_database(settings)
    profile: HostProfile | str
    if target.startswith(("http://", "https://")):
        profile = target
    else:
        try:
            found = db.get_profile(target)
        except ValueError as exc:
            raise fail(exc) from exc
        if found is None:
            raise fail(f"No host matches '{target}'")
        profile = found

    profiles = ProfileService(db, settings)
    controller = SessionController(settings, profiles=profiles)
    controller.on_status_change(lambda message: console.print(f"[dim]{message}[/dim]"))

    def show(snapshot: StatsSnapshot) -> None:
        console.print(snapshot.format())

    controller.on_stats(show)

    overrides = dict(
        codec=codec,
        fps=fps,
        width=width,
        height=height,
        bitrate=bitrate,
        preset=preset,
        capture=capture,
        audio=False if no_audio else None,
    )

    async def run() -> None:
        try:
            await controller.connect(profile, wake=wake, overrides=overrides)
            # hosts without an address keep being looked for while streaming
            profiles.start_background()
            await asyncio.Event().wait()
        finally:
            await controller.disconnect()
            await profiles.stop_background()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[green]Session ended.[/green]")
    except (LookupError, NegotiationError, InvalidMacError, WakeError, ValueError) as exc:
        raise fail(exc) from exc


def register(app: typer.Typer) -> None:
    app.command("connect")(connect)
