from __future__ import annotations

import typer
from rich.console import Console

from .common import (
    build_database,
    fail,
    load_settings_or_exit,
    resolve_config_path_or_exit,
)


def register(app: typer.Typer) -> None:
    @app.command()
    def info() -> None:
        """Show data directory, discovery settings and address book stats."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        try:
            book = db.load()
        except ValueError as exc:
            raise fail(exc) from exc

        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)
        discovery = settings.discovery

        console = Console()

        console.print("[bold]wakestream info[/bold]\n")
        console.print(f"Data directory: {db.path}")
        console.print(f"Hosts file: {db.hosts_path}")
        console.print(f"Config file: {config_path if config_exists else 'defaults'}")

        console.print("\n[bold]Discovery[/bold]")
        console.print(f"Service port: {discovery.port}")
        console.print(f"Probe timeout: {discovery.probe_timeout}s")
        console.print(f"Concurrent probes: {discovery.concurrency}")
        console.print(
            f"Retry: {discovery.attempts} attempts, {discovery.backoff}s apart"
        )

        console.print("\n[bold]Address book[/bold]")
        console.print(f"Hosts: {len(book.profiles)}")
        console.print(f"Unresolved hosts: {len(book.unresolved())}")
        console.print(f"Pairings: {len(book.pairings)}")
