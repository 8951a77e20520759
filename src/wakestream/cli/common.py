"""Helpers shared by the commands: settings, database and error exits."""

from __future__ import annotations

from pathlib import Path

import typer

from wakestream.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from wakestream.models import HostProfile
from wakestream.storage import Database


def fail(message: object) -> typer.Exit:
    """Print ``message`` to stderr and return the exit to raise."""
    typer.echo(str(message), err=True)
    return typer.Exit(1)


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        raise fail(exc) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        raise fail(exc) from exc


def build_database(settings: Settings) -> Database:
    return Database(data_dir_from_settings(settings))


def find_profile_or_exit(db: Database, key: str) -> HostProfile:
    """Look a host up by id, name or MAC; exit 1 when the key matches nothing."""
    try:
        profile = db.get_profile(key)
    except ValueError as exc:
        raise fail(exc) from exc
    if profile is None:
        raise fail(f"No host matches '{key}'")
    return profile
