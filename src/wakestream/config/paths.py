from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "wakestream"
CONFIG_FILENAME = "config.toml"
HOSTS_FILENAME = "hosts.toml"
PAIRINGS_FILENAME = "pairings.json"


def _xdg_dir(variable: str, *fallback: str) -> Path:
    value = os.environ.get(variable)
    if value:
        return Path(value)
    return Path.home().joinpath(*fallback)


def default_config_path() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / APP_NAME / CONFIG_FILENAME


def default_data_dir() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local", "share") / APP_NAME


def expand_path(value: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(value)))
