"""Console logging for the command line."""

from __future__ import annotations

import logging
import os

import coloredlogs  # type: ignore[import]

LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LEVEL_ENV_VAR = "LOGLEVEL"

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
TIME_FORMAT = "%H:%M:%S"

# ICE gathering and per-request HTTP lines drown out our own output
LIBRARY_LOGGERS = ("aiortc", "aioice", "httpx", "httpcore")


def resolve_level(level: str | None = None) -> str:
    """Pick the level from the argument, then ``LOGLEVEL``, then INFO."""
    name = (level or os.environ.get(LEVEL_ENV_VAR) or "INFO").strip().upper()
    if name not in LEVEL_NAMES:
        raise ValueError(
            f"Unknown log level {name!r}, expected one of {', '.join(LEVEL_NAMES)}"
        )
    return name


def setup_logging(level: str | None = None, quiet_libraries: bool = True) -> str:
    resolved = resolve_level(level)
    coloredlogs.install(level=resolved, fmt=LOG_FORMAT, datefmt=TIME_FORMAT)

    library_level = logging.WARNING if quiet_libraries else logging.getLevelName(resolved)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return resolved
