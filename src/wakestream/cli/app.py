from __future__ import annotations

from importlib.metadata import version as package_version
from typing import Annotated

import typer

from wakestream.utils.logging import setup_logging

from . import config as config_cmd
from .connect import register as register_connect
from .hosts import register as register_hosts
from .info import register as register_info
from .pair import register as register_pair
from .resolve import register as register_resolve

app = typer.Typer(
    help="Wake, find and stream a PC on your LAN.", no_args_is_help=True
)

app.add_typer(config_cmd.app, name="config")

register_hosts(app)
register_pair(app)
register_resolve(app)
register_connect(app)
register_info(app)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"wakestream version {package_version('wakestream')}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=_show_version,
            is_eager=True,
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING... (default: $LOGLEVEL)"),
    ] = None,
    debug_libraries: Annotated[
        bool,
        typer.Option("--debug-libraries", help="Keep aiortc/httpx log output"),
    ] = False,
) -> None:
    """wakestream CLI."""
    try:
        setup_logging(log_level, quiet_libraries=not debug_libraries)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
