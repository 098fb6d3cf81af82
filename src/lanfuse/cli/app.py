from __future__ import annotations

from typing import Annotated

import typer

from lanfuse.utils.logging import setup_logging

from . import config as config_cmd
from .commands import devices as devices_cmd
from .commands import scan as scan_cmd
from .commands.discover import register as register_discover
from .commands.import_cmd import register as register_import
from .commands.info import register as register_info
from .commands.init import register as register_init
from .commands.tools import register as register_tools

app = typer.Typer(
    help="lanfuse - network discovery and device fusion", no_args_is_help=True
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(devices_cmd.app, name="devices")
app.add_typer(scan_cmd.app, name="scan")

register_init(app)
register_info(app)
register_import(app)
register_discover(app)
register_tools(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log at DEBUG level, including zeroconf"),
    ] = False,
) -> None:
    """lanfuse CLI."""
    setup_logging("DEBUG" if debug else None)

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"lanfuse version {get_version('lanfuse')}")
        raise typer.Exit()
