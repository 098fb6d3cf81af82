from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from lanfuse.core import BUILTIN_PRESETS, classify, explain, lookup_manufacturer
from lanfuse.core.oui import oui_prefix
from lanfuse.models import ServiceMetadata


def register(app: typer.Typer) -> None:
    @app.command("classify")
    def classify_cmd(
        port: Annotated[
            list[int] | None,
            typer.Option("--port", "-p", help="Open port (repeatable)"),
        ] = None,
        manufacturer: Annotated[
            str | None, typer.Option("--manufacturer", "-m", help="Vendor name")
        ] = None,
        hostname: Annotated[
            str | None, typer.Option("--hostname", "-H", help="Host name")
        ] = None,
        accessory: Annotated[
            bool,
            typer.Option("--accessory", help="Host advertises a HomeKit accessory"),
        ] = False,
    ) -> None:
        """Show the device type the classifier assigns to a set of signals."""
        metadata = None
        if accessory:
            metadata = ServiceMetadata(
                name=hostname or "accessory",
                category="HomeKit Accessory",
                is_accessory=True,
            )
        ports = port or []
        category = classify(ports, manufacturer, hostname, metadata)
        rule = explain(ports, manufacturer, hostname, metadata)
        typer.echo(f"{category.value} ({rule or 'no rule matched'})")

    @app.command()
    def oui(mac: Annotated[str, typer.Argument(help="MAC address")]) -> None:
        """Look up the manufacturer of a MAC address."""
        prefix = oui_prefix(mac)
        if prefix is None:
            typer.echo(f"Not a MAC address: {mac}", err=True)
            raise typer.Exit(1)
        vendor = lookup_manufacturer(mac)
        typer.echo(f"{prefix} {vendor or 'Unknown'}")

    @app.command()
    def presets() -> None:
        """List the built-in scan presets."""
        table = Table()
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        table.add_column("Ports", justify="right")
        for preset in BUILTIN_PRESETS:
            table.add_row(preset.name, preset.description, str(len(preset.ports)))
        Console().print(table)
