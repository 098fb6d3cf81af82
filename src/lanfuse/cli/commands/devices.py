from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from lanfuse.cli.common import (
    build_database,
    device_table,
    load_devices_or_exit,
    load_settings_or_exit,
)
from lanfuse.core import sort_by_ip
from lanfuse.utils.redaction import Redactor

app = typer.Typer(help="Show and manage the device registry")


@app.callback(invoke_without_command=True)
def list_devices(
    ctx: typer.Context,
    online: Annotated[
        bool, typer.Option("--online", help="Only show devices currently online")
    ] = False,
    redact: Annotated[
        bool, typer.Option("--redact", help="Redact sensitive values in output")
    ] = False,
) -> None:
    """List registered devices."""
    if ctx.invoked_subcommand is not None:
        return

    settings = load_settings_or_exit()
    db = build_database(settings)
    devices = sort_by_ip(load_devices_or_exit(db))
    if online:
        devices = [device for device in devices if device.is_online]

    console = Console()
    if not devices:
        console.print("No devices registered.")
        console.print("Run 'lanfuse scan' or 'lanfuse import' to discover hosts.")
        return

    console.print(device_table(devices, Redactor(enabled=redact)))
    console.print(f"\n{len(devices)} device(s)")


@app.command("known")
def mark_known(
    ip: str = typer.Argument(..., help="Device IP address"),
    unset: bool = typer.Option(False, "--unset", help="Remove from the known list"),
) -> None:
    """Mark a device as known (whitelisted)."""
    settings = load_settings_or_exit()
    db = build_database(settings)

    console = Console()
    if db.set_known(ip, not unset):
        state = "no longer known" if unset else "known"
        console.print(f"[green]✓[/green] {ip} is {state}")
    else:
        console.print(f"[yellow]![/yellow] Device '{ip}' not found")
        raise typer.Exit(1)


@app.command("name")
def rename_device(
    ip: str = typer.Argument(..., help="Device IP address"),
    name: str = typer.Argument(..., help="Display name, empty to clear"),
) -> None:
    """Set a custom display name for a device."""
    settings = load_settings_or_exit()
    db = build_database(settings)

    console = Console()
    if db.set_display_name(ip, name):
        console.print(f"[green]✓[/green] Named {ip} '{name}'")
    else:
        console.print(f"[yellow]![/yellow] Device '{ip}' not found")
        raise typer.Exit(1)
