from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from lanfuse.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from lanfuse.core import ScanOrchestrator, SimulatedNetwork, load_network
from lanfuse.models import DeviceRecord
from lanfuse.storage import Database
from lanfuse.utils.redaction import Redactor


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_database(settings: Settings, data_dir: Path | None = None) -> Database:
    path = data_dir or data_dir_from_settings(settings)
    return Database(path)


def load_network_or_exit(path: Path) -> SimulatedNetwork:
    try:
        return load_network(path)
    except (OSError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def load_devices_or_exit(db: Database) -> list[DeviceRecord]:
    try:
        return db.load_devices()
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def simulated_orchestrator(
    network: SimulatedNetwork, settings: Settings, db: Database
) -> ScanOrchestrator:
    return ScanOrchestrator(
        liveness=network,
        mac_resolver=network,
        metadata_source=network,
        port_prober=network,
        hostname_resolver=network,
        persistence=db,
        config=settings.scanning,
    )


def device_table(devices: list[DeviceRecord], redactor: Redactor) -> Table:
    table = Table()
    table.add_column("IP", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("MAC Address")
    table.add_column("Manufacturer")
    table.add_column("Open Ports")
    table.add_column("Status")

    for device in devices:
        name = device.display_name or device.hostname or ""
        if device.is_known:
            name = f"{name} ✓" if name else "✓"
        ports = ", ".join(str(port) for port in device.port_numbers)
        status = "[green]online[/green]" if device.is_online else "[dim]offline[/dim]"
        table.add_row(
            redactor.redact_ip(device.ip),
            name,
            device.device_type.value,
            redactor.redact_mac(device.mac),
            device.manufacturer or "",
            ports,
            status,
        )
    return table
