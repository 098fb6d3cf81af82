from __future__ import annotations

import typer
from rich.console import Console

from lanfuse.cli.common import (
    build_database,
    load_devices_or_exit,
    load_settings_or_exit,
    resolve_config_path_or_exit,
)


def register(app: typer.Typer) -> None:
    @app.command()
    def info() -> None:
        """Show data directory, configuration and registry statistics."""
        settings = load_settings_or_exit()
        db = build_database(settings)
        devices = load_devices_or_exit(db)
        networks = db.load_networks()
        summaries = db.load_scan_summaries()

        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)

        console = Console()

        console.print("[bold]lanfuse info[/bold]\n")
        console.print(f"Data directory: {db.path}")
        console.print(f"Device registry: {db.devices_path}")
        console.print(f"Config file: {config_path if config_exists else 'defaults'}")

        scanning = settings.scanning
        console.print("\n[bold]Configuration[/bold]")
        console.print(f"Default subnet: {scanning.default_subnet}.0/24")
        console.print(f"Concurrent probes: {scanning.max_concurrent}")
        console.print(f"Host timeout: {scanning.host_timeout}s")
        console.print(f"Port list: {scanning.port_list}")

        console.print("\n[bold]Statistics[/bold]")
        online = sum(1 for device in devices if device.is_online)
        console.print(f"Devices: {len(devices)} ({online} online)")
        console.print(f"Known devices: {sum(1 for d in devices if d.is_known)}")
        console.print(f"Networks scanned: {len(networks)}")

        if summaries:
            last = summaries[-1]
            console.print(f"Last scan: {last.finished_at}")
            console.print(f"Threats at last scan: {last.threat_count}")
        else:
            console.print("No scans recorded yet")
