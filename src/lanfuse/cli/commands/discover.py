from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from lanfuse.cli.common import build_database, load_settings_or_exit
from lanfuse.core import (
    NeighborTableResolver,
    ScanOrchestrator,
    ServiceDiscovery,
    ZeroconfServiceDiscovery,
)
from lanfuse.utils.redaction import Redactor


def register(app: typer.Typer) -> None:
    @app.command()
    def discover(
        timeout: Annotated[
            float | None,
            typer.Option("--timeout", "-t", help="Seconds to browse for services"),
        ] = None,
        import_hosts: Annotated[
            bool,
            typer.Option("--import", help="Add discovered hosts to the registry"),
        ] = False,
        redact: Annotated[
            bool, typer.Option("--redact", help="Redact sensitive values in output")
        ] = False,
    ) -> None:
        """Discover hosts advertising DNS-SD services via mDNS."""
        console = Console()
        settings = load_settings_or_exit()
        window = timeout or settings.scanning.discovery_timeout

        console.print(f"Browsing mDNS services for {window:.1f}s...")
        discovery: ServiceDiscovery = asyncio.run(
            ZeroconfServiceDiscovery(timeout=window).discover()
        )

        if not len(discovery):
            console.print("No services found.")
            return

        redactor = Redactor(enabled=redact)
        table = Table()
        table.add_column("IP", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Category", style="yellow")
        table.add_column("Accessory")
        table.add_column("Services")
        for ip in discovery.discovered_ips():
            metadata = discovery.get_metadata(ip)
            if metadata is None:
                continue
            table.add_row(
                redactor.redact_ip(ip),
                metadata.name,
                metadata.category,
                "yes" if metadata.is_accessory else "",
                ", ".join(metadata.services),
            )
        console.print(table)
        console.print(f"\n[green]Found {len(discovery)} host(s)[/green]")

        if not import_hosts:
            return

        db = build_database(settings)
        orchestrator = ScanOrchestrator(
            mac_resolver=NeighborTableResolver(),
            persistence=db,
            config=settings.scanning,
        )

        async def _import() -> None:
            await orchestrator.load_persisted()
            await orchestrator.import_incremental(
                discovery.discovered_ips(), metadata=discovery
            )

        asyncio.run(_import())
        console.print(f"[green]✓[/green] {orchestrator.session.status}")
