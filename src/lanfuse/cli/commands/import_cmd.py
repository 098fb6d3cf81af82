from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from lanfuse.cli.common import (
    build_database,
    device_table,
    load_settings_or_exit,
)
from lanfuse.core import NeighborTableResolver, ScanOrchestrator
from lanfuse.models import DeviceRecord
from lanfuse.utils.redaction import Redactor


def _read_ips(path: Path) -> list[str]:
    ips = []
    for line in path.read_text().splitlines():
        entry = line.split("#", 1)[0].strip()
        if entry:
            ips.append(entry)
    return ips


def register(app: typer.Typer) -> None:
    @app.command("import")
    def import_hosts(
        ips: Annotated[
            list[str] | None, typer.Argument(help="Addresses discovered elsewhere")
        ] = None,
        file: Annotated[
            Path | None,
            typer.Option(
                "--file", "-f", help="File with one address per line", exists=True
            ),
        ] = None,
        redact: Annotated[
            bool, typer.Option("--redact", help="Redact sensitive values in output")
        ] = False,
    ) -> None:
        """Reconcile an externally discovered host list with the registry.

        Hosts missing from the list are marked offline; MACs come from the
        local neighbor table.
        """
        addresses = list(ips or [])
        if file is not None:
            addresses.extend(_read_ips(file))
        if not addresses:
            typer.echo("No addresses given", err=True)
            raise typer.Exit(1)

        settings = load_settings_or_exit()
        db = build_database(settings)
        orchestrator = ScanOrchestrator(
            mac_resolver=NeighborTableResolver(),
            persistence=db,
            config=settings.scanning,
        )

        async def _main() -> list[DeviceRecord]:
            await orchestrator.load_persisted()
            return await orchestrator.import_incremental(addresses)

        devices = asyncio.run(_main())

        console = Console()
        console.print(f"[bold]{orchestrator.session.status}[/bold]")
        if devices:
            console.print(device_table(devices, Redactor(enabled=redact)))
