from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from lanfuse.cli.common import (
    build_database,
    device_table,
    load_network_or_exit,
    load_settings_or_exit,
    simulated_orchestrator,
)
from lanfuse.core import ScanOrchestrator, find_preset
from lanfuse.models import DeviceRecord
from lanfuse.utils.redaction import Redactor

logger = logging.getLogger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    help="Run scan workflows against a simulated network description",
)

NetworkOption = Annotated[
    Path,
    typer.Option(
        "--network",
        "-n",
        help="TOML file describing the simulated network",
        exists=True,
        dir_okay=False,
    ),
]
RedactOption = Annotated[
    bool, typer.Option("--redact", help="Redact sensitive values in output")
]

Workflow = Callable[[ScanOrchestrator], Awaitable[list[DeviceRecord]]]


def _run(network_path: Path, workflow: Workflow, redact: bool) -> None:
    console = Console()
    settings = load_settings_or_exit()
    db = build_database(settings)
    network = load_network_or_exit(network_path)
    orchestrator = simulated_orchestrator(network, settings, db)

    logger.info(
        "Scan settings: max_concurrent=%d, host_timeout=%.2fs, port_list=%s",
        settings.scanning.max_concurrent,
        settings.scanning.host_timeout,
        settings.scanning.port_list,
    )

    async def _main() -> list[DeviceRecord]:
        await orchestrator.load_persisted()
        return await workflow(orchestrator)

    try:
        devices = asyncio.run(_main())
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc
    session = orchestrator.session
    console.print(f"[bold]{session.status}[/bold]")

    if not devices:
        console.print("No devices found.")
        return

    console.print(device_table(devices, Redactor(enabled=redact)))
    console.print(f"\n[green]Found {len(devices)} device(s)[/green]")
    if session.threats_detected:
        console.print(
            f"[red]{session.threats_detected} device(s) expose backdoor ports[/red]"
        )


@app.command("quick")
def quick(
    network: NetworkOption,
    subnet: Annotated[
        str | None, typer.Option("--subnet", help="Three-octet prefix to probe")
    ] = None,
    redact: RedactOption = False,
) -> None:
    """Liveness probe only."""
    _run(network, lambda o: o.quick_scan(subnet), redact)


@app.command("full")
def full(
    network: NetworkOption,
    subnet: Annotated[
        str | None, typer.Option("--subnet", help="Three-octet prefix to probe")
    ] = None,
    redact: RedactOption = False,
) -> None:
    """Liveness, MAC, service discovery and port scan."""
    _run(network, lambda o: o.full_scan(subnet), redact)


@app.command("ports")
def ports(
    network: NetworkOption,
    port: Annotated[
        list[int] | None,
        typer.Option("--port", "-p", help="Custom port (repeatable)"),
    ] = None,
    redact: RedactOption = False,
) -> None:
    """Re-probe ports of registered hosts."""
    _run(network, lambda o: o.port_scan(port or None), redact)


@app.command("deep")
def deep(network: NetworkOption, redact: RedactOption = False) -> None:
    """Re-probe registered hosts with the exhaustive port list."""
    _run(network, lambda o: o.deep_scan(), redact)


@app.command("host")
def host(
    ip: Annotated[str, typer.Argument(help="Address of the host to scan")],
    network: NetworkOption,
    redact: RedactOption = False,
) -> None:
    """MAC and port scan of a single host."""
    _run(network, lambda o: o.single_host_scan(ip), redact)


@app.command("preset")
def preset(
    name: Annotated[str, typer.Argument(help="Preset name, see 'lanfuse presets'")],
    network: NetworkOption,
    redact: RedactOption = False,
) -> None:
    """Re-probe registered hosts with a scan preset's ports."""
    found = find_preset(name)
    if found is None:
        typer.echo(f"Unknown preset: {name}", err=True)
        raise typer.Exit(1)
    _run(network, lambda o: o.preset_scan(found), redact)
