"""An in-memory network that answers every probe the orchestrator makes.

Used by the ``scan`` CLI commands and the test suite. A network description
is a TOML file::

    subnet = "192.168.1"

    [[hosts]]
    ip = "192.168.1.1"
    mac = "B8:27:EB:00:00:01"
    hostname = "gateway.local"
    ports = [53, 80, 443]

    [[hosts]]
    ip = "192.168.1.40"
    services = ["_hap._tcp"]
    txt = { md = "Eve Energy", ci = "7" }
"""

from __future__ import annotations

import asyncio
import logging
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from lanfuse.exceptions import ProbeError
from lanfuse.models import PortDescriptor

from .collaborators import ServiceDiscovery
from .discovery import DiscoveredService, build_metadata
from .fusion import canonical_ip
from .ports import describe_port

logger = logging.getLogger(__name__)


class SimulatedHost(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    ip: str
    mac: str | None = None
    hostname: str | None = None
    ports: list[int] = Field(default_factory=list)
    responds: bool = True
    services: list[str] = Field(default_factory=list)
    txt: dict[str, str] = Field(default_factory=dict)
    fail_ports: bool = False
    delay: float = Field(default=0.0, ge=0)


class SimulatedNetwork(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    subnet: str = "192.168.1"
    hosts: list[SimulatedHost] = Field(default_factory=list)

    def host(self, ip: str) -> SimulatedHost | None:
        wanted = canonical_ip(ip)
        return next((h for h in self.hosts if canonical_ip(h.ip) == wanted), None)

    async def probe_liveness(self, subnet: str) -> set[str]:
        prefix = f"{subnet.rstrip('.')}."
        return {
            host.ip
            for host in self.hosts
            if host.responds and canonical_ip(host.ip).startswith(prefix)
        }

    async def resolve_macs(self, ips: list[str]) -> dict[str, str]:
        resolved: dict[str, str] = {}
        for ip in ips:
            host = self.host(ip)
            if host is not None and host.responds and host.mac:
                resolved[ip] = host.mac
        return resolved

    async def discover(self) -> ServiceDiscovery:
        metadata = {}
        for host in self.hosts:
            services = [
                DiscoveredService(
                    ip=canonical_ip(host.ip),
                    type_=service,
                    name=host.hostname or "",
                    txt=host.txt,
                )
                for service in host.services
            ]
            entry = build_metadata(services)
            if entry is not None:
                metadata[host.ip] = entry
        return ServiceDiscovery(metadata)

    async def probe_ports(self, host: str, ports: list[int]) -> list[PortDescriptor]:
        simulated = self.host(host)
        if simulated is None or not simulated.responds:
            return []
        if simulated.delay:
            await asyncio.sleep(simulated.delay)
        if simulated.fail_ports:
            raise ProbeError(f"connection refused by {host}")
        wanted = set(ports)
        return [
            describe_port(port) for port in sorted(simulated.ports) if port in wanted
        ]

    async def resolve(self, ip: str) -> str | None:
        host = self.host(ip)
        return host.hostname if host is not None else None


def load_network(path: Path) -> SimulatedNetwork:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in network file: {path}\n{exc}") from exc

    try:
        network = SimulatedNetwork.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid network file: {path}\n{exc}") from exc
    logger.debug("Loaded simulated network %s with %d hosts", path, len(network.hosts))
    return network
