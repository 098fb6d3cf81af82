"""Interfaces of the probes and stores the orchestrator depends on."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Protocol

from lanfuse.models import DeviceRecord, PortDescriptor, ServiceMetadata

from .fusion import canonical_ip, ip_sort_key


class ServiceDiscovery:
    """Result of one zero-configuration discovery pass, keyed by canonical IP."""

    def __init__(self, metadata: Mapping[str, ServiceMetadata] | None = None) -> None:
        self._metadata: dict[str, ServiceMetadata] = {}
        for ip, entry in (metadata or {}).items():
            self._metadata[canonical_ip(ip)] = entry

    def __len__(self) -> int:
        return len(self._metadata)

    def __contains__(self, ip: object) -> bool:
        return isinstance(ip, str) and canonical_ip(ip) in self._metadata

    def discovered_ips(self) -> list[str]:
        return sorted(self._metadata, key=ip_sort_key)

    def get_services(self, ip: str) -> list[str]:
        entry = self._metadata.get(canonical_ip(ip))
        return list(entry.services) if entry else []

    def get_metadata(self, ip: str) -> ServiceMetadata | None:
        return self._metadata.get(canonical_ip(ip))


class LivenessProber(Protocol):
    async def probe_liveness(self, subnet: str) -> set[str]: ...


class MacResolver(Protocol):
    async def resolve_macs(self, ips: list[str]) -> dict[str, str]: ...


class ServiceMetadataSource(Protocol):
    async def discover(self) -> ServiceDiscovery: ...


class PortProber(Protocol):
    async def probe_ports(
        self, host: str, ports: list[int]
    ) -> list[PortDescriptor]: ...


class HostnameResolver(Protocol):
    async def resolve(self, ip: str) -> str | None: ...


class PersistenceFacade(Protocol):
    def get_first_seen(self, record: DeviceRecord) -> datetime | None: ...

    def is_known(self, record: DeviceRecord) -> bool: ...

    def upsert(self, record: DeviceRecord) -> None: ...

    def record_network_observation(self, subnet: str, device_count: int) -> None: ...

    def notify_scan_complete(self, device_count: int, threat_count: int) -> None: ...

    def load_devices(self) -> list[DeviceRecord]: ...
