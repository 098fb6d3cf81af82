"""Scan workflows over a single device registry."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from lanfuse.config import ScanningConfig
from lanfuse.exceptions import ScanInProgressError
from lanfuse.models import (
    DeviceRecord,
    DeviceType,
    RawDiscoveryRecord,
    ScanKind,
    ScanPhase,
    ScanSession,
    utcnow,
)

from .classifier import classify
from .collaborators import (
    HostnameResolver,
    LivenessProber,
    MacResolver,
    PersistenceFacade,
    PortProber,
    ServiceDiscovery,
    ServiceMetadataSource,
)
from .fusion import (
    canonical_ip,
    deduplicate,
    ip_sort_key,
    merge_group,
    merge_into_registry,
    reconcile,
    skeletal_record,
    sort_by_ip,
)
from .oui import lookup_manufacturer
from .port_scan import HostScanResult, PortScanCoordinator
from .ports import PortListName, ScanPreset, backdoor_ports, find_preset, resolve_ports

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ScanSession], None]
Clock = Callable[[], datetime]

PortSelection = PortListName | Sequence[int]


class ScanOrchestrator:
    """Runs scan workflows and owns the device registry they update.

    Collaborators left as ``None`` contribute nothing to their phase. Only
    one workflow runs at a time; starting another raises
    ``ScanInProgressError``.
    """

    def __init__(
        self,
        *,
        liveness: LivenessProber | None = None,
        mac_resolver: MacResolver | None = None,
        metadata_source: ServiceMetadataSource | None = None,
        port_prober: PortProber | None = None,
        hostname_resolver: HostnameResolver | None = None,
        persistence: PersistenceFacade | None = None,
        config: ScanningConfig | None = None,
        on_progress: ProgressListener | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._liveness = liveness
        self._mac_resolver = mac_resolver
        self._metadata_source = metadata_source
        self._port_prober = port_prober
        self._hostname_resolver = hostname_resolver
        self._persistence = persistence
        self._config = config or ScanningConfig()
        self._on_progress = on_progress
        self._clock = clock

        self._registry: dict[str, DeviceRecord] = {}
        self._session = ScanSession()
        self._lock = asyncio.Lock()

    @property
    def config(self) -> ScanningConfig:
        return self._config

    @property
    def registry(self) -> list[DeviceRecord]:
        return sort_by_ip(self._registry.values())

    @property
    def session(self) -> ScanSession:
        return self._session.model_copy()

    @property
    def is_scanning(self) -> bool:
        return self._lock.locked()

    def get(self, ip: str) -> DeviceRecord | None:
        return self._registry.get(canonical_ip(ip))

    # -- session ---------------------------------------------------------

    @asynccontextmanager
    async def _exclusive(self, kind: ScanKind) -> AsyncIterator[ScanSession]:
        if self._lock.locked():
            running = self._session.kind.value if self._session.kind else "unknown"
            raise ScanInProgressError(running)
        async with self._lock:
            self._session = ScanSession.start(kind)
            logger.debug("Starting %s scan", kind.value)
            try:
                yield self._session
            finally:
                if self._session.is_running:
                    self._session.phase = ScanPhase.COMPLETE
                    self._session.status = "Scan aborted"
                    self._session.finished_at = self._clock()
                    self._publish()

    def _publish(self) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(self._session.model_copy())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Progress listener failed: %s", exc)

    def _advance(
        self,
        progress: float | None = None,
        *,
        phase: ScanPhase | None = None,
        status: str | None = None,
    ) -> None:
        session = self._session
        changed = False
        if phase is not None and phase is not session.phase:
            session.phase = phase
            changed = True
        if progress is not None:
            bounded = min(max(progress, session.progress), 1.0)
            if bounded != session.progress:
                session.progress = bounded
                changed = True
        if status is not None and status != session.status:
            session.status = status
            changed = True
        if changed:
            self._publish()

    def _threat_count(self) -> int:
        return sum(1 for r in self._registry.values() if backdoor_ports(r.open_ports))

    def _finish(
        self, surfaced: Iterable[DeviceRecord], status: str
    ) -> list[DeviceRecord]:
        threats = self._threat_count()
        self._session.threats_detected = threats
        self._session.finished_at = self._clock()
        self._advance(1.0, phase=ScanPhase.COMPLETE, status=status)
        self._notify_scan_complete(len(self._registry), threats)
        logger.info(
            "%s scan complete: %s (%d devices, %d threats)",
            self._session.kind.value if self._session.kind else "scan",
            status,
            len(self._registry),
            threats,
        )
        return sort_by_ip(surfaced)

    # -- collaborators ---------------------------------------------------

    async def _probe_liveness(self, subnet: str) -> list[str]:
        if self._liveness is None:
            logger.debug("No liveness prober configured")
            return []
        try:
            alive = await self._liveness.probe_liveness(subnet)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Liveness probe of %s.0/24 failed: %s", subnet, exc)
            return []
        return sorted({canonical_ip(ip) for ip in alive}, key=ip_sort_key)

    async def _resolve_macs(self, ips: list[str]) -> dict[str, str]:
        if self._mac_resolver is None or not ips:
            return {}
        try:
            macs = await self._mac_resolver.resolve_macs(ips)
        except Exception as exc:  # noqa: BLE001
            logger.warning("MAC resolution failed: %s", exc)
            return {}
        return {canonical_ip(ip): mac for ip, mac in macs.items() if mac}

    async def _discover_metadata(self) -> ServiceDiscovery:
        if self._metadata_source is None:
            return ServiceDiscovery()
        try:
            return await self._metadata_source.discover()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Service discovery unavailable: %s", exc)
            return ServiceDiscovery()

    async def _resolve_hostname(self, ip: str) -> str | None:
        if self._hostname_resolver is None:
            return None
        try:
            return await asyncio.wait_for(
                self._hostname_resolver.resolve(ip),
                timeout=self._config.hostname_timeout,
            )
        except (asyncio.TimeoutError, TimeoutError):
            logger.debug("Hostname lookup for %s timed out", ip)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Hostname lookup for %s failed: %s", ip, exc)
        return None

    async def _scan_ports(
        self, hosts: list[str], ports: list[int], start: float, end: float
    ) -> dict[str, HostScanResult]:
        self._session.scanned_hosts = 0
        if self._port_prober is None:
            logger.debug("No port prober configured")
            self._advance(end)
            return {host: HostScanResult(host=host) for host in hosts}

        def _progress(done: int, total: int) -> None:
            self._session.scanned_hosts = done
            self._advance(
                start + (end - start) * done / total,
                status=f"Scanned {done}/{total} hosts",
            )

        coordinator = PortScanCoordinator(
            self._port_prober,
            max_concurrent=self._config.max_concurrent,
            host_timeout=self._config.host_timeout,
        )
        results = await coordinator.scan(hosts, ports, on_progress=_progress)
        self._advance(end)
        return {result.host: result for result in results}

    # -- persistence -----------------------------------------------------

    def _with_history(self, record: DeviceRecord) -> DeviceRecord:
        """Apply stored first-seen time and whitelist flag to a new record."""
        if self._persistence is None:
            return record
        changes: dict[str, object] = {}
        try:
            first_seen = self._persistence.get_first_seen(record)
            if first_seen is not None and first_seen < record.first_seen:
                changes["first_seen"] = first_seen
            if self._persistence.is_known(record):
                changes["is_known"] = True
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cannot read history of %s: %s", record.ip, exc)
        return record.evolve(**changes) if changes else record

    def _write_through(self, records: Iterable[DeviceRecord]) -> None:
        if self._persistence is None:
            return
        for record in records:
            try:
                self._persistence.upsert(record)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to persist %s: %s", record.ip, exc)

    def _record_network(self, subnet: str, device_count: int) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.record_network_observation(subnet, device_count)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to record network %s: %s", subnet, exc)

    def _notify_scan_complete(self, device_count: int, threat_count: int) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.notify_scan_complete(device_count, threat_count)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scan completion notification failed: %s", exc)

    # -- helpers ---------------------------------------------------------

    def _classified(self, record: DeviceRecord) -> DeviceRecord:
        category = classify(
            record.open_ports,
            record.manufacturer,
            record.hostname,
            record.service_metadata,
        )
        if category is DeviceType.UNKNOWN or category is record.device_type:
            return record
        return record.evolve(device_type=category)

    def _store(self, records: Iterable[DeviceRecord]) -> list[DeviceRecord]:
        stored = []
        for record in records:
            self._registry[record.ip] = record
            stored.append(record)
        return stored

    def _mark_offline(self, responding: set[str]) -> list[DeviceRecord]:
        gone = [
            record.evolve(is_online=False)
            for ip, record in self._registry.items()
            if ip not in responding and record.is_online
        ]
        return self._store(gone)

    def _new_record(self, now: datetime) -> Callable[[str, str | None], DeviceRecord]:
        def _build(ip: str, mac: str | None) -> DeviceRecord:
            return self._with_history(skeletal_record(ip, mac, now))

        return _build

    def _observation(
        self,
        ip: str,
        now: datetime,
        *,
        mac: str | None,
        scan: HostScanResult,
        hostname: str | None,
        discovery: ServiceDiscovery,
        online: bool,
    ) -> RawDiscoveryRecord:
        existing = self._registry.get(ip)
        metadata = discovery.get_metadata(ip)
        display_name = None
        if metadata is not None and (existing is None or existing.display_name is None):
            display_name = metadata.name
        seen = now if online else (existing.last_seen if existing else now)
        return RawDiscoveryRecord(
            ip=ip,
            mac=mac,
            hostname=hostname,
            manufacturer=lookup_manufacturer(mac),
            open_ports=scan.ports,
            is_online=online,
            first_seen=min(seen, existing.first_seen) if existing else seen,
            last_seen=seen,
            display_name=display_name,
            service_metadata=metadata,
        )

    def _fold(self, observation: RawDiscoveryRecord) -> DeviceRecord:
        existing = self._registry.get(observation.ip)
        if existing is not None:
            merged = merge_group([existing, observation], observation.ip)
        else:
            merged = self._with_history(merge_group([observation], observation.ip))
        return self._classified(merged)

    # -- workflows -------------------------------------------------------

    async def quick_scan(self, subnet: str | None = None) -> list[DeviceRecord]:
        """Liveness only. Returns skeletal records for every responding host."""
        subnet = subnet or self._config.default_subnet
        async with self._exclusive(ScanKind.QUICK):
            self._advance(0.0, phase=ScanPhase.PINGING, status=f"Probing {subnet}.0/24")
            alive = await self._probe_liveness(subnet)
            self._session.hosts_alive = len(alive)
            self._advance(0.9, phase=ScanPhase.MERGING, status="Updating registry")

            now = self._clock()
            result = reconcile(
                self._registry.values(),
                alive,
                now=now,
                make_record=self._new_record(now),
            )
            self._registry = {record.ip: record for record in result.records}
            self._write_through(result.touched())
            self._record_network(subnet, len(alive))

            return self._finish(
                [self._registry[ip] for ip in alive],
                f"{len(alive)} hosts responding",
            )

    async def full_scan(self, subnet: str | None = None) -> list[DeviceRecord]:
        """Every phase in order. Returns the enriched hosts of this pass."""
        subnet = subnet or self._config.default_subnet
        async with self._exclusive(ScanKind.FULL):
            self._advance(0.0, phase=ScanPhase.PINGING, status=f"Probing {subnet}.0/24")
            alive = await self._probe_liveness(subnet)
            self._session.hosts_alive = len(alive)
            self._advance(0.2, status=f"{len(alive)} hosts responding")
            if not alive:
                self._write_through(self._mark_offline(set()))
                return self._finish([], "No hosts responded")

            self._advance(phase=ScanPhase.MAC_RESOLUTION, status="Resolving MACs")
            macs = await self._resolve_macs(alive)
            self._advance(0.3, status=f"Resolved {len(macs)} MAC addresses")

            self._advance(
                phase=ScanPhase.SERVICE_DISCOVERY, status="Discovering services"
            )
            discovery = await self._discover_metadata()
            self._advance(0.4, status=f"{len(discovery)} hosts advertise services")

            self._advance(phase=ScanPhase.PORT_SCANNING, status="Scanning ports")
            ports = resolve_ports(self._config.port_list)
            scans = await self._scan_ports(alive, ports, 0.4, 0.95)

            self._advance(phase=ScanPhase.MERGING, status="Merging results")
            now = self._clock()
            surfaced: list[DeviceRecord] = []
            for ip in alive:
                scan = scans.get(ip, HostScanResult(host=ip))
                registered = ip in self._registry
                if not scan.ports and ip not in discovery and not registered:
                    logger.debug("Dropping %s: no open ports and no corroboration", ip)
                    continue
                hostname = None
                if not registered or not self._registry[ip].hostname:
                    hostname = await self._resolve_hostname(ip)
                observation = self._observation(
                    ip,
                    now,
                    mac=macs.get(ip),
                    scan=scan,
                    hostname=hostname,
                    discovery=discovery,
                    online=True,
                )
                surfaced.extend(self._store([self._fold(observation)]))

            gone = self._mark_offline(set(alive))
            self._write_through([*surfaced, *gone])
            self._record_network(subnet, len(surfaced))

            return self._finish(surfaced, f"{len(surfaced)} devices enriched")

    async def port_scan(
        self, ports: PortSelection | None = None
    ) -> list[DeviceRecord]:
        """Re-probe ports of registered hosts with the configured list."""
        selection = resolve_ports(
            ports if ports is not None else self._config.port_list
        )
        return await self._rescan_ports(ScanKind.PORTS, selection)

    async def deep_scan(self) -> list[DeviceRecord]:
        return await self._rescan_ports(ScanKind.DEEP, resolve_ports("full"))

    async def preset_scan(self, preset: ScanPreset | str) -> list[DeviceRecord]:
        if isinstance(preset, str):
            found = find_preset(preset)
            if found is None:
                raise ValueError(f"Unknown scan preset: {preset!r}")
            preset = found
        return await self._rescan_ports(ScanKind.PRESET, resolve_ports(preset))

    async def _rescan_ports(
        self, kind: ScanKind, ports: list[int]
    ) -> list[DeviceRecord]:
        async with self._exclusive(kind):
            hosts = [record.ip for record in self.registry]
            if not hosts:
                return self._finish([], "No registered hosts")

            self._advance(
                0.0, phase=ScanPhase.SERVICE_DISCOVERY, status="Discovering services"
            )
            discovery = await self._discover_metadata()
            self._advance(0.1)

            self._advance(phase=ScanPhase.PORT_SCANNING, status="Scanning ports")
            scans = await self._scan_ports(hosts, ports, 0.1, 0.95)

            self._advance(phase=ScanPhase.MERGING, status="Merging results")
            now = self._clock()
            observations = [
                self._observation(
                    ip,
                    now,
                    mac=None,
                    scan=scans[ip],
                    hostname=None,
                    discovery=discovery,
                    online=bool(scans[ip].ports),
                )
                for ip in hosts
            ]
            merged, touched = merge_into_registry(self._registry.values(), observations)
            by_ip = {record.ip: record for record in merged}
            updated = self._store(self._classified(by_ip[ip]) for ip in touched)
            self._write_through(updated)

            with_ports = sum(1 for ip in hosts if scans[ip].ports)
            return self._finish(
                updated, f"{with_ports}/{len(hosts)} hosts with open ports"
            )

    async def single_host_scan(self, ip: str) -> list[DeviceRecord]:
        """MAC and ports for one address; inserts or updates it in place."""
        target = canonical_ip(ip)
        ipaddress.ip_address(target)
        async with self._exclusive(ScanKind.SINGLE_HOST):
            self._advance(
                0.0, phase=ScanPhase.MAC_RESOLUTION, status=f"Resolving {target}"
            )
            macs = await self._resolve_macs([target])
            self._advance(0.3)

            self._advance(phase=ScanPhase.PORT_SCANNING, status=f"Scanning {target}")
            ports = resolve_ports(self._config.port_list)
            scans = await self._scan_ports([target], ports, 0.3, 0.8)

            self._advance(0.8, phase=ScanPhase.MERGING, status="Merging results")
            scan = scans[target]
            mac = macs.get(target)
            existing = self._registry.get(target)
            hostname = None
            if existing is None or not existing.hostname:
                hostname = await self._resolve_hostname(target)
            observation = self._observation(
                target,
                self._clock(),
                mac=mac,
                scan=scan,
                hostname=hostname,
                discovery=ServiceDiscovery(),
                online=bool(mac or scan.ports),
            )
            record = self._store([self._fold(observation)])
            self._write_through(record)
            self._session.hosts_alive = int(record[0].is_online)

            return self._finish(record, f"{target}: {len(scan.ports)} open ports")

    async def import_incremental(
        self,
        ips: Iterable[str],
        metadata: ServiceDiscovery | None = None,
    ) -> list[DeviceRecord]:
        """Reconcile an externally discovered set of hosts with the registry.

        Hosts not in ``ips`` are marked offline. With ``metadata``, hosts it
        describes also get their service metadata and, when unnamed, its name.
        No ports are probed and classifications are left as they are.
        """
        discovered = sorted({canonical_ip(ip) for ip in ips}, key=ip_sort_key)
        async with self._exclusive(ScanKind.IMPORT):
            self._session.hosts_alive = len(discovered)
            self._advance(
                0.0, phase=ScanPhase.MAC_RESOLUTION, status="Resolving MACs"
            )
            macs = await self._resolve_macs(discovered)
            self._advance(0.5, phase=ScanPhase.MERGING, status="Updating registry")

            now = self._clock()
            result = reconcile(
                self._registry.values(),
                discovered,
                macs=macs,
                now=now,
                make_record=self._new_record(now),
            )
            registry = {record.ip: record for record in result.records}
            if metadata is not None:
                for ip in metadata.discovered_ips():
                    entry = metadata.get_metadata(ip)
                    record = registry.get(ip)
                    if entry is None or record is None:
                        continue
                    registry[ip] = record.evolve(
                        service_metadata=entry,
                        display_name=record.display_name or entry.name,
                    )
            self._registry = registry
            self._write_through(self._registry[r.ip] for r in result.touched())

            return self._finish(
                [self._registry[ip] for ip in discovered],
                f"{len(result.new)} new, {len(result.updated)} updated, "
                f"{len(result.offline)} offline",
            )

    async def load_persisted(self) -> list[DeviceRecord]:
        """Seed the registry from storage; every loaded host starts offline."""
        if self._lock.locked():
            running = self._session.kind.value if self._session.kind else "unknown"
            raise ScanInProgressError(running)
        async with self._lock:
            if self._persistence is None:
                return []
            try:
                stored = self._persistence.load_devices()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Cannot load stored devices: %s", exc)
                return []
            loaded = [
                record.evolve(is_online=False) for record in deduplicate(stored)
            ]
            for record in loaded:
                self._registry.setdefault(record.ip, record)
            logger.info("Loaded %d stored devices", len(loaded))
            return self.registry
