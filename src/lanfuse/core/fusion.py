"""Merging per-source observations into one record per host."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from lanfuse.models import (
    DeviceRecord,
    DeviceType,
    PortDescriptor,
    RawDiscoveryRecord,
    utcnow,
)
from lanfuse.models.device import INTERFACE_DELIMITER

from .oui import lookup_manufacturer

logger = logging.getLogger(__name__)

Observation = DeviceRecord | RawDiscoveryRecord
RecordFactory = Callable[[str, str | None], DeviceRecord]

T = TypeVar("T")


def canonical_ip(ip: str) -> str:
    """Strip the interface scope from an address (``10.0.0.5$en1`` -> ``10.0.0.5``)."""
    base = ip.strip().split(INTERFACE_DELIMITER, 1)[0]
    return base.split("%", 1)[0]


def ip_sort_key(ip: str) -> tuple[tuple[int, int | str], ...]:
    parts = canonical_ip(ip).split(".")
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in parts)


def sort_by_ip(records: Iterable[DeviceRecord]) -> list[DeviceRecord]:
    return sorted(records, key=lambda record: ip_sort_key(record.ip))


def _is_address(text: str) -> bool:
    try:
        ipaddress.ip_address(canonical_ip(text))
    except ValueError:
        return False
    return True


def _last_set(values: Iterable[T | None]) -> T | None:
    found = None
    for value in values:
        if value is not None:
            found = value
    return found


def merge_group(
    records: Sequence[Observation], canonical: str | None = None
) -> DeviceRecord:
    """Fold observations of one host into a single record.

    Ports are the union of every member's ports; a later descriptor for the
    same port replaces an earlier one. The hostname is the first non-empty
    name that is not itself an address. ``mac``, ``display_name`` and
    ``service_metadata`` take the last value that is set. The manufacturer is
    the OUI vendor of the merged MAC when the table knows it, otherwise the
    last manufacturer that is set. Timestamps widen to the earliest
    ``first_seen`` and latest ``last_seen``; ``is_online`` and ``is_known``
    are true if any member says so.
    """
    if not records:
        raise ValueError("Cannot merge an empty group")
    key = canonical or canonical_ip(records[0].ip)
    for record in records:
        if canonical_ip(record.ip) != key:
            raise ValueError(f"{record.ip!r} does not belong to group {key!r}")

    ports: dict[int, PortDescriptor] = {}
    for record in records:
        for descriptor in record.open_ports:
            ports[descriptor.port] = descriptor

    hostname = next(
        (
            r.hostname
            for r in records
            if r.hostname and r.hostname.strip() and not _is_address(r.hostname)
        ),
        None,
    )
    mac = _last_set(r.mac for r in records)
    manufacturer = lookup_manufacturer(mac) or _last_set(
        r.manufacturer for r in records
    )
    device_type = next(
        (r.device_type for r in records if r.device_type is not DeviceType.UNKNOWN),
        DeviceType.UNKNOWN,
    )

    return DeviceRecord(
        ip=key,
        mac=mac,
        hostname=hostname,
        manufacturer=manufacturer,
        device_type=device_type,
        open_ports=[ports[port] for port in sorted(ports)],
        is_online=any(r.is_online for r in records),
        first_seen=min(r.first_seen for r in records),
        last_seen=max(r.last_seen for r in records),
        is_known=any(r.is_known for r in records),
        display_name=_last_set(r.display_name for r in records),
        service_metadata=_last_set(r.service_metadata for r in records),
    )


def group_by_canonical_ip(
    records: Iterable[Observation],
) -> dict[str, list[Observation]]:
    groups: dict[str, list[Observation]] = {}
    for record in records:
        groups.setdefault(canonical_ip(record.ip), []).append(record)
    return groups


def deduplicate(records: Iterable[Observation]) -> list[DeviceRecord]:
    """One record per canonical IP, in order of first appearance."""
    groups = group_by_canonical_ip(records)
    merged = [merge_group(group, canonical) for canonical, group in groups.items()]
    collapsed = sum(len(group) - 1 for group in groups.values())
    if collapsed:
        logger.debug("Collapsed %d duplicate records", collapsed)
    return merged


@dataclass
class Reconciliation:
    records: list[DeviceRecord]
    new: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    offline: list[str] = field(default_factory=list)

    def touched(self) -> list[DeviceRecord]:
        wanted = {*self.new, *self.updated, *self.offline}
        return [record for record in self.records if record.ip in wanted]


def skeletal_record(
    ip: str, mac: str | None, now: datetime | None = None
) -> DeviceRecord:
    seen = now or utcnow()
    return DeviceRecord(
        ip=canonical_ip(ip),
        mac=mac,
        manufacturer=lookup_manufacturer(mac),
        is_online=True,
        first_seen=seen,
        last_seen=seen,
    )


def reconcile(
    existing: Iterable[DeviceRecord],
    discovered_ips: Iterable[str],
    macs: Mapping[str, str] | None = None,
    now: datetime | None = None,
    make_record: RecordFactory | None = None,
) -> Reconciliation:
    """Apply a fresh discovery pass to the registry.

    Registered hosts seen again come back online with a refreshed
    ``last_seen`` and, when one was resolved, a refreshed MAC; ports,
    classification and ``first_seen`` are left alone. Unregistered hosts are
    created with ``make_record``. Registered hosts missing from the pass are
    marked offline and otherwise untouched.
    """
    now = now or utcnow()
    seen = list(dict.fromkeys(canonical_ip(ip) for ip in discovered_ips))
    seen_set = set(seen)
    resolved = {canonical_ip(ip): mac for ip, mac in (macs or {}).items() if mac}
    build = make_record or (lambda ip, mac: skeletal_record(ip, mac, now))

    result = Reconciliation(records=[])
    registered: dict[str, DeviceRecord] = {}
    for record in deduplicate(existing):
        registered[record.ip] = record

    records: list[DeviceRecord] = []
    for ip, record in registered.items():
        if ip in seen_set:
            changes: dict[str, object] = {
                "is_online": True,
                "last_seen": max(now, record.first_seen),
            }
            mac = resolved.get(ip)
            if mac and mac != record.mac:
                changes["mac"] = mac
                changes["manufacturer"] = (
                    lookup_manufacturer(mac) or record.manufacturer
                )
            records.append(record.evolve(**changes))
            result.updated.append(ip)
        else:
            records.append(record.evolve(is_online=False))
            result.offline.append(ip)

    for ip in seen:
        if ip not in registered:
            records.append(build(ip, resolved.get(ip)))
            result.new.append(ip)

    result.records = sort_by_ip(deduplicate(records))
    logger.debug(
        "Reconciled pass: %d new, %d updated, %d offline",
        len(result.new),
        len(result.updated),
        len(result.offline),
    )
    return result


def merge_into_registry(
    existing: Iterable[DeviceRecord], incoming: Iterable[Observation]
) -> tuple[list[DeviceRecord], list[str]]:
    """Merge ``incoming`` onto the registered record for each canonical IP.

    Returns the whole registry sorted by IP and the IPs that were touched.
    """
    registry = {record.ip: record for record in deduplicate(existing)}
    touched: list[str] = []
    for ip, group in group_by_canonical_ip(incoming).items():
        current = registry.get(ip)
        members: list[Observation] = [current, *group] if current else list(group)
        registry[ip] = merge_group(members, ip)
        if ip not in touched:
            touched.append(ip)
    return sort_by_ip(registry.values()), touched
