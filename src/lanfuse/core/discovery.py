from __future__ import annotations

import asyncio
import logging
import socket
import threading
from collections.abc import Iterable
from pathlib import Path

from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from lanfuse.models import ServiceMetadata, normalize_mac, utcnow

from .collaborators import ServiceDiscovery
from .fusion import canonical_ip

logger = logging.getLogger(__name__)

SERVICE_TYPES: tuple[str, ...] = (
    # Apple
    "_airplay._tcp.local.",
    "_raop._tcp.local.",
    "_homekit._tcp.local.",
    "_hap._tcp.local.",
    "_companion-link._tcp.local.",
    "_sleep-proxy._udp.local.",
    "_dacp._tcp.local.",
    "_touch-able._tcp.local.",
    # Google
    "_googlecast._tcp.local.",
    "_googlezone._tcp.local.",
    "_google-home._tcp.local.",
    # Amazon
    "_amzn-wplay._tcp.local.",
    "_amzn-alexa._tcp.local.",
    "_amazon-echo._tcp.local.",
    # Ubiquiti
    "_ubnt-discover._udp.local.",
    "_ubnt-camera._tcp.local.",
    "_ubnt-protect._tcp.local.",
    "_ubnt-ap._tcp.local.",
    "_ubiquiti._tcp.local.",
    "_unifi._tcp.local.",
    "_rtsp._tcp.local.",
    # network services
    "_http._tcp.local.",
    "_smb._tcp.local.",
    "_afpovertcp._tcp.local.",
    "_ssh._tcp.local.",
    "_telnet._tcp.local.",
    "_ftp._tcp.local.",
    "_printer._tcp.local.",
    "_ipp._tcp.local.",
    "_device-info._tcp.local.",
    "_workstation._tcp.local.",
    # smart home
    "_spotify-connect._tcp.local.",
    "_sonos._tcp.local.",
    "_mqtt._tcp.local.",
    "_iot._tcp.local.",
)

ACCESSORY_SERVICE_TYPES = frozenset({"_hap._tcp", "_homekit._tcp"})

HOMEKIT_CATEGORIES: dict[int, str] = {
    1: "Other",
    2: "Bridge",
    3: "Fan",
    4: "Garage Door Opener",
    5: "Lightbulb",
    6: "Door Lock",
    7: "Outlet",
    8: "Switch",
    9: "Thermostat",
    10: "Sensor",
    11: "Security System",
    12: "Door",
    13: "Window",
    14: "Window Covering",
    15: "Programmable Switch",
    16: "Range Extender",
    17: "IP Camera",
    18: "Video Doorbell",
    19: "Air Purifier",
    20: "Heater",
    21: "Air Conditioner",
    22: "Humidifier",
    23: "Dehumidifier",
    28: "Sprinkler",
    29: "Faucet",
    30: "Shower System",
    31: "Television",
    32: "Speaker",
}

ARP_TABLE_PATH = Path("/proc/net/arp")
INCOMPLETE_MAC = "00:00:00:00:00:00"


def homekit_category(category_id: str | None) -> str:
    if not category_id:
        return "Unknown"
    try:
        return HOMEKIT_CATEGORIES.get(int(category_id), "Accessory")
    except ValueError:
        return "Unknown"


def short_service_type(type_: str) -> str:
    """``_hap._tcp.local.`` -> ``_hap._tcp``."""
    cleaned = type_.rstrip(".")
    if cleaned.endswith(".local"):
        cleaned = cleaned[: -len(".local")]
    return cleaned


def _decode_txt_properties(properties: dict[bytes, bytes | None]) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for key, value in properties.items():
        key_text = key.decode("utf-8", errors="replace")
        if value is None:
            value_text = ""
        elif isinstance(value, bytes):
            value_text = value.decode("utf-8", errors="replace")
        else:
            value_text = str(value)
        decoded[key_text] = value_text
    return decoded


def _pick_ip(info: ServiceInfo) -> str | None:
    addresses = info.parsed_addresses()
    if not addresses:
        return None
    for address in addresses:
        if ":" not in address:
            return address
    return addresses[0]


def _instance_name(service_name: str, type_: str) -> str:
    suffix = f".{type_}"
    if service_name.endswith(suffix):
        return service_name[: -len(suffix)]
    return service_name.rstrip(".")


class DiscoveredService:
    """One resolved DNS-SD instance."""

    def __init__(self, ip: str, type_: str, name: str, txt: dict[str, str]) -> None:
        self.ip = ip
        self.type = short_service_type(type_)
        self.name = name
        self.txt = txt

    @classmethod
    def from_service_info(
        cls, info: ServiceInfo, type_: str, service_name: str
    ) -> DiscoveredService | None:
        ip = _pick_ip(info)
        if ip is None:
            return None
        return cls(
            ip=canonical_ip(ip),
            type_=type_,
            name=_instance_name(service_name, type_),
            txt=_decode_txt_properties(info.properties),
        )


def build_metadata(services: Iterable[DiscoveredService]) -> ServiceMetadata | None:
    """Summarize every service one host advertises."""
    found = list(services)
    if not found:
        return None

    types = sorted({service.type for service in found})
    txt: dict[str, str] = {}
    for service in found:
        for key, value in service.txt.items():
            txt.setdefault(key, value)

    category_id = txt.get("ci")
    is_accessory = bool(category_id) or not ACCESSORY_SERVICE_TYPES.isdisjoint(types)
    if category_id:
        category = homekit_category(category_id)
    elif is_accessory:
        category = "HomeKit Accessory"
    elif any("airplay" in t for t in types):
        category = "AirPlay Device"
    elif any("companion" in t for t in types):
        category = "Apple Device"
    else:
        category = "Network Service"

    name = txt.get("md") or next((s.name for s in found if s.name), found[0].ip)
    return ServiceMetadata(
        name=name,
        category=category,
        is_accessory=is_accessory,
        discovered_at=utcnow(),
        services=types,
    )


class ServiceMetadataListener(ServiceListener):
    def __init__(self, info_timeout: float) -> None:
        self._info_timeout_ms = max(int(info_timeout * 1000), 1)
        self._lock = threading.Lock()
        self._found: dict[tuple[str, str], DiscoveredService] = {}

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        info = zc.get_service_info(type_, name, timeout=self._info_timeout_ms)
        if not info:
            return
        service = DiscoveredService.from_service_info(info, type_, name)
        if service is None:
            return
        with self._lock:
            self._found[(type_, name)] = service
        logger.debug("Discovered %s '%s' at %s", service.type, service.name, service.ip)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self.add_service(zc, type_, name)

    def remove_service(self, _zc: Zeroconf, type_: str, name: str) -> None:
        with self._lock:
            self._found.pop((type_, name), None)

    def services(self) -> list[DiscoveredService]:
        with self._lock:
            return list(self._found.values())

    def discovery(self) -> ServiceDiscovery:
        by_ip: dict[str, list[DiscoveredService]] = {}
        for service in self.services():
            by_ip.setdefault(service.ip, []).append(service)
        metadata = {}
        for ip, services in by_ip.items():
            entry = build_metadata(services)
            if entry is not None:
                metadata[ip] = entry
        return ServiceDiscovery(metadata)


class ZeroconfServiceDiscovery:
    """Browse the well-known DNS-SD service types for a fixed window."""

    def __init__(
        self,
        timeout: float = 5.0,
        service_types: Iterable[str] = SERVICE_TYPES,
    ) -> None:
        self._timeout = timeout
        self._service_types = list(service_types)

    async def discover(self) -> ServiceDiscovery:
        logger.debug(
            "Browsing %d service types via mDNS (timeout=%.2fs)",
            len(self._service_types),
            self._timeout,
        )
        zeroconf = Zeroconf()
        listener = ServiceMetadataListener(self._timeout)
        ServiceBrowser(zeroconf, self._service_types, listener)
        try:
            await asyncio.sleep(self._timeout)
        finally:
            await asyncio.to_thread(zeroconf.close)

        result = listener.discovery()
        logger.debug("mDNS discovery complete: %d hosts", len(result))
        return result


def parse_arp_table(text: str) -> dict[str, str]:
    """Map IP to MAC from the contents of ``/proc/net/arp``."""
    table: dict[str, str] = {}
    for line in text.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 4:
            continue
        ip, mac = parts[0], normalize_mac(parts[3])
        if mac and mac != INCOMPLETE_MAC:
            table[ip] = mac
    return table


class NeighborTableResolver:
    """Resolve MACs from the kernel's neighbor cache."""

    def __init__(self, path: Path = ARP_TABLE_PATH) -> None:
        self._path = path

    def _read(self) -> str:
        return self._path.read_text()

    async def resolve_macs(self, ips: list[str]) -> dict[str, str]:
        try:
            text = await asyncio.to_thread(self._read)
        except OSError as exc:
            logger.warning("Cannot read neighbor table %s: %s", self._path, exc)
            return {}
        table = parse_arp_table(text)
        wanted = {canonical_ip(ip) for ip in ips}
        resolved = {ip: mac for ip, mac in table.items() if ip in wanted}
        logger.debug("Resolved %d/%d MAC addresses", len(resolved), len(wanted))
        return resolved


class ReverseDnsResolver:
    def __init__(self, timeout: float = 2.0) -> None:
        self._timeout = timeout

    async def resolve(self, ip: str) -> str | None:
        try:
            hostname, _, _ = await asyncio.wait_for(
                asyncio.to_thread(socket.gethostbyaddr, canonical_ip(ip)),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, TimeoutError):
            logger.debug("Reverse lookup of %s timed out", ip)
            return None
        except OSError as exc:
            logger.debug("Reverse lookup of %s failed: %s", ip, exc)
            return None
        if not hostname or hostname == ip:
            return None
        return hostname
