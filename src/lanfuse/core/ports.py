"""Port lists, scan presets and well-known service names."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from lanfuse.models import PortDescriptor

PortListName = Literal["standard", "full"]

BACKDOOR_PORTS: tuple[int, ...] = (
    31337, 12345, 12346, 1243, 6667, 6668, 6669, 27374,
    2001, 1999, 30100, 30101, 30102, 5000, 5001, 5002,
)  # fmt: skip

STANDARD_PORTS: tuple[int, ...] = (
    21, 22, 23, 25, 53, 80, 110, 139, 143, 443, 445,
    3306, 3389, 5432, 5900, 8080, 8443,
    *BACKDOOR_PORTS,
    1433, 1434, 27017, 27018, 27019, 6379, 9042, 7000, 7001, 8086,
)  # fmt: skip

FULL_PORTS: tuple[int, ...] = tuple(
    sorted(
        set(STANDARD_PORTS)
        | {
            20, 119, 123, 135, 137, 138, 161, 162, 389, 636,
            1521, 2049, 3690, 5222, 5223, 5269, 5353, 6000, 6001,
            8000, 8008, 8081, 8082, 8888, 9000, 9001, 9090, 9091,
            9200, 9300, 11211, 27015, 27016, 50000, 50001,
        }  # fmt: skip
    )
)

SERVICE_NAMES: dict[int, str] = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    139: "NetBIOS",
    143: "IMAP",
    443: "HTTPS",
    445: "SMB",
    548: "AFP",
    554: "RTSP",
    631: "IPP",
    1400: "Sonos",
    1883: "MQTT",
    3306: "MySQL",
    3389: "RDP",
    3689: "DAAP",
    5432: "PostgreSQL",
    5900: "VNC",
    7000: "AirPlay",
    8080: "HTTP-Alt",
    8123: "Home Assistant",
    8883: "MQTT-TLS",
    9100: "JetDirect",
    27017: "MongoDB",
    51826: "HomeBridge",
    # Backdoor ports
    31337: "Back Orifice",
    12345: "NetBus",
    12346: "NetBus",
    1243: "SubSeven",
    6667: "IRC",
    6668: "IRC",
    6669: "IRC",
    27374: "SubSeven",
    2001: "Trojan.Latinus",
    1999: "BackDoor",
    30100: "NetSphere",
    30101: "NetSphere",
    30102: "NetSphere",
    5000: "Back Door Setup",
    5001: "Sockets de Troie",
    5002: "Sockets de Troie",
}


def service_for_port(port: int) -> str:
    return SERVICE_NAMES.get(port, "Unknown")


def describe_port(port: int, protocol: str = "tcp") -> PortDescriptor:
    return PortDescriptor(port=port, protocol=protocol, service=service_for_port(port))


def backdoor_ports(ports: Iterable[int | PortDescriptor]) -> list[int]:
    numbers = {p.port if isinstance(p, PortDescriptor) else p for p in ports}
    return sorted(numbers.intersection(BACKDOOR_PORTS))


class ScanPreset(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    description: str = ""
    ports: tuple[int, ...] = Field(min_length=1)

    @field_validator("ports")
    @classmethod
    def _normalize_ports(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        for port in value:
            if not 1 <= port <= 65535:
                raise ValueError(f"port out of range: {port}")
        return tuple(sorted(set(value)))


BUILTIN_PRESETS: tuple[ScanPreset, ...] = (
    ScanPreset(
        name="Quick Scan",
        description="Fast scan of 20 most common ports",
        ports=(21, 22, 23, 25, 53, 80, 110, 143, 443, 445, 3306, 3389,
               5432, 5900, 8080, 8443, 27017, 6379, 1433, 9200),
    ),  # fmt: skip
    ScanPreset(
        name="Web Services",
        description="Scan for web servers and HTTP services",
        ports=(80, 443, 8000, 8080, 8443, 8888, 3000, 5000),
    ),
    ScanPreset(
        name="IoT Devices",
        description="Find smart home and IoT devices",
        ports=(80, 443, 1883, 8883, 5683, 8080, 9000, 10000),
    ),
    ScanPreset(
        name="Databases",
        description="Scan for database servers",
        ports=(3306, 5432, 27017, 6379, 1433, 5984, 9042, 7000, 7001),
    ),
    ScanPreset(
        name="File Servers",
        description="Locate file sharing and storage services",
        ports=(445, 139, 548, 2049, 111, 21, 22, 990),
    ),
    ScanPreset(
        name="Mail Servers",
        description="Find email servers and services",
        ports=(25, 110, 143, 465, 587, 993, 995, 2525),
    ),
    ScanPreset(
        name="Remote Access",
        description="Scan for remote access services (SSH, RDP, VNC)",
        ports=(22, 23, 3389, 5900, 5901, 5902, 5938, 8022),
    ),
    ScanPreset(
        name="Printers",
        description="Find network printers and print servers",
        ports=(631, 9100, 515, 721),
    ),
    ScanPreset(
        name="Media Devices",
        description="Scan for media servers and streaming devices",
        ports=(8080, 8096, 32400, 1900, 7000, 9090, 8443),
    ),
    ScanPreset(
        name="Security Audit",
        description="Comprehensive scan of 1024 most common ports",
        ports=tuple(range(1, 1025)),
    ),
)


def find_preset(name: str) -> ScanPreset | None:
    wanted = name.strip().lower()
    for preset in BUILTIN_PRESETS:
        if preset.name.lower() == wanted:
            return preset
    return None


def resolve_ports(selection: PortListName | Sequence[int] | ScanPreset) -> list[int]:
    """Turn a port list name, a preset or an explicit list into sorted port numbers."""
    if isinstance(selection, ScanPreset):
        return list(selection.ports)
    if selection == "standard":
        return sorted(set(STANDARD_PORTS))
    if selection == "full":
        return list(FULL_PORTS)
    if isinstance(selection, str):
        raise ValueError(f"Unknown port list: {selection!r}")
    ports = sorted(set(selection))
    if not ports:
        raise ValueError("Custom port list is empty")
    for port in ports:
        if not 1 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
    return ports
