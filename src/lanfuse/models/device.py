from __future__ import annotations

import string
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

INTERFACE_DELIMITER = "$"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_mac(value: str) -> str:
    """Return ``AA:BB:CC:DD:EE:FF`` form, or the input unchanged if it is not a MAC."""
    if not value:
        return ""
    parts = value.replace("-", ":").replace(".", ":").split(":")
    if len(parts) == 6 and all(
        1 <= len(part) <= 2 and all(ch in string.hexdigits for ch in part)
        for part in parts
    ):
        return ":".join(part.zfill(2).upper() for part in parts)
    cleaned = "".join(parts)
    if len(cleaned) == 12 and all(ch in string.hexdigits for ch in cleaned):
        pairs = [cleaned[i : i + 2] for i in range(0, 12, 2)]
        return ":".join(pair.upper() for pair in pairs)
    return value


class DeviceType(str, Enum):
    ROUTER = "router"
    SERVER = "server"
    COMPUTER = "computer"
    MOBILE = "mobile"
    IOT = "iot"
    PRINTER = "printer"
    UNKNOWN = "unknown"


class PortState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"


class PortDescriptor(BaseModel):
    model_config = {"extra": "forbid"}

    port: int = Field(ge=1, le=65535)
    protocol: str = "tcp"
    service: str = "Unknown"
    version: str | None = None
    banner: str | None = None
    state: PortState = PortState.OPEN


class ServiceMetadata(BaseModel):
    """What zero-configuration discovery learned about a host."""

    model_config = {"extra": "forbid"}

    name: str
    category: str
    is_accessory: bool = False
    discovered_at: datetime = Field(default_factory=utcnow)
    services: list[str] = Field(default_factory=list)


class _HostObservation(BaseModel):
    model_config = {"extra": "forbid"}

    ip: str
    mac: str | None = None
    hostname: str | None = None
    manufacturer: str | None = None
    device_type: DeviceType = DeviceType.UNKNOWN
    open_ports: list[PortDescriptor] = Field(default_factory=list)
    is_online: bool = True
    first_seen: datetime = Field(default_factory=utcnow)
    last_seen: datetime = Field(default_factory=utcnow)
    is_known: bool = False
    display_name: str | None = None
    service_metadata: ServiceMetadata | None = None

    @field_validator("mac")
    @classmethod
    def _normalize_mac(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = normalize_mac(value.strip())
        return normalized or None

    @field_validator("open_ports")
    @classmethod
    def _unique_ports(cls, value: list[PortDescriptor]) -> list[PortDescriptor]:
        by_port: dict[int, PortDescriptor] = {}
        for descriptor in value:
            by_port.setdefault(descriptor.port, descriptor)
        return [by_port[port] for port in sorted(by_port)]

    @model_validator(mode="after")
    def _check_seen_order(self) -> Self:
        if self.first_seen > self.last_seen:
            raise ValueError(
                f"first_seen ({self.first_seen}) is after last_seen ({self.last_seen})"
            )
        return self

    @property
    def port_numbers(self) -> list[int]:
        return [descriptor.port for descriptor in self.open_ports]

    def evolve(self, **changes: Any) -> Self:
        """Copy with ``changes`` applied, re-running validation."""
        return self.model_validate({**dict(self), **changes})


class DeviceRecord(_HostObservation):
    """Canonical per-host record, keyed by its interface-free IP address."""

    @field_validator("ip")
    @classmethod
    def _canonical_ip(cls, value: str) -> str:
        if INTERFACE_DELIMITER in value:
            raise ValueError(f"DeviceRecord ip must be canonical, got {value!r}")
        return value


class RawDiscoveryRecord(_HostObservation):
    """Unmerged observation from a single source; ``ip`` may be interface scoped."""
