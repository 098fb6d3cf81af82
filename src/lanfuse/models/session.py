from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .device import utcnow


class ScanPhase(str, Enum):
    IDLE = "idle"
    PINGING = "pinging"
    MAC_RESOLUTION = "mac_resolution"
    SERVICE_DISCOVERY = "service_discovery"
    PORT_SCANNING = "port_scanning"
    MERGING = "merging"
    COMPLETE = "complete"


class ScanKind(str, Enum):
    QUICK = "quick"
    FULL = "full"
    PORTS = "ports"
    DEEP = "deep"
    PRESET = "preset"
    SINGLE_HOST = "single_host"
    IMPORT = "import"


class ScanSession(BaseModel):
    """Process-local progress of the workflow currently owning the registry."""

    model_config = {"extra": "forbid", "validate_assignment": True}

    kind: ScanKind | None = None
    phase: ScanPhase = ScanPhase.IDLE
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    status: str = ""
    scanned_hosts: int = 0
    hosts_alive: int = 0
    threats_detected: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.phase not in (ScanPhase.IDLE, ScanPhase.COMPLETE)

    @classmethod
    def start(cls, kind: ScanKind) -> ScanSession:
        return cls(kind=kind, started_at=utcnow())


class NetworkRecord(BaseModel):
    model_config = {"extra": "forbid"}

    subnet: str
    first_scanned: datetime = Field(default_factory=utcnow)
    last_scanned: datetime = Field(default_factory=utcnow)
    scan_count: int = 1
    device_count: int = 0


class ScanSummary(BaseModel):
    model_config = {"extra": "forbid"}

    finished_at: datetime = Field(default_factory=utcnow)
    device_count: int
    threat_count: int
