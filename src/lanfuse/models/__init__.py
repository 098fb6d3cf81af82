"""Data models for lanfuse."""

from lanfuse.models.device import (
    DeviceRecord,
    DeviceType,
    PortDescriptor,
    PortState,
    RawDiscoveryRecord,
    ServiceMetadata,
    normalize_mac,
    utcnow,
)
from lanfuse.models.session import (
    NetworkRecord,
    ScanKind,
    ScanPhase,
    ScanSession,
    ScanSummary,
)

__all__ = [
    "DeviceRecord",
    "DeviceType",
    "NetworkRecord",
    "PortDescriptor",
    "PortState",
    "RawDiscoveryRecord",
    "ScanKind",
    "ScanPhase",
    "ScanSession",
    "ScanSummary",
    "ServiceMetadata",
    "normalize_mac",
    "utcnow",
]
