"""lanfuse - network discovery and device fusion engine."""

from __future__ import annotations

from importlib.metadata import version

from .config import ScanningConfig, Settings, get_settings
from .core import PortScanCoordinator, ScanOrchestrator, classify, lookup_manufacturer
from .exceptions import LanfuseError, ProbeError, ScanInProgressError
from .models import DeviceRecord, DeviceType, PortDescriptor, ScanSession
from .storage import Database

__all__ = [
    "Database",
    "DeviceRecord",
    "DeviceType",
    "LanfuseError",
    "PortDescriptor",
    "PortScanCoordinator",
    "ProbeError",
    "ScanInProgressError",
    "ScanOrchestrator",
    "ScanSession",
    "ScanningConfig",
    "Settings",
    "__version__",
    "classify",
    "get_settings",
    "lookup_manufacturer",
]


__version__ = version("lanfuse")
