from __future__ import annotations

from .classifier import RULES, Rule, classify, explain
from .collaborators import ServiceDiscovery
from .discovery import (
    NeighborTableResolver,
    ReverseDnsResolver,
    ZeroconfServiceDiscovery,
)
from .fusion import (
    Reconciliation,
    canonical_ip,
    deduplicate,
    merge_group,
    merge_into_registry,
    reconcile,
    sort_by_ip,
)
from .orchestrator import ScanOrchestrator
from .oui import lookup_manufacturer
from .port_scan import HostScanResult, PortScanCoordinator
from .ports import BUILTIN_PRESETS, ScanPreset, find_preset, resolve_ports
from .simulation import SimulatedNetwork, load_network

__all__ = [
    "BUILTIN_PRESETS",
    "HostScanResult",
    "NeighborTableResolver",
    "PortScanCoordinator",
    "RULES",
    "Reconciliation",
    "ReverseDnsResolver",
    "Rule",
    "ScanOrchestrator",
    "ScanPreset",
    "ServiceDiscovery",
    "SimulatedNetwork",
    "ZeroconfServiceDiscovery",
    "canonical_ip",
    "classify",
    "deduplicate",
    "explain",
    "find_preset",
    "load_network",
    "lookup_manufacturer",
    "merge_group",
    "merge_into_registry",
    "reconcile",
    "resolve_ports",
    "sort_by_ip",
]
