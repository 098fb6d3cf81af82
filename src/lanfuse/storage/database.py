from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from lanfuse.core.fusion import canonical_ip, sort_by_ip
from lanfuse.models import DeviceRecord, NetworkRecord, ScanSummary, utcnow

logger = logging.getLogger(__name__)

DEVICES_FILE = "devices.json"
NETWORKS_FILE = "networks.json"
SCANS_FILE = "scans.json"
MAX_SCAN_SUMMARIES = 100

ModelT = TypeVar("ModelT", bound=BaseModel)


def _load_list(path: Path, model: type[ModelT]) -> list[ModelT]:
    if not path.exists():
        return []
    try:
        with path.open("r") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}\n{exc}") from exc

    try:
        adapter = TypeAdapter(list[model])  # type: ignore[valid-type]
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid data file: {path}\n{exc}") from exc


def _save_list(path: Path, items: list[ModelT]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as handle:
        json.dump([item.model_dump(mode="json") for item in items], handle, indent=2)


class Database:
    """JSON files in a data directory, usable as the orchestrator's persistence."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE
        self._networks_path = data_dir / NETWORKS_FILE
        self._scans_path = data_dir / SCANS_FILE

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def init(self) -> None:
        self.ensure_dirs()
        for path in (self._devices_path, self._networks_path, self._scans_path):
            if not path.exists():
                path.write_text("[]\n")

    # -- devices ---------------------------------------------------------

    def load_devices(self) -> list[DeviceRecord]:
        return _load_list(self._devices_path, DeviceRecord)

    def save_devices(self, devices: list[DeviceRecord]) -> None:
        _save_list(self._devices_path, sort_by_ip(devices))

    def _find(
        self, devices: list[DeviceRecord], ip: str, mac: str | None
    ) -> int | None:
        wanted = canonical_ip(ip)
        for index, device in enumerate(devices):
            if device.ip == wanted:
                return index
        if mac:
            for index, device in enumerate(devices):
                if device.mac == mac:
                    return index
        return None

    def find_device(self, ip: str, mac: str | None = None) -> DeviceRecord | None:
        devices = self.load_devices()
        index = self._find(devices, ip, mac)
        return devices[index] if index is not None else None

    def get_first_seen(self, record: DeviceRecord) -> datetime | None:
        stored = self.find_device(record.ip, record.mac)
        return stored.first_seen if stored is not None else None

    def is_known(self, record: DeviceRecord) -> bool:
        stored = self.find_device(record.ip, record.mac)
        return stored is not None and stored.is_known

    def upsert(self, record: DeviceRecord) -> None:
        devices = self.load_devices()
        index = self._find(devices, record.ip, None)
        if index is None:
            devices.append(record)
        else:
            stored = devices[index]
            devices[index] = record.evolve(
                first_seen=min(stored.first_seen, record.first_seen),
                last_seen=max(stored.last_seen, record.last_seen),
                is_known=stored.is_known or record.is_known,
                display_name=record.display_name or stored.display_name,
            )
        self.save_devices(devices)

    def _update_device(self, ip: str, **changes: object) -> bool:
        devices = self.load_devices()
        index = self._find(devices, ip, None)
        if index is None:
            return False
        devices[index] = devices[index].evolve(**changes)
        self.save_devices(devices)
        return True

    def set_known(self, ip: str, known: bool = True) -> bool:
        return self._update_device(ip, is_known=known)

    def set_display_name(self, ip: str, name: str | None) -> bool:
        return self._update_device(ip, display_name=name or None)

    # -- history ---------------------------------------------------------

    def load_networks(self) -> list[NetworkRecord]:
        return _load_list(self._networks_path, NetworkRecord)

    def record_network_observation(self, subnet: str, device_count: int) -> None:
        networks = self.load_networks()
        now = utcnow()
        for index, network in enumerate(networks):
            if network.subnet == subnet:
                networks[index] = network.model_copy(
                    update={
                        "last_scanned": now,
                        "scan_count": network.scan_count + 1,
                        "device_count": device_count,
                    }
                )
                break
        else:
            networks.append(
                NetworkRecord(
                    subnet=subnet,
                    first_scanned=now,
                    last_scanned=now,
                    device_count=device_count,
                )
            )
        _save_list(self._networks_path, networks)

    def load_scan_summaries(self) -> list[ScanSummary]:
        return _load_list(self._scans_path, ScanSummary)

    def notify_scan_complete(self, device_count: int, threat_count: int) -> None:
        logger.info(
            "Scan complete: %d devices, %d threats", device_count, threat_count
        )
        summaries = self.load_scan_summaries()
        summaries.append(
            ScanSummary(device_count=device_count, threat_count=threat_count)
        )
        _save_list(self._scans_path, summaries[-MAX_SCAN_SUMMARIES:])
