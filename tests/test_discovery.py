from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

import lanfuse.core.discovery as discovery_module
from lanfuse.core.discovery import (
    DiscoveredService,
    NeighborTableResolver,
    ReverseDnsResolver,
    ServiceMetadataListener,
    build_metadata,
    homekit_category,
    parse_arp_table,
    short_service_type,
)

ARP_TABLE = """\
IP address       HW type     Flags       HW address            Mask     Device
192.168.1.1      0x1         0x2         fc:ec:da:00:00:01     *        eth0
192.168.1.20     0x1         0x2         b8:27:eb:00:00:20     *        eth0
192.168.1.99     0x1         0x0         00:00:00:00:00:00     *        eth0
"""


def _service(type_, name="device", ip="10.0.0.1", **txt):
    return DiscoveredService(ip=ip, type_=type_, name=name, txt=txt)


def _info(addresses, properties):
    return SimpleNamespace(
        parsed_addresses=lambda: list(addresses), properties=properties
    )


class FakeZeroconf:
    def __init__(self, infos):
        self.infos = infos

    def get_service_info(self, type_, name, timeout=3000):
        return self.infos.get(name)


def test_short_service_type():
    assert short_service_type("_hap._tcp.local.") == "_hap._tcp"
    assert short_service_type("_ipp._tcp") == "_ipp._tcp"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("2", "Bridge"), ("7", "Outlet"), ("32", "Speaker"), ("26", "Accessory")],
)
def test_homekit_category(value, expected):
    assert homekit_category(value) == expected


@pytest.mark.parametrize("value", [None, "", "bridge"])
def test_homekit_category_unknown(value):
    assert homekit_category(value) == "Unknown"


def test_build_metadata_for_homekit_bridge():
    metadata = build_metadata(
        [
            _service("_hap._tcp.local.", "Hue Bridge", md="BSB002", ci="2"),
            _service("_http._tcp.local.", "hue"),
        ]
    )
    assert metadata.name == "BSB002"
    assert metadata.category == "Bridge"
    assert metadata.is_accessory is True
    assert metadata.services == ["_hap._tcp", "_http._tcp"]


def test_accessory_type_without_category_id():
    metadata = build_metadata([_service("_homekit._tcp.local.", "Eve")])
    assert metadata.is_accessory is True
    assert metadata.category == "HomeKit Accessory"
    assert metadata.name == "Eve"


@pytest.mark.parametrize(
    ("type_", "category"),
    [
        ("_airplay._tcp.local.", "AirPlay Device"),
        ("_companion-link._tcp.local.", "Apple Device"),
        ("_ipp._tcp.local.", "Network Service"),
    ],
)
def test_category_from_service_types(type_, category):
    metadata = build_metadata([_service(type_)])
    assert metadata.category == category
    assert metadata.is_accessory is False


def test_build_metadata_falls_back_to_ip():
    assert build_metadata([_service("_ssh._tcp", name="")]).name == "10.0.0.1"
    assert build_metadata([]) is None


def test_listener_groups_services_by_host():
    infos = {
        "Hue._hap._tcp.local.": _info(
            ["fe80::1", "10.0.0.21"], {b"md": b"BSB002", b"ci": b"2", b"id": None}
        ),
        "printer._ipp._tcp.local.": _info(["10.0.0.40"], {}),
        "ghost._ipp._tcp.local.": _info([], {}),
    }
    zc = FakeZeroconf(infos)
    listener = ServiceMetadataListener(info_timeout=1.0)

    listener.add_service(zc, "_hap._tcp.local.", "Hue._hap._tcp.local.")
    listener.add_service(zc, "_ipp._tcp.local.", "printer._ipp._tcp.local.")
    listener.add_service(zc, "_ipp._tcp.local.", "ghost._ipp._tcp.local.")
    listener.add_service(zc, "_ipp._tcp.local.", "missing._ipp._tcp.local.")

    discovery = listener.discovery()
    assert discovery.discovered_ips() == ["10.0.0.21", "10.0.0.40"]
    assert discovery.get_metadata("10.0.0.21").category == "Bridge"
    assert discovery.get_metadata("10.0.0.40").name == "printer"
    assert discovery.get_services("10.0.0.40") == ["_ipp._tcp"]

    listener.remove_service(zc, "_ipp._tcp.local.", "printer._ipp._tcp.local.")
    assert "10.0.0.40" not in listener.discovery()


def test_parse_arp_table_skips_incomplete_entries():
    assert parse_arp_table(ARP_TABLE) == {
        "192.168.1.1": "FC:EC:DA:00:00:01",
        "192.168.1.20": "B8:27:EB:00:00:20",
    }


def test_neighbor_table_resolver(tmp_path):
    path = tmp_path / "arp"
    path.write_text(ARP_TABLE)
    resolver = NeighborTableResolver(path)

    macs = asyncio.run(resolver.resolve_macs(["192.168.1.20", "192.168.1.50"]))

    assert macs == {"192.168.1.20": "B8:27:EB:00:00:20"}


def test_neighbor_table_missing_file(tmp_path):
    resolver = NeighborTableResolver(tmp_path / "absent")

    assert asyncio.run(resolver.resolve_macs(["192.168.1.1"])) == {}


def test_reverse_dns_returns_name(monkeypatch):
    monkeypatch.setattr(
        discovery_module.socket,
        "gethostbyaddr",
        lambda ip: ("nas.local", [], [ip]),
    )
    resolver = ReverseDnsResolver(timeout=1.0)

    assert asyncio.run(resolver.resolve("10.0.0.5$en0")) == "nas.local"


def test_reverse_dns_failure_is_none(monkeypatch):
    def _fail(ip):
        raise OSError("host not found")

    monkeypatch.setattr(discovery_module.socket, "gethostbyaddr", _fail)
    resolver = ReverseDnsResolver(timeout=1.0)

    assert asyncio.run(resolver.resolve("10.0.0.5")) is None


def test_reverse_dns_echoing_address_is_none(monkeypatch):
    monkeypatch.setattr(
        discovery_module.socket, "gethostbyaddr", lambda ip: (ip, [], [ip])
    )

    assert asyncio.run(ReverseDnsResolver().resolve("10.0.0.5")) is None
