from __future__ import annotations

import pytest

from lanfuse.core.classifier import RULES, classify, explain
from lanfuse.models import DeviceType, PortDescriptor, ServiceMetadata


def _accessory() -> ServiceMetadata:
    return ServiceMetadata(name="Eve Energy", category="Outlet", is_accessory=True)


def test_dns_port_wins_over_weaker_signals():
    assert classify({53, 3306, 445}) is DeviceType.ROUTER
    assert explain({53, 3306, 445}) == "ports-dns-dhcp"


def test_accessory_flag_beats_everything():
    category = classify({53}, "Ubiquiti", "udm-pro", _accessory())
    assert category is DeviceType.IOT
    assert explain({53}, "Ubiquiti", "udm-pro", _accessory()) == "metadata-accessory"


def test_non_accessory_metadata_is_ignored():
    metadata = ServiceMetadata(name="printer", category="Network Service")
    assert classify({631}, None, None, metadata) is DeviceType.PRINTER


@pytest.mark.parametrize(
    ("hostname", "ports", "expected"),
    [
        ("g4-doorbell", {22, 443}, DeviceType.IOT),
        ("front-camera", set(), DeviceType.IOT),
        ("udm-pro", {554}, DeviceType.ROUTER),
        ("usw-24-switch", set(), DeviceType.ROUTER),
        ("unifi", {7447}, DeviceType.IOT),
        ("unifi", {22, 443}, DeviceType.ROUTER),
        ("unifi", {80}, DeviceType.ROUTER),
        (None, set(), DeviceType.ROUTER),
    ],
)
def test_multi_role_vendor(hostname, ports, expected):
    assert classify(ports, "Ubiquiti Networks", hostname) is expected


@pytest.mark.parametrize(
    ("manufacturer", "ports", "expected"),
    [
        ("Philips Lighting", set(), DeviceType.IOT),
        ("Espressif Inc.", {80}, DeviceType.IOT),
        ("Sonos", {1400}, DeviceType.IOT),
        ("Amazon Technologies", set(), DeviceType.IOT),
        ("Amazon AWS", set(), DeviceType.UNKNOWN),
        ("Google", set(), DeviceType.IOT),
        ("Google Cloud", {22, 8080}, DeviceType.SERVER),
        ("Texas Instruments", {1883}, DeviceType.IOT),
        ("Texas Instruments", set(), DeviceType.UNKNOWN),
    ],
)
def test_always_iot_vendors_and_carve_outs(manufacturer, ports, expected):
    assert classify(ports, manufacturer) is expected


@pytest.mark.parametrize(
    ("hostname", "ports", "expected"),
    [
        (None, {8123}, DeviceType.IOT),
        (None, {51826}, DeviceType.IOT),
        ("pihole", {22}, DeviceType.IOT),
        ("home-assistant", set(), DeviceType.IOT),
        ("build-box", {22, 80}, DeviceType.COMPUTER),
    ],
)
def test_single_board_computer(hostname, ports, expected):
    assert classify(ports, "Raspberry Pi Foundation", hostname) is expected


def test_apple_media_devices():
    assert classify(set(), "Apple", "Living-Room-AppleTV") is DeviceType.IOT
    assert classify({7000}, "Apple", None) is DeviceType.IOT
    assert explain({7000}, "Apple", None) == "mobile-os-vendor-media"


def test_apple_without_media_signals_falls_through():
    assert classify({445}, "Apple", "macbook-pro") is DeviceType.COMPUTER
    assert classify({62078}, "Apple", "Johns-iPhone") is DeviceType.MOBILE


@pytest.mark.parametrize(
    ("hostname", "expected"),
    [
        ("Pixel-Android", DeviceType.MOBILE),
        ("kitchen-plug", DeviceType.IOT),
        ("nest-hub-max", DeviceType.IOT),
        ("Lutron-Caseta-Bridge", DeviceType.IOT),
        ("porch-light", DeviceType.IOT),
        ("mcast.dns.local", DeviceType.ROUTER),
    ],
)
def test_hostname_tables(hostname, expected):
    assert classify(set(), None, hostname) is expected


def test_mobile_hostname_beats_smart_home_keyword():
    assert classify(set(), None, "iphone-light-remote") is DeviceType.MOBILE


def test_multicast_name_beats_smart_home_keyword():
    assert classify(set(), None, "switch._mcast.dns-sd") is DeviceType.ROUTER


@pytest.mark.parametrize(
    ("ports", "expected", "rule"),
    [
        ({67}, DeviceType.ROUTER, "ports-dns-dhcp"),
        ({5432, 80}, DeviceType.SERVER, "ports-database"),
        ({5000, 22}, DeviceType.SERVER, "ports-nas"),
        ({9000, 22}, DeviceType.SERVER, "ports-app-server"),
        ({9100}, DeviceType.PRINTER, "ports-print"),
        ({8883}, DeviceType.IOT, "ports-mqtt"),
        ({32498}, DeviceType.IOT, "ports-homekit"),
        ({3689, 7000}, DeviceType.IOT, "ports-airplay"),
        ({548}, DeviceType.COMPUTER, "ports-file-sharing"),
    ],
)
def test_port_signatures(ports, expected, rule):
    assert classify(ports) is expected
    assert explain(ports) == rule


def test_single_airplay_port_is_not_enough():
    assert classify({3689}) is DeviceType.UNKNOWN
    assert classify({5000}) is DeviceType.UNKNOWN


def test_nas_needs_remote_shell():
    assert classify({5000, 445}) is DeviceType.COMPUTER


def test_no_signals_is_unknown():
    assert classify() is DeviceType.UNKNOWN
    assert explain() is None


def test_accepts_port_descriptors():
    ports = [PortDescriptor(port=631), PortDescriptor(port=80)]
    assert classify(ports) is DeviceType.PRINTER


def test_classification_is_pure():
    args = ({22, 445}, "Intel", "laptop", None)
    assert {classify(*args) for _ in range(5)} == {DeviceType.COMPUTER}


def test_rule_names_are_unique_and_ordered():
    names = [rule.name for rule in RULES]
    assert len(names) == len(set(names))
    assert names[0] == "metadata-accessory"
    assert names.index("hostname-mobile") < names.index("ports-dns-dhcp")
