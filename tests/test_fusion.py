from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lanfuse.core.fusion import (
    canonical_ip,
    deduplicate,
    ip_sort_key,
    merge_group,
    merge_into_registry,
    reconcile,
    sort_by_ip,
)
from lanfuse.models import (
    DeviceRecord,
    DeviceType,
    PortDescriptor,
    RawDiscoveryRecord,
    ServiceMetadata,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _ports(*numbers: int) -> list[PortDescriptor]:
    return [PortDescriptor(port=number) for number in numbers]


def _raw(ip: str, *ports: int, offset: int = 0, **fields) -> RawDiscoveryRecord:
    seen = T0 + timedelta(minutes=offset)
    fields.setdefault("first_seen", seen)
    fields.setdefault("last_seen", seen)
    return RawDiscoveryRecord(ip=ip, open_ports=_ports(*ports), **fields)


def _device(ip: str, *ports: int, **fields) -> DeviceRecord:
    fields.setdefault("first_seen", T0)
    fields.setdefault("last_seen", T0)
    return DeviceRecord(ip=ip, open_ports=_ports(*ports), **fields)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("10.0.0.5", "10.0.0.5"),
        ("10.0.0.5$en1", "10.0.0.5"),
        ("192.168.1.100$/en1", "192.168.1.100"),
        ("10.0.0.5$en1$x", "10.0.0.5"),
        ("fe80::1%en0", "fe80::1"),
        (" 10.0.0.7 ", "10.0.0.7"),
    ],
)
def test_canonical_ip(raw, expected):
    assert canonical_ip(raw) == expected


def test_interface_scoped_duplicates_merge():
    merged = deduplicate(
        [
            _raw("10.0.0.5", 80),
            _raw("10.0.0.5$en1", 443, hostname="nas.local"),
        ]
    )
    assert len(merged) == 1
    assert merged[0].ip == "10.0.0.5"
    assert merged[0].port_numbers == [80, 443]
    assert merged[0].hostname == "nas.local"


def test_merged_ports_are_exact_union():
    group = [
        _raw("10.0.0.9", 443, 22),
        _raw("10.0.0.9$en0", 22, 8080),
        _raw("10.0.0.9$en1"),
    ]
    merged = merge_group(group)
    expected = {p.port for record in group for p in record.open_ports}
    assert merged.port_numbers == sorted(expected)


def test_timestamps_widen_over_group():
    group = [
        _raw("10.0.0.9", offset=5),
        _raw("10.0.0.9$en0", first_seen=T0, last_seen=T0 + timedelta(hours=2)),
        _raw("10.0.0.9$en1", offset=30),
    ]
    merged = merge_group(group)
    assert merged.first_seen == min(r.first_seen for r in group)
    assert merged.last_seen == max(r.last_seen for r in group)


def test_hostname_skips_address_shaped_names():
    merged = merge_group(
        [
            _raw("10.0.0.9", hostname="10.0.0.9"),
            _raw("10.0.0.9", hostname="  "),
            _raw("10.0.0.9", hostname="printer.local"),
            _raw("10.0.0.9", hostname="other.local"),
        ]
    )
    assert merged.hostname == "printer.local"


def test_hostname_is_none_when_nothing_qualifies():
    merged = merge_group([_raw("10.0.0.9", hostname="fe80::1")])
    assert merged.hostname is None


def test_last_set_value_wins():
    metadata = ServiceMetadata(name="Hue Bridge", category="Bridge")
    merged = merge_group(
        [
            _raw("10.0.0.9", mac="02:00:00:00:00:01", display_name="first"),
            _raw("10.0.0.9", mac="02:00:00:00:00:02", service_metadata=metadata),
            _raw("10.0.0.9", mac=None, display_name=None),
        ]
    )
    assert merged.mac == "02:00:00:00:00:02"
    assert merged.display_name == "first"
    assert merged.service_metadata == metadata


def test_manufacturer_follows_merged_mac():
    merged = merge_group(
        [
            _raw("10.0.0.9", manufacturer="Stale Vendor"),
            _raw("10.0.0.9", mac="b8:27:eb:00:00:01"),
        ]
    )
    assert merged.mac == "B8:27:EB:00:00:01"
    assert merged.manufacturer == "Raspberry Pi Foundation"


def test_manufacturer_falls_back_when_prefix_unknown():
    merged = merge_group(
        [
            _raw("10.0.0.9", mac="02:00:00:00:00:01", manufacturer="Acme"),
            _raw("10.0.0.9"),
        ]
    )
    assert merged.manufacturer == "Acme"


def test_online_and_known_are_any():
    merged = merge_group(
        [
            _raw("10.0.0.9", is_online=False, is_known=True),
            _raw("10.0.0.9", is_online=True),
        ]
    )
    assert merged.is_online is True
    assert merged.is_known is True


def test_device_type_is_first_classified():
    merged = merge_group(
        [
            _raw("10.0.0.9"),
            _raw("10.0.0.9", device_type=DeviceType.PRINTER),
            _raw("10.0.0.9", device_type=DeviceType.SERVER),
        ]
    )
    assert merged.device_type is DeviceType.PRINTER


def test_merge_group_rejects_bad_input():
    with pytest.raises(ValueError):
        merge_group([])
    with pytest.raises(ValueError):
        merge_group([_raw("10.0.0.1"), _raw("10.0.0.2")])


def test_deduplicate_is_idempotent():
    records = [
        _raw("10.0.0.2$en0", 80, hostname="10.0.0.2"),
        _raw("10.0.0.1", 22, mac="b8:27:eb:00:00:01"),
        _raw("10.0.0.2", 443, hostname="web.local"),
        _raw("10.0.0.1$en1", manufacturer="Acme", display_name="pi"),
    ]
    once = deduplicate(records)
    assert deduplicate(once) == once


def test_deduplicate_keeps_first_appearance_order():
    merged = deduplicate([_raw("10.0.0.9"), _raw("10.0.0.1"), _raw("10.0.0.9$en1")])
    assert [record.ip for record in merged] == ["10.0.0.9", "10.0.0.1"]


def test_sort_by_ip_is_numeric():
    records = [_device(ip) for ip in ("10.0.0.10", "9.1.1.1", "10.0.0.100", "10.0.0.9")]
    assert [r.ip for r in sort_by_ip(records)] == [
        "9.1.1.1",
        "10.0.0.9",
        "10.0.0.10",
        "10.0.0.100",
    ]


def test_shorter_address_sorts_first_on_ties():
    assert ip_sort_key("10.0.0") < ip_sort_key("10.0.0.1")


def test_reconcile_applies_incremental_rule():
    now = T0 + timedelta(days=1)
    existing = [
        _device(
            "10.0.0.1", 22, 80, hostname="router.local", device_type=DeviceType.ROUTER
        ),
        _device("10.0.0.2", 445, hostname="desktop.local"),
    ]
    result = reconcile(
        existing,
        ["10.0.0.1", "10.0.0.3$en0"],
        macs={"10.0.0.3$en0": "b8:27:eb:00:00:03"},
        now=now,
    )

    by_ip = {record.ip: record for record in result.records}
    assert list(by_ip) == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    assert result.updated == ["10.0.0.1"]
    assert result.offline == ["10.0.0.2"]
    assert result.new == ["10.0.0.3"]

    kept = by_ip["10.0.0.1"]
    assert kept.is_online is True
    assert kept.last_seen == now
    assert kept.first_seen == T0
    assert kept.port_numbers == [22, 80]
    assert kept.device_type is DeviceType.ROUTER

    assert by_ip["10.0.0.2"] == existing[1].evolve(is_online=False)

    new = by_ip["10.0.0.3"]
    assert new.mac == "B8:27:EB:00:00:03"
    assert new.manufacturer == "Raspberry Pi Foundation"
    assert new.open_ports == []
    assert new.device_type is DeviceType.UNKNOWN
    assert new.first_seen == new.last_seen == now


def test_reconcile_refreshes_newly_resolved_mac():
    existing = [_device("10.0.0.1", 22)]
    result = reconcile(existing, ["10.0.0.1"], macs={"10.0.0.1": "00:17:88:00:00:01"})
    record = result.records[0]
    assert record.mac == "00:17:88:00:00:01"
    assert record.manufacturer == "Philips Lighting"
    assert record.port_numbers == [22]


def test_reconcile_never_shrinks_ports_or_resets_first_seen():
    existing = [_device("10.0.0.1", 22, 80, 443)]
    later = T0 + timedelta(hours=1)
    for _ in range(3):
        existing = reconcile(existing, ["10.0.0.1"], now=later).records
    assert existing[0].port_numbers == [22, 80, 443]
    assert existing[0].first_seen == T0


def test_reconcile_uses_record_factory():
    built = []

    def _factory(ip, mac):
        built.append((ip, mac))
        return _device(ip, display_name="imported")

    result = reconcile([], ["10.0.0.8$en0"], make_record=_factory)
    assert built == [("10.0.0.8", None)]
    assert result.records[0].display_name == "imported"


def test_merge_into_registry_keeps_old_ports_and_fields():
    existing = [
        _device("10.0.0.1", 22, 80, hostname="nas.local", mac="02:00:00:00:00:01"),
        _device("10.0.0.2", 445),
    ]
    incoming = [_raw("10.0.0.1$en0", 443, offset=60)]
    registry, touched = merge_into_registry(existing, incoming)

    assert touched == ["10.0.0.1"]
    updated = registry[0]
    assert updated.port_numbers == [22, 80, 443]
    assert updated.hostname == "nas.local"
    assert updated.mac == "02:00:00:00:00:01"
    assert updated.first_seen == T0
    assert updated.last_seen == T0 + timedelta(minutes=60)
    assert registry[1] == existing[1]


def test_merge_into_registry_empty_pass_keeps_ports():
    existing = [_device("10.0.0.1", 22, 80)]
    registry, _ = merge_into_registry(existing, [_raw("10.0.0.1", is_online=False)])
    assert registry[0].port_numbers == [22, 80]
    assert registry[0].is_online is True


def test_merge_into_registry_inserts_unknown_hosts():
    registry, touched = merge_into_registry([], [_raw("10.0.0.4", 80)])
    assert touched == ["10.0.0.4"]
    assert registry[0].port_numbers == [80]
