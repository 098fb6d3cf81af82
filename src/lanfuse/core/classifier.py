"""Device type classification.

Classification is an ordered cascade of rules. Each rule pairs a predicate
over the observed signals with the category it assigns; the first rule whose
predicate holds decides the device type. Several rules overlap on purpose
(a Ubiquiti camera also exposes web admin ports, an Apple TV also answers on
the NAS port 5000), so the order of ``RULES`` is part of the behavior.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from lanfuse.models import DeviceType, PortDescriptor, ServiceMetadata


@dataclass(frozen=True)
class Signals:
    """Normalized classifier inputs."""

    ports: frozenset[int]
    manufacturer: str
    hostname: str
    service_metadata: ServiceMetadata | None

    @classmethod
    def build(
        cls,
        ports: Iterable[int | PortDescriptor] = (),
        manufacturer: str | None = None,
        hostname: str | None = None,
        service_metadata: ServiceMetadata | None = None,
    ) -> Signals:
        numbers = frozenset(
            p.port if isinstance(p, PortDescriptor) else int(p) for p in ports
        )
        return cls(
            ports=numbers,
            manufacturer=(manufacturer or "").lower(),
            hostname=(hostname or "").lower(),
            service_metadata=service_metadata,
        )

    def has_any_port(self, ports: Iterable[int]) -> bool:
        return not self.ports.isdisjoint(ports)

    def count_ports(self, ports: Iterable[int]) -> int:
        return len(self.ports.intersection(ports))

    def vendor_is(self, *names: str) -> bool:
        return any(name in self.manufacturer for name in names)

    def host_has(self, keywords: Iterable[str]) -> bool:
        return bool(self.hostname) and any(kw in self.hostname for kw in keywords)


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Callable[[Signals], bool]
    category: DeviceType

    def matches(self, signals: Signals) -> bool:
        return self.predicate(signals)


# Vendors whose catalog spans network gear and cameras
MULTI_ROLE_VENDORS = ("ubiquiti",)
CAMERA_HOST_KEYWORDS = ("camera", "protect", "g3", "g4", "g5", "ai")
INFRA_HOST_KEYWORDS = ("udm", "dream", "switch", "ap", "access", "gateway")
STREAMING_PORTS = frozenset({554, 7447, 7442, 7080})
ADMIN_PORTS = frozenset({22, 80, 443, 8443})

ALWAYS_IOT_VENDORS = (
    "philips lighting",
    "hue",
    "sengled",
    "lifx",
    "ge lighting",
    "ikea tradfri",
    "wemo",
    "kasa",
    "wyze",
    "ring",
    "ecobee",
    "nest",
    "smartthings",
    "shelly",
    "tuya",
    "aqara",
    "lutron",
    "sonos",
    "koogeek",
    "kogeek",
    "bose",
    "onkyo",
    "xiaomi",
    "espressif",
    "azurewave technology",
)
HOME_AUTOMATION_PORTS = frozenset({1883, 8883, 8123, 49152, 32498})

SBC_VENDORS = ("raspberry",)
SBC_IOT_PORTS = HOME_AUTOMATION_PORTS | {51826}
SBC_IOT_HOST_KEYWORDS = ("homebridge", "homeassistant", "pihole", "home-")

MOBILE_OS_VENDORS = ("apple",)
APPLE_IOT_HOST_KEYWORDS = ("appletv", "apple-tv", "homepod", "home-pod")
AIRPLAY_HOMEKIT_PORTS = frozenset({3689, 5000, 7000, 32498, 49152})

MOBILE_HOST_KEYWORDS = ("iphone", "ipad", "android")
SMART_HOME_HOST_KEYWORDS = (
    # Apple media and speakers
    "appletv", "apple-tv", "homepod", "home-pod",
    # audio
    "bose", "onkyo",
    # Google and Nest
    "google-home", "googlehome", "google home", "nest-", "nest-hub", "nesthub",
    "nest-mini", "nestmini", "nest-audio", "nestaudio", "nest-wifi", "nestwifi",
    "nest-cam", "nestcam", "nest-protect", "chromecast",
    # hubs and controllers
    "hue", "philips", "homekit", "homebridge", "smartthings", "alexa", "nest",
    "lutron", "caseta", "koogeek", "kogeek",
    # switches, outlets and lighting
    "switch", "plug", "outlet", "dimmer", "bulb", "light",
)  # fmt: skip
MDNS_INFRA_HOST_KEYWORDS = ("_mcast", ".mcast", "mcast.dns")

DNS_DHCP_PORTS = frozenset({53, 67, 68})
DATABASE_PORTS = frozenset({3306, 5432, 1433, 27017})
NAS_ADMIN_PORTS = frozenset({5000, 5001})
APP_SERVER_PORTS = frozenset({8080, 8443, 9000})
REMOTE_SHELL_PORT = 22
PRINT_PORTS = frozenset({631, 9100})
MQTT_PORTS = frozenset({1883, 8883, 1400})
HOMEKIT_PORTS = frozenset({49152, 32498})
AIRPLAY_PORTS = frozenset({3689, 5000, 7000})
FILE_SHARING_PORTS = frozenset({139, 445, 548})


def _multi_role(s: Signals) -> bool:
    return s.vendor_is(*MULTI_ROLE_VENDORS)


def _always_iot_vendor(s: Signals) -> bool:
    if s.vendor_is(*ALWAYS_IOT_VENDORS):
        return True
    # Echo devices, not AWS hardware
    if s.vendor_is("amazon") and not s.vendor_is("aws"):
        return True
    # Home and Nest devices, not Google Cloud hardware
    if s.vendor_is("google") and not s.vendor_is("cloud"):
        return True
    # TI radios are only IoT when the host talks home automation
    return s.vendor_is("texas instruments") and s.has_any_port(HOME_AUTOMATION_PORTS)


def _sbc(s: Signals) -> bool:
    return s.vendor_is(*SBC_VENDORS)


def _sbc_home_automation(s: Signals) -> bool:
    return _sbc(s) and (
        s.has_any_port(SBC_IOT_PORTS) or s.host_has(SBC_IOT_HOST_KEYWORDS)
    )


def _apple_media(s: Signals) -> bool:
    return s.vendor_is(*MOBILE_OS_VENDORS) and (
        s.host_has(APPLE_IOT_HOST_KEYWORDS) or s.has_any_port(AIRPLAY_HOMEKIT_PORTS)
    )


RULES: tuple[Rule, ...] = (
    Rule(
        "metadata-accessory",
        lambda s: s.service_metadata is not None and s.service_metadata.is_accessory,
        DeviceType.IOT,
    ),
    Rule(
        "multi-role-vendor-camera-hostname",
        lambda s: _multi_role(s) and s.host_has(CAMERA_HOST_KEYWORDS),
        DeviceType.IOT,
    ),
    Rule(
        "multi-role-vendor-infrastructure-hostname",
        lambda s: _multi_role(s) and s.host_has(INFRA_HOST_KEYWORDS),
        DeviceType.ROUTER,
    ),
    Rule(
        "multi-role-vendor-streaming-ports",
        lambda s: _multi_role(s) and s.has_any_port(STREAMING_PORTS),
        DeviceType.IOT,
    ),
    Rule(
        "multi-role-vendor-admin-ports",
        lambda s: _multi_role(s) and s.count_ports(ADMIN_PORTS) >= 2,
        DeviceType.ROUTER,
    ),
    Rule("multi-role-vendor-default", _multi_role, DeviceType.ROUTER),
    Rule("always-iot-vendor", _always_iot_vendor, DeviceType.IOT),
    Rule("single-board-home-automation", _sbc_home_automation, DeviceType.IOT),
    Rule("single-board-computer", _sbc, DeviceType.COMPUTER),
    Rule("mobile-os-vendor-media", _apple_media, DeviceType.IOT),
    Rule(
        "hostname-mobile",
        lambda s: s.host_has(MOBILE_HOST_KEYWORDS),
        DeviceType.MOBILE,
    ),
    Rule(
        "hostname-mdns-infrastructure",
        lambda s: s.host_has(MDNS_INFRA_HOST_KEYWORDS),
        DeviceType.ROUTER,
    ),
    Rule(
        "hostname-smart-home",
        lambda s: s.host_has(SMART_HOME_HOST_KEYWORDS),
        DeviceType.IOT,
    ),
    Rule(
        "ports-dns-dhcp",
        lambda s: s.has_any_port(DNS_DHCP_PORTS),
        DeviceType.ROUTER,
    ),
    Rule(
        "ports-database",
        lambda s: s.has_any_port(DATABASE_PORTS),
        DeviceType.SERVER,
    ),
    Rule(
        "ports-nas",
        lambda s: s.has_any_port(NAS_ADMIN_PORTS) and REMOTE_SHELL_PORT in s.ports,
        DeviceType.SERVER,
    ),
    Rule(
        "ports-app-server",
        lambda s: s.has_any_port(APP_SERVER_PORTS) and REMOTE_SHELL_PORT in s.ports,
        DeviceType.SERVER,
    ),
    Rule("ports-print", lambda s: s.has_any_port(PRINT_PORTS), DeviceType.PRINTER),
    Rule("ports-mqtt", lambda s: s.has_any_port(MQTT_PORTS), DeviceType.IOT),
    Rule("ports-homekit", lambda s: s.has_any_port(HOMEKIT_PORTS), DeviceType.IOT),
    Rule(
        "ports-airplay",
        lambda s: s.count_ports(AIRPLAY_PORTS) >= 2,
        DeviceType.IOT,
    ),
    Rule(
        "ports-file-sharing",
        lambda s: s.has_any_port(FILE_SHARING_PORTS),
        DeviceType.COMPUTER,
    ),
)


def match_rule(signals: Signals, rules: Iterable[Rule] = RULES) -> Rule | None:
    for rule in rules:
        if rule.matches(signals):
            return rule
    return None


def classify(
    ports: Iterable[int | PortDescriptor] = (),
    manufacturer: str | None = None,
    hostname: str | None = None,
    service_metadata: ServiceMetadata | None = None,
) -> DeviceType:
    rule = match_rule(Signals.build(ports, manufacturer, hostname, service_metadata))
    return rule.category if rule is not None else DeviceType.UNKNOWN


def explain(
    ports: Iterable[int | PortDescriptor] = (),
    manufacturer: str | None = None,
    hostname: str | None = None,
    service_metadata: ServiceMetadata | None = None,
) -> str | None:
    """Name of the rule that decides the category, ``None`` for unknown."""
    rule = match_rule(Signals.build(ports, manufacturer, hostname, service_metadata))
    return rule.name if rule is not None else None
