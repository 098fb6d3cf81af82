"""Manufacturer lookup by the first three octets of a MAC address."""

from __future__ import annotations

import json
import logging
import string
from functools import lru_cache
from importlib import resources

from lanfuse.models import normalize_mac

logger = logging.getLogger(__name__)

OUI_RESOURCE = "oui.json"


@lru_cache
def load_oui_table() -> dict[str, str]:
    text = resources.files("lanfuse.data").joinpath(OUI_RESOURCE).read_text("utf-8")
    table: dict[str, str] = {
        prefix.upper(): vendor for prefix, vendor in json.loads(text).items()
    }
    logger.debug("Loaded %d OUI prefixes", len(table))
    return table


def oui_prefix(mac: str | None) -> str | None:
    if not mac:
        return None
    normalized = normalize_mac(mac.strip())
    if normalized.count(":") != 5 or not all(
        ch in string.hexdigits for ch in normalized.replace(":", "")
    ):
        return None
    return normalized[:8]


def lookup_manufacturer(mac: str | None) -> str | None:
    prefix = oui_prefix(mac)
    if prefix is None:
        return None
    return load_oui_table().get(prefix)
