from __future__ import annotations

import json
import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "LANFUSE_CONFIG"

_SUBNET_PREFIX = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class ScanningConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    default_subnet: str = "192.168.1"
    max_concurrent: int = Field(default=10, ge=1, le=255)
    host_timeout: float = Field(default=30.0, gt=0)
    discovery_timeout: float = Field(default=5.0, gt=0)
    hostname_timeout: float = Field(default=2.0, gt=0)
    port_list: Literal["standard", "full"] = "standard"

    @field_validator("default_subnet")
    @classmethod
    def _check_subnet(cls, value: str) -> str:
        match = _SUBNET_PREFIX.match(value.strip())
        if match is None or any(int(octet) > 255 for octet in match.groups()):
            raise ValueError(
                f"default_subnet must be a /24 prefix like '192.168.1', got {value!r}"
            )
        return value.strip()


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scanning: ScanningConfig = Field(default_factory=ScanningConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def update_scanning(settings: Settings, key: str, value: str) -> Settings:
    """Return ``settings`` with one ``[scanning]`` value replaced.

    ``value`` is the raw command-line text; pydantic coerces and validates it.
    """
    if key not in ScanningConfig.model_fields:
        known = ", ".join(ScanningConfig.model_fields)
        raise ValueError(f"Unknown scanning setting {key!r} (expected one of: {known})")

    data = settings.scanning.model_dump()
    data[key] = value
    try:
        scanning = ScanningConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid value for {key}: {value!r}\n{exc}") from exc
    return settings.model_copy(update={"scanning": scanning})


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    scanning = settings.scanning
    lines = [
        "# lanfuse configuration",
        "",
        "[database]",
        f"path = {_toml_string(settings.database.path)}",
        "",
        "[scanning]",
        f"default_subnet = {_toml_string(scanning.default_subnet)}",
        f"max_concurrent = {scanning.max_concurrent}",
        f"host_timeout = {scanning.host_timeout}",
        f"discovery_timeout = {scanning.discovery_timeout}",
        f"hostname_timeout = {scanning.hostname_timeout}",
        f"port_list = {_toml_string(scanning.port_list)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
