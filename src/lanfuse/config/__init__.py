"""Configuration for lanfuse.

Settings come from a TOML file (``LANFUSE_CONFIG`` or the platform config
directory). ``[database]`` names the data directory, ``[scanning]`` holds the
subnet, concurrency, timeouts and port list used by the orchestrator.
"""

from __future__ import annotations

from .paths import APP_NAME, default_config_path, default_data_dir, expand_path
from .settings import (
    CONFIG_ENV_VAR,
    DatabaseConfig,
    ScanningConfig,
    Settings,
    data_dir_from_settings,
    get_settings,
    load_settings,
    render_settings_toml,
    resolve_config_path,
    update_scanning,
    write_settings,
)

__all__ = [
    "APP_NAME",
    "CONFIG_ENV_VAR",
    "DatabaseConfig",
    "ScanningConfig",
    "Settings",
    "data_dir_from_settings",
    "default_config_path",
    "default_data_dir",
    "expand_path",
    "get_settings",
    "load_settings",
    "render_settings_toml",
    "resolve_config_path",
    "update_scanning",
    "write_settings",
]
