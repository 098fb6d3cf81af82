from __future__ import annotations

from pathlib import Path

import pytest

from lanfuse.config import (
    CONFIG_ENV_VAR,
    DatabaseConfig,
    ScanningConfig,
    Settings,
    get_settings,
    write_settings,
)

NETWORKS_DIR = Path(__file__).resolve().parent.parent / "networks"


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch):
    for name in (CONFIG_ENV_VAR, "LANFUSE_LOGLEVEL", "LOGLEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def home_network() -> Path:
    """Demo network: router, NAS, printer, accessories and two exposed hosts."""
    return NETWORKS_DIR / "home.toml"


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Config file for 192.168.1 with its data directory under ``tmp_path``."""
    path = tmp_path / "config.toml"
    write_settings(
        Settings(
            database=DatabaseConfig(path=str(tmp_path / "data")),
            scanning=ScanningConfig(default_subnet="192.168.1"),
        ),
        path,
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    monkeypatch.setenv("COLUMNS", "200")
    return path


@pytest.fixture
def data_dir(config_path: Path) -> Path:
    return config_path.parent / "data"
