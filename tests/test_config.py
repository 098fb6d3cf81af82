from __future__ import annotations

import pytest

from lanfuse.config import (
    CONFIG_ENV_VAR,
    DatabaseConfig,
    ScanningConfig,
    Settings,
    data_dir_from_settings,
    get_settings,
    load_settings,
    resolve_config_path,
    update_scanning,
    write_settings,
)


def test_settings_roundtrip(tmp_path):
    path = tmp_path / "config.toml"
    settings = Settings(
        database=DatabaseConfig(path=str(tmp_path / "data")),
        scanning=ScanningConfig(
            default_subnet="10.0.0", max_concurrent=4, port_list="full"
        ),
    )
    write_settings(settings, path)

    assert load_settings(path) == settings


def test_defaults():
    scanning = ScanningConfig()
    assert scanning.default_subnet == "192.168.1"
    assert scanning.max_concurrent == 10
    assert scanning.port_list == "standard"


@pytest.mark.parametrize("subnet", ["192.168.1.0/24", "300.1.1", "10.0", "abc"])
def test_invalid_subnet_rejected(tmp_path, subnet):
    path = tmp_path / "config.toml"
    path.write_text(f'[scanning]\ndefault_subnet = "{subnet}"\n')

    with pytest.raises(ValueError, match="Invalid config file"):
        load_settings(path)


def test_invalid_toml_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[scanning\n")

    with pytest.raises(ValueError, match="Invalid TOML"):
        load_settings(path)


def test_unknown_keys_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[scanning]\nthreads = 4\n")

    with pytest.raises(ValueError):
        load_settings(path)


def test_env_points_to_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))

    with pytest.raises(FileNotFoundError):
        resolve_config_path()
    path, exists = resolve_config_path(allow_missing=True)
    assert path == tmp_path / "missing.toml"
    assert exists is False


def test_get_settings_reads_env_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    write_settings(
        Settings(
            database=DatabaseConfig(path=str(tmp_path / "data")),
            scanning=ScanningConfig(default_subnet="172.16.0"),
        ),
        path,
    )
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    settings = get_settings()
    assert settings.scanning.default_subnet == "172.16.0"
    assert data_dir_from_settings(settings) == tmp_path / "data"


def test_update_scanning_coerces_text():
    settings = update_scanning(Settings(), "host_timeout", "12.5")
    settings = update_scanning(settings, "port_list", "full")

    assert settings.scanning.host_timeout == 12.5
    assert settings.scanning.port_list == "full"
    assert settings.database == Settings().database


@pytest.mark.parametrize(
    ("key", "value", "match"),
    [
        ("threads", "4", "Unknown scanning setting"),
        ("max_concurrent", "0", "Invalid value for max_concurrent"),
        ("port_list", "all", "Invalid value for port_list"),
    ],
)
def test_update_scanning_rejects(key, value, match):
    with pytest.raises(ValueError, match=match):
        update_scanning(Settings(), key, value)
