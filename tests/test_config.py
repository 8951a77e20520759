from __future__ import annotations

import pytest

from wakestream.config import (
    DiscoveryConfig,
    Settings,
    StreamConfig,
    data_dir_from_settings,
    get_settings,
    load_settings,
    render_settings_toml,
    resolve_config_path,
    write_settings,
)


def test_defaults_match_discovery_constants():
    discovery = DiscoveryConfig()
    assert discovery.port == 8080
    assert discovery.probe_timeout == 0.8
    assert discovery.concurrency == 64
    assert discovery.attempts == 9
    assert discovery.backoff == 5.0
    assert discovery.rescan_interval == 30.0
    assert discovery.wake_timeout == 120.0


def test_health_path_gets_leading_slash():
    assert DiscoveryConfig(health_path="status").health_path == "/status"


def test_settings_round_trip(tmp_path):
    settings = Settings(
        discovery=DiscoveryConfig(port=9000, concurrency=16),
        stream=StreamConfig(codec="av1", fit="scale-down", audio=False),
    )
    path = tmp_path / "nested" / "config.toml"
    write_settings(settings, path)

    assert load_settings(path) == settings
    assert "[discovery]" in render_settings_toml(settings)


def test_load_settings_rejects_unknown_keys(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[discovery]\nfrobnicate = 1\n")
    with pytest.raises(ValueError, match="Invalid config file"):
        load_settings(path)


def test_load_settings_rejects_bad_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[discovery\n")
    with pytest.raises(ValueError, match="Invalid TOML"):
        load_settings(path)


def test_env_var_points_to_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv("WAKESTREAM_CONFIG", str(tmp_path / "missing.toml"))
    with pytest.raises(FileNotFoundError):
        resolve_config_path()
    path, exists = resolve_config_path(allow_missing=True)
    assert path == tmp_path / "missing.toml"
    assert exists is False


def test_get_settings_reads_env_config(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    write_settings(Settings(discovery=DiscoveryConfig(attempts=3)), path)
    monkeypatch.setenv("WAKESTREAM_CONFIG", str(path))
    get_settings.cache_clear()

    assert get_settings().discovery.attempts == 3


def test_default_data_dir_follows_xdg(tmp_path):
    assert data_dir_from_settings(Settings()) == tmp_path / "data-home" / "wakestream"
