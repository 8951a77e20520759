from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from wakestream.cli.app import app
from wakestream.config import DatabaseConfig, Settings, get_settings, write_settings
from wakestream.core.controller import SessionController
from wakestream.core.health import HealthProbe, ProbeResult
from wakestream.core.resolver import Resolver
from wakestream.core.wake import WakeSignaler
from wakestream.errors import NegotiationError
from wakestream.services import ProfileService
from wakestream.storage import Database

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    config_path = tmp_path / "config.toml"
    write_settings(Settings(database=DatabaseConfig(path=str(data_dir))), config_path)
    monkeypatch.setenv("WAKESTREAM_CONFIG", str(config_path))
    get_settings.cache_clear()
    return data_dir


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "wakestream version" in result.output


def test_hosts_add_and_list(data_dir):
    result = runner.invoke(app, ["hosts", "add", "Desk", "aa-bb-cc-dd-ee-ff"])
    assert result.exit_code == 0, result.output
    assert "AA:BB:CC:DD:EE:FF" in result.output

    result = runner.invoke(app, ["hosts", "list"])
    assert result.exit_code == 0
    assert "Desk" in result.output
    assert "auto" in result.output

    profiles = Database(data_dir).load_profiles()
    assert [p.name for p in profiles] == ["Desk"]


def test_hosts_list_redacts_addresses(data_dir):
    Database(data_dir).add_profile("Desk", "AA:BB:CC:DD:EE:FF", ip="192.168.0.42")

    result = runner.invoke(app, ["hosts", "list", "--redact"])

    assert result.exit_code == 0
    assert "DD:EE:FF" not in result.output
    assert "x.x.x.42" in result.output


def test_hosts_add_rejects_invalid_mac(data_dir):
    result = runner.invoke(app, ["hosts", "add", "Desk", "not-a-mac"])
    assert result.exit_code == 1
    assert "Invalid MAC" in result.output
    assert Database(data_dir).load_profiles() == []


def test_hosts_edit_mac_clears_ip(data_dir):
    db = Database(data_dir)
    profile = db.add_profile("Desk", "AA:BB:CC:DD:EE:FF", ip="192.168.0.42")

    result = runner.invoke(app, ["hosts", "edit", "Desk", "--mac", "11:22:33:44:55:66"])

    assert result.exit_code == 0, result.output
    updated = db.get_profile(profile.id)
    assert updated.mac == "11:22:33:44:55:66"
    assert updated.ip is None


def test_hosts_remove_unknown(data_dir):
    result = runner.invoke(app, ["hosts", "remove", "ghost"])
    assert result.exit_code == 1
    assert "No host matches" in result.output


def test_pair_import_and_list(data_dir, tmp_path):
    pairing = tmp_path / "pairing.json"
    pairing.write_text(
        json.dumps({"device_id": "dev-1", "broker": "wss://b.example", "name": "Desk"})
    )

    result = runner.invoke(app, ["pair", "import", str(pairing)])
    assert result.exit_code == 0, result.output
    assert "dev-1" in result.output

    result = runner.invoke(app, ["pair", "list"])
    assert "dev-1" in result.output


def test_pair_import_rejects_incomplete_file(data_dir, tmp_path):
    pairing = tmp_path / "pairing.json"
    pairing.write_text(json.dumps({"device_id": "dev-1"}))

    result = runner.invoke(app, ["pair", "import", str(pairing)])

    assert result.exit_code == 1
    assert "broker" in result.output


def test_resolve_raw_mac(data_dir, monkeypatch):
    async def fake_resolve(self, mac, port=None, hint=None):
        return "192.168.0.42"

    monkeypatch.setattr(Resolver, "resolve", fake_resolve)

    result = runner.invoke(app, ["resolve", "AA:BB:CC:DD:EE:FF"])

    assert result.exit_code == 0, result.output
    assert "192.168.0.42" in result.output


def test_resolve_unknown_target(data_dir):
    result = runner.invoke(app, ["resolve", "ghost"])
    assert result.exit_code == 1
    assert "No host matches" in result.output


def test_wake_by_profile_name(data_dir, monkeypatch):
    sent: list[bytes] = []
    monkeypatch.setattr(WakeSignaler, "_send", lambda self, packet: sent.append(packet))
    Database(data_dir).add_profile("Desk", "AA:BB:CC:DD:EE:FF")

    result = runner.invoke(app, ["wake", "Desk"])

    assert result.exit_code == 0, result.output
    assert len(sent) == 1
    assert "AA:BB:CC:DD:EE:FF" in result.output


def test_config_show_and_init(tmp_path, monkeypatch):
    config_path = tmp_path / "fresh" / "config.toml"
    monkeypatch.setenv("WAKESTREAM_CONFIG", str(config_path))

    result = runner.invoke(app, ["config", "path"])
    assert "missing" in result.output

    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0
    assert config_path.exists()

    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert "[discovery]" in result.output
    assert "concurrency = 64" in result.output


def test_info(data_dir):
    Database(data_dir).add_profile("Desk", "AA:BB:CC:DD:EE:FF")

    result = runner.invoke(app, ["info"])

    assert result.exit_code == 0, result.output
    assert "Hosts: 1" in result.output
    assert "Unresolved hosts: 1" in result.output


def test_connect_unknown_host(data_dir):
    result = runner.invoke(app, ["connect", "ghost"])
    assert result.exit_code == 1
    assert "No host matches" in result.output


def test_connect_reports_rejected_offer(data_dir, monkeypatch):
    seen: dict[str, object] = {}

    async def fake_connect(self, target, config=None, wake=False, overrides=None):
        seen.update(target=target, wake=wake, overrides=overrides)
        raise NegotiationError("Offer rejected", status_code=503)

    monkeypatch.setattr(SessionController, "connect", fake_connect)

    result = runner.invoke(
        app, ["connect", "http://192.168.0.42:8080", "--fps", "30", "--no-audio"]
    )

    assert result.exit_code == 1
    assert "HTTP 503" in result.output
    assert seen["target"] == "http://192.168.0.42:8080"
    assert seen["overrides"]["fps"] == 30
    assert seen["overrides"]["audio"] is False


def test_unknown_log_level_is_rejected():
    result = runner.invoke(app, ["--log-level", "loud", "info"])
    assert result.exit_code == 2


def _alive(*addresses: str):
    async def answer(self, ip, port, timeout=None):
        return ProbeResult(alive=ip in addresses)

    return answer


def test_hosts_list_refresh_updates_status(data_dir, monkeypatch):
    db = Database(data_dir)
    profile = db.add_profile("Desk", "AA:BB:CC:DD:EE:FF", ip="192.168.0.42")
    monkeypatch.setattr(HealthProbe, "probe", _alive("192.168.0.42"))

    result = runner.invoke(app, ["hosts", "list", "--refresh"])

    assert result.exit_code == 0, result.output
    assert "online" in result.output
    assert db.get_profile(profile.id).online is True


def test_hosts_edit_same_mac_keeps_ip(data_dir):
    db = Database(data_dir)
    profile = db.add_profile("Desk", "AA:BB:CC:DD:EE:FF", ip="192.168.0.42")

    result = runner.invoke(app, ["hosts", "edit", "Desk", "--mac", "aa-bb-cc-dd-ee-ff"])

    assert result.exit_code == 0, result.output
    assert db.get_profile(profile.id).ip == "192.168.0.42"


def test_resolve_profile_honours_port(data_dir, monkeypatch):
    ports: list[int] = []

    async def fake_resolve(self, mac, port=None, hint=None):
        ports.append(port)
        return "192.168.0.42"

    monkeypatch.setattr(Resolver, "resolve", fake_resolve)
    monkeypatch.setattr(HealthProbe, "probe", _alive("192.168.0.42"))
    db = Database(data_dir)
    profile = db.add_profile("Desk", "AA:BB:CC:DD:EE:FF", port=8080)

    result = runner.invoke(app, ["resolve", "Desk", "--port", "9443"])

    assert result.exit_code == 0, result.output
    assert ports == [9443]
    assert db.get_profile(profile.id).port == 8080


def test_wake_wait_polls_known_address(data_dir, monkeypatch):
    monkeypatch.setattr(WakeSignaler, "_send", lambda self, packet: None)
    monkeypatch.setattr(HealthProbe, "probe", _alive("192.168.0.42"))
    db = Database(data_dir)
    profile = db.add_profile("Desk", "AA:BB:CC:DD:EE:FF", ip="192.168.0.42")

    result = runner.invoke(app, ["wake", "Desk", "--wait"])

    assert result.exit_code == 0, result.output
    assert "Host is up at 192.168.0.42" in result.output
    assert db.get_profile(profile.id).online is True


def test_connect_runs_background_rescan_while_streaming(data_dir, monkeypatch):
    calls: list[str] = []

    async def fake_connect(self, target, config=None, wake=False, overrides=None):
        calls.append("connect")
        assert self.profiles is not None

    def fake_start(self):
        calls.append("start")
        raise KeyboardInterrupt

    async def fake_stop(self):
        calls.append("stop")

    monkeypatch.setattr(SessionController, "connect", fake_connect)
    monkeypatch.setattr(ProfileService, "start_background", fake_start)
    monkeypatch.setattr(ProfileService, "stop_background", fake_stop)

    result = runner.invoke(app, ["connect", "http://192.168.0.42:8080"])

    assert result.exit_code == 0, result.output
    assert "Session ended" in result.output
    assert calls == ["connect", "start", "stop"]
