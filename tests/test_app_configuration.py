"""Tests for the YAML application configuration."""

from pathlib import Path

import pytest
import yaml

from tabscan.configuration.ai_settings import AISettings
from tabscan.configuration.app_configuration import DEFAULT_PREFIXES, AppConfig
from tabscan.datatypes.errors import ConfigError


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def write_config(path: Path, payload) -> Path:
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_missing_file_returns_empty_data(tmp_path: Path):
    config = AppConfig(tmp_path / "does_not_exist.yml")
    assert config.data == {}
    assert config.get("minecraft") is None


def test_invalid_yaml_returns_empty_data(config_path: Path):
    config_path.write_text("minecraft: [unclosed", encoding="utf-8")
    assert AppConfig(config_path).data == {}


def test_connection_settings_from_file(config_path: Path):
    write_config(config_path, {
        "minecraft": {
            "host": "mc.example.net",
            "port": 25566,
            "username": "ScanBot",
            "version": "1.8.8",
            "login_command": "/login pw",
            "settle_seconds": 1.5,
            "reconnect_delay_seconds": 7,
        }
    })

    settings = AppConfig(config_path).connection_settings()

    assert settings.host == "mc.example.net"
    assert settings.port == 25566
    assert settings.username == "ScanBot"
    assert settings.protocol_version == 47
    assert settings.login_command == "/login pw"
    assert settings.settle_delay == pytest.approx(1.5)
    assert settings.reconnect_delay == pytest.approx(7.0)
    assert settings.spawn_timeout == pytest.approx(10.0)


def test_environment_overrides_file(config_path: Path, monkeypatch):
    write_config(config_path, {"minecraft": {"host": "file-host", "username": "FileBot"}})
    monkeypatch.setenv("MC_HOST", "env-host")
    monkeypatch.setenv("MC_PORT", "25570")
    monkeypatch.setenv("MC_USER", "EnvBot")
    monkeypatch.setenv("MC_LOGIN_CMD", "/login env")

    settings = AppConfig(config_path).connection_settings()

    assert (settings.host, settings.port, settings.username) == ("env-host", 25570, "EnvBot")
    assert settings.login_command == "/login env"


def test_missing_identity_is_config_error(tmp_path: Path):
    with pytest.raises(ConfigError):
        AppConfig(tmp_path / "missing.yml").connection_settings()


def test_unsupported_version_is_config_error(config_path: Path):
    write_config(config_path, {"minecraft": {"host": "h", "username": "u", "version": "1.20.4"}})
    with pytest.raises(ConfigError):
        AppConfig(config_path).connection_settings()


def test_malformed_port_is_config_error(config_path: Path):
    write_config(config_path, {"minecraft": {"host": "h", "username": "u", "port": "many"}})
    with pytest.raises(ConfigError):
        AppConfig(config_path).connection_settings()


def test_scan_settings_defaults(tmp_path: Path):
    scan = AppConfig(tmp_path / "missing.yml").scan_settings()
    assert scan.interval == 0.0
    assert scan.prefix_delay == pytest.approx(0.2)
    assert scan.request_timeout == pytest.approx(2.5)
    assert scan.prefixes == tuple(DEFAULT_PREFIXES)
    assert scan.ai_budget == 0


def test_scan_settings_env_overrides(config_path: Path, monkeypatch):
    write_config(config_path, {"scan": {"interval_seconds": 60, "prefixes": ["ab", "c"]}})
    monkeypatch.setenv("SCAN_INTERVAL_SECONDS", "300")
    monkeypatch.setenv("SCAN_DELAY_MS", "150")

    scan = AppConfig(config_path).scan_settings()

    assert scan.interval == pytest.approx(300.0)
    assert scan.prefix_delay == pytest.approx(0.15)
    assert scan.prefixes == ("ab", "c")


def test_reload_picks_up_changes(config_path: Path):
    write_config(config_path, {"scan": {"ai_budget": 1}})
    config = AppConfig(config_path)
    write_config(config_path, {"scan": {"ai_budget": 4}})

    config.reload()

    assert config.scan_settings().ai_budget == 4


def test_ai_settings_defaults():
    settings = AISettings({})
    assert settings.enabled is True
    assert settings.api_key is None
    assert settings.ban_threshold == pytest.approx(0.75)
    assert settings.ok_threshold == pytest.approx(0.75)
    assert settings.budget_per_request == 30
    assert settings.request_delay == pytest.approx(0.35)
    assert settings.json_mode is True


def test_ai_settings_from_config(config_path: Path):
    write_config(config_path, {"ai_settings": {"enabled": False, "model_name": "m", "ban_threshold": 0.9}})
    settings = AppConfig(config_path).ai_settings
    assert settings.enabled is False
    assert settings.model_name == "m"
    assert settings.ban_threshold == pytest.approx(0.9)


def test_ai_settings_env_precedence(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "gemini")
    assert AISettings({"api_key": "file"}).api_key == "gemini"
    monkeypatch.setenv("AI_API_KEY", "primary")
    assert AISettings({"api_key": "file"}).api_key == "primary"
    monkeypatch.setenv("AI_ENABLED", "false")
    assert AISettings({"enabled": True}).enabled is False


def test_malformed_ai_number_is_config_error(config_path: Path):
    write_config(config_path, {"ai_settings": {"ban_threshold": "high"}})
    settings = AppConfig(config_path).ai_settings
    with pytest.raises(ConfigError, match="ban_threshold"):
        settings.validate()
    with pytest.raises(ConfigError):
        settings.ban_threshold
