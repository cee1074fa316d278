from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from tabscan.configuration.ai_settings import AISettings
from tabscan.datatypes.errors import ConfigError
from tabscan.minecraft.protocol import resolve_protocol_version
from tabscan.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_PREFIXES = "abcdefghijklmnopqrstuvwxyz0123456789_"


@dataclass(frozen=True)
class ConnectionSettings:
    """Game server target and session timing, all in seconds."""

    host: str
    username: str
    port: int = 25565
    version: str = "1.8.9"
    login_command: str = ""
    connect_timeout: float = 10.0
    spawn_timeout: float = 10.0
    settle_delay: float = 3.0
    probe_timeout: float = 5.0
    probe_text: str = "/msg "
    reconnect_delay: float = 5.0

    @property
    def protocol_version(self) -> int:
        return resolve_protocol_version(self.version)


@dataclass(frozen=True)
class ScanSettings:
    rules_path: Path = Path("./config/rules.json")
    interval: float = 0.0
    prefix_delay: float = 0.2
    request_timeout: float = 2.5
    completion_command: str = "/msg "
    prefixes: Tuple[str, ...] = tuple(DEFAULT_PREFIXES)
    ai_budget: int = 0


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key, {})
    return value if isinstance(value, dict) else {}


class AppConfig:
    """Accessor around the YAML application configuration.

    Caches ``./config/app_config.yml`` and resolves typed settings objects from
    it. Connection identity and secrets may come from the environment (``.env``),
    which takes precedence over the file.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache.

        Returns the loaded mapping (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def ai_settings(self) -> AISettings:
        return AISettings(_section(self._data, "ai_settings"))

    def connection_settings(self) -> ConnectionSettings:
        """Build the game connection settings.

        Raises:
            ConfigError: If the host or username is missing, or a value is malformed.
        """
        section = _section(self._data, "minecraft")
        host = _env("MC_HOST") or section.get("host")
        username = _env("MC_USER") or section.get("username")
        if not host or not username:
            raise ConfigError("MC_HOST and MC_USER must be set (environment or minecraft section of app_config.yml)")

        try:
            settings = ConnectionSettings(
                host=str(host),
                username=str(username),
                port=int(_env("MC_PORT") or section.get("port", 25565)),
                version=str(_env("MC_VERSION") or section.get("version", "1.8.9")),
                login_command=str(_env("MC_LOGIN_CMD") or section.get("login_command") or ""),
                connect_timeout=float(section.get("connect_timeout_seconds", 10.0)),
                spawn_timeout=float(section.get("spawn_timeout_seconds", 10.0)),
                settle_delay=float(section.get("settle_seconds", 3.0)),
                probe_timeout=float(section.get("probe_timeout_seconds", 5.0)),
                probe_text=str(section.get("probe_text", "/msg ")),
                reconnect_delay=float(section.get("reconnect_delay_seconds", 5.0)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid minecraft settings: {exc}") from exc

        resolve_protocol_version(settings.version)
        return settings

    def scan_settings(self) -> ScanSettings:
        """Build scan settings; ``SCAN_INTERVAL_SECONDS`` and ``SCAN_DELAY_MS`` override the file.

        Raises:
            ConfigError: If a value is malformed.
        """
        section = _section(self._data, "scan")
        prefixes = section.get("prefixes") or DEFAULT_PREFIXES
        if isinstance(prefixes, str):
            prefixes = list(prefixes)

        try:
            delay_ms = _env("SCAN_DELAY_MS")
            prefix_delay = float(delay_ms) / 1000.0 if delay_ms else float(section.get("prefix_delay_seconds", 0.2))
            return ScanSettings(
                rules_path=Path(str(section.get("rules_path", "./config/rules.json"))),
                interval=float(_env("SCAN_INTERVAL_SECONDS") or section.get("interval_seconds", 0.0)),
                prefix_delay=max(0.0, prefix_delay),
                request_timeout=float(section.get("request_timeout_seconds", 2.5)),
                completion_command=str(section.get("completion_command", "/msg ")),
                prefixes=tuple(str(p) for p in prefixes),
                ai_budget=max(0, int(section.get("ai_budget", 0))),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid scan settings: {exc}") from exc
