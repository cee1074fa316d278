"""
Error taxonomy for TabScan.

Every error carries a human-readable message so callers (console, front ends)
can show ``str(exc)`` directly.

- ``ConfigError``: bad rule file or application configuration.
- ``NotReadyError`` / ``NotInGameError``: the game session is not ready.
- ``ScanInProgressError``: a scan is already running.
- ``ProtocolTimeoutError``: a completion request got no answer in time.
- ``ConnectionLostError``: the game session died.
- ``AIProviderError``: the AI endpoint failed; absorbed by the arbitrator.
"""

from __future__ import annotations


class TabScanError(Exception):
    """Base class for all errors raised by TabScan components."""

    default_message = "TabScan error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ConfigError(TabScanError):
    default_message = "Invalid configuration"


class NotReadyError(TabScanError):
    default_message = "Game session is not ready"


class NotInGameError(NotReadyError):
    default_message = "Bot is not in game"


class ScanInProgressError(TabScanError):
    default_message = "A scan is already in progress"


class ProtocolTimeoutError(TabScanError):
    default_message = "Timed out waiting for the server"


class ConnectionLostError(TabScanError):
    default_message = "Connection to the game server was lost"


class AIProviderError(TabScanError):
    default_message = "AI provider request failed"


class AIUnavailableError(TabScanError):
    default_message = "AI is disabled"


class NoScanAvailableError(TabScanError):
    default_message = "No previous scan. Run a scan first"


class InvalidNicknameError(TabScanError):
    default_message = "Send a single, short nickname"
