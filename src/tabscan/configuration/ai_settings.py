import os
from typing import Any, Callable, Dict

from tabscan.datatypes.errors import ConfigError

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL_NAME = "gemini-1.5-flash"


class AISettings:
    """Helper exposing typed accessors for the ``ai_settings`` config block.

    The API key is never read from the YAML file alone: ``AI_API_KEY`` (or
    ``GEMINI_API_KEY``) in the environment takes precedence.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    def _number(self, key: str, default: Any, cast: Callable[[Any], Any] = float) -> Any:
        value = self.data.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid ai_settings.{key}: {value!r}") from exc

    def validate(self) -> None:
        """Read every numeric setting once so malformed values surface at startup.

        Raises:
            ConfigError: If a numeric setting cannot be converted.
        """
        for name in ("ban_threshold", "ok_threshold", "budget_per_request", "request_delay", "timeout", "temperature"):
            getattr(self, name)

    @property
    def enabled(self) -> bool:
        env_value = os.getenv("AI_ENABLED")
        if env_value is not None and env_value.strip():
            return env_value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(self.data.get("enabled", True))

    @property
    def api_key(self) -> str | None:
        value = os.getenv("AI_API_KEY") or os.getenv("GEMINI_API_KEY") or self.data.get("api_key")
        value = str(value).strip() if value else ""
        return value or None

    @property
    def base_url(self) -> str:
        return str(self.data.get("base_url") or DEFAULT_BASE_URL)

    @property
    def model_name(self) -> str:
        return str(self.data.get("model_name") or DEFAULT_MODEL_NAME)

    @property
    def ban_threshold(self) -> float:
        return self._number("ban_threshold", 0.75)

    @property
    def ok_threshold(self) -> float:
        return self._number("ok_threshold", 0.75)

    @property
    def budget_per_request(self) -> int:
        return max(0, self._number("budget_per_request", 30, int))

    @property
    def request_delay(self) -> float:
        return max(0.0, self._number("request_delay_seconds", 0.35))

    @property
    def timeout(self) -> float:
        return self._number("timeout_seconds", 30.0)

    @property
    def temperature(self) -> float:
        return self._number("temperature", 0.0)

    @property
    def json_mode(self) -> bool:
        return bool(self.data.get("json_mode", True))
