"""
Pytest configuration and fixtures for TabScan tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from tabscan.configuration.rule_loader import build_rule_set  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep developer .env values from leaking into configuration tests."""
    for name in (
        "MC_HOST", "MC_PORT", "MC_USER", "MC_VERSION", "MC_LOGIN_CMD",
        "AI_ENABLED", "AI_API_KEY", "GEMINI_API_KEY",
        "SCAN_INTERVAL_SECONDS", "SCAN_DELAY_MS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def sample_rules():
    return build_rule_set(
        {
            "version": 2,
            "rules": [
                {"id": "STAFF", "action": "BAN", "reason": "staff impersonation", "words": ["admin", "moderator"]},
                {"id": "CHEATS", "action": "REVIEW", "reason": "cheat advertising", "words": ["hacks"]},
            ],
            "review": ["kill", "drug"],
            "whitelist_exact": ["skillful"],
        },
        source="test",
    )
