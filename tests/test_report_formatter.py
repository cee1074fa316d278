"""Tests for report text formatting."""

from datetime import datetime, timezone

from tabscan.datatypes.moderation_datatypes import (
    AIDecision,
    NicknameCheck,
    ScanResult,
    Verdict,
    VerdictSource,
    VerdictType,
)
from tabscan.datatypes.session_datatypes import SessionState
from tabscan.moderation.report_formatter import (
    describe_verdict,
    format_nickname_check,
    format_report,
    format_section,
    format_status,
    humanize_timestamp,
)

TIMESTAMP = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def verdict(name, kind=VerdictType.OK, reason="OK", **kwargs):
    return Verdict(name, name.lower(), kind, reason, **kwargs)


def test_humanize_timestamp_naive_is_utc():
    assert humanize_timestamp(datetime(2024, 5, 1, 12, 30)) == "2024-05-01 12:30:00 UTC"


def test_describe_verdict_rules_and_ai():
    assert describe_verdict(verdict("Bob", VerdictType.BAN, "staff impersonation")) == "Bob (staff impersonation)"
    assert describe_verdict(verdict("Notch")) == "Notch"
    ai = verdict("Eve", VerdictType.BAN, "insult", source=VerdictSource.AI, confidence=0.874)
    assert describe_verdict(ai) == "Eve (AI: insult, 87%)"


def test_format_section_empty_and_truncated():
    assert format_section([], 5) == "-"
    assert format_section(["a", "b", "c"], 2) == "a\nb\n+1 more"
    assert format_section(["a", "b", "c"], 2, separator=", ") == "a, b +1 more"


def test_format_report_sections():
    result = ScanResult(
        timestamp=TIMESTAMP,
        total_players=3,
        ban_list=(verdict("Admin_Bob", VerdictType.BAN, "staff impersonation"),),
        review_list=(verdict("Killer99", VerdictType.REVIEW, "suspicious word"),),
        ok_list=(verdict("Notch"),),
    )

    text = format_report(result)

    assert "Online: 3 (scanned 2024-05-01 12:30:00 UTC)" in text
    assert "BAN (1):\nAdmin_Bob (staff impersonation)" in text
    assert "REVIEW (1):\nKiller99 (suspicious word)" in text
    assert "OK (1):\nNotch" in text
    assert "AI checked" not in text


def test_format_report_ai_summary_and_more_suffix():
    review = tuple(verdict(f"Player{i:02d}", VerdictType.REVIEW, "limit exhausted") for i in range(60))
    result = ScanResult(timestamp=TIMESTAMP, total_players=60, review_list=review, ai_checked=30, ai_candidates=60)

    text = format_report(result, max_chars=100000)

    assert "AI checked: 30 of 60" in text
    assert "REVIEW (60):" in text
    assert "+10 more" in text
    assert "Player49" in text
    assert "Player50" not in text


def test_format_report_respects_max_chars():
    ok = tuple(verdict(f"Player{i:04d}") for i in range(500))
    result = ScanResult(timestamp=TIMESTAMP, total_players=500, ok_list=ok)

    text = format_report(result, max_chars=200, ok_limit=500)

    assert len(text) == 200
    assert text.endswith("…")


def test_format_nickname_check():
    rules_verdict = verdict("Adm1n", VerdictType.BAN, "staff impersonation")
    check = NicknameCheck("Adm1n", "admin", rules_verdict, AIDecision(VerdictType.BAN, 0.9, "impersonation"))

    text = format_nickname_check(check)

    assert "Rules: BAN - staff impersonation" in text
    assert "AI: BAN - impersonation (90%)" in text
    assert "Normalized: admin" in text


def test_format_nickname_check_without_ai():
    check = NicknameCheck("Notch", "notch", verdict("Notch"))
    assert "AI: disabled" in format_nickname_check(check)


def test_format_status():
    text = format_status(
        state=SessionState.READY,
        username="ScanBot",
        version="1.8.9",
        ai_available=False,
        last_scan=None,
    )
    assert "Game:      in game" in text
    assert "AI:        disabled" in text
    assert "Last scan: none" in text

    offline = format_status(
        state=SessionState.OFFLINE,
        username="ScanBot",
        version="1.8.9",
        ai_available=True,
        last_scan=ScanResult(timestamp=TIMESTAMP),
        last_error="Kicked: restart",
    )
    assert "not in game (offline)" in offline
    assert "Last scan: 2024-05-01 12:30:00 UTC (REVIEW: 0)" in offline
    assert "Last error: Kicked: restart" in offline
