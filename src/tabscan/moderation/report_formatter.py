"""Plain-text reports for scan results, nickname checks and status.

Downstream transports (chat messages) have a size ceiling, so every section
is capped and the whole text is cut at ``max_chars``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from tabscan.datatypes.moderation_datatypes import NicknameCheck, ScanResult, Verdict, VerdictSource
from tabscan.datatypes.session_datatypes import SessionState

MAX_MESSAGE_CHARS = 3900
BAN_LIMIT = 50
REVIEW_LIMIT = 50
OK_LIMIT = 30
EMPTY_SECTION = "-"


def humanize_timestamp(value: datetime) -> str:
    """Return ``value`` as ``YYYY-MM-DD HH:MM:SS UTC``; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def describe_verdict(verdict: Verdict) -> str:
    """``Nick (reason)``, or ``Nick (AI: reason, 87%)`` for AI-sourced verdicts."""
    if verdict.source is VerdictSource.AI:
        return f"{verdict.nickname} (AI: {verdict.reason}, {verdict.confidence_percent}%)"
    if verdict.reason in ("OK", ""):
        return verdict.nickname
    return f"{verdict.nickname} ({verdict.reason})"


def format_section(items: Sequence[str], limit: int, separator: str = "\n") -> str:
    if not items:
        return EMPTY_SECTION
    text = separator.join(items[:limit])
    if len(items) > limit:
        suffix = f"+{len(items) - limit} more"
        text += f"\n{suffix}" if separator == "\n" else f" {suffix}"
    return text


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max(0, max_chars - 1)] + "…"


def format_report(
    result: ScanResult,
    *,
    max_chars: int = MAX_MESSAGE_CHARS,
    ban_limit: int = BAN_LIMIT,
    review_limit: int = REVIEW_LIMIT,
    ok_limit: int = OK_LIMIT,
) -> str:
    """Render ``result`` as BAN / REVIEW / OK sections."""
    lines: List[str] = [
        f"Online: {result.total_players} (scanned {humanize_timestamp(result.timestamp)})",
    ]
    if result.ai_candidates:
        lines.append(f"AI checked: {result.ai_checked} of {result.ai_candidates}")
    lines.append("")

    lines.append(f"BAN ({len(result.ban_list)}):")
    lines.append(format_section([describe_verdict(v) for v in result.ban_list], ban_limit))
    lines.append("")

    lines.append(f"REVIEW ({len(result.review_list)}):")
    lines.append(format_section([describe_verdict(v) for v in result.review_list], review_limit))
    lines.append("")

    ok_items = [
        f"{v.nickname} (AI OK, {v.confidence_percent}%)" if v.source is VerdictSource.AI else v.nickname
        for v in result.ok_list
    ]
    lines.append(f"OK ({len(result.ok_list)}):")
    lines.append(format_section(ok_items, ok_limit, separator=", "))

    return truncate("\n".join(lines), max_chars)


def format_nickname_check(check: NicknameCheck, *, max_chars: int = MAX_MESSAGE_CHARS) -> str:
    verdict = check.rules_verdict
    lines = [
        f"Nickname check: {check.nickname}",
        "",
        f"Rules: {verdict.verdict} - {verdict.reason}",
    ]
    if check.ai_decision is not None:
        decision = check.ai_decision
        lines.append(f"AI: {decision.decision} - {decision.reason} ({round(decision.confidence * 100)}%)")
    else:
        lines.append("AI: disabled")
    lines.extend(["", f"Normalized: {check.normalized}"])
    return truncate("\n".join(lines), max_chars)


def format_status(
    *,
    state: SessionState,
    username: str,
    version: str,
    ai_available: bool,
    last_scan: ScanResult | None,
    last_error: str | None = None,
    scanning: bool = False,
) -> str:
    in_game = "in game" if state is SessionState.READY else f"not in game ({state})"
    lines = [
        f"Game:      {in_game}",
        f"Nickname:  {username}",
        f"Version:   {version}",
        f"AI:        {'enabled' if ai_available else 'disabled'}",
    ]
    if last_scan is not None:
        lines.append(f"Last scan: {humanize_timestamp(last_scan.timestamp)} (REVIEW: {len(last_scan.review_list)})")
    else:
        lines.append("Last scan: none")
    if scanning:
        lines.append("Scan:      running")
    if last_error:
        lines.append(f"Last error: {last_error}")
    return "\n".join(lines)
