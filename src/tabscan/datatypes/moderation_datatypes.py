"""
Verdict and scan result types.

Key types:
- `VerdictType`: OK / REVIEW / BAN classification outcome.
- `VerdictSource`: which tier produced a verdict (rules or AI).
- `Verdict`: per-nickname result with reason and optional AI confidence.
- `AIDecision`: validated AI arbitrator answer.
- `ScanResult`: immutable snapshot of one scan, split into BAN/REVIEW/OK lists.
- `NicknameCheck`: result of checking a single nickname on demand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple


class VerdictType(Enum):
    """Classification outcome for a nickname."""

    OK = "OK"
    REVIEW = "REVIEW"
    BAN = "BAN"

    def __str__(self) -> str:
        return self.value


class VerdictSource(Enum):
    RULES = "rules"
    AI = "ai"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Verdict:
    """Classification of one nickname.

    Attributes:
        nickname: Raw nickname as seen on the server.
        normalized: Normalized form the rules were matched against.
        verdict: Final classification.
        reason: Human-readable explanation (rule reason, AI reason, ...).
        source: Tier that produced the verdict.
        confidence: AI confidence in [0, 1]; None for rules-sourced verdicts.
        rule_id: Identifier of the matched rule, if any.
    """

    nickname: str
    normalized: str
    verdict: VerdictType
    reason: str
    source: VerdictSource = VerdictSource.RULES
    confidence: float | None = None
    rule_id: str | None = None

    @property
    def confidence_percent(self) -> int | None:
        if self.confidence is None:
            return None
        return round(self.confidence * 100)


@dataclass(frozen=True, slots=True)
class AIDecision:
    decision: VerdictType
    confidence: float
    reason: str


@dataclass(frozen=True)
class ScanResult:
    """Immutable outcome of a scan (and of any later AI pass over it).

    Attributes:
        timestamp: When the player list was collected (UTC).
        total_players: Number of nicknames classified.
        ban_list / review_list / ok_list: Verdicts grouped by classification.
        ai_checked: How many REVIEW nicknames were sent to the AI.
        ai_candidates: How many REVIEW nicknames were eligible for the AI.
    """

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_players: int = 0
    ban_list: Tuple[Verdict, ...] = ()
    review_list: Tuple[Verdict, ...] = ()
    ok_list: Tuple[Verdict, ...] = ()
    ai_checked: int = 0
    ai_candidates: int = 0

    @property
    def all_verdicts(self) -> Tuple[Verdict, ...]:
        return self.ban_list + self.review_list + self.ok_list


@dataclass(frozen=True, slots=True)
class NicknameCheck:
    nickname: str
    normalized: str
    rules_verdict: Verdict
    ai_decision: AIDecision | None = None
