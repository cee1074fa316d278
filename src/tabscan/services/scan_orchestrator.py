"""Scan orchestration: enumerate the online players and classify them.

At most one scan runs at a time; a second request is rejected immediately with
``ScanInProgressError`` instead of being queued. The result of every successful
scan replaces the cached *last scan*, which is what a later AI pass works on.
"""

from __future__ import annotations

import asyncio

from tabscan.configuration.rule_loader import RuleSetStore
from tabscan.datatypes.errors import (
    AIUnavailableError,
    InvalidNicknameError,
    NoScanAvailableError,
    NotInGameError,
    ScanInProgressError,
)
from tabscan.datatypes.moderation_datatypes import NicknameCheck, ScanResult
from tabscan.datatypes.rule_datatypes import RuleSet
from tabscan.ai.ai_arbitrator import AIArbitrator
from tabscan.minecraft.connection_supervisor import ConnectionSupervisor
from tabscan.minecraft.player_enumerator import PlayerEnumerator
from tabscan.moderation.escalation_pipeline import EscalationPipeline
from tabscan.moderation.rule_matcher import classify
from tabscan.util.logger import get_logger

logger = get_logger("scan_orchestrator")

MAX_CHECK_LENGTH = 32


class ScanOrchestrator:
    """Tie enumeration, rules and AI escalation together.

    Args:
        supervisor: Readiness source.
        enumerator: Player list provider.
        pipeline: Rules + AI escalation.
        rule_store: Current rule set, reloadable.
        arbitrator: AI tier, used directly for single-nickname checks.
        scan_ai_budget: AI calls allowed during a scan itself (0 = rules only).
        review_budget: Default AI calls for an on-demand pass over the last scan.
    """

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        enumerator: PlayerEnumerator,
        pipeline: EscalationPipeline,
        rule_store: RuleSetStore,
        arbitrator: AIArbitrator,
        *,
        scan_ai_budget: int = 0,
        review_budget: int = 30,
    ) -> None:
        self._supervisor = supervisor
        self._enumerator = enumerator
        self._pipeline = pipeline
        self._rule_store = rule_store
        self._arbitrator = arbitrator
        self.scan_ai_budget = scan_ai_budget
        self.review_budget = review_budget
        self._scan_lock = asyncio.Lock()
        self._last_scan: ScanResult | None = None

    @property
    def last_scan(self) -> ScanResult | None:
        return self._last_scan

    @property
    def ai_available(self) -> bool:
        return self._arbitrator.available

    @property
    def ai_unavailable_reason(self) -> str | None:
        return self._arbitrator.unavailable_reason

    def is_ready(self) -> bool:
        return self._supervisor.is_ready()

    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    async def scan(self) -> ScanResult:
        """Enumerate online players and classify them.

        Raises:
            NotInGameError: The session is not READY when the scan starts.
            NotReadyError: Readiness was lost during the sweep.
            ScanInProgressError: Another scan is running.
        """
        if self._scan_lock.locked():
            raise ScanInProgressError()
        if not self._supervisor.is_ready():
            raise NotInGameError()

        async with self._scan_lock:
            logger.info("[SCAN] Scan started")
            players = await self._enumerator.enumerate()
            result = await self._pipeline.escalate(players, budget=self.scan_ai_budget)
            self._last_scan = result
            logger.info(
                "[SCAN] Scan finished: %d players, %d BAN, %d REVIEW, %d OK",
                result.total_players,
                len(result.ban_list),
                len(result.review_list),
                len(result.ok_list),
            )
            return result

    async def escalate_last_scan(self, budget: int | None = None) -> ScanResult:
        """Run the AI tier over the REVIEW list of the last scan.

        The cached last scan itself is left unchanged.

        Raises:
            NoScanAvailableError: No scan has completed yet.
            AIUnavailableError: AI is disabled or has no credentials.
        """
        last_scan = self._last_scan
        if last_scan is None:
            raise NoScanAvailableError()
        if not self._arbitrator.available:
            raise AIUnavailableError(self._arbitrator.unavailable_reason or None)

        limit = self.review_budget if budget is None else max(0, budget)
        return await self._pipeline.escalate_review_tier(last_scan, limit)

    async def check_nickname(self, raw: str) -> NicknameCheck:
        """Classify one nickname with the rules and, when available, the AI.

        Raises:
            InvalidNicknameError: Blank input or longer than 32 characters.
        """
        nickname = str(raw or "").strip()
        if not nickname or len(nickname) > MAX_CHECK_LENGTH:
            raise InvalidNicknameError()

        verdict = classify(nickname, self._rule_store.current)
        decision = None
        if self._arbitrator.available:
            decision = await self._arbitrator.arbitrate(nickname, verdict.normalized)
        return NicknameCheck(
            nickname=nickname,
            normalized=verdict.normalized,
            rules_verdict=verdict,
            ai_decision=decision,
        )

    def reload_rules(self) -> RuleSet:
        rule_set = self._rule_store.reload()
        logger.info("[SCAN] Rules reloaded from %s", rule_set.source)
        return rule_set
