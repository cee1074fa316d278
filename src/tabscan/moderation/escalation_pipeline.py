"""Two-tier escalation: deterministic rules first, AI arbitration on demand.

BAN and OK results of the rules tier are final. REVIEW results may be passed,
one by one and within a per-call budget, to the AI arbitrator, which can
promote them to BAN or demote them to OK only above a confidence threshold.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from tabscan.ai.ai_arbitrator import AIArbitrator
from tabscan.configuration.rule_loader import RuleSetStore
from tabscan.datatypes.moderation_datatypes import ScanResult, Verdict, VerdictSource, VerdictType
from tabscan.moderation.rule_matcher import classify
from tabscan.util.logger import get_logger

logger = get_logger("escalation_pipeline")

LIMIT_EXHAUSTED_REASON = "limit exhausted"


class EscalationPipeline:
    """Compose the rule matcher and the AI arbitrator into final verdicts.

    Args:
        rule_store: Source of the current rule set snapshot.
        arbitrator: AI tier.
        ban_threshold: Minimum AI confidence to promote REVIEW to BAN.
        ok_threshold: Minimum AI confidence to demote REVIEW to OK.
        ai_delay: Pause between two AI calls, in seconds.
    """

    def __init__(
        self,
        rule_store: RuleSetStore,
        arbitrator: AIArbitrator,
        *,
        ban_threshold: float = 0.75,
        ok_threshold: float = 0.75,
        ai_delay: float = 0.0,
    ) -> None:
        self._rule_store = rule_store
        self._arbitrator = arbitrator
        self.ban_threshold = ban_threshold
        self.ok_threshold = ok_threshold
        self.ai_delay = ai_delay

    @property
    def ai_available(self) -> bool:
        return self._arbitrator.available

    def classify_all(self, nicknames: Iterable[str]) -> List[Verdict]:
        """Run the rules tier over ``nicknames`` with one rule set snapshot."""
        rules = self._rule_store.current
        return [classify(nick, rules) for nick in nicknames]

    def apply_ai_decision(self, verdict: Verdict, decision) -> Verdict:
        """Merge an AI decision into a REVIEW verdict according to the thresholds."""
        if decision.decision is VerdictType.BAN and decision.confidence >= self.ban_threshold:
            final = VerdictType.BAN
        elif decision.decision is VerdictType.OK and decision.confidence >= self.ok_threshold:
            final = VerdictType.OK
        else:
            final = VerdictType.REVIEW

        return replace(
            verdict,
            verdict=final,
            reason=decision.reason,
            source=VerdictSource.AI,
            confidence=decision.confidence,
        )

    async def _arbitrate_review(self, review: Iterable[Verdict], budget: int) -> Tuple[List[Verdict], int]:
        """Send REVIEW verdicts to the AI until ``budget`` runs out.

        Returns the updated verdicts (same order) and the number of AI calls made.
        """
        remaining = max(0, budget)
        updated: List[Verdict] = []
        checked = 0

        for verdict in review:
            if remaining <= 0:
                updated.append(replace(verdict, reason=LIMIT_EXHAUSTED_REASON))
                continue
            remaining -= 1

            if checked and self.ai_delay > 0:
                await asyncio.sleep(self.ai_delay)

            decision = await self._arbitrator.arbitrate(verdict.nickname, verdict.normalized)
            checked += 1
            updated.append(self.apply_ai_decision(verdict, decision))

        return updated, checked

    @staticmethod
    def _bucket(verdicts: Iterable[Verdict]) -> Tuple[List[Verdict], List[Verdict], List[Verdict]]:
        ban: List[Verdict] = []
        review: List[Verdict] = []
        ok: List[Verdict] = []
        for verdict in verdicts:
            if verdict.verdict is VerdictType.BAN:
                ban.append(verdict)
            elif verdict.verdict is VerdictType.REVIEW:
                review.append(verdict)
            else:
                ok.append(verdict)
        return ban, review, ok

    async def escalate(self, nicknames: Iterable[str], budget: int = 0) -> ScanResult:
        """Classify ``nicknames``; with ``budget > 0`` and AI available also run the AI tier."""
        names = list(nicknames)
        timestamp = datetime.now(timezone.utc)
        ban, review, ok = self._bucket(self.classify_all(names))
        logger.debug("[ESCALATION] Rules tier: %d BAN, %d REVIEW, %d OK", len(ban), len(review), len(ok))

        result = ScanResult(
            timestamp=timestamp,
            total_players=len(names),
            ban_list=tuple(ban),
            review_list=tuple(review),
            ok_list=tuple(ok),
        )
        if budget > 0 and review and self.ai_available:
            result = await self.escalate_review_tier(result, budget)
        return result

    async def escalate_review_tier(self, last_scan: ScanResult, budget: int) -> ScanResult:
        """Run the AI tier over the REVIEW list of ``last_scan``.

        BAN and OK entries are carried over unchanged; REVIEW entries beyond
        ``budget`` stay REVIEW with reason "limit exhausted".
        """
        candidates = list(last_scan.review_list)
        if not candidates:
            return last_scan

        updated, checked = await self._arbitrate_review(candidates, budget)
        promoted, still_review, demoted = self._bucket(updated)
        logger.info(
            "[ESCALATION] AI checked %d of %d: %d BAN, %d OK, %d still REVIEW",
            checked,
            len(candidates),
            len(promoted),
            len(demoted),
            len(still_review),
        )

        return replace(
            last_scan,
            ban_list=last_scan.ban_list + tuple(promoted),
            review_list=tuple(still_review),
            ok_list=last_scan.ok_list + tuple(demoted),
            ai_checked=last_scan.ai_checked + checked,
            ai_candidates=len(candidates),
        )
