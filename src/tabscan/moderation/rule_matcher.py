"""Deterministic rules tier: whitelist, hard rules, review words."""

from __future__ import annotations

import re

from tabscan.datatypes.moderation_datatypes import Verdict, VerdictSource, VerdictType
from tabscan.datatypes.rule_datatypes import RuleSet
from tabscan.moderation.normalizer import normalize

LEGAL_NICKNAME_PATTERN = re.compile(r"[A-Za-z0-9_]{3,16}")

WHITELIST_REASON = "whitelist"
REVIEW_REASON = "suspicious word"
OK_REASON = "OK"


def is_legal_nickname(name: str) -> bool:
    """Return True for names a vanilla server accepts (3-16 of ``[A-Za-z0-9_]``)."""
    return bool(LEGAL_NICKNAME_PATTERN.fullmatch(name))


def classify(raw: str, rules: RuleSet) -> Verdict:
    """Classify ``raw`` against ``rules``; the first matching tier wins.

    Order: exact whitelist -> hard rules (configured order, first rule wins)
    -> review words -> OK.
    """
    normalized = normalize(raw, rules)

    if normalized in rules.whitelist_exact:
        return Verdict(raw, normalized, VerdictType.OK, WHITELIST_REASON, rule_id="WHITELIST")

    for rule in rules.rules:
        for word in rule.words:
            if word in normalized:
                return Verdict(raw, normalized, rule.action, rule.reason, rule_id=rule.id)

    for word in rules.review:
        if word in normalized:
            return Verdict(raw, normalized, VerdictType.REVIEW, REVIEW_REASON, rule_id="REVIEW_LIST")

    return Verdict(raw, normalized, VerdictType.OK, OK_REASON, source=VerdictSource.RULES)
