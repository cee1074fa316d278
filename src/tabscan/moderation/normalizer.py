"""Nickname normalization.

Turns a raw nickname into the canonical form the rule matcher compares
against. The steps always run in this order:

1. strip ``§`` colour/formatting escapes
2. lowercase (if enabled)
3. remove invisible characters
4. homoglyph + leet substitution, character by character
5. remove separators
6. collapse repeated characters down to ``max_repeat``
"""

from __future__ import annotations

import re

from tabscan.datatypes.rule_datatypes import NormalizationSettings, RuleSet

FORMATTING_CODE_PATTERN = re.compile(r"§[0-9A-FK-ORXa-fk-orx]?")
REPEAT_RUN_PATTERN = re.compile(r"(.)\1+", re.DOTALL)

MIN_REPEAT = 1
MAX_REPEAT = 5


def clamp_max_repeat(value: object) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 2
    return max(MIN_REPEAT, min(MAX_REPEAT, number))


def collapse_repeats(text: str, max_repeat: int) -> str:
    """Shorten every run of one character to at most ``max_repeat`` occurrences."""
    limit = clamp_max_repeat(max_repeat)
    return REPEAT_RUN_PATTERN.sub(lambda m: m.group(1) * min(len(m.group(0)), limit), text)


def apply_normalization(raw: str, settings: NormalizationSettings) -> str:
    """Normalize ``raw`` with an explicit settings object.

    Used directly when a rule set is being built (its words must be normalized
    before the rule set exists); everything else goes through :func:`normalize`.
    """
    text = FORMATTING_CODE_PATTERN.sub("", str(raw))

    if settings.lowercase:
        text = text.lower()

    if settings.strip_invisibles is not None:
        text = settings.strip_invisibles.sub("", text)

    if settings.substitutions:
        table = settings.substitutions
        text = "".join(table.get(char, char) for char in text)

    if settings.separators is not None:
        text = settings.separators.sub("", text)

    if settings.collapse_repeats:
        text = collapse_repeats(text, settings.max_repeat)

    return text


def normalize(raw: str, rules: RuleSet) -> str:
    """Return the normalized form of ``raw`` under ``rules``."""
    return apply_normalization(raw, rules.normalization)
