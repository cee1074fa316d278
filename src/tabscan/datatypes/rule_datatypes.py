"""
Immutable rule set model.

A ``RuleSet`` is a compiled snapshot of ``rules.json``: patterns are already
compiled, rule and review words are already normalized. Reloading builds a new
snapshot instead of mutating the current one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple

from tabscan.datatypes.moderation_datatypes import VerdictType


DEFAULT_STRIP_INVISIBLES_REGEX = "[\\u200B-\\u200F\\u202A-\\u202E\\u2060\\uFEFF]"
DEFAULT_SEPARATORS_REGEX = "[\\s\\-_.:,;|/\\\\~`'\"^*+=()\\[\\]{}<>]+"
DEFAULT_LEET_MAP: Dict[str, str] = {
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "@": "a",
    "$": "s",
}
DEFAULT_MAX_REPEAT = 2

# Cyrillic look-alikes folded onto Latin letters
HOMOGLYPH_MAP: Dict[str, str] = {
    "а": "a", "в": "b", "е": "e", "ё": "e", "и": "u", "й": "u",
    "к": "k", "м": "m", "н": "h", "о": "o", "п": "n", "р": "p", "с": "c",
    "т": "t", "у": "y", "х": "x", "ь": "b", "і": "i", "ї": "i", "ј": "j",
    "ѕ": "s", "ԁ": "d", "ɡ": "g",
    "А": "A", "В": "B", "Е": "E", "Ё": "E", "К": "K", "М": "M",
    "Н": "H", "О": "O", "Р": "P", "С": "C", "Т": "T", "У": "Y", "Х": "X",
    "І": "I", "Ј": "J", "Ѕ": "S",
}


@dataclass(frozen=True)
class NormalizationSettings:
    """Compiled normalization step configuration.

    A pattern left as ``None`` disables its step.
    """

    lowercase: bool = True
    strip_invisibles: re.Pattern | None = None
    separators: re.Pattern | None = None
    substitutions: Dict[str, str] = field(default_factory=dict)
    collapse_repeats: bool = True
    max_repeat: int = DEFAULT_MAX_REPEAT


@dataclass(frozen=True)
class Rule:
    """A hard rule: any of ``words`` inside a normalized nickname triggers ``action``."""

    id: str
    action: VerdictType
    reason: str
    words: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RuleSet:
    version: int = 2
    normalization: NormalizationSettings = field(default_factory=NormalizationSettings)
    rules: Tuple[Rule, ...] = ()
    review: Tuple[str, ...] = ()
    whitelist_exact: FrozenSet[str] = frozenset()
    source: str = "defaults"
