"""Loading, compiling and hot-reloading of ``rules.json``.

``load_rule_set`` never raises: a missing or unreadable file yields the
built-in defaults, and a single broken pattern or rule entry is skipped with a
warning while the rest of the file stays in effect. ``RuleSetStore`` keeps the
current compiled snapshot and replaces it as a whole on reload.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple

from tabscan.datatypes.errors import ConfigError
from tabscan.datatypes.moderation_datatypes import VerdictType
from tabscan.datatypes.rule_datatypes import (
    DEFAULT_LEET_MAP,
    DEFAULT_MAX_REPEAT,
    DEFAULT_SEPARATORS_REGEX,
    DEFAULT_STRIP_INVISIBLES_REGEX,
    HOMOGLYPH_MAP,
    NormalizationSettings,
    Rule,
    RuleSet,
)
from tabscan.moderation.normalizer import apply_normalization, clamp_max_repeat
from tabscan.util.logger import get_logger

logger = get_logger("rule_loader")


DEFAULT_RULES_DATA: Dict[str, Any] = {
    "version": 2,
    "normalization": {
        "lowercase": True,
        "strip_invisibles_regex": DEFAULT_STRIP_INVISIBLES_REGEX,
        "separators_regex": DEFAULT_SEPARATORS_REGEX,
        "collapse_repeats": True,
        "max_repeat": DEFAULT_MAX_REPEAT,
        "leet_map": dict(DEFAULT_LEET_MAP),
    },
    "rules": [],
    "review": [],
    "whitelist_exact": [],
}


def compile_pattern(pattern: Any, field_name: str) -> re.Pattern | None:
    """Compile a user-supplied pattern, returning None (step disabled) when it is broken."""
    if not pattern:
        return None
    try:
        return re.compile(str(pattern))
    except re.error as exc:
        logger.warning("[RULES] Ignoring malformed %s %r: %s", field_name, pattern, exc)
        return None


def build_substitutions(leet_map: Any) -> Dict[str, str]:
    """Merge the built-in homoglyph table with the configured leet map.

    Only single-character keys can be applied character by character; longer
    keys are dropped with a warning. Configured entries win over homoglyphs.
    """
    table = dict(HOMOGLYPH_MAP)
    if not isinstance(leet_map, dict):
        if leet_map:
            logger.warning("[RULES] leet_map must be an object, got %s", type(leet_map).__name__)
        return table

    for key, value in leet_map.items():
        key = str(key)
        if len(key) != 1:
            logger.warning("[RULES] Skipping leet_map key %r: only single characters are supported", key)
            continue
        table[key] = str(value)
    return table


def build_normalization(data: Any) -> NormalizationSettings:
    """Compile the ``normalization`` block; absent keys take the default values."""
    if not isinstance(data, dict):
        data = {}
    merged = {**DEFAULT_RULES_DATA["normalization"], **data}
    return NormalizationSettings(
        lowercase=bool(merged["lowercase"]),
        strip_invisibles=compile_pattern(merged["strip_invisibles_regex"], "strip_invisibles_regex"),
        separators=compile_pattern(merged["separators_regex"], "separators_regex"),
        substitutions=build_substitutions(merged["leet_map"] or {}),
        collapse_repeats=bool(merged["collapse_repeats"]),
        max_repeat=clamp_max_repeat(merged["max_repeat"]),
    )


def normalize_words(words: Any, settings: NormalizationSettings) -> Tuple[str, ...]:
    """Normalize a word list, dropping entries that normalize to nothing."""
    if not isinstance(words, list):
        return ()
    normalized: List[str] = []
    for word in words:
        if word is None:
            continue
        value = apply_normalization(str(word), settings)
        if value and value not in normalized:
            normalized.append(value)
    return tuple(normalized)


def parse_action(value: Any, rule_id: str) -> VerdictType:
    if value is None or value == "":
        return VerdictType.BAN
    try:
        return VerdictType(str(value).strip().upper())
    except ValueError:
        logger.warning("[RULES] Rule %s has unknown action %r; treating it as REVIEW", rule_id, value)
        return VerdictType.REVIEW


def build_rules(entries: Any, settings: NormalizationSettings) -> Tuple[Rule, ...]:
    if not isinstance(entries, list):
        return ()

    rules: List[Rule] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("[RULES] Skipping rule #%d: not an object", index)
            continue
        rule_id = str(entry.get("id") or f"RULE_{index}")
        words = normalize_words(entry.get("words"), settings)
        if not words:
            logger.warning("[RULES] Rule %s has no usable words", rule_id)
        rules.append(
            Rule(
                id=rule_id,
                action=parse_action(entry.get("action"), rule_id),
                reason=str(entry.get("reason") or rule_id),
                words=words,
            )
        )
    return tuple(rules)


def build_rule_set(data: Dict[str, Any], source: str = "defaults") -> RuleSet:
    """Compile a parsed ``rules.json`` mapping into a :class:`RuleSet`.

    Raises:
        ConfigError: If ``data`` is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Rule file {source} must contain a JSON object")

    settings = build_normalization(data.get("normalization"))
    try:
        version = int(data.get("version", 1))
    except (TypeError, ValueError):
        version = 1

    return RuleSet(
        version=version,
        normalization=settings,
        rules=build_rules(data.get("rules"), settings),
        review=normalize_words(data.get("review"), settings),
        whitelist_exact=frozenset(normalize_words(data.get("whitelist_exact"), settings)),
        source=source,
    )


def default_rule_set() -> RuleSet:
    return build_rule_set(DEFAULT_RULES_DATA, source="defaults")


def read_rules_file(path: Path) -> Dict[str, Any]:
    """Read and decode ``path``.

    Raises:
        ConfigError: When the file is missing, unreadable or not valid JSON.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Rule file {path} not found") from exc
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read rule file {path}: {exc}") from exc


def load_rule_set(path: Path) -> RuleSet:
    """Load ``path`` into a rule set, falling back to the defaults on any error."""
    try:
        rule_set = build_rule_set(read_rules_file(path), source=str(path))
    except ConfigError as exc:
        logger.error("[RULES] %s; using built-in defaults", exc)
        return default_rule_set()

    logger.info(
        "[RULES] Loaded %s (version %d): %d rules, %d review words, %d whitelisted",
        path,
        rule_set.version,
        len(rule_set.rules),
        len(rule_set.review),
        len(rule_set.whitelist_exact),
    )
    return rule_set


class RuleSetStore:
    """Owner of the current rule set snapshot.

    Readers take ``store.current`` once and keep using that object; ``reload``
    swaps the reference in a single assignment, so a scan never sees a half
    updated rule set.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._current: RuleSet = load_rule_set(path)

    @property
    def current(self) -> RuleSet:
        return self._current

    def reload(self) -> RuleSet:
        """Re-read the rule file and install the new snapshot."""
        rule_set = load_rule_set(self.path)
        self._current = rule_set
        return rule_set
