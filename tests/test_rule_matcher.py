"""Tests for the deterministic rules tier."""

import pytest

from tabscan.configuration.rule_loader import build_rule_set
from tabscan.datatypes.moderation_datatypes import VerdictSource, VerdictType
from tabscan.moderation.rule_matcher import classify, is_legal_nickname


@pytest.mark.parametrize("name", ["Steve", "abc", "Player_123", "A" * 16])
def test_legal_nicknames(name):
    assert is_legal_nickname(name)


@pytest.mark.parametrize("name", ["ab", "A" * 17, "bad-name", "with space", "", "/msg", "Steve\n"])
def test_illegal_nicknames(name):
    assert not is_legal_nickname(name)


def test_leet_rule_word_matches():
    rules = build_rule_set(
        {
            "normalization": {"leet_map": {"4": "a"}},
            "rules": [{"id": "STAFF", "action": "BAN", "words": ["adm1n"]}],
        }
    )
    verdict = classify("Adm1n_123", rules)
    assert verdict.verdict is VerdictType.BAN
    assert verdict.rule_id == "STAFF"
    assert verdict.reason == "STAFF"


def test_empty_rule_set_is_ok():
    rules = build_rule_set({"rules": [], "review": [], "whitelist_exact": []})
    verdict = classify("Anything", rules)
    assert verdict.verdict is VerdictType.OK
    assert verdict.source is VerdictSource.RULES
    assert verdict.confidence is None


def test_whitelist_beats_review_word(sample_rules):
    # "skillful" contains the review word "kill"
    verdict = classify("SkillFul", sample_rules)
    assert verdict.verdict is VerdictType.OK
    assert verdict.reason == "whitelist"


def test_whitelist_beats_hard_rule_word():
    rules = build_rule_set(
        {
            "rules": [{"id": "STAFF", "action": "BAN", "words": ["admin"]}],
            "review": ["fun"],
            "whitelist_exact": ["administrator_of_fun"],
        }
    )
    verdict = classify("Administrator_Of_Fun", rules)
    assert verdict.verdict is VerdictType.OK
    assert verdict.reason == "whitelist"
    assert classify("Administrator", rules).verdict is VerdictType.BAN


def test_whitelist_is_exact_not_substring(sample_rules):
    verdict = classify("skillful_killer", sample_rules)
    assert verdict.verdict is VerdictType.REVIEW


def test_first_matching_rule_wins():
    rules = build_rule_set(
        {
            "rules": [
                {"id": "FIRST", "action": "REVIEW", "reason": "first", "words": ["mod"]},
                {"id": "SECOND", "action": "BAN", "reason": "second", "words": ["moderator"]},
            ]
        }
    )
    verdict = classify("TheModerator", rules)
    assert verdict.rule_id == "FIRST"
    assert verdict.verdict is VerdictType.REVIEW


def test_hard_rule_beats_review_words(sample_rules):
    verdict = classify("Admin_Killer", sample_rules)
    assert verdict.verdict is VerdictType.BAN
    assert verdict.reason == "staff impersonation"


def test_review_word(sample_rules):
    verdict = classify("xX_Drug_Xx", sample_rules)
    assert verdict.verdict is VerdictType.REVIEW
    assert verdict.reason == "suspicious word"


def test_obfuscated_ban_word(sample_rules):
    verdict = classify("M.0.D.E.R.4.T.0.R", sample_rules)
    assert verdict.verdict is VerdictType.BAN
    assert verdict.normalized == "moderator"


def test_clean_nickname(sample_rules):
    verdict = classify("Notch", sample_rules)
    assert verdict.verdict is VerdictType.OK
    assert verdict.nickname == "Notch"
    assert verdict.normalized == "notch"
