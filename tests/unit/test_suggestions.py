from __future__ import annotations

import pytest

from roster_import.services.suggestions import (
    Suggestion,
    normalize_name,
    similarity,
    suggest,
    top_matches,
)


def test_similarity_bounds():
    assert similarity("Kitchen", "Kitchen") == 1.0
    assert similarity("", "") == 0.0
    assert similarity("abc", "xyz") == 0.0
    assert 0.0 <= similarity("Kichen", "Kitchen") <= 1.0


def test_similarity_ignores_case_and_spacing():
    assert normalize_name("  Front   Desk ") == "front desk"
    assert similarity(" kitchen ", "KITCHEN") == 1.0


def test_one_edit_confidence():
    assert similarity("Kichen", "Kitchen") == pytest.approx(6 / 7)


def test_suggest_best_candidate():
    match = suggest("Kichen", ["Bar", "Kitchen", "Reception"])
    assert match.name == "Kitchen"
    assert match.confidence == pytest.approx(6 / 7)


def test_suggest_tie_goes_to_first_candidate():
    assert suggest("aa", ["ab", "ba"]).name == "ab"
    assert suggest("aa", ["ba", "ab"]).name == "ba"


def test_suggest_below_threshold_is_none():
    assert suggest("Garden", ["Bar"]) is None
    assert suggest("Kichen", []) is None
    # 0.5 clears 0.4 but not 0.6
    assert suggest("abcd", ["abxy"]) is not None
    assert suggest("abcd", ["abxy"], threshold=0.6) is None


def test_top_matches_ranked_and_limited():
    ranked = top_matches("Kichen", ["Bar", "Kitch", "Kitchen"])
    assert [s.name for s in ranked] == ["Kitchen", "Kitch"]
    assert top_matches("Kichen", ["Kitchen", "Kitchens", "Kitch"], limit=1)[0].name == "Kitchen"


def test_suggestion_to_dict_rounds():
    assert Suggestion("Kitchen", 6 / 7).to_dict() == {"name": "Kitchen", "confidence": 0.8571}
