from __future__ import annotations

import pytest

from hat_core.errors import UnknownCategoryError
from hat_core.scoring import ScoringState, recompute, select_ties, tie_group

PROBS = {"A": 0.40, "B": 0.30, "C": 0.20, "D": 0.10}


def test_threshold_zero_keeps_only_exact_maximum():
    assert select_ties(PROBS, 0.0, ["A", "B", "C", "D"]) == ["A"]
    assert select_ties({"A": 0.3, "B": 0.3, "C": 0.4}, 0.0, ["A", "B"]) == ["A", "B"]


def test_membership_is_inclusive_at_threshold():
    probs = {"A": 0.5, "B": 0.25, "C": 0.25}
    assert select_ties(probs, 0.25, ["A", "B", "C"]) == ["A", "B", "C"]


def test_subset_order_is_preserved():
    assert select_ties(PROBS, 0.25, ["C", "A", "B"]) == ["C", "A", "B"]
    assert select_ties(PROBS, 0.15, ["D", "B", "A"]) == ["B", "A"]


def test_maximum_is_taken_within_subset():
    assert select_ties(PROBS, 0.05, ["C", "D"]) == ["C"]


def test_empty_subset():
    assert select_ties(PROBS, 0.25, []) == []


def test_unknown_category_in_subset():
    with pytest.raises(UnknownCategoryError):
        select_ties(PROBS, 0.25, ["A", "Q"])


def test_tie_group_defaults_to_all_categories():
    st = ScoringState.create(["t"], ["X", "Y"], {"X": {"t": 1.0}, "Y": {"t": 0.0}})
    assert tie_group(st, 0.25) == ["X", "Y"]
    st.trait_scores["t"] = 10.0
    recompute(st)
    assert tie_group(st, 0.25) == ["X"]
    assert tie_group(st, 0.25, ["Y"]) == ["Y"]
