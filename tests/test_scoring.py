from __future__ import annotations

import math

import pytest

from hat_core import scoring
from hat_core.errors import UnknownCategoryError, UnknownOptionError, UnknownTraitError
from hat_core.types import ForcedChoiceItem, ForcedChoiceOption, Timing
from tests.conftest import likert_item

TRAITS = ["t1", "t2"]
CATS = ["H1", "H2"]
WEIGHTS = {"H1": {"t1": 1.0, "t2": 0.0}, "H2": {"t1": 0.0, "t2": 1.0}}


def _state():
    return scoring.ScoringState.create(TRAITS, CATS, WEIGHTS)


def test_new_state_is_uniform():
    st = _state()
    assert st.probabilities == pytest.approx({"H1": 0.5, "H2": 0.5})


def test_likert_top_response_with_full_weight():
    st = _state()
    out = scoring.apply_likert(st, likert_item(trait_weights={"t1": 1.0}), 5, 30.0)
    assert out["time_weight"] == pytest.approx(1.0)
    assert out["latent"] == pytest.approx(2.5)
    assert st.trait_scores == pytest.approx({"t1": 2.5, "t2": 0.0})

    probs = scoring.recompute(st)
    assert st.category_scores == pytest.approx({"H1": 2.5, "H2": 0.0})
    expected = 1.0 / (1.0 + math.exp(-2.5))
    assert probs["H1"] == pytest.approx(expected)
    assert probs["H1"] == pytest.approx(0.924, abs=1e-3)
    assert probs["H2"] == pytest.approx(0.076, abs=1e-3)


def test_likert_does_not_touch_probabilities_until_recompute():
    st = _state()
    scoring.apply_likert(st, likert_item(), 5, 30.0)
    assert st.probabilities == pytest.approx({"H1": 0.5, "H2": 0.5})


def test_discrimination_and_trait_weight_scale_contribution():
    st = _state()
    item = likert_item(trait_weights={"t1": 0.5, "t2": -1.0}, a=2.0)
    scoring.apply_likert(st, item, 4, 30.0)
    # latent 1.5, base 3.0
    assert st.trait_scores["t1"] == pytest.approx(1.5)
    assert st.trait_scores["t2"] == pytest.approx(-3.0)


def test_zero_time_weight_leaves_scores_unchanged():
    st = _state()
    scoring.apply_likert(st, likert_item(), 5, None)
    assert st.trait_scores == {"t1": 0.0, "t2": 0.0}


def test_unknown_trait_raises_before_mutating():
    st = _state()
    item = likert_item(trait_weights={"t1": 1.0, "nope": 1.0})
    with pytest.raises(UnknownTraitError) as exc:
        scoring.apply_likert(st, item, 5, 30.0)
    assert exc.value.trait == "nope"
    assert st.trait_scores == {"t1": 0.0, "t2": 0.0}


def test_nan_response_raises_before_mutating():
    st = _state()
    with pytest.raises(ValueError):
        scoring.apply_likert(st, likert_item(), math.nan, 30.0)
    assert st.trait_scores == {"t1": 0.0, "t2": 0.0}


def test_weights_referencing_unknown_trait_raise_on_recompute():
    st = scoring.ScoringState.create(TRAITS, CATS, WEIGHTS)
    st.weights["H1"]["ghost"] = 1.0
    with pytest.raises(UnknownTraitError):
        scoring.recompute(st)


def test_forced_choice_nudge_from_even_scores():
    st = _state()
    delta = scoring.apply_forced_choice(st, "H1", "H2", 1.0)
    assert delta == pytest.approx(0.05)
    assert st.category_scores == pytest.approx({"H1": 0.05, "H2": -0.05})
    assert st.probabilities["H1"] == pytest.approx(0.525, abs=1e-3)
    assert st.probabilities["H2"] == pytest.approx(0.475, abs=1e-3)


def test_expected_pick_moves_less_than_surprising_pick():
    st = _state()
    st.category_scores = {"H1": 2.0, "H2": 0.0}
    expected_pick = scoring.apply_forced_choice(st, "H1", "H2", 1.0)
    st.category_scores = {"H1": 2.0, "H2": 0.0}
    surprise_pick = scoring.apply_forced_choice(st, "H2", "H1", 1.0)
    assert 0.0 < expected_pick < surprise_pick


def test_forced_choice_unknown_category():
    st = _state()
    with pytest.raises(UnknownCategoryError):
        scoring.apply_forced_choice(st, "H1", "H9", 1.0)


def _fc_item():
    timing = Timing(expected_time_sec=10, rapid_threshold_sec=4, down_weight_factor=0.5)
    return ForcedChoiceItem(
        id="fc1",
        category_pair=("H1", "H2"),
        stem="which?",
        options=(
            ForcedChoiceOption(key="A", text="one", category="H1"),
            ForcedChoiceOption(key="B", text="two", category="H2"),
        ),
        timing=timing,
    )


def test_forced_choice_answer_resolves_key_case_insensitively():
    st = _state()
    out = scoring.apply_forced_choice_answer(st, _fc_item(), "b", 30.0)
    assert out["chosen"] == "H2"
    assert out["other"] == "H1"
    assert out["time_weight"] == pytest.approx(1.0)
    assert st.category_scores["H2"] > st.category_scores["H1"]


def test_forced_choice_answer_unknown_key():
    st = _state()
    with pytest.raises(UnknownOptionError):
        scoring.apply_forced_choice_answer(st, _fc_item(), "Z", 30.0)


@pytest.mark.parametrize(
    "scores",
    [
        {"a": 0.0, "b": 0.0, "c": 0.0},
        {"a": 5.0, "b": -3.0, "c": 0.1},
        {"a": 900.0, "b": 899.0, "c": -900.0},
    ],
)
def test_softmax_sums_to_one_and_is_shift_invariant(scores):
    order = list(scores)
    probs = scoring.softmax(scores, order)
    assert sum(probs.values()) == pytest.approx(1.0, abs=1e-9)
    assert all(p >= 0.0 for p in probs.values())
    shifted = scoring.softmax({k: v + 123.0 for k, v in scores.items()}, order)
    for k in order:
        assert shifted[k] == pytest.approx(probs[k], abs=1e-12)


def test_recompute_is_idempotent():
    st = _state()
    scoring.apply_likert(st, likert_item(), 4, 30.0)
    first = scoring.recompute(st).copy()
    second = scoring.recompute(st).copy()
    assert first == second


def test_top_category_prefers_first_in_order_on_exact_tie():
    st = scoring.ScoringState.create(["t"], ["X", "Y", "Z"], {"X": {"t": 0}, "Y": {"t": 0}, "Z": {"t": 0}})
    assert scoring.top_category(st) == "X"
    st.category_scores = {"X": 0.0, "Y": 1.0, "Z": 1.0}
    scoring.refresh_probabilities(st)
    assert scoring.top_category(st) == "Y"
