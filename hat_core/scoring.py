from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
import logging, math

from . import config
from .errors import UnknownCategoryError, UnknownOptionError, UnknownTraitError
from .irt import latent_level, sigma
from .timing import response_time_weight
from .types import ForcedChoiceItem, LikertItem

log = logging.getLogger(__name__)


@dataclass
class ScoringState:
    """Mutable scores for one quiz attempt.

    ``category_scores`` is recomputed from ``trait_scores`` by :func:`recompute`,
    except that forced-choice answers nudge two entries directly; after the
    first such answer the category scores are no longer a pure function of
    the trait scores.
    """

    traits: List[str]
    categories: List[str]
    weights: Dict[str, Dict[str, float]]
    trait_scores: Dict[str, float] = field(default_factory=dict)
    category_scores: Dict[str, float] = field(default_factory=dict)
    probabilities: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        traits: Sequence[str],
        categories: Sequence[str],
        weights: Mapping[str, Mapping[str, float]],
    ) -> "ScoringState":
        st = cls(
            traits=list(traits),
            categories=list(categories),
            weights={c: dict(weights.get(c, {})) for c in categories},
            trait_scores={t: 0.0 for t in traits},
            category_scores={c: 0.0 for c in categories},
        )
        recompute(st)
        return st


def softmax(scores: Mapping[str, float], order: Iterable[str]) -> Dict[str, float]:
    keys = list(order)
    if not keys:
        return {}
    peak = max(float(scores[k]) for k in keys)
    exps = {k: math.exp(float(scores[k]) - peak) for k in keys}
    total = sum(exps.values())
    return {k: exps[k] / total for k in keys}


def _weighted_sum(st: ScoringState, category: str) -> float:
    total = 0.0
    for trait, w in st.weights.get(category, {}).items():
        if trait not in st.trait_scores:
            raise UnknownTraitError(trait)
        total += st.trait_scores[trait] * float(w)
    return total


def refresh_probabilities(st: ScoringState) -> Dict[str, float]:
    st.probabilities = softmax(st.category_scores, st.categories)
    return st.probabilities


def recompute(st: ScoringState) -> Dict[str, float]:
    """Rebuild category scores from trait scores, then the softmax distribution."""

    st.category_scores = {c: _weighted_sum(st, c) for c in st.categories}
    return refresh_probabilities(st)


def apply_likert(
    st: ScoringState,
    item: LikertItem,
    response: float,
    rt_sec: Optional[float],
) -> Dict[str, float]:
    """Add one Likert answer to the running trait scores.

    Returns the intermediate values (time weight, latent level, base points)
    for audit and tracing. Category scores are left untouched; callers run
    :func:`recompute` when they need fresh probabilities.
    """

    for trait in item.trait_weights:
        if trait not in st.trait_scores:
            raise UnknownTraitError(trait, item.id)

    weight = response_time_weight(rt_sec, item.timing)
    latent = latent_level(
        response, item.irt.thresholds, config.THETA_MIN, config.THETA_MAX
    )
    base_points = latent * float(item.irt.a)

    for trait, trait_weight in item.trait_weights.items():
        st.trait_scores[trait] += base_points * weight * float(trait_weight)

    log.debug(
        "likert_update item=%s r=%.2f rt=%s weight=%.3f theta=%.3f base=%.3f",
        item.id,
        float(response),
        rt_sec,
        weight,
        latent,
        base_points,
    )
    return {"time_weight": weight, "latent": latent, "base_points": base_points}


def apply_forced_choice(
    st: ScoringState,
    chosen: str,
    other: str,
    time_weight: float,
    learning_rate: Optional[float] = None,
) -> float:
    """Elo-style nudge of two category scores after a binary pick.

    The adjustment is ``lr * time_weight * (1 - σ(s_chosen - s_other))``:
    the less expected the pick, the larger the move.  Returns the delta
    added to ``chosen`` (and subtracted from ``other``).
    """

    for name in (chosen, other):
        if name not in st.category_scores:
            raise UnknownCategoryError(name)

    lr = config.FC_LEARNING_RATE if learning_rate is None else float(learning_rate)
    chosen_score = st.category_scores[chosen]
    other_score = st.category_scores[other]
    predicted = sigma(chosen_score - other_score)
    error = 1.0 - predicted
    delta = lr * float(time_weight) * error

    st.category_scores[chosen] = chosen_score + delta
    st.category_scores[other] = other_score - delta
    refresh_probabilities(st)

    log.debug(
        "forced_choice chosen=%s other=%s p=%.4f weight=%.3f delta=%.4f",
        chosen,
        other,
        predicted,
        time_weight,
        delta,
    )
    return delta


def apply_forced_choice_answer(
    st: ScoringState,
    item: ForcedChoiceItem,
    option_key: str,
    rt_sec: Optional[float],
) -> Dict[str, object]:
    """Resolve ``option_key`` on ``item`` and apply the resulting nudge."""

    opt = item.option_for(option_key)
    if opt is None:
        raise UnknownOptionError(option_key, item.id)
    a, b = item.category_pair
    chosen = opt.category
    other = b if a == chosen else a
    weight = response_time_weight(rt_sec, item.timing)
    delta = apply_forced_choice(st, chosen, other, weight)
    return {"chosen": chosen, "other": other, "time_weight": weight, "delta": delta}


def select_ties(
    probabilities: Mapping[str, float],
    threshold: float,
    candidates: Sequence[str],
) -> List[str]:
    """Candidates within ``threshold`` of the best candidate probability.

    Membership is inclusive and keeps the order of ``candidates``.
    """

    names = list(candidates)
    if not names:
        return []
    for name in names:
        if name not in probabilities:
            raise UnknownCategoryError(name)
    best = max(probabilities[c] for c in names)
    return [c for c in names if (best - probabilities[c]) <= threshold]


def tie_group(
    st: ScoringState,
    threshold: float,
    subset: Optional[Sequence[str]] = None,
) -> List[str]:
    return select_ties(st.probabilities, threshold, st.categories if subset is None else subset)


def top_category(st: ScoringState) -> str:
    best = st.categories[0]
    best_p = st.probabilities[best]
    for name in st.categories[1:]:
        p = st.probabilities[name]
        if p > best_p:
            best, best_p = name, p
    return best
