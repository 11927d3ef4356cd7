# hat_core/reporting.py
from __future__ import annotations
from typing import Any, Dict, Mapping

from .types import QuizResult

_BAR_WIDTH = 30


# -------- utils: make a result JSON-safe ----------
def result_to_dict(res: QuizResult) -> Dict[str, Any]:
    return {
        "mode": res.mode,
        "top_category": res.top_category,
        "probabilities": dict(res.probabilities),
        "category_scores": dict(res.category_scores),
        "trait_scores": dict(res.trait_scores),
        "initial_tie_group": list(res.initial_tie_group),
        "final_tie_group": list(res.final_tie_group),
        "forced_choice_answers": int(res.forced_choice_answers),
        "likert_answers": int(res.likert_answers),
        "audit_events": [dict(evt) for evt in res.audit_events],
    }


def _bar(frac: float) -> str:
    n = int(round(max(0.0, min(1.0, frac)) * _BAR_WIDTH))
    return "#" * n + "." * (_BAR_WIDTH - n)


def format_probabilities(probs: Mapping[str, float]) -> str:
    width = max((len(k) for k in probs), default=0)
    lines = []
    for name, p in sorted(probs.items(), key=lambda kv: (-kv[1], kv[0])):
        lines.append(f"  {name:<{width}}  {_bar(p)}  {100.0 * p:5.1f}%")
    return "\n".join(lines)


def format_trait_profile(traits: Mapping[str, float]) -> str:
    # traits are unbounded sums; scale bars to the largest magnitude
    width = max((len(k) for k in traits), default=0)
    peak = max((abs(v) for v in traits.values()), default=0.0) or 1.0
    lines = []
    for name, v in traits.items():
        lines.append(f"  {name:<{width}}  {_bar(abs(v) / peak)}  {v:+7.2f}")
    return "\n".join(lines)


def format_result(res: QuizResult) -> str:
    parts = [
        f"The Hat has decided: {res.top_category.upper()}!",
        "",
        "House probabilities:",
        format_probabilities(res.probabilities),
        "",
        "Trait profile:",
        format_trait_profile(res.trait_scores),
    ]
    if len(res.initial_tie_group) > 1:
        parts += [
            "",
            f"Tie between {', '.join(res.initial_tie_group)} settled after "
            f"{res.forced_choice_answers} forced-choice answer(s).",
        ]
    return "\n".join(parts)
