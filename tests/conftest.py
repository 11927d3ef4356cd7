from __future__ import annotations

import pytest

from hat_core.question_bank import pair_key, parse_bank
from hat_core.scheduler import PollingScheduler
from hat_core.types import IrtParams, IrtThresholds, ItemBank, LikertItem, Timing

DEFAULT_CATEGORIES = ("Alpha", "Beta", "Gamma")
TIMING = {"expected_time_sec": 10, "rapid_threshold_sec": 4, "down_weight_factor": 0.5}


def build_bank_docs(
    *,
    categories: tuple[str, ...] | list[str] = DEFAULT_CATEGORIES,
    likert_per_trait: int = 2,
    items_per_pair: int = 2,
) -> tuple[dict, dict, dict]:
    """Raw JSON documents for a deterministic synthetic bank.

    Every category owns exactly one trait (its lower-cased name) with weight
    1.0, so a Likert answer on that trait moves only that category.
    """

    cats = list(categories)
    traits = [c.lower() for c in cats]
    category_doc = {
        "traits": traits,
        "categories": cats,
        "weights": {c: {t: (1.0 if t == c.lower() else 0.0) for t in traits} for c in cats},
    }

    likert_items = []
    for t in traits:
        for idx in range(likert_per_trait):
            likert_items.append(
                {
                    "id": f"{t}_{idx}",
                    "text": f"I show {t} #{idx}",
                    "trait_weights": {t: 1.0},
                    "irt": {
                        "model": "GRM",
                        "a": 1.0,
                        "thresholds": {"b1": -2.0, "b2": -1.0, "b3": 1.0, "b4": 2.0},
                    },
                }
            )
    ids = [it["id"] for it in likert_items]
    likert_doc = {
        "timing": dict(TIMING),
        "forms": {"quick": ids[: len(traits)], "standard": ids[: 2 * len(traits)]},
        "items": likert_items,
    }

    forced_items = []
    for i in range(len(cats)):
        for j in range(i + 1, len(cats)):
            a, b = cats[i], cats[j]
            for idx in range(items_per_pair):
                forced_items.append(
                    {
                        "id": f"fc_{pair_key(a, b)}_{idx}",
                        "category_pair": [a, b],
                        "stem": f"{a} or {b}? #{idx}",
                        "options": [
                            {"key": "A", "text": f"Pick {a}", "category": a},
                            {"key": "B", "text": f"Pick {b}", "category": b},
                        ],
                    }
                )
    forced_doc = {"timing": dict(TIMING), "items": forced_items}
    return category_doc, likert_doc, forced_doc


def build_synthetic_bank(**kwargs) -> ItemBank:
    """Create a deterministic synthetic bank for tests and smoke runs."""

    return parse_bank(*build_bank_docs(**kwargs))


def likert_item(
    item_id: str = "L1",
    trait_weights: dict[str, float] | None = None,
    a: float = 1.0,
    thresholds: tuple[float, float, float, float] = (-2.0, -1.0, 1.0, 2.0),
    timing: Timing | None = None,
) -> LikertItem:
    return LikertItem(
        id=item_id,
        text=f"statement {item_id}",
        trait_weights=trait_weights or {"t1": 1.0},
        irt=IrtParams(a=a, thresholds=IrtThresholds(*thresholds)),
        timing=timing or Timing(expected_time_sec=10, rapid_threshold_sec=4, down_weight_factor=0.5),
    )


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: int) -> None:
        self.now += ms / 1000.0


@pytest.fixture
def synthetic_bank() -> ItemBank:
    return build_synthetic_bank()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> PollingScheduler:
    return PollingScheduler(clock=clock)
