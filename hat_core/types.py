from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple
@dataclass(frozen=True)
class Timing:
    expected_time_sec: float
    rapid_threshold_sec: float
    down_weight_factor: float
@dataclass(frozen=True)
class IrtThresholds:
    b1: float; b2: float; b3: float; b4: float
    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.b1, self.b2, self.b3, self.b4)
@dataclass(frozen=True)
class IrtParams:
    a: float
    thresholds: IrtThresholds
    model: str = "GRM"
@dataclass(frozen=True)
class LikertItem:
    id: str; text: str
    trait_weights: Dict[str, float]
    irt: IrtParams
    timing: Timing
@dataclass(frozen=True)
class ForcedChoiceOption:
    key: str; text: str; category: str
@dataclass(frozen=True)
class ForcedChoiceItem:
    id: str
    category_pair: Tuple[str, str]
    stem: str
    options: Tuple[ForcedChoiceOption, ForcedChoiceOption]
    timing: Timing

    def option_for(self, key: str) -> Optional[ForcedChoiceOption]:
        wanted = (key or "").strip().lower()
        for opt in self.options:
            if opt.key.lower() == wanted:
                return opt
        return None
@dataclass(frozen=True)
class ItemBank:
    traits: List[str]
    categories: List[str]
    weights: Dict[str, Dict[str, float]]
    likert_items: List[LikertItem]
    forced_choice_items: List[ForcedChoiceItem]
    forms: Dict[str, List[str]] = field(default_factory=dict)
@dataclass
class QuizResult:
    mode: str
    top_category: str
    probabilities: Dict[str, float]
    trait_scores: Dict[str, float]
    category_scores: Dict[str, float]
    initial_tie_group: List[str] = field(default_factory=list)
    final_tie_group: List[str] = field(default_factory=list)
    forced_choice_answers: int = 0
    likert_answers: int = 0
    audit_events: List[Dict[str, object]] = field(default_factory=list)
