# hat_core/engine.py
from __future__ import annotations
from typing import Dict, List, Optional, Sequence
from datetime import datetime, timezone
import logging, random, uuid

from .types import ForcedChoiceItem, ItemBank, LikertItem, QuizResult
from .question_bank import load_bank, likert_count_for_mode, select_likert_items
from .rotation import ForcedChoiceRotation
from .scheduler import PollingScheduler, Scheduler
from .errors import SessionStateError
from .tiebreak import Phase, TieBreakerOrchestrator
from . import scoring
from .config import (
    load_config,
    seed_rng,
    normalize_mode,
    rounds_for_mode,
    TIE_THRESHOLD,
    DEBUG_TRACE,
    TRACE_FIELDS,
)


log = logging.getLogger(__name__)


def _emit_trace(**values: object) -> None:
    if not DEBUG_TRACE:
        return
    ordered = []
    for key in TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(str(val) for val in ordered))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SortingModel:
    """Scoring facade handed to a presentation layer.

    Owns one :class:`~hat_core.scoring.ScoringState` and the forced-choice
    rotation for a single quiz attempt.
    """

    def __init__(self, bank: ItemBank, rng: Optional[random.Random] = None):
        self.bank = bank
        self.rng = rng or random.Random()
        self.state = scoring.ScoringState.create(bank.traits, bank.categories, bank.weights)
        self.rotation = ForcedChoiceRotation(bank.forced_choice_items, self.rng)

    def select_likert_items(self, mode: str) -> List[LikertItem]:
        return select_likert_items(self.bank, mode, self.rng)

    def likert_count_for_mode(self, mode: str) -> int:
        return likert_count_for_mode(self.bank, mode)

    def record_likert_answer(self, item: LikertItem, response: float, rt_sec: Optional[float]) -> Dict[str, float]:
        return scoring.apply_likert(self.state, item, response, rt_sec)

    def recompute_and_get_probabilities(self) -> Dict[str, float]:
        scoring.recompute(self.state)
        return dict(self.state.probabilities)

    def get_probabilities(self) -> Dict[str, float]:
        return dict(self.state.probabilities)

    def get_category_scores(self) -> Dict[str, float]:
        return dict(self.state.category_scores)

    def get_top_category(self) -> str:
        return scoring.top_category(self.state)

    def get_tie_group(self, threshold: float, subset: Optional[Sequence[str]] = None) -> List[str]:
        return scoring.tie_group(self.state, threshold, subset)

    def get_trait_score_snapshot(self) -> Dict[str, float]:
        return {t: self.state.trait_scores[t] for t in self.state.traits}

    def request_next_forced_choice_item(self, category_a: str, category_b: str) -> ForcedChoiceItem:
        return self.rotation.next_item(category_a, category_b)

    def apply_forced_choice_answer(self, item: ForcedChoiceItem, option_key: str, rt_sec: Optional[float]) -> Dict[str, object]:
        return scoring.apply_forced_choice_answer(self.state, item, option_key, rt_sec)


class QuizSession:
    """One quiz attempt: Likert phase, optional tie-break rounds, result."""

    def __init__(
        self,
        mode: str = "standard",
        bank: Optional[ItemBank] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
        tie_threshold: Optional[float] = None,
        interlude_delay_ms: Optional[int] = None,
        session_id: Optional[str] = None,
    ):
        self.cfg = load_config()
        self.rng = rng or seed_rng(self.cfg)
        self.mode = normalize_mode(mode)
        self.bank = bank if bank is not None else load_bank(self.cfg.get("BANK_DIR"))
        self.scheduler: Scheduler = scheduler or PollingScheduler()
        self.tie_threshold = TIE_THRESHOLD if tie_threshold is None else float(tie_threshold)
        self.interlude_delay_ms = interlude_delay_ms
        self.id = session_id or str(uuid.uuid4())
        self._start_fresh()

    def _start_fresh(self) -> None:
        self.model = SortingModel(self.bank, self.rng)
        self.items: List[LikertItem] = self.model.select_likert_items(self.mode)
        self.index = 0
        self.audit_events: List[Dict[str, object]] = []
        self.initial_tie_group: List[str] = []
        self.tiebreak: Optional[TieBreakerOrchestrator] = None
        self._finished_likert = False
        log.info("quiz_start session=%s mode=%s likert=%d", self.id, self.mode, len(self.items))
        if not self.items:
            self._finish_likert_phase()

    # ---- state ----
    @property
    def phase(self) -> str:
        if not self._finished_likert:
            return "likert"
        if self.tiebreak is not None and not self.tiebreak.resolved:
            return "tiebreak"
        return "done"

    @property
    def total_likert(self) -> int:
        return len(self.items)

    def current_item(self) -> Optional[LikertItem]:
        if self.phase != "likert":
            return None
        return self.items[self.index]

    def current_forced_choice(self) -> Optional[ForcedChoiceItem]:
        if self.phase != "tiebreak" or self.tiebreak is None:
            return None
        return self.tiebreak.pending_item

    @property
    def tiebreak_phase(self) -> Optional[Phase]:
        return self.tiebreak.phase if self.tiebreak is not None else None

    # ---- answers ----
    def answer_likert(self, value: float, rt_sec: Optional[float]) -> None:
        item = self.current_item()
        if item is None:
            raise SessionStateError("no Likert item is pending")
        metrics = self.model.record_likert_answer(item, value, rt_sec)
        self.audit_events.append(
            {
                "t": _now_iso(),
                "kind": "likert",
                "item_id": item.id,
                "response": float(value),
                "rt_sec": rt_sec,
                "time_weight": metrics["time_weight"],
                "latent": metrics["latent"],
            }
        )
        _emit_trace(
            kind="likert",
            item_id=item.id,
            response=value,
            rt_sec=rt_sec,
            time_weight=round(metrics["time_weight"], 4),
            latent=round(metrics["latent"], 4),
        )
        self.index += 1
        if self.index >= len(self.items):
            self._finish_likert_phase()

    def answer_forced_choice(self, option_key: str, rt_sec: Optional[float]) -> Dict[str, object]:
        if self.phase != "tiebreak" or self.tiebreak is None:
            raise SessionStateError("no tie-breaker is running")
        outcome = self.tiebreak.submit_answer(option_key, rt_sec)
        _emit_trace(
            kind="forced_choice",
            item_id=self.audit_events[-1].get("item_id") if self.audit_events else None,
            response=option_key,
            chosen=outcome["chosen"],
            other=outcome["other"],
            delta=round(float(outcome["delta"]), 4),
            top=self.model.get_top_category(),
        )
        return outcome

    def _finish_likert_phase(self) -> None:
        self._finished_likert = True
        probs = self.model.recompute_and_get_probabilities()
        group = self.model.get_tie_group(self.tie_threshold)
        self.initial_tie_group = list(group)
        log.info(
            "likert_done session=%s top=%s p=%.3f tie=%s",
            self.id,
            self.model.get_top_category(),
            max(probs.values()) if probs else 0.0,
            ",".join(group),
        )
        if len(group) <= 1:
            return
        self.tiebreak = TieBreakerOrchestrator(
            self.model.state,
            self.model.rotation,
            self.scheduler,
            group,
            rounds_for_mode(self.mode),
            threshold=self.tie_threshold,
            interlude_delay_ms=self.interlude_delay_ms,
            audit_events=self.audit_events,
        )
        self.tiebreak.start()

    # ---- lifecycle ----
    def reset(self) -> None:
        """Drop all progress and start over with a fresh item order.

        Any in-flight interlude callback belongs to the discarded orchestrator
        and will be ignored.
        """

        if self.tiebreak is not None:
            self.tiebreak.discard()
        log.info("quiz_reset session=%s", self.id)
        self._start_fresh()

    def close(self) -> None:
        if self.tiebreak is not None:
            self.tiebreak.discard()

    def finalize(self) -> QuizResult:
        if self.phase != "done":
            raise SessionStateError(f"quiz not finished (phase={self.phase})")
        final_group = self.tiebreak.tie_group if self.tiebreak is not None else list(self.initial_tie_group)
        return QuizResult(
            mode=self.mode,
            top_category=self.model.get_top_category(),
            probabilities=self.model.get_probabilities(),
            trait_scores=self.model.get_trait_score_snapshot(),
            category_scores=self.model.get_category_scores(),
            initial_tie_group=list(self.initial_tie_group),
            final_tie_group=list(final_group),
            forced_choice_answers=self.tiebreak.answers if self.tiebreak is not None else 0,
            likert_answers=self.index,
            audit_events=[dict(evt) for evt in self.audit_events],
        )
