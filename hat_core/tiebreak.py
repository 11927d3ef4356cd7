"""Forced-choice tie breaking between near-equal categories.

The round logic is an explicit state machine.  :func:`transition` is pure: it
takes a :class:`RoundState`, an event and a read-only probability snapshot
and returns the next state plus the effects the host has to carry out
(show the interlude, ask a question, finish).  :class:`TieBreakerOrchestrator`
is the thin shell that owns the state, applies answers to the scoring record,
fetches items from the rotation and schedules the interlude resumption.

A round pairs every member of the current tie group with every other member
(list order, first-by-first) and asks one question per pair when four or more
categories are tied, two otherwise.  After each round the tie group is
re-evaluated inside itself, so a category dropped once never returns.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from . import config
from .errors import NoItemsForPairError, SessionStateError
from .rotation import ForcedChoiceRotation
from .scheduler import Cancellable, Scheduler
from .scoring import ScoringState, apply_forced_choice_answer, select_ties
from .types import ForcedChoiceItem

log = logging.getLogger(__name__)

Pair = Tuple[str, str]


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_INTERLUDE = "awaiting_interlude"
    AWAITING_ANSWER = "awaiting_answer"
    BETWEEN_PAIRS = "between_pairs"
    BETWEEN_ROUNDS = "between_rounds"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class RoundState:
    phase: Phase
    tie_group: Tuple[str, ...]
    rounds_remaining: int
    pairs: Tuple[Pair, ...] = ()
    pair_index: int = 0
    questions_per_pair: int = 0
    remaining_for_pair: int = 0
    interlude_shown: bool = False
    answered_in_round: int = 0
    planned_in_round: int = 0
    rounds_played: int = 0

    @property
    def current_pair(self) -> Optional[Pair]:
        if 0 <= self.pair_index < len(self.pairs):
            return self.pairs[self.pair_index]
        return None


# ---- events ----
@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class InterludeElapsed:
    pass


@dataclass(frozen=True)
class AnswerRecorded:
    pass


Event = Union[Start, InterludeElapsed, AnswerRecorded]


# ---- effects ----
@dataclass(frozen=True)
class ShowInterlude:
    message: str
    delay_ms: int


@dataclass(frozen=True)
class AskQuestion:
    pair: Pair
    number: int
    total: int


@dataclass(frozen=True)
class Finish:
    tie_group: Tuple[str, ...]


Effect = Union[ShowInterlude, AskQuestion, Finish]


def build_pairs(group: Sequence[str]) -> Tuple[Pair, ...]:
    names = list(group)
    return tuple(
        (names[i], names[j])
        for i in range(len(names))
        for j in range(i + 1, len(names))
    )


def questions_per_pair(group_size: int) -> int:
    return 1 if group_size >= 4 else 2


def _prepare_round(st: RoundState) -> RoundState:
    pairs = build_pairs(st.tie_group)
    qpp = questions_per_pair(len(st.tie_group))
    return replace(
        st,
        pairs=pairs,
        pair_index=0,
        questions_per_pair=qpp,
        remaining_for_pair=qpp if pairs else 0,
        interlude_shown=False,
        answered_in_round=0,
        planned_in_round=len(pairs) * qpp,
    )


def initial_state(tie_group: Sequence[str], rounds: int) -> RoundState:
    st = RoundState(
        phase=Phase.IDLE,
        tie_group=tuple(tie_group),
        rounds_remaining=max(0, int(rounds)),
    )
    return _prepare_round(st)


def step(
    st: RoundState,
    probabilities: Mapping[str, float],
    threshold: float,
    message: str = config.INTERLUDE_MESSAGE,
    delay_ms: int = config.INTERLUDE_DELAY_MS,
) -> Tuple[RoundState, List[Effect]]:
    """One pass of the evaluation loop.

    Returns a non-empty effect list when the loop has to stop (a screen must
    be shown or the session is over); an empty list means the state moved
    through a transient phase and the caller should step again.
    """

    if st.phase is Phase.RESOLVED:
        raise SessionStateError("tie-breaker already resolved")

    if len(st.tie_group) <= 1 or st.rounds_remaining <= 0:
        return replace(st, phase=Phase.RESOLVED), [Finish(st.tie_group)]

    if not st.interlude_shown:
        nxt = replace(st, phase=Phase.AWAITING_INTERLUDE, interlude_shown=True)
        return nxt, [ShowInterlude(message, int(delay_ms))]

    if st.remaining_for_pair > 0:
        nxt = replace(st, phase=Phase.AWAITING_ANSWER)
        return nxt, [AskQuestion(st.pairs[st.pair_index], st.answered_in_round + 1, st.planned_in_round)]

    next_index = st.pair_index + 1
    if next_index < len(st.pairs):
        return (
            replace(
                st,
                phase=Phase.BETWEEN_PAIRS,
                pair_index=next_index,
                remaining_for_pair=st.questions_per_pair,
            ),
            [],
        )

    group = tuple(select_ties(probabilities, threshold, st.tie_group))
    nxt = replace(
        st,
        phase=Phase.BETWEEN_ROUNDS,
        rounds_remaining=st.rounds_remaining - 1,
        rounds_played=st.rounds_played + 1,
        tie_group=group,
    )
    if nxt.rounds_remaining > 0 and len(group) > 1:
        nxt = _prepare_round(nxt)
    return nxt, []


def transition(
    st: RoundState,
    event: Event,
    probabilities: Mapping[str, float],
    threshold: float,
    message: str = config.INTERLUDE_MESSAGE,
    delay_ms: int = config.INTERLUDE_DELAY_MS,
) -> Tuple[RoundState, List[Effect]]:
    """Apply ``event`` and run the loop until the next suspension point."""

    if isinstance(event, Start):
        if st.phase is not Phase.IDLE:
            raise SessionStateError(f"cannot start from phase {st.phase.value}")
    elif isinstance(event, InterludeElapsed):
        if st.phase is not Phase.AWAITING_INTERLUDE:
            raise SessionStateError(f"no interlude pending in phase {st.phase.value}")
    elif isinstance(event, AnswerRecorded):
        if st.phase is not Phase.AWAITING_ANSWER:
            raise SessionStateError(f"no question pending in phase {st.phase.value}")
        st = replace(
            st,
            remaining_for_pair=st.remaining_for_pair - 1,
            answered_in_round=st.answered_in_round + 1,
        )
    else:
        raise SessionStateError(f"unknown event {event!r}")

    while True:
        st, effects = step(st, probabilities, threshold, message, delay_ms)
        if effects:
            return st, effects


class TieBreakerOrchestrator:
    """Runs tie-break rounds against a scoring record.

    The instance is single-use: once :meth:`discard` is called (quiz reset or
    a new session) every method refuses to act and a late interlude callback
    is ignored.
    """

    def __init__(
        self,
        scoring: ScoringState,
        rotation: ForcedChoiceRotation,
        scheduler: Scheduler,
        tie_group: Sequence[str],
        rounds: int,
        threshold: Optional[float] = None,
        interlude_message: Optional[str] = None,
        interlude_delay_ms: Optional[int] = None,
        audit_events: Optional[List[Dict[str, object]]] = None,
        on_change: Optional[Callable[["TieBreakerOrchestrator"], None]] = None,
    ):
        self.scoring = scoring
        self.rotation = rotation
        self.scheduler = scheduler
        self.threshold = config.TIE_THRESHOLD if threshold is None else float(threshold)
        self.interlude_message = interlude_message or config.INTERLUDE_MESSAGE
        self.interlude_delay_ms = (
            config.INTERLUDE_DELAY_MS if interlude_delay_ms is None else int(interlude_delay_ms)
        )
        self.audit_events: List[Dict[str, object]] = audit_events if audit_events is not None else []
        self._on_change = on_change

        self.initial_tie_group: List[str] = list(tie_group)
        self.state = initial_state(tie_group, rounds)
        self.pending_item: Optional[ForcedChoiceItem] = None
        self.question_number = 0
        self.planned_total = 0
        self.answers = 0
        self._handle: Optional[Cancellable] = None
        self._generation = 0
        self._discarded = False

    # ---- read side ----
    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def resolved(self) -> bool:
        return self.state.phase is Phase.RESOLVED

    @property
    def discarded(self) -> bool:
        return self._discarded

    @property
    def tie_group(self) -> List[str]:
        return list(self.state.tie_group)

    @property
    def interlude_pending(self) -> bool:
        return self.state.phase is Phase.AWAITING_INTERLUDE

    # ---- commands ----
    def start(self) -> None:
        self._ensure_live()
        log.info(
            "tiebreak_start group=%s rounds=%d pairs=%d",
            ",".join(self.state.tie_group),
            self.state.rounds_remaining,
            len(self.state.pairs),
        )
        self._dispatch(Start())

    def submit_answer(self, option_key: str, rt_sec: Optional[float]) -> Dict[str, object]:
        self._ensure_live()
        item = self.pending_item
        if self.state.phase is not Phase.AWAITING_ANSWER or item is None:
            raise SessionStateError("no forced-choice question is pending")

        outcome = apply_forced_choice_answer(self.scoring, item, option_key, rt_sec)
        self.answers += 1
        self.audit_events.append(
            {
                "t": datetime.now(timezone.utc).isoformat(),
                "kind": "forced_choice",
                "item_id": item.id,
                "response": option_key,
                "rt_sec": rt_sec,
                "time_weight": outcome["time_weight"],
                "chosen": outcome["chosen"],
                "other": outcome["other"],
                "delta": outcome["delta"],
            }
        )
        self.pending_item = None
        self._dispatch(AnswerRecorded())
        return outcome

    def discard(self) -> None:
        """Stop accepting calls and callbacks; cancel any pending interlude timer."""

        self._discarded = True
        self._generation += 1
        self._cancel_timer()
        self.pending_item = None

    # ---- internals ----
    def _ensure_live(self) -> None:
        if self._discarded:
            raise SessionStateError("tie-breaker session was discarded")

    def _cancel_timer(self) -> None:
        h = self._handle
        if h is not None:
            h.cancel()
            self._handle = None

    def _dispatch(self, event: Event) -> None:
        self.state, effects = transition(
            self.state,
            event,
            self.scoring.probabilities,
            self.threshold,
            self.interlude_message,
            self.interlude_delay_ms,
        )
        for eff in effects:
            self._perform(eff)
        if self._on_change is not None:
            self._on_change(self)

    def _perform(self, eff: Effect) -> None:
        if isinstance(eff, ShowInterlude):
            self._cancel_timer()
            generation = self._generation
            self._handle = self.scheduler.schedule_once(
                eff.delay_ms, lambda: self._resume(generation)
            )
            log.debug("tiebreak_interlude delay_ms=%d", eff.delay_ms)
        elif isinstance(eff, AskQuestion):
            try:
                self.pending_item = self.rotation.next_item(*eff.pair)
            except NoItemsForPairError:
                # nothing left to ask; close the tie-break on the current group
                self._cancel_timer()
                self.pending_item = None
                self.state = replace(self.state, phase=Phase.RESOLVED)
                log.error("tiebreak_aborted pair=%s|%s", eff.pair[0], eff.pair[1])
                raise
            self.question_number = eff.number
            self.planned_total = eff.total
            log.debug(
                "tiebreak_question pair=%s|%s n=%d/%d item=%s",
                eff.pair[0],
                eff.pair[1],
                eff.number,
                eff.total,
                self.pending_item.id,
            )
        elif isinstance(eff, Finish):
            self._cancel_timer()
            self.pending_item = None
            log.info(
                "tiebreak_resolved group=%s rounds_played=%d answers=%d",
                ",".join(eff.tie_group),
                self.state.rounds_played,
                self.answers,
            )

    def _resume(self, generation: int) -> None:
        if self._discarded or generation != self._generation:
            log.debug("tiebreak_stale_resume ignored")
            return
        if self.state.phase is not Phase.AWAITING_INTERLUDE:
            return
        self._handle = None
        self._dispatch(InterludeElapsed())
