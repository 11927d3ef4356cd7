"""One-shot delayed callbacks for the tie-breaker interlude.

The orchestrator never sleeps; it asks a scheduler to call it back.  The
default :class:`PollingScheduler` is single-threaded: hosts call
:meth:`PollingScheduler.run_due` from their own loop (the HTTP layer does it
at the start of each request, the terminal runner after sleeping).
"""
from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule_once(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable: ...


@dataclass
class _Pending:
    due: float
    seq: int
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class PollingScheduler:
    clock: Callable[[], float] = time.monotonic
    _queue: List[_Pending] = field(default_factory=list)
    _seq: "itertools.count[int]" = field(default_factory=itertools.count)

    def schedule_once(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        handle = _Pending(
            due=self.clock() + max(0, int(delay_ms)) / 1000.0,
            seq=next(self._seq),
            callback=callback,
        )
        self._queue.append(handle)
        return handle

    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled and not h.fired)

    def next_due(self) -> Optional[float]:
        live = [h.due for h in self._queue if not h.cancelled and not h.fired]
        return min(live) if live else None

    def run_due(self) -> int:
        """Fire every callback whose deadline has passed; return how many ran."""

        now = self.clock()
        due = sorted(
            (h for h in self._queue if not h.cancelled and not h.fired and h.due <= now),
            key=lambda h: (h.due, h.seq),
        )
        ran = 0
        for h in due:
            # a callback may cancel handles later in this batch
            if h.cancelled:
                continue
            h.fired = True
            h.callback()
            ran += 1
        self._queue = [h for h in self._queue if not h.cancelled and not h.fired]
        return ran
