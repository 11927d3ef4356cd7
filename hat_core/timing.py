"""Response-time weighting for quiz answers.

Very fast answers are likely inattentive, so their contribution is scaled
down; answers given at or after the item's expected time get full credit.
"""
from __future__ import annotations

import math

from .types import Timing

__all__ = ["response_time_weight"]


def response_time_weight(rt_sec: float | None, timing: Timing) -> float:
    """Return a multiplier in ``[0, 1]`` for a response latency.

    Parameters
    ----------
    rt_sec: float
        Measured response time in seconds.  ``None``, NaN, infinities and
        negative values carry no signal and yield ``0.0``.
    timing: Timing
        Per-item thresholds ``rapid_threshold_sec`` and ``expected_time_sec``
        plus the ``down_weight_factor`` reached at the rapid threshold.

    Returns
    -------
    float
        ``d * t / rapid`` up to the rapid threshold, ``1.0`` from the expected
        time on, and a linear ramp from ``d`` to ``1.0`` in between.
    """

    if rt_sec is None:
        return 0.0
    try:
        t = float(rt_sec)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(t) or t < 0.0:
        return 0.0

    rapid = float(timing.rapid_threshold_sec)
    expected = float(timing.expected_time_sec)
    d = float(timing.down_weight_factor)

    if rapid > 0.0 and t <= rapid:
        return d * (t / rapid)
    if t >= expected:
        return 1.0

    progress = (t - rapid) / (expected - rapid)
    return d + (1.0 - d) * progress
