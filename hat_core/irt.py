"""Graded-response helpers used by the Likert scoring path.

A 1..5 self-report is mapped onto a continuous latent level (theta) by
taking the midpoint of each response category on the theta axis, where the
category boundaries are the item's ordered thresholds ``b1..b4`` and the
outer categories are closed by the global ``THETA_MIN``/``THETA_MAX`` bounds.
"""
from __future__ import annotations

import math
from typing import Tuple

from .config import THETA_MAX, THETA_MIN
from .types import IrtThresholds

__all__ = [
    "sigma",
    "category_midpoints",
    "latent_level",
]


def sigma(x: float) -> float:
    """Return the logistic function ``σ(x) = 1 / (1 + e^{−x})``.

    The implementation guards against overflow for large negative inputs by
    handling the positive and negative halves of the real line separately.
    """

    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def category_midpoints(
    thresholds: IrtThresholds,
    theta_min: float = THETA_MIN,
    theta_max: float = THETA_MAX,
) -> Tuple[float, float, float, float, float]:
    """Midpoints of the five response categories on the theta axis."""

    b1, b2, b3, b4 = thresholds.as_tuple()
    return (
        (theta_min + b1) * 0.5,
        (b1 + b2) * 0.5,
        (b2 + b3) * 0.5,
        (b3 + b4) * 0.5,
        (b4 + theta_max) * 0.5,
    )


def latent_level(
    response: float,
    thresholds: IrtThresholds,
    theta_min: float = THETA_MIN,
    theta_max: float = THETA_MAX,
) -> float:
    """Estimate theta for a (possibly fractional) 1..5 response.

    Parameters
    ----------
    response: float
        Likert response; finite values outside ``[1, 5]`` are clamped.
    thresholds: IrtThresholds
        Ordered category thresholds of the item.

    Returns
    -------
    float
        The category midpoint for integral responses, otherwise the linear
        interpolation between the midpoints of ``floor(r)`` and ``floor(r)+1``.

    Raises
    ------
    ValueError
        If the response is NaN or infinite.
    """

    r = float(response)
    if not math.isfinite(r):
        raise ValueError(f"Likert response must be finite, got {response!r}")
    mids = category_midpoints(thresholds, theta_min, theta_max)
    r = max(1.0, min(5.0, r))
    lo = int(math.floor(r))
    frac = r - lo

    lo_mid = mids[lo - 1]
    if frac == 0.0:
        return lo_mid
    hi_mid = mids[min(lo, 4)]
    return lo_mid + frac * (hi_mid - lo_mid)


if __name__ == "__main__":  # pragma: no cover - developer utility
    # Inline sanity checks for quick confidence during refactors.
    th = IrtThresholds(-2.0, -1.0, 1.0, 2.0)
    assert abs(sigma(0.0) - 0.5) < 1e-9
    assert abs(latent_level(5, th) - 2.5) < 1e-9
    assert abs(latent_level(3, th) - 0.0) < 1e-9
    for step in range(9):
        r = 1.0 + step * 0.5
        print(f"r={r:.1f} theta={latent_level(r, th):+.3f}")
