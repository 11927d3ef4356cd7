from __future__ import annotations

import math

import pytest

from hat_core.timing import response_time_weight
from hat_core.types import Timing

T = Timing(expected_time_sec=12, rapid_threshold_sec=5, down_weight_factor=0.5)


def test_zero_time_gives_zero_weight():
    assert response_time_weight(0.0, T) == 0.0


def test_anchor_points():
    assert response_time_weight(5.0, T) == pytest.approx(0.5)
    assert response_time_weight(12.0, T) == pytest.approx(1.0)
    assert response_time_weight(60.0, T) == pytest.approx(1.0)


def test_rapid_region_is_proportional():
    assert response_time_weight(2.5, T) == pytest.approx(0.25)


def test_ramp_between_rapid_and_expected():
    # halfway from 5s to 12s -> halfway from d to 1
    assert response_time_weight(8.5, T) == pytest.approx(0.75)


@pytest.mark.parametrize("bad", [None, -1.0, float("nan"), float("inf"), "fast"])
def test_missing_or_invalid_time_is_zero(bad):
    assert response_time_weight(bad, T) == 0.0


def test_weight_is_monotone_and_bounded():
    prev = -1.0
    for step in range(0, 301):
        w = response_time_weight(step / 10.0, T)
        assert 0.0 <= w <= 1.0
        assert w >= prev - 1e-12
        prev = w


def test_expected_equal_to_rapid_does_not_divide_by_zero():
    flat = Timing(expected_time_sec=5, rapid_threshold_sec=5, down_weight_factor=0.4)
    assert response_time_weight(5.0, flat) == pytest.approx(0.4)
    assert response_time_weight(5.1, flat) == 1.0
    assert math.isfinite(response_time_weight(4.0, flat))
