"""Tests for behavioral normalization."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hsiflux.domains.behavior.domain_logic.normalizer import (
    calculate_coverage,
    normalize,
    quality_flags,
)
from hsiflux.domains.behavior.domain_logic.signal_models import (
    BehaviorQualityFlag,
    CanonicalBehaviorSignals,
    IdleSegment,
)

T0 = datetime(2024, 1, 15, 14, tzinfo=timezone.utc)


def _canonical(duration_sec: float = 600.0, **counts) -> CanonicalBehaviorSignals:
    return CanonicalBehaviorSignals(
        session_id="s",
        device_id="d",
        timezone="UTC",
        start_time=T0,
        end_time=T0 + timedelta(seconds=duration_sec),
        duration_sec=duration_sec,
        **counts,
    )


def test_per_minute_rates():
    n = normalize(_canonical(600.0, total_events=20, scroll_events=10, tap_events=10))
    assert n.events_per_min == pytest.approx(2.0)
    assert n.scrolls_per_min == pytest.approx(1.0)
    assert n.taps_per_min == pytest.approx(1.0)
    assert n.app_switches_per_min == 0.0


def test_coverage_weights():
    c = _canonical(600.0, total_events=20, scroll_events=10, tap_events=10)
    assert calculate_coverage(c) == pytest.approx(0.4 * 2 / 6 + 0.3 + 0.3)
    assert quality_flags(c) == []


def test_full_diversity_is_full_coverage():
    c = _canonical(
        600.0, total_events=12, scroll_events=2, tap_events=2, swipe_events=2,
        call_events=2, typing_events=2, app_switch_events=2,
    )
    assert calculate_coverage(c) == pytest.approx(1.0)


def test_short_sparse_session_flags():
    n = normalize(_canonical(120.0, total_events=5, scroll_events=5))
    assert n.quality_flags == [
        BehaviorQualityFlag.SHORT_SESSION,
        BehaviorQualityFlag.LOW_EVENT_COUNT,
        BehaviorQualityFlag.LOW_EVENT_DIVERSITY,
    ]
    assert n.coverage == pytest.approx(0.4 / 6 + 0.3 * 0.4 + 0.3 * 0.5)


def test_idle_flags():
    segments = tuple(IdleSegment(T0, T0, 170.0) for _ in range(3))
    c = _canonical(
        600.0, total_events=20, scroll_events=10, tap_events=10,
        idle_segments=segments, total_idle_time_sec=510.0,
    )
    flags = quality_flags(c)
    assert BehaviorQualityFlag.HIGH_IDLE_RATIO in flags
    assert BehaviorQualityFlag.SESSION_GAPS in flags


def test_no_events():
    n = normalize(_canonical(600.0))
    assert n.events_per_min == 0.0
    assert n.coverage == pytest.approx(0.3)
