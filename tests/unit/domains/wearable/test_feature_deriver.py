"""Tests for physiological feature derivation."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hsiflux.domains.wearable.domain_logic.feature_deriver import (
    compute_deep_sleep_ratio,
    compute_normalized_load,
    compute_rem_sleep_ratio,
    compute_sleep_efficiency,
    compute_sleep_fragmentation,
    derive,
)
from hsiflux.domains.wearable.domain_logic.signal_models import (
    CanonicalSleep,
    CanonicalWearSignals,
    NormalizedSignals,
    Vendor,
)


def _normalized(sleep: CanonicalSleep | None = None, *, strain=None, recovery=None) -> NormalizedSignals:
    canonical = CanonicalWearSignals(
        vendor=Vendor.WHOOP,
        date="2024-01-15",
        device_id="dev-1",
        timezone="UTC",
        observed_at=datetime(2024, 1, 16, 7, tzinfo=timezone.utc),
        sleep=sleep or CanonicalSleep(),
    )
    return NormalizedSignals(canonical=canonical, strain_score=strain, recovery_score=recovery)


class TestSleepEfficiency:
    def test_ratio(self):
        n = _normalized(CanonicalSleep(total_sleep_minutes=420, time_in_bed_minutes=480))
        assert compute_sleep_efficiency(n) == pytest.approx(0.875)

    def test_clamped(self):
        n = _normalized(CanonicalSleep(total_sleep_minutes=500, time_in_bed_minutes=480))
        assert compute_sleep_efficiency(n) == 1.0

    def test_absent_inputs(self):
        assert compute_sleep_efficiency(_normalized(CanonicalSleep(total_sleep_minutes=420))) is None

    def test_zero_time_in_bed(self):
        n = _normalized(CanonicalSleep(total_sleep_minutes=0, time_in_bed_minutes=0))
        assert compute_sleep_efficiency(n) is None


class TestFragmentation:
    def test_awakenings_per_hour(self):
        n = _normalized(CanonicalSleep(awakenings=7, total_sleep_minutes=420))
        assert compute_sleep_fragmentation(n) == pytest.approx(1.0 / 6.0)

    def test_saturates(self):
        n = _normalized(CanonicalSleep(awakenings=50, total_sleep_minutes=60))
        assert compute_sleep_fragmentation(n) == 1.0

    def test_falls_back_to_awake_time(self):
        n = _normalized(CanonicalSleep(awake_minutes=60, time_in_bed_minutes=480))
        assert compute_sleep_fragmentation(n) == pytest.approx(0.125)

    def test_absent_without_inputs(self):
        assert compute_sleep_fragmentation(_normalized()) is None


class TestStageRatios:
    def test_ratios(self):
        n = _normalized(CanonicalSleep(
            total_sleep_minutes=400, deep_sleep_minutes=100, rem_sleep_minutes=80
        ))
        assert compute_deep_sleep_ratio(n) == pytest.approx(0.25)
        assert compute_rem_sleep_ratio(n) == pytest.approx(0.2)

    def test_zero_total_is_absent(self):
        n = _normalized(CanonicalSleep(total_sleep_minutes=0, deep_sleep_minutes=0))
        assert compute_deep_sleep_ratio(n) is None


class TestNormalizedLoad:
    def test_ratio(self):
        assert compute_normalized_load(_normalized(strain=0.5, recovery=0.5)) == pytest.approx(1.0)

    def test_clamped_to_two(self):
        assert compute_normalized_load(_normalized(strain=1.0, recovery=0.1)) == 2.0

    def test_raw_strain_without_recovery(self):
        assert compute_normalized_load(_normalized(strain=0.4)) == 0.4

    def test_absent_without_strain(self):
        assert compute_normalized_load(_normalized(recovery=0.7)) is None

    def test_zero_recovery_is_absent(self):
        assert compute_normalized_load(_normalized(strain=0.4, recovery=0.0)) is None


def test_derive_propagates_absence():
    derived = derive(_normalized())
    assert derived.sleep_efficiency is None
    assert derived.sleep_fragmentation is None
    assert derived.deep_sleep_ratio is None
    assert derived.rem_sleep_ratio is None
    assert derived.normalized_load is None
