"""Tests for behavioral feature derivation."""

from __future__ import annotations

import math

import pytest

from hsiflux.domains.behavior.connectors.session_adapter import parse_session, session_to_canonical
from hsiflux.domains.behavior.domain_logic import normalizer
from hsiflux.domains.behavior.domain_logic.feature_deriver import (
    compute_burstiness,
    compute_distraction_score,
    compute_fragmented_idle_ratio,
    compute_idle_ratio,
    compute_interaction_intensity,
    compute_scroll_jitter_rate,
    count_deep_focus_blocks,
    derive,
    saturate,
)
from hsiflux.domains.behavior.domain_logic.signal_models import EngagementSegment


class TestSaturation:
    def test_zero_rate(self):
        assert saturate(0.0, 0.5) == 0.0

    def test_rate_equal_to_k(self):
        assert saturate(0.5, 0.5) == pytest.approx(1.0 - math.exp(-1.0))

    def test_approaches_one(self):
        assert saturate(100.0, 0.5) == pytest.approx(1.0)


class TestBurstiness:
    def test_five_constant_gaps_are_low(self):
        score = compute_burstiness([10.0] * 5)
        assert score < 0.3
        assert score == 0.0

    def test_irregular_gaps_are_high(self):
        score = compute_burstiness([1.0, 1.0, 100.0, 1.0, 1.0, 100.0])
        assert score > 0.5
        assert score == pytest.approx(0.578, abs=1e-3)

    def test_strict_alternation_sits_just_below_neutral(self):
        # Population std equals |100 - 1| / 2, just under the mean of 50.5.
        assert compute_burstiness([1.0, 100.0] * 3) == pytest.approx(99.0 / 200.0)

    def test_no_gaps_is_exactly_neutral(self):
        assert compute_burstiness([]) == 0.5

    def test_all_zero_gaps_is_neutral(self):
        assert compute_burstiness([0.0, 0.0]) == 0.5


class TestRatios:
    def test_idle_ratio(self):
        assert compute_idle_ratio(150.0, 600.0) == pytest.approx(0.25)
        assert compute_idle_ratio(10.0, 0.0) == 0.0

    def test_fragmented_idle_ratio(self):
        assert compute_fragmented_idle_ratio(3, 600.0) == pytest.approx(0.3)
        assert compute_fragmented_idle_ratio(30, 600.0) == 1.0

    def test_scroll_jitter(self):
        assert compute_scroll_jitter_rate(3, 7) == pytest.approx(0.5)
        assert compute_scroll_jitter_rate(1, 1) == 0.0

    def test_interaction_intensity(self):
        assert compute_interaction_intensity(5, 0, 0.0, 60.0) == pytest.approx(0.5)
        assert compute_interaction_intensity(20, 0, 0.0, 60.0) == 1.0
        # Typing seconds count as extra interactions; interruptions do not.
        assert compute_interaction_intensity(3, 2, 40.0, 60.0) == pytest.approx(0.5)
        assert compute_interaction_intensity(5, 0, 0.0, 0.0) == 0.0


class TestDistraction:
    def test_weights(self):
        assert compute_distraction_score(1.0, 0.0, 0.0, 0.0) == pytest.approx(0.35)
        assert compute_distraction_score(0.0, 1.0, 0.0, 0.0) == pytest.approx(0.30)
        assert compute_distraction_score(1.0, 1.0, 1.0, 1.0) == pytest.approx(1.0)

    def test_zero_inputs(self):
        assert compute_distraction_score(0.0, 0.0, 0.0, 0.0) == 0.0


def test_deep_focus_blocks():
    segments = [
        EngagementSegment(None, None, 119.0, 10),
        EngagementSegment(None, None, 120.0, 10),
        EngagementSegment(None, None, 600.0, 40),
    ]
    assert count_deep_focus_blocks(segments) == 2


def test_derive_full_session(session_json):
    canonical = session_to_canonical(parse_session(session_json()))
    derived = derive(normalizer.normalize(canonical))
    assert derived.focus_hint + derived.distraction_score == pytest.approx(1.0)
    for value in (
        derived.task_switch_rate, derived.notification_load, derived.idle_ratio,
        derived.fragmented_idle_ratio, derived.scroll_jitter_rate, derived.burstiness,
        derived.interaction_intensity, derived.distraction_score,
    ):
        assert 0.0 <= value <= 1.0
    # 6 app switches over 30 minutes
    assert derived.task_switch_rate == pytest.approx(1.0 - math.exp(-0.2 / 0.5))
