"""Deterministic behavioral feature derivation.

Rates use exponential saturation, ``1 - exp(-x / k)``, so sparse and dense
sessions land on the same bounded scale instead of growing without limit.
Every output is in [0, 1] except ``deep_focus_blocks`` (a count).
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from hsiflux.domains.behavior.domain_logic.signal_models import (
    DerivedBehaviorSignals,
    EngagementSegment,
    NormalizedBehaviorSignals,
)

# Saturation constants (per-minute event rate at which ~63% is reached)
TASK_SWITCH_K = 0.5
NOTIFICATION_K = 1.0

# Distraction weights
W_TASK_SWITCH = 0.35
W_NOTIFICATION = 0.30
W_FRAGMENTED_IDLE = 0.20
W_SCROLL_JITTER = 0.15

DEEP_FOCUS_MIN_SEC = 120.0

# Seconds of typing counted as one interaction
TYPING_SEC_PER_EVENT = 10.0
# Interactions per minute treated as full intensity
HIGH_INTENSITY_PER_MIN = 10.0

NEUTRAL_BURSTINESS = 0.5


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def saturate(rate: float, k: float) -> float:
    return _clamp(1.0 - math.exp(-rate / k))


# ---------------------------------------------------------------------------
# Individual metrics
# ---------------------------------------------------------------------------

def compute_idle_ratio(total_idle_sec: float, duration_sec: float) -> float:
    if duration_sec <= 0:
        return 0.0
    return _clamp(total_idle_sec / duration_sec)


def compute_fragmented_idle_ratio(idle_segments: int, duration_sec: float) -> float:
    """Idle segments per minute."""
    if duration_sec <= 0:
        return 0.0
    return _clamp(idle_segments / duration_sec * 60.0)


def compute_scroll_jitter_rate(reversals: int, scroll_events: int) -> float:
    """Direction reversals per scroll transition; 0 with fewer than two scrolls."""
    if scroll_events <= 1:
        return 0.0
    return _clamp(reversals / (scroll_events - 1))


def compute_burstiness(gaps: Sequence[float]) -> float:
    """Barabási burstiness of inter-event gaps, rescaled from [-1, 1] to [0, 1].

    ``B = (sigma - mu) / (sigma + mu)`` with the population standard deviation.
    Periodic sequences score near 0, Poisson-like near 0.5, bursty near 1.
    No gaps (zero or one event) is neutral.
    """
    if not gaps:
        return NEUTRAL_BURSTINESS
    mean = sum(gaps) / len(gaps)
    if mean <= 0:
        return NEUTRAL_BURSTINESS
    sigma = math.sqrt(sum((g - mean) ** 2 for g in gaps) / len(gaps))
    b = (sigma - mean) / (sigma + mean)
    return _clamp((b + 1.0) / 2.0)


def count_deep_focus_blocks(segments: Sequence[EngagementSegment]) -> int:
    return sum(1 for s in segments if s.duration_sec >= DEEP_FOCUS_MIN_SEC)


def compute_interaction_intensity(
    total_events: int,
    interruption_events: int,
    typing_duration_sec: float,
    duration_sec: float,
) -> float:
    """Sustained non-interruption interactions per minute, scaled to [0, 1]."""
    if duration_sec <= 0:
        return 0.0
    interactions = max(total_events - interruption_events, 0) + typing_duration_sec / TYPING_SEC_PER_EVENT
    per_minute = interactions / duration_sec * 60.0
    return _clamp(per_minute / HIGH_INTENSITY_PER_MIN)


def compute_distraction_score(
    task_switch_rate: float,
    notification_load: float,
    fragmented_idle_ratio: float,
    scroll_jitter_rate: float,
) -> float:
    return _clamp(
        W_TASK_SWITCH * task_switch_rate
        + W_NOTIFICATION * notification_load
        + W_FRAGMENTED_IDLE * fragmented_idle_ratio
        + W_SCROLL_JITTER * scroll_jitter_rate
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def derive(normalized: NormalizedBehaviorSignals) -> DerivedBehaviorSignals:
    """Derive behavioral metrics for one normalized session."""
    c = normalized.canonical

    task_switch_rate = saturate(normalized.app_switches_per_min, TASK_SWITCH_K)
    notification_load = saturate(normalized.notifications_per_min, NOTIFICATION_K)
    fragmented_idle = compute_fragmented_idle_ratio(len(c.idle_segments), c.duration_sec)
    jitter = compute_scroll_jitter_rate(c.scroll_direction_reversals, c.scroll_events)
    distraction = compute_distraction_score(
        task_switch_rate, notification_load, fragmented_idle, jitter
    )

    return DerivedBehaviorSignals(
        normalized=normalized,
        task_switch_rate=task_switch_rate,
        notification_load=notification_load,
        idle_ratio=compute_idle_ratio(c.total_idle_time_sec, c.duration_sec),
        fragmented_idle_ratio=fragmented_idle,
        scroll_jitter_rate=jitter,
        burstiness=compute_burstiness(c.inter_event_gaps),
        deep_focus_blocks=count_deep_focus_blocks(c.engagement_segments),
        interaction_intensity=compute_interaction_intensity(
            c.total_events,
            c.notification_events + c.call_events,
            c.total_typing_duration_sec,
            c.duration_sec,
        ),
        distraction_score=distraction,
        # Complement, not an independent estimate.
        focus_hint=1.0 - distraction,
    )
