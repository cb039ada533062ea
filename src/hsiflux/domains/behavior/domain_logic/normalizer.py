"""Behavioral normalization: per-minute rates, coverage and quality flags."""

from __future__ import annotations

from hsiflux.domains.behavior.domain_logic.signal_models import (
    BehaviorQualityFlag,
    CanonicalBehaviorSignals,
    NormalizedBehaviorSignals,
)

MIN_SESSION_DURATION_SEC = 300.0
MIN_EVENT_COUNT = 10
MAX_IDLE_RATIO = 0.8
MAX_IDLE_SEGMENTS = 2

# Event categories counted for diversity (notifications and calls share one)
_EVENT_CATEGORIES = 6


def _event_categories(c: CanonicalBehaviorSignals) -> int:
    present = [
        c.scroll_events > 0,
        c.tap_events > 0,
        c.swipe_events > 0,
        c.notification_events > 0 or c.call_events > 0,
        c.typing_events > 0,
        c.app_switch_events > 0,
    ]
    return sum(present)


def calculate_coverage(c: CanonicalBehaviorSignals) -> float:
    """40% event diversity, 30% session length, 30% event count."""
    diversity = _event_categories(c) / _EVENT_CATEGORIES
    duration = min(c.duration_sec / MIN_SESSION_DURATION_SEC, 1.0)
    events = min(c.total_events / MIN_EVENT_COUNT, 1.0)
    return max(0.0, min(1.0, 0.4 * diversity + 0.3 * duration + 0.3 * events))


def quality_flags(c: CanonicalBehaviorSignals) -> list[BehaviorQualityFlag]:
    flags = []
    if c.duration_sec < MIN_SESSION_DURATION_SEC:
        flags.append(BehaviorQualityFlag.SHORT_SESSION)
    if c.total_events < MIN_EVENT_COUNT:
        flags.append(BehaviorQualityFlag.LOW_EVENT_COUNT)
    idle_ratio = c.total_idle_time_sec / c.duration_sec if c.duration_sec > 0 else 0.0
    if idle_ratio > MAX_IDLE_RATIO:
        flags.append(BehaviorQualityFlag.HIGH_IDLE_RATIO)
    if _event_categories(c) <= 1:
        flags.append(BehaviorQualityFlag.LOW_EVENT_DIVERSITY)
    if len(c.idle_segments) > MAX_IDLE_SEGMENTS:
        flags.append(BehaviorQualityFlag.SESSION_GAPS)
    return flags


def normalize(canonical: CanonicalBehaviorSignals) -> NormalizedBehaviorSignals:
    minutes = canonical.duration_sec / 60.0

    def per_min(count: int) -> float:
        return count / minutes if minutes > 0 else 0.0

    return NormalizedBehaviorSignals(
        canonical=canonical,
        events_per_min=per_min(canonical.total_events),
        scrolls_per_min=per_min(canonical.scroll_events),
        taps_per_min=per_min(canonical.tap_events),
        swipes_per_min=per_min(canonical.swipe_events),
        notifications_per_min=per_min(canonical.notification_events),
        app_switches_per_min=per_min(canonical.app_switch_events),
        coverage=calculate_coverage(canonical),
        quality_flags=quality_flags(canonical),
    )
