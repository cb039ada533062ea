"""Deterministic physiological feature derivation.

Each derived ratio is produced only when the fields it needs are present;
otherwise it is ``None``. Absence propagates and is never read as zero.
All formulas are pure: no I/O, no randomness, no state.
"""

from __future__ import annotations

from hsiflux.domains.wearable.domain_logic.signal_models import (
    DerivedSignals,
    NormalizedSignals,
)

# Awakenings per hour of sleep that saturate fragmentation at 1.0
FRAGMENTATION_AWAKENINGS_PER_HOUR = 6.0

# Upper bound of strain / recovery
MAX_NORMALIZED_LOAD = 2.0


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def _ratio(part: float | None, whole: float | None) -> float | None:
    """``part / whole`` clamped to [0, 1], or None without a positive denominator."""
    if part is None or whole is None or whole <= 0:
        return None
    return _clamp(part / whole)


# ---------------------------------------------------------------------------
# Sleep
# ---------------------------------------------------------------------------

def compute_sleep_efficiency(signals: NormalizedSignals) -> float | None:
    """Time asleep over time in bed."""
    sleep = signals.canonical.sleep
    return _ratio(sleep.total_sleep_minutes, sleep.time_in_bed_minutes)


def compute_sleep_fragmentation(signals: NormalizedSignals) -> float | None:
    """Awakenings per hour of sleep, scaled so 6/hour is fully fragmented.

    Falls back to awake time over time in bed when awakenings (or a positive
    sleep duration) are unavailable.
    """
    sleep = signals.canonical.sleep
    if (
        sleep.awakenings is not None
        and sleep.total_sleep_minutes is not None
        and sleep.total_sleep_minutes > 0
    ):
        per_hour = sleep.awakenings / (sleep.total_sleep_minutes / 60.0)
        return _clamp(per_hour / FRAGMENTATION_AWAKENINGS_PER_HOUR)
    return _ratio(sleep.awake_minutes, sleep.time_in_bed_minutes)


def compute_deep_sleep_ratio(signals: NormalizedSignals) -> float | None:
    sleep = signals.canonical.sleep
    return _ratio(sleep.deep_sleep_minutes, sleep.total_sleep_minutes)


def compute_rem_sleep_ratio(signals: NormalizedSignals) -> float | None:
    sleep = signals.canonical.sleep
    return _ratio(sleep.rem_sleep_minutes, sleep.total_sleep_minutes)


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

def compute_normalized_load(signals: NormalizedSignals) -> float | None:
    """Strain relative to recovery, in [0, 2].

    Raw strain is returned when recovery is unknown. A recovery of exactly 0
    cannot be divided by and yields None.
    """
    strain = signals.strain_score
    recovery = signals.recovery_score
    if strain is None:
        return None
    if recovery is None:
        return strain
    if recovery > 0:
        return _clamp(strain / recovery, 0.0, MAX_NORMALIZED_LOAD)
    return None


def derive(normalized: NormalizedSignals) -> DerivedSignals:
    """Derive composite physiological metrics for one normalized day."""
    return DerivedSignals(
        normalized=normalized,
        sleep_efficiency=compute_sleep_efficiency(normalized),
        sleep_fragmentation=compute_sleep_fragmentation(normalized),
        deep_sleep_ratio=compute_deep_sleep_ratio(normalized),
        rem_sleep_ratio=compute_rem_sleep_ratio(normalized),
        normalized_load=compute_normalized_load(normalized),
    )
