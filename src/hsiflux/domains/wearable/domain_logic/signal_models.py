"""Canonical wearable signal models.

Every vendor adapter produces the same ``CanonicalWearSignals`` shape; every
measurement is optional and absence is ``None``, never zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Vendor(str, Enum):
    WHOOP = "whoop"
    GARMIN = "garmin"


class QualityFlag(str, Enum):
    """Data quality issues detected while normalizing one day."""

    MISSING_SLEEP_DATA = "missing_sleep_data"
    MISSING_RECOVERY_DATA = "missing_recovery_data"
    MISSING_ACTIVITY_DATA = "missing_activity_data"
    MISSING_HRV = "missing_hrv"
    MISSING_RESTING_HR = "missing_resting_hr"
    ESTIMATED_VALUE = "estimated_value"
    PARTIAL_DAY_DATA = "partial_day_data"
    LOW_CONFIDENCE = "low_confidence"


# ---------------------------------------------------------------------------
# Canonical (vendor-agnostic) observation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanonicalSleep:
    start_time: datetime | None = None
    end_time: datetime | None = None
    time_in_bed_minutes: float | None = None
    total_sleep_minutes: float | None = None
    awake_minutes: float | None = None
    light_sleep_minutes: float | None = None
    deep_sleep_minutes: float | None = None
    rem_sleep_minutes: float | None = None
    awakenings: int | None = None
    latency_minutes: float | None = None
    vendor_sleep_score: float | None = None   # vendor scale, 0-100
    respiratory_rate: float | None = None


@dataclass(frozen=True)
class CanonicalRecovery:
    hrv_rmssd_ms: float | None = None
    resting_hr_bpm: float | None = None
    vendor_recovery_score: float | None = None  # WHOOP recovery / Garmin Body Battery
    skin_temp_deviation_c: float | None = None
    spo2_percentage: float | None = None


@dataclass(frozen=True)
class CanonicalActivity:
    vendor_strain_score: float | None = None   # WHOOP strain 0-21 / Garmin training load
    calories: float | None = None
    active_calories: float | None = None
    average_hr_bpm: float | None = None
    max_hr_bpm: float | None = None
    distance_meters: float | None = None
    steps: int | None = None
    active_minutes: float | None = None


@dataclass(frozen=True)
class CanonicalWearSignals:
    """One vendor day, mapped onto the canonical model. Immutable once built."""

    vendor: Vendor
    date: str                     # YYYY-MM-DD
    device_id: str
    timezone: str
    observed_at: datetime
    sleep: CanonicalSleep = field(default_factory=CanonicalSleep)
    recovery: CanonicalRecovery = field(default_factory=CanonicalRecovery)
    activity: CanonicalActivity = field(default_factory=CanonicalActivity)
    vendor_raw: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------

@dataclass
class NormalizedSignals:
    """Canonical day plus 0-1 vendor scores, coverage and quality flags."""

    canonical: CanonicalWearSignals
    sleep_score: float | None = None
    recovery_score: float | None = None
    strain_score: float | None = None
    coverage: float = 0.0
    quality_flags: list[QualityFlag] = field(default_factory=list)


@dataclass
class DerivedSignals:
    normalized: NormalizedSignals
    sleep_efficiency: float | None = None
    sleep_fragmentation: float | None = None
    deep_sleep_ratio: float | None = None
    rem_sleep_ratio: float | None = None
    normalized_load: float | None = None


@dataclass
class Baselines:
    """Rolling means over the store's window, plus the sample count behind them."""

    hrv_baseline_ms: float | None = None
    rhr_baseline_bpm: float | None = None
    sleep_baseline_minutes: float | None = None
    sleep_efficiency_baseline: float | None = None
    baseline_days: int = 0


@dataclass
class ContextualSignals:
    """Derived day, the post-update baselines, and deviations from the pre-update ones."""

    derived: DerivedSignals
    baselines: Baselines
    hrv_deviation_pct: float | None = None
    rhr_deviation_pct: float | None = None
    sleep_duration_deviation_pct: float | None = None
