"""Wearable normalization: vendor scores to 0-1, coverage and quality flags."""

from __future__ import annotations

from hsiflux.domains.wearable.domain_logic.signal_models import (
    CanonicalWearSignals,
    NormalizedSignals,
    QualityFlag,
    Vendor,
)

# Fields counted toward coverage: sleep, HRV, RHR, recovery, strain, calories/steps
_COVERAGE_FIELDS = 6

# Vendor scale maxima
_SLEEP_SCORE_MAX = {Vendor.WHOOP: 100.0, Vendor.GARMIN: 100.0}
_RECOVERY_SCORE_MAX = {Vendor.WHOOP: 100.0, Vendor.GARMIN: 100.0}  # Garmin: Body Battery
_STRAIN_SCORE_MAX = {Vendor.WHOOP: 21.0, Vendor.GARMIN: 150.0}     # Garmin: training load


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def _scale(value: float | None, maximum: float) -> float | None:
    if value is None:
        return None
    return _clamp(value / maximum)


def normalize(signals: CanonicalWearSignals) -> NormalizedSignals:
    """Normalize one canonical day."""
    flags: list[QualityFlag] = []
    covered = 0

    sleep_score = _scale(signals.sleep.vendor_sleep_score, _SLEEP_SCORE_MAX[signals.vendor])
    recovery_score = _scale(
        signals.recovery.vendor_recovery_score, _RECOVERY_SCORE_MAX[signals.vendor]
    )
    strain_score = _scale(
        signals.activity.vendor_strain_score, _STRAIN_SCORE_MAX[signals.vendor]
    )

    if signals.sleep.total_sleep_minutes is not None:
        covered += 1
    else:
        flags.append(QualityFlag.MISSING_SLEEP_DATA)

    if signals.recovery.hrv_rmssd_ms is not None:
        covered += 1
    else:
        flags.append(QualityFlag.MISSING_HRV)

    if signals.recovery.resting_hr_bpm is not None:
        covered += 1
    else:
        flags.append(QualityFlag.MISSING_RESTING_HR)

    if recovery_score is not None:
        covered += 1
    else:
        flags.append(QualityFlag.MISSING_RECOVERY_DATA)

    if strain_score is not None:
        covered += 1
    else:
        flags.append(QualityFlag.MISSING_ACTIVITY_DATA)

    if signals.activity.calories is not None or signals.activity.steps is not None:
        covered += 1

    return NormalizedSignals(
        canonical=signals,
        sleep_score=sleep_score,
        recovery_score=recovery_score,
        strain_score=strain_score,
        coverage=covered / _COVERAGE_FIELDS,
        quality_flags=flags,
    )
