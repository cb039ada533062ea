"""Encode contextual wearable days as HSI daily payloads."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.hsi.models import HSI_DAILY_VERSION, format_utc, producer_block
from hsiflux.domains.wearable.domain_logic.signal_models import (
    CanonicalWearSignals,
    ContextualSignals,
)

# Baseline depth (days) that earns the confidence bonus
BASELINE_BONUS_MIN_DAYS = 7
BASELINE_CONFIDENCE_BONUS = 0.1


class HsiDailyEncoder:
    """Builds one HSI payload per contextual day.

    Each encoder carries a stable ``instance_id`` reported as the producer
    instance on every payload it emits.
    """

    def __init__(self, instance_id: str | None = None) -> None:
        self.instance_id = instance_id or str(uuid.uuid4())

    def encode(self, signals: ContextualSignals, *, now: datetime | None = None) -> dict[str, Any]:
        canonical = signals.derived.normalized.canonical
        computed_at = now or datetime.now(timezone.utc)
        return {
            "hsi_version": HSI_DAILY_VERSION,
            "producer": producer_block(self.instance_id),
            "provenance": {
                "source_vendor": canonical.vendor.value,
                "source_device_id": canonical.device_id,
                "observed_at_utc": format_utc(canonical.observed_at),
                "computed_at_utc": format_utc(computed_at),
            },
            "quality": self._quality(signals, computed_at),
            "windows": [self._daily_window(signals)],
        }

    def encode_to_json(self, signals: ContextualSignals) -> str:
        return json.dumps(self.encode(signals), indent=2)

    # ------------------------------------------------------------------

    @staticmethod
    def _quality(signals: ContextualSignals, computed_at: datetime) -> dict[str, Any]:
        normalized = signals.derived.normalized
        bonus = (
            BASELINE_CONFIDENCE_BONUS
            if signals.baselines.baseline_days >= BASELINE_BONUS_MIN_DAYS
            else 0.0
        )
        return {
            "coverage": normalized.coverage,
            "freshness_sec": int((computed_at - normalized.canonical.observed_at).total_seconds()),
            "confidence": min(normalized.coverage + bonus, 1.0),
            "flags": [flag.value for flag in normalized.quality_flags],
        }

    def _daily_window(self, signals: ContextualSignals) -> dict[str, Any]:
        derived = signals.derived
        normalized = derived.normalized
        canonical = normalized.canonical
        baselines = signals.baselines
        return {
            "date": canonical.date,
            "timezone": canonical.timezone,
            "sleep": {
                "duration_minutes": canonical.sleep.total_sleep_minutes,
                "efficiency": derived.sleep_efficiency,
                "fragmentation": derived.sleep_fragmentation,
                "deep_ratio": derived.deep_sleep_ratio,
                "rem_ratio": derived.rem_sleep_ratio,
                "latency_minutes": canonical.sleep.latency_minutes,
                "score": normalized.sleep_score,
                "vendor": _vendor_block(canonical, "sleep", canonical.sleep.vendor_sleep_score, ("sleep",)),
            },
            "physiology": {
                "hrv_rmssd_ms": canonical.recovery.hrv_rmssd_ms,
                "resting_hr_bpm": canonical.recovery.resting_hr_bpm,
                "respiratory_rate": canonical.sleep.respiratory_rate,
                "spo2_percentage": canonical.recovery.spo2_percentage,
                "recovery_score": normalized.recovery_score,
                "vendor": _vendor_block(
                    canonical, "recovery", canonical.recovery.vendor_recovery_score, ("recovery",)
                ),
            },
            "activity": {
                "strain_score": normalized.strain_score,
                "normalized_load": derived.normalized_load,
                "calories": canonical.activity.calories,
                "active_calories": canonical.activity.active_calories,
                "steps": canonical.activity.steps,
                "active_minutes": canonical.activity.active_minutes,
                "distance_meters": canonical.activity.distance_meters,
                "vendor": _vendor_block(
                    canonical, "strain", canonical.activity.vendor_strain_score, ("cycle", "daily")
                ),
            },
            "baseline": {
                "hrv_ms": baselines.hrv_baseline_ms,
                "resting_hr_bpm": baselines.rhr_baseline_bpm,
                "sleep_duration_minutes": baselines.sleep_baseline_minutes,
                "sleep_efficiency": baselines.sleep_efficiency_baseline,
                "hrv_deviation_pct": signals.hrv_deviation_pct,
                "rhr_deviation_pct": signals.rhr_deviation_pct,
                "sleep_deviation_pct": signals.sleep_duration_deviation_pct,
                "days_in_baseline": baselines.baseline_days,
            },
        }


def _vendor_block(
    canonical: CanonicalWearSignals,
    score_name: str,
    score: float | None,
    raw_keys: tuple[str, ...],
) -> dict[str, Any]:
    """Vendor-native score plus the raw record it came from."""
    block: dict[str, Any] = {}
    if score is not None:
        block[f"{canonical.vendor.value}_{score_name}_score"] = score
    for key in raw_keys:
        if key in canonical.vendor_raw:
            block["raw"] = canonical.vendor_raw[key]
    return block
