"""WHOOP connector.

Maps a WHOOP API export (``sleep``, ``recovery`` and ``cycle`` arrays) onto
canonical days. Records are grouped by the calendar date in the first ten
characters of their timestamp. Durations arrive in milliseconds, energy in
kilojoules.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from hsiflux.core.errors import PayloadParseError
from hsiflux.core.hsi.models import parse_utc
from hsiflux.domains.wearable.connectors import (
    load_payload,
    opt_int,
    opt_num,
    record_list,
    required_str,
)
from hsiflux.domains.wearable.domain_logic.signal_models import (
    CanonicalActivity,
    CanonicalRecovery,
    CanonicalSleep,
    CanonicalWearSignals,
    Vendor,
)

logger = logging.getLogger(__name__)

_MS_PER_MINUTE = 60_000.0
_KCAL_PER_KJ = 0.239006


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return parse_utc(value)
    except ValueError:
        return None


def _date_key(value: str) -> str | None:
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError:
        return None


def _ms_to_min(value: Any) -> float | None:
    ms = opt_num(value)
    return ms / _MS_PER_MINUTE if ms is not None else None


class WhoopAdapter:
    """WHOOP export to canonical days."""

    vendor_name = "whoop"

    def parse(
        self, raw_json: str, timezone: str, device_id: str
    ) -> list[CanonicalWearSignals]:
        payload = load_payload(raw_json, "WHOOP")
        days: dict[str, dict[str, dict[str, Any]]] = {}

        for kind, time_field in (("sleep", "start"), ("recovery", "created_at"), ("cycle", "start")):
            for record in record_list(payload, kind, "WHOOP"):
                stamp = required_str(record, time_field, "WHOOP")
                key = _date_key(stamp)
                if key is None:
                    logger.warning("Skipping WHOOP %s record with unparseable date", kind)
                    continue
                days.setdefault(key, {})[kind] = record

        return [
            self._to_canonical(day, records, timezone, device_id)
            for day, records in sorted(days.items())
        ]

    def _to_canonical(
        self,
        day: str,
        records: dict[str, dict[str, Any]],
        tz: str,
        device_id: str,
    ) -> CanonicalWearSignals:
        sleep = CanonicalSleep()
        recovery = CanonicalRecovery()
        activity = CanonicalActivity()

        sleep_rec = records.get("sleep")
        if sleep_rec is not None:
            score = _object(sleep_rec.get("score"))
            stages = _object(score.get("stage_summary"))
            sleep = CanonicalSleep(
                start_time=_parse_time(sleep_rec.get("start")),
                end_time=_parse_time(sleep_rec.get("end")),
                time_in_bed_minutes=_ms_to_min(stages.get("total_in_bed_time_milli")),
                total_sleep_minutes=_ms_to_min(stages.get("total_sleep_time_milli")),
                awake_minutes=_ms_to_min(stages.get("total_awake_time_milli")),
                light_sleep_minutes=_ms_to_min(stages.get("total_light_sleep_time_milli")),
                deep_sleep_minutes=_ms_to_min(stages.get("total_slow_wave_sleep_time_milli")),
                rem_sleep_minutes=_ms_to_min(stages.get("total_rem_sleep_time_milli")),
                awakenings=opt_int(stages.get("disturbance_count")),
                latency_minutes=_ms_to_min(score.get("sleep_latency_time_milli")),
                vendor_sleep_score=opt_num(score.get("sleep_performance_percentage")),
                respiratory_rate=opt_num(score.get("respiratory_rate")),
            )

        recovery_rec = records.get("recovery")
        if recovery_rec is not None:
            score = _object(recovery_rec.get("score"))
            recovery = CanonicalRecovery(
                hrv_rmssd_ms=opt_num(score.get("hrv_rmssd_milli")),
                resting_hr_bpm=opt_num(score.get("resting_heart_rate")),
                vendor_recovery_score=opt_num(score.get("recovery_score")),
                skin_temp_deviation_c=opt_num(score.get("skin_temp_celsius")),
                spo2_percentage=opt_num(score.get("spo2_percentage")),
            )

        cycle_rec = records.get("cycle")
        if cycle_rec is not None:
            score = _object(cycle_rec.get("score"))
            kilojoule = opt_num(score.get("kilojoule"))
            # WHOOP reports neither steps, distance nor active calories.
            activity = CanonicalActivity(
                vendor_strain_score=opt_num(score.get("strain")),
                calories=kilojoule * _KCAL_PER_KJ if kilojoule is not None else None,
                average_hr_bpm=opt_num(score.get("average_heart_rate")),
                max_hr_bpm=opt_num(score.get("max_heart_rate")),
            )

        return CanonicalWearSignals(
            vendor=Vendor.WHOOP,
            date=day,
            device_id=device_id,
            timezone=tz,
            observed_at=sleep.end_time or datetime.now(timezone.utc),
            sleep=sleep,
            recovery=recovery,
            activity=activity,
            vendor_raw=dict(records),
        )


def _object(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PayloadParseError("WHOOP score fields must be objects")
    return value
