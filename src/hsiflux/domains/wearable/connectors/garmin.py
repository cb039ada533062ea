"""Garmin connector.

Maps a Garmin Health API export (``dailies`` and ``sleep`` arrays, camelCase
fields) onto canonical days grouped by ``calendarDate``. Body Battery stands
in for recovery and training load balance for strain.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.errors import PayloadParseError
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


def _sec_to_min(value: Any) -> float | None:
    secs = opt_num(value)
    return secs / 60.0 if secs is not None else None


def _epoch_ms(value: Any) -> datetime | None:
    ms = opt_num(value)
    if ms is None:
        return None
    try:
        return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class GarminAdapter:
    """Garmin export to canonical days."""

    vendor_name = "garmin"

    def parse(
        self, raw_json: str, timezone: str, device_id: str
    ) -> list[CanonicalWearSignals]:
        payload = load_payload(raw_json, "Garmin")
        days: dict[str, dict[str, dict[str, Any]]] = {}

        for kind, key in (("daily", "dailies"), ("sleep", "sleep")):
            for record in record_list(payload, key, "Garmin"):
                day = required_str(record, "calendarDate", "Garmin")
                days.setdefault(day, {})[kind] = record

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
            start = _epoch_ms(sleep_rec.get("sleepStartTimestampGMT", sleep_rec.get("sleepStartTimestampGmt")))
            end = _epoch_ms(sleep_rec.get("sleepEndTimestampGMT", sleep_rec.get("sleepEndTimestampGmt")))
            total = _sec_to_min(sleep_rec.get("sleepTimeSeconds"))
            # Garmin has no explicit time in bed; fall back to the sleep window.
            in_bed = total
            if in_bed is None and start is not None and end is not None:
                in_bed = float(int((end - start).total_seconds() // 60))

            scores = sleep_rec.get("sleepScores") or {}
            if not isinstance(scores, dict):
                raise PayloadParseError("Garmin field 'sleepScores' must be an object")

            sleep = CanonicalSleep(
                start_time=start,
                end_time=end,
                time_in_bed_minutes=in_bed,
                total_sleep_minutes=total,
                awake_minutes=_sec_to_min(sleep_rec.get("awakeSleepSeconds")),
                light_sleep_minutes=_sec_to_min(sleep_rec.get("lightSleepSeconds")),
                deep_sleep_minutes=_sec_to_min(sleep_rec.get("deepSleepSeconds")),
                rem_sleep_minutes=_sec_to_min(sleep_rec.get("remSleepSeconds")),
                awakenings=opt_int(sleep_rec.get("awakeCount")),
                vendor_sleep_score=opt_num(scores.get("overallScore")),
                respiratory_rate=opt_num(sleep_rec.get("avgSleepRespiration")),
            )

        daily = records.get("daily")
        if daily is not None:
            recovery = CanonicalRecovery(
                hrv_rmssd_ms=opt_num(daily.get("restingHeartRateHrv")),
                resting_hr_bpm=opt_num(daily.get("restingHeartRate")),
                vendor_recovery_score=opt_num(daily.get("bodyBatteryChargedValue")),
                spo2_percentage=opt_num(daily.get("avgSpo2Value")),
            )
            moderate = opt_num(daily.get("moderateIntensityMinutes"))
            vigorous = opt_num(daily.get("vigorousIntensityMinutes"))
            activity = CanonicalActivity(
                vendor_strain_score=opt_num(daily.get("trainingLoadBalance")),
                calories=opt_num(daily.get("totalKilocalories")),
                active_calories=opt_num(daily.get("activeKilocalories")),
                average_hr_bpm=opt_num(daily.get("averageHeartRate")),
                max_hr_bpm=opt_num(daily.get("maxHeartRate")),
                distance_meters=opt_num(daily.get("totalDistanceMeters")),
                steps=opt_int(daily.get("totalSteps")),
                active_minutes=(
                    moderate + vigorous if moderate is not None and vigorous is not None else None
                ),
            )

        return CanonicalWearSignals(
            vendor=Vendor.GARMIN,
            date=day,
            device_id=device_id,
            timezone=tz,
            observed_at=sleep.end_time or datetime.now(timezone.utc),
            sleep=sleep,
            recovery=recovery,
            activity=activity,
            vendor_raw=dict(records),
        )
