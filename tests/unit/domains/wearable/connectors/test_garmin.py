"""Tests for the Garmin connector."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from hsiflux.core.errors import PayloadParseError
from hsiflux.domains.wearable.connectors.garmin import GarminAdapter
from hsiflux.domains.wearable.domain_logic.signal_models import Vendor


def test_single_day(garmin_payload):
    days = GarminAdapter().parse(garmin_payload("2024-01-15"), "Europe/Berlin", "fenix")
    assert len(days) == 1
    day = days[0]
    assert day.vendor == Vendor.GARMIN
    assert day.date == "2024-01-15"
    assert day.timezone == "Europe/Berlin"

    assert day.sleep.total_sleep_minutes == 450.0
    assert day.sleep.time_in_bed_minutes == 450.0
    assert day.sleep.deep_sleep_minutes == 90.0
    assert day.sleep.light_sleep_minutes == 240.0
    assert day.sleep.rem_sleep_minutes == 120.0
    assert day.sleep.awake_minutes == 30.0
    assert day.sleep.awakenings == 3
    assert day.sleep.vendor_sleep_score == 82.0

    assert day.recovery.hrv_rmssd_ms == 48.0
    assert day.recovery.resting_hr_bpm == 58.0
    assert day.recovery.vendor_recovery_score == 72.0

    assert day.activity.steps == 8500
    assert day.activity.calories == 2200.0
    assert day.activity.active_calories == 450.0
    assert day.activity.vendor_strain_score == 75.0
    assert day.activity.active_minutes == 30.0
    assert day.activity.distance_meters == 6400.5

    assert day.observed_at == datetime(2024, 1, 16, 7, tzinfo=timezone.utc)


def test_time_in_bed_falls_back_to_sleep_window():
    start = int(datetime(2024, 1, 15, 23, tzinfo=timezone.utc).timestamp() * 1000)
    raw = json.dumps({"sleep": [{
        "calendarDate": "2024-01-15",
        "sleepStartTimestampGMT": start,
        "sleepEndTimestampGMT": start + 7 * 3_600_000,
    }]})
    day = GarminAdapter().parse(raw, "UTC", "d")[0]
    assert day.sleep.total_sleep_minutes is None
    assert day.sleep.time_in_bed_minutes == 420.0


def test_active_minutes_needs_both_intensities():
    raw = json.dumps({"dailies": [{"calendarDate": "2024-01-15", "moderateIntensityMinutes": 20}]})
    day = GarminAdapter().parse(raw, "UTC", "d")[0]
    assert day.activity.active_minutes is None


def test_multiple_days_sorted(garmin_payload):
    first = json.loads(garmin_payload("2024-01-16"))
    second = json.loads(garmin_payload("2024-01-15"))
    merged = {key: first[key] + second[key] for key in ("dailies", "sleep")}
    days = GarminAdapter().parse(json.dumps(merged), "UTC", "d")
    assert [d.date for d in days] == ["2024-01-15", "2024-01-16"]


def test_dailies_without_sleep():
    raw = json.dumps({"dailies": [{"calendarDate": "2024-01-15", "totalSteps": 1200}]})
    day = GarminAdapter().parse(raw, "UTC", "d")[0]
    assert day.sleep.total_sleep_minutes is None
    assert day.activity.steps == 1200


def test_non_numeric_values_are_absent():
    raw = json.dumps({"dailies": [{"calendarDate": "2024-01-15", "restingHeartRate": "n/a"}]})
    day = GarminAdapter().parse(raw, "UTC", "d")[0]
    assert day.recovery.resting_hr_bpm is None


class TestGarminErrors:
    def test_invalid_json(self):
        with pytest.raises(PayloadParseError, match="Invalid Garmin JSON"):
            GarminAdapter().parse("nope", "UTC", "d")

    def test_missing_calendar_date(self):
        with pytest.raises(PayloadParseError, match="calendarDate"):
            GarminAdapter().parse('{"dailies": [{"totalSteps": 10}]}', "UTC", "d")

    def test_sleep_scores_must_be_object(self):
        raw = '{"sleep": [{"calendarDate": "2024-01-15", "sleepScores": 82}]}'
        with pytest.raises(PayloadParseError, match="sleepScores"):
            GarminAdapter().parse(raw, "UTC", "d")
