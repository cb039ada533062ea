"""Shared test fixtures for HSI Flux tests."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("ENCRYPTION_RETIRED_KEYS", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("WEARABLE_BASELINE_WINDOW", "14")
    monkeypatch.setenv("BEHAVIOR_BASELINE_WINDOW", "20")
    monkeypatch.setenv("DECAY_HALF_LIFE_HOURS", "12")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# Vendor payload builders
# ---------------------------------------------------------------------------

_HOUR_MS = 3_600_000


def _whoop_day(day: str, hrv: float | None = 65.0, rhr: float | None = 52.0) -> dict[str, list]:
    recovery_score: dict[str, Any] = {"recovery_score": 68.0, "spo2_percentage": 96.5}
    if hrv is not None:
        recovery_score["hrv_rmssd_milli"] = hrv
    if rhr is not None:
        recovery_score["resting_heart_rate"] = rhr
    return {
        "sleep": [{
            "id": f"sleep-{day}",
            "start": f"{day}T23:00:00.000Z",
            "end": _next_morning(day),
            "score": {
                "stage_summary": {
                    "total_in_bed_time_milli": 8 * _HOUR_MS,
                    "total_sleep_time_milli": 7 * _HOUR_MS,
                    "total_awake_time_milli": _HOUR_MS,
                    "total_light_sleep_time_milli": 3 * _HOUR_MS,
                    "total_slow_wave_sleep_time_milli": int(1.5 * _HOUR_MS),
                    "total_rem_sleep_time_milli": int(2.5 * _HOUR_MS),
                    "disturbance_count": 7,
                },
                "sleep_performance_percentage": 85.0,
                "respiratory_rate": 15.2,
            },
        }],
        "recovery": [{"created_at": f"{day}T07:30:00.000Z", "score": recovery_score}],
        "cycle": [{
            "start": f"{day}T06:00:00.000Z",
            "score": {"strain": 10.5, "kilojoule": 8368.0, "average_heart_rate": 68},
        }],
    }


def _next_morning(day: str) -> str:
    start = datetime.fromisoformat(day).replace(tzinfo=timezone.utc)
    return (start + timedelta(days=1, hours=7)).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def make_whoop_payload(days: list[dict[str, Any]]) -> str:
    """WHOOP export with one sleep/recovery/cycle record per day.

    Each entry is ``{"day": "YYYY-MM-DD", "hrv": ..., "rhr": ...}``.
    """
    payload: dict[str, list] = {"sleep": [], "recovery": [], "cycle": []}
    for entry in days:
        records = _whoop_day(entry["day"], entry.get("hrv", 65.0), entry.get("rhr", 52.0))
        for key, value in records.items():
            payload[key].extend(value)
    return json.dumps(payload)


def make_garmin_payload(day: str = "2024-01-15") -> str:
    start = int(datetime.fromisoformat(f"{day}T23:00:00+00:00").timestamp() * 1000)
    return json.dumps({
        "dailies": [{
            "calendarDate": day,
            "totalSteps": 8500,
            "totalKilocalories": 2200,
            "activeKilocalories": 450,
            "restingHeartRate": 58,
            "restingHeartRateHrv": 48,
            "bodyBatteryChargedValue": 72,
            "trainingLoadBalance": 75,
            "moderateIntensityMinutes": 20,
            "vigorousIntensityMinutes": 10,
            "totalDistanceMeters": 6400.5,
        }],
        "sleep": [{
            "calendarDate": day,
            "sleepStartTimestampGMT": start,
            "sleepEndTimestampGMT": start + 8 * _HOUR_MS,
            "sleepTimeSeconds": 27000,
            "deepSleepSeconds": 5400,
            "lightSleepSeconds": 14400,
            "remSleepSeconds": 7200,
            "awakeSleepSeconds": 1800,
            "awakeCount": 3,
            "sleepScores": {"overallScore": 82},
        }],
    })


def make_session(
    *,
    session_id: str = "sess-1",
    device_id: str = "phone-1",
    start: str = "2024-01-15T14:00:00Z",
    duration_sec: int = 1800,
    events: list[dict[str, Any]] | None = None,
) -> str:
    """Behavioral session JSON. Default events: a varied 30-minute session."""
    start_dt = datetime.fromisoformat(start.replace("Z", "+00:00"))

    def at(offset: float) -> str:
        return (start_dt + timedelta(seconds=offset)).isoformat()

    if events is None:
        events = []
        kinds = ["scroll", "tap", "scroll", "swipe", "typing", "scroll", "tap", "app_switch",
                 "scroll", "notification"]
        for i in range(60):
            kind = kinds[i % len(kinds)]
            event: dict[str, Any] = {"timestamp": at(5 + i * 20), "event_type": kind}
            if kind == "scroll":
                event["scroll"] = {"direction_reversal": i % 3 == 0}
            elif kind == "typing":
                event["typing"] = {"duration_sec": 8.0}
            elif kind == "notification":
                event["interruption"] = {"action": "ignored"}
            events.append(event)
    return json.dumps({
        "session_id": session_id,
        "device_id": device_id,
        "timezone": "UTC",
        "start_time": start_dt.isoformat(),
        "end_time": at(duration_sec),
        "events": events,
    })


@pytest.fixture
def whoop_payload():
    """Factory: ``whoop_payload([{"day": "2024-01-15", "hrv": 65}])``."""
    return make_whoop_payload


@pytest.fixture
def garmin_payload():
    return make_garmin_payload


@pytest.fixture
def session_json():
    """Factory for behavioral session JSON."""
    return make_session


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def baseline_db():
    """Create an in-memory BaselineDatabase for testing."""
    from hsiflux.core.storage.database import BaselineDatabase

    db = BaselineDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def state_cipher():
    """Create a StateCipher with a fresh test key."""
    from hsiflux.core.storage.encryption import StateCipher

    return StateCipher(StateCipher.generate_key())


@pytest.fixture
def baseline_repository(baseline_db, state_cipher):
    """Create a BaselineRepository backed by in-memory SQLite."""
    from hsiflux.core.storage.repository import BaselineRepository

    return BaselineRepository(baseline_db, state_cipher)


@pytest.fixture
def audit_logger(baseline_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from hsiflux.core.audit.logger import AuditLogger

    return AuditLogger(baseline_db)
