"""Tests for the wearable pipeline, FluxProcessor and context snapshots."""

from __future__ import annotations

import json

import pytest

from hsiflux.core.errors import BaselineStateError, PayloadParseError
from hsiflux.domains.wearable.connectors.whoop import WhoopAdapter
from hsiflux.domains.wearable.domain_logic.pipeline import (
    FluxProcessor,
    garmin_to_hsi_daily,
    wearable_to_hsi_daily,
    whoop_to_hsi_daily,
)

THREE_DAYS = [
    {"day": "2024-01-15", "hrv": 60.0},
    {"day": "2024-01-16", "hrv": 70.0},
    {"day": "2024-01-17", "hrv": 80.0},
]


class TestStateless:
    def test_days_contextualize_within_payload(self, whoop_payload):
        payloads = [json.loads(p) for p in whoop_to_hsi_daily(whoop_payload(THREE_DAYS), "UTC", "w1")]
        assert [p["windows"][0]["date"] for p in payloads] == ["2024-01-15", "2024-01-16", "2024-01-17"]
        first, _, third = (p["windows"][0]["baseline"] for p in payloads)
        assert first["hrv_deviation_pct"] is None
        assert third["hrv_deviation_pct"] == pytest.approx((80.0 - 65.0) / 65.0 * 100)
        assert third["days_in_baseline"] == 3

    def test_calls_do_not_share_state(self, whoop_payload):
        raw = whoop_payload([{"day": "2024-01-15"}])
        whoop_to_hsi_daily(raw, "UTC", "w1")
        again = json.loads(whoop_to_hsi_daily(raw, "UTC", "w1")[0])
        assert again["windows"][0]["baseline"]["days_in_baseline"] == 1

    def test_garmin(self, garmin_payload):
        payload = json.loads(garmin_to_hsi_daily(garmin_payload(), "UTC", "g1")[0])
        assert payload["provenance"]["source_vendor"] == "garmin"
        assert payload["quality"]["coverage"] == 1.0
        assert payload["windows"][0]["activity"]["strain_score"] == pytest.approx(0.5)

    def test_accepts_adapter_instance(self, whoop_payload):
        raw = whoop_payload([{"day": "2024-01-15"}])
        assert len(wearable_to_hsi_daily(WhoopAdapter(), raw, "UTC", "w1")) == 1

    def test_unknown_vendor(self):
        with pytest.raises(ValueError):
            wearable_to_hsi_daily("oura", "{}", "UTC", "x")

    def test_empty_payload_gives_no_days(self):
        assert whoop_to_hsi_daily("{}", "UTC", "w1") == []


class TestFluxProcessor:
    def test_baseline_accumulates_across_calls(self, whoop_payload):
        processor = FluxProcessor(window_days=14)
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        second = json.loads(processor.process_whoop(whoop_payload([THREE_DAYS[1]]), "UTC", "w1")[0])
        baseline = second["windows"][0]["baseline"]
        assert baseline["days_in_baseline"] == 2
        assert baseline["hrv_deviation_pct"] == pytest.approx(100.0 / 6.0)

    def test_parse_failure_leaves_baseline_untouched(self, whoop_payload):
        processor = FluxProcessor()
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        before = processor.save_baselines()
        with pytest.raises(PayloadParseError):
            processor.process_whoop("{broken", "UTC", "w1")
        assert processor.save_baselines() == before

    def test_save_and_load(self, whoop_payload):
        processor = FluxProcessor(window_days=5)
        processor.process_whoop(whoop_payload(THREE_DAYS[:2]), "UTC", "w1")
        restored = FluxProcessor()
        restored.load_baselines(processor.save_baselines())
        assert restored.baseline_store.window_size == 5
        assert restored.baseline_store.baselines == processor.baseline_store.baselines
        assert restored.baseline_store.bio_context == processor.baseline_store.bio_context

    def test_failed_load_keeps_current_baseline(self, whoop_payload):
        processor = FluxProcessor()
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        store = processor.baseline_store
        with pytest.raises(BaselineStateError):
            processor.load_baselines('{"version": 99}')
        assert processor.baseline_store is store

    def test_garmin_processing(self, garmin_payload):
        processor = FluxProcessor()
        processor.process_garmin(garmin_payload(), "UTC", "g1")
        assert processor.baseline_store.baselines.hrv_baseline_ms == 48.0

    def test_non_positive_half_life_rejected(self):
        with pytest.raises(ValueError):
            FluxProcessor(half_life_hours=0)


class TestSnapshot:
    def test_without_context(self):
        payload = json.loads(FluxProcessor().snapshot_now("2024-01-16T08:00:00Z", "UTC", "dev-1"))
        assert payload["hsi_version"] == "1.0"
        assert payload["axes"] == {}
        source = payload["sources"]["s_dev_1"]
        assert source["type"] == "derived"
        assert source["quality"] == 0.5
        assert source["degraded"] is True
        assert source["notes"] == "No bio context available"
        assert payload["meta"]["snapshot_type"] == "context_aware"
        assert "bio_context_age_hours" not in payload["meta"]
        assert payload["privacy"]["purposes"] == ["context_snapshot"]

    def test_with_decayed_context(self, whoop_payload):
        processor = FluxProcessor(half_life_hours=12.0)
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        # Sleep ended 2024-01-16T07:00Z; snapshot twelve hours later.
        payload = json.loads(processor.snapshot_now("2024-01-16T19:00:00Z", "UTC", "dev-1"))

        readings = {r["axis"]: r for r in payload["axes"]["context"]["readings"]}
        assert set(readings) == {"bio_freshness", "recovery_context", "sleep_context"}
        assert readings["bio_freshness"]["score"] == pytest.approx(0.5)
        assert readings["bio_freshness"]["confidence"] == pytest.approx(0.8)
        assert readings["recovery_context"]["score"] == pytest.approx(0.68)
        assert readings["recovery_context"]["confidence"] == pytest.approx(0.4)
        window_id = payload["window_ids"][0]
        assert window_id.startswith("w_snapshot_")
        assert all(r["window_id"] == window_id for r in readings.values())

        assert payload["meta"]["bio_context_age_hours"] == pytest.approx(12.0)
        source = payload["sources"]["s_dev_1"]
        assert source["quality"] == 0.8
        assert source["degraded"] is False
        assert "notes" not in source

    def test_snapshot_does_not_mutate_baseline(self, whoop_payload):
        processor = FluxProcessor()
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        before = processor.save_baselines()
        processor.snapshot_now("2024-01-16T19:00:00Z", "UTC", "dev-1")
        assert processor.save_baselines() == before

    def test_with_behavior_session(self, whoop_payload, session_json):
        processor = FluxProcessor()
        processor.process_whoop(whoop_payload([THREE_DAYS[0]]), "UTC", "w1")
        payload = json.loads(processor.snapshot_now(
            "2024-01-16T19:00:00Z", "UTC", "dev-1", behavior_session_json=session_json()
        ))
        behavior = payload["axes"]["behavior"]["readings"]
        assert [r["axis"] for r in behavior] == [
            "distraction", "focus", "task_switch_rate", "burstiness", "interaction_intensity",
        ]
        assert all(r["evidence_source_ids"] == ["s_phone_1"] for r in behavior)
        assert "context" in payload["axes"]

    def test_behavior_only(self, session_json):
        payload = json.loads(FluxProcessor().snapshot_now(
            "2024-01-16T19:00:00Z", "UTC", "dev-1", behavior_session_json=session_json()
        ))
        assert set(payload["axes"]) == {"behavior"}
        source = payload["sources"]["s_dev_1"]
        assert source["quality"] == 0.8
        assert source["degraded"] is False
        assert source["notes"] == "No bio context available"

    @pytest.mark.parametrize("now", ["garbage", "", None])
    def test_invalid_now(self, now):
        with pytest.raises(PayloadParseError, match="Invalid now timestamp"):
            FluxProcessor().snapshot_now(now, "UTC", "dev-1")


def test_non_finite_hrv_never_reaches_baseline(whoop_payload):
    raw = whoop_payload([
        {"day": "2024-01-15", "hrv": 60.0},
        {"day": "2024-01-16", "hrv": "NaN"},
        {"day": "2024-01-17", "hrv": 62.0},
    ])
    processor = FluxProcessor(window_days=7)
    processor.process_whoop(raw, "UTC", "w1")
    assert processor.baseline_store.baselines.hrv_baseline_ms == pytest.approx(61.0)
    blob = processor.save_baselines()
    assert "NaN" not in blob
    assert json.loads(blob)["hrv_values"] == [60.0, 62.0]
