"""Tests for the AuditLogger and related utilities."""

from __future__ import annotations

import json

from hsiflux.core.audit.logger import AuditEvent, _hash_input, _hash_owner


class TestHashing:
    def test_hash_is_sha256_hex(self):
        assert len(_hash_input({"key": "value"})) == 64

    def test_order_independent(self):
        assert _hash_input({"z": 1, "a": 2}) == _hash_input({"a": 2, "z": 1})

    def test_non_serializable_returns_empty(self):
        assert _hash_input(object()) == ""

    def test_owner_hash(self):
        assert _hash_owner("") == ""
        assert _hash_owner("user-1") != "user-1"
        assert len(_hash_owner("user-1")) == 64


class TestLogEvent:
    def test_log_event_returns_uuid(self, audit_logger):
        eid = audit_logger.log_event(AuditEvent(action="tool_invocation", tool_name="t"))
        assert len(eid) == 36

    def test_tool_call_stores_hash_not_input(self, audit_logger):
        audit_logger.log_tool_call(
            "process_wearable",
            {"raw_json": '{"recovery": [{"score": {"hrv_rmssd_milli": 65}}]}'},
            owner_id="user-1",
            duration_ms=12.5,
            metadata={"days": 1},
        )
        events = audit_logger.get_events(tool_name="process_wearable")
        assert len(events) == 1
        event = events[0]
        assert event["action"] == "tool_invocation"
        assert len(event["tool_input_hash"]) == 64
        assert event["owner_hash"] == _hash_owner("user-1")
        assert json.loads(event["metadata_json"]) == {"days": 1}
        assert "hrv" not in json.dumps(event)
        assert "user-1" not in json.dumps(event)

    def test_failure_status(self, audit_logger):
        audit_logger.log_tool_call(
            "behavior_to_hsi", status="failure", error_type="InvalidSessionError"
        )
        event = audit_logger.get_events()[0]
        assert event["status"] == "failure"
        assert event["error_type"] == "InvalidSessionError"

    def test_write_failure_returns_empty(self, audit_logger, baseline_db):
        baseline_db.close()
        assert audit_logger.log_tool_call("health_check") == ""


class TestBaselineAccess:
    def test_baseline_access_logged(self, audit_logger):
        audit_logger.log_baseline_access("baseline_save", owner_id="u", kind="wearable")
        audit_logger.log_baseline_access("baseline_delete", owner_id="u", kind=None)
        assert audit_logger.count_events() == 2
        assert audit_logger.count_events(action="baseline_save") == 1
        saved = audit_logger.get_events(action="baseline_save")[0]
        assert saved["store_kind"] == "wearable"

    def test_limit(self, audit_logger):
        for _ in range(5):
            audit_logger.log_baseline_access("baseline_load", owner_id="u", kind="behavior")
        assert len(audit_logger.get_events(limit=3)) == 3

    def test_owner_filter_matches_hashed_id(self, audit_logger):
        audit_logger.log_baseline_access("baseline_load", owner_id="alice", kind="wearable")
        audit_logger.log_baseline_access("baseline_load", owner_id="bob", kind="wearable")
        audit_logger.log_baseline_access("baseline_save", owner_id="alice", kind="wearable")
        assert audit_logger.count_events(owner_id="alice") == 2
        assert audit_logger.count_events(action="baseline_load", owner_id="bob") == 1
        events = audit_logger.get_events(owner_id="alice", action="baseline_save")
        assert [e["owner_hash"] for e in events] == [_hash_owner("alice")]
