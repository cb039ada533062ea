"""Behavioral session ingestion: session JSON to canonical session signals.

A session document looks like::

    {
      "session_id": "sess-1",
      "device_id": "phone-1",
      "timezone": "UTC",
      "start_time": "2024-01-15T14:00:00Z",
      "end_time": "2024-01-15T14:30:00Z",
      "events": [
        {"timestamp": "...", "event_type": "scroll",
         "scroll": {"direction_reversal": true}},
        {"timestamp": "...", "event_type": "typing",
         "typing": {"duration_sec": 42.0}},
        ...
      ]
    }

Structural problems raise ``PayloadParseError``; a session whose end is not
after its start raises ``InvalidSessionError`` before anything is derived.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timedelta
from typing import Any

from hsiflux.core.errors import InvalidSessionError, PayloadParseError
from hsiflux.core.hsi.models import parse_utc
from hsiflux.domains.behavior.domain_logic.signal_models import (
    INTERRUPTION_TYPES,
    BehaviorEvent,
    BehaviorEventType,
    BehaviorSession,
    CanonicalBehaviorSignals,
    EngagementSegment,
    IdleSegment,
)

logger = logging.getLogger(__name__)

# Silence longer than this counts as idle; only the excess is idle time.
IDLE_GAP_THRESHOLD_SEC = 30.0

# Shorter runs of activity are not engagement segments.
MIN_ENGAGEMENT_DURATION_SEC = 10.0

_IDLE_OFFSET = timedelta(seconds=IDLE_GAP_THRESHOLD_SEC)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _timestamp(value: Any, field_name: str) -> datetime:
    if not isinstance(value, str):
        raise PayloadParseError(f"Session field {field_name!r} must be a timestamp string")
    try:
        return parse_utc(value)
    except ValueError as exc:
        raise PayloadParseError(f"Session field {field_name!r} is not a valid timestamp") from exc


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise PayloadParseError(f"Session is missing required field {key!r}")
    return value


def _sub_object(event: dict[str, Any], key: str) -> dict[str, Any]:
    value = event.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PayloadParseError(f"Event field {key!r} must be an object")
    return value


def _parse_event(raw: Any, index: int) -> BehaviorEvent:
    if not isinstance(raw, dict):
        raise PayloadParseError(f"Event {index} must be an object")
    try:
        event_type = BehaviorEventType(raw.get("event_type"))
    except ValueError:
        raise PayloadParseError(
            f"Event {index} has unknown event_type {raw.get('event_type')!r}"
        ) from None

    scroll = _sub_object(raw, "scroll")
    typing = _sub_object(raw, "typing")
    interruption = _sub_object(raw, "interruption")

    duration = typing.get("duration_sec")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            raise PayloadParseError(f"Event {index} typing.duration_sec must be a number")
        try:
            duration = float(duration)
        except OverflowError:
            duration = math.inf
        if not math.isfinite(duration):
            raise PayloadParseError(f"Event {index} typing.duration_sec must be finite")

    return BehaviorEvent(
        timestamp=_timestamp(raw.get("timestamp"), f"events[{index}].timestamp"),
        event_type=event_type,
        direction_reversal=bool(scroll.get("direction_reversal", False)),
        typing_duration_sec=duration,
        interruption_action=interruption.get("action"),
    )


def parse_session(raw_json: str) -> BehaviorSession:
    """Parse a session document.

    Raises:
        PayloadParseError: If the document is not valid JSON or misses fields.
    """
    try:
        data = json.loads(raw_json)
    except ValueError as exc:
        raise PayloadParseError(f"Failed to parse behavioral session: {exc}") from exc
    if not isinstance(data, dict):
        raise PayloadParseError("Behavioral session must be a JSON object")

    events = data.get("events")
    if not isinstance(events, list):
        raise PayloadParseError("Session is missing required field 'events'")

    tz = data.get("timezone") or "UTC"
    if not isinstance(tz, str):
        raise PayloadParseError("Session field 'timezone' must be a string")

    return BehaviorSession(
        session_id=_required_str(data, "session_id"),
        device_id=_required_str(data, "device_id"),
        start_time=_timestamp(data.get("start_time"), "start_time"),
        end_time=_timestamp(data.get("end_time"), "end_time"),
        events=tuple(_parse_event(e, i) for i, e in enumerate(events)),
        timezone=tz,
    )


# ---------------------------------------------------------------------------
# Canonicalization
# ---------------------------------------------------------------------------

def _seconds(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds()


def compute_inter_event_gaps(events: list[BehaviorEvent]) -> list[float]:
    """Gaps between consecutive events, in seconds.

    Typing events have their own duration, so a gap next to one is capped at
    the longest gap between non-typing events (when there is one).
    """
    if len(events) < 2:
        return []

    gaps: list[tuple[float, bool]] = []
    for prev, cur in zip(events, events[1:]):
        gap = max(_seconds(cur.timestamp, prev.timestamp), 0.0)
        involves_typing = BehaviorEventType.TYPING in (prev.event_type, cur.event_type)
        gaps.append((gap, involves_typing))

    max_plain_gap = max((g for g, typing in gaps if not typing), default=0.0)
    if max_plain_gap > 0:
        return [min(g, max_plain_gap) if typing else g for g, typing in gaps]
    return [g for g, _ in gaps]


def detect_idle_segments(
    events: list[BehaviorEvent], start: datetime, end: datetime
) -> list[IdleSegment]:
    """Silences longer than the idle threshold, including before the first and after the last event."""
    marks = [start] + [e.timestamp for e in events] + [end]
    segments = []
    for left, right in zip(marks, marks[1:]):
        gap = _seconds(right, left)
        if gap > IDLE_GAP_THRESHOLD_SEC:
            segments.append(IdleSegment(
                start=left + _IDLE_OFFSET,
                end=right,
                duration_sec=max(gap - IDLE_GAP_THRESHOLD_SEC, 0.0),
            ))
    return segments


def detect_engagement_segments(
    events: list[BehaviorEvent], start: datetime, end: datetime
) -> list[EngagementSegment]:
    """Runs of non-interrupted activity lasting at least the minimum duration.

    A segment ends at an interruption (notification, call, app switch) or at
    an idle gap. The session edges are absorbed when the first or last event
    is within the idle threshold of them.
    """
    first = next(
        (i for i, e in enumerate(events) if e.event_type not in INTERRUPTION_TYPES), None
    )
    if first is None:
        return []

    segments: list[EngagementSegment] = []
    seg_start = events[first].timestamp
    if _seconds(seg_start, start) <= IDLE_GAP_THRESHOLD_SEC:
        seg_start = start
    count = 1

    def close(seg_end: datetime) -> None:
        duration = _seconds(seg_end, seg_start)
        if duration >= MIN_ENGAGEMENT_DURATION_SEC and count > 0:
            segments.append(EngagementSegment(seg_start, seg_end, duration, count))

    for prev, cur in zip(events[first:], events[first + 1:]):
        is_interruption = cur.event_type in INTERRUPTION_TYPES
        if is_interruption or _seconds(cur.timestamp, prev.timestamp) > IDLE_GAP_THRESHOLD_SEC:
            close(cur.timestamp if is_interruption else prev.timestamp)
            seg_start = cur.timestamp
            count = 0 if is_interruption else 1
        else:
            count += 1

    last = events[-1].timestamp
    close(end if _seconds(end, last) <= IDLE_GAP_THRESHOLD_SEC else last)
    return segments


def session_to_canonical(session: BehaviorSession) -> CanonicalBehaviorSignals:
    """Reduce a session to counts, gaps and segments.

    Raises:
        InvalidSessionError: If the session does not end after it starts.
    """
    if session.start_time >= session.end_time:
        raise InvalidSessionError("Session end time must be after start time")

    events = sorted(session.events, key=lambda e: e.timestamp)
    counts = {t: 0 for t in BehaviorEventType}
    for event in events:
        counts[event.event_type] += 1

    reversals = sum(
        1 for e in events
        if e.event_type is BehaviorEventType.SCROLL and e.direction_reversal
    )
    typing_sec = float(sum(
        max(round(e.typing_duration_sec or 0.0), 0)
        for e in events
        if e.event_type is BehaviorEventType.TYPING
    ))

    idle = detect_idle_segments(events, session.start_time, session.end_time)

    return CanonicalBehaviorSignals(
        session_id=session.session_id,
        device_id=session.device_id,
        timezone=session.timezone,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_sec=_seconds(session.end_time, session.start_time),
        total_events=len(events),
        scroll_events=counts[BehaviorEventType.SCROLL],
        tap_events=counts[BehaviorEventType.TAP],
        swipe_events=counts[BehaviorEventType.SWIPE],
        notification_events=counts[BehaviorEventType.NOTIFICATION],
        call_events=counts[BehaviorEventType.CALL],
        typing_events=counts[BehaviorEventType.TYPING],
        app_switch_events=counts[BehaviorEventType.APP_SWITCH],
        scroll_direction_reversals=reversals,
        total_typing_duration_sec=typing_sec,
        idle_segments=tuple(idle),
        total_idle_time_sec=sum(s.duration_sec for s in idle),
        engagement_segments=tuple(
            detect_engagement_segments(events, session.start_time, session.end_time)
        ),
        inter_event_gaps=tuple(compute_inter_event_gaps(events)),
    )
