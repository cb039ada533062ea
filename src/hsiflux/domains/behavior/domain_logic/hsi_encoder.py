"""Encode contextual behavioral sessions as HSI 1.0 axis payloads."""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.hsi.models import (
    HsiAxisReading,
    HsiDirection,
    axes_payload,
    format_utc,
    source_block,
    source_id_for,
    window_id_for,
)
from hsiflux.domains.behavior.domain_logic.signal_models import (
    ContextualBehaviorSignals,
    DerivedBehaviorSignals,
)

# Sessions in baseline that earn the confidence bonus
BASELINE_BONUS_MIN_SESSIONS = 5
BASELINE_CONFIDENCE_BONUS = 0.1

SESSION_AXES = (
    "distraction",
    "focus",
    "task_switch_rate",
    "notification_load",
    "burstiness",
    "scroll_jitter_rate",
    "interaction_intensity",
    "idle_ratio",
)

# Axes reported when a session is folded into a context snapshot
SNAPSHOT_AXES = (
    "distraction",
    "focus",
    "task_switch_rate",
    "burstiness",
    "interaction_intensity",
)

_HIGHER = HsiDirection.HIGHER_IS_MORE

# axis -> (direction, unit, notes)
_AXIS_SHAPE: dict[str, tuple[HsiDirection, str | None, str | None]] = {
    "distraction": (_HIGHER, None, None),
    "focus": (_HIGHER, None, None),
    "task_switch_rate": (_HIGHER, "normalized", "Exponential saturation of app switches per minute"),
    "notification_load": (_HIGHER, "normalized", None),
    "burstiness": (HsiDirection.BIDIRECTIONAL, "barabasi_index", "Barabási formula on inter-event gaps"),
    "scroll_jitter_rate": (_HIGHER, "ratio", None),
    "interaction_intensity": (_HIGHER, "normalized", None),
    "idle_ratio": (_HIGHER, "ratio", None),
}


def _axis_score(derived: DerivedBehaviorSignals, axis: str) -> float:
    if axis == "distraction":
        return derived.distraction_score
    if axis == "focus":
        return derived.focus_hint
    if axis == "interaction_intensity":
        return min(derived.interaction_intensity, 1.0)
    return getattr(derived, axis)


def behavior_readings(
    derived: DerivedBehaviorSignals,
    *,
    confidence: float,
    window_id: str,
    source_id: str,
    axes: Iterable[str] = SESSION_AXES,
) -> list[HsiAxisReading]:
    """Behavior-axis readings for one derived session, in ``axes`` order."""
    readings = []
    for axis in axes:
        direction, unit, notes = _AXIS_SHAPE[axis]
        readings.append(HsiAxisReading(
            axis=axis,
            score=_axis_score(derived, axis),
            confidence=confidence,
            window_id=window_id,
            direction=direction,
            unit=unit,
            evidence_source_ids=[source_id],
            notes=notes,
        ))
    return readings


class HsiBehaviorEncoder:
    """Builds one HSI axis payload per behavioral session."""

    def __init__(self, instance_id: str | None = None) -> None:
        self.instance_id = instance_id or str(uuid.uuid4())

    def encode(
        self, signals: ContextualBehaviorSignals, *, now: datetime | None = None
    ) -> dict[str, Any]:
        derived = signals.derived
        normalized = derived.normalized
        canonical = normalized.canonical

        window_id = window_id_for(canonical.session_id)
        source_id = source_id_for(canonical.device_id)

        bonus = (
            BASELINE_CONFIDENCE_BONUS
            if signals.baselines.sessions_in_baseline >= BASELINE_BONUS_MIN_SESSIONS
            else 0.0
        )
        confidence = min(normalized.coverage + bonus, 1.0)

        flags = [flag.value for flag in normalized.quality_flags]
        notes = f"Quality flags: {', '.join(flags)}" if flags else None

        meta: dict[str, Any] = {
            "session_id": canonical.session_id,
            "duration_sec": canonical.duration_sec,
            "total_events": canonical.total_events,
            "deep_focus_blocks": derived.deep_focus_blocks,
        }
        if signals.baselines.distraction_baseline is not None:
            meta["baseline_distraction"] = signals.baselines.distraction_baseline
        if signals.distraction_deviation_pct is not None:
            meta["distraction_deviation_pct"] = signals.distraction_deviation_pct
        meta["sessions_in_baseline"] = signals.baselines.sessions_in_baseline

        return axes_payload(
            instance_id=self.instance_id,
            observed_at=canonical.end_time,
            computed_at=now or datetime.now(timezone.utc),
            window_id=window_id,
            window={
                "start": format_utc(canonical.start_time),
                "end": format_utc(canonical.end_time),
                "label": f"session:{canonical.session_id}",
            },
            source_id=source_id,
            source=source_block("app", normalized.coverage, bool(flags), notes),
            axes={
                "behavior": behavior_readings(
                    derived, confidence=confidence, window_id=window_id, source_id=source_id
                )
            },
            purposes=["behavioral_research"],
            meta=meta,
        )

    def encode_to_json(self, signals: ContextualBehaviorSignals) -> str:
        return json.dumps(self.encode(signals), indent=2)
