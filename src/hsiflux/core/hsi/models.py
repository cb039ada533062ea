"""HSI (Human State Interface) output primitives shared by every encoder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

PRODUCER_NAME = "hsi-flux"
FLUX_VERSION = "0.1.0"

# Wearable daily payloads and axis payloads carry different schema versions.
HSI_DAILY_VERSION = "1.0.0"
HSI_AXES_VERSION = "1.0"


class HsiDirection(str, Enum):
    """How an axis score should be read."""

    HIGHER_IS_MORE = "higher_is_more"
    HIGHER_IS_LESS = "higher_is_less"
    BIDIRECTIONAL = "bidirectional"


@dataclass
class HsiAxisReading:
    """One scored reading on a named HSI axis."""

    axis: str
    score: float | None
    confidence: float
    window_id: str
    direction: HsiDirection | None = None
    unit: str | None = None
    evidence_source_ids: list[str] = field(default_factory=list)
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "axis": self.axis,
            "score": self.score,
            "confidence": self.confidence,
            "window_id": self.window_id,
        }
        if self.direction is not None:
            out["direction"] = self.direction.value
        if self.unit is not None:
            out["unit"] = self.unit
        if self.evidence_source_ids:
            out["evidence_source_ids"] = list(self.evidence_source_ids)
        if self.notes is not None:
            out["notes"] = self.notes
        return out


# ---------------------------------------------------------------------------
# Identifiers and timestamps
# ---------------------------------------------------------------------------

def source_id_for(device_id: str) -> str:
    """Source identifier used in axis payloads: ``s_`` + device id."""
    return "s_" + device_id.replace("-", "_")


def window_id_for(session_id: str) -> str:
    """Window identifier for a behavioral session: ``w_`` + session id."""
    return "w_" + session_id.replace("-", "_")


def parse_utc(value: str) -> datetime:
    """Parse an ISO 8601 / RFC 3339 timestamp into an aware UTC datetime.

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_utc(dt: datetime) -> str:
    """RFC 3339 rendering of a UTC datetime."""
    return dt.astimezone(timezone.utc).isoformat()


def producer_block(instance_id: str) -> dict[str, str]:
    return {"name": PRODUCER_NAME, "version": FLUX_VERSION, "instance_id": instance_id}


# ---------------------------------------------------------------------------
# Axis payload blocks
# ---------------------------------------------------------------------------

def source_block(
    source_type: str, quality: float, degraded: bool, notes: str | None = None
) -> dict[str, Any]:
    block: dict[str, Any] = {"type": source_type, "quality": quality, "degraded": degraded}
    if notes is not None:
        block["notes"] = notes
    return block


def privacy_block(purposes: list[str]) -> dict[str, Any]:
    """Derived metrics only: no PII, no raw biosignals."""
    return {
        "contains_pii": False,
        "raw_biosignals_allowed": False,
        "derived_metrics_allowed": True,
        "purposes": list(purposes),
    }


def axes_payload(
    *,
    instance_id: str,
    observed_at: datetime,
    computed_at: datetime,
    window_id: str,
    window: dict[str, Any],
    source_id: str,
    source: dict[str, Any],
    axes: dict[str, list[HsiAxisReading]],
    purposes: list[str],
    meta: dict[str, Any],
) -> dict[str, Any]:
    """Assemble an HSI 1.0 axis payload with one window and one source.

    Axis domains with no readings are left out.
    """
    return {
        "hsi_version": HSI_AXES_VERSION,
        "observed_at_utc": format_utc(observed_at),
        "computed_at_utc": format_utc(computed_at),
        "producer": producer_block(instance_id),
        "window_ids": [window_id],
        "windows": {window_id: window},
        "source_ids": [source_id],
        "sources": {source_id: source},
        "axes": {
            domain: {"readings": [r.to_dict() for r in readings]}
            for domain, readings in axes.items()
            if readings
        },
        "privacy": privacy_block(purposes),
        "meta": meta,
    }
