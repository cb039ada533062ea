"""Staleness-aware biosignal context.

A wearable day is honest background context, but its relevance fades: the
night's sleep says a lot about this morning and little about tomorrow
evening. ``BioDailyContext`` is the most recent captured bio state;
``decay()`` applies exponential staleness decay against a reference time and
produces confidence-weighted HSI readings. Nothing here is persisted except
``BioDailyContext`` itself (inside the wearable baseline store).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from hsiflux.core.hsi.models import HsiAxisReading, HsiDirection, format_utc, parse_utc

DEFAULT_DECAY_HALF_LIFE_HOURS = 12.0

# Fraction of base confidence at which a context stops being worth showing
_VALIDITY_FLOOR = 0.1

_MAX_HALVINGS = 1000.0


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


@dataclass
class BioDailyContext:
    """Snapshot of one wearable day's bio state.

    Scores are in [0, 1]; deltas are normalized deviations from baseline in
    [-1, 1] (positive = above baseline).
    """

    observed_at: datetime
    computed_at: datetime
    sleep_quality: float | None = None
    recovery: float | None = None
    hrv_delta: float | None = None
    rhr_delta: float | None = None
    source_ids: list[str] = field(default_factory=list)

    def has_data(self) -> bool:
        return (
            self.sleep_quality is not None
            or self.recovery is not None
            or self.hrv_delta is not None
            or self.rhr_delta is not None
        )

    def fields_present(self) -> int:
        return sum(
            v is not None
            for v in (self.sleep_quality, self.recovery, self.hrv_delta, self.rhr_delta)
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "observed_at_utc": format_utc(self.observed_at),
            "computed_at_utc": format_utc(self.computed_at),
            "source_ids": list(self.source_ids),
        }
        for name in ("sleep_quality", "recovery", "hrv_delta", "rhr_delta"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BioDailyContext:
        """Build from persisted JSON.

        Raises:
            KeyError, TypeError, ValueError: If required timestamps are missing
                or malformed. Callers wrap these into their own error type.
        """
        return cls(
            observed_at=parse_utc(data["observed_at_utc"]),
            computed_at=parse_utc(data["computed_at_utc"]),
            sleep_quality=_optional_float(data.get("sleep_quality")),
            recovery=_optional_float(data.get("recovery")),
            hrv_delta=_optional_float(data.get("hrv_delta")),
            rhr_delta=_optional_float(data.get("rhr_delta")),
            source_ids=_source_ids(data.get("source_ids")),
        )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    try:
        num = float(value)
    except OverflowError:
        num = math.inf
    if not math.isfinite(num):
        raise ValueError(f"expected a finite number, got {value!r}")
    return num


def _source_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
        raise TypeError("source_ids must be an array of strings")
    return list(value)


@dataclass
class DecayedBioContext:
    """A ``BioDailyContext`` with staleness decay applied at a reference time."""

    context: BioDailyContext
    base_confidence: float
    decayed_confidence: float
    valid_until: datetime
    age_seconds: int
    half_life_hours: float = DEFAULT_DECAY_HALF_LIFE_HOURS

    @property
    def freshness(self) -> float:
        """Share of base confidence still remaining, in [0, 1]."""
        if self.base_confidence > 0:
            return _clamp(self.decayed_confidence / self.base_confidence)
        return 0.0

    def is_valid(self, now: datetime) -> bool:
        """True until confidence has decayed to about 10% of its base."""
        return now < self.valid_until

    def to_hsi_readings(self, window_id: str) -> list[HsiAxisReading]:
        """HSI readings for this context.

        Always emits ``bio_freshness``; every other reading is emitted only
        when its field is present in the captured context.
        """
        sources = list(self.context.source_ids)
        readings = [
            HsiAxisReading(
                axis="bio_freshness",
                score=self.freshness,
                confidence=self.base_confidence,
                window_id=window_id,
                direction=HsiDirection.HIGHER_IS_MORE,
                unit="freshness",
                evidence_source_ids=sources,
                notes=f"Age: {self.age_seconds} seconds, half-life: {self.half_life_hours:g} hours",
            )
        ]

        ctx = self.context
        if ctx.recovery is not None:
            readings.append(HsiAxisReading(
                axis="recovery_context",
                score=ctx.recovery,
                confidence=self.decayed_confidence,
                window_id=window_id,
                direction=HsiDirection.HIGHER_IS_MORE,
                unit="score",
                evidence_source_ids=sources,
            ))
        if ctx.sleep_quality is not None:
            readings.append(HsiAxisReading(
                axis="sleep_context",
                score=ctx.sleep_quality,
                confidence=self.decayed_confidence,
                window_id=window_id,
                direction=HsiDirection.HIGHER_IS_MORE,
                unit="score",
                evidence_source_ids=sources,
            ))
        if ctx.hrv_delta is not None:
            readings.append(HsiAxisReading(
                axis="hrv_delta_context",
                score=_clamp((ctx.hrv_delta + 1.0) / 2.0),
                confidence=self.decayed_confidence,
                window_id=window_id,
                direction=HsiDirection.BIDIRECTIONAL,
                unit="normalized_deviation",
                evidence_source_ids=sources,
                notes="0.5 = baseline, >0.5 = above baseline, <0.5 = below baseline",
            ))
        if ctx.rhr_delta is not None:
            # Elevated resting HR is worse, so the scale is inverted.
            readings.append(HsiAxisReading(
                axis="rhr_delta_context",
                score=_clamp((1.0 - ctx.rhr_delta) / 2.0),
                confidence=self.decayed_confidence,
                window_id=window_id,
                direction=HsiDirection.HIGHER_IS_MORE,
                unit="normalized_deviation",
                evidence_source_ids=sources,
                notes="0.5 = baseline, >0.5 = below baseline (better), <0.5 = above baseline (worse)",
            ))
        return readings


def validity_hours(half_life_hours: float) -> float:
    """Hours until confidence falls to 10% of base: ``half_life * log2(10)``."""
    return half_life_hours * math.log2(1.0 / _VALIDITY_FLOOR)


def decay(
    context: BioDailyContext,
    base_confidence: float,
    now: datetime,
    half_life_hours: float = DEFAULT_DECAY_HALF_LIFE_HOURS,
) -> DecayedBioContext:
    """Apply exponential staleness decay to a captured context.

    ``decayed = clamp(base * 0.5 ** (age_hours / half_life_hours))``. A
    ``now`` earlier than the observation gives a negative age; the clamp keeps
    the decayed confidence within [0, 1].

    Args:
        context: The captured bio context.
        base_confidence: Confidence before decay, in [0, 1].
        now: Reference time (timezone-aware).
        half_life_hours: Hours for confidence to halve; must be positive.
    """
    if half_life_hours <= 0:
        raise ValueError("half_life_hours must be positive")

    age_seconds = int((now - context.observed_at).total_seconds())
    age_hours = age_seconds / 3600.0
    # Bounded so a "now" far before the observation cannot overflow the power.
    factor = 0.5 ** max(age_hours / half_life_hours, -_MAX_HALVINGS)

    return DecayedBioContext(
        context=context,
        base_confidence=base_confidence,
        decayed_confidence=_clamp(base_confidence * factor),
        valid_until=context.observed_at + timedelta(hours=validity_hours(half_life_hours)),
        age_seconds=age_seconds,
        half_life_hours=half_life_hours,
    )

