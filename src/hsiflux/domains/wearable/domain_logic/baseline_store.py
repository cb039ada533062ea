"""Rolling per-person baselines for HRV, resting HR and sleep.

``observe()`` is the only mutating call. It compares today against the
baseline as it stood *before* today, then folds today in, so a deviation
never includes the value it is measuring.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.baseline.rolling import (
    RollingWindow,
    deviation_pct,
    migrate_state,
    parse_state,
    read_samples,
    read_window_size,
)
from hsiflux.core.errors import BaselineStateError
from hsiflux.domains.wearable.domain_logic.decay_context import BioDailyContext
from hsiflux.domains.wearable.domain_logic.signal_models import (
    Baselines,
    ContextualSignals,
    DerivedSignals,
)

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_WINDOW = 14

# v1: sample arrays + window_size, no version field
# v2: adds version and the optional last bio context
BASELINE_STORE_VERSION = 2

# Percentage deviation that maps to a full +/-1 bio delta
_DELTA_FULL_SCALE_PCT = 50.0

_LABEL = "Wearable baseline"


def _to_delta(pct: float | None) -> float | None:
    if pct is None:
        return None
    return max(-1.0, min(1.0, pct / _DELTA_FULL_SCALE_PCT))


def _migrate_v1(data: dict[str, Any]) -> None:
    # v1 blobs predate bio context capture.
    data.setdefault("bio_daily_context_last", None)


_MIGRATIONS = {1: _migrate_v1}


class BaselineStore:
    """Wearable baseline store for one tracked person/device.

    Usage::

        store = BaselineStore(window_size=14)
        contextual = store.observe(derived)
        blob = store.to_json()
        restored = BaselineStore.from_json(blob)
    """

    def __init__(self, window_size: int = DEFAULT_BASELINE_WINDOW) -> None:
        self._window_size = window_size
        self._hrv = RollingWindow(window_size)
        self._rhr = RollingWindow(window_size)
        self._sleep_duration = RollingWindow(window_size)
        self._sleep_efficiency = RollingWindow(window_size)
        self._bio_context: BioDailyContext | None = None

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def baselines(self) -> Baselines:
        return Baselines(
            hrv_baseline_ms=self._hrv.mean(),
            rhr_baseline_bpm=self._rhr.mean(),
            sleep_baseline_minutes=self._sleep_duration.mean(),
            sleep_efficiency_baseline=self._sleep_efficiency.mean(),
            baseline_days=max(len(self._hrv), len(self._rhr)),
        )

    @property
    def bio_context(self) -> BioDailyContext | None:
        """Most recent captured bio state, or None before the first observation."""
        return self._bio_context

    # ------------------------------------------------------------------
    # Observe
    # ------------------------------------------------------------------

    def observe(self, derived: DerivedSignals) -> ContextualSignals:
        """Contextualize one derived day against the baseline, then fold it in."""
        canonical = derived.normalized.canonical
        hrv = canonical.recovery.hrv_rmssd_ms
        rhr = canonical.recovery.resting_hr_bpm
        sleep_minutes = canonical.sleep.total_sleep_minutes

        before = self.baselines
        hrv_dev = deviation_pct(hrv, before.hrv_baseline_ms)
        rhr_dev = deviation_pct(rhr, before.rhr_baseline_bpm)
        sleep_dev = deviation_pct(sleep_minutes, before.sleep_baseline_minutes)

        if hrv is not None:
            self._hrv.push(hrv)
        if rhr is not None:
            self._rhr.push(rhr)
        if sleep_minutes is not None:
            self._sleep_duration.push(sleep_minutes)
        if derived.sleep_efficiency is not None:
            self._sleep_efficiency.push(derived.sleep_efficiency)

        self._bio_context = BioDailyContext(
            observed_at=canonical.observed_at,
            computed_at=datetime.now(timezone.utc),
            sleep_quality=derived.normalized.sleep_score,
            recovery=derived.normalized.recovery_score,
            hrv_delta=_to_delta(hrv_dev),
            rhr_delta=_to_delta(rhr_dev),
            source_ids=[f"{canonical.vendor.value}-{canonical.device_id}"],
        )

        return ContextualSignals(
            derived=derived,
            baselines=self.baselines,
            hrv_deviation_pct=hrv_dev,
            rhr_deviation_pct=rhr_dev,
            sleep_duration_deviation_pct=sleep_dev,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": BASELINE_STORE_VERSION,
            "hrv_values": self._hrv.to_list(),
            "rhr_values": self._rhr.to_list(),
            "sleep_duration_values": self._sleep_duration.to_list(),
            "sleep_efficiency_values": self._sleep_efficiency.to_list(),
            "window_size": self._window_size,
        }
        if self._bio_context is not None:
            data["bio_daily_context_last"] = self._bio_context.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BaselineStore:
        """Load a store from its JSON object, migrating older versions forward.

        Raises:
            BaselineStateError: If the state is malformed or from a newer version.
        """
        data = migrate_state(
            dict(data),
            current_version=BASELINE_STORE_VERSION,
            migrations=_MIGRATIONS,
            label=_LABEL,
        )
        store = cls(read_window_size(data, DEFAULT_BASELINE_WINDOW, _LABEL))
        store._hrv = RollingWindow(store._window_size, read_samples(data, "hrv_values", _LABEL))
        store._rhr = RollingWindow(store._window_size, read_samples(data, "rhr_values", _LABEL))
        store._sleep_duration = RollingWindow(
            store._window_size, read_samples(data, "sleep_duration_values", _LABEL)
        )
        store._sleep_efficiency = RollingWindow(
            store._window_size, read_samples(data, "sleep_efficiency_values", _LABEL)
        )

        raw_ctx = data.get("bio_daily_context_last")
        if raw_ctx is not None:
            if not isinstance(raw_ctx, dict):
                raise BaselineStateError(f"{_LABEL} bio context must be an object")
            try:
                store._bio_context = BioDailyContext.from_dict(raw_ctx)
            except (KeyError, TypeError, ValueError) as exc:
                raise BaselineStateError(f"{_LABEL} bio context is malformed: {exc}") from exc
        return store

    @classmethod
    def from_json(cls, blob: str) -> BaselineStore:
        """Load a store from a persisted blob.

        Raises:
            BaselineStateError: If the blob is malformed or from a newer version.
        """
        return cls.from_dict(parse_state(blob))
