"""Rolling per-person baselines over behavioral sessions."""

from __future__ import annotations

import json
from typing import Any

from hsiflux.core.baseline.rolling import (
    RollingWindow,
    deviation_pct,
    migrate_state,
    parse_state,
    read_samples,
    read_window_size,
)
from hsiflux.domains.behavior.domain_logic.signal_models import (
    BehaviorBaselines,
    ContextualBehaviorSignals,
    DerivedBehaviorSignals,
)

DEFAULT_BEHAVIOR_BASELINE_WINDOW = 20

# v1: sample arrays + window_size, no version field
# v2: version stamped
BEHAVIOR_STORE_VERSION = 2

_LABEL = "Behavior baseline"


class BehaviorBaselineStore:
    """Session baseline for distraction, focus, burstiness and intensity.

    Every session contributes one sample to each metric, so all four windows
    always hold the same number of samples.
    """

    def __init__(self, window_size: int = DEFAULT_BEHAVIOR_BASELINE_WINDOW) -> None:
        self._window_size = window_size
        self._distraction = RollingWindow(window_size)
        self._focus = RollingWindow(window_size)
        self._burstiness = RollingWindow(window_size)
        self._intensity = RollingWindow(window_size)

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def baselines(self) -> BehaviorBaselines:
        return BehaviorBaselines(
            distraction_baseline=self._distraction.mean(),
            focus_baseline=self._focus.mean(),
            burstiness_baseline=self._burstiness.mean(),
            intensity_baseline=self._intensity.mean(),
            sessions_in_baseline=len(self._distraction),
        )

    def session_count(self) -> int:
        return len(self._distraction)

    def clear(self) -> None:
        """Drop all samples; the window size is kept."""
        for window in (self._distraction, self._focus, self._burstiness, self._intensity):
            window.clear()

    def observe(self, derived: DerivedBehaviorSignals) -> ContextualBehaviorSignals:
        """Contextualize one session against the prior baseline, then fold it in."""
        before = self.baselines
        distraction_dev = deviation_pct(derived.distraction_score, before.distraction_baseline)
        focus_dev = deviation_pct(derived.focus_hint, before.focus_baseline)

        self._distraction.push(derived.distraction_score)
        self._focus.push(derived.focus_hint)
        self._burstiness.push(derived.burstiness)
        self._intensity.push(derived.interaction_intensity)

        return ContextualBehaviorSignals(
            derived=derived,
            baselines=self.baselines,
            distraction_deviation_pct=distraction_dev,
            focus_deviation_pct=focus_dev,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": BEHAVIOR_STORE_VERSION,
            "distraction_values": self._distraction.to_list(),
            "focus_values": self._focus.to_list(),
            "burstiness_values": self._burstiness.to_list(),
            "intensity_values": self._intensity.to_list(),
            "window_size": self._window_size,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), allow_nan=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BehaviorBaselineStore:
        """Load a store from its JSON object.

        Raises:
            BaselineStateError: If the state is malformed or from a newer version.
        """
        # v1 -> v2 only adds the version field, so no migration step.
        data = migrate_state(
            dict(data), current_version=BEHAVIOR_STORE_VERSION, migrations={}, label=_LABEL
        )
        size = read_window_size(data, DEFAULT_BEHAVIOR_BASELINE_WINDOW, _LABEL)
        store = cls(size)
        store._distraction = RollingWindow(size, read_samples(data, "distraction_values", _LABEL))
        store._focus = RollingWindow(size, read_samples(data, "focus_values", _LABEL))
        store._burstiness = RollingWindow(size, read_samples(data, "burstiness_values", _LABEL))
        store._intensity = RollingWindow(size, read_samples(data, "intensity_values", _LABEL))
        return store

    @classmethod
    def from_json(cls, blob: str) -> BehaviorBaselineStore:
        return cls.from_dict(parse_state(blob))
