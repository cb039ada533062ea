"""Rolling-window statistics and versioned state loading shared by baseline stores."""

from __future__ import annotations

import json
import logging
import math
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from hsiflux.core.errors import BaselineStateError

logger = logging.getLogger(__name__)

# A migration upgrades a state dict from version N to N + 1 in place.
Migration = Callable[[dict[str, Any]], None]


class RollingWindow:
    """Bounded FIFO of numeric samples; the oldest sample is evicted first.

    A capacity of 0 is valid and never holds a sample.
    """

    def __init__(self, capacity: int, values: Iterable[float] = ()) -> None:
        if capacity < 0:
            raise ValueError("window capacity must not be negative")
        self._values: deque[float] = deque(values, maxlen=capacity)

    def push(self, value: float) -> None:
        if not math.isfinite(value):
            raise ValueError(f"window samples must be finite, got {value!r}")
        self._values.append(value)

    def mean(self) -> float | None:
        """Arithmetic mean of the samples held, or None when empty."""
        if not self._values:
            return None
        return sum(self._values) / len(self._values)

    def clear(self) -> None:
        self._values.clear()

    def to_list(self) -> list[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


def deviation_pct(current: float | None, baseline: float | None) -> float | None:
    """Percentage deviation of ``current`` from ``baseline``.

    None unless both are known and the baseline is positive. A zero baseline
    is a valid sample but cannot be divided by.
    """
    if current is None or baseline is None or baseline <= 0:
        return None
    return (current - baseline) / baseline * 100.0


# ---------------------------------------------------------------------------
# Versioned state
# ---------------------------------------------------------------------------

def parse_state(blob: str) -> dict[str, Any]:
    """Decode a persisted store blob into a JSON object."""
    try:
        data = json.loads(blob)
    except ValueError as exc:
        raise BaselineStateError(f"Baseline state is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise BaselineStateError("Baseline state must be a JSON object")
    return data


def migrate_state(
    data: dict[str, Any],
    *,
    current_version: int,
    migrations: dict[int, Migration],
    label: str,
) -> dict[str, Any]:
    """Upgrade a state dict to ``current_version``, one version at a time.

    A missing ``version`` means version 1. Versions newer than
    ``current_version`` are rejected rather than loaded partially.

    Args:
        data: Decoded state. Mutated in place and returned.
        current_version: Version this build writes.
        migrations: ``{from_version: fn}``; each fn upgrades to from_version + 1.
        label: Store name for messages.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise BaselineStateError(f"{label} state has invalid version: {version!r}")
    if version > current_version:
        raise BaselineStateError(
            f"{label} state version {version} is newer than supported version {current_version}"
        )

    start = version
    while version < current_version:
        step = migrations.get(version)
        if step is not None:
            step(data)
        version += 1
    data["version"] = current_version

    if start < current_version:
        logger.info("Migrated %s state from version %d to %d", label, start, current_version)
    return data


def read_samples(data: dict[str, Any], key: str, label: str) -> list[float]:
    """Read a per-metric sample array; a missing array is empty."""
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BaselineStateError(f"{label} field {key!r} must be an array")
    samples: list[float] = []
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise BaselineStateError(f"{label} field {key!r} holds a non-numeric sample")
        try:
            sample = float(item)
        except OverflowError:
            sample = math.inf
        if not math.isfinite(sample):
            raise BaselineStateError(f"{label} field {key!r} holds a non-finite sample")
        samples.append(sample)
    return samples


def read_window_size(data: dict[str, Any], default: int, label: str) -> int:
    raw = data.get("window_size", default)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise BaselineStateError(f"{label} window_size must be a non-negative integer")
    return raw
