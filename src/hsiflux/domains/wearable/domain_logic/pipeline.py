"""Wearable pipeline: vendor JSON -> canonical -> normalized -> derived -> contextual -> HSI.

Stateless entry points (``wearable_to_hsi_daily`` and the per-vendor
shortcuts) build a fresh baseline for each call, so days inside one payload
still contextualize against each other. ``FluxProcessor`` keeps the baseline
across calls and can emit context snapshots from the last captured day.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.errors import PayloadParseError
from hsiflux.core.hsi.models import (
    HsiAxisReading,
    axes_payload,
    format_utc,
    parse_utc,
    source_block,
    source_id_for,
)
from hsiflux.domains.behavior.domain_logic.hsi_encoder import SNAPSHOT_AXES, behavior_readings
from hsiflux.domains.behavior.domain_logic.pipeline import derive_session
from hsiflux.domains.wearable.connectors import VendorPayloadAdapter, get_adapter
from hsiflux.domains.wearable.domain_logic import feature_deriver, normalizer
from hsiflux.domains.wearable.domain_logic.baseline_store import (
    DEFAULT_BASELINE_WINDOW,
    BaselineStore,
)
from hsiflux.domains.wearable.domain_logic.decay_context import (
    DEFAULT_DECAY_HALF_LIFE_HOURS,
    decay,
)
from hsiflux.domains.wearable.domain_logic.hsi_encoder import HsiDailyEncoder

logger = logging.getLogger(__name__)

# Base confidence of a captured context: 0.5 when empty, else 0.6 + 0.1 per field
_EMPTY_CONTEXT_CONFIDENCE = 0.5
_CONTEXT_CONFIDENCE_FLOOR = 0.6
_CONTEXT_CONFIDENCE_PER_FIELD = 0.1


def _resolve(adapter: VendorPayloadAdapter | str) -> VendorPayloadAdapter:
    return get_adapter(adapter) if isinstance(adapter, str) else adapter


def _run_days(
    adapter: VendorPayloadAdapter,
    raw_json: str,
    tz: str,
    device_id: str,
    store: BaselineStore,
    encoder: HsiDailyEncoder,
) -> list[str]:
    days = adapter.parse(raw_json, tz, device_id)
    payloads = []
    for canonical in days:
        derived = feature_deriver.derive(normalizer.normalize(canonical))
        payloads.append(encoder.encode_to_json(store.observe(derived)))
    return payloads


# ---------------------------------------------------------------------------
# Stateless
# ---------------------------------------------------------------------------

def wearable_to_hsi_daily(
    adapter: VendorPayloadAdapter | str, raw_json: str, tz: str, device_id: str
) -> list[str]:
    """Encode every day in a vendor payload, one HSI JSON document per day.

    Args:
        adapter: An adapter instance or a vendor label ('whoop', 'garmin').
        raw_json: The vendor payload.
        tz: IANA timezone reported on each daily window.
        device_id: Device identifier reported in provenance.

    Raises:
        PayloadParseError: If the payload is malformed.
        ValueError: If the vendor label is unknown.
    """
    return _run_days(_resolve(adapter), raw_json, tz, device_id, BaselineStore(), HsiDailyEncoder())


def whoop_to_hsi_daily(raw_json: str, tz: str, device_id: str) -> list[str]:
    return wearable_to_hsi_daily("whoop", raw_json, tz, device_id)


def garmin_to_hsi_daily(raw_json: str, tz: str, device_id: str) -> list[str]:
    return wearable_to_hsi_daily("garmin", raw_json, tz, device_id)


# ---------------------------------------------------------------------------
# Stateful
# ---------------------------------------------------------------------------

class FluxProcessor:
    """Wearable processing with a persistent baseline for one person/device.

    Usage::

        processor = FluxProcessor(window_days=14)
        processor.load_baselines(saved_blob)
        payloads = processor.process_whoop(raw_json, "America/New_York", "whoop-1")
        saved_blob = processor.save_baselines()
    """

    def __init__(
        self,
        window_days: int = DEFAULT_BASELINE_WINDOW,
        *,
        half_life_hours: float = DEFAULT_DECAY_HALF_LIFE_HOURS,
    ) -> None:
        if half_life_hours <= 0:
            raise ValueError("half_life_hours must be positive")
        self._store = BaselineStore(window_days)
        self._encoder = HsiDailyEncoder()
        self.half_life_hours = half_life_hours

    @property
    def baseline_store(self) -> BaselineStore:
        return self._store

    def process(
        self, adapter: VendorPayloadAdapter | str, raw_json: str, tz: str, device_id: str
    ) -> list[str]:
        """Encode each day and fold it into the baseline, in payload order.

        A payload that fails to parse leaves the baseline untouched.
        """
        return _run_days(_resolve(adapter), raw_json, tz, device_id, self._store, self._encoder)

    def process_whoop(self, raw_json: str, tz: str, device_id: str) -> list[str]:
        return self.process("whoop", raw_json, tz, device_id)

    def process_garmin(self, raw_json: str, tz: str, device_id: str) -> list[str]:
        return self.process("garmin", raw_json, tz, device_id)

    def load_baselines(self, blob: str) -> None:
        """Replace the baseline with a persisted one.

        Raises:
            BaselineStateError: If the blob cannot be loaded. The current
                baseline is kept.
        """
        self._store = BaselineStore.from_json(blob)

    def save_baselines(self) -> str:
        return self._store.to_json()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot_now(
        self,
        now: str,
        tz: str,
        device_id: str,
        behavior_session_json: str | None = None,
    ) -> str:
        """Encode the current context at ``now`` as an HSI axis payload.

        Reads the last captured bio context (decayed to ``now``) and, when a
        session is given, scores it statelessly. The baseline is not changed.

        Raises:
            PayloadParseError: If ``now`` or the session is malformed.
            InvalidSessionError: If the session does not end after it starts.
        """
        try:
            at = parse_utc(now)
        except (AttributeError, ValueError) as exc:
            raise PayloadParseError(f"Invalid now timestamp: {now!r}") from exc

        window_id = "w_snapshot_" + str(uuid.uuid4()).replace("-", "_")
        source_id = source_id_for(device_id)

        context_readings = self._context_readings(window_id, at)
        behavior: list[HsiAxisReading] = []
        if behavior_session_json is not None:
            derived = derive_session(behavior_session_json)
            behavior = behavior_readings(
                derived,
                confidence=derived.normalized.coverage,
                window_id=window_id,
                source_id=source_id_for(derived.normalized.canonical.device_id),
                axes=SNAPSHOT_AXES,
            )

        has_context = bool(context_readings)
        has_behavior = bool(behavior)

        meta: dict[str, Any] = {
            "snapshot_type": "context_aware",
            "device_id": device_id,
            "timezone": tz,
        }
        ctx = self._store.bio_context
        if ctx is not None:
            age_seconds = int((at - ctx.observed_at).total_seconds())
            meta["bio_context_age_hours"] = age_seconds / 3600.0

        payload = axes_payload(
            instance_id=str(uuid.uuid4()),
            observed_at=at,
            computed_at=datetime.now(timezone.utc),
            window_id=window_id,
            window={"start": format_utc(at), "end": format_utc(at), "label": "snapshot"},
            source_id=source_id,
            source=source_block(
                "derived",
                0.8 if has_context or has_behavior else 0.5,
                not has_context and not has_behavior,
                None if has_context else "No bio context available",
            ),
            axes={"behavior": behavior, "context": context_readings},
            purposes=["context_snapshot"],
            meta=meta,
        )
        return json.dumps(payload, indent=2)

    def _context_readings(self, window_id: str, at: datetime) -> list[HsiAxisReading]:
        ctx = self._store.bio_context
        if ctx is None:
            return []
        fields = ctx.fields_present()
        base = (
            _CONTEXT_CONFIDENCE_FLOOR + _CONTEXT_CONFIDENCE_PER_FIELD * fields
            if fields
            else _EMPTY_CONTEXT_CONFIDENCE
        )
        decayed = decay(ctx, base, at, self.half_life_hours)
        if not decayed.is_valid(at):
            logger.debug("Bio context observed at %s is past its validity window", ctx.observed_at)
        return decayed.to_hsi_readings(window_id)
