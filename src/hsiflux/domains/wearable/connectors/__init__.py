"""Wearable vendor connectors: vendor JSON in, canonical days out."""

from __future__ import annotations

import json
import math
from typing import Any, Protocol, runtime_checkable

from hsiflux.core.errors import PayloadParseError
from hsiflux.domains.wearable.domain_logic.signal_models import CanonicalWearSignals


@runtime_checkable
class VendorPayloadAdapter(Protocol):
    """Parses one vendor's export into canonical days.

    The pipeline calls ``parse`` without knowing which vendor produced the
    payload; every implementation yields the same ``CanonicalWearSignals``.
    """

    @property
    def vendor_name(self) -> str:
        """Lower-case vendor label, e.g. 'whoop'."""
        ...

    def parse(
        self, raw_json: str, timezone: str, device_id: str
    ) -> list[CanonicalWearSignals]:
        """Parse a raw payload into canonical days sorted by date.

        Raises:
            PayloadParseError: If the payload is not valid JSON or is
                structurally wrong.
        """
        ...


# ---------------------------------------------------------------------------
# Shared parsing helpers
# ---------------------------------------------------------------------------

def load_payload(raw_json: str, vendor: str) -> dict[str, Any]:
    """Decode a vendor payload into its top-level object."""
    try:
        payload = json.loads(raw_json)
    except ValueError as exc:
        raise PayloadParseError(f"Invalid {vendor} JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise PayloadParseError(f"{vendor} payload must be a JSON object")
    return payload


def record_list(payload: dict[str, Any], key: str, vendor: str) -> list[dict[str, Any]]:
    """Return ``payload[key]`` as a list of objects; missing or null is empty."""
    records = payload.get(key)
    if records is None:
        return []
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise PayloadParseError(f"{vendor} field {key!r} must be an array of objects")
    return records


def opt_num(value: Any) -> float | None:
    """Numeric value as float; None for missing, non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return num if math.isfinite(num) else None


def opt_int(value: Any) -> int | None:
    num = opt_num(value)
    return int(num) if num is not None else None


def required_str(record: dict[str, Any], key: str, vendor: str) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value:
        raise PayloadParseError(f"{vendor} record is missing required field {key!r}")
    return value


def get_adapter(vendor: str) -> VendorPayloadAdapter:
    """Return the adapter for a vendor label ('whoop' or 'garmin')."""
    from hsiflux.domains.wearable.connectors.garmin import GarminAdapter
    from hsiflux.domains.wearable.connectors.whoop import WhoopAdapter

    adapters: dict[str, VendorPayloadAdapter] = {
        "whoop": WhoopAdapter(),
        "garmin": GarminAdapter(),
    }
    try:
        return adapters[vendor.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown vendor: {vendor!r}. Valid: {sorted(adapters)}") from None
