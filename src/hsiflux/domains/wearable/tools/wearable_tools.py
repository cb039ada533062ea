"""MCP tools for wearable payloads and context snapshots.

``wearable_to_hsi`` is stateless. ``process_wearable`` and ``snapshot_now``
work against the owner's persisted baseline and are only registered when the
baseline bank is available. Raw payloads never reach the audit trail; only
their hashes do.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from hsiflux.core.errors import FluxError
from hsiflux.core.storage.baseline_access import load_state, save_state
from hsiflux.core.storage.repository import RepositoryError
from hsiflux.domains.wearable.domain_logic.pipeline import FluxProcessor, wearable_to_hsi_daily

if TYPE_CHECKING:
    from hsiflux.core.audit.logger import AuditLogger
    from hsiflux.core.storage.repository import BaselineRepository

logger = logging.getLogger(__name__)

_KIND = "wearable"


def _error(exc: Exception) -> str:
    return json.dumps({
        "status": "error",
        "error_type": type(exc).__name__,
        "message": str(exc),
    })


def register_wearable_tools(
    mcp: FastMCP,
    *,
    window_days: int,
    half_life_hours: float,
    repository: BaselineRepository | None = None,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register wearable tools on the MCP server."""

    def _audit(tool_name: str, tool_input: dict, start: float, *, owner_id: str = "",
               exc: Exception | None = None, metadata: dict | None = None) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name,
            tool_input,
            owner_id=owner_id,
            duration_ms=(time.monotonic() - start) * 1000,
            status="failure" if exc is not None else "success",
            error_type=type(exc).__name__ if exc is not None else None,
            metadata=metadata,
        )

    @mcp.tool
    async def wearable_to_hsi(
        ctx: Context,
        vendor: str,
        raw_json: str,
        timezone_name: str = "UTC",
        device_id: str = "unknown",
    ) -> str:
        """Convert a WHOOP or Garmin export into HSI daily payloads.

        Stateless: days in the payload are compared against each other only,
        nothing is stored.

        Args:
            vendor: 'whoop' or 'garmin'.
            raw_json: The vendor JSON export.
            timezone_name: IANA timezone of the wearer (e.g. 'America/New_York').
            device_id: Identifier of the wearable.
        """
        start = time.monotonic()
        tool_input = {"vendor": vendor, "raw_json": raw_json, "device_id": device_id}
        try:
            payloads = wearable_to_hsi_daily(vendor, raw_json, timezone_name, device_id)
        except (FluxError, ValueError) as exc:
            logger.warning("wearable_to_hsi rejected %s payload: %s", vendor, exc)
            _audit("wearable_to_hsi", tool_input, start, exc=exc)
            return _error(exc)

        _audit("wearable_to_hsi", tool_input, start, metadata={"days": len(payloads)})
        return json.dumps({
            "status": "ok",
            "vendor": vendor,
            "days": len(payloads),
            "payloads": [json.loads(p) for p in payloads],
        })

    if repository is None:
        return

    def _processor(owner_id: str, tool_name: str) -> FluxProcessor:
        processor = FluxProcessor(window_days, half_life_hours=half_life_hours)
        state = load_state(
            repository, audit_logger, owner_id=owner_id, kind=_KIND, tool_name=tool_name
        )
        if state is not None:
            processor.load_baselines(json.dumps(state))
        return processor

    @mcp.tool
    async def process_wearable(
        ctx: Context,
        owner_id: str,
        vendor: str,
        raw_json: str,
        timezone_name: str = "UTC",
        device_id: str = "unknown",
    ) -> str:
        """Convert a vendor export against the owner's rolling baseline and update it.

        Each day is compared with the baseline as it stood before that day.
        The updated baseline and the last day's bio context are saved
        encrypted. A stored baseline that cannot be loaded is never replaced.

        Args:
            owner_id: Identifier of the person whose baseline is used.
            vendor: 'whoop' or 'garmin'.
            raw_json: The vendor JSON export.
            timezone_name: IANA timezone of the wearer.
            device_id: Identifier of the wearable.
        """
        start = time.monotonic()
        tool_input = {"vendor": vendor, "raw_json": raw_json, "device_id": device_id}
        try:
            processor = _processor(owner_id, "process_wearable")
            payloads = processor.process(vendor, raw_json, timezone_name, device_id)
            store = processor.baseline_store
            save_state(
                repository,
                audit_logger,
                owner_id=owner_id,
                kind=_KIND,
                state=store.to_dict(),
                sample_count=store.baselines.baseline_days,
                tool_name="process_wearable",
            )
        except (FluxError, RepositoryError, ValueError) as exc:
            logger.warning("process_wearable failed: %s", exc)
            _audit("process_wearable", tool_input, start, owner_id=owner_id, exc=exc)
            return _error(exc)

        days_in_baseline = processor.baseline_store.baselines.baseline_days
        _audit(
            "process_wearable", tool_input, start, owner_id=owner_id,
            metadata={"days": len(payloads), "days_in_baseline": days_in_baseline},
        )
        return json.dumps({
            "status": "ok",
            "vendor": vendor,
            "days": len(payloads),
            "days_in_baseline": days_in_baseline,
            "payloads": [json.loads(p) for p in payloads],
        })

    @mcp.tool
    async def snapshot_now(
        ctx: Context,
        owner_id: str,
        device_id: str,
        timezone_name: str = "UTC",
        now_utc: str = "",
        behavior_session_json: str = "",
    ) -> str:
        """Snapshot the owner's current state from their last wearable day.

        The last captured bio context is decayed to ``now_utc`` so that stale
        physiology carries less confidence. A behavioral session can be added
        for the present moment. The stored baseline is read, never changed.

        Args:
            owner_id: Identifier of the person.
            device_id: Identifier of the device requesting the snapshot.
            timezone_name: IANA timezone of the person.
            now_utc: Reference time (RFC 3339). Defaults to the current time.
            behavior_session_json: Optional behavioral session JSON.
        """
        start = time.monotonic()
        now_utc = now_utc or datetime.now(timezone.utc).isoformat()
        tool_input = {"device_id": device_id, "now_utc": now_utc,
                      "behavior_session_json": behavior_session_json}
        try:
            processor = _processor(owner_id, "snapshot_now")
            payload = processor.snapshot_now(
                now_utc, timezone_name, device_id, behavior_session_json or None
            )
        except (FluxError, RepositoryError) as exc:
            logger.warning("snapshot_now failed: %s", exc)
            _audit("snapshot_now", tool_input, start, owner_id=owner_id, exc=exc)
            return _error(exc)

        _audit(
            "snapshot_now", tool_input, start, owner_id=owner_id,
            metadata={"has_bio_context": processor.baseline_store.bio_context is not None},
        )
        return payload
