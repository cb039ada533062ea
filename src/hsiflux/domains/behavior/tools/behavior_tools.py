"""MCP tools for behavioral sessions."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from hsiflux.core.errors import FluxError
from hsiflux.core.storage.baseline_access import load_state, save_state
from hsiflux.core.storage.repository import RepositoryError
from hsiflux.domains.behavior.domain_logic.pipeline import BehaviorProcessor
from hsiflux.domains.behavior.domain_logic.pipeline import behavior_to_hsi as encode_session

if TYPE_CHECKING:
    from hsiflux.core.audit.logger import AuditLogger
    from hsiflux.core.storage.repository import BaselineRepository

logger = logging.getLogger(__name__)

_KIND = "behavior"


def register_behavior_tools(
    mcp: FastMCP,
    *,
    window_sessions: int,
    repository: BaselineRepository | None = None,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register behavioral session tools on the MCP server."""

    def _finish(tool_name: str, session_json: str, start: float, *, owner_id: str = "",
                exc: Exception | None = None) -> None:
        if audit_logger is not None:
            audit_logger.log_tool_call(
                tool_name,
                {"session_json": session_json},
                owner_id=owner_id,
                duration_ms=(time.monotonic() - start) * 1000,
                status="failure" if exc is not None else "success",
                error_type=type(exc).__name__ if exc is not None else None,
            )

    @mcp.tool
    async def behavior_to_hsi(ctx: Context, session_json: str) -> str:
        """Score one smartphone interaction session as an HSI payload.

        Stateless: the session is not compared with earlier sessions.

        Args:
            session_json: Session JSON with session_id, device_id, start_time,
                end_time and an events array.
        """
        start = time.monotonic()
        try:
            payload = encode_session(session_json)
        except FluxError as exc:
            _finish("behavior_to_hsi", session_json, start, exc=exc)
            return json.dumps({
                "status": "error",
                "error_type": type(exc).__name__,
                "message": str(exc),
            })
        _finish("behavior_to_hsi", session_json, start)
        return payload

    if repository is None:
        return

    @mcp.tool
    async def process_behavior_session(ctx: Context, owner_id: str, session_json: str) -> str:
        """Score a session against the owner's session baseline and update it.

        Args:
            owner_id: Identifier of the person whose baseline is used.
            session_json: Session JSON with session_id, device_id, start_time,
                end_time and an events array.
        """
        start = time.monotonic()
        try:
            processor = BehaviorProcessor(window_sessions)
            state = load_state(
                repository, audit_logger, owner_id=owner_id, kind=_KIND,
                tool_name="process_behavior_session",
            )
            if state is not None:
                processor.load_baselines(json.dumps(state))
            payload = processor.process(session_json)
            save_state(
                repository,
                audit_logger,
                owner_id=owner_id,
                kind=_KIND,
                state=processor.baseline_store.to_dict(),
                sample_count=processor.baseline_session_count(),
                tool_name="process_behavior_session",
            )
        except (FluxError, RepositoryError) as exc:
            logger.warning("process_behavior_session failed: %s", exc)
            _finish("process_behavior_session", session_json, start, owner_id=owner_id, exc=exc)
            return json.dumps({
                "status": "error",
                "error_type": type(exc).__name__,
                "message": str(exc),
            })

        _finish("process_behavior_session", session_json, start, owner_id=owner_id)
        return payload
