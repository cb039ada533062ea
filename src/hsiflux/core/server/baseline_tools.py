"""MCP tools for inspecting and deleting stored baselines.

A person can see what the bank holds about them (sizes and versions only,
never the samples) and delete it. All deletions are audit-logged.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from hsiflux.core.storage.models import BASELINE_KINDS

if TYPE_CHECKING:
    from hsiflux.core.audit.logger import AuditLogger
    from hsiflux.core.storage.repository import BaselineRepository

logger = logging.getLogger(__name__)


def register_baseline_tools(
    mcp: FastMCP,
    repository: BaselineRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register baseline data management tools on the MCP server."""

    @mcp.tool
    async def baseline_status(ctx: Context, owner_id: str) -> str:
        """List the baselines stored for an owner.

        Args:
            owner_id: Identifier of the person.
        """
        stored = repository.list_baselines(owner_id)
        if audit_logger is not None:
            audit_logger.log_tool_call("baseline_status", owner_id=owner_id)
        return json.dumps({
            "status": "ok",
            "baselines": [
                {
                    "kind": b.kind,
                    "store_version": b.store_version,
                    "sample_count": b.sample_count,
                    "created_at": b.created_at,
                    "updated_at": b.updated_at,
                }
                for b in stored
            ],
        })

    @mcp.tool
    async def delete_baseline(
        ctx: Context,
        owner_id: str,
        kind: str = "",
        confirm: str = "",
    ) -> str:
        """Permanently delete an owner's stored baseline.

        Later processing starts from an empty baseline. This cannot be undone.

        Args:
            owner_id: Identifier of the person.
            kind: 'wearable' or 'behavior'. Empty deletes both.
            confirm: Must be exactly 'DELETE' to proceed. Safety gate.
        """
        if kind and kind not in BASELINE_KINDS:
            return json.dumps({
                "status": "error",
                "message": f"kind must be one of {list(BASELINE_KINDS)} or empty.",
            })
        if confirm != "DELETE":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete this baseline, call this tool with confirm='DELETE'. "
                    "This action cannot be undone."
                ),
            })

        start_time = time.monotonic()
        count = repository.delete_baseline(owner_id, kind or None)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_baseline_access(
                "baseline_delete",
                owner_id=owner_id,
                kind=kind or None,
                tool_name="delete_baseline",
                metadata={"count": count},
            )

        if count == 0:
            return json.dumps({
                "status": "not_found",
                "message": "No stored baseline matched.",
            })
        return json.dumps({
            "status": "deleted",
            "baselines_deleted": count,
            "duration_ms": round(elapsed_ms, 1),
        })
