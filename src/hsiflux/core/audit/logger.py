"""Audit logger: PHI-free trail of tool calls and baseline access.

Records every tool invocation and every baseline load, save and delete.
Nothing physiological is stored:

* ``tool_input_hash`` is a SHA-256 of canonical JSON (no raw payloads).
* ``owner_hash`` is a SHA-256 of the owner id (no raw identifiers).
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.storage.database import BaselineDatabase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def _hash_input(data: Any) -> str:
    """SHA-256 of canonical JSON, or empty string if not serializable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


def _hash_owner(owner_id: str) -> str:
    return hashlib.sha256(owner_id.encode()).hexdigest() if owner_id else ""


_COLUMNS = (
    "id", "timestamp", "action", "tool_name", "tool_input_hash", "owner_hash",
    "store_kind", "duration_ms", "status", "error_type", "metadata_json",
)
_INSERT_SQL = (
    f"INSERT INTO audit_log ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(_COLUMNS))})"
)


# ---------------------------------------------------------------------------
# AuditEvent dataclass
# ---------------------------------------------------------------------------

@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'baseline_load' | 'baseline_save' | 'baseline_delete'
    tool_name: str = ""
    tool_input_hash: str = ""
    owner_hash: str = ""
    store_kind: str | None = None        # 'wearable' | 'behavior'
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------

class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    All writes are committed immediately so no audit entry is lost on crash.

    Usage::

        audit = AuditLogger(baseline_db)
        audit.log_tool_call("process_wearable", {"vendor": "whoop"}, owner_id="u1")
        audit.log_baseline_access("baseline_save", owner_id="u1", kind="wearable")
    """

    def __init__(self, database: BaselineDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID, or "" if the write failed."""
        event_id = str(uuid.uuid4())
        row = (
            event_id,
            datetime.now(timezone.utc).isoformat(),
            event.action,
            event.tool_name or None,
            event.tool_input_hash or None,
            event.owner_hash or None,
            event.store_kind,
            event.duration_ms,
            event.status,
            event.error_type,
            json.dumps(event.metadata, separators=(",", ":")) if event.metadata else None,
        )
        try:
            with self._db.connection as conn:
                conn.execute(_INSERT_SQL, row)
        except Exception:
            # An audit failure must not fail the tool call that triggered it.
            logger.exception("Failed to write audit event; event lost")
            return ""
        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        owner_id: str = "",
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a tool invocation. ``tool_input`` is hashed, never stored raw."""
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            owner_hash=_hash_owner(owner_id),
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_baseline_access(
        self,
        action: str,
        *,
        owner_id: str,
        kind: str | None,
        tool_name: str = "",
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a baseline load, save or delete.

        Args:
            action: 'baseline_load', 'baseline_save' or 'baseline_delete'.
            owner_id: Owner whose baseline was touched (hashed before storage).
            kind: Store kind, or None for all kinds.
            tool_name: Tool that initiated the access.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Additional non-PHI metadata (sample counts, versions).
        """
        return self.log_event(AuditEvent(
            action=action,
            tool_name=tool_name,
            owner_hash=_hash_owner(owner_id),
            store_kind=kind,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    @staticmethod
    def _where(
        action: str | None, tool_name: str | None, owner_id: str | None, since: str | None
    ) -> tuple[str, list[Any]]:
        filters = {
            "action = ?": action,
            "tool_name = ?": tool_name,
            "owner_hash = ?": _hash_owner(owner_id) if owner_id else None,
            "timestamp >= ?": since,
        }
        clauses = [clause for clause, value in filters.items() if value]
        params = [value for value in filters.values() if value]
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        owner_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events, newest first.

        ``owner_id`` is hashed before matching, so a person's own trail can
        be listed without raw ids ever being stored.
        """
        where, params = self._where(action, tool_name, owner_id, since)
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            [*params, limit],
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: str | None = None, owner_id: str | None = None) -> int:
        where, params = self._where(action, None, owner_id, None)
        (count,) = self._db.connection.execute(
            f"SELECT COUNT(*) FROM audit_log{where}", params
        ).fetchone()
        return count
