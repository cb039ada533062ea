"""Audited load/save of an owner's baseline state for the stateful tools."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hsiflux.core.audit.logger import AuditLogger
    from hsiflux.core.storage.repository import BaselineRepository

logger = logging.getLogger(__name__)


def load_state(
    repository: BaselineRepository,
    audit_logger: AuditLogger | None,
    *,
    owner_id: str,
    kind: str,
    tool_name: str,
) -> dict[str, Any] | None:
    """Fetch an owner's stored state, or None if they have none yet.

    Raises:
        RepositoryError: If the stored row cannot be decrypted.
    """
    try:
        stored = repository.get_baseline(owner_id, kind)
    except Exception as exc:
        if audit_logger is not None:
            audit_logger.log_baseline_access(
                "baseline_load", owner_id=owner_id, kind=kind, tool_name=tool_name,
                status="failure", error_type=type(exc).__name__,
            )
        raise

    if audit_logger is not None:
        audit_logger.log_baseline_access(
            "baseline_load", owner_id=owner_id, kind=kind, tool_name=tool_name,
            metadata={"found": stored is not None},
        )
    return stored.state if stored is not None else None


def save_state(
    repository: BaselineRepository,
    audit_logger: AuditLogger | None,
    *,
    owner_id: str,
    kind: str,
    state: dict[str, Any],
    sample_count: int,
    tool_name: str,
) -> None:
    repository.save_baseline(owner_id, kind, state, sample_count=sample_count)
    if audit_logger is not None:
        audit_logger.log_baseline_access(
            "baseline_save", owner_id=owner_id, kind=kind, tool_name=tool_name,
            metadata={"version": state.get("version"), "samples": sample_count},
        )
