"""HSI Flux MCP server: application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from hsiflux.core.audit.logger import AuditLogger
from hsiflux.core.config.settings import get_settings
from hsiflux.core.hsi.models import FLUX_VERSION
from hsiflux.core.server.baseline_tools import register_baseline_tools
from hsiflux.core.storage.database import BaselineDatabase, DatabaseError
from hsiflux.core.storage.encryption import EncryptionError, StateCipher
from hsiflux.core.storage.repository import BaselineRepository, RepositoryError
from hsiflux.domains.behavior.tools.behavior_tools import register_behavior_tools
from hsiflux.domains.wearable.tools.wearable_tools import register_wearable_tools

logger = logging.getLogger(__name__)


def create_app(
    *,
    repository_override: BaselineRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
) -> FastMCP:
    """Create and configure the HSI Flux server.

    1. Creates the FastMCP server instance
    2. Initializes the encrypted baseline bank (when a key is configured)
    3. Registers the stateless conversion tools
    4. Registers the stateful and data management tools (bank only)
    """
    settings = get_settings()

    server = FastMCP(
        "HSI Flux",
        instructions=(
            "Converts wearable exports (WHOOP, Garmin) and smartphone interaction "
            "sessions into Human State Interface payloads, compared against each "
            "person's rolling baseline."
        ),
    )

    # --- Initialize encrypted storage (baseline bank) ---
    repository: BaselineRepository | None = None
    audit_logger = audit_logger_override
    if repository_override is not None:
        repository = repository_override
    elif settings.encryption_key:
        try:
            cipher = StateCipher(settings.encryption_key, settings.retired_keys())
            db = BaselineDatabase(settings.db_path)
            db.initialize()
            repository = BaselineRepository(db, cipher)
            if cipher.retired_key_count:
                repository.reseal_all()
            if audit_logger is None:
                audit_logger = AuditLogger(db)
            logger.info(
                "Baseline bank initialized: %s (schema v%d)",
                settings.db_path,
                db.get_schema_version(),
            )
        except (EncryptionError, DatabaseError, RepositoryError) as exc:
            logger.error("Failed to initialize storage: %s", exc)
            logger.warning("Continuing without persistence; baselines will not be kept")
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; running stateless. "
            "Set ENCRYPTION_KEY to enable the baseline bank."
        )

    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": "HSI Flux",
            "version": FLUX_VERSION,
            "storage_enabled": repository is not None,
            "wearable_baseline_window": settings.wearable_baseline_window,
            "behavior_baseline_window": settings.behavior_baseline_window,
            "decay_half_life_hours": settings.decay_half_life_hours,
        }
        if repository is not None:
            status["baselines_stored"] = repository.count_baselines()
        return status

    register_wearable_tools(
        server,
        window_days=settings.wearable_baseline_window,
        half_life_hours=settings.decay_half_life_hours,
        repository=repository,
        audit_logger=audit_logger,
    )
    register_behavior_tools(
        server,
        window_sessions=settings.behavior_baseline_window,
        repository=repository,
        audit_logger=audit_logger,
    )
    if repository is not None:
        register_baseline_tools(server, repository, audit_logger)
        logger.info("Stateful and baseline management tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
