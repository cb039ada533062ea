"""SQLite database management for the baseline bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per (owner, store kind); the blob is the encrypted store JSON
CREATE TABLE IF NOT EXISTS baseline_states (
    owner_id        TEXT NOT NULL,
    kind            TEXT NOT NULL,
    state_enc       TEXT NOT NULL,

    -- Unencrypted bookkeeping (no physiological values)
    store_version   INTEGER NOT NULL,
    sample_count    INTEGER NOT NULL DEFAULT 0,

    created_at      TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at      TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (owner_id, kind)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_baselines_kind ON baseline_states(kind);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free access logging)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    owner_hash      TEXT,
    store_kind      TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""

# version -> DDL that upgrades the previous version to it
_MIGRATIONS = {2: _SCHEMA_V2}


class DatabaseError(Exception):
    """Raised when database operations fail."""


class BaselineDatabase:
    """SQLite database manager for the baseline bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = BaselineDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            # FastMCP may run sync tools on a worker thread.
            self._conn = sqlite3.connect(str(db_file), check_same_thread=False)
        else:
            self._conn = sqlite3.connect(":memory:", check_same_thread=False)

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._ensure_schema()
        logger.info("Baseline database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create the base tables, then apply every migration past the stored version.

        A file written by a newer build is refused rather than opened, since
        its baseline rows may use a layout this build cannot read.
        """
        conn = self.connection
        conn.executescript(_SCHEMA_V1)

        found = self.get_schema_version()
        if found > SCHEMA_VERSION:
            raise DatabaseError(
                f"Database schema v{found} is newer than supported v{SCHEMA_VERSION}"
            )
        if found == SCHEMA_VERSION:
            return

        for version in range(max(found, 1) + 1, SCHEMA_VERSION + 1):
            conn.executescript(_MIGRATIONS[version])
            logger.info("Applied schema migration v%d", version)

        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        conn.commit()
        logger.info("Baseline bank schema at v%d (was v%d)", SCHEMA_VERSION, found)

    def get_schema_version(self) -> int:
        """Highest applied schema version; 0 for a brand-new file."""
        (version,) = self.connection.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        return version or 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Baseline database closed")

    def __enter__(self) -> BaselineDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
