"""Baseline repository: CRUD for encrypted per-owner baseline stores.

The repository mediates between the stores' versioned JSON state and the
SQLite database, using StateCipher to seal the state at rest. It never
interprets the state; loading and migrating it is the store's job.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from hsiflux.core.storage.database import BaselineDatabase
from hsiflux.core.storage.encryption import EncryptionError, StateCipher
from hsiflux.core.storage.models import BASELINE_KINDS, StoredBaseline

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class BaselineRepository:
    """CRUD repository for encrypted baseline state.

    Usage::

        db = BaselineDatabase(":memory:")
        db.initialize()
        repo = BaselineRepository(db, StateCipher(key="..."))

        repo.save_baseline("user-1", "wearable", store.to_dict())
        stored = repo.get_baseline("user-1", "wearable")
    """

    def __init__(self, database: BaselineDatabase, cipher: StateCipher) -> None:
        self._db = database
        self._cipher = cipher

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in BASELINE_KINDS:
            raise RepositoryError(f"Invalid baseline kind: {kind!r}. Valid: {BASELINE_KINDS}")

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_baseline(
        self,
        owner_id: str,
        kind: str,
        state: dict[str, Any],
        *,
        sample_count: int = 0,
    ) -> None:
        """Insert or replace an owner's baseline state.

        Args:
            owner_id: Opaque identifier of the tracked person/device.
            kind: 'wearable' or 'behavior'.
            state: The store's JSON object (must carry an integer ``version``).
            sample_count: Observations currently backing the baseline.
        """
        self._check_kind(kind)
        if not owner_id:
            raise RepositoryError("owner_id must not be empty")
        version = state.get("version")
        if not isinstance(version, int):
            raise RepositoryError("Baseline state has no integer 'version' field")

        now = self._now_iso()
        conn = self._db.connection
        conn.execute(
            """INSERT INTO baseline_states
                   (owner_id, kind, state_enc, store_version, sample_count, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(owner_id, kind) DO UPDATE SET
                   state_enc = excluded.state_enc,
                   store_version = excluded.store_version,
                   sample_count = excluded.sample_count,
                   updated_at = excluded.updated_at""",
            (
                owner_id,
                kind,
                self._cipher.seal(state),
                version,
                sample_count,
                now,
                now,
            ),
        )
        conn.commit()
        logger.info("Saved %s baseline (version=%d, samples=%d)", kind, version, sample_count)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_baseline(self, owner_id: str, kind: str) -> StoredBaseline | None:
        """Fetch and decrypt an owner's baseline state.

        Returns:
            The stored baseline, or None if the owner has none of this kind.

        Raises:
            RepositoryError: If the row exists but cannot be decrypted.
        """
        self._check_kind(kind)
        row = self._db.connection.execute(
            """SELECT owner_id, kind, state_enc, store_version, sample_count,
                      created_at, updated_at
               FROM baseline_states WHERE owner_id = ? AND kind = ?""",
            (owner_id, kind),
        ).fetchone()
        if row is None:
            return None

        try:
            state = self._cipher.open(row["state_enc"])
        except EncryptionError as exc:
            raise RepositoryError(f"Stored {kind} baseline could not be decrypted") from exc
        if not isinstance(state, dict):
            raise RepositoryError(f"Stored {kind} baseline is not a JSON object")

        return StoredBaseline(
            owner_id=row["owner_id"],
            kind=row["kind"],
            state=state,
            store_version=row["store_version"],
            sample_count=row["sample_count"],
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )

    def list_baselines(self, owner_id: str) -> list[StoredBaseline]:
        """List an owner's baselines without decrypting their state."""
        rows = self._db.connection.execute(
            """SELECT owner_id, kind, store_version, sample_count, created_at, updated_at
               FROM baseline_states WHERE owner_id = ? ORDER BY kind""",
            (owner_id,),
        ).fetchall()
        return [
            StoredBaseline(
                owner_id=row["owner_id"],
                kind=row["kind"],
                store_version=row["store_version"],
                sample_count=row["sample_count"],
                created_at=row["created_at"] or "",
                updated_at=row["updated_at"] or "",
            )
            for row in rows
        ]

    def count_baselines(self) -> int:
        """Return total number of stored baselines."""
        row = self._db.connection.execute("SELECT COUNT(*) FROM baseline_states").fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_baseline(self, owner_id: str, kind: str | None = None) -> int:
        """Delete an owner's baseline of one kind, or all kinds if ``kind`` is None.

        Returns:
            Number of rows deleted.
        """
        conn = self._db.connection
        if kind is None:
            cursor = conn.execute("DELETE FROM baseline_states WHERE owner_id = ?", (owner_id,))
        else:
            self._check_kind(kind)
            cursor = conn.execute(
                "DELETE FROM baseline_states WHERE owner_id = ? AND kind = ?",
                (owner_id, kind),
            )
        conn.commit()
        if cursor.rowcount:
            logger.info("Deleted %d baseline(s) (kind=%s)", cursor.rowcount, kind or "all")
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Key rotation
    # ------------------------------------------------------------------

    def reseal_all(self) -> int:
        """Re-encrypt every stored blob under the cipher's current key.

        Run after adding a new key and demoting the old one to the retired
        list; once it returns, the retired key is no longer needed. The whole
        pass is one transaction, so an unreadable row leaves every blob as it was.

        Returns:
            Number of rows re-sealed.
        """
        conn = self._db.connection
        rows = conn.execute("SELECT owner_id, kind, state_enc FROM baseline_states").fetchall()
        try:
            for row in rows:
                conn.execute(
                    "UPDATE baseline_states SET state_enc = ? WHERE owner_id = ? AND kind = ?",
                    (self._cipher.rotate(row["state_enc"]), row["owner_id"], row["kind"]),
                )
        except EncryptionError as exc:
            conn.rollback()
            raise RepositoryError("A stored baseline could not be re-sealed") from exc
        conn.commit()
        logger.info("Re-sealed %d baseline(s) under the current key", len(rows))
        return len(rows)
