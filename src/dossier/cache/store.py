"""SQLite persistent tier (L2) for analysis records.

Holds complete company/person analyses plus an audit log of analysis
requests that references cache keys. All I/O runs via asyncio.to_thread
with one short-lived connection per call.

Tables:
    analysis_cache: cache_key -> JSON record, schema version, expiry
    usage_log: audit rows, optionally linked to a cache_key

Usage:
    from dossier.cache.store import SQLiteStore

    store = SQLiteStore("data/dossier.db")
    await store.put("company:acme", "company", record, schema_version=6, expires_at=t)
    row = await store.get("company:acme", now=time.time())
"""

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS analysis_cache (
    cache_key TEXT PRIMARY KEY,
    entity_type TEXT NOT NULL,
    analysis_result TEXT NOT NULL,
    schema_version INTEGER DEFAULT NULL,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_analysis_cache_expires ON analysis_cache(expires_at);

CREATE TABLE IF NOT EXISTS usage_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cache_key TEXT DEFAULT NULL,
    entity_type TEXT NOT NULL,
    entity_name TEXT NOT NULL,
    outcome TEXT NOT NULL,
    units_consumed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_usage_log_cache_key ON usage_log(cache_key);
"""

AUDIT_OUTCOMES = ("fresh", "cached", "coalesced", "failed")


@dataclass
class StoredRecord:
    """One row of the analysis_cache table."""

    cache_key: str
    entity_type: str
    value: dict[str, Any]
    schema_version: int
    created_at: float
    expires_at: float


class SQLiteStore:
    """Async facade over a SQLite database file.

    Args:
        db_path: Path to SQLite database file. Parent directories are created.
    """

    def __init__(self, db_path: str | Path = "data/dossier.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema if not exists."""
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, always close."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # -- analysis_cache -----------------------------------------------------

    async def get(self, cache_key: str, now: float) -> StoredRecord | None:
        """Read an unexpired record.

        Args:
            cache_key: Cache key
            now: Current epoch time; rows with expires_at <= now are ignored

        Returns:
            StoredRecord, or None if absent or expired. A missing stored
            schema version reads as 1 (records written before versioning).
        """
        def _get() -> StoredRecord | None:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM analysis_cache WHERE cache_key = ? AND expires_at > ?",
                    (cache_key, now),
                ).fetchone()
            if row is None:
                return None
            value = json.loads(row["analysis_result"])
            version = row["schema_version"]
            if version is None:
                version = (value.get("metadata") or {}).get("schemaVersion", 1)
            return StoredRecord(
                cache_key=row["cache_key"],
                entity_type=row["entity_type"],
                value=value,
                schema_version=int(version),
                created_at=row["created_at"],
                expires_at=row["expires_at"],
            )

        return await asyncio.to_thread(_get)

    async def put(
        self,
        cache_key: str,
        entity_type: str,
        value: dict[str, Any],
        schema_version: int,
        created_at: float,
        expires_at: float,
    ) -> None:
        """Insert or replace a record."""
        payload = json.dumps(value, default=str)

        def _put() -> None:
            with self._connect() as conn:
                conn.execute(
                    """INSERT INTO analysis_cache
                       (cache_key, entity_type, analysis_result, schema_version, created_at, expires_at)
                       VALUES (?, ?, ?, ?, ?, ?)
                       ON CONFLICT(cache_key) DO UPDATE SET
                           entity_type = excluded.entity_type,
                           analysis_result = excluded.analysis_result,
                           schema_version = excluded.schema_version,
                           created_at = excluded.created_at,
                           expires_at = excluded.expires_at""",
                    (cache_key, entity_type, payload, schema_version, created_at, expires_at),
                )

        await asyncio.to_thread(_put)

    async def delete(self, cache_key: str) -> bool:
        """Delete a record. Returns True if a row was removed."""
        def _delete() -> bool:
            with self._connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM analysis_cache WHERE cache_key = ?", (cache_key,)
                )
                return cursor.rowcount > 0

        return await asyncio.to_thread(_delete)

    async def purge(self, cache_key: str) -> tuple[bool, int]:
        """Delete a record and unlink its audit rows in one transaction.

        Returns:
            (record_deleted, audit_rows_unlinked)
        """
        def _purge() -> tuple[bool, int]:
            with self._connect() as conn:
                unlinked = conn.execute(
                    "UPDATE usage_log SET cache_key = NULL WHERE cache_key = ?", (cache_key,)
                ).rowcount
                deleted = conn.execute(
                    "DELETE FROM analysis_cache WHERE cache_key = ?", (cache_key,)
                ).rowcount
            return deleted > 0, unlinked

        return await asyncio.to_thread(_purge)

    async def cleanup_expired(self, now: float) -> int:
        """Delete expired records. Returns the number removed."""
        def _cleanup() -> int:
            with self._connect() as conn:
                return conn.execute(
                    "DELETE FROM analysis_cache WHERE expires_at <= ?", (now,)
                ).rowcount

        return await asyncio.to_thread(_cleanup)

    # -- usage_log ----------------------------------------------------------

    async def record_audit(
        self,
        entity_type: str,
        entity_name: str,
        outcome: str,
        cache_key: str | None = None,
        units_consumed: int = 0,
    ) -> int:
        """Append an audit row. Returns its id.

        Raises:
            ValueError: If outcome is not one of AUDIT_OUTCOMES
        """
        if outcome not in AUDIT_OUTCOMES:
            raise ValueError(f"outcome must be one of {AUDIT_OUTCOMES}, got '{outcome}'")

        def _record() -> int:
            with self._connect() as conn:
                cursor = conn.execute(
                    """INSERT INTO usage_log
                       (cache_key, entity_type, entity_name, outcome, units_consumed)
                       VALUES (?, ?, ?, ?, ?)""",
                    (cache_key, entity_type, entity_name, outcome, units_consumed),
                )
                return cursor.lastrowid

        return await asyncio.to_thread(_record)

    async def audit_rows(self, cache_key: str | None = None) -> list[dict[str, Any]]:
        """List audit rows, optionally only those linked to one cache key."""
        def _rows() -> list[dict[str, Any]]:
            with self._connect() as conn:
                if cache_key is None:
                    rows = conn.execute("SELECT * FROM usage_log ORDER BY id").fetchall()
                else:
                    rows = conn.execute(
                        "SELECT * FROM usage_log WHERE cache_key = ? ORDER BY id", (cache_key,)
                    ).fetchall()
            return [dict(row) for row in rows]

        return await asyncio.to_thread(_rows)

    async def stats(self, now: float) -> dict[str, Any]:
        """Get store statistics.

        Returns:
            Dictionary with record counts per entity type, expired rows
            awaiting cleanup, audit rows, and file size in bytes
        """
        def _stats() -> dict[str, Any]:
            with self._connect() as conn:
                by_type = {
                    row["entity_type"]: row["n"]
                    for row in conn.execute(
                        "SELECT entity_type, COUNT(*) AS n FROM analysis_cache "
                        "WHERE expires_at > ? GROUP BY entity_type",
                        (now,),
                    )
                }
                expired = conn.execute(
                    "SELECT COUNT(*) FROM analysis_cache WHERE expires_at <= ?", (now,)
                ).fetchone()[0]
                audit = conn.execute("SELECT COUNT(*) FROM usage_log").fetchone()[0]
            return {
                "records": sum(by_type.values()),
                "by_entity_type": by_type,
                "expired": expired,
                "audit_rows": audit,
                "size_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
            }

        return await asyncio.to_thread(_stats)
