"""SQLite cache storage implementation."""

import json
import sqlite3
from datetime import datetime

from ..db import Database
from .models import CacheEntry, Service, UsageCounts, UsageRecord


class CacheStorage:
    """SQLite-backed storage for cache entries and the usage ledger.

    Cache payloads are stored as JSON text keyed by (service, key); the
    audio job identifier is lifted into its own indexed column so imports
    can check for known jobs without scanning payloads.
    """

    def __init__(self, database: Database):
        """Initialize cache storage on a shared database.

        Args:
            database: Database holding the cache_entries and usage tables
        """
        self.database = database

    def save(self, entry: CacheEntry) -> None:
        """Insert or replace the entry stored under (service, key)."""
        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO cache_entries (service, key, job_id, payload, created_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(service, key) DO UPDATE SET
                    job_id = excluded.job_id,
                    payload = excluded.payload,
                    completed_at = excluded.completed_at
            """,
                (
                    entry.service.value,
                    entry.key,
                    entry.job_id,
                    json.dumps(entry.payload),
                    entry.created_at.isoformat(),
                    entry.completed_at.isoformat() if entry.completed_at else None,
                ),
            )

    def get(self, service: Service, key: str) -> CacheEntry | None:
        """Retrieve a cache entry by service and key.

        Returns:
            Cache entry if found, None otherwise
        """
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT service, key, payload, created_at, completed_at
                FROM cache_entries
                WHERE service = ? AND key = ?
            """,
                (service.value, key),
            ).fetchone()

        return self._row_to_entry(row) if row else None

    def find_by_job_id(self, job_id: str) -> CacheEntry | None:
        """Retrieve the audio cache entry that recorded a job identifier."""
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT service, key, payload, created_at, completed_at
                FROM cache_entries
                WHERE service = ? AND job_id = ?
                LIMIT 1
            """,
                (Service.AUDIO.value, job_id),
            ).fetchone()

        return self._row_to_entry(row) if row else None

    def job_ids(self) -> set[str]:
        """Return every job identifier stored in the audio cache."""
        with self.database.connect() as conn:
            rows = conn.execute(
                "SELECT job_id FROM cache_entries WHERE service = ? AND job_id IS NOT NULL",
                (Service.AUDIO.value,),
            ).fetchall()
        return {row["job_id"] for row in rows}

    def list_entries(self, service: Service | None = None) -> list[CacheEntry]:
        """List cache entries, newest first."""
        with self.database.connect() as conn:
            if service is None:
                rows = conn.execute(
                    """
                    SELECT service, key, payload, created_at, completed_at
                    FROM cache_entries ORDER BY created_at DESC
                """
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT service, key, payload, created_at, completed_at
                    FROM cache_entries WHERE service = ? ORDER BY created_at DESC
                """,
                    (service.value,),
                ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def delete(self, service: Service, key: str) -> bool:
        """Delete one entry. Returns True if a row was removed."""
        with self.database.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE service = ? AND key = ?",
                (service.value, key),
            )
        return cursor.rowcount > 0

    def clear(self, service: Service | None = None) -> int:
        """Delete all entries for one service, or every service.

        Returns:
            Number of entries removed (0 for an already-empty cache)
        """
        with self.database.connect() as conn:
            if service is None:
                cursor = conn.execute("DELETE FROM cache_entries")
            else:
                cursor = conn.execute(
                    "DELETE FROM cache_entries WHERE service = ?", (service.value,)
                )
        return cursor.rowcount

    def increment_usage(
        self,
        date: str,
        service: Service,
        success: bool,
        units_produced: int,
        prune_before: str,
    ) -> None:
        """Append-or-increment one day's counters and prune old days.

        Both statements run in one write transaction so concurrent
        writers cannot lose increments.
        """
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO usage (date, service, calls, success, failed, units_produced)
                VALUES (?, ?, 1, ?, ?, ?)
                ON CONFLICT(date, service) DO UPDATE SET
                    calls = calls + 1,
                    success = success + excluded.success,
                    failed = failed + excluded.failed,
                    units_produced = units_produced + excluded.units_produced
            """,
                (
                    date,
                    service.value,
                    1 if success else 0,
                    0 if success else 1,
                    units_produced if success else 0,
                ),
            )
            conn.execute("DELETE FROM usage WHERE date < ?", (prune_before,))

    def load_usage(self) -> list[UsageRecord]:
        """Load every retained usage record, oldest first."""
        with self.database.connect() as conn:
            rows = conn.execute(
                """
                SELECT date, service, calls, success, failed, units_produced
                FROM usage ORDER BY date ASC
            """
            ).fetchall()

        records: dict[str, UsageRecord] = {}
        for row in rows:
            record = records.setdefault(row["date"], UsageRecord(date=row["date"]))
            record.per_service[Service(row["service"])] = UsageCounts(
                calls=row["calls"],
                success=row["success"],
                failed=row["failed"],
                units_produced=row["units_produced"],
            )
        return list(records.values())

    def _row_to_entry(self, row: sqlite3.Row) -> CacheEntry:
        # Convert stored strings back to proper types
        completed_at = row["completed_at"]
        return CacheEntry(
            service=Service(row["service"]),
            key=row["key"],
            payload=json.loads(row["payload"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )
