"""Consumable pool of pre-generated titles per content category."""

import logging
import sqlite3
from datetime import datetime

from ..cache import CacheStore, Service
from ..db import Database
from ..generation.errors import GenerationError
from ..providers.base import TextGenerator
from .models import PoolAvailability, TitleHints, TitleRecord

logger = logging.getLogger(__name__)


class TitlePoolManager:
    """Maintains the title pool consumed by bulk generation.

    Categories are intentionally coarse: every style/mood combination
    draws from the same category so generated titles are reused widely.
    A title is handed out at most once; ``take`` selects and marks
    records inside one write transaction.
    """

    def __init__(
        self,
        database: Database,
        text_generator: TextGenerator | None = None,
        cache_store: CacheStore | None = None,
    ):
        """Initialize the pool manager.

        Args:
            database: Database holding the titles table
            text_generator: Collaborator used by replenish
            cache_store: Usage ledger for text-generation calls
        """
        self.database = database
        self.text_generator = text_generator
        self.cache_store = cache_store

    def check_availability(self, category: str) -> PoolAvailability:
        """Count unused and total titles in a category."""
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(CASE WHEN used = 0 THEN 1 ELSE 0 END), 0) AS available
                FROM titles WHERE category = ?
            """,
                (category,),
            ).fetchone()

        return PoolAvailability(
            category=category, available=row["available"], total=row["total"]
        )

    async def replenish(
        self, category: str, count: int, hints: TitleHints | None = None
    ) -> int:
        """Mint ``count`` titles with the text-generation service and append them.

        Titles whose native text is already in the pool are dropped.

        Args:
            category: Pool to extend
            count: Number of titles to request
            hints: Theme keywords, style and mood for the request

        Returns:
            Number of titles actually added

        Raises:
            GenerationError: If no text generator is configured
            ServiceAuthError, ServiceAPIError: If the text service fails
        """
        if count <= 0:
            raise ValueError("count must be positive")
        if self.text_generator is None:
            raise GenerationError("No text generator configured for title replenishment")

        hints = hints or TitleHints()
        keywords = hints.keywords or category

        logger.info(f"Replenishing '{category}' pool with {count} titles")
        try:
            suggestions = await self.text_generator.generate_titles(
                keywords, hints.style, hints.mood, count
            )
        except Exception:
            self._record_usage(False, 0)
            raise
        self._record_usage(True, len(suggestions))

        now = datetime.now().isoformat()
        added = 0
        with self.database.transaction() as conn:
            for suggestion in suggestions:
                native = suggestion.native_text.strip()
                if not native:
                    continue
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO titles
                        (category, native_text, foreign_text, keywords, used, created_at)
                    VALUES (?, ?, ?, ?, 0, ?)
                """,
                    (
                        category,
                        native,
                        suggestion.foreign_text.strip(),
                        suggestion.keywords.strip() or native,
                        now,
                    ),
                )
                added += cursor.rowcount

        skipped = len(suggestions) - added
        logger.info(f"Added {added} titles to '{category}' ({skipped} duplicates skipped)")
        return added

    def take(self, category: str, count: int) -> list[TitleRecord]:
        """Hand out up to ``count`` unused titles, marking them used.

        Returns fewer records (possibly none) when the pool runs short;
        the caller handles the shortfall.
        """
        if count <= 0:
            return []

        used_at = datetime.now()
        with self.database.transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM titles
                WHERE category = ? AND used = 0
                ORDER BY id ASC
                LIMIT ?
            """,
                (category, count),
            ).fetchall()

            ids = [row["id"] for row in rows]
            if ids:
                placeholders = ",".join("?" * len(ids))
                conn.execute(
                    f"UPDATE titles SET used = 1, used_at = ? WHERE id IN ({placeholders})",
                    [used_at.isoformat(), *ids],
                )

        records = [self._row_to_record(row) for row in rows]
        for record in records:
            record.used = True
            record.used_at = used_at

        logger.debug(f"Took {len(records)}/{count} titles from '{category}'")
        return records

    def list_titles(self, category: str, include_used: bool = False) -> list[TitleRecord]:
        """List titles in a category, oldest first."""
        query = "SELECT * FROM titles WHERE category = ?"
        if not include_used:
            query += " AND used = 0"
        with self.database.connect() as conn:
            rows = conn.execute(query + " ORDER BY id ASC", (category,)).fetchall()
        return [self._row_to_record(row) for row in rows]

    def reset_used(self, category: str) -> int:
        """Return every used title in a category to the pool.

        Returns:
            Number of titles made available again
        """
        with self.database.connect() as conn:
            cursor = conn.execute(
                "UPDATE titles SET used = 0, used_at = NULL WHERE category = ? AND used = 1",
                (category,),
            )
        logger.info(f"Reset {cursor.rowcount} used titles in '{category}'")
        return cursor.rowcount

    def clear(self, category: str) -> int:
        """Delete every title in a category."""
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM titles WHERE category = ?", (category,))
        logger.info(f"Cleared {cursor.rowcount} titles from '{category}'")
        return cursor.rowcount

    def _record_usage(self, success: bool, units: int) -> None:
        if self.cache_store is not None:
            self.cache_store.record_usage(Service.TEXT, success, units_produced=units)

    def _row_to_record(self, row: sqlite3.Row) -> TitleRecord:
        used_at = row["used_at"]
        return TitleRecord(
            id=row["id"],
            category=row["category"],
            native_text=row["native_text"],
            foreign_text=row["foreign_text"],
            keywords=row["keywords"],
            used=bool(row["used"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            used_at=datetime.fromisoformat(used_at) if used_at else None,
        )
