"""SQLite persistence for generated track records."""

import logging
import sqlite3
from datetime import datetime

from ..db import Database
from .models import GeneratedTrackRecord

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("title", "foreign_title", "image_ref")


class TrackRepository:
    """Stores tracks produced by generation and sync.

    The deployed flag flips false to true at most once: ``mark_deployed``
    is a conditional update, so of two racing callers only one wins.
    """

    def __init__(self, database: Database):
        self.database = database

    def add_many(self, records: list[GeneratedTrackRecord]) -> None:
        """Insert a set of records in one transaction.

        A record whose id already exists has its content refreshed; its
        deployment state and creation time are kept.
        """
        if not records:
            return
        with self.database.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO generated_tracks (
                    id, title, foreign_title, audio_ref, image_ref, duration,
                    style, mood, batch_id, job_id, created_at,
                    deployed, deployed_at, catalog_track_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    foreign_title = excluded.foreign_title,
                    audio_ref = excluded.audio_ref,
                    image_ref = excluded.image_ref,
                    duration = excluded.duration,
                    style = excluded.style,
                    mood = excluded.mood,
                    batch_id = excluded.batch_id,
                    job_id = excluded.job_id
            """,
                [self._record_to_row(record) for record in records],
            )
        logger.debug(f"Stored {len(records)} track records")

    def get(self, track_id: str) -> GeneratedTrackRecord | None:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM generated_tracks WHERE id = ?", (track_id,)
            ).fetchone()
        return self._row_to_record(row) if row else None

    def list_tracks(
        self, deployed: bool | None = None, batch_id: str | None = None
    ) -> list[GeneratedTrackRecord]:
        """List records newest first, optionally filtered."""
        clauses = []
        params: list = []
        if deployed is not None:
            clauses.append("deployed = ?")
            params.append(1 if deployed else 0)
        if batch_id is not None:
            clauses.append("batch_id = ?")
            params.append(batch_id)

        query = "SELECT * FROM generated_tracks"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id ASC"

        with self.database.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_metadata(self, track_id: str, **changes: str | None) -> GeneratedTrackRecord | None:
        """Edit title, foreign_title or image_ref of a record.

        Returns:
            The updated record, or None if no record has ``track_id``

        Raises:
            ValueError: If a field other than the editable ones is given
        """
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if changes:
            assignments = ", ".join(f"{name} = ?" for name in changes)
            with self.database.connect() as conn:
                conn.execute(
                    f"UPDATE generated_tracks SET {assignments} WHERE id = ?",
                    [*changes.values(), track_id],
                )
        return self.get(track_id)

    def delete(self, track_id: str) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM generated_tracks WHERE id = ?", (track_id,))
        if cursor.rowcount:
            logger.info(f"Deleted track {track_id}")
        return cursor.rowcount > 0

    def mark_deployed(
        self, track_id: str, catalog_track_id: str, deployed_at: datetime | None = None
    ) -> bool:
        """Flip the deployed flag if it is still unset.

        Returns:
            True if this call performed the transition
        """
        deployed_at = deployed_at or datetime.now()
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE generated_tracks
                SET deployed = 1, deployed_at = ?, catalog_track_id = ?
                WHERE id = ? AND deployed = 0
            """,
                (deployed_at.isoformat(), catalog_track_id, track_id),
            )
        return cursor.rowcount == 1

    def _record_to_row(self, record: GeneratedTrackRecord) -> tuple:
        return (
            record.id,
            record.title,
            record.foreign_title,
            record.audio_ref,
            record.image_ref,
            record.duration,
            record.style,
            record.mood,
            record.batch_id,
            record.job_id,
            record.created_at.isoformat(),
            1 if record.deployed else 0,
            record.deployed_at.isoformat() if record.deployed_at else None,
            record.catalog_track_id,
        )

    def _row_to_record(self, row: sqlite3.Row) -> GeneratedTrackRecord:
        deployed_at = row["deployed_at"]
        return GeneratedTrackRecord(
            id=row["id"],
            title=row["title"],
            foreign_title=row["foreign_title"],
            audio_ref=row["audio_ref"],
            image_ref=row["image_ref"],
            duration=row["duration"],
            style=row["style"],
            mood=row["mood"],
            batch_id=row["batch_id"],
            job_id=row["job_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            deployed=bool(row["deployed"]),
            deployed_at=datetime.fromisoformat(deployed_at) if deployed_at else None,
            catalog_track_id=row["catalog_track_id"],
        )
