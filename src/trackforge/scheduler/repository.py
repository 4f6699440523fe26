"""SQLite persistence for schedules."""

import sqlite3
from dataclasses import asdict
from datetime import datetime

from ..db import Database
from ..generation.errors import ScheduleNotFoundError
from .schedule import ScheduleDefinition

_COLUMNS = (
    "id",
    "name",
    "frequency",
    "interval_days",
    "run_time",
    "track_count",
    "style",
    "mood",
    "auto_deploy",
    "next_run_at",
    "active",
    "last_run_at",
    "template",
    "created_at",
)


class ScheduleRepository:
    """CRUD over the schedules table."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, definition: ScheduleDefinition) -> ScheduleDefinition:
        self._write(definition, "INSERT")
        return definition

    def get(self, schedule_id: str) -> ScheduleDefinition:
        """Fetch a schedule.

        Raises:
            ScheduleNotFoundError: If no schedule has ``schedule_id``
        """
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,)).fetchone()
        if row is None:
            raise ScheduleNotFoundError(schedule_id)
        return self._row_to_definition(row)

    def list_schedules(self, active_only: bool = False) -> list[ScheduleDefinition]:
        query = "SELECT * FROM schedules"
        if active_only:
            query += " WHERE active = 1"
        with self.database.connect() as conn:
            rows = conn.execute(query + " ORDER BY next_run_at ASC").fetchall()
        return [self._row_to_definition(row) for row in rows]

    def due(self, now: datetime) -> list[ScheduleDefinition]:
        """Active schedules whose next run is at or before ``now``."""
        with self.database.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM schedules
                WHERE active = 1 AND next_run_at <= ?
                ORDER BY next_run_at ASC
            """,
                (now.isoformat(),),
            ).fetchall()
        return [self._row_to_definition(row) for row in rows]

    def update(self, definition: ScheduleDefinition) -> ScheduleDefinition:
        """Replace a stored schedule.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
        """
        self.get(definition.id)
        self._write(definition, "REPLACE")
        return definition

    def delete(self, schedule_id: str) -> bool:
        with self.database.connect() as conn:
            cursor = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
        return cursor.rowcount > 0

    def _write(self, definition: ScheduleDefinition, verb: str) -> None:
        values = asdict(definition)
        values["frequency"] = definition.frequency.value
        values["auto_deploy"] = 1 if definition.auto_deploy else 0
        values["active"] = 1 if definition.active else 0
        for name in ("next_run_at", "last_run_at", "created_at"):
            values[name] = values[name].isoformat() if values[name] else None

        placeholders = ", ".join("?" * len(_COLUMNS))
        with self.database.connect() as conn:
            conn.execute(
                f"{verb} INTO schedules ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                [values[name] for name in _COLUMNS],
            )

    def _row_to_definition(self, row: sqlite3.Row) -> ScheduleDefinition:
        last_run_at = row["last_run_at"]
        return ScheduleDefinition(
            id=row["id"],
            name=row["name"],
            frequency=row["frequency"],
            interval_days=row["interval_days"],
            run_time=row["run_time"],
            track_count=row["track_count"],
            style=row["style"],
            mood=row["mood"],
            auto_deploy=bool(row["auto_deploy"]),
            next_run_at=datetime.fromisoformat(row["next_run_at"]),
            active=bool(row["active"]),
            last_run_at=datetime.fromisoformat(last_run_at) if last_run_at else None,
            template=row["template"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
