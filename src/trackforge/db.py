"""SQLite connection handling shared by the trackforge repositories."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    service TEXT NOT NULL,
    key TEXT NOT NULL,
    job_id TEXT,
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    PRIMARY KEY (service, key)
);

CREATE INDEX IF NOT EXISTS idx_cache_job_id ON cache_entries(job_id);

CREATE TABLE IF NOT EXISTS usage (
    date TEXT NOT NULL,
    service TEXT NOT NULL,
    calls INTEGER NOT NULL DEFAULT 0,
    success INTEGER NOT NULL DEFAULT 0,
    failed INTEGER NOT NULL DEFAULT 0,
    units_produced INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (date, service)
);

CREATE TABLE IF NOT EXISTS titles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category TEXT NOT NULL,
    native_text TEXT NOT NULL,
    foreign_text TEXT NOT NULL,
    keywords TEXT NOT NULL,
    used INTEGER NOT NULL DEFAULT 0,
    used_at TEXT,
    created_at TEXT NOT NULL,
    UNIQUE(category, native_text)
);

CREATE TABLE IF NOT EXISTS generated_tracks (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    foreign_title TEXT,
    audio_ref TEXT NOT NULL,
    image_ref TEXT,
    duration REAL NOT NULL DEFAULT 0,
    style TEXT NOT NULL,
    mood TEXT NOT NULL,
    batch_id TEXT NOT NULL,
    job_id TEXT,
    created_at TEXT NOT NULL,
    deployed INTEGER NOT NULL DEFAULT 0,
    deployed_at TEXT,
    catalog_track_id TEXT
);

CREATE TABLE IF NOT EXISTS schedules (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    frequency TEXT NOT NULL,
    interval_days INTEGER NOT NULL,
    run_time TEXT NOT NULL,
    track_count INTEGER NOT NULL,
    style TEXT NOT NULL,
    mood TEXT NOT NULL,
    auto_deploy INTEGER NOT NULL DEFAULT 0,
    next_run_at TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1,
    last_run_at TEXT,
    template TEXT,
    created_at TEXT NOT NULL
);
"""


class Database:
    """SQLite database holding caches, usage, titles, tracks and schedules.

    Each operation opens its own connection in WAL mode, so instances can
    be shared freely between the orchestrator, scheduler and CLI.
    """

    def __init__(self, db_path: Path):
        """Initialize database file and schema.

        Args:
            db_path: Location of the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = self._get_connection()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,
            check_same_thread=False,
            isolation_level=None,  # explicit BEGIN/COMMIT below
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield an autocommit connection for single statements."""
        conn = self._get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside BEGIN IMMEDIATE, committing on success.

        Holding the write lock from the first read is what makes
        select-then-update sequences atomic across processes.
        """
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()
