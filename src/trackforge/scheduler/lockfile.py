"""Lock file ensuring one scheduler worker per data directory."""

import fcntl
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

LOCK_NAME = "scheduler.lock"


def get_lock_path(data_dir: Path) -> Path:
    """Get path to the worker lock file for a data directory."""
    return Path(data_dir) / LOCK_NAME


@contextmanager
def worker_lock(lock_path: Path) -> Iterator[bool]:
    """Context manager for the exclusive worker lock.

    Args:
        lock_path: Lock file location

    Yields:
        True if the lock was acquired, False if another worker holds it
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

    # Open or create lock file
    lock_fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR, 0o600)

    try:
        # Try to acquire exclusive lock (non-blocking)
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            yield False
        else:
            yield True
    finally:
        # Closing the descriptor releases the lock
        os.close(lock_fd)
