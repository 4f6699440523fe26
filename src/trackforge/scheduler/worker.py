"""Timer-driven scheduler worker with a single consumer."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .lockfile import worker_lock
from .service import ScheduleRunResult, Scheduler

logger = logging.getLogger(__name__)


@dataclass
class QueueItem:
    """Due schedule waiting to run."""

    schedule_id: str
    timestamp: datetime = field(default_factory=datetime.now)


class SchedulerWorker:
    """Runs due schedules one at a time.

    A timer enqueues due schedule ids every ``check_interval`` seconds
    and a single consumer runs them serially, so generation runs (and
    their usage-ledger writes) never overlap. The lock file keeps a
    second worker on the same data directory from starting.
    """

    def __init__(self, scheduler: Scheduler, lock_path: Path, check_interval: float = 60.0):
        self.scheduler = scheduler
        self.lock_path = lock_path
        self.check_interval = check_interval

        self.run_queue: asyncio.Queue[QueueItem] = asyncio.Queue()
        self.pending: set[str] = set()
        self.current_item: QueueItem | None = None
        self.results: list[ScheduleRunResult] = []

    def enqueue_due(self, now: datetime | None = None) -> int:
        """Queue every due schedule not already queued or running.

        Returns:
            Number of schedules newly queued
        """
        queued = 0
        for definition in self.scheduler.due(now):
            if definition.id in self.pending:
                continue
            self.pending.add(definition.id)
            self.run_queue.put_nowait(QueueItem(schedule_id=definition.id))
            queued += 1

        if queued:
            logger.info(f"Queued {queued} due schedules")
        return queued

    async def process_queue(self) -> None:
        """Consume queued schedules serially."""
        while True:
            item = await self.run_queue.get()
            self.current_item = item
            try:
                result = await self.scheduler.run_now(item.schedule_id)
                self.results.append(result)
            except Exception as e:
                logger.error(f"Error running schedule {item.schedule_id}: {e}")
            finally:
                self.pending.discard(item.schedule_id)
                self.current_item = None
                self.run_queue.task_done()

    async def run_timer(self) -> None:
        """Check for due schedules every ``check_interval`` seconds."""
        while True:
            try:
                self.enqueue_due()
            except Exception as e:
                logger.error(f"Error checking due schedules: {e}")
            await asyncio.sleep(self.check_interval)

    async def start(self) -> None:
        """Acquire the worker lock and run until cancelled.

        Raises:
            RuntimeError: If another worker holds the lock
        """
        logger.info("Starting scheduler worker...")
        with worker_lock(self.lock_path) as acquired:
            if not acquired:
                logger.error("Another scheduler worker is already running (lock held)")
                raise RuntimeError("Another scheduler worker is already running")
            logger.info(f"✓ Acquired worker lock {self.lock_path}")

            consumer = asyncio.create_task(self.process_queue())
            logger.info(f"✓ Checking schedules every {self.check_interval:g}s")
            try:
                await self.run_timer()
            finally:
                consumer.cancel()
                logger.debug("Released worker lock")
