"""Recurring generation schedules and the worker that runs them."""

from .repository import ScheduleRepository
from .schedule import Frequency, ScheduleDefinition, compute_next_run, new_schedule
from .service import ScheduleRunResult, Scheduler
from .worker import SchedulerWorker

__all__ = [
    "Frequency",
    "ScheduleDefinition",
    "ScheduleRepository",
    "ScheduleRunResult",
    "Scheduler",
    "SchedulerWorker",
    "compute_next_run",
    "new_schedule",
]
