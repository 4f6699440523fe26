"""Recurring generation schedules and due-time computation."""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from ..generation.models import TRACKS_PER_BATCH

_RUN_TIME = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ONCE = "once"


DEFAULT_INTERVAL_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.MONTHLY: 30,
    Frequency.ONCE: 1,
}


def parse_run_time(run_time: str) -> tuple[int, int]:
    """Parse ``HH:MM`` into (hour, minute).

    Raises:
        ValueError: If the value is not a 24-hour HH:MM time
    """
    match = _RUN_TIME.match(run_time or "")
    if not match:
        raise ValueError(f"run_time must be HH:MM (24-hour), got {run_time!r}")
    return int(match.group(1)), int(match.group(2))


@dataclass
class ScheduleDefinition:
    """A recurring bulk-generation request.

    Attributes:
        id: Schedule identifier
        name: Operator-facing label
        frequency: daily, weekly, monthly or once
        interval_days: Days between runs
        run_time: Local time of day (HH:MM) runs are due
        track_count: Tracks per run (positive, even)
        style: Style passed to generation
        mood: Mood passed to generation
        auto_deploy: Deploy resulting tracks after a successful run
        next_run_at: When the schedule is next due
        active: Inactive schedules are never due
        last_run_at: When the schedule last ran
        template: Synthesis prompt with {mood}, {style}, {keywords} and
            {title} placeholders; None uses the default mood prompt
    """

    id: str
    name: str
    frequency: Frequency
    interval_days: int
    run_time: str
    track_count: int
    style: str
    mood: str
    auto_deploy: bool
    next_run_at: datetime
    active: bool = True
    last_run_at: datetime | None = None
    template: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        """Validate schedule."""
        self.frequency = Frequency(self.frequency)
        parse_run_time(self.run_time)
        if self.interval_days < 1:
            raise ValueError("interval_days must be at least 1")
        if self.track_count <= 0 or self.track_count % TRACKS_PER_BATCH != 0:
            raise ValueError(
                f"track_count must be a positive multiple of {TRACKS_PER_BATCH}"
            )


def compute_next_run(definition: ScheduleDefinition, now: datetime) -> datetime:
    """Next due time for a schedule.

    Today at ``run_time`` if that is still ahead of ``now``; otherwise
    ``interval_days`` after today at ``run_time``.
    """
    hour, minute = parse_run_time(definition.run_time)
    today_at = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if today_at > now:
        return today_at
    return today_at + timedelta(days=definition.interval_days)


def new_schedule(
    name: str,
    frequency: Frequency | str,
    run_time: str,
    track_count: int,
    style: str,
    mood: str,
    auto_deploy: bool = False,
    interval_days: int | None = None,
    template: str | None = None,
    now: datetime | None = None,
) -> ScheduleDefinition:
    """Build a schedule with a fresh id and its first due time."""
    frequency = Frequency(frequency)
    now = now or datetime.now()
    definition = ScheduleDefinition(
        id=f"sched_{uuid.uuid4().hex[:12]}",
        name=name,
        frequency=frequency,
        interval_days=interval_days or DEFAULT_INTERVAL_DAYS[frequency],
        run_time=run_time,
        track_count=track_count,
        style=style,
        mood=mood,
        auto_deploy=auto_deploy,
        next_run_at=now,
        template=template or None,
        created_at=now,
    )
    definition.next_run_at = compute_next_run(definition, now)
    return definition
