"""Runs schedules through the batch orchestrator."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from ..deploy import DeploymentTracker, DeployOutcome
from ..generation.errors import GenerationError
from ..generation.models import GenerationRequest, GenerationResult
from ..generation.pipeline import BatchOrchestrator
from .repository import ScheduleRepository
from .schedule import (
    DEFAULT_INTERVAL_DAYS,
    Frequency,
    ScheduleDefinition,
    compute_next_run,
    new_schedule,
)

logger = logging.getLogger(__name__)

_EDITABLE = {
    "name",
    "frequency",
    "interval_days",
    "run_time",
    "track_count",
    "style",
    "mood",
    "auto_deploy",
    "active",
    "template",
}
_TIMING = {"frequency", "interval_days", "run_time", "active"}


@dataclass
class ScheduleRunResult:
    """Outcome of running one schedule."""

    schedule_id: str
    generation: GenerationResult
    deployments: list[DeployOutcome] = field(default_factory=list)


class Scheduler:
    """Creates, edits and runs generation schedules.

    Every run, manual or timer-triggered, updates ``last_run_at`` and
    ``next_run_at``; ``once`` schedules are deactivated after running.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        orchestrator: BatchOrchestrator | None = None,
        deployment_tracker: DeploymentTracker | None = None,
    ):
        """Initialize scheduler.

        Args:
            repository: Schedule storage
            orchestrator: Runs generation; only needed to run schedules
            deployment_tracker: Used by auto-deploy schedules
        """
        self.repository = repository
        self.orchestrator = orchestrator
        self.deployment_tracker = deployment_tracker

    def create(
        self,
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
        definition = new_schedule(
            name,
            frequency,
            run_time,
            track_count,
            style,
            mood,
            auto_deploy=auto_deploy,
            interval_days=interval_days,
            template=template,
            now=now,
        )
        self.repository.create(definition)
        logger.info(
            f"Created schedule {definition.id} ({definition.name}), "
            f"next run {definition.next_run_at}"
        )
        return definition

    def update(
        self, schedule_id: str, now: datetime | None = None, **changes: Any
    ) -> ScheduleDefinition:
        """Edit a schedule, recomputing its due time when timing changes.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
            ValueError: If a field is not editable or a value is invalid
        """
        unknown = set(changes) - _EDITABLE
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        current = self.repository.get(schedule_id)
        if "frequency" in changes and "interval_days" not in changes:
            changes["interval_days"] = DEFAULT_INTERVAL_DAYS[Frequency(changes["frequency"])]

        updated = replace(current, **changes)
        if _TIMING & set(changes):
            updated.next_run_at = compute_next_run(updated, now or datetime.now())

        self.repository.update(updated)
        logger.info(f"Updated schedule {schedule_id}: {', '.join(sorted(changes))}")
        return updated

    def delete(self, schedule_id: str) -> bool:
        return self.repository.delete(schedule_id)

    def due(self, now: datetime | None = None) -> list[ScheduleDefinition]:
        return self.repository.due(now or datetime.now())

    async def run_now(self, schedule_id: str, now: datetime | None = None) -> ScheduleRunResult:
        """Run a schedule immediately, ignoring its due time.

        Args:
            schedule_id: Schedule to run
            now: Time recorded as the run time (defaults to completion time)

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
            GenerationError: If the scheduler has no orchestrator
        """
        if self.orchestrator is None:
            raise GenerationError("Scheduler has no orchestrator; cannot run schedules")

        definition = self.repository.get(schedule_id)
        logger.info(f"Running schedule {definition.id} ({definition.name})")

        request = GenerationRequest(
            track_count=definition.track_count,
            style=definition.style,
            mood=definition.mood,
            prompt_template=definition.template,
        )
        generation = await self.orchestrator.run(request)

        ran_at = now or datetime.now()
        definition.last_run_at = ran_at
        definition.next_run_at = compute_next_run(definition, ran_at)
        if definition.frequency is Frequency.ONCE:
            definition.active = False
        self.repository.update(definition)

        result = ScheduleRunResult(schedule_id=definition.id, generation=generation)
        if definition.auto_deploy and generation.success and generation.tracks:
            if self.deployment_tracker is None:
                logger.warning(
                    f"Schedule {definition.id} wants auto-deploy but no catalog is configured"
                )
            else:
                result.deployments = await self.deployment_tracker.deploy(
                    [track.id for track in generation.tracks]
                )

        logger.info(
            f"Schedule {definition.id} produced {len(generation.tracks)} tracks; "
            f"next run {definition.next_run_at}"
        )
        return result

    async def run_due(self, now: datetime | None = None) -> list[ScheduleRunResult]:
        """Run every due schedule, one after another."""
        now = now or datetime.now()
        results = []
        for definition in self.due(now):
            results.append(await self.run_now(definition.id, now=now))
        return results
