"""Integration tests for schedule runs and the scheduler worker."""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from test_helpers import FakeSynthesizer
from trackforge.deploy import DeploymentTracker, DeployStatus
from trackforge.generation import GenerationError, ScheduleNotFoundError, ServiceAPIError
from trackforge.generation.pipeline import BatchOrchestrator
from trackforge.scheduler import Frequency, Scheduler, SchedulerWorker
from trackforge.scheduler.lockfile import get_lock_path, worker_lock
from trackforge.scheduler.worker import QueueItem

NOON = datetime(2026, 3, 2, 12, 0)


@pytest.fixture
def make_scheduler(cache_store, title_pool, track_repository, schedule_repository, catalog):
    def build(synthesizer=None) -> Scheduler:
        orchestrator = BatchOrchestrator(
            cache_store=cache_store,
            title_pool=title_pool,
            text_generator=None,
            synthesizer=synthesizer or FakeSynthesizer(),
            track_repository=track_repository,
            poll_interval=0,
            max_poll_attempts=3,
        )
        return Scheduler(
            schedule_repository, orchestrator, DeploymentTracker(track_repository, catalog)
        )

    return build


class TestRunNow:
    """Test manual schedule runs."""

    @pytest.mark.asyncio
    async def test_run_updates_run_times(self, make_scheduler, schedule_repository) -> None:
        scheduler = make_scheduler()
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        result = await scheduler.run_now(created.id, now=NOON)

        assert result.generation.success
        assert len(result.generation.tracks) == 2
        stored = schedule_repository.get(created.id)
        assert stored.last_run_at == NOON
        assert stored.next_run_at == datetime(2026, 3, 3, 9, 0)
        assert stored.active is True
        assert result.deployments == []

    @pytest.mark.asyncio
    async def test_once_schedule_deactivates(self, make_scheduler, schedule_repository) -> None:
        """
        INVARIANT: A once schedule runs a single time
        BREAKS: One-off requests keep generating every day
        """
        scheduler = make_scheduler()
        created = scheduler.create("One-off", Frequency.ONCE, "13:00", 2, "piano", "calm", now=NOON)

        await scheduler.run_now(created.id, now=NOON)

        assert schedule_repository.get(created.id).active is False
        assert scheduler.due(NOON + timedelta(days=30)) == []

    @pytest.mark.asyncio
    async def test_auto_deploy_after_success(self, make_scheduler, catalog, track_repository) -> None:
        scheduler = make_scheduler()
        created = scheduler.create(
            "Nightly", "daily", "23:00", 2, "piano", "calm", auto_deploy=True, now=NOON
        )

        result = await scheduler.run_now(created.id, now=NOON)

        assert [d.status for d in result.deployments] == [DeployStatus.DEPLOYED] * 2
        assert len(catalog.upserts) == 2
        assert all(t.deployed for t in track_repository.list_tracks())

    @pytest.mark.asyncio
    async def test_template_rendered_into_synthesis_prompt(self, make_scheduler) -> None:
        synthesizer = FakeSynthesizer()
        scheduler = make_scheduler(synthesizer)
        created = scheduler.create(
            "Templated", "daily", "09:00", 2, "piano", "calm",
            template="{mood} {style} named {title} ({keywords})", now=NOON,
        )

        await scheduler.run_now(created.id, now=NOON)

        assert synthesizer.prompts == ["calm piano named Melody of healing (healing, calm, piano)"]

    @pytest.mark.asyncio
    async def test_no_template_leaves_prompt_to_service(self, make_scheduler) -> None:
        synthesizer = FakeSynthesizer()
        scheduler = make_scheduler(synthesizer)
        created = scheduler.create("Plain", "daily", "09:00", 2, "piano", "calm", now=NOON)

        await scheduler.run_now(created.id, now=NOON)

        assert synthesizer.prompts == [None]

    @pytest.mark.asyncio
    async def test_no_deploy_after_failed_run(self, make_scheduler, catalog, schedule_repository) -> None:
        synthesizer = FakeSynthesizer(submit_error=ServiceAPIError("Insufficient credits", 429))
        scheduler = make_scheduler(synthesizer)
        created = scheduler.create(
            "Nightly", "daily", "23:00", 2, "piano", "calm", auto_deploy=True, now=NOON
        )

        result = await scheduler.run_now(created.id, now=NOON)

        assert not result.generation.success
        assert result.deployments == []
        assert catalog.upserts == []
        assert schedule_repository.get(created.id).last_run_at == NOON

    @pytest.mark.asyncio
    async def test_unknown_schedule(self, make_scheduler) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await make_scheduler().run_now("sched_missing")

    @pytest.mark.asyncio
    async def test_admin_scheduler_cannot_run(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        with pytest.raises(GenerationError, match="no orchestrator"):
            await scheduler.run_now(created.id)

    @pytest.mark.asyncio
    async def test_run_due_runs_only_due(self, make_scheduler) -> None:
        scheduler = make_scheduler()
        early = scheduler.create("Early", "daily", "13:00", 2, "piano", "calm", now=NOON)
        scheduler.create("Late", "daily", "18:00", 2, "piano", "calm", now=NOON)

        results = await scheduler.run_due(now=NOON.replace(hour=14))

        assert [r.schedule_id for r in results] == [early.id]


class TestUpdate:
    """Test schedule edits."""

    def test_timing_change_recomputes_next_run(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        updated = scheduler.update(created.id, now=NOON, run_time="15:30")

        assert updated.next_run_at == datetime(2026, 3, 2, 15, 30)
        assert schedule_repository.get(created.id).run_time == "15:30"

    def test_frequency_change_resets_interval(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        updated = scheduler.update(created.id, now=NOON, frequency="weekly")

        assert updated.interval_days == 7
        assert updated.next_run_at == datetime(2026, 3, 9, 9, 0)

    def test_non_timing_change_keeps_next_run(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        updated = scheduler.update(created.id, mood="bright")

        assert updated.next_run_at == created.next_run_at
        assert updated.mood == "bright"

    def test_rejects_unknown_fields_and_ids(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        with pytest.raises(ValueError, match="Cannot update fields: id"):
            scheduler.update(created.id, id="other")
        with pytest.raises(ValueError):
            scheduler.update(created.id, track_count=3)
        with pytest.raises(ScheduleNotFoundError):
            scheduler.update("sched_missing", mood="bright")

    def test_template_set_and_cleared(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        templated = scheduler.update(created.id, template="Gentle {style} titled {title}")
        assert schedule_repository.get(created.id).template == "Gentle {style} titled {title}"
        assert templated.next_run_at == created.next_run_at

        scheduler.update(created.id, template=None)
        assert schedule_repository.get(created.id).template is None

    def test_delete(self, schedule_repository) -> None:
        scheduler = Scheduler(schedule_repository)
        created = scheduler.create("Morning", "daily", "09:00", 2, "piano", "calm", now=NOON)

        assert scheduler.delete(created.id) is True
        assert scheduler.delete(created.id) is False


class TestSchedulerWorker:
    """Test queueing, serial consumption and the worker lock."""

    def test_enqueue_due_skips_pending(self, make_scheduler, tmp_path) -> None:
        """
        INVARIANT: A due schedule is queued once until its run finishes
        BREAKS: Timer ticks during a long run stack up duplicate runs
        """
        scheduler = make_scheduler()
        scheduler.create("Early", "daily", "09:00", 2, "piano", "calm", now=NOON - timedelta(hours=4))
        worker = SchedulerWorker(scheduler, lock_path=tmp_path / "w.lock", check_interval=1)

        assert worker.enqueue_due(NOON) == 1
        assert worker.enqueue_due(NOON) == 0
        assert worker.run_queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_process_queue_runs_serially(
        self, make_scheduler, schedule_repository, tmp_path
    ) -> None:
        scheduler = make_scheduler()
        before = NOON - timedelta(hours=4)
        first = scheduler.create("First", "daily", "09:00", 2, "piano", "calm", now=before)
        second = scheduler.create("Second", "daily", "10:00", 2, "piano", "calm", now=before)
        worker = SchedulerWorker(scheduler, lock_path=tmp_path / "w.lock", check_interval=1)

        worker.enqueue_due(NOON)
        consumer = asyncio.create_task(worker.process_queue())
        await asyncio.wait_for(worker.run_queue.join(), timeout=5)
        consumer.cancel()

        assert [r.schedule_id for r in worker.results] == [first.id, second.id]
        assert worker.pending == set()
        assert schedule_repository.get(first.id).last_run_at is not None

    @pytest.mark.asyncio
    async def test_failed_run_does_not_stop_consumer(self, make_scheduler, tmp_path) -> None:
        scheduler = make_scheduler()
        before = NOON - timedelta(hours=4)
        kept = scheduler.create("Kept", "daily", "10:00", 2, "piano", "calm", now=before)
        worker = SchedulerWorker(scheduler, lock_path=tmp_path / "w.lock", check_interval=1)

        worker.run_queue.put_nowait(QueueItem(schedule_id="sched_missing"))
        worker.enqueue_due(NOON)
        consumer = asyncio.create_task(worker.process_queue())
        await asyncio.wait_for(worker.run_queue.join(), timeout=5)
        consumer.cancel()

        assert [r.schedule_id for r in worker.results] == [kept.id]

    def test_lock_is_exclusive(self, tmp_path) -> None:
        lock_path = get_lock_path(tmp_path / "data")

        with worker_lock(lock_path) as first:
            with worker_lock(lock_path) as second:
                assert first is True
                assert second is False

        with worker_lock(lock_path) as again:
            assert again is True

    @pytest.mark.asyncio
    async def test_start_refuses_when_locked(self, schedule_repository, tmp_path) -> None:
        lock_path = tmp_path / "w.lock"
        worker = SchedulerWorker(Scheduler(schedule_repository), lock_path=lock_path)

        with worker_lock(lock_path):
            with pytest.raises(RuntimeError, match="already running"):
                await worker.start()
