"""High-level API for trackforge library usage."""

import asyncio
from collections.abc import AsyncIterator

from .cache import UsageSummary
from .config import TrackforgeConfig
from .core import Workspace
from .deploy import DeployOutcome
from .generation.models import GenerationRequest, GenerationResult, ProgressEvent
from .generation.pipeline import ProgressCallback
from .providers.base import CreditsInfo, JobRecordPage
from .scheduler import ScheduleRunResult
from .sync import ImportResult
from .titles import TitleHints


def _request(
    workspace: Workspace,
    track_count: int,
    style: str,
    mood: str,
    keywords: str,
    instrumental: bool | None,
    prompt_template: str | None = None,
) -> GenerationRequest:
    if instrumental is None:
        instrumental = workspace.config.audio.instrumental
    return GenerationRequest(
        track_count=track_count,
        style=style,
        mood=mood,
        keywords=keywords,
        instrumental=instrumental,
        prompt_template=prompt_template,
    )


async def generate_tracks(
    track_count: int,
    style: str,
    mood: str,
    keywords: str = "",
    instrumental: bool | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
    prompt_template: str | None = None,
    config: TrackforgeConfig | None = None,
) -> GenerationResult:
    """Generate tracks in batches of two.

    Args:
        track_count: Total tracks to generate (positive, even)
        style: Musical style
        mood: Mood of the tracks
        keywords: Comma-separated theme keywords (generated if empty)
        instrumental: Instrumental-only audio (from config if omitted)
        on_progress: Receives a ProgressEvent after every phase change
        cancel_event: Set to stop the run cooperatively
        prompt_template: Synthesis prompt; {mood}, {style}, {keywords} and
            {title} are filled in per batch
        config: Configuration (loaded from disk if omitted)

    Returns:
        GenerationResult; check ``error`` and ``cancelled`` for how it ended

    Raises:
        ValueError: If the request is invalid
        ServiceAuthError: If the audio-synthesis API key is not configured
    """
    workspace = Workspace(config)
    request = _request(
        workspace, track_count, style, mood, keywords, instrumental, prompt_template
    )
    return await workspace.orchestrator.run(
        request, on_progress=on_progress, cancel_event=cancel_event
    )


async def stream_generation(
    track_count: int,
    style: str,
    mood: str,
    keywords: str = "",
    instrumental: bool | None = None,
    cancel_event: asyncio.Event | None = None,
    prompt_template: str | None = None,
    config: TrackforgeConfig | None = None,
) -> AsyncIterator[ProgressEvent]:
    """Like generate_tracks, but yields progress events as they happen.

    The final event carries the GenerationResult in ``result``.
    """
    workspace = Workspace(config)
    request = _request(
        workspace, track_count, style, mood, keywords, instrumental, prompt_template
    )
    async for event in workspace.orchestrator.stream(request, cancel_event=cancel_event):
        yield event


async def replenish_titles(
    count: int,
    category: str | None = None,
    keywords: str = "",
    style: str = "",
    mood: str = "",
    config: TrackforgeConfig | None = None,
) -> int:
    """Add freshly generated titles to a category pool.

    Returns:
        Number of titles added after de-duplication
    """
    workspace = Workspace(config)
    category = category or workspace.config.generation.category
    hints = TitleHints(keywords=keywords, style=style, mood=mood)
    return await workspace.title_pool.replenish(category, count, hints)


async def import_jobs(
    job_ids: list[str], config: TrackforgeConfig | None = None
) -> ImportResult:
    """Import finished synthesis jobs not yet in the audio cache."""
    return await Workspace(config).importer.import_by_external_id(job_ids)


async def deploy_tracks(
    track_ids: list[str],
    category: str | None = None,
    config: TrackforgeConfig | None = None,
) -> list[DeployOutcome]:
    """Promote generated tracks to the catalog; already deployed ones are skipped."""
    return await Workspace(config).deployer.deploy(track_ids, category=category)


async def run_schedule(
    schedule_id: str, config: TrackforgeConfig | None = None
) -> ScheduleRunResult:
    """Run a schedule immediately.

    Raises:
        ScheduleNotFoundError: If the schedule does not exist
    """
    return await Workspace(config).scheduler.run_now(schedule_id)


async def check_credits(config: TrackforgeConfig | None = None) -> CreditsInfo:
    """Remaining audio-synthesis credits and the tracks they can still buy."""
    return await Workspace(config).synthesizer.credits()


async def job_records(
    page: int = 1, limit: int = 20, config: TrackforgeConfig | None = None
) -> JobRecordPage:
    """Recent jobs known to the audio-synthesis service, newest first."""
    return await Workspace(config).synthesizer.list_records(page=page, limit=limit)


def usage_summary(config: TrackforgeConfig | None = None) -> UsageSummary:
    """Usage ledger report for the retained window."""
    return Workspace(config).cache_store.usage_summary()
