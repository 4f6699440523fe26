"""Bulk generation orchestrator for trackforge.

Runs the batches of a bulk request one after another: resolve two
titles, short-circuit on the audio cache or drive a GenerationAttempt,
persist the finished tracks, and report progress after every phase
transition.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field

from ..cache import CacheStore, Service, derive_key
from ..providers.base import (
    STATUS_SUCCESS,
    AssetDownloader,
    AudioSynthesizer,
    ImageGenerator,
    TextGenerator,
    TitleSuggestion,
)
from ..titles import TitlePoolManager
from ..tracks import GeneratedTrackRecord, TrackRepository
from .attempt import DEFAULT_MAX_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL, GenerationAttempt, assign_title
from .errors import GenerationCancelled, GenerationError
from .models import (
    TRACKS_PER_BATCH,
    GenerationJob,
    GenerationRequest,
    GenerationResult,
    ProgressEvent,
    SynthesizedTrack,
)
from .phases import Phase, PhaseMachine

logger = logging.getLogger(__name__)

SECOND_TITLE_SUFFIX = " II"

ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class TitleContext:
    """Inputs shared by the title strategies of one batch."""

    keywords: str
    style: str
    mood: str
    pooled: list[TitleSuggestion] = field(default_factory=list)


TitleStrategy = Callable[[TitleContext], Awaitable[tuple[list[TitleSuggestion], bool]]]


def fallback_titles(keywords: str) -> list[TitleSuggestion]:
    """Deterministic pair built from the first keyword token. Never fails."""
    token = keywords.split(",")[0].strip() if keywords else ""
    token = token or "Serenity"
    return [
        TitleSuggestion(native_text=f"Melody of {token}", foreign_text=f"Melody of {token}"),
        TitleSuggestion(native_text=f"Whispers of {token}", foreign_text=f"Whispers of {token}"),
    ]


def distinct_titles(titles: list[TitleSuggestion]) -> list[TitleSuggestion]:
    """Drop titles whose normalized display text repeats an earlier one."""
    seen: set[str] = set()
    unique = []
    for title in titles:
        key = derive_key(title.display_title.strip())
        if key in seen:
            continue
        seen.add(key)
        unique.append(title)
    return unique


class BatchOrchestrator:
    """Runs bulk generation requests.

    Batches execute strictly one at a time. Fatal errors (synthesis
    failure, polling timeout, unreachable synthesis service) end the run
    in the ``error`` phase; tracks finished before the failure are kept
    and persisted.

    Example:
        orchestrator = BatchOrchestrator(cache_store, pool, text, synth, downloader, images, tracks)
        result = await orchestrator.run(GenerationRequest(4, "piano", "calm"))

        async for event in orchestrator.stream(GenerationRequest(2, "piano", "calm")):
            print(event.current_batch, event.phase.value, event.current_title)
    """

    def __init__(
        self,
        cache_store: CacheStore,
        title_pool: TitlePoolManager | None,
        text_generator: TextGenerator | None,
        synthesizer: AudioSynthesizer,
        downloader: AssetDownloader | None = None,
        image_generator: ImageGenerator | None = None,
        track_repository: TrackRepository | None = None,
        category: str = "healing",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
    ) -> None:
        self.cache_store = cache_store
        self.title_pool = title_pool
        self.text_generator = text_generator
        self.synthesizer = synthesizer
        self.downloader = downloader
        self.image_generator = image_generator
        self.track_repository = track_repository
        self.category = category
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

        self.title_strategies: list[TitleStrategy] = [
            self._titles_from_pool,
            self._titles_from_single_pooled,
            self._titles_from_text_cache,
            self._titles_from_text_service,
            self._titles_from_keywords,
        ]

    async def run(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Execute a bulk request.

        Args:
            request: Validated bulk request
            on_progress: Receives a ProgressEvent after every transition;
                the last one is terminal and carries the result
            cancel_event: Checked between batches and between status checks

        Returns:
            GenerationResult with every completed track and, on failure,
            the reason
        """
        job = GenerationJob(
            batch_id=f"batch_{uuid.uuid4().hex[:12]}",
            total_batches=request.total_batches,
            total_tracks=request.track_count,
        )
        result = GenerationResult(batch_id=job.batch_id)
        logger.info(
            f"Starting {job.batch_id}: {request.track_count} tracks "
            f"({job.total_batches} batches), style={request.style}, mood={request.mood}"
        )

        def emit(final: GenerationResult | None = None) -> None:
            if on_progress is None:
                return
            on_progress(
                ProgressEvent(
                    batch_id=job.batch_id,
                    current_batch=job.current_batch,
                    total_batches=job.total_batches,
                    current_track=job.current_track,
                    total_tracks=job.total_tracks,
                    phase=job.phase,
                    current_title=job.current_title,
                    completed_count=len(job.completed_tracks),
                    error_message=job.error_message,
                    result=final,
                )
            )

        machine: PhaseMachine | None = None
        try:
            batch_keywords = await self._keywords_for_batches(request)

            for batch_index in range(job.total_batches):
                if cancel_event is not None and cancel_event.is_set():
                    raise GenerationCancelled()

                job.current_batch = batch_index + 1
                job.current_track = batch_index * TRACKS_PER_BATCH + 1
                job.current_title = None
                job.phase = Phase.TITLE

                def on_transition(previous: Phase, current: Phase) -> None:
                    job.phase = current
                    emit()

                machine = PhaseMachine(on_transition=on_transition)
                emit()

                records = await self._run_batch(
                    job, machine, request, batch_keywords[batch_index], cancel_event
                )
                job.completed_tracks.extend(records)
                self._persist(records)

            job.phase = Phase.COMPLETE
        except GenerationCancelled as e:
            logger.info(f"{job.batch_id} cancelled after {len(job.completed_tracks)} tracks")
            job.error_message = str(e)
            result.cancelled = True
        except GenerationError as e:
            logger.error(f"{job.batch_id} failed in batch {job.current_batch}: {e}")
            job.error_message = str(e)
        except Exception as e:
            logger.exception(f"{job.batch_id} failed unexpectedly in batch {job.current_batch}")
            job.error_message = f"Unexpected error: {e}"

        if job.error_message is not None:
            if machine is not None:
                machine.on_transition = None
                machine.fail()
            job.phase = Phase.ERROR

        result.tracks = list(job.completed_tracks)
        result.error = job.error_message
        emit(final=result)

        logger.info(
            f"Finished {job.batch_id}: {len(result.tracks)}/{job.total_tracks} tracks, "
            f"phase={job.phase.value}"
        )
        return result

    async def stream(
        self,
        request: GenerationRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Run a request and yield its progress events.

        The last event yielded is terminal and carries the result.
        Closing the iterator early cancels the run at its next cancellation
        check; a call already in flight finishes first.
        """
        stop = cancel_event or asyncio.Event()
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        task = asyncio.create_task(
            self.run(request, on_progress=queue.put_nowait, cancel_event=stop)
        )
        try:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    break
            await task
        finally:
            if not task.done():
                stop.set()
                await task

    async def _run_batch(
        self,
        job: GenerationJob,
        machine: PhaseMachine,
        request: GenerationRequest,
        keywords: str,
        cancel_event: asyncio.Event | None,
    ) -> list[GeneratedTrackRecord]:
        titles = await self.resolve_titles(keywords, request.style, request.mood)
        first_title = titles[0].display_title
        job.current_title = first_title
        logger.info(
            f"Batch {job.current_batch}/{job.total_batches} titles: "
            f"{', '.join(t.display_title for t in titles)}"
        )

        cached = self._cached_tracks(first_title, request.style, request.mood, titles)
        if cached is not None:
            cached_job_id, cached_tracks = cached
            logger.info(f"Audio cache hit for '{first_title}', skipping synthesis")
            machine.transition(Phase.COMPLETE)
            return self._to_records(job, cached_tracks, request, job_id=cached_job_id)

        first_track_number = job.current_track

        def on_track(index: int, title: str) -> None:
            job.current_track = first_track_number + index
            job.current_title = title

        attempt = GenerationAttempt(
            machine,
            self.synthesizer,
            self.downloader,
            self.image_generator,
            self.cache_store,
            category=self.category,
            poll_interval=self.poll_interval,
            max_poll_attempts=self.max_poll_attempts,
            cancel_event=cancel_event,
            on_track=on_track,
        )
        try:
            tracks = await attempt.run(
                titles,
                request.style,
                request.mood,
                request.instrumental,
                keywords,
                prompt_template=request.prompt_template,
            )
        finally:
            if attempt.job_id is not None:
                job.task_ids.append(attempt.job_id)

        self._save_audio_cache(attempt.job_id, first_title, request, tracks)
        return self._to_records(job, tracks, request, job_id=attempt.job_id)

    async def resolve_titles(self, keywords: str, style: str, mood: str) -> list[TitleSuggestion]:
        """Secure two titles by trying each strategy in order."""
        context = TitleContext(keywords=keywords, style=style, mood=mood)
        for strategy in self.title_strategies:
            try:
                titles, ok = await strategy(context)
            except Exception as e:
                logger.warning(f"Title strategy {strategy.__name__} failed: {e}")
                continue
            if ok:
                logger.debug(f"Titles resolved by {strategy.__name__}")
                return titles[:TRACKS_PER_BATCH]

        return fallback_titles(keywords)

    async def _titles_from_pool(
        self, context: TitleContext
    ) -> tuple[list[TitleSuggestion], bool]:
        if self.title_pool is None:
            return [], False
        records = self.title_pool.take(self.category, TRACKS_PER_BATCH)
        context.pooled = [
            TitleSuggestion(r.native_text, r.foreign_text, r.keywords) for r in records
        ]
        return context.pooled, len(context.pooled) >= TRACKS_PER_BATCH

    async def _titles_from_single_pooled(
        self, context: TitleContext
    ) -> tuple[list[TitleSuggestion], bool]:
        # TODO: revisit whether one pooled title should be stretched to a pair
        # or the pool topped up from the text service instead.
        if len(context.pooled) != 1:
            return [], False
        only = context.pooled[0]
        second = TitleSuggestion(
            native_text=only.native_text + SECOND_TITLE_SUFFIX,
            foreign_text=only.foreign_text + SECOND_TITLE_SUFFIX if only.foreign_text else "",
            keywords=only.keywords,
        )
        return [only, second], True

    async def _titles_from_text_cache(
        self, context: TitleContext
    ) -> tuple[list[TitleSuggestion], bool]:
        entry = self.cache_store.get(Service.TEXT, context.keywords, context.style, context.mood)
        if entry is None:
            return [], False
        titles = [
            TitleSuggestion(
                native_text=item.get("native_text", ""),
                foreign_text=item.get("foreign_text", ""),
                keywords=item.get("keywords", ""),
            )
            for item in entry.payload.get("titles", [])
            if item.get("native_text") or item.get("foreign_text")
        ]
        titles = distinct_titles(titles)
        return titles, len(titles) >= TRACKS_PER_BATCH

    async def _titles_from_text_service(
        self, context: TitleContext
    ) -> tuple[list[TitleSuggestion], bool]:
        if self.text_generator is None:
            return [], False
        try:
            titles = await self.text_generator.generate_titles(
                context.keywords, context.style, context.mood, TRACKS_PER_BATCH
            )
        except Exception:
            self.cache_store.record_usage(Service.TEXT, False, units_produced=0)
            raise
        self.cache_store.record_usage(Service.TEXT, True, units_produced=len(titles))

        titles = distinct_titles([t for t in titles if t.display_title])
        if len(titles) < TRACKS_PER_BATCH:
            return titles, False

        self.cache_store.put(
            Service.TEXT,
            (context.keywords, context.style, context.mood),
            {
                "keywords": context.keywords,
                "style": context.style,
                "mood": context.mood,
                "titles": [
                    {
                        "native_text": t.native_text,
                        "foreign_text": t.foreign_text,
                        "keywords": t.keywords,
                    }
                    for t in titles
                ],
            },
        )
        return titles, True

    async def _titles_from_keywords(
        self, context: TitleContext
    ) -> tuple[list[TitleSuggestion], bool]:
        return fallback_titles(context.keywords), True

    async def _keywords_for_batches(self, request: GenerationRequest) -> list[str]:
        default = f"{self.category}, {request.mood}, {request.style}"
        if request.keywords.strip():
            return [request.keywords.strip()] * request.total_batches

        generated: list[str] = []
        if self.text_generator is not None:
            try:
                generated = await self.text_generator.generate_keywords(
                    self.category, request.style, request.mood, request.total_batches
                )
                self.cache_store.record_usage(
                    Service.TEXT, True, units_produced=len(generated)
                )
            except Exception as e:
                logger.warning(f"Keyword generation failed, using defaults: {e}")
                self.cache_store.record_usage(Service.TEXT, False, units_produced=0)

        generated = [k.strip() for k in generated if k and k.strip()]
        return [
            generated[i] if i < len(generated) else default
            for i in range(request.total_batches)
        ]

    def _cached_tracks(
        self, first_title: str, style: str, mood: str, titles: list[TitleSuggestion]
    ) -> tuple[str | None, list[SynthesizedTrack]] | None:
        entry = self.cache_store.get(Service.AUDIO, first_title, style, mood)
        if entry is None or entry.status != STATUS_SUCCESS:
            return None
        stored = entry.payload.get("tracks") or []
        if not stored:
            return None

        tracks = []
        for index, item in enumerate(stored):
            suggestion = assign_title(titles, index)
            tracks.append(
                SynthesizedTrack(
                    title=suggestion.display_title,
                    foreign_title=suggestion.foreign_text or None,
                    audio_ref=item.get("audio_ref", ""),
                    image_ref=item.get("image_ref"),
                    duration=float(item.get("duration") or 0.0),
                )
            )
        return entry.job_id, tracks

    def _save_audio_cache(
        self,
        job_id: str | None,
        first_title: str,
        request: GenerationRequest,
        tracks: list[SynthesizedTrack],
    ) -> None:
        payload = {
            "job_id": job_id,
            "status": STATUS_SUCCESS,
            "title": first_title,
            "style": request.style,
            "mood": request.mood,
            "tracks": [
                {
                    "title": t.title,
                    "audio_ref": t.audio_ref,
                    "image_ref": t.image_ref,
                    "duration": t.duration,
                }
                for t in tracks
            ],
        }
        try:
            self.cache_store.put(Service.AUDIO, (first_title, request.style, request.mood), payload)
        except Exception as e:
            logger.error(f"Failed to cache synthesis result for '{first_title}': {e}")

    def _to_records(
        self,
        job: GenerationJob,
        tracks: list[SynthesizedTrack],
        request: GenerationRequest,
        job_id: str | None,
    ) -> list[GeneratedTrackRecord]:
        return [
            GeneratedTrackRecord(
                id=f"{job.batch_id}_{job.current_batch}_{index + 1}",
                title=track.title,
                foreign_title=track.foreign_title,
                audio_ref=track.audio_ref,
                image_ref=track.image_ref,
                duration=track.duration,
                style=request.style,
                mood=request.mood,
                batch_id=job.batch_id,
                job_id=job_id,
            )
            for index, track in enumerate(tracks)
        ]

    def _persist(self, records: list[GeneratedTrackRecord]) -> None:
        if self.track_repository is None or not records:
            return
        try:
            self.track_repository.add_many(records)
        except Exception as e:
            logger.error(f"Failed to persist {len(records)} track records: {e}")
