"""Drives one synthesis job through the phase machine.

Only submission and polling are fatal. Download and cover steps degrade
to the remote references reported by the synthesis service.
"""

import asyncio
import logging
from collections.abc import Callable

from ..cache import CacheStore, Service
from ..providers.base import (
    STATUS_FAILED,
    STATUS_SUCCESS,
    AssetDownloader,
    AudioSynthesizer,
    ImageGenerator,
    RawTrack,
    TitleSuggestion,
)
from .errors import GenerationCancelled, SynthesisFailedError, SynthesisTimeoutError
from .models import SynthesizedTrack
from .phases import Phase, PhaseMachine

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_POLL_ATTEMPTS = 60

TrackCallback = Callable[[int, str], None]


def assign_title(titles: list[TitleSuggestion], index: int) -> TitleSuggestion:
    """Pick the title for the track at ``index``.

    Tracks beyond the supplied titles reuse the last one with an ordinal.
    """
    if index < len(titles):
        return titles[index]
    last = titles[-1]
    return TitleSuggestion(
        native_text=f"{last.native_text} {index + 1}",
        foreign_text=f"{last.foreign_text} {index + 1}" if last.foreign_text else "",
        keywords=last.keywords,
    )


def render_prompt(template: str, title: str, style: str, mood: str, keywords: str) -> str:
    """Fill the placeholders of a synthesis prompt template.

    Unknown placeholders are left as written.

    Example:
        render_prompt("{mood} {style} for {title}", "Dawn", "piano", "calm", "")
        == "calm piano for Dawn"
    """
    prompt = (
        template.replace("{mood}", mood)
        .replace("{style}", style)
        .replace("{keywords}", keywords)
    )
    return prompt.replace("{title}", title)


class GenerationAttempt:
    """One synthesis call producing a pair of tracks.

    Example:
        machine = PhaseMachine(on_transition=report)
        attempt = GenerationAttempt(machine, synthesizer, downloader, images, cache)
        tracks = await attempt.run(titles, "piano", "calm", True, "dawn, mist")
        print(attempt.job_id, [t.title for t in tracks])
    """

    def __init__(
        self,
        machine: PhaseMachine,
        synthesizer: AudioSynthesizer,
        downloader: AssetDownloader | None,
        image_generator: ImageGenerator | None,
        cache_store: CacheStore,
        category: str = "healing",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        cancel_event: asyncio.Event | None = None,
        on_track: TrackCallback | None = None,
    ) -> None:
        """Initialize attempt.

        Args:
            machine: Phase machine for this batch, positioned at ``title``
            synthesizer: Audio-synthesis collaborator
            downloader: Asset downloader; None keeps remote references
            image_generator: Cover generator; None keeps remote covers
            cache_store: Image cache and usage ledger
            category: Category passed to the cover generator
            poll_interval: Seconds to wait before each status check
            max_poll_attempts: Status checks before giving up
            cancel_event: Checked between status checks
            on_track: Called with (track index, title) as each track is processed
        """
        if max_poll_attempts <= 0:
            raise ValueError("max_poll_attempts must be positive")

        self.machine = machine
        self.synthesizer = synthesizer
        self.downloader = downloader
        self.image_generator = image_generator
        self.cache_store = cache_store
        self.category = category
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.cancel_event = cancel_event
        self.on_track = on_track
        self.job_id: str | None = None
        self.remote_tracks: list[RawTrack] = []

    async def run(
        self,
        titles: list[TitleSuggestion],
        style: str,
        mood: str,
        instrumental: bool,
        keywords: str,
        prompt_template: str | None = None,
    ) -> list[SynthesizedTrack]:
        """Run synth, wait, download and image phases, ending at ``complete``.

        Each returned track carries its own title and its own cover. A
        prompt template is rendered with the first title of the pair.

        Raises:
            SynthesisFailedError: If the service reports FAILED or a SUCCESS with no tracks
            SynthesisTimeoutError: If polling exhausts its budget
            GenerationCancelled: If cancellation is observed between polls
            ServiceAuthError, ServiceAPIError: If submit or poll fails
        """
        if not titles:
            raise ValueError("At least one title is required")

        self.machine.transition(Phase.SYNTH)
        first = titles[0].display_title
        prompt = None
        if prompt_template:
            prompt = render_prompt(prompt_template, first, style, mood, keywords)
        try:
            self.job_id = await self.synthesizer.submit(
                first, style, mood, instrumental, prompt=prompt
            )
        except Exception:
            self.cache_store.record_usage(Service.AUDIO, False, units_produced=0)
            raise
        logger.info(f"Submitted synthesis job {self.job_id} for '{first}'")

        self.machine.transition(Phase.WAIT)
        try:
            raw_tracks = await self._wait_for_tracks(self.job_id)
        except GenerationCancelled:
            raise
        except Exception:
            self.cache_store.record_usage(Service.AUDIO, False, units_produced=0)
            raise
        self.cache_store.record_usage(Service.AUDIO, True, units_produced=len(raw_tracks))
        self.remote_tracks = raw_tracks

        # All downloads run before any cover so the machine never moves backwards
        self.machine.transition(Phase.DOWNLOAD)
        tracks = []
        for index, raw in enumerate(raw_tracks):
            suggestion = assign_title(titles, index)
            self._notify_track(index, suggestion.display_title)
            tracks.append(await self._download(raw, suggestion))

        self.machine.transition(Phase.IMAGE)
        for index, (raw, track) in enumerate(zip(raw_tracks, tracks)):
            self._notify_track(index, track.title)
            track.image_ref = await self._cover_for(track.title, mood, keywords, raw.image_url)

        self.machine.transition(Phase.COMPLETE)
        return tracks

    async def _wait_for_tracks(self, job_id: str) -> list[RawTrack]:
        for attempt in range(1, self.max_poll_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise GenerationCancelled()

            status = await self.synthesizer.poll_status(job_id)
            logger.debug(
                f"Job {job_id} status {status.status} "
                f"(check {attempt}/{self.max_poll_attempts})"
            )
            if status.status == STATUS_SUCCESS:
                if not status.tracks:
                    raise SynthesisFailedError(job_id, "finished without tracks")
                return status.tracks
            if status.status == STATUS_FAILED:
                raise SynthesisFailedError(job_id)

        raise SynthesisTimeoutError(job_id, self.max_poll_attempts)

    async def _download(self, raw: RawTrack, suggestion: TitleSuggestion) -> SynthesizedTrack:
        title = suggestion.display_title
        track = SynthesizedTrack(
            title=title,
            audio_ref=raw.audio_url,
            duration=raw.duration or 0.0,
            foreign_title=suggestion.foreign_text or None,
        )
        if self.downloader is None or not raw.audio_url:
            return track

        try:
            asset = await self.downloader.fetch_and_persist(raw.audio_url, title)
        except Exception as e:
            logger.warning(f"Audio download failed for '{title}', keeping remote URL: {e}")
            return track

        track.audio_ref = asset.local_ref
        if asset.duration:
            track.duration = asset.duration
        return track

    async def _cover_for(
        self, title: str, mood: str, keywords: str, remote_image: str | None
    ) -> str | None:
        return await generate_cover(
            self.image_generator,
            self.cache_store,
            title,
            self.category,
            mood,
            keywords,
            fallback=remote_image,
        )

    def _notify_track(self, index: int, title: str) -> None:
        if self.on_track is not None:
            self.on_track(index, title)


async def generate_cover(
    image_generator: ImageGenerator | None,
    cache_store: CacheStore,
    title: str,
    category: str,
    mood: str,
    keywords: str | None,
    fallback: str | None = None,
) -> str | None:
    """Resolve a cover image for one title, best effort.

    Covers are cached by (title, category, mood), so two tracks with
    different titles never share a cover. Any failure returns ``fallback``.
    """
    cached = cache_store.get(Service.IMAGE, title, category, mood)
    if cached is not None and cached.payload.get("image_ref"):
        return cached.payload["image_ref"]

    if image_generator is None:
        return fallback

    try:
        image_ref = await image_generator.generate_cover_image(title, category, mood, keywords)
    except Exception as e:
        logger.warning(f"Cover generation failed for '{title}': {e}")
        cache_store.record_usage(Service.IMAGE, False, units_produced=0)
        return fallback

    cache_store.record_usage(Service.IMAGE, True, units_produced=1)
    try:
        cache_store.put(
            Service.IMAGE,
            (title, category, mood),
            {"image_ref": image_ref, "title": title, "status": STATUS_SUCCESS},
        )
    except Exception as e:
        logger.error(f"Failed to cache cover for '{title}': {e}")
    return image_ref
