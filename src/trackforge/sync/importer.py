"""Rebuilds tracks from audio-synthesis job ids issued outside trackforge."""

import logging
import re
from dataclasses import dataclass, field

from ..cache import CacheStore, Service
from ..generation.attempt import generate_cover
from ..providers.base import (
    STATUS_SUCCESS,
    AssetDownloader,
    AudioSynthesizer,
    ImageGenerator,
    RawTrack,
)
from ..tracks import GeneratedTrackRecord, TrackRepository

logger = logging.getLogger(__name__)

SYNCED_STYLE = "synced"
IMPORTED_MOOD = "imported"

_SEPARATORS = re.compile(r"[\s,]+")


def parse_id_list(text: str) -> list[str]:
    """Split a comma/whitespace separated id list, dropping blanks and repeats."""
    return list(dict.fromkeys(part for part in _SEPARATORS.split(text) if part))


@dataclass
class ImportResult:
    """Outcome of an import call.

    Known ids and unfinished jobs are zero-effect skips, not errors.
    ``failed`` lists ids whose status could not be fetched.
    """

    imported: list[GeneratedTrackRecord] = field(default_factory=list)
    skipped_known: list[str] = field(default_factory=list)
    skipped_unfinished: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class SyncImporter:
    """Imports finished synthesis jobs the audio cache has never seen."""

    def __init__(
        self,
        cache_store: CacheStore,
        synthesizer: AudioSynthesizer,
        downloader: AssetDownloader | None = None,
        image_generator: ImageGenerator | None = None,
        track_repository: TrackRepository | None = None,
        category: str = "healing",
    ):
        self.cache_store = cache_store
        self.synthesizer = synthesizer
        self.downloader = downloader
        self.image_generator = image_generator
        self.track_repository = track_repository
        self.category = category

    async def import_by_external_id(self, job_ids: list[str]) -> ImportResult:
        """Import each job id not already recorded in the audio cache.

        Known ids cost no collaborator call. Jobs that are not SUCCESS
        are skipped. Downloads and covers are best effort.
        """
        result = ImportResult()
        known = self.cache_store.known_job_ids()

        for job_id in dict.fromkeys(i.strip() for i in job_ids if i and i.strip()):
            if job_id in known:
                logger.info(f"Skipping {job_id}: already in audio cache")
                result.skipped_known.append(job_id)
                continue

            try:
                status = await self.synthesizer.poll_status(job_id)
            except Exception as e:
                logger.error(f"Could not fetch status for {job_id}: {e}")
                result.failed.append(job_id)
                continue

            if status.status != STATUS_SUCCESS or not status.tracks:
                logger.info(f"Skipping {job_id}: status {status.status}")
                result.skipped_unfinished.append(job_id)
                continue

            records = await self._import_job(job_id, status.tracks)
            result.imported.extend(records)
            known.add(job_id)

        logger.info(
            f"Imported {len(result.imported)} tracks "
            f"({len(result.skipped_known)} known, {len(result.skipped_unfinished)} unfinished, "
            f"{len(result.failed)} failed)"
        )
        return result

    async def _import_job(self, job_id: str, raw_tracks: list[RawTrack]) -> list[GeneratedTrackRecord]:
        records = []
        for index, raw in enumerate(raw_tracks):
            title = raw.title or f"Imported {job_id[:8]} {index + 1}"
            audio_ref, duration = await self._fetch_audio(raw, title)
            image_ref = await self._fetch_cover(raw, title)
            records.append(
                GeneratedTrackRecord(
                    id=f"sync_{job_id}_{index + 1}",
                    title=title,
                    foreign_title=title,
                    audio_ref=audio_ref,
                    image_ref=image_ref,
                    duration=duration,
                    style=SYNCED_STYLE,
                    mood=IMPORTED_MOOD,
                    batch_id=f"sync_{job_id}",
                    job_id=job_id,
                )
            )

        self.cache_store.put(
            Service.AUDIO,
            (records[0].title, SYNCED_STYLE, IMPORTED_MOOD),
            {
                "job_id": job_id,
                "status": STATUS_SUCCESS,
                "title": records[0].title,
                "style": SYNCED_STYLE,
                "mood": IMPORTED_MOOD,
                "tracks": [
                    {
                        "title": r.title,
                        "audio_ref": r.audio_ref,
                        "image_ref": r.image_ref,
                        "duration": r.duration,
                    }
                    for r in records
                ],
            },
        )
        if self.track_repository is not None:
            self.track_repository.add_many(records)
        return records

    async def _fetch_audio(self, raw: RawTrack, title: str) -> tuple[str, float]:
        if self.downloader is None:
            return raw.audio_url, raw.duration
        try:
            asset = await self.downloader.fetch_and_persist(raw.audio_url, title)
        except Exception as e:
            logger.warning(f"Audio download failed for '{title}', keeping remote URL: {e}")
            return raw.audio_url, raw.duration
        return asset.local_ref, asset.duration or raw.duration

    async def _fetch_cover(self, raw: RawTrack, title: str) -> str | None:
        if raw.image_url:
            if self.downloader is None:
                return raw.image_url
            try:
                asset = await self.downloader.fetch_and_persist(raw.image_url, title)
            except Exception as e:
                logger.warning(f"Cover download failed for '{title}', keeping remote URL: {e}")
                return raw.image_url
            return asset.local_ref

        return await generate_cover(
            self.image_generator, self.cache_store, title, self.category, IMPORTED_MOOD, None
        )
