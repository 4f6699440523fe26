"""Core wiring for trackforge - builds components from configuration."""

import logging
from functools import cached_property

from .cache import CacheStore
from .config import TrackforgeConfig, load_config
from .db import Database
from .deploy import DeploymentTracker
from .generation.errors import ServiceAuthError
from .generation.pipeline import BatchOrchestrator
from .providers import ProviderRegistry
from .providers.base import ImageGenerator, TextGenerator
from .providers.catalog import HttpCatalogService
from .providers.download import HttpAssetDownloader
from .providers.imagen import ImagenCoverGenerator
from .providers.suno import SunoAudioSynthesizer
from .scheduler.lockfile import get_lock_path
from .scheduler.repository import ScheduleRepository
from .scheduler.service import Scheduler
from .scheduler.worker import SchedulerWorker
from .sync import SyncImporter
from .titles import TitlePoolManager
from .tracks import TrackRepository

logger = logging.getLogger(__name__)


class Workspace:
    """Components for one data directory, created on first use.

    Collaborators needing API keys are only constructed when an
    operation needs them, so local commands (usage, cache, tracks)
    work without any keys set. Text and cover generation are optional:
    without keys, titles fall back to the deterministic chain and
    covers to the synthesis service's own images.
    """

    def __init__(self, config: TrackforgeConfig | None = None):
        self.config = config or load_config()
        self.database = Database(self.config.storage.db_path)

    @cached_property
    def cache_store(self) -> CacheStore:
        return CacheStore(self.database)

    @cached_property
    def tracks(self) -> TrackRepository:
        return TrackRepository(self.database)

    @cached_property
    def schedules(self) -> ScheduleRepository:
        return ScheduleRepository(self.database)

    @cached_property
    def text_generator(self) -> TextGenerator | None:
        text = self.config.text
        try:
            return ProviderRegistry.create(text.provider, model=text.model, timeout=text.timeout)
        except ServiceAuthError as e:
            logger.warning(f"Text generation disabled: {e}")
            return None

    @cached_property
    def title_pool(self) -> TitlePoolManager:
        return TitlePoolManager(self.database, self.text_generator, self.cache_store)

    @cached_property
    def synthesizer(self) -> SunoAudioSynthesizer:
        """Audio-synthesis client.

        Raises:
            ServiceAuthError: If TRACKFORGE_AUDIO_API_KEY is not set
        """
        audio = self.config.audio
        return SunoAudioSynthesizer(
            base_url=audio.base_url,
            model=audio.model,
            callback_url=audio.callback_url,
            timeout=audio.timeout,
        )

    @cached_property
    def image_generator(self) -> ImageGenerator | None:
        image = self.config.image
        try:
            return ImagenCoverGenerator(
                media_dir=self.config.storage.media_dir,
                model=image.model,
                aspect_ratio=image.aspect_ratio,
                timeout=image.timeout,
            )
        except ServiceAuthError as e:
            logger.warning(f"Cover generation disabled: {e}")
            return None

    @cached_property
    def downloader(self) -> HttpAssetDownloader:
        return HttpAssetDownloader(self.config.storage.media_dir)

    @cached_property
    def catalog(self) -> HttpCatalogService:
        return HttpCatalogService(
            base_url=self.config.catalog.base_url,
            artist=self.config.catalog.artist,
        )

    @cached_property
    def orchestrator(self) -> BatchOrchestrator:
        generation = self.config.generation
        return BatchOrchestrator(
            cache_store=self.cache_store,
            title_pool=self.title_pool,
            text_generator=self.text_generator,
            synthesizer=self.synthesizer,
            downloader=self.downloader,
            image_generator=self.image_generator,
            track_repository=self.tracks,
            category=generation.category,
            poll_interval=generation.poll_interval,
            max_poll_attempts=generation.max_poll_attempts,
        )

    @cached_property
    def importer(self) -> SyncImporter:
        return SyncImporter(
            cache_store=self.cache_store,
            synthesizer=self.synthesizer,
            downloader=self.downloader,
            image_generator=self.image_generator,
            track_repository=self.tracks,
            category=self.config.generation.category,
        )

    @cached_property
    def deployer(self) -> DeploymentTracker:
        return DeploymentTracker(self.tracks, self.catalog)

    @cached_property
    def schedule_admin(self) -> Scheduler:
        """Scheduler for create/update/delete only; needs no API keys."""
        return Scheduler(self.schedules)

    @cached_property
    def scheduler(self) -> Scheduler:
        return Scheduler(self.schedules, self.orchestrator, self.deployer)

    def worker(self) -> SchedulerWorker:
        return SchedulerWorker(
            self.scheduler,
            lock_path=get_lock_path(self.config.storage.data_dir),
            check_interval=self.config.scheduler.check_interval,
        )
