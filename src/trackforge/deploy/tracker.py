"""Idempotent promotion of generated tracks into the production catalog."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..providers.base import CatalogService, CatalogTrackMetadata
from ..tracks import GeneratedTrackRecord, TrackRepository

logger = logging.getLogger(__name__)


class DeployStatus(str, Enum):
    DEPLOYED = "deployed"
    SKIPPED = "skipped"
    MISSING = "missing"
    FAILED = "failed"


@dataclass
class DeployOutcome:
    """Per-track result of a deploy call.

    ``skipped`` means the track was already deployed and nothing was done.
    """

    track_id: str
    status: DeployStatus
    catalog_track_id: str | None = None
    error: str | None = None


def build_catalog_metadata(
    record: GeneratedTrackRecord, category: str | None = None
) -> CatalogTrackMetadata:
    return CatalogTrackMetadata(
        title=record.title,
        foreign_title=record.foreign_title,
        audio_ref=record.audio_ref,
        image_ref=record.image_ref,
        duration=record.duration,
        category=category or record.style,
        mood=record.mood,
        tags=[tag for tag in (record.style, record.mood, "ai-generated") if tag],
    )


class DeploymentTracker:
    """Promotes generated tracks to the catalog at most once each."""

    def __init__(self, repository: TrackRepository, catalog: CatalogService):
        self.repository = repository
        self.catalog = catalog
        # Serializes check-then-upsert so concurrent calls upsert a track once
        self._lock = asyncio.Lock()

    async def deploy(
        self, track_ids: list[str], category: str | None = None
    ) -> list[DeployOutcome]:
        """Deploy tracks, reporting an outcome for every requested id.

        Already-deployed tracks are skipped without contacting the
        catalog. A catalog failure affects only that track.

        Args:
            track_ids: Generated track ids; duplicates are deployed once
            category: Catalog category override (defaults to each track's style)
        """
        outcomes = []
        for track_id in dict.fromkeys(track_ids):
            async with self._lock:
                outcome = await self._deploy_one(track_id, category)
            outcomes.append(outcome)

        deployed = sum(1 for o in outcomes if o.status is DeployStatus.DEPLOYED)
        logger.info(f"Deployed {deployed}/{len(outcomes)} tracks")
        return outcomes

    async def _deploy_one(self, track_id: str, category: str | None) -> DeployOutcome:
        record = self.repository.get(track_id)
        if record is None:
            logger.warning(f"Cannot deploy unknown track {track_id}")
            return DeployOutcome(track_id, DeployStatus.MISSING)

        if record.deployed:
            logger.debug(f"Track {track_id} already deployed as {record.catalog_track_id}")
            return DeployOutcome(track_id, DeployStatus.SKIPPED, record.catalog_track_id)

        try:
            catalog_id = await self.catalog.upsert_track(build_catalog_metadata(record, category))
        except Exception as e:
            logger.error(f"Deploy failed for {track_id}: {e}")
            return DeployOutcome(track_id, DeployStatus.FAILED, error=str(e))

        if not self.repository.mark_deployed(track_id, catalog_id, datetime.now()):
            # Another deploy won the race
            current = self.repository.get(track_id)
            return DeployOutcome(
                track_id,
                DeployStatus.SKIPPED,
                current.catalog_track_id if current else catalog_id,
            )

        logger.info(f"Deployed {track_id} as catalog track {catalog_id}")
        return DeployOutcome(track_id, DeployStatus.DEPLOYED, catalog_id)
