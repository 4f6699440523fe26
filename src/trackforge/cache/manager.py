"""Cache store for external generation calls.

Deduplicates calls to the audio, text and image services by deriving a
canonical key from each call's semantic identity, and keeps a rolling
per-day usage ledger so operators can see what the paid services cost.
"""

import copy
import logging
import re
from datetime import datetime, timedelta
from typing import Any

from ..db import Database
from .models import CacheEntry, Service, UsageCounts, UsageRecord, UsageSummary
from .storage import CacheStorage

logger = logging.getLogger(__name__)

USAGE_RETENTION_DAYS = 30

_WHITESPACE = re.compile(r"\s+")


def derive_key(*fields: str) -> str:
    """Derive the dedup key for a call from its semantic identity fields.

    Fields are joined in the order given, lowercased, and every run of
    whitespace becomes a single underscore, so casing and incidental
    spacing never split one identity across two cache slots.

    Example:
        derive_key("Calm Morning", "Piano", "Calm") == "calm_morning_piano_calm"
        derive_key("calm   morning", "piano", "calm") == "calm_morning_piano_calm"

    Raises:
        ValueError: If no fields are given or any field is None
    """
    if not fields:
        raise ValueError("At least one identity field is required")
    if any(field is None for field in fields):
        raise ValueError("Identity fields must be non-None")

    joined = "_".join(str(field) for field in fields)
    return _WHITESPACE.sub("_", joined.lower())


class CacheStore:
    """High-level cache for audio jobs, generated titles and cover images.

    Example:
        store = CacheStore(database)

        entry = store.get(Service.AUDIO, "Calm Morning", "piano", "calm")
        if entry is None:
            job_id = await synthesizer.submit("Calm Morning", "piano", "calm", True)
            ...
            store.put(Service.AUDIO, ("Calm Morning", "piano", "calm"), payload)
    """

    def __init__(self, database: Database):
        """Initialize cache store on a shared database.

        Args:
            database: Database holding the cache and usage tables
        """
        self.storage = CacheStorage(database)

    def get(self, service: Service, *fields: str) -> CacheEntry | None:
        """Look up the entry for a call's semantic identity.

        Returns:
            A copy of the stored entry, or None on a miss
        """
        key = derive_key(*fields)
        entry = self.storage.get(service, key)
        if entry is None:
            logger.debug(f"Cache miss: {service.value}/{key}")
            return None

        logger.debug(f"Cache hit: {service.value}/{key}")
        return entry

    def put(
        self, service: Service, fields: tuple[str, ...], payload: dict[str, Any]
    ) -> CacheEntry:
        """Store a payload under the key derived from ``fields``.

        Re-saving an existing key replaces the payload but keeps the
        original creation time. ``completed_at`` is stamped whenever the
        payload carries a SUCCESS status.

        Returns:
            The stored entry
        """
        key = derive_key(*fields)
        now = datetime.now()
        existing = self.storage.get(service, key)

        stored_payload = copy.deepcopy(payload)
        entry = CacheEntry(
            service=service,
            key=key,
            payload=stored_payload,
            created_at=existing.created_at if existing else now,
            completed_at=now if stored_payload.get("status") == "SUCCESS" else None,
        )
        self.storage.save(entry)

        logger.info(f"Saved {service.value} cache: {key}")
        return copy.deepcopy(entry)

    def find_by_job_id(self, job_id: str) -> CacheEntry | None:
        """Find the audio cache entry that stored ``job_id``."""
        return self.storage.find_by_job_id(job_id)

    def known_job_ids(self) -> set[str]:
        """Return the job identifiers already recorded in the audio cache."""
        return self.storage.job_ids()

    def list_entries(self, service: Service | None = None) -> list[CacheEntry]:
        """List cached entries for one service or all of them."""
        return self.storage.list_entries(service)

    def delete(self, service: Service, key: str) -> bool:
        """Delete one entry by its stored key."""
        removed = self.storage.delete(service, key)
        if removed:
            logger.info(f"Deleted {service.value} cache: {key}")
        return removed

    def clear(self, service: Service | None = None) -> int:
        """Clear one cache, or all three when ``service`` is None.

        Clearing an empty cache is not an error.

        Returns:
            Number of entries removed
        """
        removed = self.storage.clear(service)
        logger.info(f"Cleared {service.value if service else 'all'} cache ({removed} entries)")
        return removed

    def record_usage(
        self,
        service: Service,
        success: bool,
        units_produced: int = 1,
        now: datetime | None = None,
    ) -> None:
        """Count one call against today's usage record.

        Records dated more than USAGE_RETENTION_DAYS before ``now`` are
        pruned on every write; ``now`` is re-evaluated per call.
        """
        now = now or datetime.now()
        today = now.date()
        cutoff = today - timedelta(days=USAGE_RETENTION_DAYS)

        self.storage.increment_usage(
            date=today.isoformat(),
            service=service,
            success=success,
            units_produced=units_produced,
            prune_before=cutoff.isoformat(),
        )
        logger.debug(
            f"Recorded {service.value} usage: success={success}, units={units_produced}"
        )

    def usage_summary(self, now: datetime | None = None) -> UsageSummary:
        """Summarise usage: today's record, retained history and totals."""
        now = now or datetime.now()
        today = now.date().isoformat()
        history = self.storage.load_usage()

        totals = {service: UsageCounts() for service in Service}
        for record in history:
            for service, counts in record.per_service.items():
                totals[service].add(counts)

        today_record = next(
            (record for record in history if record.date == today),
            UsageRecord(date=today),
        )
        return UsageSummary(today=today_record, history=history, totals=totals)
