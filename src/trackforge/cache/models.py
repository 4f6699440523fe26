"""Data models for cache storage and the usage ledger."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Service(str, Enum):
    """External generation services whose calls are cached and metered."""

    AUDIO = "audio"
    TEXT = "text"
    IMAGE = "image"


@dataclass
class CacheEntry:
    """Cached result of one external generation call.

    Attributes:
        service: Service the payload came from
        key: Dedup key derived from the call's semantic identity
        payload: JSON-serialisable result data
        created_at: When the key was first written
        completed_at: When a SUCCESS payload was stored, if ever
    """

    service: Service
    key: str
    payload: dict[str, Any]
    created_at: datetime
    completed_at: datetime | None = None

    @property
    def job_id(self) -> str | None:
        return self.payload.get("job_id")

    @property
    def status(self) -> str | None:
        return self.payload.get("status")


@dataclass
class UsageCounts:
    """Per-service counters for one day."""

    calls: int = 0
    success: int = 0
    failed: int = 0
    units_produced: int = 0

    def add(self, other: "UsageCounts") -> None:
        self.calls += other.calls
        self.success += other.success
        self.failed += other.failed
        self.units_produced += other.units_produced


@dataclass
class UsageRecord:
    """Usage counters for one calendar day across all services."""

    date: str
    per_service: dict[Service, UsageCounts] = field(
        default_factory=lambda: {service: UsageCounts() for service in Service}
    )


@dataclass
class UsageSummary:
    """Usage report: today, retained history (oldest first) and totals."""

    today: UsageRecord
    history: list[UsageRecord]
    totals: dict[Service, UsageCounts]
