"""Cache management for trackforge generation calls."""

from .manager import CacheStore, derive_key
from .models import CacheEntry, Service, UsageCounts, UsageRecord, UsageSummary
from .storage import CacheStorage

__all__ = [
    "CacheEntry",
    "CacheStorage",
    "CacheStore",
    "Service",
    "UsageCounts",
    "UsageRecord",
    "UsageSummary",
    "derive_key",
]
