"""Title pool for bulk generation."""

from .models import REPLENISH_THRESHOLD, PoolAvailability, TitleHints, TitleRecord
from .pool import TitlePoolManager

__all__ = [
    "REPLENISH_THRESHOLD",
    "PoolAvailability",
    "TitleHints",
    "TitlePoolManager",
    "TitleRecord",
]
