"""Data models for the title pool."""

from dataclasses import dataclass
from datetime import datetime

# Pools below this size are flagged for replenishment
REPLENISH_THRESHOLD = 10


@dataclass
class TitleRecord:
    """A pre-generated title in a category pool.

    Attributes:
        id: Row identifier
        category: Pool the title belongs to
        native_text: Title in the catalog's primary language
        foreign_text: Localised (English) title
        keywords: Comma-separated mood words for the title
        used: Whether the title has been handed out
        created_at: When the title was added to the pool
        used_at: When the title was handed out
    """

    id: int
    category: str
    native_text: str
    foreign_text: str
    keywords: str
    used: bool
    created_at: datetime
    used_at: datetime | None = None

    @property
    def display_title(self) -> str:
        return self.foreign_text or self.native_text


@dataclass
class PoolAvailability:
    """Unused and total title counts for a category."""

    category: str
    available: int
    total: int

    @property
    def needs_replenish(self) -> bool:
        return self.available < REPLENISH_THRESHOLD


@dataclass
class TitleHints:
    """Theme hints passed to the text-generation service on replenish."""

    keywords: str = ""
    style: str = ""
    mood: str = ""
