"""Generated track records."""

from .models import GeneratedTrackRecord
from .repository import TrackRepository

__all__ = ["GeneratedTrackRecord", "TrackRepository"]
