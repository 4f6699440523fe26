"""Generated track records."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class GeneratedTrackRecord:
    """A track produced by bulk generation or imported by sync.

    Attributes:
        id: Unique identifier (``{batch_id}_{batch}_{index}`` for generated tracks)
        title: Display title
        audio_ref: Local path of the audio file, or the remote URL if download failed
        duration: Length in seconds (0 when unknown)
        style: Musical style the track was generated with
        mood: Mood the track was generated with
        batch_id: Bulk run (or import) that produced the track
        foreign_title: Localised title, when one exists
        image_ref: Cover image reference, if any
        job_id: Audio-synthesis job that produced the track
        deployed: Whether the track has been promoted to the catalog
        deployed_at: When the promotion happened
        catalog_track_id: Identifier returned by the catalog
        created_at: When the record was created
    """

    id: str
    title: str
    audio_ref: str
    duration: float
    style: str
    mood: str
    batch_id: str
    foreign_title: str | None = None
    image_ref: str | None = None
    job_id: str | None = None
    deployed: bool = False
    deployed_at: datetime | None = None
    catalog_track_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
