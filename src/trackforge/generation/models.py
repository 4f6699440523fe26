"""Data models for bulk generation runs."""

from dataclasses import dataclass, field

from ..tracks.models import GeneratedTrackRecord
from .phases import Phase

TRACKS_PER_BATCH = 2


@dataclass
class GenerationRequest:
    """Parameters of one bulk run.

    Args:
        track_count: Total tracks wanted; a positive multiple of TRACKS_PER_BATCH
        style: Musical style passed to synthesis
        mood: Mood passed to synthesis and cover generation
        keywords: Theme keywords; empty to have them generated per batch
        instrumental: Request instrumental-only audio
        prompt_template: Synthesis prompt with {mood}, {style}, {keywords}
            and {title} placeholders; None uses the service default
    """

    track_count: int
    style: str
    mood: str
    keywords: str = ""
    instrumental: bool = True
    prompt_template: str | None = None

    def __post_init__(self) -> None:
        """Validate request."""
        if self.track_count <= 0 or self.track_count % TRACKS_PER_BATCH != 0:
            raise ValueError(
                f"track_count must be a positive multiple of {TRACKS_PER_BATCH}, "
                f"got {self.track_count}"
            )
        if not self.style or not self.style.strip():
            raise ValueError("style cannot be empty")
        if not self.mood or not self.mood.strip():
            raise ValueError("mood cannot be empty")

    @property
    def total_batches(self) -> int:
        return self.track_count // TRACKS_PER_BATCH


@dataclass
class SynthesizedTrack:
    """One track produced by a generation attempt, before it becomes a record."""

    title: str
    audio_ref: str
    duration: float
    image_ref: str | None = None
    foreign_title: str | None = None


@dataclass
class GenerationResult:
    """Final outcome of a bulk run.

    ``tracks`` holds every track completed before the run ended, also
    when ``error`` is set.
    """

    batch_id: str
    tracks: list[GeneratedTrackRecord] = field(default_factory=list)
    error: str | None = None
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class GenerationJob:
    """Mutable progress state owned by one bulk run."""

    batch_id: str
    total_batches: int
    total_tracks: int
    current_batch: int = 0
    current_track: int = 0
    phase: Phase = Phase.TITLE
    current_title: str | None = None
    task_ids: list[str] = field(default_factory=list)
    completed_tracks: list[GeneratedTrackRecord] = field(default_factory=list)
    error_message: str | None = None


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of a bulk run emitted after every phase transition.

    The final event of a run has a terminal phase and carries the result;
    intermediate events may report ``complete`` for a finished batch.
    """

    batch_id: str
    current_batch: int
    total_batches: int
    current_track: int
    total_tracks: int
    phase: Phase
    current_title: str | None
    completed_count: int
    error_message: str | None = None
    result: GenerationResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.result is not None
