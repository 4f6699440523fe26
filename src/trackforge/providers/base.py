"""Abstract contracts for the external generation collaborators.

The orchestrator, title pool, importer and deployment tracker only talk
to these interfaces; concrete HTTP implementations live beside this
module and tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

STATUS_PENDING = "PENDING"
STATUS_SUCCESS = "SUCCESS"
STATUS_FAILED = "FAILED"


@dataclass
class TitleSuggestion:
    """One bilingual title returned by the text-generation service.

    Args:
        native_text: Title in the catalog's primary language
        foreign_text: Localised (English) title, used as the display title
        keywords: Comma-separated mood words describing the title
    """

    native_text: str
    foreign_text: str
    keywords: str = ""

    @property
    def display_title(self) -> str:
        return self.foreign_text or self.native_text


@dataclass
class RawTrack:
    """One track as reported by the audio-synthesis service."""

    audio_url: str
    image_url: str | None = None
    duration: float = 0.0
    title: str | None = None
    external_id: str | None = None


@dataclass
class JobStatus:
    """Status of a submitted synthesis job.

    ``status`` is normalised to PENDING, SUCCESS or FAILED.
    """

    status: str
    tracks: list[RawTrack] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in (STATUS_SUCCESS, STATUS_FAILED)


@dataclass
class JobRecord:
    """One entry of the synthesis service's job history."""

    job_id: str
    status: str
    created_at: str | None = None
    tracks: list[RawTrack] = field(default_factory=list)


@dataclass
class JobRecordPage:
    """A page of job history, newest first."""

    total: int
    page: int
    limit: int
    records: list[JobRecord] = field(default_factory=list)


@dataclass
class CreditsInfo:
    """Remaining audio-synthesis credits."""

    remaining: int
    estimated_tracks_available: int


@dataclass
class DownloadedAsset:
    """Result of persisting a remote asset locally."""

    local_ref: str
    duration: float | None = None


@dataclass
class CatalogTrackMetadata:
    """Metadata sent to the production catalog for one track."""

    title: str
    audio_ref: str
    duration: float
    category: str
    mood: str
    tags: list[str]
    image_ref: str | None = None
    foreign_title: str | None = None


class TextGenerator(ABC):
    """Text-generation service: titles and keyword sets."""

    @abstractmethod
    async def generate_titles(
        self, keywords: str, style: str, mood: str, count: int
    ) -> list[TitleSuggestion]:
        """Generate ``count`` bilingual titles for a theme.

        Raises:
            ServiceAuthError: If credentials are missing or rejected
            ServiceAPIError: If the service cannot be reached or errors
        """
        pass

    @abstractmethod
    async def generate_keywords(
        self, category: str, style: str, mood: str, count: int
    ) -> list[str]:
        """Generate ``count`` comma-separated keyword sets."""
        pass


class AudioSynthesizer(ABC):
    """Audio-synthesis service. Every submitted job yields two tracks."""

    @abstractmethod
    async def submit(
        self,
        title: str,
        style: str,
        mood: str,
        instrumental: bool,
        prompt: str | None = None,
    ) -> str:
        """Submit a synthesis request.

        Args:
            title: Title of the first track of the pair
            style: Style name or free-form style tags
            mood: Mood name
            instrumental: Request instrumental-only audio
            prompt: Rendered prompt; None lets the service pick one from the mood

        Returns:
            The service's job identifier
        """
        pass

    @abstractmethod
    async def poll_status(self, job_id: str) -> JobStatus:
        """Fetch the current status of a job."""
        pass

    @abstractmethod
    async def credits(self) -> CreditsInfo:
        """Report remaining credits."""
        pass

    @abstractmethod
    async def list_records(self, page: int = 1, limit: int = 20) -> JobRecordPage:
        """Fetch one page of previously submitted jobs."""
        pass


class ImageGenerator(ABC):
    """Cover-image service."""

    @abstractmethod
    async def generate_cover_image(
        self, title: str, category: str, mood: str, keywords: str | None = None
    ) -> str:
        """Synthesize a cover image.

        Returns:
            Reference (local path or URL) to the stored image
        """
        pass


class AssetDownloader(ABC):
    """Fetches remote assets into local storage."""

    @abstractmethod
    async def fetch_and_persist(self, remote_url: str, hinted_title: str) -> DownloadedAsset:
        """Download ``remote_url`` and store it under a name derived from the title."""
        pass


class CatalogService(ABC):
    """Production catalog."""

    @abstractmethod
    async def upsert_track(self, metadata: CatalogTrackMetadata) -> str:
        """Create or update a catalog entry.

        Returns:
            The catalog's track identifier
        """
        pass
