"""Suno-compatible audio-synthesis client."""

import logging

import httpx

from ..generation.errors import ServiceAPIError
from .base import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    AudioSynthesizer,
    CreditsInfo,
    JobRecord,
    JobRecordPage,
    JobStatus,
    RawTrack,
)
from .http import request_json, require_api_key

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.sunoapi.org/api/v1"
DEFAULT_CALLBACK_URL = "https://example.com/api/callback"
API_KEY_ENV = "TRACKFORGE_AUDIO_API_KEY"

# One generation costs 10 credits and yields two tracks
CREDITS_PER_JOB = 10

DURATION_HINT = ", 3-4 minutes long, extended composition"

HEALING_STYLES = {
    "piano": "Ambient, Relaxing, Piano, Soft, Peaceful" + DURATION_HINT,
    "nature": "Nature Sounds, Ambient, Birds, Water, Forest" + DURATION_HINT,
    "meditation": "Meditation, Tibetan Singing Bowls, Om, Drone, Peaceful" + DURATION_HINT,
    "sleep": "Sleep Music, Delta Waves, Soft, Dreamy, Ambient" + DURATION_HINT,
    "focus": "Lo-fi, Study, Chill, Minimal, Beats" + DURATION_HINT,
    "cafe": "Cafe Jazz, Acoustic, Warm, Cozy, Background" + DURATION_HINT,
    "classical": "Classical, Orchestra, Strings, Emotional, Cinematic" + DURATION_HINT,
    "lofi": "Lo-fi Hip Hop, Chill, Relaxed, Vinyl, Nostalgic" + DURATION_HINT,
}

MOOD_PROMPTS = {
    "calm": "Create a calming and peaceful atmosphere",
    "energetic": "Uplifting yet gentle energy",
    "dreamy": "Ethereal and dreamlike soundscape",
    "focus": "Clear and focused ambient sound",
    "melancholy": "Gentle, slightly melancholic beauty",
}

FAILED_STATUSES = {
    "FAILED",
    "CREATE_TASK_FAILED",
    "GENERATE_AUDIO_FAILED",
    "CALLBACK_EXCEPTION",
    "SENSITIVE_WORD_ERROR",
}


def normalize_status(raw_status: str | None) -> str:
    """Collapse the service's status vocabulary to PENDING/SUCCESS/FAILED."""
    if raw_status == STATUS_SUCCESS:
        return STATUS_SUCCESS
    if raw_status in FAILED_STATUSES:
        return STATUS_FAILED
    return STATUS_PENDING


def parse_tracks(data: dict) -> list[RawTrack]:
    """Extract tracks from a record-info ``data`` object."""
    response = data.get("response") or {}
    items = response.get("sunoData") or response.get("data") or data.get("data") or []

    tracks = []
    for item in items:
        audio_url = (
            item.get("audioUrl") or item.get("audio_url") or item.get("streamAudioUrl") or ""
        )
        if not audio_url:
            continue
        tracks.append(
            RawTrack(
                audio_url=audio_url,
                image_url=item.get("imageUrl") or item.get("image_url") or None,
                duration=float(item.get("duration") or 0.0),
                title=item.get("title"),
                external_id=item.get("id"),
            )
        )
    return tracks


class SunoAudioSynthesizer(AudioSynthesizer):
    """Audio synthesis through a Suno-compatible REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "V5",
        callback_url: str = DEFAULT_CALLBACK_URL,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Suno client.

        Args:
            api_key: API key. If not provided, reads from TRACKFORGE_AUDIO_API_KEY.
            base_url: API root
            model: Model name sent with every request
            callback_url: Callback URI the service requires even when polling
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)

        Raises:
            ServiceAuthError: If no API key is available
        """
        self._api_key = require_api_key(api_key, API_KEY_ENV, "Audio synthesis")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.callback_url = callback_url
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def submit(
        self,
        title: str,
        style: str,
        mood: str,
        instrumental: bool,
        prompt: str | None = None,
    ) -> str:
        body = {
            "customMode": True,
            "prompt": prompt or MOOD_PROMPTS.get(mood, "Peaceful healing music"),
            "style": HEALING_STYLES.get(style, style)[:200],
            "title": title[:80],
            "instrumental": instrumental,
            "model": self.model,
            "callBackUrl": self.callback_url,
        }
        logger.debug(f"Submitting synthesis: {body}")

        async with self._client() as client:
            result = await request_json(client, "POST", "/generate", "Audio synthesis", json=body)

        if result.get("code") != 200:
            raise ServiceAPIError(
                f"Audio synthesis rejected request: {result.get('msg')}", result.get("code")
            )
        job_id = (result.get("data") or {}).get("taskId")
        if not job_id:
            raise ServiceAPIError("Audio synthesis response did not include a job id")
        return job_id

    async def poll_status(self, job_id: str) -> JobStatus:
        async with self._client() as client:
            result = await request_json(
                client,
                "GET",
                "/generate/record-info",
                "Audio synthesis",
                params={"taskId": job_id},
            )

        data = result.get("data") or {}
        status = normalize_status(data.get("status"))
        tracks = parse_tracks(data) if status == STATUS_SUCCESS else []
        return JobStatus(status=status, tracks=tracks)

    async def credits(self) -> CreditsInfo:
        async with self._client() as client:
            result = await request_json(client, "GET", "/generate/credit", "Audio synthesis")

        data = result.get("data")
        if isinstance(data, (int, float)):
            remaining = int(data)
        else:
            remaining = int((data or {}).get("credit", 0))

        return CreditsInfo(
            remaining=remaining,
            estimated_tracks_available=remaining // CREDITS_PER_JOB * 2,
        )

    async def list_records(self, page: int = 1, limit: int = 20) -> JobRecordPage:
        """Fetch one page of the account's generation history.

        ``TEXT_SUCCESS`` is reported as SUCCESS; other statuses are passed
        through as the service names them.
        """
        async with self._client() as client:
            result = await request_json(
                client,
                "GET",
                "/generate/record-info",
                "Audio synthesis",
                params={"page": page, "pageSize": limit},
            )

        data = result.get("data") or {}
        items = data.get("list") or data.get("records") or []
        records = []
        for item in items:
            status = item.get("status") or STATUS_PENDING
            records.append(
                JobRecord(
                    job_id=item.get("taskId") or item.get("id") or "",
                    status=STATUS_SUCCESS if status == "TEXT_SUCCESS" else status,
                    created_at=item.get("createdAt") or item.get("created_at"),
                    tracks=parse_tracks(item),
                )
            )
        return JobRecordPage(
            total=int(data.get("total") or len(records)),
            page=page,
            limit=limit,
            records=records,
        )
