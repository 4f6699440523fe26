"""Downloads remote audio into the local media directory."""

import asyncio
import logging
import time
from pathlib import Path
from urllib.parse import urlparse

import httpx
import soundfile as sf

from ..generation.errors import ServiceAPIError
from .base import AssetDownloader, DownloadedAsset
from .naming import slugify

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".mp3", ".wav", ".flac", ".ogg", ".m4a"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


def probe_duration(path: Path) -> float | None:
    """Read a file's duration in seconds, or None if the format is unreadable."""
    try:
        return float(sf.info(str(path)).duration)
    except RuntimeError as e:
        logger.debug(f"Could not read duration of {path}: {e}")
        return None


class HttpAssetDownloader(AssetDownloader):
    """Streams remote audio to ``<media_dir>/tracks`` and images to ``<media_dir>/covers``."""

    def __init__(
        self,
        media_dir: Path,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.tracks_dir = Path(media_dir) / "tracks"
        self.covers_dir = Path(media_dir) / "covers"
        self.timeout = timeout
        self._transport = transport

    async def fetch_and_persist(self, remote_url: str, hinted_title: str) -> DownloadedAsset:
        """Download ``remote_url`` and, for audio, extract its duration.

        References that are not http(s) URLs are treated as already local.

        Raises:
            ServiceAPIError: If the download fails
        """
        if not remote_url.startswith(("http://", "https://")):
            return DownloadedAsset(local_ref=remote_url)

        extension = Path(urlparse(remote_url).path).suffix.lower()
        is_image = extension in IMAGE_EXTENSIONS
        if not is_image and extension not in AUDIO_EXTENSIONS:
            extension = ".mp3"

        target_dir = self.covers_dir if is_image else self.tracks_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{int(time.time() * 1000)}_{slugify(hinted_title)}{extension}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                async with client.stream("GET", remote_url) as response:
                    response.raise_for_status()
                    with open(path, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPStatusError as e:
            path.unlink(missing_ok=True)
            status = e.response.status_code
            raise ServiceAPIError(f"Download failed ({status}): {remote_url}", status, e) from e
        except httpx.RequestError as e:
            path.unlink(missing_ok=True)
            raise ServiceAPIError(f"Download failed: {e}", original_error=e) from e

        logger.info(f"Downloaded '{hinted_title}' to {path}")
        if is_image:
            return DownloadedAsset(local_ref=str(path))

        duration = await asyncio.to_thread(probe_duration, path)
        return DownloadedAsset(local_ref=str(path), duration=duration)
