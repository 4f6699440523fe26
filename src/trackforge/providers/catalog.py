"""Production catalog client."""

import logging
import os

import httpx

from ..generation.errors import ServiceAPIError
from .base import CatalogService, CatalogTrackMetadata
from .http import request_json

logger = logging.getLogger(__name__)

API_KEY_ENV = "TRACKFORGE_CATALOG_API_KEY"


class HttpCatalogService(CatalogService):
    """Creates or updates tracks through the catalog's admin API.

    The catalog matches an existing entry by its audio file, so
    re-sending the same audio updates rather than duplicates.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        artist: str = "AI Studio",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # Optional: local catalogs run without auth
        self._api_key = api_key or os.getenv(API_KEY_ENV)
        self.artist = artist
        self.timeout = timeout
        self._transport = transport

    async def upsert_track(self, metadata: CatalogTrackMetadata) -> str:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        body = {
            "title": metadata.title,
            "titleEn": metadata.foreign_title,
            "artist": self.artist,
            "createdWith": "Suno AI",
            "fileUrl": metadata.audio_ref,
            "thumbnailUrl": metadata.image_ref,
            "duration": round(metadata.duration),
            "category": metadata.category,
            "mood": metadata.mood,
            "tags": metadata.tags,
        }

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            result = await request_json(client, "POST", "/tracks", "Catalog", json=body)

        data = result.get("data", result) if isinstance(result, dict) else None
        catalog_id = data.get("id") if isinstance(data, dict) else None
        if not catalog_id:
            raise ServiceAPIError(f"Catalog did not return a track id for '{metadata.title}'")

        logger.info(f"Catalog upserted '{metadata.title}' as {catalog_id}")
        return str(catalog_id)
