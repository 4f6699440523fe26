"""Cover-image generation through the Imagen predict endpoint."""

import base64
import logging
import random
import time
from pathlib import Path

import httpx

from ..generation.errors import ServiceAPIError
from .base import ImageGenerator
from .http import request_json, require_api_key
from .naming import slugify

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "imagen-4.0-generate-preview-06-06"
BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

PHOTO_STYLE = (
    "professional photograph, realistic and natural, high resolution DSLR photo, "
    "soft natural lighting, shallow depth of field, peaceful serene atmosphere, "
    "calming color tones, vertical composition for mobile wallpaper"
)

SCENES = {
    "sky": [
        "vast open sky with soft clouds, peaceful blue horizon",
        "dramatic sunset sky with golden and pink clouds, peaceful twilight",
        "soft pastel sky at dawn, gentle gradient from pink to blue",
    ],
    "ocean": [
        "peaceful ocean horizon at golden hour, gentle waves, warm sky colors",
        "calm turquoise sea with gentle ripples, endless peaceful horizon",
    ],
    "forest": [
        "soft morning light through forest trees, sunbeams filtering through leaves",
        "misty forest at dawn, soft fog between trees, magical atmosphere",
    ],
    "mountain": [
        "misty mountain lake at sunrise, calm water reflection, fog rolling over peaks",
        "snow-capped mountain peaks at golden hour, serene alpine landscape",
    ],
    "water": [
        "misty waterfall in lush green forest, long exposure smooth water",
        "still pond with lotus flowers, perfect reflection, zen tranquility",
    ],
    "night": [
        "starry night sky over calm lake, milky way reflection, peaceful night",
        "crescent moon over calm ocean, stars reflected in water",
    ],
    "flower": [
        "cherry blossom trees by still pond, petals floating, spring serenity",
        "lavender field at sunset, rolling hills, dreamy purple haze",
    ],
    "winter": [
        "snow-covered pine forest, soft winter light, peaceful silence",
        "gentle snowfall in quiet forest, peaceful winter scene",
    ],
    "zen": [
        "zen garden with raked sand patterns, single cherry blossom tree",
        "minimalist stone garden, perfect balance, meditative calm",
    ],
    "generic": [
        "peaceful natural landscape, soft golden light, serene atmosphere",
        "dreamy nature scene, soft focus, calming colors, tranquil mood",
    ],
}

THEME_WORDS = {
    "sky": ("sky", "cloud", "heaven", "breeze", "air"),
    "ocean": ("ocean", "sea", "wave", "tide"),
    "forest": ("forest", "tree", "wood", "leaf", "bamboo"),
    "mountain": ("mountain", "peak", "hill", "valley", "alpine"),
    "water": ("river", "stream", "waterfall", "pond", "lake", "rain"),
    "night": ("night", "star", "moon", "aurora", "cosmos", "galaxy"),
    "flower": ("flower", "blossom", "bloom", "petal", "rose", "lotus", "lavender"),
    "winter": ("snow", "winter", "ice", "frost"),
    "zen": ("zen", "temple", "meditation", "peace", "calm", "still", "quiet", "silent"),
}

MOOD_ATMOSPHERES = {
    "calm": "soft pastel color palette, gentle gradients, low contrast, soothing tones",
    "energetic": "vibrant warm colors, dynamic composition, bright highlights",
    "dreamy": "soft focus, ethereal glow, pastel colors with purple and pink tints",
    "focus": "clean minimal palette, sharp details, clear composition",
    "melancholy": "muted blue and gray tones, soft rain atmosphere, nostalgic feeling",
    "uplifting": "warm golden light, hopeful sunrise colors, inspiring composition",
}


def detect_theme(title: str) -> str:
    """Map a title to a scene theme by its first matching word."""
    lowered = title.lower()
    for theme, words in THEME_WORDS.items():
        if any(word in lowered for word in words):
            return theme
    return "generic"


def build_artwork_prompt(
    title: str, category: str, mood: str, keywords: str | None = None
) -> str:
    """Compose a photographic cover prompt driven by the title's theme."""
    scene = random.choice(SCENES[detect_theme(title)])
    parts = [
        PHOTO_STYLE,
        scene,
        MOOD_ATMOSPHERES.get(mood, ""),
        f'capturing the essence of "{title}"',
        f"inspired by {keywords}" if keywords else "",
        f"{category} music album cover" if category else "",
        "ultra high quality, photorealistic, no text",
    ]
    return ", ".join(part for part in parts if part)


class ImagenCoverGenerator(ImageGenerator):
    """Generates covers and stores them under ``<media_dir>/covers``."""

    def __init__(
        self,
        media_dir: Path,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        aspect_ratio: str = "1:1",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Imagen client.

        Raises:
            ServiceAuthError: If GEMINI_API_KEY is not set and no key is given
        """
        self._api_key = require_api_key(api_key, "GEMINI_API_KEY", "Imagen")
        self.covers_dir = Path(media_dir) / "covers"
        self.model = model
        self.aspect_ratio = aspect_ratio
        self.timeout = timeout
        self._transport = transport

    async def generate_cover_image(
        self, title: str, category: str, mood: str, keywords: str | None = None
    ) -> str:
        prompt = build_artwork_prompt(title, category, mood, keywords)
        logger.debug(f"Cover prompt for '{title}': {prompt[:120]}...")

        async with httpx.AsyncClient(
            base_url=BASE_URL, timeout=self.timeout, transport=self._transport
        ) as client:
            result = await request_json(
                client,
                "POST",
                f"/models/{self.model}:predict",
                "Imagen",
                params={"key": self._api_key},
                json={
                    "instances": [{"prompt": prompt}],
                    "parameters": {"sampleCount": 1, "aspectRatio": self.aspect_ratio},
                },
            )

        predictions = result.get("predictions") or []
        if not predictions or not predictions[0].get("bytesBase64Encoded"):
            raise ServiceAPIError(f"Imagen returned no image for '{title}'")

        prediction = predictions[0]
        mime_type = prediction.get("mimeType") or "image/png"
        extension = mime_type.split("/")[-1] or "png"

        self.covers_dir.mkdir(parents=True, exist_ok=True)
        path = self.covers_dir / f"{int(time.time() * 1000)}_{slugify(title)}.{extension}"
        path.write_bytes(base64.b64decode(prediction["bytesBase64Encoded"]))

        logger.info(f"Saved cover for '{title}' to {path}")
        return str(path)
