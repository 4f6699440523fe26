"""Text-generation providers for titles and keyword sets."""

import logging
import re
from abc import abstractmethod

import httpx

from ..generation.errors import ServiceAPIError
from .base import TextGenerator, TitleSuggestion
from .http import request_json, require_api_key

logger = logging.getLogger(__name__)

CATEGORY_THEMES = {
    "healing": "healing, peace of mind, nature, meditation, rest, comfort, warmth, stillness",
    "focus": "focus, productivity, immersion, creativity, energy, clarity",
    "sleep": "sleep, dreams, night, stars, moon, stillness, rest, lullaby",
    "nature": "forest, ocean, sky, rain, wind, birdsong, flowing water, meadows",
    "cafe": "coffee, coziness, conversation, books, windows, afternoon, warm tea, jazz",
    "meditation": "meditation, breath, mindfulness, awakening, inner calm, harmony",
}

MOOD_DESCRIPTIONS = {
    "calm": "calm and still",
    "energetic": "lively and vibrant",
    "dreamy": "dreamy and mysterious",
    "focus": "clear and focused",
    "melancholy": "lyrical and wistful",
    "uplifting": "hopeful and uplifting",
}

# Generic or numbered titles are rejected
BANNED_PHRASES = ("healing music", "sleep music")

_NUMBERING = re.compile(r"^\s*\d+[.)]\s*")
_DIGIT = re.compile(r"\d")


def parse_titles(text: str) -> list[TitleSuggestion]:
    """Parse ``native | foreign | keywords`` lines into suggestions.

    Leading list numbering is stripped. Lines with fewer than two fields,
    generic titles and native titles containing digits are dropped.
    """
    titles = []
    for line in text.strip().splitlines():
        if "|" not in line:
            continue
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 2:
            continue

        native = _NUMBERING.sub("", parts[0]).strip()
        foreign = parts[1]
        keywords = parts[2] if len(parts) > 2 and parts[2] else native
        if not native:
            continue

        lowered = f"{native} {foreign}".lower()
        if any(phrase in lowered for phrase in BANNED_PHRASES) or _DIGIT.search(native):
            logger.debug(f"Rejected generic title: {line.strip()}")
            continue

        titles.append(TitleSuggestion(native_text=native, foreign_text=foreign, keywords=keywords))
    return titles


def parse_keywords(text: str) -> list[str]:
    """One keyword set per non-empty line, numbering stripped."""
    return [
        _NUMBERING.sub("", line).strip()
        for line in text.strip().splitlines()
        if _NUMBERING.sub("", line).strip()
    ]


def build_titles_prompt(keywords: str, style: str, mood: str, count: int) -> str:
    return f"""You name albums for a premium healing-music catalog.
Write titles as evocative as those on major streaming services.

Theme / keywords: {keywords}
Mood: {MOOD_DESCRIPTIONS.get(mood, mood)}
Style: {style}

Write exactly {count} titles, one per line, in this format:
Native title | English Title | keyword1, keyword2, keyword3

Rules:
- Poetic metaphors of nature, feelings, time and place
- 2-5 words per title
- Never use numbers or literal phrases such as "Healing Music" or "Sleep Music"
- Every title must be unique

Good examples:
Where Moonlight Rests | Where Moonlight Rests | moonlight, stillness, peace
Piano in the Mist | Piano in the Mist | mist, piano, mystery
First Breath of Dawn | First Breath of Dawn | dawn, breath, beginning

Write the {count} titles now:"""


def build_keywords_prompt(category: str, style: str, mood: str, count: int) -> str:
    return f"""You plan themes for a healing and meditation music app.

Category: {category}
Mood: {mood}
Style: {style}
Related themes: {CATEGORY_THEMES.get(category, CATEGORY_THEMES["healing"])}

Write {count} original, poetic keyword sets, one per line.
Each set has 2-4 evocative words separated by commas, drawing on seasons,
times of day, natural phenomena and feelings.

Example:
dawn mist, quiet forest
lake under moonlight, gentle ripples

Write the {count} keyword sets now:"""


class PromptTextGenerator(TextGenerator):
    """Text generator backed by a single-prompt completion endpoint."""

    provider_name = "text"

    def __init__(self, timeout: float = 60.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self._transport = transport

    async def generate_titles(
        self, keywords: str, style: str, mood: str, count: int
    ) -> list[TitleSuggestion]:
        text = await self.complete(build_titles_prompt(keywords, style, mood, count))
        titles = parse_titles(text)
        logger.info(f"{self.provider_name} returned {len(titles)} usable titles")
        return titles[:count]

    async def generate_keywords(
        self, category: str, style: str, mood: str, count: int
    ) -> list[str]:
        text = await self.complete(build_keywords_prompt(category, style, mood, count))
        return parse_keywords(text)[:count]

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send one prompt and return the generated text."""
        pass


class OpenAITextGenerator(PromptTextGenerator):
    """OpenAI chat-completions text generator."""

    provider_name = "openai"
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize OpenAI generator.

        Raises:
            ServiceAuthError: If OPENAI_API_KEY is not set and no key is given
        """
        super().__init__(timeout=timeout, transport=transport)
        self._api_key = require_api_key(api_key, "OPENAI_API_KEY", "OpenAI")
        self.model = model or self.default_model

    async def complete(self, prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": "You are a creative assistant for healing music content. "
                    "Always follow the exact format requested.",
                },
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.9,
            "max_tokens": 4000,
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            result = await request_json(client, "POST", "/chat/completions", "OpenAI", json=body)

        try:
            return result["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ServiceAPIError("OpenAI response did not contain a completion", None, e) from e


class GeminiTextGenerator(PromptTextGenerator):
    """Gemini generateContent text generator."""

    provider_name = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-2.0-flash"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Gemini generator.

        Raises:
            ServiceAuthError: If GEMINI_API_KEY is not set and no key is given
        """
        super().__init__(timeout=timeout, transport=transport)
        self._api_key = require_api_key(api_key, "GEMINI_API_KEY", "Gemini")
        self.model = model or self.default_model

    async def complete(self, prompt: str) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.9, "maxOutputTokens": 4000},
        }
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            result = await request_json(
                client,
                "POST",
                f"/models/{self.model}:generateContent",
                "Gemini",
                params={"key": self._api_key},
                json=body,
            )

        try:
            return result["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ServiceAPIError("Gemini response did not contain text", None, e) from e
