"""Unit tests for title/keyword parsing and the text providers."""

import json
import sys
from pathlib import Path

import httpx
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from trackforge.generation import ServiceAPIError
from trackforge.providers.text import (
    GeminiTextGenerator,
    OpenAITextGenerator,
    build_titles_prompt,
    parse_keywords,
    parse_titles,
)

TITLE_TEXT = """1. Where Moonlight Rests | Where Moonlight Rests | moonlight, stillness
2) Piano in the Mist | Piano in the Mist
Deep Healing Music | Deep Healing Music | generic
Track 7 Dreams | Track Seven Dreams | numbered
just a stray line without separators
First Breath of Dawn | First Breath of Dawn | dawn, breath
"""


class TestParseTitles:
    """Test line-oriented title parsing and filtering."""

    def test_parses_and_filters(self) -> None:
        titles = parse_titles(TITLE_TEXT)

        assert [t.native_text for t in titles] == [
            "Where Moonlight Rests",
            "Piano in the Mist",
            "First Breath of Dawn",
        ]

    def test_keywords_default_to_native_title(self) -> None:
        titles = parse_titles("Piano in the Mist | Piano in the Mist")
        assert titles[0].keywords == "Piano in the Mist"

    def test_keywords_kept(self) -> None:
        titles = parse_titles("A | B | dawn, breath")
        assert (titles[0].foreign_text, titles[0].keywords) == ("B", "dawn, breath")

    def test_generic_titles_rejected_in_either_language(self) -> None:
        assert parse_titles("Quiet Night | Sleep Music Vol") == []

    def test_empty(self) -> None:
        assert parse_titles("") == []


class TestParseKeywords:
    def test_strips_numbering_and_blanks(self) -> None:
        text = "1. dawn mist, quiet forest\n\n2. lake under moonlight, gentle ripples\n"
        assert parse_keywords(text) == [
            "dawn mist, quiet forest",
            "lake under moonlight, gentle ripples",
        ]


def test_titles_prompt_mentions_inputs() -> None:
    prompt = build_titles_prompt("moonlit lake", "piano", "calm", 2)
    assert "moonlit lake" in prompt
    assert "calm and still" in prompt
    assert "exactly 2 titles" in prompt


class TestOpenAITextGenerator:
    @pytest.mark.asyncio
    async def test_generate_titles(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": TITLE_TEXT}}]}
            )

        generator = OpenAITextGenerator(api_key="k", transport=httpx.MockTransport(handler))
        titles = await generator.generate_titles("moon", "piano", "calm", 2)

        assert [t.display_title for t in titles] == ["Where Moonlight Rests", "Piano in the Mist"]
        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_malformed_response(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        generator = OpenAITextGenerator(api_key="k", transport=transport)

        with pytest.raises(ServiceAPIError, match="did not contain a completion"):
            await generator.generate_keywords("healing", "piano", "calm", 2)


class TestGeminiTextGenerator:
    @pytest.mark.asyncio
    async def test_generate_keywords(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params["key"]
            seen["path"] = request.url.path
            return httpx.Response(
                200,
                json={
                    "candidates": [
                        {"content": {"parts": [{"text": "dawn mist, forest\nsea breeze, gulls\nextra"}]}}
                    ]
                },
            )

        generator = GeminiTextGenerator(
            api_key="g-key", model="gemini-test", transport=httpx.MockTransport(handler)
        )
        keywords = await generator.generate_keywords("healing", "piano", "calm", 2)

        assert keywords == ["dawn mist, forest", "sea breeze, gulls"]
        assert seen["key"] == "g-key"
        assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
