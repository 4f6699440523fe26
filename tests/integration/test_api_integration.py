"""Integration tests for the library API against a real database."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from test_helpers import (
    FakeCatalog,
    FakeDownloader,
    FakeImageGenerator,
    FakeSynthesizer,
    FakeTextGenerator,
)
from trackforge import api
from trackforge.cache import Service
from trackforge.config import load_config
from trackforge.core import Workspace
from trackforge.deploy import DeployStatus
from trackforge.generation import Phase
from trackforge.providers.base import TitleSuggestion


@pytest.fixture
def config(config_file):
    return load_config(config_file)


@pytest.fixture
def workspace(config) -> Workspace:
    """Workspace with fake services, shared by every API call in a test."""
    ws = Workspace(config)
    ws.__dict__["synthesizer"] = FakeSynthesizer()
    ws.__dict__["downloader"] = FakeDownloader()
    ws.__dict__["image_generator"] = FakeImageGenerator()
    ws.__dict__["catalog"] = FakeCatalog()
    ws.__dict__["text_generator"] = FakeTextGenerator(
        titles=[
            TitleSuggestion(native_text=f"Harbor {i}", foreign_text=f"Harbor {i}")
            for i in range(1, 7)
        ]
    )
    with patch("trackforge.api.Workspace", return_value=ws):
        yield ws


class TestGenerationApi:
    """Test generate_tracks and stream_generation."""

    @pytest.mark.asyncio
    async def test_generate_tracks_with_progress(self, workspace, config) -> None:
        events = []

        result = await api.generate_tracks(
            2, "piano", "calm", keywords="harbor", on_progress=events.append, config=config
        )

        assert result.success
        assert [t.title for t in result.tracks] == ["Harbor 1", "Harbor 2"]
        assert events[-1].is_terminal
        assert events[-1].result is result
        # Instrumental comes from config when not given
        assert workspace.synthesizer.submitted[0][3] is True

    @pytest.mark.asyncio
    async def test_stream_generation_ends_with_result(self, workspace, config) -> None:
        phases = [
            event.phase
            async for event in api.stream_generation(
                2, "piano", "calm", keywords="harbor", instrumental=False, config=config
            )
        ]

        assert phases[0] is Phase.TITLE
        assert phases[-1] is Phase.COMPLETE
        assert workspace.synthesizer.submitted[0][3] is False

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, workspace, config) -> None:
        cancel_event = asyncio.Event()
        cancel_event.set()

        result = await api.generate_tracks(2, "piano", "calm", cancel_event=cancel_event, config=config)

        assert result.cancelled is True
        assert result.tracks == []
        assert workspace.synthesizer.submitted == []

    @pytest.mark.asyncio
    async def test_invalid_request(self, workspace, config) -> None:
        with pytest.raises(ValueError):
            await api.generate_tracks(0, "piano", "calm", config=config)


class TestSupportingApi:
    """Test titles, import, deploy, schedules and reporting."""

    @pytest.mark.asyncio
    async def test_replenish_titles_uses_config_category(self, workspace, config) -> None:
        added = await api.replenish_titles(4, keywords="harbor", config=config)

        assert added == 4
        assert workspace.title_pool.check_availability("healing").available == 4

    @pytest.mark.asyncio
    async def test_import_then_deploy(self, workspace, config) -> None:
        imported = await api.import_jobs(["ext-1"], config=config)
        track_ids = [r.id for r in imported.imported]

        outcomes = await api.deploy_tracks(track_ids, category="ambient", config=config)

        assert [o.status for o in outcomes] == [DeployStatus.DEPLOYED] * 2
        assert {m.category for m in workspace.catalog.upserts} == {"ambient"}

    @pytest.mark.asyncio
    async def test_run_schedule(self, workspace, config) -> None:
        definition = workspace.schedule_admin.create("Harbor", "daily", "08:00", 2, "piano", "calm")

        run = await api.run_schedule(definition.id, config=config)

        assert run.schedule_id == definition.id
        assert run.generation.success
        assert workspace.schedules.get(definition.id).last_run_at is not None

    @pytest.mark.asyncio
    async def test_credits_and_usage(self, workspace, config) -> None:
        credits = await api.check_credits(config=config)
        await api.generate_tracks(2, "piano", "calm", keywords="harbor", config=config)

        summary = api.usage_summary(config=config)

        assert credits.remaining == 500
        assert summary.totals[Service.AUDIO].calls >= 1

    @pytest.mark.asyncio
    async def test_prompt_template_and_job_records(self, workspace, config) -> None:
        await api.generate_tracks(
            2, "piano", "calm", keywords="harbor", prompt_template="{mood} {title}", config=config
        )

        page = await api.job_records(limit=5, config=config)

        assert workspace.synthesizer.prompts == ["calm Harbor 1"]
        assert [r.job_id for r in page.records] == ["job-1"]
        assert page.records[0].status == "SUCCESS"
        assert page.total == 1
