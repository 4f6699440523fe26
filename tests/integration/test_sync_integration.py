"""Integration tests for importing externally issued synthesis jobs."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from test_helpers import (
    FakeCatalog,
    FakeDownloader,
    FakeImageGenerator,
    FakeSynthesizer,
    pending_status,
    success_status,
)
from trackforge.cache import Service
from trackforge.deploy import DeploymentTracker, DeployStatus
from trackforge.generation import ServiceAPIError
from trackforge.sync import IMPORTED_MOOD, SYNCED_STYLE, SyncImporter, parse_id_list


class ErroringSynthesizer(FakeSynthesizer):
    async def poll_status(self, job_id: str):
        raise ServiceAPIError("Audio synthesis unreachable")


@pytest.fixture
def make_importer(cache_store, track_repository):
    def build(synthesizer, downloader=None, image_generator=None) -> SyncImporter:
        return SyncImporter(
            cache_store=cache_store,
            synthesizer=synthesizer,
            downloader=downloader,
            image_generator=image_generator,
            track_repository=track_repository,
        )

    return build


class TestParseIdList:
    def test_commas_whitespace_and_repeats(self) -> None:
        assert parse_id_list("a, b  c,,a\nd") == ["a", "b", "c", "d"]

    def test_empty(self) -> None:
        assert parse_id_list("  , ") == []


class TestSyncImporter:
    """Test import filtering and backfill."""

    @pytest.mark.asyncio
    async def test_known_id_skipped_without_calls(self, make_importer, cache_store) -> None:
        """
        INVARIANT: A job already in the audio cache is never imported again
        BREAKS: Duplicate tracks and wasted downloads
        """
        cache_store.put(
            Service.AUDIO, ("Dawn Light", "piano", "calm"), {"job_id": "X", "status": "SUCCESS"}
        )
        synthesizer = FakeSynthesizer()
        downloader = FakeDownloader()
        image_generator = FakeImageGenerator()
        importer = make_importer(synthesizer, downloader, image_generator)

        result = await importer.import_by_external_id(["X"])

        assert result.imported == []
        assert result.skipped_known == ["X"]
        assert synthesizer.polls == {}
        assert downloader.fetched == []
        assert image_generator.calls == []

    @pytest.mark.asyncio
    async def test_imports_finished_job(self, make_importer, cache_store, track_repository) -> None:
        importer = make_importer(FakeSynthesizer(), FakeDownloader(), FakeImageGenerator())

        result = await importer.import_by_external_id(["job-77"])

        assert [r.id for r in result.imported] == ["sync_job-77_1", "sync_job-77_2"]
        first = result.imported[0]
        assert (first.style, first.mood) == (SYNCED_STYLE, IMPORTED_MOOD)
        assert first.title == "Remote job-77 1"
        assert first.audio_ref == "/media/tracks/job-77_1.mp3"
        assert first.image_ref == "/media/covers/job-77_1.jpeg"
        assert first.duration == 180.0
        assert track_repository.get("sync_job-77_2").job_id == "job-77"
        assert "job-77" in cache_store.known_job_ids()
        assert cache_store.find_by_job_id("job-77").status == "SUCCESS"

    @pytest.mark.asyncio
    async def test_second_import_is_a_no_op(self, make_importer) -> None:
        synthesizer = FakeSynthesizer()
        importer = make_importer(synthesizer)

        await importer.import_by_external_id(["job-77"])
        result = await importer.import_by_external_id(["job-77"])

        assert result.skipped_known == ["job-77"]
        assert synthesizer.poll_count == 1

    @pytest.mark.asyncio
    async def test_cover_synthesized_when_missing(self, make_importer) -> None:
        synthesizer = FakeSynthesizer()
        synthesizer.statuses["job-5"] = success_status("job-5", with_images=False)
        image_generator = FakeImageGenerator()
        importer = make_importer(synthesizer, FakeDownloader(), image_generator)

        result = await importer.import_by_external_id(["job-5"])

        assert [call[0] for call in image_generator.calls] == ["Remote job-5 1", "Remote job-5 2"]
        assert result.imported[0].image_ref == "/media/covers/remote_job-5_1.png"

    @pytest.mark.asyncio
    async def test_unfinished_and_unreachable(self, make_importer) -> None:
        synthesizer = FakeSynthesizer(script=[pending_status()])
        result = await make_importer(synthesizer).import_by_external_id(["p1", " p1 ", ""])

        assert result.skipped_unfinished == ["p1"]
        assert result.imported == []

        failed = await make_importer(ErroringSynthesizer()).import_by_external_id(["e1"])
        assert failed.failed == ["e1"]

    @pytest.mark.asyncio
    async def test_download_failure_keeps_remote_refs(self, make_importer) -> None:
        importer = make_importer(FakeSynthesizer(), FakeDownloader(fail=True))

        result = await importer.import_by_external_id(["job-9"])

        assert result.imported[0].audio_ref == "https://cdn.example.com/job-9_1.mp3"
        assert result.imported[0].image_ref == "https://cdn.example.com/job-9_1.jpeg"
        assert result.imported[0].duration == 201.0

    @pytest.mark.asyncio
    async def test_reimport_after_cache_clear_stays_deployed(
        self, make_importer, cache_store, track_repository
    ) -> None:
        """
        INVARIANT: Re-importing a deployed job keeps its deployment state
        BREAKS: Clearing the audio cache leads to duplicate catalog entries
        """
        catalog = FakeCatalog()
        tracker = DeploymentTracker(track_repository, catalog)
        importer = make_importer(FakeSynthesizer())

        first = await importer.import_by_external_id(["X"])
        track_ids = [r.id for r in first.imported]
        await tracker.deploy(track_ids)

        cache_store.clear(Service.AUDIO)
        again = await importer.import_by_external_id(["X"])
        outcomes = await tracker.deploy(track_ids)

        assert [r.id for r in again.imported] == track_ids
        assert len(catalog.upserts) == 2
        assert [o.status for o in outcomes] == [DeployStatus.SKIPPED] * 2
        for track_id in track_ids:
            stored = track_repository.get(track_id)
            assert stored.deployed is True
            assert stored.catalog_track_id in {"cat-1", "cat-2"}
