"""Integration tests for CLI execution."""

import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from test_helpers import FakeDownloader, FakeImageGenerator, FakeSynthesizer, FakeTextGenerator
from trackforge.cli import _state, app
from trackforge.config import load_config
from trackforge.core import Workspace
from trackforge.generation import ServiceAPIError
from trackforge.providers.base import TitleSuggestion

# Project root for running tests
PROJECT_ROOT = Path(__file__).parent.parent.parent

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_cli_state():
    yield
    _state["debug"] = False
    _state["config_path"] = None


def invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), *args])


def fake_workspace(config_file: Path) -> Workspace:
    """Workspace whose external collaborators are in-memory fakes."""
    workspace = Workspace(load_config(config_file))
    workspace.__dict__["synthesizer"] = FakeSynthesizer()
    workspace.__dict__["downloader"] = FakeDownloader()
    workspace.__dict__["image_generator"] = FakeImageGenerator()
    workspace.__dict__["text_generator"] = FakeTextGenerator(
        titles=[
            TitleSuggestion(native_text="Dawn Light", foreign_text="Dawn Light"),
            TitleSuggestion(native_text="Quiet Hills", foreign_text="Quiet Hills"),
        ]
    )
    return workspace


def test_cli_shows_help() -> None:
    """Test that CLI shows help when --help flag used."""
    cmd = [sys.executable, "-m", "trackforge", "--help"]

    result = subprocess.run(
        cmd,
        cwd=PROJECT_ROOT,
        env={**os.environ, "PYTHONPATH": "src"},
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert "Bulk AI music generation" in result.stdout
    assert "schedule" in result.stdout


def test_cli_generates_config_on_first_run(tmp_path) -> None:
    """Test that a missing config is written out and the run stops."""
    config_home = tmp_path / "first-run"
    cmd = [sys.executable, "-m", "trackforge", "usage"]

    result = subprocess.run(
        cmd,
        cwd=PROJECT_ROOT,
        env={**os.environ, "PYTHONPATH": "src", "XDG_CONFIG_HOME": str(config_home)},
        capture_output=True,
        text=True,
    )

    assert result.returncode == 1
    assert "Generated" in result.stderr
    assert (config_home / "trackforge" / "config.toml").exists()


class TestLocalCommands:
    """Commands that need no API keys."""

    def test_usage_on_empty_ledger(self, config_file) -> None:
        result = invoke(config_file, "usage")

        assert result.exit_code == 0
        assert "Today" in result.output
        assert "audio  calls=0" in result.output

    def test_schedule_lifecycle(self, config_file) -> None:
        added = invoke(
            config_file,
            "schedule", "add", "Morning",
            "-f", "weekly", "-t", "09:30", "-n", "4", "-s", "piano", "-m", "calm",
        )
        assert added.exit_code == 0, added.output
        assert "weekly/7d at 09:30" in added.output
        schedule_id = added.output.split()[1]

        listed = invoke(config_file, "schedule", "list")
        assert schedule_id in listed.output
        assert "4 x piano/calm" in listed.output

        updated = invoke(config_file, "schedule", "update", schedule_id, "-m", "bright", "--inactive")
        assert updated.exit_code == 0
        assert "piano/bright" in updated.output
        assert "(inactive)" in updated.output

        deleted = invoke(config_file, "schedule", "delete", schedule_id)
        assert deleted.exit_code == 0
        assert invoke(config_file, "schedule", "list").output.strip() == "No schedules"

    def test_schedule_add_rejects_odd_count(self, config_file) -> None:
        result = invoke(
            config_file, "schedule", "add", "Odd", "-t", "09:00", "-n", "3", "-s", "piano", "-m", "calm"
        )

        assert result.exit_code == 1
        assert "Error: track_count must be a positive multiple of 2" in result.output

    def test_schedule_update_unknown_id(self, config_file) -> None:
        result = invoke(config_file, "schedule", "update", "sched_missing", "-m", "calm")

        assert result.exit_code == 1
        assert "Error: Schedule not found: sched_missing" in result.output

    def test_schedule_run_without_key(self, config_file) -> None:
        result = invoke(config_file, "schedule", "run", "sched_missing")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "TRACKFORGE_AUDIO_API_KEY" in result.output

    def test_debug_shows_exception_repr(self, config_file) -> None:
        result = runner.invoke(
            app, ["--debug", "--config", str(config_file), "schedule", "run", "sched_missing"]
        )

        assert result.exit_code == 1
        assert "Debug - Authentication error: ServiceAuthError(" in result.output

    def test_empty_listings(self, config_file) -> None:
        assert invoke(config_file, "tracks", "list").output.strip() == "No tracks"
        assert invoke(config_file, "cache", "list").output.strip() == "Cache is empty"

        status = invoke(config_file, "titles", "status")
        assert "healing: 0/0 titles available" in status.output
        assert "running low" in status.output

    def test_cache_clear_with_yes(self, config_file) -> None:
        result = invoke(config_file, "cache", "clear", "--service", "text", "-y")

        assert result.exit_code == 0
        assert "Removed 0 text cache entries" in result.output

    def test_unknown_track_delete(self, config_file) -> None:
        result = invoke(config_file, "tracks", "delete", "nope")

        assert result.exit_code == 1
        assert "Error: Track not found: nope" in result.output


class TestGenerateCommand:
    """Generation through the CLI with fake services."""

    def test_generate_prints_progress_and_tracks(self, config_file) -> None:
        workspace = fake_workspace(config_file)
        with patch("trackforge.cli._workspace", return_value=workspace):
            result = invoke(config_file, "generate", "2", "-s", "piano", "-m", "calm", "-k", "dawn")

        assert result.exit_code == 0, result.output
        assert "[batch 1/1] wait" in result.output
        assert "Dawn Light" in result.output
        assert "Quiet Hills" in result.output
        assert "3:00" in result.output
        assert "Generated 2 tracks" in result.output
        assert len(workspace.tracks.list_tracks()) == 2

        listed = invoke(config_file, "tracks", "list", "--pending")
        assert "Dawn Light" in listed.output

    def test_generate_quiet(self, config_file) -> None:
        with patch("trackforge.cli._workspace", return_value=fake_workspace(config_file)):
            result = invoke(config_file, "generate", "2", "-s", "piano", "-m", "calm", "-q")

        assert result.exit_code == 0
        assert "[batch" not in result.output
        assert "Generated 2 tracks" in result.output

    def test_generate_rejects_odd_count(self, config_file) -> None:
        with patch("trackforge.cli._workspace", return_value=fake_workspace(config_file)):
            result = invoke(config_file, "generate", "3", "-s", "piano", "-m", "calm")

        assert result.exit_code == 1
        assert "Error: track_count must be a positive multiple of 2" in result.output

    def test_generate_reports_failure(self, config_file) -> None:
        workspace = fake_workspace(config_file)
        workspace.__dict__["synthesizer"] = FakeSynthesizer(
            submit_error=ServiceAPIError("Insufficient credits", 429)
        )
        with patch("trackforge.cli._workspace", return_value=workspace):
            result = invoke(config_file, "generate", "2", "-s", "piano", "-m", "calm", "-q")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Kept 0 tracks" in result.output

    def test_import_then_credits(self, config_file) -> None:
        workspace = fake_workspace(config_file)
        with patch("trackforge.cli._workspace", return_value=workspace):
            imported = invoke(config_file, "import", "ext-1,ext-2")
            again = invoke(config_file, "import", "ext-1")
            credits = invoke(config_file, "credits")

        assert imported.exit_code == 0
        assert "sync_ext-1_1" in imported.output
        assert "Imported 4 tracks" in imported.output
        assert "skipped 1 known" in again.output
        assert "Credits remaining: 500 (about 100 tracks)" in credits.output

    def test_jobs_lists_newest_first(self, config_file) -> None:
        workspace = fake_workspace(config_file)
        with patch("trackforge.cli._workspace", return_value=workspace):
            empty = invoke(config_file, "jobs")
            workspace.synthesizer.job_ids = ["job-1", "job-2"]
            listed = invoke(config_file, "jobs", "-n", "1")

        assert empty.output.strip() == "No jobs"
        assert listed.exit_code == 0, listed.output
        assert "job-2  SUCCESS  -  2 tracks" in listed.output
        assert "job-1" not in listed.output
        assert "Page 1: 1 of 2 jobs" in listed.output

    def test_generate_with_template(self, config_file) -> None:
        workspace = fake_workspace(config_file)
        with patch("trackforge.cli._workspace", return_value=workspace):
            result = invoke(
                config_file,
                "generate", "2", "-s", "piano", "-m", "calm", "-k", "dawn", "-q",
                "--template", "{mood} {style}: {title}",
            )

        assert result.exit_code == 0, result.output
        assert workspace.synthesizer.prompts == ["calm piano: Dawn Light"]


def test_schedule_template_option(config_file) -> None:
    added = invoke(
        config_file,
        "schedule", "add", "Morning",
        "-t", "09:30", "-s", "piano", "-m", "calm", "--template", "Soft {style} for {title}",
    )
    assert added.exit_code == 0, added.output
    assert "piano/calm, custom prompt" in added.output
    schedule_id = added.output.split()[1]

    cleared = invoke(config_file, "schedule", "update", schedule_id, "--template", "")

    assert cleared.exit_code == 0, cleared.output
    assert "custom prompt" not in cleared.output
