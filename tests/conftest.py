"""Pytest configuration and fixtures for trackforge tests."""

import sys
from pathlib import Path

import pytest

# Add src and the shared helpers to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from test_helpers import (
    FakeCatalog,
    FakeDownloader,
    FakeImageGenerator,
    FakeSynthesizer,
    FakeTextGenerator,
)
from trackforge.cache import CacheStore
from trackforge.db import Database
from trackforge.scheduler import ScheduleRepository
from trackforge.titles import TitlePoolManager
from trackforge.tracks import TrackRepository

API_KEY_VARS = (
    "TRACKFORGE_AUDIO_API_KEY",
    "TRACKFORGE_CATALOG_API_KEY",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "TRACKFORGE_DATA_DIR",
    "TRACKFORGE_MEDIA_DIR",
    "TRACKFORGE_AUDIO_URL",
    "TRACKFORGE_CATALOG_URL",
    "TRACKFORGE_TEXT_PROVIDER",
)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path) -> None:
    """Keep real API keys and the user's data directory out of every test."""
    for name in API_KEY_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(tmp_path / "trackforge.db")


@pytest.fixture
def cache_store(database) -> CacheStore:
    return CacheStore(database)


@pytest.fixture
def track_repository(database) -> TrackRepository:
    return TrackRepository(database)


@pytest.fixture
def schedule_repository(database) -> ScheduleRepository:
    return ScheduleRepository(database)


@pytest.fixture
def title_pool(database, cache_store) -> TitlePoolManager:
    """Empty pool with no text generator."""
    return TitlePoolManager(database, cache_store=cache_store)


@pytest.fixture
def text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def config_file(tmp_path) -> Path:
    """A complete config file whose storage lives under tmp_path."""
    data_dir = tmp_path / "data"
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
[audio]
base_url = "https://audio.example.com/api/v1"
model = "V5"
instrumental = true

[text]
provider = "openai"

[image]
model = "imagen-test"

[catalog]
base_url = "https://catalog.example.com/api/admin"
artist = "Test Studio"

[storage]
data_dir = "{data_dir}"

[generation]
category = "healing"
poll_interval = 0
max_poll_attempts = 3

[scheduler]
check_interval = 1
"""
    )
    return path
