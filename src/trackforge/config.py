"""Configuration management for trackforge.

Loads configuration from ~/.config/trackforge/config.toml.
Priority chain: CLI flags > env vars > config file.
"""

import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .paths import get_config_dir, get_data_dir

CONFIG_DIR = get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
# trackforge configuration

[audio]
# Audio-synthesis service (Suno-compatible API)
base_url = "https://api.sunoapi.org/api/v1"
model = "V5"
instrumental = true
# Required by the service even when results are polled
callback_url = "https://example.com/api/callback"
timeout = 60.0

[text]
# Text-generation provider: "openai" or "gemini"
provider = "openai"
# Leave empty to use the provider default
model = ""
timeout = 60.0

[image]
model = "imagen-4.0-generate-preview-06-06"
aspect_ratio = "1:1"
timeout = 120.0

[catalog]
# Production catalog API that receives deployed tracks
base_url = "http://127.0.0.1:3000/api/admin"
artist = "AI Studio"

[storage]
# Empty values use ~/.local/share/trackforge and <data_dir>/media
data_dir = ""
media_dir = ""

[generation]
# Shared title-pool category for every style/mood combination
category = "healing"
poll_interval = 5.0
max_poll_attempts = 60

[scheduler]
# Seconds between checks for due schedules
check_interval = 60

# API keys are read from environment variables, not this file:
#   TRACKFORGE_AUDIO_API_KEY     - audio-synthesis service
#   OPENAI_API_KEY               - text generation (provider = "openai")
#   GEMINI_API_KEY               - text generation (provider = "gemini") and cover images
#   TRACKFORGE_CATALOG_API_KEY   - catalog service
"""


@dataclass(frozen=True)
class AudioServiceConfig:
    """Audio-synthesis service configuration."""

    base_url: str
    model: str
    instrumental: bool
    callback_url: str
    timeout: float


@dataclass(frozen=True)
class TextServiceConfig:
    """Text-generation service configuration."""

    provider: str
    model: str
    timeout: float


@dataclass(frozen=True)
class ImageServiceConfig:
    """Cover-image service configuration."""

    model: str
    aspect_ratio: str
    timeout: float


@dataclass(frozen=True)
class CatalogConfig:
    """Production catalog configuration."""

    base_url: str
    artist: str


@dataclass(frozen=True)
class StorageConfig:
    """Local storage locations."""

    data_dir: Path
    media_dir: Path

    @property
    def db_path(self) -> Path:
        return self.data_dir / "trackforge.db"


@dataclass(frozen=True)
class GenerationConfig:
    """Bulk generation tuning."""

    category: str
    poll_interval: float
    max_poll_attempts: int


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduler worker configuration."""

    check_interval: float


@dataclass(frozen=True)
class TrackforgeConfig:
    """Top-level trackforge configuration."""

    audio: AudioServiceConfig
    text: TextServiceConfig
    image: ImageServiceConfig
    catalog: CatalogConfig
    storage: StorageConfig
    generation: GenerationConfig
    scheduler: SchedulerConfig


_cached_config: TrackforgeConfig | None = None


def generate_config(path: Path = CONFIG_PATH) -> Path:
    """Generate default config file at ~/.config/trackforge/config.toml."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def _resolve_dir(raw: str, default: Path) -> Path:
    path = Path(raw).expanduser() if raw else default
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Path | None = None) -> TrackforgeConfig:
    """Load configuration from config file with env var overrides.

    On first run, generates the config file and exits so the user
    can review it before proceeding.

    Args:
        path: Explicit config file location (defaults to CONFIG_PATH)

    Returns:
        Loaded and validated TrackforgeConfig.

    Raises:
        SystemExit: If config is missing (after generating) or invalid.
    """
    global _cached_config
    if _cached_config is not None and path is None:
        return _cached_config

    config_path = path or CONFIG_PATH

    if not config_path.exists():
        generated = generate_config(config_path)
        print(
            f"No config found. Generated {generated}, review and run again.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    audio = data.get("audio", {})
    text = data.get("text", {})
    image = data.get("image", {})
    catalog = data.get("catalog", {})
    storage = data.get("storage", {})
    generation = data.get("generation", {})
    scheduler = data.get("scheduler", {})

    # Validate required fields
    missing = []
    if "base_url" not in audio:
        missing.append("audio.base_url")
    if "provider" not in text:
        missing.append("text.provider")
    if "base_url" not in catalog:
        missing.append("catalog.base_url")
    if "category" not in generation:
        missing.append("generation.category")

    if missing:
        print(
            f"Missing required config values: {', '.join(missing)}",
            file=sys.stderr,
        )
        print(f"Edit {config_path} or delete it to regenerate.", file=sys.stderr)
        raise SystemExit(1)

    max_poll_attempts = int(generation.get("max_poll_attempts", 60))
    if max_poll_attempts <= 0:
        print("generation.max_poll_attempts must be positive", file=sys.stderr)
        raise SystemExit(1)

    # Env vars override config file values
    data_dir = _resolve_dir(
        os.getenv("TRACKFORGE_DATA_DIR", storage.get("data_dir", "")),
        get_data_dir(),
    )
    media_dir = _resolve_dir(
        os.getenv("TRACKFORGE_MEDIA_DIR", storage.get("media_dir", "")),
        data_dir / "media",
    )

    loaded = TrackforgeConfig(
        audio=AudioServiceConfig(
            base_url=os.getenv("TRACKFORGE_AUDIO_URL", audio["base_url"]),
            model=audio.get("model", "V5"),
            instrumental=audio.get("instrumental", True),
            callback_url=audio.get("callback_url", "https://example.com/api/callback"),
            timeout=float(audio.get("timeout", 60.0)),
        ),
        text=TextServiceConfig(
            provider=os.getenv("TRACKFORGE_TEXT_PROVIDER", text["provider"]),
            model=text.get("model", ""),
            timeout=float(text.get("timeout", 60.0)),
        ),
        image=ImageServiceConfig(
            model=image.get("model", "imagen-4.0-generate-preview-06-06"),
            aspect_ratio=image.get("aspect_ratio", "1:1"),
            timeout=float(image.get("timeout", 120.0)),
        ),
        catalog=CatalogConfig(
            base_url=os.getenv("TRACKFORGE_CATALOG_URL", catalog["base_url"]),
            artist=catalog.get("artist", "AI Studio"),
        ),
        storage=StorageConfig(data_dir=data_dir, media_dir=media_dir),
        generation=GenerationConfig(
            category=generation["category"],
            poll_interval=float(generation.get("poll_interval", 5.0)),
            max_poll_attempts=max_poll_attempts,
        ),
        scheduler=SchedulerConfig(
            check_interval=float(scheduler.get("check_interval", 60)),
        ),
    )

    if path is None:
        _cached_config = loaded
    return loaded
