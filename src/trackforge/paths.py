"""XDG-compliant directory paths for trackforge state."""

import os
from pathlib import Path


def get_config_dir() -> Path:
    """Get XDG-compliant configuration directory.

    Priority:
    1. $XDG_CONFIG_HOME/trackforge/
    2. ~/.config/trackforge/

    Returns:
        Path to configuration directory
    """
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "trackforge"
    return Path.home() / ".config" / "trackforge"


def get_data_dir() -> Path:
    """Get XDG-compliant data directory for the database and media.

    Priority:
    1. $XDG_DATA_HOME/trackforge/
    2. ~/.local/share/trackforge/

    Returns:
        Path to data directory
    """
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        path = Path(data_home) / "trackforge"
    else:
        path = Path.home() / ".local" / "share" / "trackforge"

    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path
