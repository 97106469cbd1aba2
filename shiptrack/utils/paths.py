"""File path resolution using platformdirs.

SHIPTRACK_DATA_DIR overrides the data directory. Otherwise paths use
platform-appropriate directories:
  macOS: ~/Library/Application Support/shiptrack/
  Linux: ~/.local/share/shiptrack/
  Windows: %LOCALAPPDATA%/shiptrack/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "shiptrack"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB)."""
    override = os.environ.get("SHIPTRACK_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_log_dir() -> Path:
    """Return the directory for application logs."""
    override = os.environ.get("SHIPTRACK_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_log_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "shiptrack.db"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_log_dir()]:
        d.mkdir(parents=True, exist_ok=True)
