from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs

logger = logging.getLogger(__name__)

APP_NAME = "storysaves"

# Environment variable override (useful for tests and portable installs)
ENV_DATA_DIR = "STORYSAVES_DATA_DIR"

STORE_FILENAME = "local_storage.json"


def default_data_dir(app_name: str = APP_NAME) -> Path:
    """Return the directory holding the persisted key-value store.

    Linux:   ~/.local/share/storysaves (or $XDG_DATA_HOME/storysaves)
    macOS:   ~/Library/Application Support/storysaves
    Windows: %LOCALAPPDATA%\\storysaves

    ``STORYSAVES_DATA_DIR`` takes precedence when set.
    """
    override = os.getenv(ENV_DATA_DIR)
    if override:
        return Path(override).expanduser().resolve()
    dirs = PlatformDirs(appname=app_name, appauthor=False)
    return Path(dirs.user_data_dir).expanduser().resolve()


def default_store_path(data_dir: Optional[Path] = None) -> Path:
    return Path(data_dir or default_data_dir()) / STORE_FILENAME


def ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create directory '%s': %s", path, exc)
        raise
    return path
