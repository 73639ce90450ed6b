"""
Settings loader — reads devboot.yml into ``BootstrapSettings``.

The file is optional: without one every setting keeps its default and
the CLI flags fill in the rest.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from devboot.core.errors import SettingsError
from devboot.core.models.settings import BootstrapSettings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "devboot.yml"


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for devboot.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to devboot.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_settings(path: Path | None = None, *, search: bool = True) -> BootstrapSettings:
    """Load and validate bootstrap settings.

    Args:
        path: Explicit path to a settings file.  It must exist.
        search: When no path is given, look for devboot.yml upward from
            the working directory.  Defaults are returned when none is found.

    Raises:
        SettingsError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_settings_file() if search else None
        if path is None:
            logger.debug("No %s found, using default settings", SETTINGS_FILE)
            return BootstrapSettings()
    elif not path.is_file():
        raise SettingsError(f"Settings file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SettingsError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return BootstrapSettings()
    if not isinstance(data, dict):
        raise SettingsError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = BootstrapSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s (%d extra packages)", path, len(settings.packages))
    return settings
