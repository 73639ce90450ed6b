"""
Compatibility loader — reads compatibility.yaml into ``CompatibilityConfig``.

Without an explicit path the copy embedded in ``devboot/core/config``
is used.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from devboot.core.errors import CompatibilityConfigError
from devboot.core.models.compatibility import CompatibilityConfig

logger = logging.getLogger(__name__)

EMBEDDED_COMPATIBILITY_FILE = Path(__file__).resolve().parents[2] / "config" / "compatibility.yaml"


def raw_embedded_config() -> bytes:
    """Raw bytes of the embedded compatibility document."""
    try:
        return EMBEDDED_COMPATIBILITY_FILE.read_bytes()
    except OSError as e:
        raise CompatibilityConfigError(f"failed to read embedded compatibility config: {e}") from e


def load_compatibility_config(path: Path | None = None) -> CompatibilityConfig:
    """Load and validate the compatibility matrix.

    Args:
        path: A user-supplied compatibility file, or None for the embedded one.

    Raises:
        CompatibilityConfigError: unreadable, not YAML, or schema mismatch.
    """
    if path is None:
        source = "embedded compatibility config"
        raw = raw_embedded_config().decode("utf-8")
    else:
        source = str(path)
        if not path.is_file():
            raise CompatibilityConfigError(f"compatibility config file not found: {path}")
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CompatibilityConfigError(f"error reading compatibility config file: {e}") from e
        logger.info("Using compatibility config file: %s", path)

    return parse_compatibility_config(raw, source)


def parse_compatibility_config(raw: str, source: str = "<string>") -> CompatibilityConfig:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise CompatibilityConfigError(f"invalid YAML in {source}: {e}") from e

    if not isinstance(data, dict):
        raise CompatibilityConfigError(
            f"expected a YAML mapping in {source}, got {type(data).__name__}"
        )

    try:
        config = CompatibilityConfig.model_validate(data)
    except ValidationError as e:
        raise CompatibilityConfigError(f"error parsing {source}: {e}") from e

    logger.debug(
        "Loaded compatibility matrix from %s (%d operating systems)",
        source, len(config.operating_systems),
    )
    return config
