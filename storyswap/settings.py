"""TOML settings loader.

Loads the generation source, server and client configuration from
settings.toml. The process-wide copy is loaded once by get_settings();
tests and the CLI ``--config`` flag can load or replace it explicitly.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError as SchemaError

from storyswap.errors import ConfigurationError
from storyswap.schemas.config import Settings

logger = logging.getLogger(__name__)

# Default config directory relative to the storyswap package
_CONFIG_DIR = Path(__file__).parent / "config"
DEFAULT_SETTINGS_PATH = _CONFIG_DIR / "settings.toml"

_settings: Settings | None = None


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        config_path: Path to a settings file. Defaults to
            storyswap/config/settings.toml.

    Returns:
        Settings populated from the file; missing sections keep defaults.

    Raises:
        ConfigurationError: If the file is missing, is not valid TOML, or
            holds values the schema rejects.
    """
    path = config_path or DEFAULT_SETTINGS_PATH
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

    try:
        settings = Settings.model_validate(raw)
    except SchemaError as e:
        raise ConfigurationError(f"Invalid settings in {path}: {e}") from e

    logger.debug("Loaded settings from %s (model=%s)", path, settings.model.model)
    return settings


def get_settings() -> Settings:
    """Return the process-wide settings, loading the defaults on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def configure(config_path: Path | None = None) -> Settings:
    """Load settings from ``config_path`` and install them process-wide."""
    global _settings
    _settings = load_settings(config_path)
    return _settings
