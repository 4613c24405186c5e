"""
Configuration loader — reads smconnect.yml into Settings.

Search order: explicit path, then smconnect.yml walking up from the
current directory, then the per-user file under ~/.config/smconnect/.
No file at all means defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from smconnect.core.errors import ConfigError
from smconnect.core.models.settings import Settings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "smconnect.yml"


def user_config_file() -> Path:
    """Per-user config location."""
    return Path.home() / ".config" / "smconnect" / CONFIG_FILE


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for smconnect.yml starting from the given directory, walking up.

    Falls back to the per-user config file.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to smconnect.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    fallback = user_config_file()
    return fallback if fallback.is_file() else None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate connector settings.

    Args:
        path: Explicit path to smconnect.yml. If None, searches.

    Returns:
        Validated Settings (defaults when no file exists).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found — using defaults", CONFIG_FILE)
            return Settings()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "connector" key or be flat
    settings_data = data.get("connector", data)

    try:
        settings = Settings.model_validate(settings_data)
    except Exception as e:
        raise ConfigError(f"Invalid connector configuration: {e}") from e

    logger.info("Loaded settings from %s (alias=%s)", path, settings.ssh_host_alias)
    return settings
