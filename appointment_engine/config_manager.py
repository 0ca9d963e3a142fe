"""Configuration management for the appointment engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "APPOINTMENT_ENGINE_"

DEFAULT_MAX_SCAN_ITERATIONS = 10_000
DEFAULT_OCCURRENCE_CACHE_SIZE = 256
DEFAULT_ID_PREFIX = "appt-"


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")

        for raw_line in content.splitlines():
            line = raw_line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key:
                result[key] = val

    except Exception:
        logger.debug(
            "Failed to read .env file (continuing): %s",
            str(path),
            exc_info=True,
        )

    return result


def _positive_int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; using default %d", name, raw, default)
        return default
    if value < 1:
        logger.warning("%s must be >= 1, got %d; using default %d", name, value, default)
        return default
    return value


@dataclass(frozen=True)
class EngineSettings:
    """Tunable limits for expansion, caching and id generation.

    Consolidates engine settings with explicit defaults.
    """

    # Upper bound on day (or year) probes per expand() call
    max_scan_iterations: int = DEFAULT_MAX_SCAN_ITERATIONS
    # Entries kept by OccurrenceCache before least-recently-used eviction
    occurrence_cache_size: int = DEFAULT_OCCURRENCE_CACHE_SIZE
    # Prefix for ids of series created by splits
    id_prefix: str = DEFAULT_ID_PREFIX

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from APPOINTMENT_ENGINE_* environment variables.

        Recognizes:
        - APPOINTMENT_ENGINE_MAX_SCAN_ITERATIONS -> max_scan_iterations (int >= 1)
        - APPOINTMENT_ENGINE_CACHE_SIZE -> occurrence_cache_size (int >= 1)
        - APPOINTMENT_ENGINE_ID_PREFIX -> id_prefix

        Invalid values are logged and replaced by defaults.
        """
        return cls(
            max_scan_iterations=_positive_int_from_env(
                f"{ENV_PREFIX}MAX_SCAN_ITERATIONS", DEFAULT_MAX_SCAN_ITERATIONS
            ),
            occurrence_cache_size=_positive_int_from_env(
                f"{ENV_PREFIX}CACHE_SIZE", DEFAULT_OCCURRENCE_CACHE_SIZE
            ),
            id_prefix=os.environ.get(f"{ENV_PREFIX}ID_PREFIX", DEFAULT_ID_PREFIX),
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "EngineSettings":
        """Extract engine settings from an arbitrary settings object.

        Args:
            settings: Dict or object exposing any of the EngineSettings fields

        Returns:
            EngineSettings with values from settings or defaults
        """
        return cls(
            max_scan_iterations=get_config_value(
                settings, "max_scan_iterations", DEFAULT_MAX_SCAN_ITERATIONS
            ),
            occurrence_cache_size=get_config_value(
                settings, "occurrence_cache_size", DEFAULT_OCCURRENCE_CACHE_SIZE
            ),
            id_prefix=get_config_value(settings, "id_prefix", DEFAULT_ID_PREFIX),
        )


class ConfigManager:
    """Loads engine configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def load_settings(self) -> EngineSettings:
        """Load the .env file (if any) and build EngineSettings from the environment."""
        self.load_env_file()
        settings = EngineSettings.from_env()
        logger.debug("Engine settings loaded: %s", settings)
        return settings


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Read a key from a dict-like or attribute-style config object."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
