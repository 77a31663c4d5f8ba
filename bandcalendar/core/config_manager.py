"""Configuration management for the bandcalendar engine."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


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
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

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

    return result


class EngineSettings(BaseModel):
    """Typed settings consumed by the scheduling engine."""

    cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="Time-to-live of a cached month of events"
    )
    default_horizon_days: int = Field(
        default=365, gt=0, description="Expansion horizon when a rule has no until date"
    )
    max_week_iterations: int = Field(
        default=52, gt=0, description="Hard cap on week intervals walked per expansion"
    )
    database_path: Path = Field(
        default_factory=lambda: Path.cwd() / "bandcalendar.db",
        description="SQLite database file used by SqliteStore",
    )
    debug: bool = Field(default=False, description="Enable debug logging for engine modules")


# Environment variable -> (settings field, converter)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "BANDCAL_CACHE_TTL_SECONDS": ("cache_ttl_seconds", float),
    "BANDCAL_DEFAULT_HORIZON_DAYS": ("default_horizon_days", int),
    "BANDCAL_MAX_WEEK_ITERATIONS": ("max_week_iterations", int),
    "BANDCAL_DATABASE_PATH": ("database_path", Path),
    "BANDCAL_DEBUG": ("debug", lambda v: v.strip().lower() in ("1", "true", "yes")),
}


class ConfigManager:
    """Builds EngineSettings from environment variables and an optional .env file."""

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

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a configuration dictionary from BANDCAL_* environment variables.

        Values that fail conversion are skipped with a warning so the
        corresponding default applies.
        """
        config: dict[str, Any] = {}
        for env_key, (field_name, convert) in _ENV_FIELDS.items():
            raw = os.environ.get(env_key)
            if raw is None or raw == "":
                continue
            try:
                config[field_name] = convert(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_key, raw)
        return config

    def load_settings(self, **overrides: Any) -> EngineSettings:
        """Load .env defaults, read the environment and return EngineSettings.

        Args:
            **overrides: Explicit values that win over the environment
        """
        self.load_env_file()
        config = self.build_config_from_env()
        config.update(overrides)
        settings = EngineSettings(**config)
        logger.debug("Engine settings loaded: %s", settings.model_dump())
        return settings


def get_settings(**overrides: Any) -> EngineSettings:
    """Convenience wrapper around ConfigManager().load_settings()."""
    return ConfigManager().load_settings(**overrides)
