"""Settings management using pydantic-settings, with optional YAML config files."""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .bounds import DEFAULT_MAX_EMPTY_PERIODS

logger = logging.getLogger(__name__)

ENV_PREFIX = "RECURBOT_"


class RecurrenceSettings(BaseSettings):
    """Engine and CLI settings with environment variable support."""

    max_empty_periods: int = Field(
        default=DEFAULT_MAX_EMPTY_PERIODS,
        ge=1,
        description="Consecutive empty periods scanned before a generator gives up",
    )
    default_limit: int = Field(
        default=10, ge=1, description="Occurrences printed by the CLI when --limit is not given"
    )
    log_level: str = Field(default="INFO", description="Root log level")
    debug: bool = Field(default=False, description="Enable debug logging for recurbot modules")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Read settings from a YAML file.

    Values may sit at the top level or under a ``recurbot:`` section. A
    missing or unreadable file yields no values.
    """
    if not config_path.exists():
        logger.warning("Config file not found: %s", config_path)
        return {}

    try:
        with config_path.open(encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not load YAML config from %s: %s", config_path, e)
        return {}

    if not config_data:
        return {}
    if not isinstance(config_data, dict):
        logger.warning("Ignoring YAML config %s: expected a mapping", config_path)
        return {}

    section = config_data.get("recurbot", config_data)
    if not isinstance(section, dict):
        logger.warning("Ignoring YAML config %s: 'recurbot' is not a mapping", config_path)
        return {}
    return section


def load_settings(
    config_path: Optional[Union[str, Path]] = None, **overrides: Any
) -> RecurrenceSettings:
    """Build settings from YAML, environment and explicit overrides.

    Precedence, lowest first: defaults, YAML file, ``RECURBOT_*`` environment
    variables, keyword overrides.
    """
    file_values = _load_yaml_config(Path(config_path)) if config_path else {}

    env_names = {name.lower() for name in os.environ if name.upper().startswith(ENV_PREFIX)}
    values = {
        key: value
        for key, value in file_values.items()
        if f"{ENV_PREFIX}{key}".lower() not in env_names
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    settings = RecurrenceSettings(**values)
    logger.debug("Loaded settings: %s", settings.model_dump())
    return settings
