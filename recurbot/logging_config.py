"""
Central logging configuration for recurbot.

Installs a colorized console handler and sets module log levels. Debug
output can be forced through the environment for troubleshooting without
code changes.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

RECURBOT_MODULES = [
    "recurbot",
    "recurbot.parser",
    "recurbot.models",
    "recurbot.expander",
    "recurbot.generator",
    "recurbot.bounds",
    "recurbot.ruleset",
    "recurbot.config",
]


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level_name: Optional[str] = None,
) -> None:
    """
    Configure console logging for recurbot.

    Args:
        debug_mode: Whether to enable debug logging for recurbot modules
        force_debug: Override debug mode setting (None to use env var detection)
        level_name: Root log level name used when debug is off (default INFO)

    Environment Variables:
        RECURBOT_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        RECURBOT_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("RECURBOT_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("RECURBOT_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    if final_debug:
        root_level = logging.DEBUG
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist to avoid duplicate output.
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS)
        )
        root_logger.addHandler(handler)

    module_level = logging.DEBUG if final_debug else root_level
    for module in RECURBOT_MODULES:
        logging.getLogger(module).setLevel(module_level)

    root_logger.debug(
        "Logging configured: root=%s recurbot=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(module_level),
    )


def get_logging_status() -> dict[str, str]:
    """Return the effective level of the root and recurbot loggers."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for module in RECURBOT_MODULES:
        status[module] = logging.getLevelName(logging.getLogger(module).level)
    return status
