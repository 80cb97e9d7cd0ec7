"""Configuration module for the Autopilot import client."""

from .logger_config import setup_logging
from .settings import (
    LOG_FILE_PREFIX,
    MARKER_FILE_NAME,
    ConfigManager,
    ImportConfig,
    PollingConfig,
    get_config_manager,
)

__all__ = [
    "ImportConfig",
    "PollingConfig",
    "ConfigManager",
    "get_config_manager",
    "setup_logging",
    "MARKER_FILE_NAME",
    "LOG_FILE_PREFIX",
]
