"""Configuration management for the Autopilot import client.

Values come from dataclass defaults, then environment variables, then
explicit overrides passed to ``ConfigManager.load_config`` (CLI flags).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

from loguru import logger

MARKER_FILE_NAME = "import_complete.tag"
LOG_FILE_PREFIX = "autopilot_import"

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
GRAPH_BASE_URL = "https://graph.microsoft.com/beta"
LOGIN_BASE_URL = "https://login.microsoftonline.com"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _default_work_dir() -> Path:
    program_data = os.getenv("PROGRAMDATA")
    if program_data:
        return Path(program_data) / "AutopilotImport"
    return Path.home() / ".autopilot_import"


@dataclass
class PollingConfig:
    """Configuration for import status polling."""

    interval_seconds: float = 30.0
    timeout_seconds: float = 900.0  # 15 minutes
    heartbeat_every: int = 5  # log an unchanged state every Nth poll


@dataclass
class ImportConfig:
    """Complete configuration for one import run."""

    # Tenant / app registration
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    group_tag: Optional[str] = None

    # Endpoints
    login_base_url: str = LOGIN_BASE_URL
    graph_base_url: str = GRAPH_BASE_URL
    scope: str = GRAPH_SCOPE
    request_timeout_seconds: int = 30

    # Behaviour
    strict_lookup: bool = False
    polling: PollingConfig = field(default_factory=PollingConfig)

    # Working directory and logging
    work_dir: Path = field(default_factory=_default_work_dir)
    log_level: str = "INFO"
    log_retention: int = 5
    log_to_console: bool = True

    def __post_init__(self):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    def _apply_env_overrides(self):
        """Apply configuration overrides from environment variables."""
        if tenant_id := os.getenv("AUTOPILOT_TENANT_ID"):
            self.tenant_id = tenant_id

        if client_id := os.getenv("AUTOPILOT_CLIENT_ID"):
            self.client_id = client_id

        if client_secret := os.getenv("AUTOPILOT_CLIENT_SECRET"):
            self.client_secret = client_secret

        if group_tag := os.getenv("AUTOPILOT_GROUP_TAG"):
            self.group_tag = group_tag

        if work_dir := os.getenv("AUTOPILOT_WORK_DIR"):
            self.work_dir = Path(work_dir)

        if log_level := os.getenv("AUTOPILOT_LOG_LEVEL"):
            self.log_level = log_level.upper()

        if poll_interval := os.getenv("AUTOPILOT_POLL_INTERVAL"):
            try:
                self.polling.interval_seconds = float(poll_interval)
            except ValueError:
                logger.warning(f"Invalid poll interval: {poll_interval}")

        if poll_timeout := os.getenv("AUTOPILOT_POLL_TIMEOUT"):
            try:
                self.polling.timeout_seconds = float(poll_timeout)
            except ValueError:
                logger.warning(f"Invalid poll timeout: {poll_timeout}")

        if log_retention := os.getenv("AUTOPILOT_LOG_RETENTION"):
            try:
                self.log_retention = int(log_retention)
            except ValueError:
                logger.warning(f"Invalid log retention: {log_retention}")

        if strict_lookup := os.getenv("AUTOPILOT_STRICT_LOOKUP"):
            self.strict_lookup = strict_lookup.strip().lower() in _TRUE_VALUES

    @property
    def token_url(self) -> str:
        return f"{self.login_base_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"

    @property
    def imports_url(self) -> str:
        return f"{self.graph_base_url.rstrip('/')}/deviceManagement/importedWindowsAutopilotDeviceIdentities"

    @property
    def marker_path(self) -> Path:
        return self.work_dir / MARKER_FILE_NAME

    def log_file_path(self, day: Optional[date] = None) -> Path:
        """Path of the log file for ``day`` (today when omitted)."""
        day = day or date.today()
        return self.work_dir / f"{LOG_FILE_PREFIX}_{day.isoformat()}.log"

    def validate(self) -> tuple[bool, list[str]]:
        """Validate the configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not self.tenant_id:
            errors.append("Tenant ID is required")

        if not self.client_id:
            errors.append("Client ID is required")

        if not self.client_secret:
            errors.append("Client secret is required")

        if self.polling.interval_seconds <= 0:
            errors.append("Poll interval must be positive")

        if self.polling.timeout_seconds <= 0:
            errors.append("Poll timeout must be positive")

        if self.polling.heartbeat_every <= 0:
            errors.append("Heartbeat frequency must be positive")

        if self.log_retention <= 0:
            errors.append("Log retention must be positive")

        return len(errors) == 0, errors

    def describe(self) -> dict:
        """Configuration summary safe to print (secret masked)."""
        return {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": "***" if self.client_secret else "",
            "group_tag": self.group_tag,
            "work_dir": str(self.work_dir),
            "poll_interval_seconds": self.polling.interval_seconds,
            "poll_timeout_seconds": self.polling.timeout_seconds,
            "strict_lookup": self.strict_lookup,
            "log_level": self.log_level,
            "log_retention": self.log_retention,
        }


class ConfigManager:
    """Manages the import client configuration."""

    def __init__(self):
        self._config: Optional[ImportConfig] = None

    def load_config(
        self,
        work_dir: Optional[Path] = None,
        group_tag: Optional[str] = None,
        poll_timeout: Optional[float] = None,
        log_level: Optional[str] = None,
    ) -> ImportConfig:
        """Load configuration with optional overrides.

        Args:
            work_dir: Working directory override
            group_tag: Group tag override
            poll_timeout: Polling timeout override in seconds
            log_level: Log level override

        Returns:
            Configured ImportConfig instance
        """
        config = ImportConfig()

        if work_dir:
            config.work_dir = Path(work_dir)

        if group_tag:
            config.group_tag = group_tag

        if poll_timeout is not None:
            config.polling.timeout_seconds = poll_timeout

        if log_level:
            config.log_level = log_level.upper()

        self._config = config
        return config

    def get_config(self) -> Optional[ImportConfig]:
        """Get current configuration."""
        return self._config

    def validate_config(self) -> tuple[bool, list[str]]:
        """Validate current configuration."""
        if not self._config:
            return False, ["No configuration loaded"]

        return self._config.validate()


# Global configuration manager instance
_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    return _config_manager
