"""Autopilot import client - registers a Windows device for Autopilot exactly once."""

__version__ = "1.0.0"

from .config import ImportConfig, get_config_manager  # noqa: E402
from .orchestrator import ImportOrchestrator, WorkflowOutcome, run_detection  # noqa: E402

__all__ = ["ImportConfig", "ImportOrchestrator", "WorkflowOutcome", "get_config_manager", "run_detection", "__version__"]
