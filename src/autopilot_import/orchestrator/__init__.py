"""Workflow orchestration for the Autopilot import."""

from .detection import run_detection
from .import_orchestrator import ImportOrchestrator, ProgressLogger, WorkflowOutcome, classify_import
from .poller import PollDecision, PollResult, PollTimeout, poll_until

__all__ = [
    "ImportOrchestrator",
    "ProgressLogger",
    "WorkflowOutcome",
    "classify_import",
    "run_detection",
    "PollDecision",
    "PollResult",
    "PollTimeout",
    "poll_until",
]
