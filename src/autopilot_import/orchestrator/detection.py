"""Detection routine paired with the import workflow.

Exit 0 means the device is compliant (the completion marker exists), exit 1
means the import still has to run. Each compliant pass also prunes the
working directory.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from ..config import ImportConfig
from ..housekeeping import rotate_logs
from ..marker import CompletionMarker


def run_detection(config: ImportConfig, marker: Optional[CompletionMarker] = None) -> int:
    """Check for the completion marker and rotate logs when present."""
    marker = marker or CompletionMarker(config.marker_path)

    if not marker.exists():
        logger.info(f"Completion marker {marker.path} not found, import required")
        return 1

    logger.info("Completion marker found, device is compliant")
    rotate_logs(config.work_dir, retain=config.log_retention, marker_name=marker.path.name)
    return 0
