"""Working directory cleanup run by the detection routine.

Keeps the newest daily log files and removes every other regular file in the
working directory except the completion marker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from loguru import logger

from ..config import LOG_FILE_PREFIX, MARKER_FILE_NAME


@dataclass
class RotationReport:
    """Files kept and removed by one cleanup pass."""

    kept: List[Path] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)


def _is_log_file(path: Path) -> bool:
    return path.name.startswith(f"{LOG_FILE_PREFIX}_") and path.suffix == ".log"


def rotate_logs(work_dir: Path, retain: int = 5, marker_name: str = MARKER_FILE_NAME) -> RotationReport:
    """Prune ``work_dir`` down to the ``retain`` newest logs plus the marker.

    Args:
        work_dir: Working directory holding logs and the marker
        retain: Number of most recently modified log files to keep
        marker_name: File name that is never deleted

    Returns:
        RotationReport describing the pass
    """
    report = RotationReport()
    work_dir = Path(work_dir)

    if not work_dir.is_dir():
        logger.debug(f"Working directory {work_dir} does not exist, nothing to rotate")
        return report

    files = [p for p in work_dir.iterdir() if p.is_file()]
    logs = sorted((p for p in files if _is_log_file(p)), key=lambda p: p.stat().st_mtime, reverse=True)
    keep = set(logs[: max(retain, 0)])

    for path in files:
        if path.name == marker_name or path in keep:
            report.kept.append(path)
            continue

        try:
            path.unlink()
            report.removed.append(path)
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {e}")
            report.failed.append(path)

    logger.info(f"Log rotation: kept {len(report.kept)} file(s), removed {len(report.removed)}")
    return report
