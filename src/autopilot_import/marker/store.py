"""Completion marker for the import workflow.

The marker is a small text file in the working directory. Its existence means
the device has been imported; the next scheduled run exits immediately. The
file is created once and never rewritten by this package.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from ..models import DeviceIdentity, ImportState


class CompletionMarker:
    """Durable "already done" flag for one device."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def write(
        self,
        identity: DeviceIdentity,
        import_id: Optional[str],
        state: Optional[ImportState],
        group_tag: Optional[str] = None,
    ) -> bool:
        """Create the marker with a run summary.

        Returns:
            True if the marker was created, False if one already existed
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        lines = [
            "Autopilot device import completed",
            f"Completed at: {datetime.now().isoformat(timespec='seconds')}",
            f"Serial number: {identity.serial_number}",
            f"Import id: {import_id or 'n/a'}",
            f"Import state: {state.value if state else 'n/a'}",
            f"Group tag: {group_tag or 'none'}",
        ]

        try:
            # "x" refuses to replace an existing marker
            with open(self.path, "x", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
        except FileExistsError:
            logger.info(f"Completion marker already present at {self.path}, leaving it untouched")
            return False

        logger.info(f"Wrote completion marker {self.path}")
        return True

    def read(self) -> Optional[str]:
        """Marker contents, or None if there is no marker."""
        if not self.exists():
            return None
        return self.path.read_text(encoding="utf-8")
