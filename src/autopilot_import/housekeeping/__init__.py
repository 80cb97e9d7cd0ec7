"""Working directory housekeeping."""

from .log_rotation import RotationReport, rotate_logs

__all__ = ["RotationReport", "rotate_logs"]
