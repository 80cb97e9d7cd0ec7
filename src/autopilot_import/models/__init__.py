"""Import models package."""

from .import_models import (
    ALREADY_ASSIGNED_ERROR_CODE,
    ALREADY_ASSIGNED_ERROR_NAME,
    DeviceIdentity,
    ImportRecord,
    ImportRequest,
    ImportState,
    RegistrationResult,
)

__all__ = [
    "DeviceIdentity",
    "ImportRecord",
    "ImportRequest",
    "ImportState",
    "RegistrationResult",
    "ALREADY_ASSIGNED_ERROR_CODE",
    "ALREADY_ASSIGNED_ERROR_NAME",
]
