"""Error taxonomy for the enrollment import workflow.

Every fatal condition of a run is an ``ImportWorkflowError`` subclass. The
orchestrator turns any of them into a logged error and a non-zero exit code;
nothing here is retried in-process.
"""

from __future__ import annotations

from typing import Optional


class ImportWorkflowError(Exception):
    """Base class for all fatal workflow errors."""


class ConfigurationError(ImportWorkflowError):
    """Configuration is missing required values or is inconsistent."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


class AuthenticationError(ImportWorkflowError):
    """The client-credentials token exchange failed."""


class DeviceNotEligibleError(ImportWorkflowError):
    """The local device cannot provide a serial number or hardware hash."""


class GraphRequestError(ImportWorkflowError):
    """A call to the device-management API failed.

    ``status`` is the HTTP status code, or ``None`` when the request never
    reached the service (DNS, TLS, connection reset).
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        self.status = status
        self.code = code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_conflict(self) -> bool:
        return self.status == 409


class RegistrationError(ImportWorkflowError):
    """Creating the device-identity import failed for a reason other than a duplicate."""


class ImportFailedError(ImportWorkflowError):
    """The service reported a genuine error state for the import."""

    def __init__(self, import_id: str, error_code: Optional[int], error_name: Optional[str]):
        self.import_id = import_id
        self.error_code = error_code
        self.error_name = error_name
        super().__init__(f"Import {import_id} failed with error code {error_code} ({error_name or 'no error name'})")


class ImportTimeoutError(ImportWorkflowError):
    """No terminal import state was observed before the polling deadline."""

    def __init__(self, import_id: str, elapsed_seconds: float, attempts: int):
        self.import_id = import_id
        self.elapsed_seconds = elapsed_seconds
        self.attempts = attempts
        super().__init__(
            f"Import {import_id} did not reach a terminal state after {elapsed_seconds:.0f}s ({attempts} polls); "
            "it may still complete in the background"
        )
