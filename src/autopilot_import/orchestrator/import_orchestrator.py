"""Drives one device through Autopilot import registration.

Flow: read identity, acquire a token, look for an existing import by serial,
register if there is none, poll the import until it settles, then write the
completion marker. Every fatal problem is an ``ImportWorkflowError``; ``run``
turns it into exit code 1 and the next scheduled run starts over.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from ..collectors import DeviceIdentityCollector
from ..config import ImportConfig
from ..exceptions import ConfigurationError, GraphRequestError, ImportFailedError, ImportTimeoutError, ImportWorkflowError
from ..graph import AuthToken, GraphImportClient, TokenClient
from ..marker import CompletionMarker
from ..models import DeviceIdentity, ImportRecord, ImportState
from .poller import PollDecision, PollTimeout, poll_until


class WorkflowOutcome(Enum):
    """How a successful run ended."""

    SKIPPED = "skipped"  # marker already present
    COMPLETE = "complete"
    ALREADY_ASSIGNED = "already_assigned"  # service error 806
    ALREADY_REGISTERED = "already_registered"  # duplicate on create, no record to follow


_PROGRESS_MESSAGES = {
    None: "Import {id} is not visible yet",
    ImportState.UNKNOWN: "Import {id} accepted, waiting for the service to pick it up",
    ImportState.PENDING: "Import {id} is queued for processing",
    ImportState.PROCESSING: "Hardware hash for import {id} is being processed",
}


def classify_import(record: Optional[ImportRecord]) -> PollDecision:
    """Map one status observation to a polling decision.

    ``None`` stands for a 404 on the status lookup.
    """
    if record is None or record.state.is_in_progress:
        return PollDecision.CONTINUE
    if record.is_successful:
        return PollDecision.SUCCEED
    return PollDecision.FAIL


class ProgressLogger:
    """Logs in-progress states on change and on every Nth poll."""

    def __init__(self, import_id: str, heartbeat_every: int = 5):
        self.import_id = import_id
        self.heartbeat_every = heartbeat_every
        self._last_state: object = object()

    def __call__(self, attempt: int, record: Optional[ImportRecord]) -> None:
        state = record.state if record is not None else None
        if state is not None and not state.is_in_progress:
            return

        message = _PROGRESS_MESSAGES[state].format(id=self.import_id)
        if state != self._last_state:
            logger.info(message)
        elif attempt % self.heartbeat_every == 0:
            logger.info(f"{message} (poll {attempt})")
        self._last_state = state


class ImportOrchestrator:
    """Runs the enrollment import workflow for the local device."""

    def __init__(
        self,
        config: ImportConfig,
        collector: Optional[DeviceIdentityCollector] = None,
        token_client: Optional[TokenClient] = None,
        graph_client: Optional[GraphImportClient] = None,
        marker: Optional[CompletionMarker] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.collector = collector or DeviceIdentityCollector()
        self.token_client = token_client or TokenClient(config)
        self.graph_client = graph_client or GraphImportClient(config)
        self.marker = marker or CompletionMarker(config.marker_path)
        self._sleep = sleep
        self._clock = clock

    def run(self) -> int:
        """Run the workflow and return the process exit code."""
        try:
            outcome = self.execute()
        except ImportWorkflowError as e:
            logger.error(f"Autopilot import failed: {e}")
            return 1
        except Exception:
            logger.exception("Unexpected error during Autopilot import")
            return 1

        logger.info(f"Autopilot import finished: {outcome.value}")
        return 0

    def execute(self) -> WorkflowOutcome:
        """Run the workflow.

        Raises:
            ImportWorkflowError: any fatal condition
        """
        if self.marker.exists():
            logger.info(f"Completion marker {self.marker.path} found, import skipped")
            return WorkflowOutcome.SKIPPED

        is_valid, errors = self.config.validate()
        if not is_valid:
            raise ConfigurationError(errors)

        identity = self.collector.collect()
        token = self.token_client.acquire_token()

        existing = self.find_existing_import(token, identity.serial_number)
        if existing is not None:
            logger.info(f"Found existing import {existing.id} in state {existing.state.value}")
            if existing.is_successful:
                return self._finish(identity, existing)
            import_id = existing.id
        else:
            result = self.graph_client.register_import(token, identity, self.config.group_tag)
            import_id = result.import_id

            if result.already_exists:
                # a failed query here is fatal; only a confirmed miss counts as registered
                recovered = self.graph_client.find_import_by_serial(token, identity.serial_number)
                if recovered is None:
                    logger.warning(f"Device {identity.serial_number} is already registered but has no import record to follow")
                    self._write_marker(identity, None, None)
                    return WorkflowOutcome.ALREADY_REGISTERED
                if recovered.is_successful:
                    return self._finish(identity, recovered)
                import_id = recovered.id

        record = self.wait_for_import(token, import_id)
        return self._finish(identity, record)

    def find_existing_import(self, token: AuthToken, serial: str) -> Optional[ImportRecord]:
        """Look up an import by serial; a failed query counts as "not found" unless strict."""
        try:
            return self.graph_client.find_import_by_serial(token, serial)
        except GraphRequestError as e:
            if self.config.strict_lookup:
                raise
            logger.warning(f"Could not check for an existing import of {serial}, continuing with registration: {e}")
            return None

    def wait_for_import(self, token: AuthToken, import_id: str) -> ImportRecord:
        """Poll ``import_id`` until it completes.

        Raises:
            ImportFailedError: the service reported a genuine error
            ImportTimeoutError: no terminal state before the deadline
            GraphRequestError: status lookup failed with anything but 404
        """
        polling = self.config.polling
        logger.info(f"Waiting for import {import_id} (every {polling.interval_seconds:.0f}s, up to {polling.timeout_seconds:.0f}s)")

        try:
            result = poll_until(
                lambda: self._fetch_status(token, import_id),
                classify_import,
                interval=polling.interval_seconds,
                timeout=polling.timeout_seconds,
                on_attempt=ProgressLogger(import_id, polling.heartbeat_every),
                sleep=self._sleep,
                clock=self._clock,
            )
        except PollTimeout as e:
            raise ImportTimeoutError(import_id, e.elapsed_seconds, e.attempts) from e

        record = result.value
        if not result.succeeded:
            raise ImportFailedError(import_id, record.error_code, record.error_name)

        if record.state.is_error:
            logger.info(f"Import {import_id} reports {record.error_name or record.error_code}: device is already assigned, treating as success")
        else:
            logger.info(f"Import {import_id} completed after {result.attempts} poll(s)")
        return record

    def _fetch_status(self, token: AuthToken, import_id: str) -> Optional[ImportRecord]:
        try:
            return self.graph_client.get_import(token, import_id)
        except GraphRequestError as e:
            if e.is_not_found:
                return None
            raise

    def _finish(self, identity: DeviceIdentity, record: ImportRecord) -> WorkflowOutcome:
        self._write_marker(identity, record.id, record.state)
        if record.state is ImportState.COMPLETE:
            return WorkflowOutcome.COMPLETE
        return WorkflowOutcome.ALREADY_ASSIGNED

    def _write_marker(self, identity: DeviceIdentity, import_id: Optional[str], state: Optional[ImportState]) -> None:
        self.marker.write(identity, import_id, state, self.config.group_tag)
