"""Shared fixtures and fakes for the Autopilot import tests."""

from __future__ import annotations

import io
import json
from datetime import datetime, timedelta
from email.message import Message
from pathlib import Path
from typing import Any, List, Optional
from urllib.error import HTTPError

import pytest
from loguru import logger

from autopilot_import.config import ImportConfig, PollingConfig
from autopilot_import.graph import AuthToken
from autopilot_import.models import DeviceIdentity, ImportRecord, ImportState, RegistrationResult

SERIAL = "SER123"
HARDWARE_HASH = "T0FBQUFBQUFB"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of ImportConfig."""
    for name in (
        "AUTOPILOT_TENANT_ID",
        "AUTOPILOT_CLIENT_ID",
        "AUTOPILOT_CLIENT_SECRET",
        "AUTOPILOT_GROUP_TAG",
        "AUTOPILOT_WORK_DIR",
        "AUTOPILOT_LOG_LEVEL",
        "AUTOPILOT_POLL_INTERVAL",
        "AUTOPILOT_POLL_TIMEOUT",
        "AUTOPILOT_LOG_RETENTION",
        "AUTOPILOT_STRICT_LOOKUP",
        "PROGRAMDATA",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> ImportConfig:
    return ImportConfig(
        tenant_id="contoso-tenant",
        client_id="app-client-id",
        client_secret="app-secret",
        work_dir=tmp_path,
        polling=PollingConfig(interval_seconds=30, timeout_seconds=900, heartbeat_every=5),
    )


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def identity() -> DeviceIdentity:
    return DeviceIdentity(serial_number=SERIAL, hardware_hash=HARDWARE_HASH)


@pytest.fixture
def token() -> AuthToken:
    return AuthToken(token="access-token", expires_at=datetime.now() + timedelta(hours=1))


def make_record(state: str, import_id: str = "import-1", code: Optional[int] = 0, name: Optional[str] = None) -> ImportRecord:
    return ImportRecord(id=import_id, serial_number=SERIAL, state=ImportState(state), error_code=code, error_name=name)


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCollector:
    def __init__(self, result: Any = None):
        self.result = result or DeviceIdentity(serial_number=SERIAL, hardware_hash=HARDWARE_HASH)
        self.calls = 0

    def collect(self) -> DeviceIdentity:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeTokenClient:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = 0

    def acquire_token(self) -> AuthToken:
        self.calls += 1
        if self.error:
            raise self.error
        return AuthToken(token="access-token", expires_at=datetime.now() + timedelta(hours=1))


def _next(results: list) -> Any:
    """Pop results in order, repeating the last one forever."""
    result = results.pop(0) if len(results) > 1 else results[0]
    if isinstance(result, Exception):
        raise result
    return result


class FakeGraphClient:
    """Scripted stand-in for GraphImportClient."""

    def __init__(
        self,
        lookups: Optional[list] = None,
        statuses: Optional[list] = None,
        registration: Any = None,
    ):
        self.lookups = list(lookups) if lookups else [None]
        self.statuses = list(statuses) if statuses else [make_record("complete")]
        self.registration = registration or RegistrationResult(import_id="import-1", already_exists=False)
        self.calls: List[tuple] = []

    def find_import_by_serial(self, token: AuthToken, serial: str) -> Optional[ImportRecord]:
        self.calls.append(("find", serial))
        return _next(self.lookups)

    def register_import(self, token: AuthToken, identity: DeviceIdentity, group_tag: Optional[str] = None) -> RegistrationResult:
        self.calls.append(("register", identity.serial_number, group_tag))
        if isinstance(self.registration, Exception):
            raise self.registration
        return self.registration

    def get_import(self, token: AuthToken, import_id: str) -> ImportRecord:
        self.calls.append(("get", import_id))
        return _next(self.statuses)

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeResponse:
    """Minimal urlopen response."""

    def __init__(self, status: int = 200, body: bytes = b""):
        self.status = status
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeOpener:
    """urlopen replacement returning scripted responses and recording requests."""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.requests: list = []

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def json_response(data: Any, status: int = 200) -> FakeResponse:
    return FakeResponse(status=status, body=json.dumps(data).encode("utf-8"))


def http_error(code: int, body: Any = None, reason: str = "Error", url: str = "https://graph.example") -> HTTPError:
    if isinstance(body, (dict, list)):
        raw = json.dumps(body).encode("utf-8")
    else:
        raw = (body or "").encode("utf-8")
    return HTTPError(url, code, reason, Message(), io.BytesIO(raw))
