"""Client for the imported Windows Autopilot device identity endpoints.

Three calls are used:
- search the import collection by serial number
- create a new import from the device identity
- read one import by id to follow its status
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from urllib.request import Request, urlopen

from loguru import logger
from pydantic import ValidationError

from ..config import ImportConfig
from ..exceptions import GraphRequestError, RegistrationError
from ..models import (
    ALREADY_ASSIGNED_ERROR_CODE,
    ALREADY_ASSIGNED_ERROR_NAME,
    DeviceIdentity,
    ImportRecord,
    ImportRequest,
    RegistrationResult,
)
from .auth import AuthToken
from .transport import Opener, send_request

_DUPLICATE_PATTERN = re.compile(
    rf"already\s+(exists|registered|assigned|imported)|{ALREADY_ASSIGNED_ERROR_NAME}",
    re.IGNORECASE,
)

# safety stop for a service that keeps returning nextLink
_MAX_PAGES = 50


def serial_filter(serial: str) -> str:
    """OData ``$filter`` expression matching a serial number."""
    escaped = serial.replace("'", "''")
    return f"contains(serialNumber,'{escaped}')"


def is_duplicate_registration(error: GraphRequestError) -> bool:
    """True when a failed creation means the device is already registered."""
    if error.is_conflict:
        return True
    if (error.code or "").strip() == str(ALREADY_ASSIGNED_ERROR_CODE):
        return True
    text = f"{error.code or ''} {error}"
    return bool(_DUPLICATE_PATTERN.search(text))


class GraphImportClient:
    """Device-identity import operations against the device-management API."""

    def __init__(self, config: ImportConfig, opener: Opener = urlopen):
        self.config = config
        self._opener = opener

    def find_import_by_serial(self, token: AuthToken, serial: str) -> Optional[ImportRecord]:
        """Look up an existing import for ``serial``.

        Every result page is read, following ``@odata.nextLink``.

        Raises:
            GraphRequestError: the query failed or returned an unreadable body
        """
        url: Optional[str] = f"{self.config.imports_url}?$filter={quote(serial_filter(serial), safe='(),')}"

        matches: List[ImportRecord] = []
        pages = 0
        while url and pages < _MAX_PAGES:
            status, data = self._send(Request(url, method="GET"), token)
            pages += 1

            items = data.get("value") or []
            if not isinstance(items, list):
                raise GraphRequestError(f"Unexpected import search result: 'value' is {type(items).__name__}", status=status)

            for item in items:
                try:
                    record = ImportRecord.model_validate(item)
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable import record: {e}")
                    continue
                # contains() can match longer serials
                if (record.serial_number or "").strip().lower() == serial.strip().lower():
                    matches.append(record)

            url = data.get("@odata.nextLink")

        if url:
            logger.warning(f"Stopped reading import search results for {serial} after {pages} pages")

        if not matches:
            logger.debug(f"No import record found for serial {serial}")
            return None

        if len(matches) > 1:
            logger.warning(f"Found {len(matches)} import records for serial {serial}, using {matches[0].id}")

        return matches[0]

    def register_import(self, token: AuthToken, identity: DeviceIdentity, group_tag: Optional[str] = None) -> RegistrationResult:
        """Create a device-identity import.

        A duplicate response is a success with ``already_exists=True``.

        Raises:
            RegistrationError: creation failed for any other reason
        """
        payload = ImportRequest.for_device(identity, group_tag).to_payload()
        request = Request(
            self.config.imports_url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            status, data = self._send(request, token)
        except GraphRequestError as e:
            if is_duplicate_registration(e):
                logger.info(f"Device {identity.serial_number} is already registered ({e})")
                return RegistrationResult(import_id=None, already_exists=True)
            raise RegistrationError(f"Failed to register device {identity.serial_number}: {e}") from e

        try:
            record = ImportRecord.model_validate(data)
        except ValidationError as e:
            raise RegistrationError(f"Registration returned HTTP {status} without a usable import record: {e}") from e

        logger.info(f"Registered device {identity.serial_number} as import {record.id}")
        return RegistrationResult(import_id=record.id, already_exists=False)

    def get_import(self, token: AuthToken, import_id: str) -> ImportRecord:
        """Read one import by id.

        Raises:
            GraphRequestError: the lookup failed (``is_not_found`` for 404)
        """
        url = f"{self.config.imports_url}/{quote(import_id, safe='')}"
        status, data = self._send(Request(url, method="GET"), token)

        try:
            return ImportRecord.model_validate(data)
        except ValidationError as e:
            raise GraphRequestError(f"Unreadable import record {import_id}: {e}", status=status) from e

    def _send(self, request: Request, token: AuthToken) -> tuple[int, Dict[str, Any]]:
        request.add_header("Authorization", token.to_header())
        logger.debug(f"{request.get_method()} {request.full_url}")
        return send_request(request, self.config.request_timeout_seconds, self._opener)
