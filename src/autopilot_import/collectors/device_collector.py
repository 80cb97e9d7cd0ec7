"""Collects the device identity used for Autopilot registration.

Both values come from CIM through PowerShell:
- BIOS serial number from ``Win32_BIOS``
- hardware hash from ``MDM_DevDetail_Ext01`` in the MDM bridge namespace
"""

from __future__ import annotations

import platform
import subprocess
from typing import Callable, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from ..exceptions import DeviceNotEligibleError
from ..models import DeviceIdentity

SERIAL_QUERY = "(Get-CimInstance -ClassName Win32_BIOS).SerialNumber"
HARDWARE_HASH_QUERY = (
    "(Get-CimInstance -Namespace root/cimv2/mdm/dmmap -ClassName MDM_DevDetail_Ext01 "
    "-Filter \"InstanceID='Ext' AND ParentID='./DevDetail'\").DeviceHardwareData"
)

CommandRunner = Callable[[Sequence[str], int], subprocess.CompletedProcess]


def _run_command(args: Sequence[str], timeout: int) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), capture_output=True, text=True, timeout=timeout, check=False)


class DeviceIdentityCollector:
    """Reads serial number and hardware hash from the local host."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        system: Optional[str] = None,
        timeout_seconds: int = 60,
    ):
        self._runner = runner or _run_command
        self._system = (system or platform.system()).lower()
        self.timeout_seconds = timeout_seconds

    def collect(self) -> DeviceIdentity:
        """Read the device identity.

        Raises:
            DeviceNotEligibleError: the host cannot supply a serial number or hardware hash
        """
        if self._system != "windows":
            raise DeviceNotEligibleError(f"Hardware hash is only available on Windows (running on {self._system})")

        serial = self._query(SERIAL_QUERY, "serial number")
        hardware_hash = self._query(HARDWARE_HASH_QUERY, "hardware hash")

        if not serial:
            raise DeviceNotEligibleError("BIOS serial number is empty")
        if not hardware_hash:
            raise DeviceNotEligibleError("Device has no hardware hash (MDM_DevDetail_Ext01 returned nothing)")

        try:
            identity = DeviceIdentity(serial_number=serial, hardware_hash=hardware_hash)
        except ValidationError as e:
            raise DeviceNotEligibleError(f"Invalid device identity: {e}") from e

        logger.info(f"Device serial: {identity.serial_number}, hardware hash: {len(identity.hardware_hash)} chars")
        return identity

    def _query(self, query: str, label: str) -> str:
        args = ["powershell.exe", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", query]
        try:
            result = self._runner(args, self.timeout_seconds)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise DeviceNotEligibleError(f"Failed to read {label}: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise DeviceNotEligibleError(f"Failed to read {label}: PowerShell exited {result.returncode}: {stderr}")

        value = (result.stdout or "").strip()
        logger.debug(f"Read {label} ({len(value)} chars)")
        return value
