"""Pydantic models for device identities and import records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ALREADY_ASSIGNED_ERROR_CODE = 806
ALREADY_ASSIGNED_ERROR_NAME = "ZtdDeviceAlreadyAssigned"
IMPORT_ODATA_TYPE = "#microsoft.graph.importedWindowsAutopilotDeviceIdentity"


class ImportState(Enum):
    """Remote ``deviceImportStatus`` values."""

    UNKNOWN = "unknown"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"
    FAILED = "failed"

    @property
    def is_in_progress(self) -> bool:
        return self in (ImportState.UNKNOWN, ImportState.PENDING, ImportState.PROCESSING)

    @property
    def is_error(self) -> bool:
        return self in (ImportState.ERROR, ImportState.FAILED)


# Service spellings that are not enum values
_STATE_ALIASES = {
    "partial": ImportState.PROCESSING,
}


class DeviceIdentity(BaseModel):
    """Serial number and hardware hash read from the local device."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")

    serial_number: str = Field(..., min_length=1, description="BIOS serial number")
    hardware_hash: str = Field(..., min_length=1, description="Opaque hardware identification blob (base64)")


class ImportRequest(BaseModel):
    """Body of the device-identity import creation request."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True, extra="forbid")

    odata_type: str = Field(default=IMPORT_ODATA_TYPE, alias="@odata.type")
    serial_number: str = Field(..., min_length=1, alias="serialNumber")
    hardware_identifier: str = Field(..., min_length=1, alias="hardwareIdentifier")
    group_tag: Optional[str] = Field(None, alias="groupTag")

    @classmethod
    def for_device(cls, identity: DeviceIdentity, group_tag: Optional[str] = None) -> ImportRequest:
        return cls(
            serial_number=identity.serial_number,
            hardware_identifier=identity.hardware_hash,
            group_tag=group_tag or None,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Convert to the JSON body, leaving out ``groupTag`` when unset."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ImportRecord(BaseModel):
    """A device-identity import as reported by the service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    serial_number: Optional[str] = Field(None, alias="serialNumber")
    state: ImportState = ImportState.UNKNOWN
    error_code: Optional[int] = Field(None, alias="errorCode")
    error_name: Optional[str] = Field(None, alias="errorName")

    @model_validator(mode="before")
    @classmethod
    def flatten_state(cls, data: Any) -> Any:
        """Lift the nested service ``state`` object into flat fields."""
        if isinstance(data, dict) and isinstance(data.get("state"), dict):
            nested = data["state"]
            data = {
                **data,
                "state": nested.get("deviceImportStatus"),
                "errorCode": nested.get("deviceErrorCode"),
                "errorName": nested.get("deviceErrorName"),
            }
        return data

    @field_validator("state", mode="before")
    @classmethod
    def parse_state(cls, v: Any) -> ImportState:
        if isinstance(v, ImportState):
            return v
        if not v:
            return ImportState.UNKNOWN
        text = str(v).strip().lower()
        if text in _STATE_ALIASES:
            return _STATE_ALIASES[text]
        try:
            return ImportState(text)
        except ValueError:
            return ImportState.UNKNOWN

    @field_validator("error_name", mode="before")
    @classmethod
    def blank_error_name(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def is_already_assigned(self) -> bool:
        """The service says the device already belongs to the tenant."""
        return self.error_code == ALREADY_ASSIGNED_ERROR_CODE or self.error_name == ALREADY_ASSIGNED_ERROR_NAME

    @property
    def is_successful(self) -> bool:
        return self.state is ImportState.COMPLETE or (self.state.is_error and self.is_already_assigned)


class RegistrationResult(BaseModel):
    """Outcome of a creation request."""

    import_id: Optional[str] = None
    already_exists: bool = False
