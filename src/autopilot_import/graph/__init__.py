"""HTTP clients for the identity platform and device-management API."""

from .auth import AuthToken, TokenClient
from .client import GraphImportClient, is_duplicate_registration, serial_filter

__all__ = ["AuthToken", "TokenClient", "GraphImportClient", "is_duplicate_registration", "serial_filter"]
