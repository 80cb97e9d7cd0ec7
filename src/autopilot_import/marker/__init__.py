"""Completion marker storage."""

from .store import CompletionMarker

__all__ = ["CompletionMarker"]
