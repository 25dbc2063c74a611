"""Exceptions surfaced to the user as notifications."""

from __future__ import annotations


class WorkSyncError(Exception):
    """Base error. ``message`` is the Portuguese text shown to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkSyncError):
    """Input rejected before any storage access."""


class DataAccessError(WorkSyncError):
    """Storage call failed. The original exception is chained."""


class PermissionDenied(WorkSyncError):
    pass
