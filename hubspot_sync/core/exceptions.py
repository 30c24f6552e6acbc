"""
Error taxonomy for the incremental sync.
"""

from typing import Any


class SyncError(Exception):
    """Base class for sync failures."""

    def __init__(self, message: str, detail: Any = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)


class AuthError(SyncError):
    """Raised when the access token could not be refreshed."""

    def __init__(self, message: str, hub_id: str | None = None, detail: Any = None) -> None:
        self.hub_id = hub_id
        super().__init__(message, detail)


class FetchExhausted(SyncError):
    """Raised when a search call kept failing after every retry."""

    def __init__(self, object_type: str, attempts: int, detail: Any = None) -> None:
        self.object_type = object_type
        self.attempts = attempts
        super().__init__(f"Failed to fetch {object_type} after {attempts} attempts", detail)


class AssociationFetchError(SyncError):
    """Raised when an association read or its dependent batch read failed."""


class SinkError(SyncError):
    """Raised by drain when one or more flushes to the event sink failed."""

    def __init__(self, message: str, count: int = 0, detail: Any = None) -> None:
        self.count = count
        super().__init__(message, detail)


class PersistenceError(SyncError):
    """Raised when the domain record could not be loaded or saved."""
