"""Exception hierarchy for the synchronization engine."""

from __future__ import annotations


class SyncEngineError(Exception):
    """Base exception for all engine errors."""


class MalformedEntry(SyncEngineError):
    """Raw record is not recognisable as a local or remote server."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class SerializationFailure(SyncEngineError):
    """A raw or converted record could not be rendered as JSON."""


class ApplyFailure(SyncEngineError):
    """Applying one selected name failed."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message)
        self.name = name


class UnsupportedMode(SyncEngineError):
    """Apply request rejected before any mutation."""
