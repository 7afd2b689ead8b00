"""Error types for hostwatch."""

from __future__ import annotations

__all__ = ["MonitorError", "PersistenceError", "SourceUnavailableError"]


class MonitorError(Exception):
    """Base class for monitor failures, keeping the originating exception."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Store the message and the exception that triggered it."""
        super().__init__(message)
        self.cause = cause


class SourceUnavailableError(MonitorError):
    """An OS metrics or log source failed to respond."""

    def __init__(self, source: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{source}: {message}", cause)
        self.source = source


class PersistenceError(MonitorError):
    """A write or maintenance statement against the store failed."""

    def __init__(self, operation: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{operation}: {message}", cause)
        self.operation = operation
