"""Error types raised by the table engine."""

from __future__ import annotations

from typing import Any


class AdvancedTableError(Exception):
    """Base exception for table engine errors."""


class FetchError(AdvancedTableError):
    """Raised (and stored on the fetch orchestrator) when a data source fetch fails."""

    def __init__(self, cause: BaseException | None = None, message: str | None = None) -> None:
        self.cause = cause
        if message is None:
            message = "Failed to fetch data"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)


class UnsupportedOperation(AdvancedTableError):
    """Raised when an optional data source capability is not implemented."""

    def __init__(self, operation: str, source: Any = None) -> None:
        self.operation = operation
        self.source_name = type(source).__name__ if source is not None else None
        message = f"Operation {operation!r} is not supported"
        if self.source_name:
            message = f"{message} by {self.source_name}"
        super().__init__(message)


class CommitError(AdvancedTableError):
    """Raised when saving the pending edits of a row fails."""

    def __init__(self, row_id: str, cause: BaseException | None = None) -> None:
        self.row_id = row_id
        self.cause = cause
        message = f"Failed to save row {row_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ValidationError(AdvancedTableError):
    """Raised by a column validation rule before a commit is attempted."""

    def __init__(self, column_key: str, message: str, row_id: str | None = None) -> None:
        self.column_key = column_key
        self.row_id = row_id
        self.reason = message
        super().__init__(f"{column_key}: {message}")
