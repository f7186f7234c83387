"""Project-wide custom exceptions."""

from __future__ import annotations

from collections.abc import Sequence


class GridEditError(Exception):
    """Base exception for the grid editing suite."""


class ConfigurationError(GridEditError):
    """Raised when configuration loading or validation fails."""


class DatabaseError(GridEditError):
    """Raised for database-related issues."""


class QueryError(DatabaseError):
    """Raised when snapshot retrieval or query execution fails."""


class MutationError(DatabaseError):
    """Raised when a single update/delete/insert call is rejected by the database."""


class SessionError(GridEditError):
    """Raised when a persisted editing session cannot be loaded or saved."""


class OverlayError(GridEditError):
    """Raised when a pending-change operation is not permitted locally."""


class ReadOnlyTableError(OverlayError):
    """Raised when editing or deleting rows of a table without a primary key."""


class UnknownInsertionError(OverlayError):
    """Raised when a temporary insertion id is not present in the store."""

    def __init__(self, temp_id: str) -> None:
        super().__init__(f"Pending insertion not found: {temp_id!r}")
        self.temp_id = temp_id


class ValueTypeError(OverlayError):
    """Raised when a cell value falls outside the supported raw value types."""


class InsertionValidationError(OverlayError):
    """Raised when pending insertions are missing required column values."""

    def __init__(self, errors: dict[str, dict[str, str]]) -> None:
        details = "; ".join(
            f"{temp_id}: " + ", ".join(f"{column} ({message})" for column, message in sorted(fields.items()))
            for temp_id, fields in errors.items()
        )
        super().__init__(f"Pending insertion(s) failed validation: {details}")
        self.errors = errors


class CommitError(GridEditError):
    """Raised when at least one call in a commit batch was rejected.

    The pending store is left untouched. Calls that succeeded before the
    failure are *not* rolled back.
    """

    def __init__(self, messages: Sequence[str], *, call_count: int) -> None:
        joined = "; ".join(messages)
        super().__init__(f"{len(messages)} of {call_count} change(s) failed: {joined}")
        self.messages = tuple(messages)
        self.call_count = call_count


class CommitInProgressError(CommitError):
    """Raised when a commit is triggered while another one is still in flight."""

    def __init__(self) -> None:
        GridEditError.__init__(self, "A commit is already in progress.")
        self.messages = ()
        self.call_count = 0
