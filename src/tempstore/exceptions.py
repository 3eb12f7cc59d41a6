"""
Custom exception hierarchy for the temporary storage system.

All exceptions inherit from TempStoreError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class TempStoreError(Exception):
    """Base exception for all temporary storage errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(TempStoreError):
    """Raised when an id is unknown or malformed.

    The two cases are deliberately indistinguishable so that callers
    cannot discover the existence of objects they were never given.
    """

    pass


class DuplicateIdError(TempStoreError):
    """Raised when an insert collides with an existing id.

    Random 128-bit ids make this unreachable in practice; if it ever
    happens it is an integrity violation and must not be retried.
    """

    pass


class AllocationFailedError(TempStoreError):
    """Raised when the file store cannot create a backing file.

    Context should include:
        - id: Truncated object id
        - reason: The underlying OS error
    """

    pass


class CreationFailedError(TempStoreError):
    """Raised when creating an entry fails.

    Any partial state (an index row without a file) has already been
    rolled back when this is raised.
    """

    pass


class UnsupportedOperationError(TempStoreError):
    """Raised when a request has a shape the store does not accept.

    Examples:
        - Updating any field other than the content type
        - Supplying a selection/filter where only a bare id is allowed
        - Asking to list stored objects
        - Opening a file with an unknown mode
    """

    pass


class SweepFailedError(TempStoreError):
    """Raised when the metadata index cannot be queried during a sweep."""

    pass


class SchemaVersionError(TempStoreError):
    """Raised when the database was written by a newer schema version.

    Context should include:
        - found: The version stored in the database
        - supported: The newest version this code knows about
    """

    pass
