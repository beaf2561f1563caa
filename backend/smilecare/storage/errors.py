"""
Uniform error taxonomy for storage backends.

Provider-specific failures (Firestore, Cloud Storage) are translated into one
of three kinds so callers never depend on a client library's exceptions.
"""


class StorageError(Exception):
    """Base class for backend failures; carries the provider's message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PermissionDeniedError(StorageError):
    """Credentials missing, rejected or lacking access."""


class NotFoundError(StorageError):
    """The addressed document or object does not exist."""


class StoreError(StorageError):
    """Any other provider failure (network, quota, internal)."""


class ConflictError(ValueError):
    """A uniqueness rule would be violated. Raised for caller mistakes, not outages."""


class InvalidRecordError(ValueError):
    """Caller data cannot form a valid record (a required field is missing or null)."""
