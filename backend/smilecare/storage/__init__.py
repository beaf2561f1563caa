#Storage backends and the façade the app talks to.
from .base import Storage
from .errors import (
    ConflictError, InvalidRecordError, NotFoundError, PermissionDeniedError, StorageError, StoreError,
)
from .hybrid import BackendState, HybridStorage
from .memory import MemoryStorage

__all__ = [
    "Storage",
    "StorageError", "PermissionDeniedError", "NotFoundError", "StoreError", "ConflictError", "InvalidRecordError",
    "BackendState", "HybridStorage",
    "MemoryStorage",
]
