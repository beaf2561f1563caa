#Patient photo upload lifecycle: validation, object storage, tracking, re-pathing.
from .errors import (
    DuplicateUploadError, PhotoUploadError, PhotoValidationError, RollbackFailedError,
    TrackingError, UploadFailedError,
)
from .manager import PhotoUploadManager
from .object_store import FirebaseObjectStore, MemoryObjectStore, ObjectStore
from .repath import repath_patient_photo
from .tracking import HttpUploadTracker, StorageUploadTracker, UploadTracker
from .validation import PhotoUploadOptions, validate_photo

__all__ = [
    "PhotoUploadError", "PhotoValidationError", "DuplicateUploadError", "UploadFailedError",
    "RollbackFailedError", "TrackingError",
    "PhotoUploadManager",
    "ObjectStore", "FirebaseObjectStore", "MemoryObjectStore",
    "repath_patient_photo",
    "UploadTracker", "HttpUploadTracker", "StorageUploadTracker",
    "PhotoUploadOptions", "validate_photo",
]
