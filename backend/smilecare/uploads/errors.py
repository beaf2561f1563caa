"""Typed errors raised by the photo upload lifecycle."""

INVALID_FILE = "INVALID_FILE"
INVALID_TYPE = "INVALID_TYPE"
FILE_TOO_LARGE = "FILE_TOO_LARGE"
UPLOAD_FAILED = "UPLOAD_FAILED"
ROLLBACK_FAILED = "ROLLBACK_FAILED"
DUPLICATE_UPLOAD = "DUPLICATE_UPLOAD"


class PhotoUploadError(Exception):
    """Upload failure with a machine-readable code and a message fit for users."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class PhotoValidationError(PhotoUploadError):
    """The file was rejected before anything was uploaded."""


class DuplicateUploadError(PhotoUploadError):
    def __init__(self, patient_id: str):
        super().__init__(DUPLICATE_UPLOAD, "Upload already in progress for this patient")
        self.patient_id = patient_id


class UploadFailedError(PhotoUploadError):
    def __init__(self, attempts: int):
        super().__init__(
            UPLOAD_FAILED,
            f"Failed to upload photo after {attempts} attempts. Please try again.",
        )
        self.attempts = attempts


class RollbackFailedError(PhotoUploadError):
    """A partially uploaded object could not be removed."""

    def __init__(self, path: str, reason: str):
        super().__init__(ROLLBACK_FAILED, f"Failed to cleanup partial upload: {path} ({reason})")
        self.path = path


class TrackingError(Exception):
    """The server rejected or could not be reached for an upload notification."""
