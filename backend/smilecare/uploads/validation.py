#Checks a patient photo before any byte of it is uploaded.
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .errors import FILE_TOO_LARGE, INVALID_FILE, INVALID_TYPE, PhotoValidationError

ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png")
MAX_SIZE_BYTES = 5 * 1024 * 1024
DEFAULT_FOLDER = "patient-photos"

DANGEROUS_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr", ".com", ".pif", ".vbs", ".js")

JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG"


@dataclass
class PhotoUploadOptions:
    max_size_bytes: int = MAX_SIZE_BYTES
    allowed_types: Tuple[str, ...] = field(default=ALLOWED_TYPES)
    folder: str = DEFAULT_FOLDER


#Validate file type, size, name and content signature, in that order
def validate_photo(
    filename: Optional[str],
    content_type: Optional[str],
    data: Optional[bytes],
    options: Optional[PhotoUploadOptions] = None,
) -> None:
    """Raise PhotoValidationError for the first rule the file breaks."""
    opts = options or PhotoUploadOptions()

    if not data or not filename:
        raise PhotoValidationError(INVALID_FILE, "No file provided")

    if content_type not in opts.allowed_types:
        raise PhotoValidationError(
            INVALID_TYPE,
            f"Invalid file type. Allowed types: {', '.join(opts.allowed_types)}",
        )

    if opts.max_size_bytes and len(data) > opts.max_size_bytes:
        max_mb = opts.max_size_bytes / (1024 * 1024)
        raise PhotoValidationError(FILE_TOO_LARGE, f"File too large. Maximum size: {max_mb:.1f}MB")

    if filename.lower().endswith(DANGEROUS_EXTENSIONS):
        raise PhotoValidationError(INVALID_TYPE, "File type not allowed for security reasons")

    # declared type and detected signature are not cross-checked
    if not (data.startswith(JPEG_SIGNATURE) or data.startswith(PNG_SIGNATURE)):
        raise PhotoValidationError(INVALID_FILE, "File does not appear to be a valid image")


def file_extension(filename: str, default: str = "jpg") -> str:
    """Lowercased extension after the last dot, or the default."""
    if "." not in filename:
        return default
    ext = filename.rsplit(".", 1)[1].lower()
    return ext or default

