#Input sanitizers shared by the request schemas
import re

NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
DISPLAY_NAME_PATTERN = re.compile(r"^[a-zA-Z\s.'-]+$")
PHONE_PATTERN = re.compile(r"^[+]?[0-9\s()-]+$")
SEARCH_PATTERN = re.compile(r"^[a-zA-Z0-9\s@._+-]+$")
RECORD_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
TAG_PATTERN = re.compile(r"<[^>]*>")
CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class SecureTextValidator:
    """Static checks raising ValueError, so pydantic reports them as field errors."""

    #partial updates may omit a required field but never null it
    @staticmethod
    def require_value(value, field: str):
        if value is None:
            raise ValueError(f"{field.replace('_', ' ').capitalize()} cannot be null")
        return value

    @staticmethod
    def sanitize_name(value: str, field: str = "Name", max_length: int = 50) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{field} is required")
        if len(value) > max_length:
            raise ValueError(f"{field} too long")
        if not NAME_PATTERN.match(value):
            raise ValueError(f"{field} contains invalid characters")
        return value

    #staff names may carry titles such as "Dr."
    @staticmethod
    def sanitize_display_name(value: str, max_length: int = 100) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        if len(value) > max_length:
            raise ValueError("Name too long")
        if not DISPLAY_NAME_PATTERN.match(value):
            raise ValueError("Name contains invalid characters")
        return value

    @staticmethod
    def validate_phone_field(value: str, field: str = "Phone number") -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError(f"Invalid {field.lower()} format")
        value = re.sub(r"\s", "", value)
        if len(value) < 10:
            raise ValueError(f"{field} must be at least 10 digits")
        if len(value) > 20:
            raise ValueError(f"{field} too long")
        return value

    #Strip markup and control characters from free text
    @staticmethod
    def sanitize_notes(value: str, max_length: int = 2000) -> str:
        value = CONTROL_PATTERN.sub("", TAG_PATTERN.sub("", value)).strip()
        if len(value) > max_length:
            raise ValueError(f"Text too long (max {max_length} characters)")
        return value

    @staticmethod
    def validate_search_query(value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Search query cannot be empty")
        if len(value) > 100:
            raise ValueError("Search query too long")
        if not SEARCH_PATTERN.match(value):
            raise ValueError("Invalid characters in search query")
        return value

    @staticmethod
    def validate_record_id(value: str) -> str:
        if not value or len(value) > 50 or not RECORD_ID_PATTERN.match(value):
            raise ValueError("Invalid id format")
        return value
