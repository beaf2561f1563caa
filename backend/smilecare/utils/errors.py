#Uniform JSON error body and the exception handlers that produce it.
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..logging import get_logger
from ..storage.errors import ConflictError, InvalidRecordError
from ..uploads.errors import (
    DuplicateUploadError, PhotoUploadError, PhotoValidationError, UploadFailedError,
)

logger = get_logger(__name__)


#{error, details, timestamp, statusCode}
def error_body(message: str, details: Any = None, status_code: int = 500) -> dict:
    return {
        "error": message,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "statusCode": status_code,
    }


def error_response(message: str, details: Any = None, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message, details, status_code))


class APIError(HTTPException):
    """HTTPException that also carries structured details for the error body."""

    def __init__(self, status_code: int, message: str, details: Optional[Any] = None):
        super().__init__(status_code=status_code, detail=message)
        self.details = details


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = error_response(str(exc.detail), getattr(exc, "details", None), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg"),
            "code": err.get("type"),
        }
        for err in exc.errors()
    ]
    return error_response("Validation failed", details, status.HTTP_400_BAD_REQUEST)


#Record-level validation raised by the stores after the request body passed
async def record_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg"),
            "code": err.get("type"),
        }
        for err in exc.errors()
    ]
    return error_response("Validation failed", details, status.HTTP_400_BAD_REQUEST)


async def invalid_record_exception_handler(request: Request, exc: InvalidRecordError) -> JSONResponse:
    return error_response("Validation failed", str(exc), status.HTTP_400_BAD_REQUEST)


async def conflict_exception_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return error_response(str(exc), None, status.HTTP_409_CONFLICT)


async def photo_upload_exception_handler(request: Request, exc: PhotoUploadError) -> JSONResponse:
    if isinstance(exc, PhotoValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, DuplicateUploadError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, UploadFailedError):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.warning("photo_upload_rejected", code=exc.code, error=exc.message, status_code=status_code)
    return error_response(exc.message, {"code": exc.code}, status_code)


#Register every handler on the app
def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, record_validation_exception_handler)
    app.add_exception_handler(InvalidRecordError, invalid_record_exception_handler)
    app.add_exception_handler(ConflictError, conflict_exception_handler)
    app.add_exception_handler(PhotoUploadError, photo_upload_exception_handler)
