"""
Upload trackers: how a finished upload is reported to the clinic records.

HttpUploadTracker is the client side of the /uploads/photos endpoints;
StorageUploadTracker writes the same records in-process through the
storage façade.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx

from ..logging import get_logger
from ..models import AuditAction, AuditEntityType, AuditLogBase, PhotoUploadBase
from ..schemas.upload import TrackPhotoUploadRequest
from ..storage.base import Storage, utcnow
from .errors import TrackingError

logger = get_logger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


class UploadTracker(Protocol):
    async def track(self, upload: TrackPhotoUploadRequest) -> None: ...


class HttpUploadTracker:
    """Reports uploads to the API with the caller's bearer token."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._token_provider = token_provider
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, token: str, json: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Authorization": f"Bearer {token}"}
        async with httpx.AsyncClient(base_url=self._base, timeout=self._timeout, transport=self._transport) as client:
            response = await client.request(method, path, headers=headers, json=json)
        if not response.is_success:
            raise TrackingError(_error_text(response))
        return response.json()

    async def _require_token(self) -> str:
        token = await self._token_provider()
        if not token:
            raise TrackingError("No authentication token available")
        return token

    async def track(self, upload: TrackPhotoUploadRequest) -> None:
        token = await self._token_provider()
        if not token:
            logger.warning("upload_tracking_skipped", upload_id=upload.upload_id, reason="no auth token")
            return
        await self._request("POST", "/uploads/photos/track", token, json=upload.model_dump())
        logger.info("upload_tracked", upload_id=upload.upload_id)

    async def repath(self, temp_path: str, final_path: str, patient_id: str) -> None:
        token = await self._require_token()
        await self._request("POST", "/uploads/photos/repath", token, json={
            "temp_path": temp_path,
            "final_path": final_path,
            "patient_id": patient_id,
        })
        logger.info("upload_repath_reported", patient_id=patient_id, final_path=final_path)

    async def cleanup(self, upload_id: str) -> None:
        token = await self._require_token()
        await self._request("DELETE", f"/uploads/photos/{upload_id}", token)

    async def status(self, patient_id: str) -> List[Dict[str, Any]]:
        """Server-side tracking records for a patient; empty on any failure."""
        try:
            token = await self._require_token()
            return await self._request("GET", f"/uploads/photos/status/{patient_id}", token)
        except (TrackingError, httpx.HTTPError) as exc:
            logger.error("upload_status_failed", patient_id=patient_id, error=str(exc))
            return []

    async def cleanup_stale(self, max_age_hours: float = 24) -> int:
        token = await self._require_token()
        body = await self._request("POST", "/uploads/photos/cleanup-stale", token, json={"max_age_hours": max_age_hours})
        return body.get("cleaned_uploads") or 0


def _error_text(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except ValueError:
        error = None
    return f"Server tracking failed: {error or response.reason_phrase or 'Unknown error'}"


class StorageUploadTracker:
    """Writes the tracking record and its audit entry straight to storage."""

    def __init__(self, storage: Storage, user_id: str) -> None:
        self._storage = storage
        self._user_id = user_id

    async def track(self, upload: TrackPhotoUploadRequest) -> None:
        await self._storage.track_photo_upload(PhotoUploadBase(
            **upload.model_dump(),
            uploaded_by=self._user_id,
            uploaded_at=utcnow(),
        ))
        await self._storage.create_audit_log(AuditLogBase(
            user_id=self._user_id,
            action=AuditAction.UPLOAD,
            entity_type=AuditEntityType.PATIENT_PHOTO,
            entity_id=upload.patient_id,
            changes={
                "upload_id": upload.upload_id,
                "temp_path": upload.temp_path,
                "original_name": upload.original_name,
                "size": upload.size,
            },
        ))
