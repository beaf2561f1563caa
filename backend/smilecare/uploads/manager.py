"""
Patient photo upload lifecycle.

An upload is validated, written to an organized path under the photo folder
and reported to a tracker. At most one upload per patient is in flight;
failed attempts are rolled back and retried with a linear backoff.
"""
import asyncio
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from ..logging import get_logger
from ..schemas.upload import LocalUploadStatus, PhotoUploadResult, TrackPhotoUploadRequest
from ..storage.base import utcnow
from ..storage.errors import NotFoundError, StorageError
from .errors import DuplicateUploadError, RollbackFailedError, UploadFailedError
from .object_store import ObjectStore
from .tracking import UploadTracker
from .validation import PhotoUploadOptions, file_extension, validate_photo

logger = get_logger(__name__)

BASE36 = string.digits + string.ascii_lowercase

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def make_upload_id(patient_id: str, moment: datetime) -> str:
    """<patient id>_<unix millis>_<9 random base36 chars>"""
    suffix = "".join(secrets.choice(BASE36) for _ in range(9))
    return f"{patient_id}_{to_millis(moment)}_{suffix}"


def upload_id_millis(upload_id: str) -> int:
    # patient ids may contain underscores, the last two parts never do
    return int(upload_id.rsplit("_", 2)[1])


def build_photo_path(folder: str, patient_id: str, moment: datetime, extension: str) -> str:
    """<folder>/<YYYY>/<MM>/<patient id>/<patient id>_<unix millis>.<ext>"""
    return f"{folder}/{moment:%Y}/{moment:%m}/{patient_id}/{patient_id}_{to_millis(moment)}.{extension}"


@dataclass
class UploadState:
    patient_id: str
    upload_id: str
    started_at: datetime
    max_retries: int
    retry_count: int = 0
    temp_path: Optional[str] = None
    final_path: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class PhotoUploadManager:
    """Runs photo uploads against an object store, one per patient at a time."""

    def __init__(
        self,
        object_store: ObjectStore,
        tracker: Optional[UploadTracker] = None,
        options: Optional[PhotoUploadOptions] = None,
        *,
        max_retries: int = 3,
        retry_base_seconds: float = 1.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utcnow,
    ) -> None:
        self._store = object_store
        self._tracker = tracker
        self.options = options or PhotoUploadOptions()
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self._sleep = sleep
        self._clock = clock
        self._active: Dict[str, UploadState] = {}

    # ---- upload

    async def upload(
        self,
        patient_id: str,
        filename: str,
        content_type: str,
        data: bytes,
        tracker: Optional[UploadTracker] = None,
    ) -> PhotoUploadResult:
        """Validate and upload a photo, retrying failed attempts."""
        if patient_id in self._active:
            raise DuplicateUploadError(patient_id)

        validate_photo(filename, content_type, data, self.options)

        started_at = self._clock()
        state = UploadState(
            patient_id=patient_id,
            upload_id=make_upload_id(patient_id, started_at),
            started_at=started_at,
            max_retries=self.max_retries,
            task=asyncio.current_task(),
        )
        self._active[patient_id] = state
        try:
            result = await self._upload_with_retries(state, filename, content_type, data)
            await self._track(tracker or self._tracker, state, result, filename)
            return result
        finally:
            if self._active.get(patient_id) is state:
                del self._active[patient_id]

    async def _upload_with_retries(
        self, state: UploadState, filename: str, content_type: str, data: bytes
    ) -> PhotoUploadResult:
        attempts = state.max_retries + 1
        extension = file_extension(filename)

        for attempt in range(1, attempts + 1):
            state.retry_count = attempt - 1
            now = self._clock()
            path = build_photo_path(self.options.folder, state.patient_id, now, extension)
            state.temp_path = path
            metadata = {
                "patient_id": state.patient_id,
                "upload_id": state.upload_id,
                "original_name": filename,
                "upload_timestamp": now.isoformat(),
            }
            try:
                await self._store.put_object(path, data, content_type, metadata)
                url = await self._store.get_download_url(path)
            except StorageError as exc:
                logger.warning(
                    "photo_upload_attempt_failed",
                    patient_id=state.patient_id,
                    upload_id=state.upload_id,
                    attempt=attempt,
                    attempts=attempts,
                    path=path,
                    error=exc.message,
                )
                await self._rollback(path)
                if attempt < attempts:
                    await self._sleep(attempt * self.retry_base_seconds)
                continue

            state.final_path = path
            logger.info("photo_uploaded", patient_id=state.patient_id, upload_id=state.upload_id, path=path)
            return PhotoUploadResult(
                url=url,
                path=path,
                size=len(data),
                content_type=content_type,
                upload_id=state.upload_id,
            )

        logger.error("photo_upload_failed", patient_id=state.patient_id, upload_id=state.upload_id, attempts=attempts)
        raise UploadFailedError(attempts)

    async def _remove_partial(self, path: str) -> None:
        try:
            await self._store.delete_object(path)
        except NotFoundError:
            return
        except StorageError as exc:
            raise RollbackFailedError(path, exc.message) from exc

    async def _rollback(self, path: str) -> None:
        try:
            await self._remove_partial(path)
        except RollbackFailedError as exc:
            logger.warning("photo_upload_rollback_failed", path=path, error=exc.message)

    async def _track(
        self, tracker: Optional[UploadTracker], state: UploadState, result: PhotoUploadResult, filename: str
    ) -> None:
        if tracker is None:
            return
        try:
            await tracker.track(TrackPhotoUploadRequest(
                patient_id=state.patient_id,
                temp_path=result.path,
                original_name=filename,
                size=result.size,
                content_type=result.content_type,
                upload_id=state.upload_id,
            ))
        except Exception as exc:
            # the photo is stored; a missing tracking record is cleaned up later
            logger.warning("photo_upload_tracking_failed", upload_id=state.upload_id, error=str(exc))

    # ---- replace / delete

    async def replace(
        self,
        patient_id: str,
        filename: str,
        content_type: str,
        data: bytes,
        old_path: Optional[str] = None,
        tracker: Optional[UploadTracker] = None,
    ) -> PhotoUploadResult:
        """Upload a new photo, then drop the previous one if it lived elsewhere."""
        result = await self.upload(patient_id, filename, content_type, data, tracker)
        if old_path and old_path != result.path:
            await self.delete(old_path)
        return result

    async def delete(self, path: str) -> bool:
        """Best-effort delete. A missing object counts as deleted."""
        try:
            await self._store.delete_object(path)
        except NotFoundError:
            logger.info("photo_already_deleted", path=path)
            return True
        except StorageError as exc:
            logger.warning("photo_delete_failed", path=path, error=exc.message)
            return False
        logger.info("photo_deleted", path=path)
        return True

    # ---- in-flight uploads

    async def cancel(self, patient_id: str) -> bool:
        """Abort the in-flight upload for a patient, if there is one."""
        state = self._active.pop(patient_id, None)
        if state is None:
            return False

        task = state.task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

        if state.temp_path:
            await self.delete(state.temp_path)

        logger.info("photo_upload_cancelled", patient_id=patient_id, upload_id=state.upload_id)
        return True

    async def sweep_stale(self, max_age_minutes: float = 30) -> List[str]:
        """Cancel uploads older than the threshold; returns their patient ids."""
        now_ms = to_millis(self._clock())
        max_age_ms = max_age_minutes * 60 * 1000
        stale = [
            patient_id
            for patient_id, state in list(self._active.items())
            if now_ms - upload_id_millis(state.upload_id) > max_age_ms
        ]
        for patient_id in stale:
            logger.info("photo_upload_stale", patient_id=patient_id)
            await self.cancel(patient_id)
        return stale

    def status(self, patient_id: str) -> Optional[LocalUploadStatus]:
        state = self._active.get(patient_id)
        if state is None:
            return None
        return LocalUploadStatus(
            patient_id=state.patient_id,
            upload_id=state.upload_id,
            temp_path=state.temp_path,
            final_path=state.final_path,
            retry_count=state.retry_count,
            max_retries=state.max_retries,
            started_at=state.started_at,
        )
