"""
Moves a photo uploaded under a placeholder patient id (temp-<millis>) to the
permanent path of the patient that was just created.
"""
import re
from typing import Optional

from ..logging import get_logger
from ..models import AuditAction, AuditEntityType, AuditLogBase, Patient, PhotoUploadStatus
from ..storage.base import Storage, utcnow
from ..storage.errors import StorageError
from .manager import Clock, build_photo_path
from .object_store import ObjectStore
from .validation import DEFAULT_FOLDER, file_extension

logger = get_logger(__name__)

TEMP_ID_PATTERN = re.compile(r"temp-\d+")


def find_temp_id(photo_url: Optional[str]) -> Optional[str]:
    """The placeholder patient id embedded in a photo URL, if any."""
    match = TEMP_ID_PATTERN.search(photo_url or "")
    return match.group(0) if match else None


async def repath_patient_photo(
    storage: Storage,
    object_store: ObjectStore,
    patient: Patient,
    photo_url: str,
    user_id: str,
    folder: str = DEFAULT_FOLDER,
    clock: Clock = utcnow,
) -> Patient:
    """Re-path the pending upload for the URL's placeholder id; returns the patient as stored."""
    temp_id = find_temp_id(photo_url)
    if temp_id is None:
        return patient

    uploads = await storage.get_photo_uploads_for_patient(temp_id)
    pending = next((u for u in uploads if u.status == PhotoUploadStatus.UPLOADED), None)
    if pending is None:
        logger.warning("photo_repath_no_pending_upload", patient_id=patient.id, temp_id=temp_id)
        return patient

    now = clock()
    final_path = build_photo_path(folder, patient.id, now, file_extension(pending.original_name))
    logger.info("photo_repath_started", patient_id=patient.id, temp_id=temp_id, temp_path=pending.temp_path)

    await object_store.copy_object(pending.temp_path, final_path)
    try:
        await object_store.delete_object(pending.temp_path)
    except StorageError as exc:
        logger.warning("photo_repath_temp_delete_failed", temp_path=pending.temp_path, error=exc.message)

    await storage.update_photo_upload(pending.temp_path, {
        "final_path": final_path,
        "patient_id": patient.id,
        "status": PhotoUploadStatus.CONFIRMED,
        "confirmed_at": now,
        "confirmed_by": user_id,
    })

    final_url = await object_store.get_download_url(final_path)
    updated = await storage.update_patient(patient.id, {"profile_photo_url": final_url}) or patient

    await storage.create_audit_log(AuditLogBase(
        user_id=user_id,
        action=AuditAction.REPATH,
        entity_type=AuditEntityType.PATIENT_PHOTO,
        entity_id=patient.id,
        changes={
            "temp_path": pending.temp_path,
            "final_path": final_path,
            "original_photo_url": photo_url,
            "final_photo_url": final_url,
        },
    ))
    logger.info("photo_repath_completed", patient_id=patient.id, final_path=final_path)
    return updated
