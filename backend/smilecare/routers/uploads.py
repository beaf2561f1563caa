from fastapi import APIRouter, Depends, File, Form, HTTPException, status, UploadFile
from typing import List, Optional

from ..config import settings
from ..database import get_storage, get_upload_manager
from ..logging import get_logger
from ..models import AuditAction, AuditEntityType, PhotoUpload, PhotoUploadStatus, User, UserRole
from ..schemas.upload import (
    CleanupStaleRequest, PhotoUploadResult, RepathRequest, TrackPhotoUploadRequest, UploadActionResponse,
)
from ..storage import Storage
from ..storage.base import utcnow
from ..uploads import PhotoUploadManager, StorageUploadTracker
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import require_admin, require_role

logger = get_logger(__name__)

router = APIRouter(prefix="/uploads/photos", tags=["uploads"])

can_write_patients = require_role(UserRole.STAFF, "write:patients")
can_read_patients = require_role(UserRole.STAFF, "read:patients")

#Upload a patient photo through the lifecycle manager (validation, retries, tracking)
@router.post("/", response_model=PhotoUploadResult, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    patient_id: str = Form(...),
    file: UploadFile = File(...),
    storage: Storage = Depends(get_storage),
    manager: PhotoUploadManager = Depends(get_upload_manager),
    current_user: User = Depends(can_write_patients)
):
    """Upload a photo for a patient or a temp-<millis> placeholder id."""
    data = await file.read()
    return await manager.upload(
        patient_id,
        file.filename or "",
        file.content_type or "",
        data,
        tracker=StorageUploadTracker(storage, current_user.id),
    )

#Record a photo that a client uploaded to its temporary path
@router.post("/track", response_model=UploadActionResponse, status_code=status.HTTP_201_CREATED)
async def track_photo_upload(
    upload_data: TrackPhotoUploadRequest,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(can_write_patients)
):
    """Track a photo upload and audit it."""
    await StorageUploadTracker(storage, current_user.id).track(upload_data)
    return UploadActionResponse(message="Photo upload tracked successfully", upload_id=upload_data.upload_id)

#Confirm a tracked photo under its final path
@router.post("/repath", response_model=UploadActionResponse)
async def repath_photo(
    repath_data: RepathRequest,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(can_write_patients)
):
    """Move a tracked upload from its temporary path to its final path."""
    upload = await storage.update_photo_upload(repath_data.temp_path, {
        "final_path": repath_data.final_path,
        "status": PhotoUploadStatus.CONFIRMED,
        "confirmed_at": utcnow(),
        "confirmed_by": current_user.id,
    })
    if upload is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo upload not found")
    await audit.log(current_user, AuditAction.REPATH, AuditEntityType.PATIENT_PHOTO, repath_data.patient_id, {
        "temp_path": repath_data.temp_path,
        "final_path": repath_data.final_path,
    })
    return UploadActionResponse(message="Photo path updated successfully", final_path=repath_data.final_path)

#Mark an upload as cleaned up (failed or cancelled on the client)
@router.delete("/{upload_id}", response_model=UploadActionResponse)
async def cleanup_photo_upload(
    upload_id: str,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(can_write_patients)
):
    """Clean up one photo upload."""
    upload = await storage.cleanup_photo_upload(upload_id, current_user.id)
    if upload is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo upload not found")
    await audit.log(current_user, AuditAction.CLEANUP, AuditEntityType.PATIENT_PHOTO, upload_id, {
        "reason": "Manual cleanup or failed upload",
    })
    return UploadActionResponse(message="Photo upload cleaned up successfully", upload_id=upload_id)

#Tracking records for a patient, newest first
@router.get("/status/{patient_id}", response_model=List[PhotoUpload])
async def get_upload_status(
    patient_id: str,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(can_read_patients)
):
    """Get upload status for a patient."""
    return await storage.get_photo_uploads_for_patient(patient_id)

#Batch cleanup of uploads that were never confirmed (admin only)
@router.post("/cleanup-stale", response_model=UploadActionResponse)
async def cleanup_stale_uploads(
    cleanup: Optional[CleanupStaleRequest] = None,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(require_admin)
):
    """Clean up stale photo uploads."""
    max_age_hours = cleanup.max_age_hours if cleanup else settings.stale_tracking_max_age_hours
    cleaned = await storage.cleanup_stale_photo_uploads(max_age_hours, current_user.id)
    await audit.log(current_user, AuditAction.BATCH_CLEANUP, AuditEntityType.PATIENT_PHOTO, "system", {
        "cleaned_count": len(cleaned),
        "max_age_hours": max_age_hours,
    })
    logger.info("stale_uploads_cleaned", count=len(cleaned), max_age_hours=max_age_hours)
    return UploadActionResponse(
        message=f"Cleaned up {len(cleaned)} stale uploads",
        cleaned_uploads=len(cleaned),
    )
