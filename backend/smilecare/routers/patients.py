from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import ValidationError
from typing import List, Optional
from datetime import date

from ..config import settings
from ..database import get_object_store, get_storage
from ..logging import get_logger
from ..models import AuditAction, AuditEntityType, Patient, User, UserRole
from ..schemas.patient import PatientCreate, PatientSearch, PatientUpdate
from ..storage import Storage
from ..uploads import ObjectStore, repath_patient_photo
from ..uploads.repath import find_temp_id
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import require_role
from ..utils.errors import APIError
from ..utils.validators import SecureTextValidator

logger = get_logger(__name__)

router = APIRouter(prefix="/patients", tags=["patients"])


def _age_in_years(date_of_birth: date, today: date) -> int:
    years = today.year - date_of_birth.year
    #birthday not reached yet this year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


#List patients, or search them by name, phone or email
@router.get("/", response_model=List[Patient])
async def get_patients(
    search: Optional[str] = Query(None),
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_role(UserRole.STAFF, "read:patients"))
):
    """Get patients, newest first, optionally filtered by a search query."""
    if not search:
        return await storage.get_patients()
    try:
        query = PatientSearch(query=search).query
    except ValidationError as exc:
        raise APIError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid search query",
            [{"message": err["msg"], "code": err["type"]} for err in exc.errors()],
        )
    return await storage.search_patients(query)

#Get a single patient by id
@router.get("/{patient_id}", response_model=Patient)
async def get_patient(
    patient_id: str,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_role(UserRole.STAFF, "read:patients"))
):
    """Get patient details."""
    try:
        SecureTextValidator.validate_record_id(patient_id)
    except ValueError as exc:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Validation failed", [{"field": "patient_id", "message": str(exc)}])
    patient = await storage.get_patient(patient_id)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return patient

#Create a new patient
@router.post("/", response_model=Patient, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    storage: Storage = Depends(get_storage),
    object_store: ObjectStore = Depends(get_object_store),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(require_role(UserRole.STAFF, "write:patients"))
):
    """Create a patient; a photo uploaded under a temp id is moved to the patient's folder."""
    age = _age_in_years(patient_data.date_of_birth, date.today())
    if age < 0 or age > 150:
        raise APIError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid date of birth",
            "Patient age must be between 0 and 150 years",
        )

    # Reject duplicates by phone and by email
    phone_matches = [p for p in await storage.search_patients(patient_data.phone) if p.phone == patient_data.phone]
    if phone_matches:
        raise APIError(
            status.HTTP_409_CONFLICT,
            "Patient with this phone number already exists",
            {"existing_patient_id": phone_matches[0].id},
        )
    if patient_data.email:
        email = patient_data.email.lower()
        email_matches = [p for p in await storage.search_patients(email) if p.email_lower == email]
        if email_matches:
            raise APIError(
                status.HTTP_409_CONFLICT,
                "Patient with this email already exists",
                {"existing_patient_id": email_matches[0].id},
            )

    patient = await storage.create_patient(patient_data)
    logger.info("patient_created", patient_id=patient.id)

    photo_url = patient_data.profile_photo_url
    final_patient = patient
    if photo_url and find_temp_id(photo_url):
        try:
            final_patient = await repath_patient_photo(
                storage, object_store, patient, photo_url, current_user.id, folder=settings.photo_folder,
            )
        except Exception as exc:
            # the patient record stands even when the photo cannot be moved
            logger.error("photo_repath_failed", patient_id=patient.id, error=str(exc), error_type=type(exc).__name__)
            await audit.log(current_user, AuditAction.REPATH, AuditEntityType.PATIENT_PHOTO, patient.id, {
                "error": "Photo re-pathing failed",
                "original_photo_url": photo_url,
                "error_message": str(exc),
            })

    changes = patient_data.model_dump(mode="json")
    # photo URLs are not written to the audit trail
    changes["profile_photo_url"] = "[PHOTO_UPLOADED]" if photo_url else None
    await audit.log(current_user, AuditAction.CREATE, AuditEntityType.PATIENT, patient.id, changes)

    return final_patient

#Partial update of demographics or medical fields
@router.patch("/{patient_id}", response_model=Patient)
async def update_patient(
    patient_id: str,
    patient_update: PatientUpdate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(require_role(UserRole.NURSE, "write:patients"))
):
    """Update patient information."""
    changes = patient_update.model_dump(mode="json", exclude_unset=True)
    patient = await storage.update_patient(patient_id, changes)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    await audit.log(current_user, AuditAction.UPDATE, AuditEntityType.PATIENT, patient.id, changes)
    return patient
