from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

from ..database import get_storage
from ..models import AuditAction, AuditEntityType, Encounter, User
from ..schemas.encounter import EncounterCreate, EncounterUpdate
from ..storage import Storage
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import get_current_active_user

router = APIRouter(prefix="/encounters", tags=["encounters"])

#Visit history of one patient, newest first
@router.get("/{patient_id}", response_model=List[Encounter])
async def get_patient_encounters(
    patient_id: str,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Get encounters for a patient."""
    return await storage.get_encounters_by_patient(patient_id)

@router.post("/", response_model=Encounter, status_code=status.HTTP_201_CREATED)
async def create_encounter(
    encounter_data: EncounterCreate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Record an encounter."""
    encounter = await storage.create_encounter(encounter_data)
    await audit.log(
        current_user, AuditAction.CREATE, AuditEntityType.ENCOUNTER, encounter.id,
        encounter_data.model_dump(mode="json"),
    )
    return encounter

@router.patch("/{encounter_id}", response_model=Encounter)
async def update_encounter(
    encounter_id: str,
    encounter_update: EncounterUpdate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Update an encounter."""
    changes = encounter_update.model_dump(mode="json", exclude_unset=True)
    encounter = await storage.update_encounter(encounter_id, changes)
    if encounter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Encounter not found")
    await audit.log(current_user, AuditAction.UPDATE, AuditEntityType.ENCOUNTER, encounter.id, changes)
    return encounter
