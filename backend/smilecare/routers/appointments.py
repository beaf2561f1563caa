from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional

from ..database import get_storage
from ..models import Appointment, AuditAction, AuditEntityType, User
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate, AppointmentWithDetails
from ..storage import Storage
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import get_current_active_user

router = APIRouter(prefix="/appointments", tags=["appointments"])

#List appointments for a day, for a doctor, or all of them
@router.get("/", response_model=List[AppointmentWithDetails])
async def get_appointments(
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    doctor_id: Optional[str] = None,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Get appointments enriched with patient and doctor records."""
    if date:
        appointments = await storage.get_appointments_by_date(date)
    elif doctor_id:
        appointments = await storage.get_appointments_by_doctor(doctor_id)
    else:
        appointments = await storage.get_appointments()

    enriched = []
    for appointment in appointments:
        enriched.append(AppointmentWithDetails(
            **appointment.model_dump(),
            patient=await storage.get_patient(appointment.patient_id),
            doctor=await storage.get_user(appointment.doctor_id),
        ))
    return enriched

#Book an appointment
@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Create an appointment."""
    appointment = await storage.create_appointment(appointment_data)
    await audit.log(
        current_user, AuditAction.CREATE, AuditEntityType.APPOINTMENT, appointment.id,
        appointment_data.model_dump(mode="json"),
    )
    return appointment

#Reschedule, change status or mark the reminder as sent
@router.patch("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    appointment_update: AppointmentUpdate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Update an appointment."""
    changes = appointment_update.model_dump(mode="json", exclude_unset=True)
    appointment = await storage.update_appointment(appointment_id, changes)
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    await audit.log(current_user, AuditAction.UPDATE, AuditEntityType.APPOINTMENT, appointment.id, changes)
    return appointment
