from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from urllib.parse import quote
import re

from ..database import get_storage
from ..models import AuditAction, AuditEntityType, Patient, Prescription, User
from ..schemas.prescription import (
    EmailLink, PrescriptionCreate, PrescriptionUpdate, PrescriptionWithDetails, WhatsAppLink,
)
from ..storage import Storage
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import get_current_active_user
from ..utils.errors import APIError

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])

CLINIC_NAME = "SmileCare Clinic"
PDF_PLACEHOLDER = "[PDF will be generated]"


#same escaping as a browser's encodeURIComponent
def _uri_component(text: str) -> str:
    return quote(text, safe="-_.!~*'()")


def prescription_message(patient: Patient, prescription: Prescription) -> str:
    return (
        f"Hello {patient.first_name}! Your prescription from {CLINIC_NAME} is ready. "
        f"Please find the attached prescription: {prescription.pdf_url or PDF_PLACEHOLDER}"
    )


def whatsapp_url(patient: Patient, prescription: Prescription) -> str:
    phone = re.sub(r"\D", "", patient.phone)
    return f"https://wa.me/{phone}?text={_uri_component(prescription_message(patient, prescription))}"


def mailto_url(patient: Patient, prescription: Prescription) -> str:
    subject = _uri_component(f"Your prescription from {CLINIC_NAME}")
    body = _uri_component(prescription_message(patient, prescription))
    return f"mailto:{patient.email}?subject={subject}&body={body}"


async def _prescription_and_patient(storage: Storage, prescription_id: str):
    prescription = await storage.get_prescription(prescription_id)
    if prescription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prescription not found")
    patient = await storage.get_patient(prescription.patient_id)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return prescription, patient


#All prescriptions, or one patient's, with patient and doctor attached
@router.get("/", response_model=List[PrescriptionWithDetails])
async def get_prescriptions(
    patient_id: Optional[str] = None,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Get prescriptions, newest first."""
    if patient_id:
        prescriptions = await storage.get_prescriptions_by_patient(patient_id)
    else:
        prescriptions = await storage.get_prescriptions()

    enriched = []
    for prescription in prescriptions:
        enriched.append(PrescriptionWithDetails(
            **prescription.model_dump(),
            patient=await storage.get_patient(prescription.patient_id),
            doctor=await storage.get_user(prescription.doctor_id),
        ))
    return enriched

@router.post("/", response_model=Prescription, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    prescription_data: PrescriptionCreate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Create a prescription."""
    prescription = await storage.create_prescription(prescription_data)
    await audit.log(
        current_user, AuditAction.CREATE, AuditEntityType.PRESCRIPTION, prescription.id,
        prescription_data.model_dump(mode="json"),
    )
    return prescription

@router.patch("/{prescription_id}", response_model=Prescription)
async def update_prescription(
    prescription_id: str,
    prescription_update: PrescriptionUpdate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(get_current_active_user)
):
    """Update a prescription."""
    changes = prescription_update.model_dump(mode="json", exclude_unset=True)
    prescription = await storage.update_prescription(prescription_id, changes)
    if prescription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prescription not found")
    await audit.log(current_user, AuditAction.UPDATE, AuditEntityType.PRESCRIPTION, prescription.id, changes)
    return prescription

#WhatsApp share link; marks the prescription as sent
@router.post("/{prescription_id}/whatsapp", response_model=WhatsAppLink)
async def share_via_whatsapp(
    prescription_id: str,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Generate a wa.me link for the patient."""
    prescription, patient = await _prescription_and_patient(storage, prescription_id)
    url = whatsapp_url(patient, prescription)
    await storage.update_prescription(prescription_id, {"whatsapp_sent": True})
    return WhatsAppLink(whatsapp_url=url)

#Email share link; marks the prescription as sent
@router.post("/{prescription_id}/email", response_model=EmailLink)
async def share_via_email(
    prescription_id: str,
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Generate a mailto link for the patient."""
    prescription, patient = await _prescription_and_patient(storage, prescription_id)
    if not patient.email:
        raise APIError(status.HTTP_400_BAD_REQUEST, "Patient has no email address")
    url = mailto_url(patient, prescription)
    await storage.update_prescription(prescription_id, {"email_sent": True})
    return EmailLink(mailto_url=url)
