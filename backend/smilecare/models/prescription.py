#Persisted medication orders tied to an encounter.
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class Medication(BaseModel):
    name: str
    dosage: str
    frequency: str
    duration: str
    instructions: Optional[str] = None


class PrescriptionBase(BaseModel):
    encounter_id: str
    patient_id: str
    doctor_id: str
    medications: List[Medication]
    pdf_url: Optional[str] = None
    email_sent: bool = False
    whatsapp_sent: bool = False


class Prescription(PrescriptionBase):
    id: str
    created_at: datetime
