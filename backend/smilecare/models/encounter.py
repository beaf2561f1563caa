#Persisted clinical visit records, one per appointment.
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class Vitals(BaseModel):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    weight: Optional[float] = None
    height: Optional[float] = None


class EncounterBase(BaseModel):
    appointment_id: str
    patient_id: str
    doctor_id: str
    chief_complaint: Optional[str] = None
    clinical_notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    uploaded_files: Optional[List[str]] = None  # storage URLs
    vitals: Optional[Vitals] = None


class Encounter(EncounterBase):
    id: str
    created_at: datetime
