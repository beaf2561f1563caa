#Persisted patient demographic and medical records.
from datetime import date, datetime
from typing import Optional
#to define controlled value sets.
import enum

from pydantic import BaseModel


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class EmergencyContact(BaseModel):
    name: str
    phone: str
    relationship: str


class CommunicationPreferences(BaseModel):
    email: bool = False
    whatsapp: bool = False


class ConsentForms(BaseModel):
    treatment_consent: bool = False
    privacy_policy_consent: bool = False
    data_processing_consent: bool = False
    marketing_consent: bool = False
    consent_date: Optional[datetime] = None


class PatientBase(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Optional[Gender] = None
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    profile_photo_url: Optional[str] = None
    communication_preferences: Optional[CommunicationPreferences] = None
    consent_forms: Optional[ConsentForms] = None


class Patient(PatientBase):
    id: str
    # Denormalized by the store from first/last name and email
    full_name: str
    full_name_lower: str
    email_lower: Optional[str] = None
    created_at: datetime
