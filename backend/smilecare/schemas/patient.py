from datetime import date
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from ..models.patient import (
    CommunicationPreferences, ConsentForms, EmergencyContact, Gender, PatientBase,
)
from ..utils.validators import SecureTextValidator


#emergency contact as entered on the registration form
class EmergencyContactIn(EmergencyContact):
    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return SecureTextValidator.sanitize_name(v, "Emergency contact name", 100)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return SecureTextValidator.validate_phone_field(v, "Emergency contact phone")

    @field_validator('relationship')
    @classmethod
    def validate_relationship(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Relationship is required')
        if len(v) > 50:
            raise ValueError('Relationship too long')
        return v


#treatment, privacy and data processing consent are mandatory at registration
class ConsentFormsIn(ConsentForms):
    treatment_consent: bool
    privacy_policy_consent: bool
    data_processing_consent: bool

    @field_validator('treatment_consent', 'privacy_policy_consent', 'data_processing_consent')
    @classmethod
    def require_consent(cls, v, info):
        if v is not True:
            raise ValueError(f"{info.field_name.replace('_', ' ').capitalize()} is required")
        return v


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


#patient creation contract
class PatientCreate(PatientBase):
    email: Optional[EmailStr] = None
    emergency_contact: Optional[EmergencyContactIn] = None
    consent_forms: Optional[ConsentFormsIn] = None

    @field_validator('first_name')
    @classmethod
    def validate_first_name(cls, v):
        return SecureTextValidator.sanitize_name(v, "First name")

    @field_validator('last_name')
    @classmethod
    def validate_last_name(cls, v):
        return SecureTextValidator.sanitize_name(v, "Last name")

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return SecureTextValidator.validate_phone_field(v)

    @field_validator('email', 'profile_photo_url', mode='before')
    @classmethod
    def empty_string_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator('address')
    @classmethod
    def validate_address(cls, v):
        return SecureTextValidator.sanitize_notes(v, 500) if v else None

    @field_validator('medical_history')
    @classmethod
    def validate_medical_history(cls, v):
        return SecureTextValidator.sanitize_notes(v, 2000) if v else None

    @field_validator('allergies')
    @classmethod
    def validate_allergies(cls, v):
        return SecureTextValidator.sanitize_notes(v, 1000) if v else None


#safe partial updates
class PatientUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContactIn] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    profile_photo_url: Optional[str] = None
    communication_preferences: Optional[CommunicationPreferences] = None
    consent_forms: Optional[ConsentForms] = None

    @field_validator('first_name', 'last_name', 'date_of_birth', 'phone')
    @classmethod
    def reject_null(cls, v, info):
        return SecureTextValidator.require_value(v, info.field_name)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        return SecureTextValidator.sanitize_name(v) if v is not None else None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return SecureTextValidator.validate_phone_field(v) if v is not None else None

    @field_validator('email', mode='before')
    @classmethod
    def empty_email_is_missing(cls, v):
        return _blank_to_none(v)

    @field_validator('address', 'medical_history', 'allergies')
    @classmethod
    def validate_text_fields(cls, v):
        return SecureTextValidator.sanitize_notes(v) if v else v


#secure search input
class PatientSearch(BaseModel):
    query: str

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        return SecureTextValidator.validate_search_query(v)


#enforces strong validation, prevents unsafe medical data entry and cleanly separates the API contract from the stored record