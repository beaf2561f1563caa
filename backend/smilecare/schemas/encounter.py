from typing import List, Optional

from pydantic import BaseModel, field_validator

from ..models.encounter import EncounterBase, Vitals
from ..utils.validators import SecureTextValidator


#clinical visit notes recorded against an appointment
class EncounterCreate(EncounterBase):
    @field_validator('chief_complaint', 'clinical_notes', 'diagnosis', 'treatment_plan')
    @classmethod
    def validate_text_fields(cls, v):
        return SecureTextValidator.sanitize_notes(v) if v else None


class EncounterUpdate(BaseModel):
    chief_complaint: Optional[str] = None
    clinical_notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    uploaded_files: Optional[List[str]] = None
    vitals: Optional[Vitals] = None

    @field_validator('chief_complaint', 'clinical_notes', 'diagnosis', 'treatment_plan')
    @classmethod
    def validate_text_fields(cls, v):
        return SecureTextValidator.sanitize_notes(v) if v else v
