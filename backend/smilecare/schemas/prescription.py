from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.patient import Patient
from ..models.prescription import Medication, Prescription, PrescriptionBase
from ..models.user import User
from ..utils.validators import SecureTextValidator


#a prescription needs at least one medication
class PrescriptionCreate(PrescriptionBase):
    medications: List[Medication] = Field(min_length=1)


class PrescriptionUpdate(BaseModel):
    medications: Optional[List[Medication]] = Field(default=None, min_length=1)
    pdf_url: Optional[str] = None
    email_sent: Optional[bool] = None
    whatsapp_sent: Optional[bool] = None

    @field_validator('medications', 'email_sent', 'whatsapp_sent')
    @classmethod
    def reject_null(cls, v, info):
        return SecureTextValidator.require_value(v, info.field_name)


class PrescriptionWithDetails(Prescription):
    patient: Optional[Patient] = None
    doctor: Optional[User] = None


#share links handed back to the front desk
class WhatsAppLink(BaseModel):
    whatsapp_url: str


class EmailLink(BaseModel):
    mailto_url: str
