from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..models.appointment import (
    Appointment, AppointmentBase, AppointmentPriority, AppointmentStatus, AppointmentType,
)
from ..models.patient import Patient
from ..models.user import User
from ..utils.validators import SecureTextValidator


#booking input; scheduled_date and end_time are derived by the store
class AppointmentCreate(AppointmentBase):
    duration: int = Field(default=30, gt=0, le=480)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v):
        return SecureTextValidator.sanitize_notes(v, 1000) if v else None


class AppointmentUpdate(BaseModel):
    doctor_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0, le=480)
    appointment_type: Optional[AppointmentType] = None
    priority: Optional[AppointmentPriority] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None
    reminder_sent: Optional[bool] = None

    @field_validator('doctor_id', 'scheduled_at', 'duration', 'appointment_type', 'priority', 'status', 'reminder_sent')
    @classmethod
    def reject_null(cls, v, info):
        return SecureTextValidator.require_value(v, info.field_name)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v):
        return SecureTextValidator.sanitize_notes(v, 1000) if v else v


#appointment list entries carry the patient and doctor records
class AppointmentWithDetails(Appointment):
    patient: Optional[Patient] = None
    doctor: Optional[User] = None
