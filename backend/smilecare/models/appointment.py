#Persisted appointment records.
from datetime import datetime
from typing import Optional
#to define controlled value sets.
import enum

from pydantic import BaseModel


class AppointmentType(str, enum.Enum):
    CONSULTATION = "consultation"
    CLEANING = "cleaning"
    CHECKUP = "checkup"
    SURGERY = "surgery"
    EMERGENCY = "emergency"
    FOLLOWUP = "followup"
    ROUTINE = "routine"
    ORTHODONTICS = "orthodontics"
    COSMETIC = "cosmetic"
    EXTRACTION = "extraction"
    ROOT_CANAL = "root_canal"
    FILLING = "filling"


class AppointmentPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentBase(BaseModel):
    patient_id: str
    doctor_id: str
    scheduled_at: datetime
    duration: int = 30  # minutes
    appointment_type: AppointmentType
    priority: AppointmentPriority = AppointmentPriority.NORMAL
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    reminder_sent: bool = False


class Appointment(AppointmentBase):
    id: str
    scheduled_date: str  # YYYY-MM-DD (UTC) of scheduled_at, for day queries
    end_time: datetime  # scheduled_at + duration
    created_at: datetime
    updated_at: Optional[datetime] = None
