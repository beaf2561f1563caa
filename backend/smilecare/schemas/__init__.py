#request and response schemas, grouped by resource
from .user import UserCreate, UserUpdate
from .patient import PatientCreate, PatientUpdate, PatientSearch
from .appointment import AppointmentCreate, AppointmentUpdate, AppointmentWithDetails
from .encounter import EncounterCreate, EncounterUpdate
from .prescription import PrescriptionCreate, PrescriptionUpdate, PrescriptionWithDetails
from .upload import TrackPhotoUploadRequest, RepathRequest, CleanupStaleRequest, PhotoUploadResult
from .dashboard import DashboardStats

#defines what gets exported when someone imports from this module
__all__ = [
    "UserCreate", "UserUpdate",
    "PatientCreate", "PatientUpdate", "PatientSearch",
    "AppointmentCreate", "AppointmentUpdate", "AppointmentWithDetails",
    "EncounterCreate", "EncounterUpdate",
    "PrescriptionCreate", "PrescriptionUpdate", "PrescriptionWithDetails",
    "TrackPhotoUploadRequest", "RepathRequest", "CleanupStaleRequest", "PhotoUploadResult",
    "DashboardStats",
]
