#used to control how models are exposed when the package is imported.
from .user import User, UserBase, UserRole
from .patient import (
    Patient, PatientBase, Gender, EmergencyContact, CommunicationPreferences, ConsentForms
)
from .appointment import (
    Appointment, AppointmentBase, AppointmentType, AppointmentPriority, AppointmentStatus
)
from .encounter import Encounter, EncounterBase, Vitals
from .prescription import Prescription, PrescriptionBase, Medication
from .audit_log import AuditLog, AuditLogBase, AuditAction, AuditEntityType
from .photo_upload import PhotoUpload, PhotoUploadBase, PhotoUploadStatus

#all public models
__all__ = [
    "User", "UserBase", "UserRole",
    "Patient", "PatientBase", "Gender", "EmergencyContact", "CommunicationPreferences", "ConsentForms",
    "Appointment", "AppointmentBase", "AppointmentType", "AppointmentPriority", "AppointmentStatus",
    "Encounter", "EncounterBase", "Vitals",
    "Prescription", "PrescriptionBase", "Medication",
    "AuditLog", "AuditLogBase", "AuditAction", "AuditEntityType",
    "PhotoUpload", "PhotoUploadBase", "PhotoUploadStatus",
]
