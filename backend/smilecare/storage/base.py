"""
Storage contract shared by every backend.

Backends (Firestore, memory) and the hybrid façade all conform to the
Storage protocol below. The helpers in this module hold the rules both
backends must apply identically: derived fields, update merging, search
matching and the seed rows.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel

from ..models import (
    Appointment, AppointmentBase, AuditLog, AuditLogBase, Encounter, EncounterBase,
    Patient, PatientBase, PhotoUpload, PhotoUploadBase, Prescription, PrescriptionBase,
    User, UserBase, UserRole,
)
from .errors import InvalidRecordError

RecordT = TypeVar("RecordT", bound=BaseModel)
Derive = Callable[[Dict[str, Any]], Dict[str, Any]]

# Collection names, shared by both backends
USERS = "users"
PATIENTS = "patients"
APPOINTMENTS = "appointments"
ENCOUNTERS = "encounters"
PRESCRIPTIONS = "prescriptions"
AUDIT_LOGS = "audit_logs"
PHOTO_UPLOADS = "photo_uploads"

#Fields callers may never change through update_*
IMMUTABLE_FIELDS = ("id", "created_at")


class Storage(Protocol):
    """Async persistence contract for every clinic entity."""

    # Users
    async def get_user(self, user_id: str) -> Optional[User]: ...
    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]: ...
    async def get_user_by_email(self, email: str) -> Optional[User]: ...
    async def create_user(self, data: UserBase) -> User: ...
    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]: ...
    async def get_users(self) -> List[User]: ...

    # Patients
    async def get_patient(self, patient_id: str) -> Optional[Patient]: ...
    async def create_patient(self, data: PatientBase) -> Patient: ...
    async def update_patient(self, patient_id: str, changes: Dict[str, Any]) -> Optional[Patient]: ...
    async def get_patients(self) -> List[Patient]: ...
    async def search_patients(self, query: str) -> List[Patient]: ...

    # Appointments
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]: ...
    async def create_appointment(self, data: AppointmentBase) -> Appointment: ...
    async def update_appointment(
        self, appointment_id: str, changes: Dict[str, Any]
    ) -> Optional[Appointment]: ...
    async def get_appointments(self) -> List[Appointment]: ...
    async def get_appointments_by_date(self, date_str: str) -> List[Appointment]: ...
    async def get_appointments_by_doctor(self, doctor_id: str) -> List[Appointment]: ...

    # Encounters
    async def get_encounter(self, encounter_id: str) -> Optional[Encounter]: ...
    async def create_encounter(self, data: EncounterBase) -> Encounter: ...
    async def update_encounter(self, encounter_id: str, changes: Dict[str, Any]) -> Optional[Encounter]: ...
    async def get_encounters_by_patient(self, patient_id: str) -> List[Encounter]: ...

    # Prescriptions
    async def get_prescription(self, prescription_id: str) -> Optional[Prescription]: ...
    async def create_prescription(self, data: PrescriptionBase) -> Prescription: ...
    async def update_prescription(
        self, prescription_id: str, changes: Dict[str, Any]
    ) -> Optional[Prescription]: ...
    async def get_prescriptions(self) -> List[Prescription]: ...
    async def get_prescriptions_by_patient(self, patient_id: str) -> List[Prescription]: ...

    # Audit logs
    async def create_audit_log(self, data: AuditLogBase) -> AuditLog: ...
    async def get_audit_logs(self) -> List[AuditLog]: ...

    # Photo upload tracking
    async def track_photo_upload(self, data: PhotoUploadBase) -> PhotoUpload: ...
    async def update_photo_upload(self, temp_path: str, changes: Dict[str, Any]) -> Optional[PhotoUpload]: ...
    async def cleanup_photo_upload(self, upload_id: str, user_id: str) -> Optional[PhotoUpload]: ...
    async def get_photo_uploads_for_patient(self, patient_id: str) -> List[PhotoUpload]: ...
    async def cleanup_stale_photo_uploads(self, max_age_hours: float, user_id: str) -> List[PhotoUpload]: ...

    # Maintenance
    async def ping(self) -> None: ...
    async def seed_sample_data(self) -> int: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---- Derived (denormalized) fields

def user_derived_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {"email_lower": doc["email"].lower()}


def patient_derived_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    full_name = f"{doc['first_name']} {doc['last_name']}"
    email = doc.get("email")
    return {
        "full_name": full_name,
        "full_name_lower": full_name.lower(),
        "email_lower": email.lower() if email else None,
    }


def appointment_derived_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    scheduled_at = doc["scheduled_at"]
    if isinstance(scheduled_at, str):
        scheduled_at = datetime.fromisoformat(scheduled_at.replace("Z", "+00:00"))
    scheduled_at = as_utc(scheduled_at)
    duration = doc.get("duration", 30)
    return {
        "scheduled_at": scheduled_at,
        "scheduled_date": scheduled_at.date().isoformat(),
        "end_time": scheduled_at + timedelta(minutes=duration),
    }


def photo_upload_derived_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {"uploaded_at": as_utc(doc["uploaded_at"])}


def no_derived_fields(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {}


# ---- Record construction shared by the backends

def _derive(derive: Derive, doc: Dict[str, Any]) -> Dict[str, Any]:
    #a missing or null source field is bad input, not a backend failure
    try:
        return derive(doc)
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise InvalidRecordError(f"Invalid record data: {exc}") from exc


def build_record(
    model: Type[RecordT],
    data: BaseModel,
    record_id: str,
    derive: Derive = no_derived_fields,
    timestamp_field: Optional[str] = "created_at",
) -> RecordT:
    """Turn caller data into a complete record with id, timestamp and derived fields."""
    doc = data.model_dump()
    doc["id"] = record_id
    if timestamp_field:
        doc[timestamp_field] = utcnow()
    doc.update(_derive(derive, doc))
    return model.model_validate(doc)


def merge_record(
    model: Type[RecordT],
    current: Dict[str, Any],
    changes: Dict[str, Any],
    derive: Derive = no_derived_fields,
) -> RecordT:
    """Apply a partial update to a stored document and recompute derived fields."""
    merged = dict(current)
    merged.update({k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS})
    merged.update(_derive(derive, merged))
    return model.model_validate(merged)


def to_document(record: BaseModel) -> Dict[str, Any]:
    """Plain-python document for a record; the id lives in the document key."""
    doc = record.model_dump()
    doc.pop("id", None)
    return doc


# ---- Queries

def normalize_query(query: str) -> str:
    return (query or "").strip()


def patient_matches(doc: Dict[str, Any], query: str) -> bool:
    """Full name contains the query (case-insensitive), phone contains it, or email equals it."""
    lowered = query.lower()
    if lowered in (doc.get("full_name_lower") or ""):
        return True
    if query in (doc.get("phone") or ""):
        return True
    if "@" in query and doc.get("email_lower") == lowered:
        return True
    return False


def newest_first(records: List[RecordT], field: str = "created_at") -> List[RecordT]:
    # reversed() keeps later inserts ahead of earlier ones when timestamps tie
    return sorted(reversed(records), key=lambda r: getattr(r, field), reverse=True)


def stale_cutoff(max_age_hours: float) -> datetime:
    return utcnow() - timedelta(hours=max_age_hours)


# ---- Seed data (development only)

SAMPLE_USERS = [
    UserBase(
        firebase_uid="admin-firebase-uid",
        email="admin@smilecare.com",
        name="Dr. Admin User",
        role=UserRole.ADMIN,
    ),
    UserBase(
        firebase_uid="doctor1-firebase-uid",
        email="dr.smith@smilecare.com",
        name="Dr. Smith",
        role=UserRole.DOCTOR,
        specialization="General Dentistry",
    ),
    UserBase(
        firebase_uid="doctor2-firebase-uid",
        email="dr.johnson@smilecare.com",
        name="Dr. Johnson",
        role=UserRole.DOCTOR,
        specialization="Oral Surgery",
    ),
]
