"""
Process-memory implementation of the storage contract.

Used as the hybrid façade's fallback and in tests. Nothing survives a
process restart.
"""
import copy
import uuid
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from ..logging import get_logger
from ..models import (
    Appointment, AppointmentBase, AuditLog, AuditLogBase, Encounter, EncounterBase,
    Patient, PatientBase, PhotoUpload, PhotoUploadBase, PhotoUploadStatus,
    Prescription, PrescriptionBase, User, UserBase,
)
from .base import (
    APPOINTMENTS, AUDIT_LOGS, ENCOUNTERS, PATIENTS, PHOTO_UPLOADS, PRESCRIPTIONS, SAMPLE_USERS, USERS,
    Derive, RecordT, appointment_derived_fields, build_record, merge_record, newest_first,
    no_derived_fields, normalize_query, patient_derived_fields, patient_matches,
    photo_upload_derived_fields, stale_cutoff, user_derived_fields, utcnow,
)
from .errors import ConflictError

logger = get_logger(__name__)


class MemoryStorage:
    """Dict-per-collection store with the same semantics as the Firestore adapter."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {}
            for name in (USERS, PATIENTS, APPOINTMENTS, ENCOUNTERS, PRESCRIPTIONS, AUDIT_LOGS, PHOTO_UPLOADS)
        }

    # ---- generic helpers

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    def _put(self, collection: str, record: BaseModel) -> None:
        self._collections[collection][record.id] = record.model_dump()

    def _get(self, collection: str, model: Type[RecordT], record_id: str) -> Optional[RecordT]:
        doc = self._collections[collection].get(record_id)
        if doc is None:
            return None
        return model.model_validate(copy.deepcopy(doc))

    def _all(self, collection: str, model: Type[RecordT]) -> List[RecordT]:
        return [model.model_validate(copy.deepcopy(doc)) for doc in self._collections[collection].values()]

    def _create(
        self, collection: str, model: Type[RecordT], data: BaseModel,
        derive: Derive = no_derived_fields, timestamp_field: Optional[str] = "created_at",
    ) -> RecordT:
        record = build_record(model, data, self._new_id(), derive, timestamp_field)
        self._put(collection, record)
        return record.model_copy(deep=True)

    def _update(
        self, collection: str, model: Type[RecordT], record_id: str,
        changes: Dict[str, Any], derive: Derive = no_derived_fields,
    ) -> Optional[RecordT]:
        current = self._collections[collection].get(record_id)
        if current is None:
            return None
        record = merge_record(model, current, copy.deepcopy(changes), derive)
        self._put(collection, record)
        return record.model_copy(deep=True)

    # ---- users

    def _check_user_unique(self, firebase_uid: str, email: str, exclude_id: Optional[str] = None) -> None:
        for doc in self._collections[USERS].values():
            if doc["id"] == exclude_id:
                continue
            if doc["firebase_uid"] == firebase_uid:
                raise ConflictError("A user with this firebase uid already exists")
            if doc["email_lower"] == email.lower():
                raise ConflictError("A user with this email already exists")

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._get(USERS, User, user_id)

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        for user in self._all(USERS, User):
            if user.firebase_uid == firebase_uid:
                return user
        return None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        for user in self._all(USERS, User):
            if user.email_lower == email.lower():
                return user
        return None

    async def create_user(self, data: UserBase) -> User:
        self._check_user_unique(data.firebase_uid, data.email)
        return self._create(USERS, User, data, user_derived_fields)

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        current = self._collections[USERS].get(user_id)
        if current is None:
            return None
        self._check_user_unique(
            changes.get("firebase_uid", current["firebase_uid"]),
            changes.get("email", current["email"]),
            exclude_id=user_id,
        )
        return self._update(USERS, User, user_id, changes, user_derived_fields)

    async def get_users(self) -> List[User]:
        return newest_first(self._all(USERS, User))

    # ---- patients

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self._get(PATIENTS, Patient, patient_id)

    async def create_patient(self, data: PatientBase) -> Patient:
        return self._create(PATIENTS, Patient, data, patient_derived_fields)

    async def update_patient(self, patient_id: str, changes: Dict[str, Any]) -> Optional[Patient]:
        return self._update(PATIENTS, Patient, patient_id, changes, patient_derived_fields)

    async def get_patients(self) -> List[Patient]:
        return newest_first(self._all(PATIENTS, Patient))

    async def search_patients(self, query: str) -> List[Patient]:
        query = normalize_query(query)
        if not query:
            return []
        # one pass over a dict keyed by id, so no duplicates
        matches = [
            Patient.model_validate(copy.deepcopy(doc))
            for doc in self._collections[PATIENTS].values()
            if patient_matches(doc, query)
        ]
        return newest_first(matches)

    # ---- appointments

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._get(APPOINTMENTS, Appointment, appointment_id)

    async def create_appointment(self, data: AppointmentBase) -> Appointment:
        return self._create(APPOINTMENTS, Appointment, data, appointment_derived_fields)

    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> Optional[Appointment]:
        changes = dict(changes, updated_at=utcnow())
        return self._update(APPOINTMENTS, Appointment, appointment_id, changes, appointment_derived_fields)

    async def get_appointments(self) -> List[Appointment]:
        return newest_first(self._all(APPOINTMENTS, Appointment))

    async def get_appointments_by_date(self, date_str: str) -> List[Appointment]:
        day = [a for a in self._all(APPOINTMENTS, Appointment) if a.scheduled_date == date_str]
        return sorted(day, key=lambda a: a.scheduled_at)

    async def get_appointments_by_doctor(self, doctor_id: str) -> List[Appointment]:
        mine = [a for a in self._all(APPOINTMENTS, Appointment) if a.doctor_id == doctor_id]
        return sorted(mine, key=lambda a: a.scheduled_at)

    # ---- encounters

    async def get_encounter(self, encounter_id: str) -> Optional[Encounter]:
        return self._get(ENCOUNTERS, Encounter, encounter_id)

    async def create_encounter(self, data: EncounterBase) -> Encounter:
        return self._create(ENCOUNTERS, Encounter, data)

    async def update_encounter(self, encounter_id: str, changes: Dict[str, Any]) -> Optional[Encounter]:
        return self._update(ENCOUNTERS, Encounter, encounter_id, changes)

    async def get_encounters_by_patient(self, patient_id: str) -> List[Encounter]:
        return newest_first([e for e in self._all(ENCOUNTERS, Encounter) if e.patient_id == patient_id])

    # ---- prescriptions

    async def get_prescription(self, prescription_id: str) -> Optional[Prescription]:
        return self._get(PRESCRIPTIONS, Prescription, prescription_id)

    async def create_prescription(self, data: PrescriptionBase) -> Prescription:
        return self._create(PRESCRIPTIONS, Prescription, data)

    async def update_prescription(self, prescription_id: str, changes: Dict[str, Any]) -> Optional[Prescription]:
        return self._update(PRESCRIPTIONS, Prescription, prescription_id, changes)

    async def get_prescriptions(self) -> List[Prescription]:
        return newest_first(self._all(PRESCRIPTIONS, Prescription))

    async def get_prescriptions_by_patient(self, patient_id: str) -> List[Prescription]:
        return newest_first([p for p in self._all(PRESCRIPTIONS, Prescription) if p.patient_id == patient_id])

    # ---- audit logs (append-only: no update method exists)

    async def create_audit_log(self, data: AuditLogBase) -> AuditLog:
        return self._create(AUDIT_LOGS, AuditLog, data)

    async def get_audit_logs(self) -> List[AuditLog]:
        return newest_first(self._all(AUDIT_LOGS, AuditLog))

    # ---- photo upload tracking

    async def track_photo_upload(self, data: PhotoUploadBase) -> PhotoUpload:
        return self._create(PHOTO_UPLOADS, PhotoUpload, data, photo_upload_derived_fields, timestamp_field=None)

    def _latest_upload(self, field: str, value: str) -> Optional[PhotoUpload]:
        matches = [u for u in self._all(PHOTO_UPLOADS, PhotoUpload) if getattr(u, field) == value]
        if not matches:
            return None
        return newest_first(matches, "uploaded_at")[0]

    async def update_photo_upload(self, temp_path: str, changes: Dict[str, Any]) -> Optional[PhotoUpload]:
        upload = self._latest_upload("temp_path", temp_path)
        if upload is None:
            return None
        return self._update(PHOTO_UPLOADS, PhotoUpload, upload.id, changes)

    async def cleanup_photo_upload(self, upload_id: str, user_id: str) -> Optional[PhotoUpload]:
        upload = self._latest_upload("upload_id", upload_id)
        if upload is None:
            return None
        return self._update(PHOTO_UPLOADS, PhotoUpload, upload.id, {
            "status": PhotoUploadStatus.CLEANED_UP,
            "cleaned_up_by": user_id,
            "cleaned_up_at": utcnow(),
        })

    async def get_photo_uploads_for_patient(self, patient_id: str) -> List[PhotoUpload]:
        uploads = [u for u in self._all(PHOTO_UPLOADS, PhotoUpload) if u.patient_id == patient_id]
        return newest_first(uploads, "uploaded_at")

    async def cleanup_stale_photo_uploads(self, max_age_hours: float, user_id: str) -> List[PhotoUpload]:
        cutoff = stale_cutoff(max_age_hours)
        now = utcnow()
        cleaned = []
        for upload in self._all(PHOTO_UPLOADS, PhotoUpload):
            if upload.status == PhotoUploadStatus.UPLOADED and upload.uploaded_at < cutoff:
                cleaned.append(self._update(PHOTO_UPLOADS, PhotoUpload, upload.id, {
                    "status": PhotoUploadStatus.CLEANED_UP,
                    "cleaned_up_by": user_id,
                    "cleaned_up_at": now,
                }))
        return cleaned

    # ---- maintenance

    async def ping(self) -> None:
        return None

    async def seed_sample_data(self) -> int:
        if self._collections[USERS]:
            logger.info("seed_skipped", backend="memory", reason="users already present")
            return 0
        for user in SAMPLE_USERS:
            await self.create_user(user)
        logger.info("seed_completed", backend="memory", users=len(SAMPLE_USERS))
        return len(SAMPLE_USERS)
