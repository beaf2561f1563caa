"""
Firestore implementation of the storage contract.

Documents are plain dicts keyed by a Firestore auto id. Values are converted
on the way in (enums by value, calendar dates as ISO strings, timestamps as
aware UTC) and on the way out (Firestore timestamps back to plain datetimes),
so records coming out of this adapter look exactly like the memory store's.
"""
import enum
import functools
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Type

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import BaseModel

from ..logging import get_logger
from ..models import (
    Appointment, AppointmentBase, AuditLog, AuditLogBase, Encounter, EncounterBase,
    Patient, PatientBase, PhotoUpload, PhotoUploadBase, PhotoUploadStatus,
    Prescription, PrescriptionBase, User, UserBase,
)
from .base import (
    APPOINTMENTS, AUDIT_LOGS, ENCOUNTERS, PATIENTS, PHOTO_UPLOADS, PRESCRIPTIONS, SAMPLE_USERS, USERS,
    Derive, RecordT, appointment_derived_fields, as_utc, build_record, merge_record, newest_first,
    no_derived_fields, normalize_query, patient_derived_fields, patient_matches,
    photo_upload_derived_fields, stale_cutoff, to_document, user_derived_fields, utcnow,
)
from .errors import ConflictError, NotFoundError, PermissionDeniedError, StoreError

logger = get_logger(__name__)

HEALTH_COLLECTION = "_health"
HEALTH_DOCUMENT = "probe"

# Firestore rejects batches above this many writes
BATCH_LIMIT = 500


# ---- value conversion

def encode_value(value: Any) -> Any:
    """Python value -> Firestore value, recursively."""
    if isinstance(value, enum.Enum):
        return value.value
    # datetime is a date subclass, so it must be checked first
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Firestore value -> plain python value, recursively."""
    if isinstance(value, datetime):
        # DatetimeWithNanoseconds and friends become a plain aware datetime
        value = as_utc(value)
        return datetime(
            value.year, value.month, value.day,
            value.hour, value.minute, value.second, value.microsecond,
            tzinfo=timezone.utc,
        )
    if isinstance(value, dict):
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def translate_error(exc: Exception) -> Exception:
    """Map a Google client exception onto the storage error taxonomy."""
    if isinstance(exc, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)):
        return PermissionDeniedError(str(exc))
    if isinstance(exc, auth_exceptions.GoogleAuthError):
        return PermissionDeniedError(str(exc))
    if isinstance(exc, google_exceptions.NotFound):
        return NotFoundError(str(exc))
    return StoreError(str(exc))


def translated(method):
    """Run a coroutine method and re-raise provider errors as StorageError."""

    @functools.wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise translate_error(exc) from exc

    return wrapper


class FirestoreStorage:
    """Storage contract over a google.cloud.firestore.AsyncClient."""

    def __init__(self, client: firestore.AsyncClient) -> None:
        self._client = client

    # ---- generic helpers

    def _collection(self, name: str):
        return self._client.collection(name)

    @staticmethod
    def _to_record(model: Type[RecordT], snapshot) -> RecordT:
        doc = decode_value(snapshot.to_dict() or {})
        doc["id"] = snapshot.id
        return model.model_validate(doc)

    async def _get(self, collection: str, model: Type[RecordT], record_id: str) -> Optional[RecordT]:
        snapshot = await self._collection(collection).document(record_id).get()
        if not snapshot.exists:
            return None
        return self._to_record(model, snapshot)

    async def _query(self, query, model: Type[RecordT]) -> List[RecordT]:
        snapshots = await query.get()
        return [self._to_record(model, snapshot) for snapshot in snapshots]

    async def _where(self, collection: str, model: Type[RecordT], field: str, value: Any) -> List[RecordT]:
        query = self._collection(collection).where(filter=FieldFilter(field, "==", encode_value(value)))
        return await self._query(query, model)

    async def _newest(self, collection: str, model: Type[RecordT]) -> List[RecordT]:
        query = self._collection(collection).order_by("created_at", direction=firestore.Query.DESCENDING)
        return await self._query(query, model)

    async def _create(
        self, collection: str, model: Type[RecordT], data: BaseModel,
        derive: Derive = no_derived_fields, timestamp_field: Optional[str] = "created_at",
    ) -> RecordT:
        ref = self._collection(collection).document()
        record = build_record(model, data, ref.id, derive, timestamp_field)
        await ref.set(encode_value(to_document(record)))
        return record

    async def _update(
        self, collection: str, model: Type[RecordT], record_id: str,
        changes: Dict[str, Any], derive: Derive = no_derived_fields,
    ) -> Optional[RecordT]:
        ref = self._collection(collection).document(record_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return None
        current = decode_value(snapshot.to_dict() or {})
        current["id"] = record_id
        record = merge_record(model, current, changes, derive)
        await ref.set(encode_value(to_document(record)))
        return record

    # ---- users

    async def _check_user_unique(self, firebase_uid: str, email: str, exclude_id: Optional[str] = None) -> None:
        for user in await self._where(USERS, User, "firebase_uid", firebase_uid):
            if user.id != exclude_id:
                raise ConflictError("A user with this firebase uid already exists")
        for user in await self._where(USERS, User, "email_lower", email.lower()):
            if user.id != exclude_id:
                raise ConflictError("A user with this email already exists")

    @translated
    async def get_user(self, user_id: str) -> Optional[User]:
        return await self._get(USERS, User, user_id)

    @translated
    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        users = await self._where(USERS, User, "firebase_uid", firebase_uid)
        return users[0] if users else None

    @translated
    async def get_user_by_email(self, email: str) -> Optional[User]:
        users = await self._where(USERS, User, "email_lower", email.lower())
        return users[0] if users else None

    @translated
    async def create_user(self, data: UserBase) -> User:
        await self._check_user_unique(data.firebase_uid, data.email)
        return await self._create(USERS, User, data, user_derived_fields)

    @translated
    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        current = await self._get(USERS, User, user_id)
        if current is None:
            return None
        await self._check_user_unique(
            changes.get("firebase_uid", current.firebase_uid),
            changes.get("email", current.email),
            exclude_id=user_id,
        )
        return await self._update(USERS, User, user_id, changes, user_derived_fields)

    @translated
    async def get_users(self) -> List[User]:
        return await self._newest(USERS, User)

    # ---- patients

    @translated
    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return await self._get(PATIENTS, Patient, patient_id)

    @translated
    async def create_patient(self, data: PatientBase) -> Patient:
        return await self._create(PATIENTS, Patient, data, patient_derived_fields)

    @translated
    async def update_patient(self, patient_id: str, changes: Dict[str, Any]) -> Optional[Patient]:
        return await self._update(PATIENTS, Patient, patient_id, changes, patient_derived_fields)

    @translated
    async def get_patients(self) -> List[Patient]:
        return await self._newest(PATIENTS, Patient)

    @translated
    async def search_patients(self, query: str) -> List[Patient]:
        query = normalize_query(query)
        if not query:
            return []
        # Firestore has no substring operator: scan and match like the memory store
        snapshots = await self._collection(PATIENTS).get()
        matches = {}
        for snapshot in snapshots:
            doc = decode_value(snapshot.to_dict() or {})
            if patient_matches(doc, query):
                matches[snapshot.id] = self._to_record(Patient, snapshot)
        return newest_first(list(matches.values()))

    # ---- appointments

    @translated
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return await self._get(APPOINTMENTS, Appointment, appointment_id)

    @translated
    async def create_appointment(self, data: AppointmentBase) -> Appointment:
        return await self._create(APPOINTMENTS, Appointment, data, appointment_derived_fields)

    @translated
    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> Optional[Appointment]:
        changes = dict(changes, updated_at=utcnow())
        return await self._update(APPOINTMENTS, Appointment, appointment_id, changes, appointment_derived_fields)

    @translated
    async def get_appointments(self) -> List[Appointment]:
        return await self._newest(APPOINTMENTS, Appointment)

    # equality filter only; sorting here avoids a composite index per query
    @translated
    async def get_appointments_by_date(self, date_str: str) -> List[Appointment]:
        day = await self._where(APPOINTMENTS, Appointment, "scheduled_date", date_str)
        return sorted(day, key=lambda a: a.scheduled_at)

    @translated
    async def get_appointments_by_doctor(self, doctor_id: str) -> List[Appointment]:
        mine = await self._where(APPOINTMENTS, Appointment, "doctor_id", doctor_id)
        return sorted(mine, key=lambda a: a.scheduled_at)

    # ---- encounters

    @translated
    async def get_encounter(self, encounter_id: str) -> Optional[Encounter]:
        return await self._get(ENCOUNTERS, Encounter, encounter_id)

    @translated
    async def create_encounter(self, data: EncounterBase) -> Encounter:
        return await self._create(ENCOUNTERS, Encounter, data)

    @translated
    async def update_encounter(self, encounter_id: str, changes: Dict[str, Any]) -> Optional[Encounter]:
        return await self._update(ENCOUNTERS, Encounter, encounter_id, changes)

    @translated
    async def get_encounters_by_patient(self, patient_id: str) -> List[Encounter]:
        return newest_first(await self._where(ENCOUNTERS, Encounter, "patient_id", patient_id))

    # ---- prescriptions

    @translated
    async def get_prescription(self, prescription_id: str) -> Optional[Prescription]:
        return await self._get(PRESCRIPTIONS, Prescription, prescription_id)

    @translated
    async def create_prescription(self, data: PrescriptionBase) -> Prescription:
        return await self._create(PRESCRIPTIONS, Prescription, data)

    @translated
    async def update_prescription(self, prescription_id: str, changes: Dict[str, Any]) -> Optional[Prescription]:
        return await self._update(PRESCRIPTIONS, Prescription, prescription_id, changes)

    @translated
    async def get_prescriptions(self) -> List[Prescription]:
        return await self._newest(PRESCRIPTIONS, Prescription)

    @translated
    async def get_prescriptions_by_patient(self, patient_id: str) -> List[Prescription]:
        return newest_first(await self._where(PRESCRIPTIONS, Prescription, "patient_id", patient_id))

    # ---- audit logs

    @translated
    async def create_audit_log(self, data: AuditLogBase) -> AuditLog:
        return await self._create(AUDIT_LOGS, AuditLog, data)

    @translated
    async def get_audit_logs(self) -> List[AuditLog]:
        return await self._newest(AUDIT_LOGS, AuditLog)

    # ---- photo upload tracking

    @translated
    async def track_photo_upload(self, data: PhotoUploadBase) -> PhotoUpload:
        return await self._create(PHOTO_UPLOADS, PhotoUpload, data, photo_upload_derived_fields, timestamp_field=None)

    async def _latest_upload(self, field: str, value: str) -> Optional[PhotoUpload]:
        matches = await self._where(PHOTO_UPLOADS, PhotoUpload, field, value)
        if not matches:
            return None
        return newest_first(matches, "uploaded_at")[0]

    @translated
    async def update_photo_upload(self, temp_path: str, changes: Dict[str, Any]) -> Optional[PhotoUpload]:
        upload = await self._latest_upload("temp_path", temp_path)
        if upload is None:
            return None
        return await self._update(PHOTO_UPLOADS, PhotoUpload, upload.id, changes)

    @translated
    async def cleanup_photo_upload(self, upload_id: str, user_id: str) -> Optional[PhotoUpload]:
        upload = await self._latest_upload("upload_id", upload_id)
        if upload is None:
            return None
        return await self._update(PHOTO_UPLOADS, PhotoUpload, upload.id, {
            "status": PhotoUploadStatus.CLEANED_UP,
            "cleaned_up_by": user_id,
            "cleaned_up_at": utcnow(),
        })

    @translated
    async def get_photo_uploads_for_patient(self, patient_id: str) -> List[PhotoUpload]:
        uploads = await self._where(PHOTO_UPLOADS, PhotoUpload, "patient_id", patient_id)
        return newest_first(uploads, "uploaded_at")

    @translated
    async def cleanup_stale_photo_uploads(self, max_age_hours: float, user_id: str) -> List[PhotoUpload]:
        cutoff = stale_cutoff(max_age_hours)
        query = self._collection(PHOTO_UPLOADS).where(filter=FieldFilter("uploaded_at", "<", cutoff))
        # status is filtered here so the range query needs no composite index
        stale = [u for u in await self._query(query, PhotoUpload) if u.status == PhotoUploadStatus.UPLOADED]

        now = utcnow()
        changes = {
            "status": PhotoUploadStatus.CLEANED_UP.value,
            "cleaned_up_by": user_id,
            "cleaned_up_at": now,
        }
        for start in range(0, len(stale), BATCH_LIMIT):
            batch = self._client.batch()
            for upload in stale[start:start + BATCH_LIMIT]:
                batch.update(self._collection(PHOTO_UPLOADS).document(upload.id), changes)
            await batch.commit()

        return [upload.model_copy(update={
            "status": PhotoUploadStatus.CLEANED_UP,
            "cleaned_up_by": user_id,
            "cleaned_up_at": now,
        }) for upload in stale]

    # ---- maintenance

    @translated
    async def ping(self) -> None:
        await self._collection(HEALTH_COLLECTION).document(HEALTH_DOCUMENT).get()

    @translated
    async def seed_sample_data(self) -> int:
        existing = await self._collection(USERS).limit(1).get()
        if existing:
            logger.info("seed_skipped", backend="firestore", reason="users already present")
            return 0
        for user in SAMPLE_USERS:
            await self.create_user(user)
        logger.info("seed_completed", backend="firestore", users=len(SAMPLE_USERS))
        return len(SAMPLE_USERS)
