"""
Hybrid storage façade.

Routes every call to the primary (Firestore) backend until that backend
fails once, then switches to an in-memory store for the rest of the process
lifetime. The decision is taken by an availability probe scheduled at
startup; operations wait for the probe before choosing a backend.

    UNVERIFIED --probe ok--> USING_PRIMARY --any failure--> USING_FALLBACK
    UNVERIFIED --probe failed / no primary-----------------> USING_FALLBACK
"""
import asyncio
import enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..logging import get_logger
from ..models import (
    Appointment, AppointmentBase, AuditLog, AuditLogBase, Encounter, EncounterBase,
    Patient, PatientBase, PhotoUpload, PhotoUploadBase, Prescription, PrescriptionBase,
    User, UserBase,
)
from .base import Storage
from .errors import ConflictError, InvalidRecordError
from .memory import MemoryStorage

logger = get_logger(__name__)

#Caller mistakes: re-raised as-is, they say nothing about backend health
CALLER_ERRORS = (ConflictError, InvalidRecordError, ValidationError)


class BackendState(str, enum.Enum):
    UNVERIFIED = "unverified"
    USING_PRIMARY = "using_primary"
    USING_FALLBACK = "using_fallback"


class HybridStorage:
    """Storage contract that fails over permanently from primary to memory."""

    def __init__(
        self,
        primary: Optional[Storage] = None,
        fallback_factory: Callable[[], Storage] = MemoryStorage,
    ) -> None:
        self._primary = primary
        self._fallback_factory = fallback_factory
        self._fallback: Optional[Storage] = None
        self._state = BackendState.UNVERIFIED
        self._probe_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def active_backend(self) -> str:
        if self._state == BackendState.USING_PRIMARY:
            return "firestore"
        if self._state == BackendState.USING_FALLBACK:
            return "memory"
        return "unverified"

    # ---- probe

    def start(self) -> None:
        """Schedule the availability probe without waiting for it."""
        if self._probe_task is None:
            self._probe_task = asyncio.ensure_future(self._probe())

    async def ready(self) -> None:
        """Wait until the probe has decided which backend to use."""
        if self._state != BackendState.UNVERIFIED:
            return
        self.start()
        await asyncio.shield(self._probe_task)

    async def _probe(self) -> None:
        if self._primary is None:
            self._switch_to_fallback("no primary backend configured")
            return
        try:
            await self._primary.ping()
        except Exception as exc:
            self._switch_to_fallback("probe failed", exc)
            return
        if self._state == BackendState.UNVERIFIED:
            self._state = BackendState.USING_PRIMARY
            logger.info("storage_backend_selected", backend="firestore")

    # ---- switching

    def _fallback_store(self) -> Storage:
        if self._fallback is None:
            self._fallback = self._fallback_factory()
        return self._fallback

    def _switch_to_fallback(self, reason: str, exc: Optional[BaseException] = None) -> None:
        if self._state == BackendState.USING_FALLBACK:
            return
        previous = self._state
        self._state = BackendState.USING_FALLBACK
        self._fallback_store()
        logger.warning(
            "storage_fallback_activated",
            reason=reason,
            previous_state=previous.value,
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
        )

    async def _run(self, operation: str, *args: Any) -> Any:
        await self.ready()
        if self._state == BackendState.USING_PRIMARY:
            try:
                return await getattr(self._primary, operation)(*args)
            except CALLER_ERRORS:
                raise
            except Exception as exc:
                self._switch_to_fallback(f"{operation} failed", exc)
        return await getattr(self._fallback_store(), operation)(*args)

    # ---- users

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self._run("get_user", user_id)

    async def get_user_by_firebase_uid(self, firebase_uid: str) -> Optional[User]:
        return await self._run("get_user_by_firebase_uid", firebase_uid)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._run("get_user_by_email", email)

    async def create_user(self, data: UserBase) -> User:
        return await self._run("create_user", data)

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        return await self._run("update_user", user_id, changes)

    async def get_users(self) -> List[User]:
        return await self._run("get_users")

    # ---- patients

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return await self._run("get_patient", patient_id)

    async def create_patient(self, data: PatientBase) -> Patient:
        return await self._run("create_patient", data)

    async def update_patient(self, patient_id: str, changes: Dict[str, Any]) -> Optional[Patient]:
        return await self._run("update_patient", patient_id, changes)

    async def get_patients(self) -> List[Patient]:
        return await self._run("get_patients")

    async def search_patients(self, query: str) -> List[Patient]:
        return await self._run("search_patients", query)

    # ---- appointments

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return await self._run("get_appointment", appointment_id)

    async def create_appointment(self, data: AppointmentBase) -> Appointment:
        return await self._run("create_appointment", data)

    async def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> Optional[Appointment]:
        return await self._run("update_appointment", appointment_id, changes)

    async def get_appointments(self) -> List[Appointment]:
        return await self._run("get_appointments")

    async def get_appointments_by_date(self, date_str: str) -> List[Appointment]:
        return await self._run("get_appointments_by_date", date_str)

    async def get_appointments_by_doctor(self, doctor_id: str) -> List[Appointment]:
        return await self._run("get_appointments_by_doctor", doctor_id)

    # ---- encounters

    async def get_encounter(self, encounter_id: str) -> Optional[Encounter]:
        return await self._run("get_encounter", encounter_id)

    async def create_encounter(self, data: EncounterBase) -> Encounter:
        return await self._run("create_encounter", data)

    async def update_encounter(self, encounter_id: str, changes: Dict[str, Any]) -> Optional[Encounter]:
        return await self._run("update_encounter", encounter_id, changes)

    async def get_encounters_by_patient(self, patient_id: str) -> List[Encounter]:
        return await self._run("get_encounters_by_patient", patient_id)

    # ---- prescriptions

    async def get_prescription(self, prescription_id: str) -> Optional[Prescription]:
        return await self._run("get_prescription", prescription_id)

    async def create_prescription(self, data: PrescriptionBase) -> Prescription:
        return await self._run("create_prescription", data)

    async def update_prescription(self, prescription_id: str, changes: Dict[str, Any]) -> Optional[Prescription]:
        return await self._run("update_prescription", prescription_id, changes)

    async def get_prescriptions(self) -> List[Prescription]:
        return await self._run("get_prescriptions")

    async def get_prescriptions_by_patient(self, patient_id: str) -> List[Prescription]:
        return await self._run("get_prescriptions_by_patient", patient_id)

    # ---- audit logs

    async def create_audit_log(self, data: AuditLogBase) -> AuditLog:
        return await self._run("create_audit_log", data)

    async def get_audit_logs(self) -> List[AuditLog]:
        return await self._run("get_audit_logs")

    # ---- photo upload tracking

    async def track_photo_upload(self, data: PhotoUploadBase) -> PhotoUpload:
        return await self._run("track_photo_upload", data)

    async def update_photo_upload(self, temp_path: str, changes: Dict[str, Any]) -> Optional[PhotoUpload]:
        return await self._run("update_photo_upload", temp_path, changes)

    async def cleanup_photo_upload(self, upload_id: str, user_id: str) -> Optional[PhotoUpload]:
        return await self._run("cleanup_photo_upload", upload_id, user_id)

    async def get_photo_uploads_for_patient(self, patient_id: str) -> List[PhotoUpload]:
        return await self._run("get_photo_uploads_for_patient", patient_id)

    async def cleanup_stale_photo_uploads(self, max_age_hours: float, user_id: str) -> List[PhotoUpload]:
        return await self._run("cleanup_stale_photo_uploads", max_age_hours, user_id)

    # ---- maintenance

    async def ping(self) -> None:
        return await self._run("ping")

    async def seed_sample_data(self) -> int:
        return await self._run("seed_sample_data")
