import asyncio
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from smilecare.models import AppointmentBase, AppointmentType, UserBase, UserRole
from smilecare.storage import (
    BackendState, ConflictError, HybridStorage, InvalidRecordError, MemoryStorage, StoreError,
)

from conftest import make_patient


class FlakyPrimary(MemoryStorage):
    """Memory store standing in for Firestore; can be told to fail."""

    def __init__(self, ping_error=None):
        super().__init__()
        self.ping_error = ping_error
        self.failing = False
        self.calls = []

    async def ping(self):
        self.calls.append("ping")
        if self.ping_error:
            raise self.ping_error

    async def get_patients(self):
        self.calls.append("get_patients")
        if self.failing:
            raise StoreError("deadline exceeded")
        return await super().get_patients()

    async def create_patient(self, data):
        self.calls.append("create_patient")
        if self.failing:
            raise StoreError("unavailable")
        return await super().create_patient(data)


class CountingFactory:
    def __init__(self):
        self.created = 0

    def __call__(self):
        self.created += 1
        return MemoryStorage()


async def test_probe_success_selects_primary():
    primary = FlakyPrimary()
    storage = HybridStorage(primary)
    assert storage.state == BackendState.UNVERIFIED
    assert storage.active_backend == "unverified"

    storage.start()
    await storage.ready()

    assert storage.state == BackendState.USING_PRIMARY
    assert storage.active_backend == "firestore"


async def test_probe_failure_selects_fallback():
    storage = HybridStorage(FlakyPrimary(ping_error=StoreError("permission denied")))
    await storage.ready()
    assert storage.state == BackendState.USING_FALLBACK
    assert storage.active_backend == "memory"


async def test_no_primary_uses_fallback():
    storage = HybridStorage(None)
    patient = await storage.create_patient(make_patient())
    assert storage.state == BackendState.USING_FALLBACK
    assert (await storage.get_patient(patient.id)).full_name == "John Smith"


async def test_operations_wait_for_probe_without_start():
    primary = FlakyPrimary()
    storage = HybridStorage(primary)
    await storage.create_patient(make_patient())
    assert storage.state == BackendState.USING_PRIMARY
    assert primary.calls == ["ping", "create_patient"]


async def test_concurrent_first_calls_share_one_probe():
    primary = FlakyPrimary()
    storage = HybridStorage(primary)
    await asyncio.gather(storage.get_patients(), storage.get_patients(), storage.get_patients())
    assert primary.calls.count("ping") == 1


async def test_failure_switches_permanently_and_reruns_on_fallback():
    primary = FlakyPrimary()
    factory = CountingFactory()
    storage = HybridStorage(primary, fallback_factory=factory)
    await storage.create_patient(make_patient())

    primary.failing = True
    assert await storage.get_patients() == []
    assert storage.state == BackendState.USING_FALLBACK

    # the primary is never consulted again, even once it recovers
    primary.failing = False
    calls_before = list(primary.calls)
    created = await storage.create_patient(make_patient(first_name="Jane"))
    assert primary.calls == calls_before
    assert [p.id for p in await storage.get_patients()] == [created.id]
    assert factory.created == 1


async def test_conflict_is_raised_without_failover():
    primary = FlakyPrimary()
    storage = HybridStorage(primary)
    user = UserBase(firebase_uid="uid-1", email="a@smilecare.com", name="A", role=UserRole.STAFF)
    await storage.create_user(user)

    with pytest.raises(ConflictError):
        await storage.create_user(user)

    assert storage.state == BackendState.USING_PRIMARY


@pytest.mark.parametrize("changes", [{"scheduled_at": None}, {"duration": None}])
async def test_null_required_field_is_rejected_without_failover(changes):
    primary = FlakyPrimary()
    storage = HybridStorage(primary)
    appointment = await storage.create_appointment(AppointmentBase(
        patient_id="p1",
        doctor_id="d1",
        scheduled_at=datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc),
        appointment_type=AppointmentType.CHECKUP,
    ))

    with pytest.raises(InvalidRecordError):
        await storage.update_appointment(appointment.id, changes)

    assert storage.state == BackendState.USING_PRIMARY
    # the stored appointment is untouched
    assert (await storage.get_appointment(appointment.id)).end_time == appointment.end_time


async def test_invalid_merged_record_is_rejected_without_failover():
    storage = HybridStorage(FlakyPrimary())
    patient = await storage.create_patient(make_patient())

    with pytest.raises(ValidationError):
        await storage.update_patient(patient.id, {"first_name": None})

    assert storage.state == BackendState.USING_PRIMARY
    assert (await storage.get_patient(patient.id)).first_name == "John"


async def test_fallback_created_lazily_once():
    factory = CountingFactory()
    storage = HybridStorage(FlakyPrimary(), fallback_factory=factory)
    await storage.get_patients()
    assert factory.created == 0

    storage = HybridStorage(None, fallback_factory=factory)
    await storage.get_patients()
    await storage.get_patients()
    assert factory.created == 1
