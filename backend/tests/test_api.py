import asyncio
import json
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from smilecare import main
from smilecare.models import Patient, PhotoUploadBase
from smilecare.routers.patients import _age_in_years
from smilecare.storage import HybridStorage, MemoryStorage
from smilecare.storage.base import utcnow
from smilecare.utils.errors import record_validation_exception_handler

from conftest import PNG_BYTES, auth_headers

CONSENT = {
    "treatment_consent": True,
    "privacy_policy_consent": True,
    "data_processing_consent": True,
}


def patient_payload(**overrides):
    data = {
        "first_name": "John",
        "last_name": "Smith",
        "date_of_birth": "1985-04-12",
        "phone": "+1 555 123 4567",
        "email": "john.smith@gmail.com",
        "consent_forms": CONSENT,
    }
    data.update(overrides)
    return data


def create_patient(client, headers, **overrides):
    response = client.post("/patients/", headers=headers, json=patient_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def upload_photo(client, headers, patient_id):
    response = client.post(
        "/uploads/photos/",
        headers=headers,
        data={"patient_id": patient_id},
        files={"file": ("face.png", PNG_BYTES, "image/png")},
    )
    assert response.status_code == 201, response.text
    return response.json()


def audit_entries(client, headers, **params):
    response = client.get("/audit/logs", headers=headers, params=params)
    assert response.status_code == 200
    return response.json()


class TestService:
    def test_health_reports_storage_backend(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "storage": "memory", "storage_state": "using_fallback"}

    def test_security_and_request_id_headers(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/patients/")
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "Authentication required"
        assert body["statusCode"] == 401
        assert body["details"] is None
        assert "timestamp" in body

    def test_invalid_token(self, client):
        response = client.get("/patients/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_unknown_user(self, client):
        response = client.get("/users/me", headers=auth_headers("ghost-uid"))
        assert response.status_code == 401
        assert response.json()["error"] == "User not found"

    def test_me(self, client, doctor_headers):
        response = client.get("/users/me", headers=doctor_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Dr. Smith"

    def test_staff_cannot_create_patients(self, client, staff_headers):
        response = client.post("/patients/", headers=staff_headers, json=patient_payload())
        assert response.status_code == 403
        assert "Required role: staff, permission: write:patients" in response.json()["error"]

    def test_staff_can_list_patients(self, client, staff_headers):
        assert client.get("/patients/", headers=staff_headers).status_code == 200

    def test_users_list_is_admin_only(self, client, admin_headers, doctor_headers):
        assert client.get("/users/", headers=doctor_headers).status_code == 403
        assert len(client.get("/users/", headers=admin_headers).json()) == 3

    def test_disabled_account_is_rejected(self, client, admin_headers, staff_headers):
        staff = next(u for u in client.get("/users/", headers=admin_headers).json() if u["role"] == "staff")
        response = client.patch(f"/users/{staff['id']}", headers=admin_headers, json={"is_active": False})
        assert response.status_code == 200

        response = client.get("/users/me", headers=staff_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Account disabled"

    def test_duplicate_user_email_conflicts(self, client, admin_headers):
        response = client.post("/users/", headers=admin_headers, json={
            "firebase_uid": "another-uid",
            "email": "DR.SMITH@smilecare.com",
            "name": "Dr. Imposter",
            "role": "doctor",
        })
        assert response.status_code == 409
        assert response.json()["error"] == "A user with this email already exists"


class TestPatients:
    def test_create_and_fetch_patient(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        assert patient["full_name"] == "John Smith"
        assert patient["phone"] == "+15551234567"

        response = client.get(f"/patients/{patient['id']}", headers=doctor_headers)
        assert response.status_code == 200
        assert response.json()["id"] == patient["id"]

    def test_unknown_patient(self, client, doctor_headers):
        response = client.get("/patients/doesnotexist", headers=doctor_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Patient not found"

    def test_validation_errors_use_error_body(self, client, doctor_headers):
        payload = patient_payload(consent_forms=dict(CONSENT, treatment_consent=False))
        response = client.post("/patients/", headers=doctor_headers, json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["details"][0]["field"] == "consent_forms.treatment_consent"

    def test_future_birth_date_rejected(self, client, doctor_headers):
        response = client.post("/patients/", headers=doctor_headers, json=patient_payload(date_of_birth="2999-01-01"))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid date of birth"

    def test_duplicate_phone_conflicts(self, client, doctor_headers):
        existing = create_patient(client, doctor_headers)
        response = client.post("/patients/", headers=doctor_headers, json=patient_payload(email="other@gmail.com"))
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "Patient with this phone number already exists"
        assert body["details"] == {"existing_patient_id": existing["id"]}

    def test_duplicate_email_conflicts_ignoring_case(self, client, doctor_headers):
        create_patient(client, doctor_headers)
        response = client.post(
            "/patients/", headers=doctor_headers,
            json=patient_payload(phone="+44 20 7946 0000", email="JOHN.SMITH@gmail.com"),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Patient with this email already exists"

    def test_search(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        create_patient(client, doctor_headers, first_name="Jane", last_name="Doe", phone="+44 20 7946 0000", email="")

        response = client.get("/patients/", headers=doctor_headers, params={"search": "smi"})
        assert [p["id"] for p in response.json()] == [patient["id"]]

        response = client.get("/patients/", headers=doctor_headers, params={"search": "<script>"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid search query"

    def test_update_patient_recomputes_full_name(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        response = client.patch(f"/patients/{patient['id']}", headers=doctor_headers, json={"last_name": "Jones"})
        assert response.status_code == 200
        assert response.json()["full_name"] == "John Jones"

    @pytest.mark.parametrize("today, expected", [
        (date(2024, 6, 14), 23),
        (date(2024, 6, 15), 24),
        (date(2024, 12, 1), 24),
    ])
    def test_age_counts_whole_years(self, today, expected):
        assert _age_in_years(date(2000, 6, 15), today) == expected

    def test_create_is_audited_without_photo_url(self, client, doctor_headers, admin_headers):
        patient = create_patient(client, doctor_headers, profile_photo_url="https://cdn.example.org/photo.png")
        [entry] = audit_entries(client, admin_headers, entity_type="patient", action="create")
        assert entry["entity_id"] == patient["id"]
        assert entry["changes"]["profile_photo_url"] == "[PHOTO_UPLOADED]"


class TestPhotoRepath:
    TEMP_ID = "temp-1700000000000"

    def test_photo_moves_to_patient_folder(self, client, doctor_headers, admin_headers, object_store):
        uploaded = upload_photo(client, doctor_headers, self.TEMP_ID)
        assert f"/{self.TEMP_ID}/" in uploaded["path"]

        patient = create_patient(client, doctor_headers, profile_photo_url=uploaded["url"])

        assert patient["profile_photo_url"].startswith("memory://patient-photos/")
        assert f"/{patient['id']}/{patient['id']}_" in patient["profile_photo_url"]
        assert uploaded["path"] not in object_store.objects
        assert list(object_store.objects) == [patient["profile_photo_url"][len("memory://"):]]

        [record] = client.get(f"/uploads/photos/status/{patient['id']}", headers=doctor_headers).json()
        assert record["status"] == "confirmed"
        assert record["confirmed_at"] is not None
        assert record["temp_path"] == uploaded["path"]
        assert record["final_path"] == patient["profile_photo_url"][len("memory://"):]

        [entry] = audit_entries(client, admin_headers, action="repath")
        assert entry["entity_id"] == patient["id"]
        assert entry["entity_type"] == "patient_photo"
        assert entry["changes"]["temp_path"] == uploaded["path"]
        assert entry["changes"]["original_photo_url"] == uploaded["url"]

    def test_failed_repath_still_creates_patient(self, client, doctor_headers, admin_headers):
        # tracked, but the object itself was never stored
        temp_path = f"patient-photos/2023/11/{self.TEMP_ID}/{self.TEMP_ID}_1700000000000.png"
        response = client.post("/uploads/photos/track", headers=doctor_headers, json={
            "patient_id": self.TEMP_ID,
            "temp_path": temp_path,
            "original_name": "face.png",
            "size": 100,
            "content_type": "image/png",
            "upload_id": f"{self.TEMP_ID}_1700000000000_abcdefghi",
        })
        assert response.status_code == 201

        photo_url = f"memory://{temp_path}"
        patient = create_patient(client, doctor_headers, profile_photo_url=photo_url)
        assert patient["profile_photo_url"] == photo_url

        [entry] = audit_entries(client, admin_headers, action="repath")
        assert entry["changes"]["error"] == "Photo re-pathing failed"
        assert entry["changes"]["original_photo_url"] == photo_url

    def test_no_pending_upload_leaves_url_alone(self, client, doctor_headers, admin_headers):
        photo_url = f"memory://patient-photos/2023/11/{self.TEMP_ID}/face.png"
        patient = create_patient(client, doctor_headers, profile_photo_url=photo_url)
        assert patient["profile_photo_url"] == photo_url
        assert audit_entries(client, admin_headers, action="repath") == []


class TestUploadEndpoints:
    def test_invalid_photo_is_rejected(self, client, doctor_headers):
        response = client.post(
            "/uploads/photos/",
            headers=doctor_headers,
            data={"patient_id": "p1"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["details"] == {"code": "INVALID_TYPE"}

    def test_upload_is_tracked_and_audited(self, client, doctor_headers, admin_headers):
        uploaded = upload_photo(client, doctor_headers, "temp-42")
        [record] = client.get("/uploads/photos/status/temp-42", headers=doctor_headers).json()
        assert record["upload_id"] == uploaded["upload_id"]
        assert record["status"] == "uploaded"
        [entry] = audit_entries(client, admin_headers, action="upload")
        assert entry["changes"]["upload_id"] == uploaded["upload_id"]

    def test_manual_repath_and_cleanup(self, client, doctor_headers):
        uploaded = upload_photo(client, doctor_headers, "temp-42")

        response = client.post("/uploads/photos/repath", headers=doctor_headers, json={
            "temp_path": uploaded["path"],
            "final_path": "patient-photos/2024/01/p1/p1_1.png",
            "patient_id": "p1",
        })
        assert response.status_code == 200
        assert response.json()["final_path"] == "patient-photos/2024/01/p1/p1_1.png"

        response = client.delete(f"/uploads/photos/{uploaded['upload_id']}", headers=doctor_headers)
        assert response.status_code == 200
        [record] = client.get("/uploads/photos/status/temp-42", headers=doctor_headers).json()
        assert record["status"] == "cleaned_up"

    def test_unknown_uploads_are_404(self, client, doctor_headers):
        response = client.post("/uploads/photos/repath", headers=doctor_headers, json={
            "temp_path": "nowhere.png", "final_path": "somewhere.png", "patient_id": "p1",
        })
        assert response.status_code == 404
        assert client.delete("/uploads/photos/unknown-upload", headers=doctor_headers).status_code == 404

    def test_cleanup_stale_is_admin_only(self, client, doctor_headers, admin_headers, storage):
        asyncio.run(storage.track_photo_upload(PhotoUploadBase(
            patient_id="temp-1", temp_path="old.png", original_name="old.png", size=10,
            content_type="image/png", upload_id="temp-1_1_aaaaaaaaa", uploaded_by="someone",
            uploaded_at=utcnow() - timedelta(hours=48),
        )))

        assert client.post("/uploads/photos/cleanup-stale", headers=doctor_headers).status_code == 403

        response = client.post("/uploads/photos/cleanup-stale", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["cleaned_uploads"] == 1

        [entry] = audit_entries(client, admin_headers, action="batch_cleanup")
        assert entry["entity_id"] == "system"
        assert entry["changes"] == {"cleaned_count": 1, "max_age_hours": 24}


class TestAppointmentsAndDashboard:
    def test_dashboard_counts_todays_appointments(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        doctor = client.get("/users/me", headers=doctor_headers).json()
        now = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)

        def book(when):
            response = client.post("/appointments/", headers=doctor_headers, json={
                "patient_id": patient["id"],
                "doctor_id": doctor["id"],
                "scheduled_at": when.isoformat(),
                "appointment_type": "checkup",
            })
            assert response.status_code == 201, response.text
            return response.json()

        first = book(now)
        book(now + timedelta(hours=1))
        book(now + timedelta(days=1))

        response = client.patch(f"/appointments/{first['id']}", headers=doctor_headers, json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["updated_at"] is not None

        stats = client.get("/dashboard/stats", headers=doctor_headers).json()
        assert stats == {"today_patients": 2, "completed": 1, "in_progress": 0, "pending": 1}

        day = client.get("/appointments/", headers=doctor_headers, params={"date": now.date().isoformat()}).json()
        assert [a["scheduled_at"] for a in day] == sorted(a["scheduled_at"] for a in day)
        assert day[0]["patient"]["id"] == patient["id"]
        assert day[0]["doctor"]["id"] == doctor["id"]

    def test_reschedule_recomputes_end_time(self, client, doctor_headers):
        doctor = client.get("/users/me", headers=doctor_headers).json()
        response = client.post("/appointments/", headers=doctor_headers, json={
            "patient_id": "p1",
            "doctor_id": doctor["id"],
            "scheduled_at": "2024-03-05T09:00:00Z",
            "duration": 30,
            "appointment_type": "cleaning",
        })
        appointment = response.json()

        response = client.patch(f"/appointments/{appointment['id']}", headers=doctor_headers, json={
            "scheduled_at": "2024-03-06T10:00:00Z",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["scheduled_date"] == "2024-03-06"
        assert body["end_time"].startswith("2024-03-06T10:30:00")


class TestPrescriptions:
    def test_share_links(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        doctor = client.get("/users/me", headers=doctor_headers).json()
        response = client.post("/prescriptions/", headers=doctor_headers, json={
            "encounter_id": "e1",
            "patient_id": patient["id"],
            "doctor_id": doctor["id"],
            "medications": [{
                "name": "Amoxicillin", "dosage": "500mg", "frequency": "3x daily", "duration": "7 days",
            }],
        })
        assert response.status_code == 201, response.text
        prescription = response.json()

        response = client.post(f"/prescriptions/{prescription['id']}/whatsapp", headers=doctor_headers)
        assert response.status_code == 200
        assert response.json()["whatsapp_url"].startswith(
            "https://wa.me/15551234567?text=Hello%20John!%20Your%20prescription%20from%20SmileCare%20Clinic"
        )

        response = client.post(f"/prescriptions/{prescription['id']}/email", headers=doctor_headers)
        assert response.json()["mailto_url"].startswith(
            "mailto:john.smith@gmail.com?subject=Your%20prescription%20from%20SmileCare%20Clinic&body="
        )

        [stored] = client.get("/prescriptions/", headers=doctor_headers, params={"patient_id": patient["id"]}).json()
        assert stored["whatsapp_sent"] is True
        assert stored["email_sent"] is True
        assert stored["patient"]["id"] == patient["id"]

    def test_prescription_needs_a_medication(self, client, doctor_headers):
        response = client.post("/prescriptions/", headers=doctor_headers, json={
            "encounter_id": "e1", "patient_id": "p1", "doctor_id": "d1", "medications": [],
        })
        assert response.status_code == 400


class TestPartialUpdates:
    @pytest.fixture
    def storage(self):
        # a healthy memory-backed primary, so any failover would be visible
        return HybridStorage(MemoryStorage())

    def assert_still_on_primary(self, client, doctor_headers):
        health = client.get("/health").json()
        assert health["storage"] == "firestore"
        assert health["storage_state"] == "using_primary"
        assert client.get("/users/me", headers=doctor_headers).status_code == 200

    def test_null_patient_name_is_rejected(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        response = client.patch(f"/patients/{patient['id']}", headers=doctor_headers, json={"first_name": None})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation failed"
        assert body["statusCode"] == 400
        assert body["details"][0]["field"] == "first_name"
        assert "cannot be null" in body["details"][0]["message"]

        assert client.get(f"/patients/{patient['id']}", headers=doctor_headers).json()["first_name"] == "John"
        self.assert_still_on_primary(client, doctor_headers)

    @pytest.mark.parametrize("field", ["scheduled_at", "duration"])
    def test_null_appointment_schedule_is_rejected(self, client, doctor_headers, field):
        doctor = client.get("/users/me", headers=doctor_headers).json()
        response = client.post("/appointments/", headers=doctor_headers, json={
            "patient_id": "p1",
            "doctor_id": doctor["id"],
            "scheduled_at": "2024-03-05T09:00:00Z",
            "appointment_type": "cleaning",
        })
        appointment = response.json()

        response = client.patch(f"/appointments/{appointment['id']}", headers=doctor_headers, json={field: None})
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == field
        self.assert_still_on_primary(client, doctor_headers)

    def test_null_user_email_is_rejected(self, client, admin_headers, doctor_headers):
        doctor = client.get("/users/me", headers=doctor_headers).json()
        response = client.patch(f"/users/{doctor['id']}", headers=admin_headers, json={"email": None})
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "email"
        self.assert_still_on_primary(client, doctor_headers)

    def test_optional_fields_can_still_be_cleared(self, client, doctor_headers):
        patient = create_patient(client, doctor_headers)
        response = client.patch(f"/patients/{patient['id']}", headers=doctor_headers, json={"email": None})
        assert response.status_code == 200
        assert response.json()["email"] is None

    def test_record_validation_errors_use_error_body(self):
        with pytest.raises(ValidationError) as info:
            Patient.model_validate({"first_name": None})
        response = asyncio.run(record_validation_exception_handler(None, info.value))
        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["error"] == "Validation failed"
        assert "first_name" in [detail["field"] for detail in body["details"]]


def test_shutdown_waits_for_stale_sweeper(monkeypatch, app_settings, object_store):
    events = []

    async def sweeper(manager, interval_seconds, max_age_minutes):
        events.append("started")
        try:
            await asyncio.Event().wait()
        finally:
            events.append("stopped")

    monkeypatch.setattr(main, "sweep_stale_uploads", sweeper)
    app = main.create_app(app_settings, storage=HybridStorage(None), object_store=object_store)
    with TestClient(app) as test_client:
        assert test_client.get("/health").status_code == 200
        assert events == ["started"]
    assert events == ["started", "stopped"]
