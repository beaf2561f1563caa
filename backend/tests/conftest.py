from datetime import date

import pytest
from fastapi.testclient import TestClient

from smilecare.config import Settings
from smilecare.main import create_app
from smilecare.models import PatientBase
from smilecare.storage import HybridStorage, MemoryStorage
from smilecare.uploads import MemoryObjectStore
from smilecare.utils.auth import create_access_token

ADMIN_UID = "admin-firebase-uid"
DOCTOR_UID = "doctor1-firebase-uid"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def auth_headers(firebase_uid: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': firebase_uid})}"}


def make_patient(**overrides) -> PatientBase:
    data = {
        "first_name": "John",
        "last_name": "Smith",
        "date_of_birth": date(1985, 4, 12),
        "phone": "+15551234567",
        "email": "John.Smith@smilecare.com",
    }
    data.update(overrides)
    return PatientBase(**data)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def object_store():
    return MemoryObjectStore()


@pytest.fixture
def app_settings():
    return Settings(
        _env_file=None,
        seed_sample_data=True,
        firebase_project_id=None,
        photo_upload_retry_base_seconds=0,
    )


@pytest.fixture
def storage():
    # no primary configured: the probe settles on the memory fallback
    return HybridStorage(None)


@pytest.fixture
def client(app_settings, storage, object_store):
    app = create_app(app_settings, storage=storage, object_store=object_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_UID)


@pytest.fixture
def doctor_headers():
    return auth_headers(DOCTOR_UID)


@pytest.fixture
def staff_headers(client, admin_headers):
    response = client.post("/users/", headers=admin_headers, json={
        "firebase_uid": "staff-firebase-uid",
        "email": "frontdesk@smilecare.com",
        "name": "Front Desk",
        "role": "staff",
    })
    assert response.status_code == 201
    return auth_headers("staff-firebase-uid")
