import json

import httpx
import pytest

from smilecare.models import AuditAction, AuditEntityType, PhotoUploadStatus
from smilecare.schemas.upload import TrackPhotoUploadRequest
from smilecare.uploads import HttpUploadTracker, StorageUploadTracker, TrackingError

BASE_URL = "http://clinic.test"

UPLOAD = TrackPhotoUploadRequest(
    patient_id="temp-1700000000000",
    temp_path="patient-photos/2023/11/temp-1700000000000/temp-1700000000000_1700000000000.jpg",
    original_name="face.jpg",
    size=2048,
    content_type="image/jpeg",
    upload_id="temp-1700000000000_1700000000000_k3j9x0q1z",
)


def token(value="secret-token"):
    async def provider():
        return value
    return provider


def tracker_with(handler, token_provider=None):
    return HttpUploadTracker(BASE_URL, token_provider or token(), transport=httpx.MockTransport(handler))


async def test_track_posts_with_bearer_token():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(201, json={"success": True})

    await tracker_with(handler).track(UPLOAD)

    request = requests[0]
    assert request.method == "POST"
    assert request.url == f"{BASE_URL}/uploads/photos/track"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert json.loads(request.content) == UPLOAD.model_dump()


async def test_track_without_token_is_skipped():
    requests = []
    tracker = tracker_with(lambda request: requests.append(request), token_provider=token(None))
    await tracker.track(UPLOAD)
    assert requests == []


async def test_server_error_message_is_surfaced():
    tracker = tracker_with(lambda request: httpx.Response(500, json={"error": "Firestore unavailable"}))
    with pytest.raises(TrackingError, match="Server tracking failed: Firestore unavailable"):
        await tracker.track(UPLOAD)


async def test_server_error_without_body_uses_reason():
    tracker = tracker_with(lambda request: httpx.Response(502, text="bad gateway"))
    with pytest.raises(TrackingError, match="Server tracking failed: Bad Gateway"):
        await tracker.track(UPLOAD)


async def test_repath_requires_token():
    tracker = tracker_with(lambda request: httpx.Response(200, json={}), token_provider=token(""))
    with pytest.raises(TrackingError):
        await tracker.repath(UPLOAD.temp_path, "patient-photos/final.jpg", "p1")


async def test_cleanup_sends_delete():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"success": True})

    await tracker_with(handler).cleanup(UPLOAD.upload_id)
    assert seen == [("DELETE", f"/uploads/photos/{UPLOAD.upload_id}")]


async def test_status_returns_records():
    records = [{"upload_id": UPLOAD.upload_id, "status": "uploaded"}]
    tracker = tracker_with(lambda request: httpx.Response(200, json=records))
    assert await tracker.status("temp-1700000000000") == records


async def test_status_is_empty_on_failure():
    tracker = tracker_with(lambda request: httpx.Response(503, json={"error": "down"}))
    assert await tracker.status("p1") == []

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await tracker_with(unreachable).status("p1") == []


async def test_cleanup_stale_returns_count():
    def handler(request):
        assert json.loads(request.content) == {"max_age_hours": 12}
        return httpx.Response(200, json={"success": True, "cleaned_uploads": 3})

    assert await tracker_with(handler).cleanup_stale(12) == 3


async def test_storage_tracker_writes_record_and_audit(memory_storage):
    await StorageUploadTracker(memory_storage, "user-1").track(UPLOAD)

    [record] = await memory_storage.get_photo_uploads_for_patient(UPLOAD.patient_id)
    assert record.status == PhotoUploadStatus.UPLOADED
    assert record.uploaded_by == "user-1"
    assert record.temp_path == UPLOAD.temp_path

    [entry] = await memory_storage.get_audit_logs()
    assert entry.action == AuditAction.UPLOAD
    assert entry.entity_type == AuditEntityType.PATIENT_PHOTO
    assert entry.entity_id == UPLOAD.patient_id
    assert entry.changes == {
        "upload_id": UPLOAD.upload_id,
        "temp_path": UPLOAD.temp_path,
        "original_name": "face.jpg",
        "size": 2048,
    }
