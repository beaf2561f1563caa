"""
Object storage for patient photos.

FirebaseObjectStore talks to the project's Cloud Storage bucket;
MemoryObjectStore keeps bytes in a dict and is used when no bucket is
configured and in tests. Both raise the storage error taxonomy.
"""
import uuid
from typing import Dict, Optional, Protocol, Tuple
from urllib.parse import quote

from fastapi.concurrency import run_in_threadpool
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
import requests

from ..logging import get_logger
from ..storage.errors import NotFoundError
from ..storage.firestore import translate_error

logger = get_logger(__name__)

FIREBASE_DOWNLOAD_URL = "https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{path}?alt=media&token={token}"


class ObjectStore(Protocol):
    async def put_object(
        self, path: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None
    ) -> None: ...
    async def get_download_url(self, path: str) -> str: ...
    async def delete_object(self, path: str) -> None: ...
    async def copy_object(self, source_path: str, destination_path: str) -> None: ...


class FirebaseObjectStore:
    """Cloud Storage bucket obtained through firebase_admin.storage."""

    def __init__(self, bucket) -> None:
        self._bucket = bucket

    async def _call(self, func, *args, **kwargs):
        # google-cloud-storage is blocking
        try:
            return await run_in_threadpool(func, *args, **kwargs)
        except (
            google_exceptions.GoogleAPIError,
            auth_exceptions.GoogleAuthError,
            #transport failures (resets, timeouts) surface from the requests session
            requests.exceptions.RequestException,
        ) as exc:
            raise translate_error(exc) from exc

    async def put_object(
        self, path: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None
    ) -> None:
        blob = self._bucket.blob(path)
        blob.metadata = dict(metadata or {}, firebaseStorageDownloadTokens=uuid.uuid4().hex)
        await self._call(blob.upload_from_string, data, content_type=content_type)

    async def get_download_url(self, path: str) -> str:
        blob = self._bucket.blob(path)
        await self._call(blob.reload)
        token = (blob.metadata or {}).get("firebaseStorageDownloadTokens", "").split(",")[0]
        return FIREBASE_DOWNLOAD_URL.format(bucket=self._bucket.name, path=quote(path, safe=""), token=token)

    async def delete_object(self, path: str) -> None:
        await self._call(self._bucket.blob(path).delete)

    async def copy_object(self, source_path: str, destination_path: str) -> None:
        source = self._bucket.blob(source_path)
        await self._call(self._bucket.copy_blob, source, self._bucket, destination_path)


class MemoryObjectStore:
    """Dict-backed object store; download URLs use the memory:// scheme."""

    def __init__(self) -> None:
        self.objects: Dict[str, Tuple[bytes, str, Dict[str, str]]] = {}

    async def put_object(
        self, path: str, data: bytes, content_type: str, metadata: Optional[Dict[str, str]] = None
    ) -> None:
        self.objects[path] = (bytes(data), content_type, dict(metadata or {}))

    async def get_download_url(self, path: str) -> str:
        if path not in self.objects:
            raise NotFoundError(f"No object at {path}")
        return f"memory://{path}"

    async def delete_object(self, path: str) -> None:
        if self.objects.pop(path, None) is None:
            raise NotFoundError(f"No object at {path}")

    async def copy_object(self, source_path: str, destination_path: str) -> None:
        if source_path not in self.objects:
            raise NotFoundError(f"No object at {source_path}")
        data, content_type, metadata = self.objects[source_path]
        self.objects[destination_path] = (data, content_type, dict(metadata))
