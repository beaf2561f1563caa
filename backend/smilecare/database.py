#Firebase bootstrap and the storage handles shared by every request.
from typing import Optional

#Admin SDK: Firestore (async client) and Cloud Storage bucket
import firebase_admin
from firebase_admin import credentials, firestore_async, storage as firebase_storage
from fastapi import Request

from .config import Settings
from .logging import get_logger
from .storage import HybridStorage, Storage
from .storage.firestore import FirestoreStorage
from .uploads import FirebaseObjectStore, MemoryObjectStore, ObjectStore

logger = get_logger(__name__)


#Initialize the default Firebase app once; None when no project is configured
def init_firebase_app(settings: Settings) -> Optional[firebase_admin.App]:
    if not settings.firebase_project_id:
        logger.info("firebase_not_configured")
        return None
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if settings.firebase_credentials_path:
        cred = credentials.Certificate(settings.firebase_credentials_path)
    else:
        cred = credentials.ApplicationDefault()
    options = {"projectId": settings.firebase_project_id}
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket
    return firebase_admin.initialize_app(cred, options)


#Create the hybrid storage; it falls back to memory if Firestore is unusable
def build_storage(settings: Settings, app: Optional[firebase_admin.App] = None) -> HybridStorage:
    primary = None
    if app is not None:
        try:
            primary = FirestoreStorage(firestore_async.client(app))
        except Exception as exc:
            # bad credentials surface here, before the probe can run
            logger.warning("firestore_client_unavailable", error=str(exc))
    return HybridStorage(primary)


#Cloud Storage bucket when configured, memory otherwise
def build_object_store(settings: Settings, app: Optional[firebase_admin.App] = None) -> ObjectStore:
    if app is not None and settings.firebase_storage_bucket:
        return FirebaseObjectStore(firebase_storage.bucket(app=app))
    logger.info("object_store_in_memory")
    return MemoryObjectStore()


# Dependencies to get the shared handles built in the app lifespan
def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def get_upload_manager(request: Request):
    return request.app.state.upload_manager


#One storage handle per process, created at startup and injected with Depends, never at import time
