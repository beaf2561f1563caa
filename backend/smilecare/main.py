import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
#Handles Cross-Origin Resource Sharing
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings as default_settings
#Firebase bootstrap and the shared storage handles
from .database import build_object_store, build_storage, init_firebase_app
from .logging import configure_logging, get_logger
from .middleware import RequestContextMiddleware, SecurityMiddleware
#Routers - modular route groups
from .routers import (
    appointments_router, audit_router, dashboard_router, encounters_router,
    patients_router, prescriptions_router, uploads_router, users_router,
)
from .storage import HybridStorage
from .uploads import ObjectStore, PhotoUploadManager, PhotoUploadOptions
from .utils.errors import register_exception_handlers

logger = get_logger(__name__)


#Periodically cancels uploads that have been in flight for too long
async def sweep_stale_uploads(manager: PhotoUploadManager, interval_seconds: float, max_age_minutes: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        cancelled = await manager.sweep_stale(max_age_minutes)
        if cancelled:
            logger.info("stale_uploads_swept", count=len(cancelled))


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[HybridStorage] = None,
    object_store: Optional[ObjectStore] = None,
) -> FastAPI:
    """Build the API; storage and object store are created at startup unless given."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, json_logs=settings.json_logs)

        firebase_app = None
        if storage is None or object_store is None:
            firebase_app = init_firebase_app(settings)

        # Probe Firestore before accepting requests; falls back to memory on failure
        app_storage = storage or build_storage(settings, firebase_app)
        app_storage.start()
        await app_storage.ready()

        app_object_store = object_store or build_object_store(settings, firebase_app)

        app.state.settings = settings
        app.state.storage = app_storage
        app.state.object_store = app_object_store
        app.state.upload_manager = PhotoUploadManager(
            app_object_store,
            options=PhotoUploadOptions(
                max_size_bytes=settings.photo_max_size_bytes,
                folder=settings.photo_folder,
            ),
            max_retries=settings.photo_upload_max_retries,
            retry_base_seconds=settings.photo_upload_retry_base_seconds,
        )

        #Sample rows only when explicitly enabled
        if settings.seed_sample_data:
            inserted = await app_storage.seed_sample_data()
            logger.info("sample_data_seeded", inserted=inserted)

        sweeper = asyncio.ensure_future(sweep_stale_uploads(
            app.state.upload_manager,
            settings.stale_sweep_interval_seconds,
            settings.stale_upload_max_age_minutes,
        ))

        logger.info("startup_complete", storage_backend=app_storage.active_backend, environment=settings.environment)
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        logger.info("shutdown")

    # Initialize FastAPI app
    #Adds API metadata
    app = FastAPI(
        title="SmileCare Clinic API",
        description="Dental clinic administration: patients, appointments, prescriptions and photo uploads",
        version="1.0.0",
        #interactive docs only in development
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Configure CORS(Cross-Origin Resource Sharing)
    #allows your frontend to access this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(users_router)
    app.include_router(patients_router)
    app.include_router(appointments_router)
    app.include_router(encounters_router)
    app.include_router(prescriptions_router)
    app.include_router(audit_router)
    app.include_router(uploads_router)
    app.include_router(dashboard_router)

    @app.get("/")
    async def root():
        return {"message": "SmileCare Clinic API is running"}

    @app.get("/health")
    async def health_check(request: Request):
        #Reports which storage backend is serving requests
        app_storage = request.app.state.storage
        return {
            "status": "healthy",
            "storage": app_storage.active_backend,
            "storage_state": app_storage.state.value,
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
