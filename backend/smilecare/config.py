#Pydantic class designed specifically for configuration management.
#automatically reads values from Environment variables
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


#all configuration values needed
class Settings(BaseSettings):
    environment: str = "development"

    # Bearer token verification
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Firebase (Firestore + Storage). Without a project id the app runs on the memory store.
    firebase_project_id: Optional[str] = None
    firebase_credentials_path: Optional[str] = None
    firebase_storage_bucket: Optional[str] = None

    #Sample rows are only written when this is explicitly enabled
    seed_sample_data: bool = False

    log_level: str = "INFO"
    json_logs: bool = False
    cors_origins: List[str] = ["http://localhost:5173"]

    # Patient photo uploads
    photo_folder: str = "patient-photos"
    photo_max_size_bytes: int = 5 * 1024 * 1024
    photo_upload_max_retries: int = 3
    photo_upload_retry_base_seconds: float = 1.0
    stale_upload_max_age_minutes: int = 30
    stale_sweep_interval_seconds: float = 300
    stale_tracking_max_age_hours: int = 24

    #Tells Pydantic to load variables from a .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")


settings = Settings()


#This configuration module uses Pydantic Settings to load environment-based configuration, so secrets are not hardcoded and misconfiguration is detected at startup
