#Tracking record for one patient photo upload attempt.
from datetime import datetime
from typing import Any, Dict, Optional
import enum

from pydantic import BaseModel


class PhotoUploadStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    CONFIRMED = "confirmed"
    CLEANED_UP = "cleaned_up"
    FAILED = "failed"


class PhotoUploadBase(BaseModel):
    patient_id: str  # may be a temp-<millis> placeholder before the patient exists
    temp_path: str
    final_path: Optional[str] = None
    original_name: str
    size: int
    content_type: str
    upload_id: str  # client-generated correlation token
    uploaded_by: str
    uploaded_at: datetime
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cleaned_up_by: Optional[str] = None
    cleaned_up_at: Optional[datetime] = None
    status: PhotoUploadStatus = PhotoUploadStatus.UPLOADED
    metadata: Optional[Dict[str, Any]] = None


class PhotoUpload(PhotoUploadBase):
    id: str
