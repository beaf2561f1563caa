from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


#notification sent after a photo lands on its temporary path
class TrackPhotoUploadRequest(BaseModel):
    patient_id: str = Field(min_length=1)
    temp_path: str = Field(min_length=1)
    original_name: str = Field(min_length=1)
    size: int = Field(gt=0)
    content_type: str = Field(min_length=1)
    upload_id: str = Field(min_length=1)


#move a tracked photo from its temporary path to its final one
class RepathRequest(BaseModel):
    temp_path: str = Field(min_length=1)
    final_path: str = Field(min_length=1)
    patient_id: str = Field(min_length=1)


class CleanupStaleRequest(BaseModel):
    max_age_hours: float = Field(default=24, gt=0)


#result of a server-side upload through the lifecycle manager
class PhotoUploadResult(BaseModel):
    url: str
    path: str
    size: int
    content_type: str
    upload_id: str


class UploadActionResponse(BaseModel):
    success: bool = True
    message: str
    upload_id: Optional[str] = None
    final_path: Optional[str] = None
    cleaned_uploads: Optional[int] = None


#in-flight upload for one patient, as held by the manager
class LocalUploadStatus(BaseModel):
    patient_id: str
    upload_id: str
    temp_path: Optional[str] = None
    final_path: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3
    started_at: datetime
