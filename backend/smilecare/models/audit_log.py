#append-only record of every mutation
from datetime import datetime
from typing import Any, Dict, Optional
#to create controlled, type-safe values
import enum

from pydantic import BaseModel


#Defines allowed actions that can be logged
class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPLOAD = "upload"
    REPATH = "repath"
    CLEANUP = "cleanup"
    BATCH_CLEANUP = "batch_cleanup"


#Identifies what kind of entity the action was performed on.
class AuditEntityType(str, enum.Enum):
    USER = "user"
    PATIENT = "patient"
    APPOINTMENT = "appointment"
    ENCOUNTER = "encounter"
    PRESCRIPTION = "prescription"
    PATIENT_PHOTO = "patient_photo"


class AuditLogBase(BaseModel):
    user_id: str  # acting user
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: str
    changes: Optional[Dict[str, Any]] = None  # before/after values or context


#Never updated or deleted once written
class AuditLog(AuditLogBase):
    id: str
    created_at: datetime
