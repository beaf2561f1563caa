#Persisted staff identity records.
from datetime import datetime
from typing import Optional
#to define controlled value sets.
import enum

from pydantic import BaseModel


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    NURSE = "nurse"
    STAFF = "staff"
    PATIENT = "patient"


#fields supplied by the caller when a user is created
class UserBase(BaseModel):
    firebase_uid: str  # external auth identifier, unique
    email: str
    name: str
    role: UserRole
    specialization: Optional[str] = None
    is_active: bool = True


class User(UserBase):
    id: str
    email_lower: str  # for case-insensitive lookups
    created_at: datetime
