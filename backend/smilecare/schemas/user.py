from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from ..models.user import UserRole #role-based access control
from ..utils.validators import SecureTextValidator


#staff account creation (admin only); firebase_uid links the identity provider account
class UserCreate(BaseModel):
    firebase_uid: str
    email: EmailStr
    name: str
    role: UserRole
    specialization: Optional[str] = None
    is_active: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return SecureTextValidator.sanitize_display_name(v)

    @field_validator('firebase_uid')
    @classmethod
    def validate_firebase_uid(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Firebase uid is required')
        return v


#partial updates
class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None
    specialization: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator('email', 'name', 'role', 'is_active')
    @classmethod
    def reject_null(cls, v, info):
        return SecureTextValidator.require_value(v, info.field_name)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return None
        return SecureTextValidator.sanitize_display_name(v)


#strictly controls which user fields callers may set; uid and id are never editable after creation
