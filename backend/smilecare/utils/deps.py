#Request-level authentication and role checks used by the routers.
from typing import Callable, Dict, List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..database import get_storage
from ..logging import bind_context, get_logger
from ..models import User, UserRole
from ..storage import Storage
from .auth import verify_token

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

#Higher level includes every lower level
ROLE_HIERARCHY: Dict[UserRole, int] = {
    UserRole.ADMIN: 4,
    UserRole.DOCTOR: 3,
    UserRole.NURSE: 2,
    UserRole.STAFF: 1,
    UserRole.PATIENT: 0,
}

ROLE_PERMISSIONS: Dict[UserRole, List[str]] = {
    UserRole.ADMIN: ["read:all", "write:all", "delete:all", "manage:users"],
    UserRole.DOCTOR: [
        "read:patients", "write:patients",
        "read:appointments", "write:appointments",
        "read:prescriptions", "write:prescriptions",
        "read:encounters", "write:encounters",
    ],
    UserRole.NURSE: ["read:patients", "read:appointments", "write:appointments"],
    UserRole.STAFF: ["read:patients", "read:appointments"],
    UserRole.PATIENT: ["read:own"],
}

#Both tables must cover every role
_missing_roles = (set(UserRole) - set(ROLE_HIERARCHY)) | (set(UserRole) - set(ROLE_PERMISSIONS))
if _missing_roles:
    raise RuntimeError(f"Role tables incomplete: {sorted(r.value for r in _missing_roles)}")


class UnknownRoleError(LookupError):
    """A role with no entry in the role tables."""


def role_level(role: UserRole) -> int:
    try:
        return ROLE_HIERARCHY[role]
    except KeyError:
        raise UnknownRoleError(f"Unknown role: {role}") from None


def has_permission(role: UserRole, permission: str) -> bool:
    """Admins' read:all / write:all grant every permission."""
    try:
        granted = ROLE_PERMISSIONS[role]
    except KeyError:
        raise UnknownRoleError(f"Unknown role: {role}") from None
    return permission in granted or "write:all" in granted or "read:all" in granted


#Get the current user from the bearer token
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    storage: Storage = Depends(get_storage),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    firebase_uid = verify_token(credentials.credentials)
    if firebase_uid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await storage.get_user_by_firebase_uid(firebase_uid)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


#Only active accounts get through
async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    bind_context(user_id=current_user.id, role=current_user.role.value)
    return current_user


#Dependency factory: minimum role level plus an optional permission
def require_role(minimum: UserRole, permission: Optional[str] = None) -> Callable:
    async def checker(current_user: User = Depends(get_current_active_user)) -> User:
        try:
            allowed = role_level(current_user.role) >= role_level(minimum)
            if allowed and permission:
                allowed = has_permission(current_user.role, permission)
        except UnknownRoleError as exc:
            logger.error("unknown_role", user_id=current_user.id, error=str(exc))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Access denied. Required role: {minimum.value}"
                    + (f", permission: {permission}" if permission else "")
                    + f". Your role: {current_user.role.value}"
                ),
            )
        return current_user

    return checker


require_admin = require_role(UserRole.ADMIN)
