from fastapi import APIRouter, Depends, HTTPException, status
from typing import List

#provides the shared storage handle per request
from ..database import get_storage
from ..models import AuditAction, AuditEntityType, User, UserRole
from ..schemas.user import UserCreate, UserUpdate
from ..storage import Storage
from ..utils.audit import AuditLogger, get_audit_logger
from ..utils.deps import get_current_active_user, require_admin, require_role

router = APIRouter(prefix="/users", tags=["users"])

#Only admins can access it
@router.get("/", response_model=List[User])
async def get_users(
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_admin)
):
    """Get all users (admin only)."""
    return await storage.get_users()

#Returns only the authenticated user's own profile
@router.get("/me", response_model=User)
async def get_user_profile(
    current_user: User = Depends(get_current_active_user)
):
    """Get current user profile."""
    return current_user

#Create a staff account; duplicate uid or email is rejected with 409
@router.post("/", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(require_role(UserRole.ADMIN, "manage:users"))
):
    """Create a user (admin only)."""
    user = await storage.create_user(user_data)
    await audit.log(
        current_user, AuditAction.CREATE, AuditEntityType.USER, user.id,
        user_data.model_dump(mode="json"),
    )
    return user

#Update role, activation or profile fields of another user
@router.patch("/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    storage: Storage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit_logger),
    current_user: User = Depends(require_admin)
):
    """Update a user (admin only)."""
    changes = user_update.model_dump(mode="json", exclude_unset=True)
    user = await storage.update_user(user_id, changes)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await audit.log(current_user, AuditAction.UPDATE, AuditEntityType.USER, user.id, changes)
    return user
