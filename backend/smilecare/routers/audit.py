from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..database import get_storage
from ..models import AuditAction, AuditEntityType, AuditLog, User
from ..storage import Storage
from ..utils.deps import require_admin

router = APIRouter(prefix="/audit", tags=["audit"])

#Returns audit logs newest first (admin only)
@router.get("/logs", response_model=List[AuditLog])
async def get_audit_logs(
    action: Optional[AuditAction] = None,
    entity_type: Optional[AuditEntityType] = None,
    limit: int = Query(100, ge=1, le=1000),
    storage: Storage = Depends(get_storage),
    current_user: User = Depends(require_admin)
):
    """Get audit logs with optional filtering."""
    logs = await storage.get_audit_logs()
    if action:
        logs = [log for log in logs if log.action == action]
    if entity_type:
        logs = [log for log in logs if log.entity_type == entity_type]
    return logs[:limit]
