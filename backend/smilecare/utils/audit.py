#Centralized audit log creation for the routers
from typing import Any, Dict, Optional

from fastapi import Depends

from ..database import get_storage
from ..logging import get_logger
from ..models import AuditAction, AuditEntityType, AuditLog, AuditLogBase, User
from ..storage import Storage

logger = get_logger(__name__)


class AuditLogger:
    """Writes append-only audit entries for the acting user."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def log(
        self,
        user: User,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        entry = await self.storage.create_audit_log(AuditLogBase(
            user_id=user.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
        ))
        logger.info(
            "audit_logged",
            action=action.value,
            entity_type=entity_type.value,
            entity_id=entity_id,
        )
        return entry


#Dependency to get an audit logger bound to the shared storage
def get_audit_logger(storage: Storage = Depends(get_storage)) -> AuditLogger:
    return AuditLogger(storage)
