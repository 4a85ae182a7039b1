from typing import Any, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from accesscore.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Appends audit entries inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        *,
        actor_id: Optional[UUID] = None,
        org_ref_id: Optional[UUID] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[UUID] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            action=action,
            user_id=actor_id,
            org_ref_id=org_ref_id,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
        )
        self.db.add(entry)
        logger.debug(f"Audit {action}: {resource_type}={resource_id} actor={actor_id} org={org_ref_id}")
        return entry
