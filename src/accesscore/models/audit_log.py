"""
AuditLog model - append-only record of membership and identity changes.
"""
from sqlalchemy import Column, String, Index, JSON
from sqlalchemy.dialects.postgresql import UUID

from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk, uuid_fk, timestamp_created


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = uuid_pk()
    org_ref_id = uuid_fk("org_refs", nullable=True, ondelete="SET NULL")
    # Actor; None for system-initiated changes
    user_id = uuid_fk("users", nullable=True, ondelete="SET NULL")

    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=True)
    resource_id = Column(UUID(as_uuid=True), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=False, default=dict)

    created_at = timestamp_created()

    __table_args__ = (
        Index("idx_audit_log_org_time", "org_ref_id", "created_at"),
        Index("idx_audit_log_resource", "resource_type", "resource_id"),
    )

    def __repr__(self):
        return f"<AuditLog(action={self.action}, resource={self.resource_type}:{self.resource_id})>"
