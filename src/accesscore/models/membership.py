"""
Membership model - a user's role within an organization.

At most one non-deleted membership exists per (user, org). Removing a member
soft-deletes the row so the audit trail survives; re-adding them later
creates a fresh row.
"""
from sqlalchemy import Column, String, DateTime, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from accesscore.auth.permissions import ORG_ROLE_VALUES
from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk, uuid_fk
from accesscore.models.mixins import SoftDeleteMixin, TimestampMixin

_ROLE_LIST = ", ".join(f"'{role}'" for role in ORG_ROLE_VALUES)
_ACTIVE = text("deleted_at IS NULL")


class Membership(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "memberships"

    id = uuid_pk()
    user_id = uuid_fk("users")
    org_ref_id = uuid_fk("org_refs")

    # owner | global_admin | global_user | viewer
    role = Column(String(32), nullable=False)

    # Invitation tracking
    invited_by = uuid_fk("users", nullable=True, ondelete="SET NULL")
    invited_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])
    inviter = relationship("User", foreign_keys=[invited_by])
    org = relationship("OrgRef", back_populates="memberships")
    site_memberships = relationship("SiteMembership", back_populates="membership")

    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_LIST})", name="chk_role"),
        Index(
            "uq_user_org_active",
            "user_id",
            "org_ref_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index("idx_memberships_role", "org_ref_id", "role"),
    )

    # Org display fields, so a membership can be rendered without a second query.

    @property
    def org_slug(self):
        return self.org.slug if self.org else None

    @property
    def org_display_name(self):
        return self.org.display_name if self.org else None

    @property
    def external_org_id(self):
        return self.org.external_org_id if self.org else None

    def __repr__(self):
        return f"<Membership(user={self.user_id}, org={self.org_ref_id}, role={self.role})>"
