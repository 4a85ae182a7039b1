"""
SiteMembership model - refines a Membership to one site of the org.

A site membership hangs off an org membership (membership_id), so org access
is always a prerequisite for site access.
"""
from sqlalchemy import Column, String, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from accesscore.auth.permissions import SITE_ROLE_VALUES
from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk, uuid_fk
from accesscore.models.mixins import SoftDeleteMixin, TimestampMixin

_ROLE_LIST = ", ".join(f"'{role}'" for role in SITE_ROLE_VALUES)
_ACTIVE = text("deleted_at IS NULL")


class SiteMembership(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "site_memberships"

    id = uuid_pk()
    membership_id = uuid_fk("memberships")
    site_ref_id = uuid_fk("site_refs")

    # site_admin | site_user | site_viewer
    role = Column(String(32), nullable=False)

    membership = relationship("Membership", back_populates="site_memberships")
    site = relationship("SiteRef")

    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_LIST})", name="chk_site_role"),
        Index(
            "uq_membership_site_active",
            "membership_id",
            "site_ref_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )

    def __repr__(self):
        return f"<SiteMembership(membership={self.membership_id}, site={self.site_ref_id}, role={self.role})>"
