"""
SiteRef model - a site (physical location) within an organization.

Like OrgRef, the legacy system owns site existence; slugs are unique per org.
"""
from sqlalchemy import Column, String, UniqueConstraint
from sqlalchemy.orm import relationship, validates

from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk, uuid_fk
from accesscore.models.mixins import TimestampMixin
from accesscore.models.org_ref import validate_slug


class SiteRef(Base, TimestampMixin):
    __tablename__ = "site_refs"

    id = uuid_pk()
    org_ref_id = uuid_fk("org_refs")
    external_site_id = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    display_name = Column(String, nullable=True)

    org = relationship("OrgRef", back_populates="sites")

    __table_args__ = (
        UniqueConstraint("org_ref_id", "external_site_id", name="uq_site_external"),
        UniqueConstraint("org_ref_id", "slug", name="uq_site_slug"),
    )

    @validates("slug")
    def _validate_slug(self, _key, value):
        return validate_slug(value)

    def __repr__(self):
        return f"<SiteRef(slug={self.slug}, org={self.org_ref_id})>"
