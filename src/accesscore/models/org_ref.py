"""
OrgRef model - local reference to an organization owned by the legacy system.

The legacy system is the source of truth for org existence; we keep its id
(external_org_id) plus a locally-owned, URL-safe slug.
"""
import re

from sqlalchemy import Column, String, Index
from sqlalchemy.orm import relationship, validates

from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk
from accesscore.models.mixins import TimestampMixin

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def validate_slug(slug: str) -> str:
    if not slug or not SLUG_PATTERN.match(slug):
        raise ValueError(f"Invalid slug {slug!r}: use lowercase letters, digits and single hyphens")
    return slug


class OrgRef(Base, TimestampMixin):
    __tablename__ = "org_refs"

    id = uuid_pk()
    external_org_id = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=False, unique=True)
    display_name = Column(String, nullable=True)

    memberships = relationship("Membership", back_populates="org")
    sites = relationship("SiteRef", back_populates="org", passive_deletes=True)

    __table_args__ = (
        Index("idx_org_refs_external", "external_org_id"),
    )

    @validates("slug")
    def _validate_slug(self, _key, value):
        return validate_slug(value)

    def __repr__(self):
        return f"<OrgRef(slug={self.slug}, external={self.external_org_id})>"
