from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from accesscore.models.org_ref import OrgRef, validate_slug
from accesscore.models.site_ref import SiteRef

logger = logging.getLogger(__name__)


class OrgRefService:
    """Local references to organizations and sites owned by the legacy system."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(
        self,
        external_org_id: str,
        slug: str,
        display_name: Optional[str] = None,
    ) -> OrgRef:
        """
        Get the org ref for a legacy org id, creating it on first sight.

        Raises:
            ValueError: If the slug is not URL-safe.
        """
        org = self.db.query(OrgRef).filter(OrgRef.external_org_id == external_org_id).first()
        if org:
            logger.debug(f"Found existing org ref: {org.id}")
            return org

        org = OrgRef(
            external_org_id=external_org_id,
            slug=validate_slug(slug),
            display_name=display_name,
        )
        self.db.add(org)
        self.db.commit()
        self.db.refresh(org)

        logger.info(f"Created org ref {org.id} for legacy org {external_org_id} ({slug})")
        return org

    def get(self, org_ref_id: UUID) -> Optional[OrgRef]:
        return self.db.query(OrgRef).filter(OrgRef.id == org_ref_id).first()

    def get_by_slug(self, slug: str) -> Optional[OrgRef]:
        return self.db.query(OrgRef).filter(OrgRef.slug == slug).first()

    def update_display_name(self, org: OrgRef, display_name: Optional[str]) -> OrgRef:
        org.display_name = display_name
        self.db.commit()
        self.db.refresh(org)
        return org

    def get_site(self, org_ref_id: UUID, site_ref_id: UUID) -> Optional[SiteRef]:
        """
        Get a site, only if it belongs to the given org.
        """
        return self.db.query(SiteRef).filter(
            SiteRef.id == site_ref_id,
            SiteRef.org_ref_id == org_ref_id,
        ).first()

    def get_or_create_site(
        self,
        org_ref_id: UUID,
        external_site_id: str,
        slug: str,
        display_name: Optional[str] = None,
    ) -> SiteRef:
        site = self.db.query(SiteRef).filter(
            SiteRef.org_ref_id == org_ref_id,
            SiteRef.external_site_id == external_site_id,
        ).first()
        if site:
            return site

        site = SiteRef(
            org_ref_id=org_ref_id,
            external_site_id=external_site_id,
            slug=validate_slug(slug),
            display_name=display_name,
        )
        self.db.add(site)
        self.db.commit()
        self.db.refresh(site)

        logger.info(f"Created site ref {site.id} ({slug}) in org {org_ref_id}")
        return site
