"""
Membership service for managing org and site role assignments.

Handles:
- Adding members (invitation acceptance, auto-provisioning, re-invites)
- Role changes
- Member removal (soft delete)
- Site-level access within an org
"""
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from accesscore.auth.errors import InsufficientRole, LastOwnerError, MembershipRequired, NotFound
from accesscore.auth.permissions import (
    OrgRole,
    SiteRole,
    effective_site_role,
    is_role_at_least,
    parse_org_role,
    parse_site_role,
)
from accesscore.models.membership import Membership
from accesscore.models.site_membership import SiteMembership
from accesscore.repositories.membership_repository import (
    MembershipRepository,
    SiteMembershipRepository,
)
from accesscore.services.audit_service import AuditService
from accesscore.services.org_ref_service import OrgRefService

logger = logging.getLogger(__name__)


class MembershipService:
    """Service for managing organization and site memberships."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def get_organization_members(self, org_ref_id: UUID) -> List[Membership]:
        """
        Get all active members of an organization, oldest first.
        """
        return MembershipRepository.list_for_org(self.db, org_ref_id)

    def add_member(
        self,
        org_ref_id: UUID,
        user_id: UUID,
        role: str,
        invited_by: Optional[UUID] = None,
        actor_role: Optional[str] = None,
    ) -> Membership:
        """
        Add a user to an organization, or update their role if they are
        already an active member.

        Args:
            org_ref_id: Organization ID
            user_id: User being added
            role: Org role ('owner', 'global_admin', 'global_user', 'viewer')
            invited_by: User who sent the invitation, if any
            actor_role: Org role of the caller; None for system-initiated changes

        Returns:
            The active Membership

        Raises:
            ValueError: If role is invalid
            InsufficientRole: If a non-owner grants the owner role or changes an owner
            LastOwnerError: If this would demote the org's last owner
        """
        org_role = parse_org_role(role)

        previous_role = None
        existing = MembershipRepository.get_active(self.db, user_id, org_ref_id)
        self._guard_owner_authority(actor_role, existing.role if existing else None, org_role)
        if existing:
            self._guard_last_owner(existing, org_role)
            previous_role = existing.role

        membership, created = MembershipRepository.upsert(
            self.db,
            user_id=user_id,
            org_ref_id=org_ref_id,
            role=org_role.value,
            invited_by=invited_by,
        )

        if created:
            self.audit.record(
                "membership.created",
                actor_id=invited_by or user_id,
                org_ref_id=org_ref_id,
                resource_type="membership",
                resource_id=membership.id,
                details={"role": org_role.value, "user_id": str(user_id)},
            )
        elif previous_role != org_role.value:
            self.audit.record(
                "membership.role_changed",
                actor_id=invited_by,
                org_ref_id=org_ref_id,
                resource_type="membership",
                resource_id=membership.id,
                details={"from": previous_role, "to": org_role.value},
            )

        self.db.commit()
        self.db.refresh(membership)

        logger.info(
            f"{'Added' if created else 'Updated'} user {user_id} in org {org_ref_id} as {org_role.value}"
        )
        return membership

    def change_role(
        self,
        org_ref_id: UUID,
        user_id: UUID,
        role: str,
        actor_id: Optional[UUID] = None,
        actor_role: Optional[str] = None,
    ) -> Membership:
        """
        Change an existing member's role. No-op when the role is unchanged.

        Raises:
            NotFound: If the user is not an active member
            ValueError: If role is invalid
            InsufficientRole: If a non-owner grants the owner role or changes an owner
            LastOwnerError: If this would demote the org's last owner
        """
        org_role = parse_org_role(role)
        membership = self._require_membership(org_ref_id, user_id)
        self._guard_owner_authority(actor_role, membership.role, org_role)

        if membership.role == org_role.value:
            return membership

        self._guard_last_owner(membership, org_role)

        previous_role = membership.role
        membership.role = org_role.value
        self.audit.record(
            "membership.role_changed",
            actor_id=actor_id,
            org_ref_id=org_ref_id,
            resource_type="membership",
            resource_id=membership.id,
            details={"from": previous_role, "to": org_role.value},
        )
        self.db.commit()
        self.db.refresh(membership)

        logger.info(f"Changed role of user {user_id} in org {org_ref_id}: {previous_role} -> {org_role.value}")
        return membership

    def remove_member(
        self,
        org_ref_id: UUID,
        user_id: UUID,
        actor_id: Optional[UUID] = None,
        actor_role: Optional[str] = None,
    ) -> None:
        """
        Remove a member from an organization (soft delete).

        Their site memberships are removed with them.

        Raises:
            NotFound: If the user is not an active member
            InsufficientRole: If a non-owner removes an owner
            LastOwnerError: If the user is the org's last owner
        """
        membership = self._require_membership(org_ref_id, user_id)
        self._guard_owner_authority(actor_role, membership.role, None)
        self._guard_last_owner(membership, None)

        MembershipRepository.soft_delete(self.db, membership)
        self.audit.record(
            "membership.removed",
            actor_id=actor_id,
            org_ref_id=org_ref_id,
            resource_type="membership",
            resource_id=membership.id,
            details={"user_id": str(user_id), "role": membership.role},
        )
        self.db.commit()

        logger.info(f"Removed user {user_id} from org {org_ref_id}")

    def grant_site_access(
        self,
        org_ref_id: UUID,
        user_id: UUID,
        site_ref_id: UUID,
        role: str,
        actor_id: Optional[UUID] = None,
    ) -> SiteMembership:
        """
        Grant (or update) a member's role on one site of the org.

        Raises:
            ValueError: If role is invalid
            NotFound: If the site does not belong to the org
            MembershipRequired: If the user has no active org membership
        """
        site_role = parse_site_role(role)

        if OrgRefService(self.db).get_site(org_ref_id, site_ref_id) is None:
            raise NotFound(f"Site {site_ref_id} not found in this organization")

        membership = MembershipRepository.get_active(self.db, user_id, org_ref_id)
        if membership is None:
            raise MembershipRequired()

        site_membership, created = SiteMembershipRepository.upsert(
            self.db,
            membership_id=membership.id,
            site_ref_id=site_ref_id,
            role=site_role.value,
        )
        self.audit.record(
            "site_membership.created" if created else "site_membership.updated",
            actor_id=actor_id,
            org_ref_id=org_ref_id,
            resource_type="site_membership",
            resource_id=site_membership.id,
            details={"site_ref_id": str(site_ref_id), "role": site_role.value},
        )
        self.db.commit()
        self.db.refresh(site_membership)

        logger.info(f"Granted {site_role.value} on site {site_ref_id} to user {user_id}")
        return site_membership

    def revoke_site_access(
        self,
        org_ref_id: UUID,
        user_id: UUID,
        site_ref_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> None:
        """
        Revoke a member's explicit site role.

        Raises:
            NotFound: If the user has no active site membership there
        """
        membership = self._require_membership(org_ref_id, user_id)
        site_membership = SiteMembershipRepository.get_active(self.db, membership.id, site_ref_id)
        if site_membership is None:
            raise NotFound("Site membership not found")

        SiteMembershipRepository.soft_delete(self.db, site_membership)
        self.audit.record(
            "site_membership.removed",
            actor_id=actor_id,
            org_ref_id=org_ref_id,
            resource_type="site_membership",
            resource_id=site_membership.id,
        )
        self.db.commit()

    def get_site_role(self, membership: Membership, site_ref_id: UUID) -> Optional[SiteRole]:
        """
        Effective role on a site: org admins administer every site; other
        members only hold what they were explicitly granted.
        """
        site_membership = SiteMembershipRepository.get_active(self.db, membership.id, site_ref_id)
        return effective_site_role(
            membership.role,
            site_membership.role if site_membership else None,
        )

    # ------------------------------------------------------------------

    def _require_membership(self, org_ref_id: UUID, user_id: UUID) -> Membership:
        membership = MembershipRepository.get_active(self.db, user_id, org_ref_id)
        if membership is None:
            raise NotFound(f"User {user_id} is not a member of this organization")
        return membership

    def _guard_owner_authority(
        self,
        actor_role: Optional[str],
        target_role: Optional[str],
        new_role: Optional[OrgRole],
    ) -> None:
        # Only owners may grant the owner role or touch an owner's membership
        if actor_role is None or is_role_at_least(actor_role, OrgRole.OWNER):
            return
        if target_role == OrgRole.OWNER.value or new_role == OrgRole.OWNER:
            raise InsufficientRole(required=OrgRole.OWNER.value, actual=actor_role)

    def _guard_last_owner(self, membership: Membership, new_role: Optional[OrgRole]) -> None:
        if membership.role != OrgRole.OWNER.value or new_role == OrgRole.OWNER:
            return
        if MembershipRepository.count_role(self.db, membership.org_ref_id, OrgRole.OWNER.value) <= 1:
            raise LastOwnerError()
