# src/accesscore/repositories/membership_repository.py

"""
Membership Store data access layer: org and site role assignments.

Only non-deleted rows are ever returned.
"""

from __future__ import annotations
from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session, joinedload
from accesscore.models.membership import Membership
from accesscore.models.site_membership import SiteMembership


class MembershipRepository:
    """
    Data access methods for the Membership model.
    """

    @staticmethod
    def list_for_user(db: Session, user_id: UUID) -> list[Membership]:
        """
        Get all active memberships for a user, joined with their org.

        Ordered by creation time ascending (earliest-joined org first).
        """
        return (
            db.query(Membership)
            .options(joinedload(Membership.org))
            .filter(
                Membership.user_id == user_id,
                Membership.deleted_at.is_(None),
            )
            .order_by(Membership.created_at.asc(), Membership.id)
            .all()
        )

    @staticmethod
    def get_active(db: Session, user_id: UUID, org_ref_id: UUID) -> Membership | None:
        """
        Get the single active membership for (user, org), or None.
        """
        return (
            db.query(Membership)
            .options(joinedload(Membership.org))
            .filter(
                Membership.user_id == user_id,
                Membership.org_ref_id == org_ref_id,
                Membership.deleted_at.is_(None),
            )
            .first()
        )

    @staticmethod
    def list_for_org(db: Session, org_ref_id: UUID) -> list[Membership]:
        return (
            db.query(Membership)
            .options(joinedload(Membership.user))
            .filter(
                Membership.org_ref_id == org_ref_id,
                Membership.deleted_at.is_(None),
            )
            .order_by(Membership.created_at.asc())
            .all()
        )

    @staticmethod
    def count_role(db: Session, org_ref_id: UUID, role: str) -> int:
        return (
            db.query(Membership)
            .filter(
                Membership.org_ref_id == org_ref_id,
                Membership.role == role,
                Membership.deleted_at.is_(None),
            )
            .count()
        )

    @staticmethod
    def upsert(
        db: Session,
        *,
        user_id: UUID,
        org_ref_id: UUID,
        role: str,
        invited_by: UUID | None = None,
    ) -> tuple[Membership, bool]:
        """
        Create a membership or update the role of the existing active one.

        Re-inviting an existing member never duplicates the row.
        Does not commit.

        Returns:
            (membership, created)
        """
        existing = MembershipRepository.get_active(db, user_id, org_ref_id)
        if existing:
            existing.role = role
            db.flush()
            return existing, False

        now = datetime.now(timezone.utc)
        membership = Membership(
            user_id=user_id,
            org_ref_id=org_ref_id,
            role=role,
            invited_by=invited_by,
            invited_at=now if invited_by else None,
            accepted_at=now,
        )
        db.add(membership)
        db.flush()
        return membership, True

    @staticmethod
    def soft_delete(db: Session, membership: Membership) -> None:
        """
        Soft-delete a membership and every site membership hanging off it.
        Does not commit.
        """
        for site_membership in SiteMembershipRepository.list_for_membership(db, membership.id):
            site_membership.mark_deleted()
        membership.mark_deleted()
        db.flush()


class SiteMembershipRepository:
    """
    Data access methods for the SiteMembership model.
    """

    @staticmethod
    def get_active(db: Session, membership_id: UUID, site_ref_id: UUID) -> SiteMembership | None:
        return (
            db.query(SiteMembership)
            .filter(
                SiteMembership.membership_id == membership_id,
                SiteMembership.site_ref_id == site_ref_id,
                SiteMembership.deleted_at.is_(None),
            )
            .first()
        )

    @staticmethod
    def list_for_membership(db: Session, membership_id: UUID) -> list[SiteMembership]:
        return (
            db.query(SiteMembership)
            .filter(
                SiteMembership.membership_id == membership_id,
                SiteMembership.deleted_at.is_(None),
            )
            .all()
        )

    @staticmethod
    def upsert(
        db: Session,
        *,
        membership_id: UUID,
        site_ref_id: UUID,
        role: str,
    ) -> tuple[SiteMembership, bool]:
        """
        Grant site access or update the existing site role. Does not commit.
        """
        existing = SiteMembershipRepository.get_active(db, membership_id, site_ref_id)
        if existing:
            existing.role = role
            db.flush()
            return existing, False

        site_membership = SiteMembership(
            membership_id=membership_id,
            site_ref_id=site_ref_id,
            role=role,
        )
        db.add(site_membership)
        db.flush()
        return site_membership, True

    @staticmethod
    def soft_delete(db: Session, site_membership: SiteMembership) -> None:
        site_membership.mark_deleted()
        db.flush()
