"""
API routes for the selected organization.

The organization is always the one named by the X-Org-Id header (or org_id
cookie); the procedure tier on each route decides who may call it.

Endpoints:
- GET /organizations/current - The selected organization (member)
- GET /organizations/current/members - List members (member)
- PUT /organizations/current/members - Add a member or update their role (admin)
- PATCH /organizations/current/members/{user_id}/role - Change a role (admin)
- DELETE /organizations/current/members/{user_id} - Remove a member (admin)
- PUT /organizations/current/sites/{site_ref_id}/members - Grant site access (admin)
- PATCH /organizations/current - Update organization details (owner)
"""
from typing import List
from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from accesscore.api.routes.schemas import (
    AddMemberRequest,
    GrantSiteAccessRequest,
    OrganizationMemberResponse,
    OrganizationResponse,
    SiteMembershipResponse,
    UpdateMemberRoleRequest,
    UpdateOrganizationRequest,
)
from accesscore.auth.context import OrgScopedContext
from accesscore.auth.errors import NotFound
from accesscore.auth.procedures import admin_procedure, org_procedure, owner_procedure
from accesscore.db.database import get_db
from accesscore.repositories.user_repository import UserRepository
from accesscore.services.membership_service import MembershipService
from accesscore.services.org_ref_service import OrgRefService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _organization_response(ctx: OrgScopedContext, db: Session) -> OrganizationResponse:
    org = OrgRefService(db).get(ctx.org_id)
    if org is None:
        raise NotFound("Organization not found")
    return OrganizationResponse(
        id=org.id,
        external_org_id=org.external_org_id,
        slug=org.slug,
        display_name=org.display_name,
        role=ctx.role,
    )


@router.get("/current", response_model=OrganizationResponse)
def get_current_organization(
    ctx: OrgScopedContext = Depends(org_procedure),
    db: Session = Depends(get_db),
):
    return _organization_response(ctx, db)


@router.get("/current/members", response_model=List[OrganizationMemberResponse])
def list_organization_members(
    ctx: OrgScopedContext = Depends(org_procedure),
    db: Session = Depends(get_db),
):
    """
    List all active members of the current organization.
    """
    return MembershipService(db).get_organization_members(ctx.org_id)


@router.put("/current/members", response_model=OrganizationMemberResponse)
def add_organization_member(
    request: AddMemberRequest,
    ctx: OrgScopedContext = Depends(admin_procedure),
    db: Session = Depends(get_db),
):
    """
    Add a user to the current organization, or update their role if they
    already belong to it.

    Only owners can grant the owner role or change an owner's role.
    """
    if UserRepository.get_by_id(db, request.user_id) is None:
        raise NotFound(f"User {request.user_id} not found")

    try:
        return MembershipService(db).add_member(
            org_ref_id=ctx.org_id,
            user_id=request.user_id,
            role=request.role,
            invited_by=ctx.user.id,
            actor_role=ctx.role,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/current/members/{member_user_id}/role", response_model=OrganizationMemberResponse)
def update_member_role(
    member_user_id: UUID,
    request: UpdateMemberRoleRequest,
    ctx: OrgScopedContext = Depends(admin_procedure),
    db: Session = Depends(get_db),
):
    """
    Change a member's role.

    Only owners can grant the owner role or change another owner's role.
    """
    try:
        return MembershipService(db).change_role(
            org_ref_id=ctx.org_id,
            user_id=member_user_id,
            role=request.role,
            actor_id=ctx.user.id,
            actor_role=ctx.role,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/current/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_organization_member(
    member_user_id: UUID,
    ctx: OrgScopedContext = Depends(admin_procedure),
    db: Session = Depends(get_db),
):
    """
    Remove a member from the current organization.

    Only owners can remove an owner, and the last owner cannot be removed.
    """
    MembershipService(db).remove_member(
        org_ref_id=ctx.org_id,
        user_id=member_user_id,
        actor_id=ctx.user.id,
        actor_role=ctx.role,
    )
    logger.info(f"[{ctx.request_id}] User {ctx.user.id} removed {member_user_id} from org {ctx.org_id}")


@router.put("/current/sites/{site_ref_id}/members", response_model=SiteMembershipResponse)
def grant_site_access(
    site_ref_id: UUID,
    request: GrantSiteAccessRequest,
    ctx: OrgScopedContext = Depends(admin_procedure),
    db: Session = Depends(get_db),
):
    try:
        return MembershipService(db).grant_site_access(
            org_ref_id=ctx.org_id,
            user_id=request.user_id,
            site_ref_id=site_ref_id,
            role=request.role,
            actor_id=ctx.user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/current", response_model=OrganizationResponse)
def update_current_organization(
    request: UpdateOrganizationRequest,
    ctx: OrgScopedContext = Depends(owner_procedure),
    db: Session = Depends(get_db),
):
    service = OrgRefService(db)
    org = service.get(ctx.org_id)
    if org is None:
        raise NotFound("Organization not found")
    service.update_display_name(org, request.display_name)
    return _organization_response(ctx, db)
