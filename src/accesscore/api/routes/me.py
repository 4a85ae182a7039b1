"""
API routes for the signed-in user.

Endpoints:
- GET /me - The resolved user and their linked identities
- GET /me/memberships - Every organization the user belongs to
- POST /me/identities - Link the legacy identity carried in the current token
"""
from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from accesscore.api.routes.schemas import IdentityResponse, MembershipResponse, UserResponse
from accesscore.auth.claims import LEGACY_PROVIDER
from accesscore.auth.context import AuthenticatedContext
from accesscore.auth.procedures import authenticated_procedure
from accesscore.db.database import get_db
from accesscore.middleware.rate_limit import rate_limit
from accesscore.services.user_resolver import UserResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=UserResponse)
def get_me(ctx: AuthenticatedContext = Depends(authenticated_procedure)):
    return ctx.user


@router.get("/memberships", response_model=List[MembershipResponse])
def list_my_memberships(ctx: AuthenticatedContext = Depends(authenticated_procedure)):
    """
    List the organizations the caller belongs to, oldest membership first.

    Clients use this to offer an org picker; no org is ever selected
    implicitly from this list.
    """
    return list(ctx.memberships)


@router.post(
    "/identities",
    response_model=IdentityResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("auth"))],
)
def link_legacy_identity(
    ctx: AuthenticatedContext = Depends(authenticated_procedure),
    db: Session = Depends(get_db),
):
    """
    Link the legacy-provider account asserted in the caller's token to the
    caller's user. Repeating the call is a no-op.

    Returns 409 IDENTITY_CONFLICT when that account already belongs to
    someone else.
    """
    if not ctx.claims.legacy_uid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Token carries no {LEGACY_PROVIDER} identity to link",
        )

    resolver = UserResolver(db)
    identity = resolver.link_identity(
        user_id=ctx.user.id,
        provider=LEGACY_PROVIDER,
        provider_user_id=ctx.claims.legacy_uid,
        email=ctx.claims.legacy_email or ctx.claims.email,
    )
    logger.info(f"[{ctx.request_id}] Linked {LEGACY_PROVIDER} identity for user {ctx.user.id}")
    return identity
