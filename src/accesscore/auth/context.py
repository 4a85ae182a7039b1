"""
Per-request authorization context.

Built once at request entry and immutable afterwards. Construction only
ever fails on infrastructure errors: an anonymous caller, an unknown org or
a missing membership all produce a valid context, and the procedure chain
(accesscore.auth.procedures) decides whether the operation may proceed.

Each tier of the chain narrows the context to a subclass whose guaranteed
fields are non-optional, so handlers never re-check them:

    RequestContext -> AuthenticatedContext -> OrgScopedContext
"""
from dataclasses import dataclass, fields
from typing import Optional, Tuple
from uuid import UUID, uuid4
import logging

from fastapi import Cookie, Depends, Header, Request
from sqlalchemy.orm import Session

from accesscore.auth.claims import TokenClaims, get_token_claims
from accesscore.db.database import get_db
from accesscore.models.membership import Membership
from accesscore.models.user import User
from accesscore.services.user_resolver import UserResolver

logger = logging.getLogger(__name__)

ORG_HEADER = "X-Org-Id"
ORG_COOKIE = "org_id"


@dataclass(frozen=True)
class RequestContext:
    """Context for any caller, including anonymous ones."""

    request_id: str
    claims: Optional[TokenClaims]
    user: Optional[User]
    # Caller-supplied org selection, never inferred
    org_ref_id: Optional[str]
    membership: Optional[Membership]
    memberships: Tuple[Membership, ...]

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def narrow(self, cls):
        """Re-type this context as a tier-specific subclass."""
        return cls(**{f.name: getattr(self, f.name) for f in fields(self)})


@dataclass(frozen=True)
class AuthenticatedContext(RequestContext):
    """User is guaranteed."""

    claims: TokenClaims
    user: User


@dataclass(frozen=True)
class OrgScopedContext(AuthenticatedContext):
    """User, selected org and the user's membership in it are guaranteed."""

    org_ref_id: str
    membership: Membership

    @property
    def org_id(self) -> UUID:
        return self.membership.org_ref_id

    @property
    def role(self) -> str:
        return self.membership.role


def create_public_context(request_id: str) -> RequestContext:
    """Context for an anonymous caller."""
    return RequestContext(
        request_id=request_id,
        claims=None,
        user=None,
        org_ref_id=None,
        membership=None,
        memberships=(),
    )


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def create_context(
    db: Session,
    claims: Optional[TokenClaims],
    selected_org_id: Optional[str],
    request_id: str,
) -> RequestContext:
    """
    Build the request context.

    - No claims: anonymous context.
    - Claims: resolve the user (creating it on first login), load every
      membership, and when an org was selected look up the membership there.
      A missing membership is recorded as None, never raised.
    """
    if claims is None:
        return create_public_context(request_id)

    resolver = UserResolver(db)
    user = resolver.resolve_user(claims)

    if user.is_deleted:
        logger.warning(f"[{request_id}] Deactivated user {user.id} presented a valid token; treating as anonymous")
        return create_public_context(request_id)

    memberships = tuple(resolver.get_user_memberships(user.id))

    membership = None
    if selected_org_id:
        org_uuid = _parse_uuid(selected_org_id)
        if org_uuid is not None:
            membership = resolver.validate_org_access(user.id, org_uuid)
        else:
            logger.info(f"[{request_id}] Ignoring malformed org id {selected_org_id!r}")

    return RequestContext(
        request_id=request_id,
        claims=claims,
        user=user,
        org_ref_id=selected_org_id or None,
        membership=membership,
        memberships=memberships,
    )


def get_request_context(
    request: Request,
    db: Session = Depends(get_db),
    claims: Optional[TokenClaims] = Depends(get_token_claims),
    x_org_id: Optional[str] = Header(None),
    x_request_id: Optional[str] = Header(None),
    org_id: Optional[str] = Cookie(None),
) -> RequestContext:
    """
    FastAPI dependency: the context for the current request.

    The selected org comes from the X-Org-Id header, falling back to the
    org_id cookie.
    """
    request_id = x_request_id or str(uuid4())
    ctx = create_context(
        db,
        claims=claims,
        selected_org_id=x_org_id or org_id,
        request_id=request_id,
    )
    request.state.context = ctx
    return ctx
