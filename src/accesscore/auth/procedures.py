"""
Authorization procedure chain.

Every route declares one tier when it is defined:

    public -> authenticated -> org-scoped -> admin -> owner

Each tier wraps the previous one and adds exactly one check, so a context
that passes a tier passes every tier below it.

Usage:
    @router.get("/me")
    def get_me(ctx: AuthenticatedContext = Depends(authenticated_procedure)):
        ...

    @router.delete("/organizations/current/members/{user_id}")
    def remove_member(ctx: OrgScopedContext = Depends(admin_procedure)):
        ...
"""
import logging

from fastapi import Depends

from accesscore.auth.context import (
    AuthenticatedContext,
    OrgScopedContext,
    RequestContext,
    get_request_context,
)
from accesscore.auth.errors import (
    AuthenticationRequired,
    InsufficientRole,
    OrganizationAccessDenied,
    OrganizationContextRequired,
)
from accesscore.auth.permissions import OrgRole, is_role_at_least
from accesscore.metrics import authorization_denied_total

logger = logging.getLogger(__name__)


def _deny(ctx: RequestContext, error: Exception, reason: str):
    authorization_denied_total.labels(reason=reason).inc()
    user_id = ctx.user.id if ctx.user is not None else None
    logger.warning(
        f"[{ctx.request_id}] Access denied ({reason}): user={user_id} org={ctx.org_ref_id}"
    )
    raise error


# ----------------------------------------------------------------------
# Guards
# ----------------------------------------------------------------------

def require_authenticated(ctx: RequestContext) -> AuthenticatedContext:
    """
    Require a resolved user.

    Raises:
        AuthenticationRequired
    """
    if ctx.user is None:
        _deny(ctx, AuthenticationRequired(), "unauthenticated")
    return ctx.narrow(AuthenticatedContext)


def require_org(ctx: RequestContext) -> OrgScopedContext:
    """
    Require a user, a selected org, and the user's membership in it.

    Raises (in this order):
        AuthenticationRequired: no user
        OrganizationContextRequired: no org selected
        OrganizationAccessDenied: org selected but user is not a member
    """
    authed = require_authenticated(ctx)
    if not authed.org_ref_id:
        _deny(ctx, OrganizationContextRequired(), "no_org_selected")
    if authed.membership is None:
        _deny(ctx, OrganizationAccessDenied(), "not_a_member")
    return authed.narrow(OrgScopedContext)


def require_org_role(ctx: RequestContext, minimum: OrgRole) -> OrgScopedContext:
    """
    Require org scope plus a membership role meeting ``minimum``.

    Raises:
        InsufficientRole (after every require_org failure mode)
    """
    scoped = require_org(ctx)
    if not is_role_at_least(scoped.membership.role, minimum):
        _deny(
            ctx,
            InsufficientRole(required=minimum.value, actual=scoped.membership.role),
            "insufficient_role",
        )
    return scoped


def require_admin(ctx: RequestContext) -> OrgScopedContext:
    """Roles: owner, global_admin."""
    return require_org_role(ctx, OrgRole.GLOBAL_ADMIN)


def require_owner(ctx: RequestContext) -> OrgScopedContext:
    """Role: owner only."""
    return require_org_role(ctx, OrgRole.OWNER)


# ----------------------------------------------------------------------
# FastAPI dependencies
# ----------------------------------------------------------------------

def public_procedure(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Any caller, including anonymous."""
    return ctx


def authenticated_procedure(ctx: RequestContext = Depends(public_procedure)) -> AuthenticatedContext:
    return require_authenticated(ctx)


def org_procedure(ctx: RequestContext = Depends(public_procedure)) -> OrgScopedContext:
    return require_org(ctx)


def admin_procedure(ctx: RequestContext = Depends(public_procedure)) -> OrgScopedContext:
    return require_admin(ctx)


def owner_procedure(ctx: RequestContext = Depends(public_procedure)) -> OrgScopedContext:
    return require_owner(ctx)
