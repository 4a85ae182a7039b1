from types import SimpleNamespace
from uuid import uuid4

import pytest

from accesscore.auth.claims import TokenClaims
from accesscore.auth.context import (
    AuthenticatedContext,
    OrgScopedContext,
    RequestContext,
    create_public_context,
)
from accesscore.auth.errors import (
    AuthenticationRequired,
    InsufficientRole,
    OrganizationAccessDenied,
    OrganizationContextRequired,
)
from accesscore.auth.procedures import (
    require_admin,
    require_authenticated,
    require_org,
    require_org_role,
    require_owner,
)
from accesscore.auth.permissions import OrgRole

ORG_ID = uuid4()


def _ctx(*, authenticated=True, org_selected=True, role=None):
    user = SimpleNamespace(id=uuid4()) if authenticated else None
    membership = (
        SimpleNamespace(org_ref_id=ORG_ID, role=role) if role is not None else None
    )
    return RequestContext(
        request_id="req-1",
        claims=TokenClaims(sub="kp_1", email="a@example.com") if authenticated else None,
        user=user,
        org_ref_id=str(ORG_ID) if org_selected else None,
        membership=membership,
        memberships=(membership,) if membership else (),
    )


def test_require_authenticated_rejects_anonymous():
    with pytest.raises(AuthenticationRequired):
        require_authenticated(create_public_context("req-1"))


def test_require_authenticated_narrows_context():
    ctx = require_authenticated(_ctx(org_selected=False))
    assert isinstance(ctx, AuthenticatedContext)
    assert ctx.request_id == "req-1"


def test_require_org_distinguishes_failure_modes():
    with pytest.raises(AuthenticationRequired):
        require_org(_ctx(authenticated=False))

    with pytest.raises(OrganizationContextRequired):
        require_org(_ctx(org_selected=False))

    with pytest.raises(OrganizationAccessDenied):
        require_org(_ctx(org_selected=True, role=None))


def test_require_org_success():
    ctx = require_org(_ctx(role="viewer"))

    assert isinstance(ctx, OrgScopedContext)
    assert ctx.org_id == ORG_ID
    assert ctx.role == "viewer"


def test_require_admin_rejects_lower_roles():
    with pytest.raises(InsufficientRole) as exc:
        require_admin(_ctx(role="global_user"))

    assert exc.value.required == "global_admin"
    assert exc.value.to_dict()["required_role"] == "global_admin"


def test_require_owner_rejects_global_admin():
    with pytest.raises(InsufficientRole):
        require_owner(_ctx(role="global_admin"))


def test_unknown_stored_role_is_denied():
    with pytest.raises(InsufficientRole):
        require_org_role(_ctx(role="superuser"), OrgRole.VIEWER)


@pytest.mark.parametrize("role", ["viewer", "global_user", "global_admin", "owner"])
def test_escalation_is_monotonic(role):
    """Passing a tier implies passing every tier below it."""
    ctx = _ctx(role=role)
    tiers = [
        lambda c: require_org_role(c, OrgRole.VIEWER),
        lambda c: require_org_role(c, OrgRole.GLOBAL_USER),
        require_admin,
        require_owner,
    ]

    results = []
    for tier in tiers:
        try:
            tier(ctx)
            results.append(True)
        except InsufficientRole:
            results.append(False)

    # Once a tier fails, every higher tier fails too
    assert results == sorted(results, reverse=True)
    assert results[0] is True
