"""
Authentication and authorization for accesscore.

This package provides:
- Identity-provider token claims (claims.py)
- Role tiers and comparisons (permissions.py)
- The access error taxonomy (errors.py)
- Per-request context building (context.py)
- The authorization procedure chain (procedures.py)

Only the model-free modules are re-exported here, because the ORM models
import role definitions from this package. Import the context and the
procedure chain from their modules:

    from accesscore.auth.procedures import org_procedure, admin_procedure
"""

from accesscore.auth.claims import TokenClaims, decode_token, get_token_claims
from accesscore.auth.errors import (
    AccessError,
    AuthenticationRequired,
    IdentityConflict,
    InsufficientRole,
    LastOwnerError,
    MembershipRequired,
    NotFound,
    OrganizationAccessDenied,
    OrganizationContextRequired,
)
from accesscore.auth.permissions import (
    ADMIN_ROLES,
    OrgRole,
    SiteRole,
    effective_site_role,
    is_role_at_least,
)

__all__ = [
    "TokenClaims",
    "decode_token",
    "get_token_claims",
    "AccessError",
    "AuthenticationRequired",
    "IdentityConflict",
    "InsufficientRole",
    "LastOwnerError",
    "MembershipRequired",
    "NotFound",
    "OrganizationAccessDenied",
    "OrganizationContextRequired",
    "ADMIN_ROLES",
    "OrgRole",
    "SiteRole",
    "effective_site_role",
    "is_role_at_least",
]
