"""
Role tiers and the single meets-or-exceeds comparison.

Org-level roles (lowest to highest privilege):
- viewer: read-only access to the organization
- global_user: day-to-day operator across every site of the org
- global_admin: can manage members and site access
- owner: everything, including org settings and ownership

Site-level roles refine an org membership for one site:
- site_viewer < site_user < site_admin

Org owners and global admins hold site_admin on every site of their org.
"""
from enum import Enum
from typing import Optional, Union


class OrgRole(str, Enum):
    """Organization membership roles."""
    OWNER = "owner"
    GLOBAL_ADMIN = "global_admin"
    GLOBAL_USER = "global_user"
    VIEWER = "viewer"


class SiteRole(str, Enum):
    """Site membership roles."""
    SITE_ADMIN = "site_admin"
    SITE_USER = "site_user"
    SITE_VIEWER = "site_viewer"


# Role hierarchy for comparison
ORG_ROLE_HIERARCHY = {
    OrgRole.OWNER: 4,
    OrgRole.GLOBAL_ADMIN: 3,
    OrgRole.GLOBAL_USER: 2,
    OrgRole.VIEWER: 1,
}

SITE_ROLE_HIERARCHY = {
    SiteRole.SITE_ADMIN: 3,
    SiteRole.SITE_USER: 2,
    SiteRole.SITE_VIEWER: 1,
}

ORG_ROLE_VALUES = tuple(role.value for role in OrgRole)
SITE_ROLE_VALUES = tuple(role.value for role in SiteRole)

ADMIN_ROLES = frozenset({OrgRole.OWNER, OrgRole.GLOBAL_ADMIN})

AnyRole = Union[OrgRole, SiteRole, str, None]


def _rank(role: AnyRole, hierarchy: dict) -> int:
    if role is None:
        return 0
    enum_cls = type(next(iter(hierarchy)))
    try:
        return hierarchy[enum_cls(role)]
    except ValueError:
        return 0


def is_role_at_least(role: AnyRole, minimum: Union[OrgRole, SiteRole]) -> bool:
    """
    Check whether a role meets or exceeds a minimum role of the same scope.

    Unknown or missing roles never meet any minimum.

    Examples:
        is_role_at_least("owner", OrgRole.GLOBAL_ADMIN) -> True
        is_role_at_least("global_user", OrgRole.GLOBAL_ADMIN) -> False
        is_role_at_least("site_user", SiteRole.SITE_VIEWER) -> True
    """
    hierarchy = SITE_ROLE_HIERARCHY if isinstance(minimum, SiteRole) else ORG_ROLE_HIERARCHY
    actual = _rank(role, hierarchy)
    return actual > 0 and actual >= hierarchy[minimum]


def parse_org_role(role: str) -> OrgRole:
    """Parse an org role string, raising ValueError for unknown roles."""
    try:
        return OrgRole(role)
    except ValueError:
        raise ValueError(f"Invalid role {role!r}. Must be one of: {', '.join(ORG_ROLE_VALUES)}")


def parse_site_role(role: str) -> SiteRole:
    """Parse a site role string, raising ValueError for unknown roles."""
    try:
        return SiteRole(role)
    except ValueError:
        raise ValueError(f"Invalid site role {role!r}. Must be one of: {', '.join(SITE_ROLE_VALUES)}")


def effective_site_role(org_role: AnyRole, site_role: AnyRole) -> Optional[SiteRole]:
    """
    Effective role on a site, combining org and site memberships.

    Org admins implicitly administer every site; everyone else only has the
    site role they were explicitly granted (or none).
    """
    if is_role_at_least(org_role, OrgRole.GLOBAL_ADMIN):
        return SiteRole.SITE_ADMIN
    if site_role is None:
        return None
    try:
        return SiteRole(site_role)
    except ValueError:
        return None
