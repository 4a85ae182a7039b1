import pytest

from accesscore.auth.permissions import (
    ADMIN_ROLES,
    OrgRole,
    SiteRole,
    effective_site_role,
    is_role_at_least,
    parse_org_role,
    parse_site_role,
)


@pytest.mark.parametrize(
    "role, minimum, expected",
    [
        ("owner", OrgRole.OWNER, True),
        ("owner", OrgRole.VIEWER, True),
        ("global_admin", OrgRole.GLOBAL_ADMIN, True),
        ("global_admin", OrgRole.OWNER, False),
        ("global_user", OrgRole.GLOBAL_ADMIN, False),
        ("viewer", OrgRole.VIEWER, True),
        ("viewer", OrgRole.GLOBAL_USER, False),
        (OrgRole.GLOBAL_USER, OrgRole.GLOBAL_USER, True),
    ],
)
def test_is_role_at_least_org_roles(role, minimum, expected):
    assert is_role_at_least(role, minimum) is expected


def test_is_role_at_least_site_roles():
    assert is_role_at_least("site_admin", SiteRole.SITE_USER)
    assert is_role_at_least("site_user", SiteRole.SITE_VIEWER)
    assert not is_role_at_least("site_viewer", SiteRole.SITE_USER)


@pytest.mark.parametrize("role", [None, "", "superuser", "member", "site_admin"])
def test_unknown_roles_never_meet_any_org_minimum(role):
    assert not is_role_at_least(role, OrgRole.VIEWER)


def test_org_role_does_not_satisfy_site_minimum():
    assert not is_role_at_least("owner", SiteRole.SITE_VIEWER)


def test_admin_roles():
    assert ADMIN_ROLES == {OrgRole.OWNER, OrgRole.GLOBAL_ADMIN}


def test_parse_roles():
    assert parse_org_role("global_user") is OrgRole.GLOBAL_USER
    assert parse_site_role("site_viewer") is SiteRole.SITE_VIEWER

    with pytest.raises(ValueError, match="Invalid role"):
        parse_org_role("admin")

    with pytest.raises(ValueError, match="Invalid site role"):
        parse_site_role("owner")


def test_effective_site_role_org_admins_administer_every_site():
    assert effective_site_role("owner", None) is SiteRole.SITE_ADMIN
    assert effective_site_role("global_admin", "site_viewer") is SiteRole.SITE_ADMIN


def test_effective_site_role_other_members_need_a_grant():
    assert effective_site_role("global_user", None) is None
    assert effective_site_role("viewer", "site_user") is SiteRole.SITE_USER
    assert effective_site_role("viewer", "bogus") is None
