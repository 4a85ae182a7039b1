import pytest
from sqlalchemy.exc import IntegrityError

from accesscore.models.membership import Membership
from accesscore.models.org_ref import OrgRef, validate_slug
from accesscore.models.site_membership import SiteMembership


def test_membership_role_check_constraint(db, helpers):
    user = helpers.create_user(db)
    org = helpers.create_org(db)
    db.add(Membership(user_id=user.id, org_ref_id=org.id, role="superuser"))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_one_active_membership_per_user_and_org(db, helpers):
    user = helpers.create_user(db)
    org = helpers.create_org(db)
    helpers.add_membership(db, user, org)
    db.add(Membership(user_id=user.id, org_ref_id=org.id, role="owner"))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_soft_deleted_membership_does_not_block_a_new_one(db, helpers):
    user = helpers.create_user(db)
    org = helpers.create_org(db)
    old = helpers.add_membership(db, user, org)
    old.mark_deleted()
    db.commit()

    helpers.add_membership(db, user, org, role="owner")

    assert db.query(Membership).count() == 2


def test_site_membership_role_check_constraint(db, helpers):
    user = helpers.create_user(db)
    org = helpers.create_org(db)
    site = helpers.create_site(db, org)
    membership = helpers.add_membership(db, user, org)
    db.add(SiteMembership(membership_id=membership.id, site_ref_id=site.id, role="owner"))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_org_slug_is_unique(db, helpers):
    helpers.create_org(db, slug="acme", external_org_id="legacy-1")
    db.add(OrgRef(external_org_id="legacy-2", slug="acme"))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_slug_validation_on_assignment():
    assert validate_slug("north-side-2") == "north-side-2"

    with pytest.raises(ValueError):
        OrgRef(external_org_id="legacy-1", slug="North Side")
