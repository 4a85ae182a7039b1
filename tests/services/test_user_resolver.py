from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from accesscore.auth.claims import TokenClaims
from accesscore.auth.errors import IdentityConflict
from accesscore.models.audit_log import AuditLog
from accesscore.models.user import User
from accesscore.models.user_identity import UserIdentity
from accesscore.repositories.user_repository import UserRepository
from accesscore.services.user_resolver import UserResolver


def _claims(sub="kp_ada", email="ada@example.com", **extra):
    return TokenClaims(sub=sub, email=email, **extra)


def _resolver(db):
    return UserResolver(db, primary_provider="kinde", legacy_provider="firebase")


def test_first_login_creates_user_with_primary_identity(db):
    user = _resolver(db).resolve_user(_claims(given_name="Ada", family_name="Lovelace"))

    assert user.primary_email == "ada@example.com"
    assert user.name == "Ada Lovelace"
    assert user.email_verified is True

    identities = UserRepository.list_identities(db, user.id)
    assert [(i.provider, i.provider_user_id, i.is_primary) for i in identities] == [
        ("kinde", "kp_ada", True)
    ]

    audit = db.query(AuditLog).filter(AuditLog.action == "user.created").one()
    assert audit.resource_id == user.id


def test_resolution_is_idempotent(db):
    resolver = _resolver(db)

    first = resolver.resolve_user(_claims())
    second = resolver.resolve_user(_claims())

    assert first.id == second.id
    assert db.query(User).count() == 1
    assert db.query(UserIdentity).count() == 1


def test_first_login_with_legacy_uid_links_both_identities(db):
    user = _resolver(db).resolve_user(
        _claims(legacy_uid="fb_ada", legacy_email="ada@legacy.example.com")
    )

    identities = {i.provider: i for i in UserRepository.list_identities(db, user.id)}
    assert set(identities) == {"kinde", "firebase"}
    assert identities["kinde"].is_primary is True
    assert identities["firebase"].is_primary is False
    assert identities["firebase"].email == "ada@legacy.example.com"


def test_legacy_user_gets_primary_identity_linked(db, helpers):
    """A user known only by their legacy uid signs in through the primary
    provider for the first time."""
    legacy_user = helpers.create_user(db, sub="fb_ada", email="ada@example.com", provider="firebase")

    user = _resolver(db).resolve_user(_claims(sub="kp_new", legacy_uid="fb_ada"))

    assert user.id == legacy_user.id
    assert db.query(User).count() == 1

    identities = {i.provider: i for i in UserRepository.list_identities(db, user.id)}
    assert identities["firebase"].is_primary is True
    assert identities["kinde"].provider_user_id == "kp_new"
    assert identities["kinde"].is_primary is False

    assert db.query(AuditLog).filter(AuditLog.action == "identity.linked").count() == 1

    # Subsequent logins hit the primary identity directly
    again = _resolver(db).resolve_user(_claims(sub="kp_new", legacy_uid="fb_ada"))
    assert again.id == legacy_user.id
    assert db.query(UserIdentity).count() == 2


def test_unknown_legacy_uid_falls_through_to_creation(db):
    user = _resolver(db).resolve_user(_claims(legacy_uid="fb_nobody"))

    assert {i.provider for i in UserRepository.list_identities(db, user.id)} == {"kinde", "firebase"}


def test_concurrent_first_login_is_retryable_conflict(db, helpers, monkeypatch):
    """Another request created the identity between our lookup and insert."""
    helpers.create_user(db, sub="kp_ada")
    monkeypatch.setattr(UserRepository, "find_identity", staticmethod(lambda *_args, **_kwargs: None))

    with pytest.raises(IdentityConflict) as exc:
        _resolver(db).resolve_user(_claims(sub="kp_ada"))

    assert exc.value.retryable is True
    assert exc.value.to_dict()["error"] == "IDENTITY_CONFLICT"

    # The losing transaction left nothing behind
    assert db.query(User).count() == 1
    assert db.query(UserIdentity).count() == 1


def test_last_login_failure_does_not_block_sign_in(db, helpers, monkeypatch):
    user = helpers.create_user(db, sub="kp_ada")

    monkeypatch.setattr(
        UserRepository,
        "touch_last_login",
        staticmethod(MagicMock(side_effect=OperationalError("UPDATE", {}, Exception("locked")))),
    )

    resolved = _resolver(db).resolve_user(_claims(sub="kp_ada"))

    assert resolved.id == user.id


def test_link_identity_is_idempotent_for_same_user(db, helpers):
    user = helpers.create_user(db)
    resolver = _resolver(db)

    first = resolver.link_identity(user.id, "firebase", "fb_1", "a@example.com")
    second = resolver.link_identity(user.id, "firebase", "fb_1", "a@example.com")

    assert first.id == second.id
    assert first.is_primary is False


def test_link_identity_owned_by_another_user_conflicts(db, helpers):
    owner = helpers.create_user(db, sub="kp_owner", email="owner@example.com")
    other = helpers.create_user(db, sub="kp_other", email="other@example.com")
    resolver = _resolver(db)
    resolver.link_identity(owner.id, "firebase", "fb_1")

    with pytest.raises(IdentityConflict) as exc:
        resolver.link_identity(other.id, "firebase", "fb_1")

    assert exc.value.retryable is False
    assert exc.value.existing_user_id == owner.id


def test_get_user_memberships_orders_by_join_time(db, helpers):
    user = helpers.create_user(db)
    first_org = helpers.create_org(db, slug="first")
    second_org = helpers.create_org(db, slug="second")
    helpers.add_membership(db, user, first_org)
    helpers.add_membership(db, user, second_org)

    memberships = _resolver(db).get_user_memberships(user.id)

    assert [m.org_slug for m in memberships] == ["first", "second"]


def test_validate_org_access(db, helpers):
    user = helpers.create_user(db)
    org = helpers.create_org(db)
    other = helpers.create_org(db, slug="other")
    membership = helpers.add_membership(db, user, org, role="global_admin")
    resolver = _resolver(db)

    assert resolver.validate_org_access(user.id, org.id).id == membership.id
    assert resolver.validate_org_access(user.id, other.id) is None
