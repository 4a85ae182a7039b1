# tests/conftest.py
from types import SimpleNamespace

import pytest

from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from accesscore.main import app
from accesscore.db.database import Base, get_db
from accesscore.middleware.rate_limit import limiter

# Import models so metadata knows about all tables
import accesscore.models  # noqa: F401

from accesscore.auth.permissions import OrgRole
from accesscore.models.membership import Membership
from accesscore.models.org_ref import OrgRef
from accesscore.models.site_ref import SiteRef
from accesscore.repositories.user_repository import UserRepository

TEST_JWT_SECRET = "test-secret"


@pytest.fixture(scope="session")
def engine():
    """In-memory SQLite database shared across threads (TestClient runs sync
    routes in a worker thread)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clean_db(engine):
    """Reset all tables before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def jwt_env(monkeypatch):
    """Verify test tokens with a shared HS256 secret."""
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.delenv("AUTH_JWT_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("AUTH_JWT_AUDIENCE", raising=False)
    monkeypatch.delenv("AUTH_JWT_ISSUER", raising=False)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.clear()
    yield
    limiter.clear()


@pytest.fixture()
def db(engine):
    """Return a new SQLAlchemy session for each test."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    """FastAPI test client that routes all DB deps to the test session."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def make_token(sub="kp_user_1", email="user@example.com", **extra):
    payload = {"sub": sub, "email": email}
    payload.update(extra)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(sub="kp_user_1", email="user@example.com", org_id=None, **extra):
    headers = {"Authorization": f"Bearer {make_token(sub, email, **extra)}"}
    if org_id is not None:
        headers["X-Org-Id"] = str(org_id)
    return headers


def create_org(db, slug="acme", external_org_id=None, display_name="Acme"):
    org = OrgRef(
        external_org_id=external_org_id or f"legacy-{slug}",
        slug=slug,
        display_name=display_name,
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


def create_site(db, org, slug="north", external_site_id=None):
    site = SiteRef(
        org_ref_id=org.id,
        external_site_id=external_site_id or f"site-{slug}",
        slug=slug,
        display_name=slug.title(),
    )
    db.add(site)
    db.commit()
    db.refresh(site)
    return site


def create_user(db, sub="kp_user_1", email="user@example.com", provider="kinde"):
    user = UserRepository.add_user(db, primary_email=email, email_verified=True)
    UserRepository.add_identity(
        db,
        user_id=user.id,
        provider=provider,
        provider_user_id=sub,
        email=email,
        is_primary=True,
    )
    db.commit()
    db.refresh(user)
    return user


def add_membership(db, user, org, role=OrgRole.VIEWER.value):
    membership = Membership(user_id=user.id, org_ref_id=org.id, role=role)
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership


@pytest.fixture
def helpers():
    """Factory helpers shared by test modules."""
    return SimpleNamespace(
        make_token=make_token,
        auth_headers=auth_headers,
        create_org=create_org,
        create_site=create_site,
        create_user=create_user,
        add_membership=add_membership,
    )
