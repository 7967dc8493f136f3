import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_dashboard.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-dashboard-tests")

import pytest
from datetime import datetime, timedelta, UTC
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from jose import jwt

from dashboard.database import get_db
from dashboard.config import settings
# Import all model classes to ensure they're registered with SQLAlchemy
from dashboard.models.registry import Base, Principal, Tenant, TenantKind, Grant, Feed, FeedKind
from dashboard.models.role import GlobalRole
# Import FastAPI app AFTER model imports
from dashboard.main import app

# Test database (SQLite in-memory for speed)
# Use StaticPool to ensure all connections share the same in-memory database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """FastAPI test client with test database"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_test_token(
    user_id: str = "test-user-123", email: str | None = None, expired: bool = False
) -> str:
    """
    Generate valid JWT token for testing.

    Args:
        user_id: User ID to embed in 'sub' claim
        email: Optional email claim
        expired: If True, create expired token

    Returns:
        Encoded JWT token
    """
    if expired:
        exp = datetime.now(UTC) - timedelta(minutes=5)
    else:
        exp = datetime.now(UTC) + timedelta(minutes=15)

    payload = {"sub": user_id, "exp": exp, "iat": datetime.now(UTC)}
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def headers_for(principal: Principal) -> dict:
    """Authorization headers for an existing principal"""
    token = create_test_token(user_id=principal.auth_user_id, email=principal.email)
    return {"Authorization": f"Bearer {token}"}


def make_principal(db, auth_user_id: str, email: str | None = None, role: GlobalRole | None = None) -> Principal:
    """Create a principal, optionally with a global grant"""
    principal = Principal(auth_user_id=auth_user_id, email=email or f"{auth_user_id}@example.com")
    db.add(principal)
    db.commit()
    if role is not None:
        db.add(Grant(principal_id=principal.id, tenant_id=None, role=role))
        db.commit()
    db.refresh(principal)
    return principal


@pytest.fixture
def owner(db_session):
    """Principal with the global OWNER grant"""
    return make_principal(db_session, "owner-1", role=GlobalRole.OWNER)


@pytest.fixture
def operator(db_session):
    """Principal with a global OPERATOR grant"""
    return make_principal(db_session, "operator-1", role=GlobalRole.OPERATOR)


@pytest.fixture
def member(db_session, tenant):
    """Principal with a MEMBER grant on `tenant` only"""
    principal = make_principal(db_session, "member-1")
    db_session.add(Grant(principal_id=principal.id, tenant_id=tenant.id, role=GlobalRole.MEMBER))
    db_session.commit()
    return principal


@pytest.fixture
def outsider(db_session):
    """Principal with no grant at all"""
    return make_principal(db_session, "outsider-1")


@pytest.fixture
def tenant(db_session):
    """Standard tenant with a sales/ads category allow-list"""
    tenant = Tenant(
        name="Acme Roofing",
        slug="acme-roofing",
        kind=TenantKind.STANDARD,
        categories=["sales", "ads"],
        goals={"Leads": 300.0},
    )
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(db_session):
    tenant = Tenant(name="Beacon Dental", slug="beacon-dental", kind=TenantKind.STANDARD)
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def internal_tenant(db_session):
    """The operator's own internal dashboard"""
    tenant = Tenant(
        name="Agency Overview",
        slug="agency-overview",
        kind=TenantKind.INTERNAL_OPERATOR_DASHBOARD,
    )
    db_session.add(tenant)
    db_session.commit()
    db_session.refresh(tenant)
    return tenant


@pytest.fixture
def feed(db_session, tenant):
    """Spreadsheet feed on `tenant` with tabs Q1 and Q2 selected"""
    feed = Feed(
        tenant_id=tenant.id,
        kind=FeedKind.SPREADSHEET,
        locator="1AbCdEfSpreadsheetId",
        sub_sources=["Q1", "Q2"],
    )
    db_session.add(feed)
    db_session.commit()
    db_session.refresh(feed)
    return feed


@pytest.fixture
def owner_headers(owner):
    return headers_for(owner)


@pytest.fixture
def operator_headers(operator):
    return headers_for(operator)


@pytest.fixture
def member_headers(member):
    return headers_for(member)


@pytest.fixture
def outsider_headers(outsider):
    return headers_for(outsider)
