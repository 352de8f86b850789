"""
Test configuration and fixtures.

Provides:
- In-memory SQLite schema, created and dropped around each test
- Organizations and users of every role
- HTTPX AsyncClients authenticated with a JWT cookie and the CSRF header
"""
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["EMAIL_NOTIFICATIONS_ENABLED"] = "False"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.main import app
from app.core.background import get_session_factory
from app.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from app.core.security import create_session_token, hash_password
from app.db.base import Base
from app.db.enums import Role
from app.db.models import Organization, User
from app.db.session import SessionLocal, engine

TEST_PASSWORD = "correct-horse-battery"
# bcrypt is slow on purpose; hash once per run
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    App code commits freely; the whole in-memory database is dropped
    afterwards.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_org(db: Session, name: str = "Test Organization") -> Organization:
    org = Organization(name=name, slug=f"test-org-{uuid.uuid4().hex[:8]}")
    db.add(org)
    db.commit()
    return org


def make_user(
    db: Session,
    org: Organization,
    role: Role = Role.USER,
    *,
    name: str | None = None,
    preferences: dict | None = None,
    is_active: bool = True,
) -> User:
    user = User(
        organization_id=org.id,
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
        name=name or f"Test {role.value.title()}",
        password_hash=TEST_PASSWORD_HASH,
        role=role.value,
        preferences=preferences,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def test_password() -> str:
    """Plain-text password of every fixture user."""
    return TEST_PASSWORD


@pytest.fixture(scope="function")
def org_factory(db: Session):
    def factory(name: str = "Test Organization") -> Organization:
        return make_org(db, name)
    return factory


@pytest.fixture(scope="function")
def user_factory(db: Session, test_org: Organization):
    """Build extra users; defaults to a plain user in test_org."""
    def factory(role: Role = Role.USER, *, org: Organization | None = None, **kwargs) -> User:
        return make_user(db, org or test_org, role, **kwargs)
    return factory


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    return make_org(db)


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    """A second tenant, for isolation checks."""
    return make_org(db, name="Other Organization")


@pytest.fixture(scope="function")
def admin_user(db: Session, test_org: Organization) -> User:
    return make_user(db, test_org, Role.ADMIN, name="Ada Admin")


@pytest.fixture(scope="function")
def manager_user(db: Session, test_org: Organization) -> User:
    return make_user(db, test_org, Role.MANAGER, name="Max Manager")


@pytest.fixture(scope="function")
def test_user(db: Session, test_org: Organization) -> User:
    return make_user(db, test_org, Role.USER, name="Uma User")


@pytest.fixture(scope="function")
def second_user(db: Session, test_org: Organization) -> User:
    return make_user(db, test_org, Role.USER, name="Sam Second")


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    org_id: uuid.UUID
    token: str
    cookie_name: str = COOKIE_NAME


def make_auth(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, org_id=user.organization_id, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@asynccontextmanager
async def client_for(db: Session, user: User | None = None) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient sharing the test session. Side effects get sessions from the
    same in-memory engine, so their writes are visible to the test.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: SessionLocal

    cookies = {}
    if user is not None:
        auth = make_auth(user)
        cookies[auth.cookie_name] = auth.token

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    ) as c:
        yield c


@pytest.fixture(autouse=True)
def _clear_overrides() -> Generator[None, None, None]:
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_factory(db: Session):
    """`async with client_factory(user) as c:` for tests that act as several users."""
    def factory(user: User | None = None):
        return client_for(db, user)
    return factory


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client (CSRF header set)."""
    async with client_for(db) as c:
        yield c


@pytest.fixture(scope="function")
async def authed_client(db: Session, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Client for a plain user."""
    async with client_for(db, test_user) as c:
        yield c


@pytest.fixture(scope="function")
async def manager_client(db: Session, manager_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(db, manager_user) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(db: Session, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(db, admin_user) as c:
        yield c
