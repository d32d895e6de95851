"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own nested transaction that rolls back after the test.
- The test database `suplient_test` must exist before running API/DB tests.
  Pure access-engine tests use none of the DB fixtures and run without it.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from app.auth.jwt import create_token_pair
from app.auth.passwords import hash_password
from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models.subscription import Subscription
from app.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_COACH, User

# ---------------------------------------------------------------------------
# Tests run against the `suplient_test` database on the same server.
# Replace the last path segment of the configured URL with the test DB name.
# ---------------------------------------------------------------------------

_base_url = settings.async_database_url
_test_db_url = _base_url.rsplit("/", 1)[0] + "/suplient_test"


def _make_engine():
    return create_async_engine(
        _test_db_url,
        echo=False,
        pool_pre_ping=True,
    )


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Account factories
# ---------------------------------------------------------------------------


def auth_headers_for(user: User) -> dict[str, str]:
    """Authorization headers carrying a fresh access token for ``user``."""
    tokens = create_token_pair(str(user.id), role=user.role)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def create_coach(
    db_session: AsyncSession,
    status: str = "none",
    stripe_subscription_id: str | None = None,
    current_period_end: datetime | None = None,
    cancel_at_period_end: bool = False,
    stripe_customer_id: str | None = None,
    with_subscription: bool = True,
) -> User:
    """Insert a coach and (optionally) their subscription row."""
    unique = uuid.uuid4().hex[:8]
    coach = User(
        email=f"coach-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name="Test Coach",
        role=ROLE_COACH,
        is_active=True,
    )
    db_session.add(coach)
    await db_session.flush()

    if with_subscription:
        db_session.add(
            Subscription(
                user_id=coach.id,
                stripe_customer_id=stripe_customer_id,
                stripe_subscription_id=stripe_subscription_id,
                status=status,
                current_period_end=current_period_end,
                cancel_at_period_end=cancel_at_period_end,
            )
        )
        await db_session.flush()

    await db_session.refresh(coach)
    return coach


async def create_client_user(
    db_session: AsyncSession, coach: User | None = None
) -> User:
    """Insert a client, linked to ``coach`` when one is given."""
    unique = uuid.uuid4().hex[:8]
    client_user = User(
        email=f"client-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name="Test Client",
        role=ROLE_CLIENT,
        coach_id=coach.id if coach else None,
        is_active=True,
    )
    db_session.add(client_user)
    await db_session.flush()
    await db_session.refresh(client_user)
    return client_user


# ---------------------------------------------------------------------------
# Convenience fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_coach(db_session: AsyncSession) -> User:
    """A coach who has not connected billing yet (allowed)."""
    return await create_coach(db_session)


@pytest_asyncio.fixture
async def coach_headers(test_coach: User) -> dict[str, str]:
    return auth_headers_for(test_coach)


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    unique = uuid.uuid4().hex[:8]
    admin = User(
        email=f"admin-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name="Test Admin",
        role=ROLE_ADMIN,
        is_active=True,
    )
    db_session.add(admin)
    await db_session.flush()
    await db_session.refresh(admin)
    return admin


@pytest_asyncio.fixture
async def admin_headers(test_admin: User) -> dict[str, str]:
    return auth_headers_for(test_admin)


@pytest_asyncio.fixture
async def make_coach(db_session: AsyncSession):
    """Factory fixture: ``await make_coach(status=..., ...)``."""

    async def _make(**kwargs) -> User:
        return await create_coach(db_session, **kwargs)

    return _make


@pytest_asyncio.fixture
async def make_client_user(db_session: AsyncSession):
    """Factory fixture: ``await make_client_user(coach)``."""

    async def _make(coach: User | None = None) -> User:
        return await create_client_user(db_session, coach)

    return _make


@pytest.fixture
def headers_for():
    return auth_headers_for
