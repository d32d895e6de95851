"""Directory service — who is a coach, who is a client, and who coaches whom."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.passwords import hash_password, verify_password
from app.models.subscription import Subscription
from app.models.user import ROLE_CLIENT, ROLE_COACH, User

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Raised when a directory write would break the coach/client model."""


class EmailAlreadyRegisteredError(DirectoryError):
    """Raised when creating an account for an e-mail that already exists."""


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_client(db: AsyncSession, client_id: uuid.UUID) -> User | None:
    """Return the user only if it exists and has the client role."""
    result = await db.execute(
        select(User).where(User.id == client_id, User.role == ROLE_CLIENT)
    )
    return result.scalar_one_or_none()


async def list_clients(db: AsyncSession, coach_id: uuid.UUID) -> list[User]:
    result = await db.execute(
        select(User)
        .where(User.coach_id == coach_id, User.role == ROLE_CLIENT)
        .order_by(User.created_at.desc())
    )
    return list(result.scalars().all())


async def list_coaches(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User).where(User.role == ROLE_COACH).order_by(User.created_at.desc())
    )
    return list(result.scalars().all())


async def create_client(
    db: AsyncSession,
    coach: User,
    email: str,
    name: str,
    password: str | None = None,
) -> User:
    """Create a client account linked to ``coach``.

    This is the only place a ``coach_id`` is written. Requiring the creator to
    be a coach keeps the client -> coach link one level deep: a coach is never
    itself somebody's client.
    """
    if not coach.is_coach:
        raise DirectoryError(f"User {coach.id} has role {coach.role!r}; only coaches can create clients")

    if await get_user_by_email(db, email) is not None:
        raise EmailAlreadyRegisteredError(email)

    client = User(
        email=email,
        name=name,
        hashed_password=hash_password(password) if password else None,
        role=ROLE_CLIENT,
        coach_id=coach.id,
    )
    db.add(client)
    await db.flush()

    logger.info("Coach %s created client %s", coach.id, client.id)
    return client


async def create_coach(db: AsyncSession, email: str, name: str, password: str) -> User:
    """Register a coach together with an unconnected subscription row.

    The coach may use the platform until they first connect Stripe billing.
    """
    if await get_user_by_email(db, email) is not None:
        raise EmailAlreadyRegisteredError(email)

    coach = User(email=email, name=name, hashed_password=hash_password(password), role=ROLE_COACH)
    db.add(coach)
    await db.flush()

    db.add(Subscription(user_id=coach.id, status="none"))
    await db.flush()
    await db.refresh(coach)

    logger.info("Registered coach %s", coach.id)
    return coach


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    """Return the account for ``email`` if ``password`` matches, else None.

    Accounts without a password (clients their coach never gave one) never
    authenticate.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user
