"""Access resolution — fetch fresh billing/directory data and classify it.

Every public ``resolve_*`` / ``check_*`` function here is fail-closed: a
fetch that raises or exceeds ``settings.access_check_timeout_seconds``
produces a denial with reason ``error``, never an allow.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.access.classifier import classify
from app.access.decision import (
    MESSAGE_CLIENT_ERROR,
    MESSAGE_CLIENT_NOT_FOUND,
    MESSAGE_COACH_ERROR,
    MESSAGE_COACH_SUBSCRIPTION_INACTIVE,
    MESSAGE_NO_COACH_ASSIGNED,
    AccessDecision,
    ReasonCode,
    utcnow,
)
from app.config import settings
from app.models.user import User
from app.services.directory_service import get_client
from app.services.subscription_service import get_subscription_record

logger = logging.getLogger(__name__)


async def _bounded(awaitable: Awaitable[AccessDecision]) -> AccessDecision:
    return await asyncio.wait_for(awaitable, timeout=settings.access_check_timeout_seconds)


async def _abandon_transaction(db: AsyncSession) -> None:
    """Roll back after a failed or cancelled fetch.

    A timed-out query leaves the request's connection mid-statement, and
    ``get_db`` would otherwise commit on top of it. The rollback expires
    every instance in the session, so callers read what they need from
    their ORM objects before running a check.
    """
    try:
        await db.rollback()
    except Exception:
        logger.exception("Rollback after a failed access check also failed")


async def _classify_coach(db: AsyncSession, coach_id: uuid.UUID, now: datetime) -> AccessDecision:
    record = await get_subscription_record(db, coach_id)
    return classify(record, now, grace_period_days=settings.grace_period_days)


async def _resolve_client(db: AsyncSession, client_id: uuid.UUID, now: datetime) -> AccessDecision:
    client = await get_client(db, client_id)
    if client is None:
        return AccessDecision.deny(ReasonCode.CLIENT_NOT_FOUND, MESSAGE_CLIENT_NOT_FOUND)

    if client.coach_id is None:
        return AccessDecision.deny(ReasonCode.NO_COACH_ASSIGNED, MESSAGE_NO_COACH_ASSIGNED)

    # Precondition: coach_id always points at a coach (enforced by
    # directory_service.create_client), so this is a single hop.
    coach_decision = await _classify_coach(db, client.coach_id, now)

    if not coach_decision.allowed:
        logger.info(
            "Client %s denied: coach %s subscription reason=%s",
            client_id,
            client.coach_id,
            coach_decision.reason.value if coach_decision.reason else None,
        )
        return AccessDecision.deny(
            ReasonCode.COACH_SUBSCRIPTION_INACTIVE,
            MESSAGE_COACH_SUBSCRIPTION_INACTIVE,
            coach_subscription_reason=coach_decision.reason,
        )

    return AccessDecision.allow()


async def resolve_coach_access(
    db: AsyncSession, coach_id: uuid.UUID, now: datetime | None = None
) -> AccessDecision:
    """Decide whether a coach may use the platform."""
    now = now or utcnow()
    try:
        return await _bounded(_classify_coach(db, coach_id, now))
    except Exception:
        logger.exception("Error checking subscription status for coach %s", coach_id)
        await _abandon_transaction(db)
        return AccessDecision.deny(ReasonCode.ERROR, MESSAGE_COACH_ERROR)


async def resolve_effective_access(
    db: AsyncSession, client_id: uuid.UUID, now: datetime | None = None
) -> AccessDecision:
    """Decide whether a client may use the platform, based on their coach's billing.

    Coach billing details never reach the client: a coach denial becomes
    ``coach_subscription_inactive`` with the coach's reason kept only as
    ``coach_subscription_reason``.
    """
    now = now or utcnow()
    try:
        return await _bounded(_resolve_client(db, client_id, now))
    except Exception:
        logger.exception("Error checking client access for client %s", client_id)
        await _abandon_transaction(db)
        return AccessDecision.deny(ReasonCode.ERROR, MESSAGE_CLIENT_ERROR)


async def check_user_access(
    db: AsyncSession, user: User, now: datetime | None = None
) -> AccessDecision:
    """Dispatch on role. Admins always pass; unknown roles are denied."""
    if user.is_admin:
        return AccessDecision.allow()

    if user.is_coach:
        return await resolve_coach_access(db, user.id, now)

    if user.is_client:
        return await resolve_effective_access(db, user.id, now)

    logger.warning("User %s has unknown role %r; denying access", user.id, user.role)
    return AccessDecision.deny(ReasonCode.ERROR, MESSAGE_COACH_ERROR)
