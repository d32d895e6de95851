"""Coach subscription rows: reads for the access engine, writes for billing sync."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.decision import SubscriptionRecord
from app.billing.stripe_client import create_customer, customer_exists
from app.models.subscription import Subscription
from app.models.user import User

logger = logging.getLogger(__name__)


async def _one(db: AsyncSession, *criteria) -> Subscription | None:
    result = await db.execute(select(Subscription).where(*criteria))
    return result.scalar_one_or_none()


async def get_subscription_for_user(db: AsyncSession, user_id: uuid.UUID) -> Subscription | None:
    """The coach's row, or None. Never creates one."""
    return await _one(db, Subscription.user_id == user_id)


async def get_subscription_by_stripe_customer(
    db: AsyncSession, stripe_customer_id: str
) -> Subscription | None:
    return await _one(db, Subscription.stripe_customer_id == stripe_customer_id)


async def get_subscription_by_stripe_subscription(
    db: AsyncSession, stripe_subscription_id: str
) -> Subscription | None:
    return await _one(db, Subscription.stripe_subscription_id == stripe_subscription_id)


async def get_subscription_record(db: AsyncSession, coach_id: uuid.UUID) -> SubscriptionRecord:
    """Fresh billing snapshot for the access engine.

    A coach without a row reads as one who never connected billing.
    """
    return SubscriptionRecord.from_row(coach_id, await get_subscription_for_user(db, coach_id))


async def get_or_create_subscription(db: AsyncSession, user: User) -> Subscription:
    subscription = await get_subscription_for_user(db, user.id)
    if subscription is None:
        logger.info("Creating unconnected subscription row for coach %s", user.id)
        subscription = Subscription(user_id=user.id, status="none")
        db.add(subscription)
        await db.flush()
    return subscription


async def ensure_stripe_customer(db: AsyncSession, user: User, subscription: Subscription) -> str:
    """Return a Stripe customer id that Stripe still knows, creating one if needed.

    A stored customer that was deleted in Stripe (or belongs to another Stripe
    account) is replaced.
    """
    stale = subscription.stripe_customer_id
    if stale and await customer_exists(stale):
        return stale
    if stale:
        logger.warning("Stripe customer %s for coach %s is gone; creating a new one", stale, user.id)

    customer = await create_customer(email=user.email, name=user.name or user.email, user_id=str(user.id))
    subscription.stripe_customer_id = customer.id
    await db.flush()
    logger.info("Linked Stripe customer %s to coach %s", customer.id, user.id)
    return customer.id


async def update_subscription_from_stripe(
    db: AsyncSession,
    subscription: Subscription,
    stripe_subscription_id: str,
    status: str,
    current_period_start: datetime | None = None,
    current_period_end: datetime | None = None,
    cancel_at_period_end: bool = False,
) -> Subscription:
    """Overwrite the mirrored Stripe fields with what Stripe reported."""
    subscription.stripe_subscription_id = stripe_subscription_id
    subscription.status = status
    subscription.current_period_start = current_period_start
    subscription.current_period_end = current_period_end
    subscription.cancel_at_period_end = cancel_at_period_end
    await db.flush()

    logger.info(
        "Coach %s subscription %s: status=%s period_end=%s cancel_at_period_end=%s",
        subscription.user_id,
        stripe_subscription_id,
        status,
        current_period_end,
        cancel_at_period_end,
    )
    return subscription


async def mark_subscription_status(db: AsyncSession, subscription: Subscription, status: str) -> Subscription:
    """Change only the status (payment failures, deletions)."""
    previous, subscription.status = subscription.status, status
    await db.flush()
    logger.info(
        "Coach %s subscription status %s -> %s", subscription.user_id, previous, status
    )
    return subscription
