"""Stripe webhook event handlers — keep local subscription rows in sync.

These handlers are the only writers of subscription status. The access
engine reads whatever snapshot they leave behind.

A Stripe object is matched to a coach's row by, in order: its subscription
id, its customer id, then the ``userId`` metadata written at checkout.
"""

import logging
import uuid
from datetime import datetime, timezone

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.stripe_client import METADATA_USER_KEY, get_subscription
from app.models.subscription import Subscription
from app.services.subscription_service import (
    get_subscription_by_stripe_customer,
    get_subscription_by_stripe_subscription,
    get_subscription_for_user,
    mark_subscription_status,
    update_subscription_from_stripe,
)

logger = logging.getLogger(__name__)


def _ts_to_naive(ts: int | None) -> datetime | None:
    """Unix seconds -> naive UTC, the form every stored timestamp uses."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


def _get_period(stripe_sub: stripe.Subscription) -> tuple[datetime | None, datetime | None]:
    """Current billing period of a subscription.

    Newer API versions put the period on the subscription item, older ones on
    the subscription. ``items`` needs bracket access: attribute access would
    hit ``dict.items``.
    """
    sub_items = stripe_sub["items"]
    item = sub_items.data[0] if sub_items and sub_items.data else None

    bounds = []
    for field in ("current_period_start", "current_period_end"):
        value = getattr(item, field, None) if item is not None else None
        if value is None:
            value = getattr(stripe_sub, field, None)
        bounds.append(_ts_to_naive(value))
    return bounds[0], bounds[1]


def _get_invoice_subscription_id(invoice) -> str | None:
    """Subscription id of an invoice, across old and new invoice shapes."""
    subscription_id = getattr(invoice, "subscription", None)
    if subscription_id:
        return subscription_id
    parent = getattr(invoice, "parent", None)
    details = getattr(parent, "subscription_details", None) if parent else None
    return getattr(details, "subscription", None) if details else None


def _metadata_user_id(stripe_obj) -> uuid.UUID | None:
    metadata = getattr(stripe_obj, "metadata", None) or {}
    raw = metadata.get(METADATA_USER_KEY)
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s metadata %r", METADATA_USER_KEY, raw)
        return None


async def _locate(
    db: AsyncSession,
    *,
    subscription_id: str | None = None,
    customer_id: str | None = None,
    stripe_obj=None,
) -> Subscription | None:
    if subscription_id:
        found = await get_subscription_by_stripe_subscription(db, subscription_id)
        if found is not None:
            return found

    if customer_id:
        found = await get_subscription_by_stripe_customer(db, customer_id)
        if found is not None:
            return found

    user_id = _metadata_user_id(stripe_obj) if stripe_obj is not None else None
    if user_id is None:
        return None

    found = await get_subscription_for_user(db, user_id)
    if found is not None and customer_id and found.stripe_customer_id != customer_id:
        logger.info(
            "Relinking coach %s from customer %s to %s via metadata",
            user_id,
            found.stripe_customer_id,
            customer_id,
        )
        found.stripe_customer_id = customer_id
    return found


async def _apply(
    db: AsyncSession, subscription: Subscription, stripe_sub: stripe.Subscription
) -> Subscription:
    period_start, period_end = _get_period(stripe_sub)
    return await update_subscription_from_stripe(
        db,
        subscription=subscription,
        stripe_subscription_id=stripe_sub.id,
        status=stripe_sub.status,
        current_period_start=period_start,
        current_period_end=period_end,
        cancel_at_period_end=bool(stripe_sub.cancel_at_period_end),
    )


async def handle_checkout_session_completed(
    db: AsyncSession, event: stripe.Event
) -> None:
    """checkout.session.completed: attach the new Stripe subscription to the coach."""
    session = event.data.object
    if not session.subscription:
        logger.info("Checkout session %s created no subscription, skipping", session.id)
        return

    subscription = await _locate(db, customer_id=session.customer, stripe_obj=session)
    if subscription is None:
        logger.warning(
            "Checkout %s: no coach for customer %s", session.id, session.customer
        )
        return

    # the session only carries ids; status and period come from the subscription
    stripe_sub = await get_subscription(session.subscription)
    await _apply(db, subscription, stripe_sub)
    logger.info(
        "Checkout %s linked subscription %s (%s)",
        session.id,
        stripe_sub.id,
        stripe_sub.status,
    )


async def handle_subscription_updated(
    db: AsyncSession, event: stripe.Event
) -> None:
    """customer.subscription.created / updated: mirror status, period, cancel flag."""
    stripe_sub = event.data.object
    subscription = await _locate(
        db,
        subscription_id=stripe_sub.id,
        customer_id=stripe_sub.customer,
        stripe_obj=stripe_sub,
    )
    if subscription is None:
        logger.warning(
            "%s: no coach for subscription %s (customer %s)",
            event.type,
            stripe_sub.id,
            stripe_sub.customer,
        )
        return

    await _apply(db, subscription, stripe_sub)


async def handle_subscription_deleted(
    db: AsyncSession, event: stripe.Event
) -> None:
    """customer.subscription.deleted: mark the row canceled.

    The Stripe subscription id is kept. Without it the coach would read as
    never having connected billing, which is allowed access.
    """
    stripe_sub = event.data.object
    subscription = await _locate(db, subscription_id=stripe_sub.id)
    if subscription is None:
        logger.warning("Delete event for unknown subscription %s", stripe_sub.id)
        return

    subscription.cancel_at_period_end = False
    await mark_subscription_status(db, subscription, "canceled")


async def handle_invoice_paid(db: AsyncSession, event: stripe.Event) -> None:
    """invoice.paid: re-read the subscription to pick up the renewed period."""
    invoice = event.data.object
    subscription_id = _get_invoice_subscription_id(invoice)
    if not subscription_id:
        logger.info("Invoice %s is not for a subscription, skipping", invoice.id)
        return

    subscription = await _locate(db, subscription_id=subscription_id)
    if subscription is None:
        logger.warning(
            "Invoice %s paid for unknown subscription %s", invoice.id, subscription_id
        )
        return

    stripe_sub = await get_subscription(subscription_id)
    await _apply(db, subscription, stripe_sub)


async def handle_invoice_payment_failed(
    db: AsyncSession, event: stripe.Event
) -> None:
    """invoice.payment_failed: the coach drops to past_due and enters the grace window."""
    invoice = event.data.object
    subscription_id = _get_invoice_subscription_id(invoice)
    if not subscription_id:
        logger.info("Invoice %s is not for a subscription, skipping", invoice.id)
        return

    subscription = await _locate(db, subscription_id=subscription_id)
    if subscription is None:
        logger.warning(
            "Payment failed on invoice %s for unknown subscription %s",
            invoice.id,
            subscription_id,
        )
        return

    await mark_subscription_status(db, subscription, "past_due")
