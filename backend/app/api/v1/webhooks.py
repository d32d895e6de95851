"""Stripe webhook endpoint."""

import logging
from collections.abc import Awaitable, Callable

import stripe
from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing import webhooks
from app.billing.stripe_client import construct_webhook_event
from app.database import async_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])

EventHandler = Callable[[AsyncSession, stripe.Event], Awaitable[None]]

# invoice.payment_succeeded is the older name for invoice.paid; accounts may
# still be subscribed to either.
EVENT_HANDLERS: dict[str, EventHandler] = {
    "checkout.session.completed": webhooks.handle_checkout_session_completed,
    "customer.subscription.created": webhooks.handle_subscription_updated,
    "customer.subscription.updated": webhooks.handle_subscription_updated,
    "customer.subscription.deleted": webhooks.handle_subscription_deleted,
    "invoice.paid": webhooks.handle_invoice_paid,
    "invoice.payment_succeeded": webhooks.handle_invoice_paid,
    "invoice.payment_failed": webhooks.handle_invoice_payment_failed,
}


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("/stripe")
async def stripe_webhook(request: Request) -> dict[str, str]:
    """Verify a Stripe event and apply it to the coach's subscription row.

    Returns ``ignored`` for event types nobody handles so Stripe stops
    retrying them. A failing handler rolls back and answers 500, which makes
    Stripe redeliver the event later.
    """
    # the signature covers the raw bytes, so the body must not be parsed first
    try:
        event = construct_webhook_event(
            await request.body(), request.headers.get("stripe-signature", "")
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("Rejected webhook: signature mismatch")
        raise _bad_request("Invalid signature") from e
    except ValueError as e:
        logger.warning("Rejected webhook: payload is not a Stripe event")
        raise _bad_request("Invalid payload") from e

    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.debug("Ignoring webhook event %s (%s)", event.id, event.type)
        return {"status": "ignored"}

    logger.info("Webhook %s: %s", event.id, event.type)
    async with async_session_factory() as db:
        try:
            await handler(db, event)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.exception("Webhook %s (%s) failed", event.id, event.type)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook processing failed",
            ) from e

    return {"status": "processed"}
