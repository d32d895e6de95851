"""Coach billing: subscription status, Stripe Checkout and the Customer Portal.

None of these routes use ``require_access``: a coach locked out by billing
has to reach them to fix it.
"""

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.classifier import classify
from app.access.decision import SubscriptionRecord, utcnow
from app.api.deps import get_db, require_role
from app.billing.stripe_client import create_checkout_session, create_portal_session
from app.config import settings
from app.models.user import ROLE_COACH, User
from app.schemas.access import AccessDecisionResponse
from app.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PortalRequest,
    PortalResponse,
    SubscriptionResponse,
    SubscriptionSnapshot,
)
from app.services.subscription_service import ensure_stripe_customer, get_or_create_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])

require_coach = require_role(ROLE_COACH)


def _stripe_failed(action: str, e: stripe.StripeError) -> HTTPException:
    logger.error("Stripe %s failed: %s", action, e)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_coach),
) -> SubscriptionResponse:
    """The coach's mirrored subscription and the access decision it yields."""
    subscription = await get_or_create_subscription(db, current_user)
    decision = classify(
        SubscriptionRecord.from_row(current_user.id, subscription),
        utcnow(),
        grace_period_days=settings.grace_period_days,
    )
    return SubscriptionResponse(
        subscription=SubscriptionSnapshot.from_row(subscription),
        access=AccessDecisionResponse.from_decision(decision),
    )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_coach),
) -> CheckoutResponse:
    """Start a Stripe Checkout for the coach plan.

    The session and the subscription it creates are tagged with the coach id,
    so the webhook can find the coach even if the customer id changed.
    """
    if not settings.stripe_coach_price_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe price ID not configured for the coach subscription.",
        )

    subscription = await get_or_create_subscription(db, current_user)
    # {CHECKOUT_SESSION_ID} is filled in by Stripe
    success_url = body.success_url or (
        f"{settings.billing_settings_url}&success=subscription_created"
        "&session_id={CHECKOUT_SESSION_ID}"
    )
    cancel_url = body.cancel_url or f"{settings.billing_settings_url}&canceled=true"

    try:
        customer_id = await ensure_stripe_customer(db, current_user, subscription)
        session = await create_checkout_session(
            customer_id=customer_id,
            price_id=settings.stripe_coach_price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            user_id=str(current_user.id),
        )
    except stripe.StripeError as e:
        raise _stripe_failed("checkout", e) from e

    # keep the customer link even if the coach abandons checkout
    await db.commit()
    return CheckoutResponse(checkout_url=session.url, session_id=session.id)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    body: PortalRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_coach),
) -> PortalResponse:
    """Stripe Customer Portal, where the coach updates payment or cancels."""
    subscription = await get_or_create_subscription(db, current_user)
    if not subscription.stripe_customer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No Stripe customer found. Subscribe first.",
        )

    try:
        session = await create_portal_session(
            customer_id=subscription.stripe_customer_id,
            return_url=body.return_url or settings.billing_settings_url,
        )
    except stripe.StripeError as e:
        raise _stripe_failed("portal", e) from e

    return PortalResponse(portal_url=session.url)
