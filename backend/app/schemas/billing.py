"""Pydantic v2 schemas for the coach billing screen and Stripe redirects."""

from datetime import datetime

from pydantic import BaseModel

from app.models.subscription import Subscription
from app.schemas.access import AccessDecisionResponse


class CheckoutRequest(BaseModel):
    """Both URLs default to the billing settings screen."""

    success_url: str | None = None
    cancel_url: str | None = None


class PortalRequest(BaseModel):
    return_url: str | None = None


class SubscriptionSnapshot(BaseModel):
    connected: bool
    status: str
    stripe_subscription_id: str | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    cancel_at_period_end: bool

    @classmethod
    def from_row(cls, row: Subscription) -> "SubscriptionSnapshot":
        return cls(
            connected=row.stripe_subscription_id is not None,
            status=row.status,
            stripe_subscription_id=row.stripe_subscription_id,
            current_period_start=row.current_period_start,
            current_period_end=row.current_period_end,
            cancel_at_period_end=row.cancel_at_period_end,
        )


class SubscriptionResponse(BaseModel):
    subscription: SubscriptionSnapshot
    access: AccessDecisionResponse


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class PortalResponse(BaseModel):
    portal_url: str
