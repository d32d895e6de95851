"""Live Stripe test-mode checks for the client wrapper.

Skipped unless STRIPE_SECRET_KEY is set; the checkout case also needs
STRIPE_COACH_PRICE_ID.
"""

import os

import pytest
import stripe

from app.billing.stripe_client import (
    METADATA_USER_KEY,
    construct_webhook_event,
    create_checkout_session,
    create_customer,
    customer_exists,
    get_subscription,
)
from app.config import settings

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(
        not os.getenv("STRIPE_SECRET_KEY"), reason="STRIPE_SECRET_KEY not set"
    ),
]


async def _customer(tag: str) -> stripe.Customer:
    return await create_customer(
        email=f"{tag}@suplient.test", name=f"Integration {tag}", user_id=f"coach-{tag}"
    )


class TestStripeIntegration:
    async def test_customer_carries_coach_metadata(self):
        customer = await _customer("metadata")
        assert customer.id.startswith("cus_")
        assert customer.metadata.get(METADATA_USER_KEY) == "coach-metadata"

    async def test_customer_exists(self):
        customer = await _customer("exists")
        assert await customer_exists(customer.id) is True
        assert await customer_exists("cus_does_not_exist_123") is False

    async def test_checkout_session(self):
        if not settings.stripe_coach_price_id:
            pytest.skip("STRIPE_COACH_PRICE_ID not set")

        customer = await _customer("checkout")
        session = await create_checkout_session(
            customer_id=customer.id,
            price_id=settings.stripe_coach_price_id,
            success_url="https://example.com/ok",
            cancel_url="https://example.com/no",
            user_id="coach-checkout",
        )
        assert session.id.startswith("cs_")
        assert "checkout.stripe.com" in session.url
        assert session.metadata.get(METADATA_USER_KEY) == "coach-checkout"

    def test_bad_signature_rejected(self):
        with pytest.raises(stripe.SignatureVerificationError):
            construct_webhook_event(b'{"type": "test"}', "t=12345,v1=invalid_signature")

    async def test_unknown_subscription(self):
        with pytest.raises(stripe.InvalidRequestError):
            await get_subscription("sub_nonexistent_12345")
