"""Async Stripe API wrapper for coach subscriptions.

Every object created here carries the coach's account id under the
``userId`` metadata key so it can be traced back from the Stripe dashboard.
"""

import logging

import stripe
from stripe import StripeClient

from app.config import settings

logger = logging.getLogger(__name__)

METADATA_USER_KEY = "userId"


def get_stripe_client() -> StripeClient:
    """Create a StripeClient instance with async HTTP support."""
    return StripeClient(
        settings.stripe_secret_key,
        http_client=stripe.HTTPXClient(),
    )


async def create_customer(email: str, name: str, user_id: str) -> stripe.Customer:
    """Create the Stripe customer that pays for a coach's subscription."""
    client = get_stripe_client()
    customer = await client.v1.customers.create_async(
        params={
            "email": email,
            "name": name,
            "metadata": {METADATA_USER_KEY: user_id},
        }
    )
    logger.info("Created Stripe customer %s for coach %s", customer.id, user_id)
    return customer


async def customer_exists(customer_id: str) -> bool:
    """False when Stripe no longer knows the customer (deleted, or another account)."""
    client = get_stripe_client()
    try:
        customer = await client.v1.customers.retrieve_async(customer_id)
    except stripe.InvalidRequestError as e:
        if e.code == "resource_missing":
            return False
        raise
    return not getattr(customer, "deleted", False)


async def create_checkout_session(
    customer_id: str,
    price_id: str,
    success_url: str,
    cancel_url: str,
    user_id: str | None = None,
) -> stripe.checkout.Session:
    """Create a subscription-mode Checkout Session for the coach plan."""
    client = get_stripe_client()
    logger.info("Creating checkout session for customer %s, price %s", customer_id, price_id)

    params: dict = {
        "mode": "subscription",
        "customer": customer_id,
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
    }
    if user_id is not None:
        params["metadata"] = {METADATA_USER_KEY: user_id}
        params["subscription_data"] = {"metadata": {METADATA_USER_KEY: user_id}}
    return await client.v1.checkout.sessions.create_async(params=params)


async def create_portal_session(
    customer_id: str, return_url: str
) -> stripe.billing_portal.Session:
    """Customer Portal session where the coach updates payment or cancels."""
    client = get_stripe_client()
    logger.info("Creating portal session for customer %s", customer_id)
    return await client.v1.billing_portal.sessions.create_async(
        params={"customer": customer_id, "return_url": return_url}
    )


async def get_subscription(subscription_id: str) -> stripe.Subscription:
    """Fetch the authoritative subscription state (webhook payloads can be stale)."""
    client = get_stripe_client()
    return await client.v1.subscriptions.retrieve_async(subscription_id)


def construct_webhook_event(payload: bytes, sig_header: str) -> stripe.Event:
    """Verify the ``Stripe-Signature`` header and parse the event.

    Raises:
        stripe.SignatureVerificationError: Signature does not match the secret.
        ValueError: Payload is not valid JSON.
    """
    client = get_stripe_client()
    return client.construct_event(payload, sig_header, settings.stripe_webhook_secret)
