"""Subscription status classifier — turns a billing snapshot into an access decision.

Pure computation: no I/O, no clock reads. Callers pass ``now`` explicitly so
the same inputs always produce the same decision.
"""

import logging
import math
from datetime import datetime, timedelta

from app.access.decision import (
    MESSAGE_EXPIRED,
    MESSAGE_INVALID_PERIOD,
    MESSAGE_INVALID_STATUS,
    MESSAGE_NO_STRIPE_CONNECTION,
    MESSAGE_PAST_DUE,
    TERMINAL_STATUS_MESSAGES,
    AccessDecision,
    ReasonCode,
    SubscriptionRecord,
    SubscriptionStatus,
    to_naive_utc,
)

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 7

_ONE_DAY = timedelta(days=1)


def format_date(value: datetime) -> str:
    """Render a date for user-facing messages."""
    return value.strftime("%Y-%m-%d")


def _classify_active(record: SubscriptionRecord, period_end: datetime | None, now: datetime) -> AccessDecision:
    if period_end is None:
        logger.warning(
            "Active subscription %s for account %s has no period end",
            record.subscription_id,
            record.account_id,
        )
        return AccessDecision.deny(ReasonCode.INVALID_PERIOD, MESSAGE_INVALID_PERIOD)

    if period_end < now:
        return AccessDecision.deny(ReasonCode.EXPIRED, MESSAGE_EXPIRED, relevant_date=period_end)

    # Cancellation at period end never shortens a period that was paid for
    if record.cancel_at_period_end:
        return AccessDecision.allow(
            ReasonCode.SCHEDULED_CANCELLATION,
            "Your subscription will be canceled at the end of the current billing period "
            f"({format_date(period_end)}).",
            relevant_date=period_end,
        )
    return AccessDecision.allow(ReasonCode.ACTIVE, relevant_date=period_end)


def _classify_past_due(
    record: SubscriptionRecord,
    period_end: datetime | None,
    now: datetime,
    grace_period_days: int,
) -> AccessDecision:
    grace = timedelta(days=grace_period_days)

    if period_end is None:
        # The window is anchored at the evaluation instant, so it never shrinks
        # while the period end stays unknown.
        logger.warning(
            "Past-due subscription %s for account %s has no period end; "
            "granting a %d-day grace window from now",
            record.subscription_id,
            record.account_id,
            grace_period_days,
        )
        return AccessDecision.allow(
            ReasonCode.PAST_DUE_GRACE_PERIOD,
            f"Your payment failed. Please update your payment method within {grace_period_days} days "
            "to avoid service interruption.",
            relevant_date=now + grace,
        )

    if now < period_end:
        return AccessDecision.allow(
            ReasonCode.PAST_DUE_GRACE_PERIOD,
            "Your payment failed. Please update your payment method. "
            f"You have access until {format_date(period_end)}.",
            relevant_date=period_end,
        )

    grace_end = period_end + grace
    if now < grace_end:
        days_left = math.ceil((grace_end - now) / _ONE_DAY)
        return AccessDecision.allow(
            ReasonCode.PAST_DUE_GRACE_PERIOD,
            "Your payment failed and your subscription period has ended. "
            f"Please update your payment method within {days_left} days to avoid service interruption.",
            relevant_date=grace_end,
        )

    return AccessDecision.deny(ReasonCode.PAST_DUE, MESSAGE_PAST_DUE, relevant_date=grace_end)


def classify(
    record: SubscriptionRecord,
    now: datetime,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> AccessDecision:
    """Classify a coach's subscription snapshot at instant ``now``.

    Rules are evaluated in priority order and the first match wins:

    1. No Stripe subscription connected: allow (new coaches may use the
       product before finishing billing setup).
    2. ``active``: allow until the period end; deny when expired or when the
       period end is missing.
    3. ``past_due``: allow through the paid period plus a grace window.
    4. ``trialing``: allow.
    5. ``canceled``, ``unpaid``, ``incomplete``, ``incomplete_expired``: deny
       with the status as reason.
    6. Anything else: deny as ``invalid_status``.
    """
    now = to_naive_utc(now)
    period_end = to_naive_utc(record.current_period_end)

    if not record.subscription_id:
        return AccessDecision.allow(ReasonCode.NO_STRIPE_CONNECTION, MESSAGE_NO_STRIPE_CONNECTION)

    status = SubscriptionStatus.parse(record.status)

    if status is SubscriptionStatus.ACTIVE:
        return _classify_active(record, period_end, now)

    if status is SubscriptionStatus.PAST_DUE:
        return _classify_past_due(record, period_end, now, grace_period_days)

    if status is SubscriptionStatus.TRIALING:
        return AccessDecision.allow(relevant_date=period_end)

    if status in TERMINAL_STATUS_MESSAGES:
        return AccessDecision.deny(
            ReasonCode(status.value),
            TERMINAL_STATUS_MESSAGES[status],
            relevant_date=period_end,
        )

    if status is None and record.status:
        logger.warning(
            "Unrecognized subscription status %r for account %s",
            record.status,
            record.account_id,
        )
    return AccessDecision.deny(ReasonCode.INVALID_STATUS, MESSAGE_INVALID_STATUS, relevant_date=period_end)
