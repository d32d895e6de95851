"""Access decision value objects — statuses, reason codes, and fixed messages."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class SubscriptionStatus(str, enum.Enum):
    """Closed set of Stripe subscription statuses the engine understands."""

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | None) -> "SubscriptionStatus | None":
        """Parse a raw status string. Returns None for null or unrecognized values."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ReasonCode(str, enum.Enum):
    """Stable reason codes shared by route guards and the denial pages."""

    NO_STRIPE_CONNECTION = "no_stripe_connection"
    ACTIVE = "active"
    SCHEDULED_CANCELLATION = "scheduled_cancellation"
    PAST_DUE_GRACE_PERIOD = "past_due_grace_period"
    PAST_DUE = "past_due"
    EXPIRED = "expired"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    INVALID_STATUS = "invalid_status"
    INVALID_PERIOD = "invalid_period"
    CLIENT_NOT_FOUND = "client_not_found"
    NO_COACH_ASSIGNED = "no_coach_assigned"
    COACH_SUBSCRIPTION_INACTIVE = "coach_subscription_inactive"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str | None) -> "ReasonCode | None":
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Fixed user-facing messages
# ---------------------------------------------------------------------------

MESSAGE_NO_STRIPE_CONNECTION = (
    "You can use the platform until you connect your Stripe payment. "
    "Please connect Stripe to continue after your first connection."
)
MESSAGE_INVALID_PERIOD = "Subscription period information is missing. Please contact support."
MESSAGE_INVALID_STATUS = "Subscription status is invalid. Please contact support for assistance."
MESSAGE_EXPIRED = "Your subscription has expired. Please renew to continue using the platform."
MESSAGE_PAST_DUE = (
    "Your payment failed and the grace period has ended. "
    "Please update your payment method to continue using the platform."
)

TERMINAL_STATUS_MESSAGES: dict[SubscriptionStatus, str] = {
    SubscriptionStatus.CANCELED: (
        "Your subscription has been canceled. Please resubscribe to continue using the platform."
    ),
    SubscriptionStatus.UNPAID: (
        "Your subscription payment is overdue. "
        "Please update your payment method to continue using the platform."
    ),
    SubscriptionStatus.INCOMPLETE: (
        "Your subscription setup is incomplete. "
        "Please complete your subscription to continue using the platform."
    ),
    SubscriptionStatus.INCOMPLETE_EXPIRED: (
        "Your subscription setup expired. "
        "Please create a new subscription to continue using the platform."
    ),
}

MESSAGE_COACH_SUBSCRIPTION_INACTIVE = (
    "Your coach's subscription is inactive. Access is temporarily unavailable. "
    "Please contact your coach or support for assistance."
)
MESSAGE_NO_COACH_ASSIGNED = "No coach assigned. Please contact support for assistance."
MESSAGE_CLIENT_NOT_FOUND = "Client record not found. Please contact support for assistance."

MESSAGE_COACH_ERROR = "Unable to verify subscription status. Please contact support for assistance."
MESSAGE_CLIENT_ERROR = "Unable to verify access. Please contact support for assistance."


def utcnow() -> datetime:
    """Current instant as naive UTC, matching how billing periods are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class SubscriptionRecord:
    """Read-only snapshot of a coach's billing state."""

    account_id: uuid.UUID | None
    subscription_id: str | None
    status: str | None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False

    @classmethod
    def from_row(cls, account_id: uuid.UUID, row: Any | None) -> "SubscriptionRecord":
        """Build a record from a ``Subscription`` row (or None when no row exists).

        Validates the row's shape so a malformed upstream value is rejected
        here instead of inside the classifier.
        """
        if row is None:
            return cls(account_id=account_id, subscription_id=None, status=None)

        period_end = getattr(row, "current_period_end", None)
        if period_end is not None and not isinstance(period_end, datetime):
            raise TypeError(
                f"current_period_end must be a datetime, got {type(period_end).__name__}"
            )
        status = getattr(row, "status", None)
        if status is not None and not isinstance(status, str):
            raise TypeError(f"status must be a string, got {type(status).__name__}")

        return cls(
            account_id=account_id,
            subscription_id=getattr(row, "stripe_subscription_id", None) or None,
            status=status,
            current_period_end=to_naive_utc(period_end),
            cancel_at_period_end=bool(getattr(row, "cancel_at_period_end", False)),
        )


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check. Never persisted."""

    allowed: bool
    reason: ReasonCode | None = None
    message: str | None = None
    relevant_date: datetime | None = None
    coach_subscription_reason: ReasonCode | None = field(default=None)

    @classmethod
    def allow(
        cls,
        reason: ReasonCode | None = None,
        message: str | None = None,
        relevant_date: datetime | None = None,
    ) -> "AccessDecision":
        return cls(allowed=True, reason=reason, message=message, relevant_date=relevant_date)

    @classmethod
    def deny(
        cls,
        reason: ReasonCode,
        message: str,
        relevant_date: datetime | None = None,
        coach_subscription_reason: ReasonCode | None = None,
    ) -> "AccessDecision":
        return cls(
            allowed=False,
            reason=reason,
            message=message,
            relevant_date=relevant_date,
            coach_subscription_reason=coach_subscription_reason,
        )

    @property
    def has_notice(self) -> bool:
        """True when access is allowed but the user should see a banner."""
        return self.allowed and self.message is not None
