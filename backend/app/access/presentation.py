"""Map access decisions onto what the user sees: banners, redirects, denial pages."""

from dataclasses import dataclass, field
from urllib.parse import urlencode

from app.access.decision import AccessDecision, ReasonCode
from app.config import settings
from app.models.user import ROLE_CLIENT

# Reasons caused by someone else's billing (the client's coach) or by the
# client's own account record. Everything else is the coach's own billing.
CLIENT_FACING_REASONS: frozenset[ReasonCode] = frozenset(
    {
        ReasonCode.COACH_SUBSCRIPTION_INACTIVE,
        ReasonCode.NO_COACH_ASSIGNED,
        ReasonCode.CLIENT_NOT_FOUND,
    }
)

# Reasons the coach can fix from the billing screen
BILLING_REASONS: frozenset[ReasonCode] = frozenset(
    {
        ReasonCode.EXPIRED,
        ReasonCode.CANCELED,
        ReasonCode.PAST_DUE,
        ReasonCode.UNPAID,
        ReasonCode.INCOMPLETE,
        ReasonCode.INCOMPLETE_EXPIRED,
        ReasonCode.INVALID_STATUS,
        ReasonCode.INVALID_PERIOD,
    }
)


@dataclass(frozen=True)
class PageAction:
    label: str
    href: str | None  # None means "history back"


@dataclass(frozen=True)
class DenialPage:
    """Fixed content rendered for a denial reason."""

    reason: str | None
    title: str
    icon: str
    description: str
    message: str | None
    actions: list[PageAction] = field(default_factory=list)


@dataclass(frozen=True)
class AccessNotice:
    """Non-blocking banner shown while access is still allowed."""

    reason: str | None
    message: str
    relevant_date: str | None


_PAGE_CONTENT: dict[ReasonCode, tuple[str, str, str]] = {
    # reason: (title, icon, description)
    ReasonCode.COACH_SUBSCRIPTION_INACTIVE: (
        "Access Temporarily Unavailable",
        "alert-orange",
        "Your coach's subscription is currently inactive. This may be due to an expired "
        "subscription, payment issue, or cancellation.",
    ),
    ReasonCode.NO_COACH_ASSIGNED: (
        "No Coach Assigned",
        "alert-blue",
        "You don't have a coach assigned to your account. Please contact support for assistance.",
    ),
    ReasonCode.CLIENT_NOT_FOUND: (
        "Account Issue",
        "alert-red",
        "There was an issue verifying your account. Please contact support.",
    ),
    ReasonCode.ERROR: (
        "Verification Error",
        "alert-red",
        "Unable to verify your access. Please contact support for assistance.",
    ),
    ReasonCode.EXPIRED: (
        "Subscription Expired",
        "alert-red",
        "Your subscription has expired. Renew it to continue using the platform.",
    ),
    ReasonCode.CANCELED: (
        "Subscription Canceled",
        "alert-gray",
        "Your subscription has been canceled. Resubscribe to continue using the platform.",
    ),
    ReasonCode.PAST_DUE: (
        "Payment Failed",
        "alert-yellow",
        "Your payment failed and the grace period has ended. Update your payment method to continue.",
    ),
    ReasonCode.UNPAID: (
        "Payment Overdue",
        "alert-yellow",
        "Your subscription payment is overdue. Update your payment method to continue.",
    ),
    ReasonCode.INCOMPLETE: (
        "Subscription Incomplete",
        "credit-card-orange",
        "Your subscription setup is incomplete. Complete it to continue using the platform.",
    ),
    ReasonCode.INCOMPLETE_EXPIRED: (
        "Subscription Setup Expired",
        "credit-card-orange",
        "Your subscription setup expired. Create a new subscription to continue.",
    ),
    ReasonCode.INVALID_STATUS: (
        "Subscription Issue",
        "alert-orange",
        "We could not read your subscription status. Please contact support.",
    ),
    ReasonCode.INVALID_PERIOD: (
        "Subscription Issue",
        "alert-orange",
        "Your subscription period information is missing. Please contact support.",
    ),
}

_BILLING_ACTION_LABELS: dict[ReasonCode, str] = {
    ReasonCode.EXPIRED: "Renew Subscription",
    ReasonCode.CANCELED: "Resubscribe",
    ReasonCode.PAST_DUE: "Update Payment Method",
    ReasonCode.UNPAID: "Update Payment Method",
    ReasonCode.INCOMPLETE: "Complete Subscription",
    ReasonCode.INCOMPLETE_EXPIRED: "Subscribe Now",
}

_DEFAULT_TITLE = "Access Denied"
_DEFAULT_DESCRIPTION = "Access is temporarily unavailable."


def denial_path(reason: ReasonCode | None, role: str | None = None) -> str:
    """Which denial page handles this reason.

    Clients never see the coach billing page, whatever the reason.
    """
    if role == ROLE_CLIENT or reason in CLIENT_FACING_REASONS:
        return settings.access_denied_path
    return settings.subscription_error_path


def denial_redirect_url(decision: AccessDecision, role: str | None = None) -> str:
    """Frontend URL of the denial page, carrying ``reason`` and ``message``."""
    params: dict[str, str] = {}
    if decision.reason is not None:
        params["reason"] = decision.reason.value
    if decision.message:
        params["message"] = decision.message
    url = f"{settings.frontend_url}{denial_path(decision.reason, role)}"
    return f"{url}?{urlencode(params)}" if params else url


def denial_page(reason: str | None, message: str | None = None) -> DenialPage:
    """Build the denial page for raw query parameters.

    Unrecognized reasons fall back to a generic title with ``message`` as the
    body text.
    """
    code = ReasonCode.parse(reason)
    actions = [
        PageAction(label="Go Back", href=None),
        PageAction(label="Contact Support", href=settings.support_url),
    ]

    content = _PAGE_CONTENT.get(code) if code is not None else None
    if content is None:
        return DenialPage(
            reason=reason,
            title=_DEFAULT_TITLE,
            icon="alert-orange",
            description=message or _DEFAULT_DESCRIPTION,
            message=None,
            actions=actions,
        )

    title, icon, description = content
    if code in BILLING_REASONS:
        label = _BILLING_ACTION_LABELS.get(code, "Manage Subscription")
        actions.insert(0, PageAction(label=label, href=settings.billing_settings_url))

    return DenialPage(
        reason=code.value,
        title=title,
        icon=icon,
        description=description,
        message=message if message and message != description else None,
        actions=actions,
    )


def access_notice(decision: AccessDecision) -> AccessNotice | None:
    """Banner for an allowed decision that still carries a message."""
    if not decision.has_notice:
        return None
    return AccessNotice(
        reason=decision.reason.value if decision.reason else None,
        message=decision.message,  # type: ignore[arg-type]
        relevant_date=decision.relevant_date.isoformat() if decision.relevant_date else None,
    )
