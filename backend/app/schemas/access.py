"""Pydantic v2 response schemas for access checks and denial pages."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from app.access.decision import AccessDecision
from app.access.presentation import AccessNotice, DenialPage, access_notice


class AccessNoticeResponse(BaseModel):
    """Non-blocking banner for an allowed-but-flagged decision."""

    reason: str | None
    message: str
    relevant_date: str | None

    @classmethod
    def from_notice(cls, notice: AccessNotice) -> "AccessNoticeResponse":
        return cls(reason=notice.reason, message=notice.message, relevant_date=notice.relevant_date)


class AccessDecisionResponse(BaseModel):
    """Wire shape of an access decision."""

    has_access: bool
    reason: str | None
    message: str | None
    end_date: datetime | None
    coach_subscription_reason: str | None = None

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "AccessDecisionResponse":
        return cls(
            has_access=decision.allowed,
            reason=decision.reason.value if decision.reason else None,
            message=decision.message,
            end_date=decision.relevant_date,
            coach_subscription_reason=(
                decision.coach_subscription_reason.value
                if decision.coach_subscription_reason
                else None
            ),
        )


class AccessCheckResponse(AccessDecisionResponse):
    """Result of ``GET /subscription/check`` for the signed-in user."""

    role: str
    notice: AccessNoticeResponse | None = None
    redirect_url: str | None = None

    @classmethod
    def build(
        cls, decision: AccessDecision, role: str, redirect_url: str | None
    ) -> "AccessCheckResponse":
        base = AccessDecisionResponse.from_decision(decision)
        notice = access_notice(decision)
        return cls(
            **base.model_dump(),
            role=role,
            notice=AccessNoticeResponse.from_notice(notice) if notice else None,
            redirect_url=redirect_url,
        )


class PageActionResponse(BaseModel):
    label: str
    href: str | None


class DenialPageResponse(BaseModel):
    """Content of the access-denied / subscription-error pages."""

    reason: str | None
    title: str
    icon: str
    description: str
    message: str | None
    actions: list[PageActionResponse]

    @classmethod
    def from_page(cls, page: DenialPage) -> "DenialPageResponse":
        return cls(
            reason=page.reason,
            title=page.title,
            icon=page.icon,
            description=page.description,
            message=page.message,
            actions=[PageActionResponse(label=a.label, href=a.href) for a in page.actions],
        )


class CoachAccessSummary(BaseModel):
    """One row of the admin coach-subscription overview."""

    coach_id: uuid.UUID
    email: str
    name: str
    subscription_status: str | None
    current_period_end: datetime | None
    cancel_at_period_end: bool
    access: AccessDecisionResponse


class CoachAccessListResponse(BaseModel):
    coaches: list[CoachAccessSummary]
    total: int
