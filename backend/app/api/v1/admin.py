"""Admin API router — platform-wide view of coach subscriptions."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.classifier import classify
from app.access.decision import SubscriptionRecord, utcnow
from app.api.deps import get_db, require_role
from app.config import settings
from app.models.user import ROLE_ADMIN, User
from app.schemas.access import (
    AccessDecisionResponse,
    CoachAccessListResponse,
    CoachAccessSummary,
)
from app.services.directory_service import list_coaches

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/coaches/subscriptions", response_model=CoachAccessListResponse)
async def list_coach_subscriptions(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_role(ROLE_ADMIN)),
) -> CoachAccessListResponse:
    """Every coach with their mirrored subscription and current access decision.

    All coaches are classified against the same instant so the list is
    internally consistent.
    """
    now = utcnow()
    coaches = await list_coaches(db)

    rows: list[CoachAccessSummary] = []
    for coach in coaches:
        subscription = coach.subscription
        decision = classify(
            SubscriptionRecord.from_row(coach.id, subscription),
            now,
            grace_period_days=settings.grace_period_days,
        )
        rows.append(
            CoachAccessSummary(
                coach_id=coach.id,
                email=coach.email,
                name=coach.name,
                subscription_status=subscription.status if subscription else None,
                current_period_end=subscription.current_period_end if subscription else None,
                cancel_at_period_end=subscription.cancel_at_period_end if subscription else False,
                access=AccessDecisionResponse.from_decision(decision),
            )
        )

    logger.info("Admin %s listed %d coach subscriptions", admin.id, len(rows))
    return CoachAccessListResponse(coaches=rows, total=len(rows))
