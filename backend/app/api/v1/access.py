"""Access API — the subscription check used by page gates, and denial page content."""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.decision import ReasonCode
from app.access.presentation import denial_page, denial_redirect_url
from app.access.resolver import check_user_access
from app.api.deps import get_current_active_user, get_db
from app.models.user import User
from app.schemas.access import AccessCheckResponse, DenialPageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["access"])


@router.get("/subscription/check", response_model=AccessCheckResponse)
async def check_subscription(
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AccessCheckResponse:
    """Evaluate the signed-in user's access.

    An unverifiable state answers 500 with ``has_access = false`` so callers
    that only look at the status code still fail closed.
    """
    # a failed check rolls the session back and expires current_user
    user_id, role = current_user.id, current_user.role
    decision = await check_user_access(db, current_user)
    logger.info(
        "Subscription check: user %s (%s) allowed=%s reason=%s",
        user_id,
        role,
        decision.allowed,
        decision.reason.value if decision.reason else None,
    )

    if decision.reason is ReasonCode.ERROR:
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    redirect_url = None if decision.allowed else denial_redirect_url(decision, role)
    return AccessCheckResponse.build(decision, role=role, redirect_url=redirect_url)


@router.get("/access/denied", response_model=DenialPageResponse)
async def get_denial_page(
    reason: str | None = Query(default=None, max_length=64),
    message: str | None = Query(default=None, max_length=500),
) -> DenialPageResponse:
    """Content for the denial pages (public — the user may have no access at all)."""
    return DenialPageResponse.from_page(denial_page(reason, message))
