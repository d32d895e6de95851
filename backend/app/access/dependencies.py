"""Access gating dependencies — block routes when the subscription check denies."""

import logging

from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.decision import AccessDecision
from app.access.presentation import denial_redirect_url
from app.access.resolver import check_user_access
from app.auth.dependencies import get_current_active_user
from app.database import get_db
from app.models.user import User

logger = logging.getLogger(__name__)


class AccessDeniedError(Exception):
    """Raised by route guards when an access decision denies the request."""

    def __init__(self, decision: AccessDecision, role: str | None = None) -> None:
        super().__init__(decision.reason.value if decision.reason else "denied")
        self.decision = decision
        self.role = role


async def require_access(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AccessDecision:
    """Deny the request unless the user's subscription check allows it.

    Returns the decision so handlers can surface a non-blocking notice
    (scheduled cancellation, payment grace period).
    """
    user_id, role = user.id, user.role
    decision = await check_user_access(db, user)
    if not decision.allowed:
        logger.info(
            "Access denied for user %s (%s): %s",
            user_id,
            role,
            decision.reason.value if decision.reason else None,
        )
        raise AccessDeniedError(decision, role=role)
    return decision


def _wants_html(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/html" in accept


async def access_denied_handler(request: Request, exc: AccessDeniedError) -> Response:
    """Browsers get redirected to the denial page; API callers get a 403 body."""
    redirect_url = denial_redirect_url(exc.decision, exc.role)
    if _wants_html(request):
        return RedirectResponse(redirect_url, status_code=status.HTTP_303_SEE_OTHER)

    decision = exc.decision
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": {
                "reason": decision.reason.value if decision.reason else None,
                "message": decision.message,
                "redirect_url": redirect_url,
            }
        },
    )
