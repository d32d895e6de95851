"""Route protection: who is calling, and are they allowed to call this."""

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import ACCESS_TOKEN, TokenError, user_id_from_token
from app.database import get_db
from app.models.user import User
from app.services.directory_service import get_user

_bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the Bearer access token to a live, active account.

    Raises:
        HTTPException 401: Invalid, expired or refresh token; unknown or
            deactivated account.
    """
    try:
        user_id = user_id_from_token(credentials.credentials, ACCESS_TOKEN)
    except TokenError as e:
        raise _unauthorized(str(e)) from None
    except JWTError:
        raise _unauthorized("Could not validate credentials") from None

    user = await get_user(db, user_id)
    if user is None:
        raise _unauthorized("Could not validate credentials")
    if not user.is_active:
        raise _unauthorized("User account is inactive")
    return user


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """Return the current user only if their account is active.

    Raises:
        HTTPException 403: If the user account is inactive or banned.
    """
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return user


def require_role(*roles: str) -> Callable[..., Awaitable[User]]:
    """Build a dependency that only lets users with one of ``roles`` through.

    Usage::

        @router.get("/admin/coaches/subscriptions")
        async def list_coach_subscriptions(admin: User = Depends(require_role(ROLE_ADMIN))):
            ...
    """
    allowed = frozenset(roles)

    async def _dependency(user: User = Depends(get_current_active_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {', '.join(sorted(allowed))}",
            )
        return user

    return _dependency
