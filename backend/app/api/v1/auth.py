"""Auth API router — coach registration, login for every role, token refresh, profile."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.dependencies import AccessDeniedError
from app.access.resolver import check_user_access
from app.auth.dependencies import get_current_active_user
from app.auth.jwt import REFRESH_TOKEN, TokenError, create_token_pair, user_id_from_token
from app.database import get_db
from app.models.user import ROLE_CLIENT, User
from app.schemas.access import AccessDecisionResponse
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from app.services.directory_service import (
    EmailAlreadyRegisteredError,
    authenticate,
    create_coach,
    get_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _auth_response(user: User, access: AccessDecisionResponse | None = None) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**create_token_pair(str(user.id), role=user.role)),
        access=access,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Register a new coach with email and password.

    Clients are never self-registered; their coach creates them.
    """
    try:
        coach = await create_coach(db, email=body.email, name=body.name, password=body.password)
    except EmailAlreadyRegisteredError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from None

    return _auth_response(coach)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Authenticate a coach, client or admin with email and password."""
    user = await authenticate(db, body.email, body.password)
    if user is None:
        raise _unauthorized("Invalid email or password")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    # built first: a failed check rolls back the session and expires user
    response = _auth_response(user)
    role = user.role

    decision = await check_user_access(db, user)
    if not decision.allowed and role == ROLE_CLIENT:
        logger.info(
            "Login refused for client %s: %s",
            response.user.id,
            decision.reason.value if decision.reason else None,
        )
        raise AccessDeniedError(decision, role=role)

    logger.info("Login: %s %s", role, response.user.id)
    response.access = AccessDecisionResponse.from_decision(decision)
    return response


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a valid refresh token for a new token pair.

    The role claim is re-read from the account, so a role change takes
    effect on the next refresh.
    """
    try:
        user_id = user_id_from_token(body.refresh_token, REFRESH_TOKEN)
    except TokenError as e:
        raise _unauthorized(str(e)) from None
    except JWTError:
        raise _unauthorized("Invalid or expired refresh token") from None

    user = await get_user(db, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return TokenResponse(**create_token_pair(str(user.id), role=user.role))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)) -> UserResponse:
    """Profile of the signed-in user, including role and coach link."""
    return UserResponse.model_validate(current_user)
