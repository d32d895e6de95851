"""Clients API router — coaches create and list the clients they coach.

Every route here sits behind ``require_access``: a coach whose subscription
denies access cannot manage clients.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.decision import AccessDecision
from app.access.presentation import access_notice
from app.access.resolver import resolve_effective_access
from app.api.deps import get_db, require_access, require_role
from app.models.user import ROLE_COACH, User
from app.schemas.access import AccessDecisionResponse, AccessNoticeResponse
from app.schemas.client import ClientCreate, ClientListResponse, ClientResponse
from app.services.directory_service import (
    EmailAlreadyRegisteredError,
    create_client,
    get_client,
    list_clients,
)

router = APIRouter(prefix="/api/v1/clients", tags=["clients"])

require_coach = require_role(ROLE_COACH)


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client for the current coach",
)
async def create_client_account(
    body: ClientCreate,
    db: AsyncSession = Depends(get_db),
    coach: User = Depends(require_coach),
    _access: AccessDecision = Depends(require_access),
) -> User:
    """Create a client linked to the current coach.

    Raises 409 if the email is already registered.
    """
    try:
        client = await create_client(
            db, coach, email=body.email, name=body.name, password=body.password
        )
    except EmailAlreadyRegisteredError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        ) from None

    await db.refresh(client)
    return client


@router.get(
    "",
    response_model=ClientListResponse,
    summary="List the current coach's clients",
)
async def list_my_clients(
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    coach: User = Depends(require_coach),
    access: AccessDecision = Depends(require_access),
) -> ClientListResponse:
    """Return the coach's clients, with a billing banner when one applies."""
    clients = await list_clients(db, coach.id)
    notice = access_notice(access)
    return ClientListResponse(
        items=[ClientResponse.model_validate(c) for c in clients[skip : skip + limit]],
        total=len(clients),
        notice=AccessNoticeResponse.from_notice(notice) if notice else None,
    )


@router.get(
    "/{client_id}/access",
    response_model=AccessDecisionResponse,
    summary="Check whether one of the coach's clients currently has access",
)
async def get_client_access(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    coach: User = Depends(require_coach),
    _access: AccessDecision = Depends(require_access),
) -> AccessDecisionResponse:
    client = await get_client(db, client_id)
    if client is None or client.coach_id != coach.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found",
        )

    decision = await resolve_effective_access(db, client.id)
    return AccessDecisionResponse.from_decision(decision)
