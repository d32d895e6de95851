"""Pydantic v2 request/response schemas for coach-managed client accounts."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.access import AccessNoticeResponse
from app.schemas.auth import normalize_email


class ClientCreate(BaseModel):
    """Schema for a coach creating a client account."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str | None = Field(None, min_length=8, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return normalize_email(v)


class ClientResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    coach_id: uuid.UUID | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientListResponse(BaseModel):
    items: list[ClientResponse]
    total: int
    notice: AccessNoticeResponse | None = None
