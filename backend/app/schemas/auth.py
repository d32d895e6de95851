"""Pydantic v2 schemas for login, coach registration and token refresh."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.schemas.access import AccessDecisionResponse


def normalize_email(value):
    """Accounts are keyed by the trimmed, lower-cased address."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return normalize_email(v)


class RegisterRequest(LoginRequest):
    """Coach self-registration. Clients are created by their coach instead."""

    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """Profile of a coach, client or admin.

    ``coach_id`` is set only for clients.
    """

    id: uuid.UUID
    email: str
    name: str
    role: str
    coach_id: uuid.UUID | None = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenResponse
    access: AccessDecisionResponse | None = None
