"""
Authentication schemas.
"""

import uuid
from typing import Optional

from pydantic import EmailStr, Field

from tracker.kernel.models.user import UserRole
from tracker.schemas.common import CamelModel, UtcDatetime


class UserCreate(CamelModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    display_name: Optional[str] = Field(None, max_length=120)


class UserLogin(CamelModel):
    """User login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """User profile response."""

    id: uuid.UUID
    email: str
    display_name: Optional[str] = None
    role: UserRole
    created_at: UtcDatetime


class TokenResponse(CamelModel):
    """Session token response."""

    access_token: str
    token_type: str = "bearer"
    expires_at: UtcDatetime
    user: UserResponse
