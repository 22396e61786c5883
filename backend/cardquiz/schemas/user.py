"""User & authentication schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr


class ProfileIn(BaseModel):
    """Profile captured at sign-up."""

    first_name: str
    last_name: str
    phone: str | None = None


class UserCreate(BaseModel):
    """POST /api/users/register"""

    email: EmailStr
    password: str
    profile: ProfileIn


class UserLogin(BaseModel):
    """POST /api/users/login"""

    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    """PATCH /api/users/me: update own profile."""

    full_name: str | None = None
    phone: str | None = None


class PasswordResetRequest(BaseModel):
    """POST /api/users/password-reset"""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """POST /api/users/password-reset/confirm"""

    token: str
    new_password: str


class UserRead(BaseModel):
    """User returned from the API, never exposes password."""

    id: uuid.UUID
    email: str
    full_name: str
    phone: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Combined auth response: token + user profile."""

    access_token: str
    token_type: str = "bearer"
    user: UserRead
