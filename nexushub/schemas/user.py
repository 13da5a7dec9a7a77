"""
Account payloads: sign-up, sign-in, profile, token pairs and the
verification / reset mail flows.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

from nexushub.core.security import validate_password_strength

# Emails are compared case-insensitively everywhere, so they are stored lowered.
NormalizedEmail = Annotated[EmailStr, AfterValidator(str.lower)]
NewPassword = Annotated[
    str, Field(min_length=8, max_length=128), AfterValidator(validate_password_strength)
]
Username = Annotated[str, Field(min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_\-]+$")]


class UserCreate(BaseModel):
    email: NormalizedEmail
    username: Username
    password: NewPassword
    full_name: str | None = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    email: NormalizedEmail
    password: str


class UserUpdate(BaseModel):
    """Profile edit. Email and password have their own flows."""

    username: Username | None = None
    full_name: str | None = Field(default=None, max_length=255)
    bio: str | None = Field(default=None, max_length=2000)
    avatar_url: str | None = Field(default=None, max_length=500)


class PasswordChange(BaseModel):
    current_password: str
    new_password: NewPassword


class AccountDelete(BaseModel):
    password: str


class ForgotPasswordRequest(BaseModel):
    email: NormalizedEmail


class ResetPasswordRequest(BaseModel):
    password: NewPassword


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserReadPublic(BaseModel):
    """What other users see: embedded in rosters, assignees and activity rows."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    full_name: str | None
    avatar_url: str | None


class UserRead(UserReadPublic):
    email: EmailStr
    bio: str | None
    is_active: bool
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime


class OAuthProfile(BaseModel):
    """Identity returned by a sign-in provider after the code exchange."""

    provider_id: str
    email: NormalizedEmail
    username: Username
    full_name: str | None = None
    avatar_url: str | None = None


class OAuthStatus(BaseModel):
    google: bool
    github: bool
