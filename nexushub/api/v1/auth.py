"""
Authentication routes.
POST /auth/register, /auth/login, /auth/refresh, /auth/logout,
/auth/verify-email/{token}, /auth/forgot-password, /auth/reset-password/{token}
"""
from __future__ import annotations

from fastapi import APIRouter, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from nexushub.core.config import settings
from nexushub.core.dependencies import CurrentUser, DBSession
from nexushub.schemas.user import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    Token,
    UserCreate,
    UserRead,
)
from nexushub.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])

limiter = Limiter(key_func=get_remote_address)


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(
    user_in: UserCreate,
    db: DBSession,
) -> UserRead:
    user = await auth_service.register_user(db, user_in=user_in)
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Authenticate and receive JWT token pair",
)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: DBSession,
) -> Token:
    return await auth_service.authenticate_user(
        db, email=credentials.email, password=credentials.password
    )


@router.post(
    "/refresh",
    response_model=Token,
    summary="Refresh access token using a valid refresh token",
)
async def refresh(
    body: RefreshTokenRequest,
    db: DBSession,
) -> Token:
    return await auth_service.refresh_access_token(
        db, refresh_token=body.refresh_token
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Invalidate the current refresh token",
)
async def logout(
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await auth_service.logout(db, user=current_user)


@router.get(
    "/verify-email/{token}",
    response_model=MessageResponse,
    summary="Confirm an email address",
)
async def verify_email(token: str, db: DBSession) -> MessageResponse:
    await auth_service.verify_email(db, token=token)
    return MessageResponse(message="Email verified")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset link",
)
async def forgot_password(body: ForgotPasswordRequest, db: DBSession) -> MessageResponse:
    await auth_service.forgot_password(db, email=body.email)
    return MessageResponse(
        message="If an account exists for that email, a reset link has been sent"
    )


@router.post(
    "/reset-password/{token}",
    response_model=MessageResponse,
    summary="Set a new password with a reset token",
)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: DBSession,
) -> MessageResponse:
    await auth_service.reset_password(db, token=token, new_password=body.password)
    return MessageResponse(message="Password has been reset")
