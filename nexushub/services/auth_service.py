"""
Authentication service.
Handles registration, login, token refresh, logout, email verification,
password reset, account deletion and OAuth account linking.
Business logic lives here; routes only call these methods.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core.config import settings
from nexushub.core.exceptions import (
    BadRequestException,
    ConflictException,
    InvalidTokenException,
    UnauthorizedException,
)
from nexushub.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_one_time_token,
    hash_password,
    hash_token,
    random_password_hash,
    verify_password,
)
from nexushub.core.permissions import Role
from nexushub.crud.project import crud_project
from nexushub.crud.team import crud_team
from nexushub.crud.user import OAuthProvider, crud_user
from nexushub.models.project import Project
from nexushub.models.user import User
from nexushub.schemas.user import OAuthProfile, Token, UserCreate, UserUpdate
from nexushub.services.chat_service import chat_service
from nexushub.services.email_service import EmailService, email_service
from nexushub.services.project_service import project_service

logger = logging.getLogger(__name__)


class AuthService:

    def __init__(self, mailer: EmailService) -> None:
        self.mailer = mailer

    async def _issue_tokens(self, db: AsyncSession, user: User) -> Token:
        access_token = create_access_token(str(user.id))
        refresh_token = create_refresh_token(str(user.id))
        # Store hash for later validation
        await crud_user.set_refresh_token_hash(
            db, user=user, token_hash=hash_token(refresh_token)
        )
        return Token(access_token=access_token, refresh_token=refresh_token)

    async def register_user(
        self, db: AsyncSession, *, user_in: UserCreate
    ) -> User:
        """
        Register a new user.
        Validates email/username uniqueness, hashes the password and sends
        a verification mail. A mail failure does not fail registration.
        """
        if await crud_user.exists(db, email=user_in.email):
            raise ConflictException("A user with this email already exists")
        if await crud_user.exists(db, username=user_in.username):
            raise ConflictException("A user with this username already exists")

        raw_token, token_hash = generate_one_time_token()
        user = await crud_user.create_user(
            db,
            email=user_in.email,
            username=user_in.username,
            hashed_password=hash_password(user_in.password),
            full_name=user_in.full_name,
            verification_token_hash=token_hash,
        )
        await self.mailer.send_verification_email(to=user.email, token=raw_token)
        logger.info("Registered user %s", user.id)
        return user

    async def authenticate_user(
        self, db: AsyncSession, *, email: str, password: str
    ) -> Token:
        """
        Verify credentials and issue an access + refresh token pair.
        Stores the refresh token hash in the DB for rotation/revocation.
        """
        user = await crud_user.get_by_email(db, email)
        if (
            user is None
            or not user.is_active
            or not verify_password(password, user.hashed_password)
        ):
            raise UnauthorizedException("Invalid email or password")
        return await self._issue_tokens(db, user)

    async def refresh_access_token(
        self, db: AsyncSession, *, refresh_token: str
    ) -> Token:
        """
        Validate the refresh token, issue a new access token,
        and rotate the refresh token.
        """
        try:
            payload = decode_refresh_token(refresh_token)
            user_id = uuid.UUID(payload["sub"])
        except Exception:
            raise InvalidTokenException("Invalid or expired refresh token")

        user = await crud_user.get(db, user_id)
        if user is None or not user.is_active:
            raise UnauthorizedException("User not found or inactive")

        if user.refresh_token_hash != hash_token(refresh_token):
            raise InvalidTokenException("Refresh token has been revoked")

        return await self._issue_tokens(db, user)

    async def logout(self, db: AsyncSession, *, user: User) -> None:
        """Invalidate the stored refresh token hash."""
        await crud_user.set_refresh_token_hash(db, user=user, token_hash=None)

    # ── Email verification / password reset ───────────────────────────────────

    async def verify_email(self, db: AsyncSession, *, token: str) -> User:
        user = await crud_user.get_by_verification_hash(db, hash_token(token))
        if user is None:
            raise InvalidTokenException("Invalid or already used verification token")
        return await crud_user.update(
            db,
            db_obj=user,
            obj_in={"is_email_verified": True, "verification_token_hash": None},
        )

    async def forgot_password(self, db: AsyncSession, *, email: str) -> None:
        """Send a reset link if the account exists. Silent otherwise."""
        user = await crud_user.get_by_email(db, email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown email")
            return
        raw_token, token_hash = generate_one_time_token()
        await crud_user.update(
            db,
            db_obj=user,
            obj_in={
                "reset_token_hash": token_hash,
                "reset_token_expires_at": datetime.now(timezone.utc)
                + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
            },
        )
        await self.mailer.send_password_reset_email(to=user.email, token=raw_token)

    async def reset_password(
        self, db: AsyncSession, *, token: str, new_password: str
    ) -> User:
        user = await crud_user.get_by_reset_hash(db, hash_token(token))
        expires_at = user.reset_token_expires_at if user is not None else None
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if user is None or expires_at is None or expires_at < datetime.now(timezone.utc):
            raise InvalidTokenException("Invalid or expired reset token")
        return await crud_user.update(
            db,
            db_obj=user,
            obj_in={
                "hashed_password": hash_password(new_password),
                "reset_token_hash": None,
                "reset_token_expires_at": None,
                "refresh_token_hash": None,
            },
        )

    # ── Account management ────────────────────────────────────────────────────

    async def update_profile(
        self, db: AsyncSession, *, user: User, user_in: UserUpdate
    ) -> User:
        update_data = user_in.model_dump(exclude_unset=True)
        username = update_data.get("username")
        if username and username != user.username:
            if await crud_user.exists(db, username=username):
                raise ConflictException("A user with this username already exists")
        return await crud_user.update(db, db_obj=user, obj_in=update_data)

    async def change_password(
        self,
        db: AsyncSession,
        *,
        user: User,
        current_password: str,
        new_password: str,
    ) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise BadRequestException("Current password is incorrect")
        await crud_user.update(
            db, db_obj=user, obj_in={"hashed_password": hash_password(new_password)}
        )

    async def delete_account(self, db: AsyncSession, *, user: User, password: str) -> None:
        """
        Delete the account after the password check.

        Refused while the user owns a team, or is the only owner of a project
        other people still work in. Projects the user holds alone are deleted
        first; shared work they created stays with its creator unset.
        """
        if not verify_password(password, user.hashed_password):
            raise BadRequestException("Password is incorrect")

        owned_teams = await crud_team.list_owned(db, user_id=user.id)
        if owned_teams:
            raise BadRequestException(
                "Delete or hand over the teams you own before deleting your account"
            )

        solo: list[Project] = []
        for project in await crud_project.list_owned_by(db, user_id=user.id):
            others = [m for m in project.members if m.user_id != user.id]
            if any(m.role == Role.OWNER.value for m in others):
                continue
            if others or project.team_id is not None:
                raise BadRequestException(
                    f"You are the only owner of project {project.title!r}; "
                    "add another owner or delete it first"
                )
            solo.append(project)

        for project in solo:
            await project_service.delete_project(
                db, project_id=project.id, current_user=user
            )
        await chat_service.release_account(db, user=user)
        await crud_user.remove(db, id=user.id)
        logger.info("Deleted account %s with %d solo project(s)", user.id, len(solo))

    # ── OAuth ─────────────────────────────────────────────────────────────────

    async def oauth_login(
        self, db: AsyncSession, *, provider: OAuthProvider, profile: OAuthProfile
    ) -> Token:
        """Sign in (or sign up) through a provider identity and issue a token pair."""
        user = await self.link_oauth_user(
            db,
            provider=provider,
            provider_id=profile.provider_id,
            email=profile.email,
            username=profile.username,
            full_name=profile.full_name,
            avatar_url=profile.avatar_url,
        )
        if not user.is_active:
            raise UnauthorizedException("Account is disabled")
        logger.info("OAuth sign-in via %s for %s", provider, user.id)
        return await self._issue_tokens(db, user)

    async def link_oauth_user(
        self,
        db: AsyncSession,
        *,
        provider: OAuthProvider,
        provider_id: str,
        email: str,
        username: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        """
        Find or create the user behind a provider identity.
        An existing account with the same email gets the provider id attached;
        a new account gets a random password nobody knows.
        """
        field = "google_id" if provider == "google" else "github_id"

        user = await crud_user.get_by_provider_id(
            db, provider=provider, provider_id=provider_id
        )
        if user is not None:
            return user

        user = await crud_user.get_by_email(db, email)
        if user is not None:
            return await crud_user.update(
                db, db_obj=user, obj_in={field: provider_id, "is_email_verified": True}
            )

        candidate = username
        suffix = 1
        while await crud_user.exists(db, username=candidate):
            suffix += 1
            candidate = f"{username}{suffix}"

        return await crud_user.create_user(
            db,
            email=email,
            username=candidate,
            hashed_password=random_password_hash(),
            full_name=full_name,
            avatar_url=avatar_url,
            is_email_verified=True,
            **{field: provider_id},
        )


auth_service = AuthService(email_service)
