"""
User CRUD operations.
Extends CRUDBase with identity lookups and token-hash queries.
"""
from __future__ import annotations

import uuid
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.base import CRUDBase
from nexushub.models.user import User

OAuthProvider = Literal["google", "github"]


class CRUDUser(CRUDBase[User]):

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_provider_id(
        self, db: AsyncSession, *, provider: OAuthProvider, provider_id: str
    ) -> User | None:
        column = User.google_id if provider == "google" else User.github_id
        result = await db.execute(select(User).where(column == provider_id))
        return result.scalar_one_or_none()

    async def get_by_verification_hash(
        self, db: AsyncSession, token_hash: str
    ) -> User | None:
        result = await db.execute(
            select(User).where(User.verification_token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def get_by_reset_hash(self, db: AsyncSession, token_hash: str) -> User | None:
        result = await db.execute(select(User).where(User.reset_token_hash == token_hash))
        return result.scalar_one_or_none()

    async def get_many(
        self, db: AsyncSession, ids: list[uuid.UUID]
    ) -> list[User]:
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        username: str,
        hashed_password: str,
        full_name: str | None = None,
        **extra: object,
    ) -> User:
        user = User(
            email=email.lower(),
            username=username,
            hashed_password=hashed_password,
            full_name=full_name,
            **extra,
        )
        db.add(user)
        await db.flush()
        return user

    async def set_refresh_token_hash(
        self, db: AsyncSession, *, user: User, token_hash: str | None
    ) -> User:
        user.refresh_token_hash = token_hash
        db.add(user)
        await db.flush()
        return user


crud_user = CRUDUser(User)
