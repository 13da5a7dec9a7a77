"""
Account table.

A user signs in with email and password, or through Google / GitHub, in
which case the provider id is stored next to a random password hash.
Verification, reset and refresh tokens are kept only as SHA-256 digests.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from nexushub.db.base import Base, TimestampMixin

_DIGEST = String(64)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))

    # profile
    full_name: Mapped[str | None] = mapped_column(String(255))
    bio: Mapped[str | None] = mapped_column(Text)
    avatar_url: Mapped[str | None] = mapped_column(String(500))

    # external sign-in
    google_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    github_id: Mapped[str | None] = mapped_column(String(255), unique=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false"
    )

    verification_token_hash: Mapped[str | None] = mapped_column(_DIGEST)
    reset_token_hash: Mapped[str | None] = mapped_column(_DIGEST)
    reset_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refresh_token_hash: Mapped[str | None] = mapped_column(_DIGEST)

    def __repr__(self) -> str:
        return f"<User {self.username!r} ({self.id})>"
