"""
Request dependencies shared by the v1 routers and the WebSocket endpoint.
"""
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core.exceptions import InvalidTokenException, UnauthorizedException
from nexushub.core.security import decode_access_token
from nexushub.crud.user import crud_user
from nexushub.db.session import get_db
from nexushub.models.user import User

_bearer = HTTPBearer(auto_error=False)


def _subject(token: str) -> uuid.UUID:
    try:
        return uuid.UUID(decode_access_token(token)["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise InvalidTokenException("Access token is invalid, expired or has no usable subject")


async def user_from_token(db: AsyncSession, token: str) -> User:
    """
    Access token -> active account. HTTP requests reach this through
    ``get_current_user``; ``/ws`` calls it with the ``token`` query param.
    """
    user = await crud_user.get(db, _subject(token))
    if user is None or not user.is_active:
        raise UnauthorizedException("Account no longer exists or is disabled")
    return user


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)] = None,
) -> User:
    if credentials is None:
        raise UnauthorizedException()
    return await user_from_token(db, credentials.credentials)


class PageParams:
    """``?page=&size=`` with size capped at 100."""

    def __init__(
        self,
        page: Annotated[int, Query(ge=1)] = 1,
        size: Annotated[int, Query(ge=1, le=100)] = 20,
    ) -> None:
        self.page = page
        self.size = size

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size


DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
Pagination = Annotated[PageParams, Depends()]
