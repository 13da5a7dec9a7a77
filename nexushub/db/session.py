"""
Database wiring: one async engine per process and a request-scoped session.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nexushub.core.config import settings
from nexushub.services.events import discard_pending, dispatch_pending


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.DEBUG, "pool_pre_ping": True}
    # SQLite (local dev, tests) runs without a sized connection pool.
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20, pool_recycle=3600)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionFactory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work per request: commit on a clean exit, roll back when the
    handler raises. Services only flush. Events queued during the request go
    out after the commit and are dropped with the rollback.
    """
    async with SessionFactory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            discard_pending(session)
            raise
        else:
            await session.commit()
            await dispatch_pending(session)
