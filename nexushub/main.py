"""
ASGI entrypoint: ``uvicorn nexushub.main:app``.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from nexushub.api.v1.auth import limiter
from nexushub.api.v1.router import api_router
from nexushub.core.config import settings
from nexushub.core.exceptions import register_exception_handlers
from nexushub.db.session import engine
from nexushub.services.events import ws_manager

logger = logging.getLogger(__name__)

API_DESCRIPTION = (
    "Teams, projects and kanban tasks with role-based access control, "
    "a social feed, direct and group chats, "
    "and real-time events over WebSockets."
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("%s %s ready (db=%s)", settings.APP_NAME, settings.APP_VERSION, engine.url.drivername)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("%s stopped", settings.APP_NAME)


def _install_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # slowapi reads the limiter from app.state; login carries the only limit.
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


def create_application() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )
    _install_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health() -> dict[str, str | int]:
        return {
            "status": "ok",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "websocket_connections": ws_manager.connection_count,
        }

    return app


app = create_application()
