"""
OAuth sign-in routes.
GET /auth/oauth/status, /auth/oauth/{provider}, /auth/oauth/{provider}/callback

The callback ends in a redirect to the frontend: ``/oauth-success`` with the
token pair on success, ``/login?error=<code>`` otherwise.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Query
from fastapi.responses import RedirectResponse

from nexushub.core.config import settings
from nexushub.core.dependencies import DBSession
from nexushub.core.exceptions import NexusHubException
from nexushub.schemas.user import OAuthStatus
from nexushub.services.oauth_service import oauth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/oauth", tags=["Authentication"])


def _frontend(path: str, **params: str) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=302)


@router.get("/status", response_model=OAuthStatus, summary="Which providers are enabled")
async def oauth_status() -> OAuthStatus:
    return oauth_service.status()


@router.get("/{provider}", summary="Start sign-in with a provider")
async def oauth_start(provider: str) -> RedirectResponse:
    return RedirectResponse(oauth_service.start(provider), status_code=302)


@router.get("/{provider}/callback", summary="Provider redirect target")
async def oauth_callback(
    provider: str,
    db: DBSession,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
) -> RedirectResponse:
    if error or not code or not state:
        logger.info("%s sign-in cancelled or incomplete: %s", provider, error)
        return _frontend("/login", error="oauth-cancelled")
    try:
        tokens = await oauth_service.complete(db, name=provider, code=code, state=state)
    except NexusHubException as exc:
        logger.info("%s sign-in refused: %s", provider, exc.detail)
        return _frontend("/login", error=exc.error_code.lower().replace("_", "-"))
    return _frontend(
        "/oauth-success",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )
