"""
OAuth sign-in with Google and GitHub.

The API runs the authorization-code flow itself: ``start`` builds the
provider's consent URL with a signed ``state``; ``complete`` checks that
state, trades the code for a provider token over httpx, reads the profile
and hands it to ``AuthService.oauth_login``. A provider whose client id or
secret is unset is reported as disabled.
"""
from __future__ import annotations

import logging
import re
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core.config import settings
from nexushub.core.exceptions import (
    BadGatewayException,
    BadRequestException,
    InvalidTokenException,
    NotFoundException,
    ServiceUnavailableException,
)
from nexushub.core.security import create_oauth_state, decode_oauth_state
from nexushub.crud.user import OAuthProvider
from nexushub.schemas.user import OAuthProfile, OAuthStatus, Token
from nexushub.services.auth_service import AuthService, auth_service

logger = logging.getLogger(__name__)

_USERNAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_\-]")


def username_from(raw: str) -> str:
    """Provider handle -> a username the sign-up rules accept."""
    cleaned = _USERNAME_UNSAFE.sub("", raw)[:90]
    if len(cleaned) < 3:
        cleaned = f"user{secrets.token_hex(3)}"
    return cleaned


class ProviderClient:
    """One OAuth provider: consent URL, code exchange and profile lookup."""

    name: OAuthProvider
    authorize_url: str
    token_url: str
    scope: str

    def __init__(self, client_id: str | None, client_secret: str | None) -> None:
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def redirect_uri(self) -> str:
        base = settings.API_PUBLIC_URL.rstrip("/")
        return f"{base}{settings.API_V1_STR}/auth/oauth/{self.name}/callback"

    def consent_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> OAuthProfile:
        async with httpx.AsyncClient(timeout=settings.OAUTH_HTTP_TIMEOUT) as client:
            r = await client.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
            r.raise_for_status()
            access_token = r.json().get("access_token")
            if not access_token:
                raise BadGatewayException(f"{self.name} returned no access token")
            return await self._profile(client, access_token)

    async def _profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        raise NotImplementedError


class GoogleClient(ProviderClient):
    name = "google"
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://openidconnect.googleapis.com/v1/userinfo"
    scope = "openid email profile"

    async def _profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        r = await client.get(
            self.userinfo_url, headers={"Authorization": f"Bearer {access_token}"}
        )
        r.raise_for_status()
        info: dict[str, Any] = r.json()
        email = info.get("email")
        if not email:
            raise BadGatewayException("Google profile carries no email")
        return OAuthProfile(
            provider_id=str(info["sub"]),
            email=email,
            username=username_from(email.split("@")[0]),
            full_name=info.get("name"),
            avatar_url=info.get("picture"),
        )


class GitHubClient(ProviderClient):
    name = "github"
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    api_url = "https://api.github.com"
    scope = "user:email"

    async def _profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }
        r = await client.get(f"{self.api_url}/user", headers=headers)
        r.raise_for_status()
        info: dict[str, Any] = r.json()

        email = info.get("email")
        if not email:
            # private addresses are only listed by the emails endpoint
            r = await client.get(f"{self.api_url}/user/emails", headers=headers)
            r.raise_for_status()
            verified = [e for e in r.json() if e.get("verified")]
            primary = next((e for e in verified if e.get("primary")), None)
            email = (primary or (verified[0] if verified else {})).get("email")
        if not email:
            raise BadGatewayException("No verified email available from GitHub profile")

        return OAuthProfile(
            provider_id=str(info["id"]),
            email=email,
            username=username_from(info.get("login") or email.split("@")[0]),
            full_name=info.get("name") or info.get("login"),
            avatar_url=info.get("avatar_url"),
        )


class OAuthService:

    def __init__(self, auth: AuthService, providers: dict[str, ProviderClient]) -> None:
        self.auth = auth
        self.providers = providers

    def status(self) -> OAuthStatus:
        return OAuthStatus(
            google=self.providers["google"].configured,
            github=self.providers["github"].configured,
        )

    def _provider(self, name: str) -> ProviderClient:
        provider = self.providers.get(name)
        if provider is None:
            raise NotFoundException("OAuth provider", name)
        if not provider.configured:
            raise ServiceUnavailableException(
                f"{name} sign-in is not configured on this server"
            )
        return provider

    def start(self, name: str) -> str:
        """Consent URL for the provider, carrying a fresh signed state."""
        provider = self._provider(name)
        return provider.consent_url(create_oauth_state(provider.name))

    async def complete(
        self, db: AsyncSession, *, name: str, code: str, state: str
    ) -> Token:
        provider = self._provider(name)
        try:
            claims = decode_oauth_state(state)
        except JWTError:
            raise InvalidTokenException("OAuth state is invalid or expired")
        if claims.get("sub") != provider.name:
            raise BadRequestException("OAuth state was issued for another provider")

        try:
            profile = await provider.fetch_profile(code)
        except (httpx.HTTPError, KeyError, ValidationError) as exc:
            logger.warning("%s sign-in failed upstream: %s", provider.name, exc)
            raise BadGatewayException(f"{provider.name} did not complete the sign-in")
        return await self.auth.oauth_login(db, provider=provider.name, profile=profile)


oauth_service = OAuthService(
    auth_service,
    {
        "google": GoogleClient(settings.GOOGLE_CLIENT_ID, settings.GOOGLE_CLIENT_SECRET),
        "github": GitHubClient(settings.GITHUB_CLIENT_ID, settings.GITHUB_CLIENT_SECRET),
    },
)
