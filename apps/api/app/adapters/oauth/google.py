"""Google OAuth 2.0 authorization-code client."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from app.schemas.auth import OAuthProfile

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Raised when the provider flow cannot be completed."""


class GoogleOAuthClient:
    """Builds the consent redirect and turns a callback code into a normalized profile."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        *,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def authorize_url(self, state: str) -> str:
        if not self.is_configured:
            raise OAuthError("Google OAuth is not configured")

        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)

    async def exchange_code(self, code: str) -> dict[str, Any]:
        if not self.is_configured:
            raise OAuthError("Google OAuth is not configured")

        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_URL,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "code": code,
                        "redirect_uri": self._redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as exc:
            raise OAuthError("Token exchange request failed") from exc

        if response.status_code != 200:
            logger.warning("oauth.google.token_exchange_failed status=%s", response.status_code)
            raise OAuthError(f"Token exchange failed: {response.status_code}")
        return response.json()

    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        try:
            async with self._client() as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise OAuthError("Userinfo request failed") from exc

        if response.status_code != 200:
            logger.warning("oauth.google.userinfo_failed status=%s", response.status_code)
            raise OAuthError(f"Failed to get user info: {response.status_code}")

        data = response.json()
        email = str(data.get("email") or "").strip()
        external_id = str(data.get("id") or "").strip()
        if not email or not external_id:
            raise OAuthError("Google profile is missing email or id")

        return OAuthProfile(
            email=email,
            name=data.get("name") or email.split("@")[0],
            external_id=external_id,
            picture=data.get("picture"),
            email_verified=bool(data.get("verified_email", False)),
        )

    async def authenticate(self, code: str) -> OAuthProfile:
        tokens = await self.exchange_code(code)
        access_token = tokens.get("access_token")
        if not access_token:
            raise OAuthError("Token exchange response has no access_token")
        return await self.fetch_profile(access_token)


__all__ = ["GoogleOAuthClient", "OAuthError"]
