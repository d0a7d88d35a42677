"""Google OAuth client tests using a mocked HTTP transport."""

from __future__ import annotations

import asyncio
import unittest
from urllib.parse import parse_qs, urlparse

import httpx

from app.adapters.oauth.google import GoogleOAuthClient, OAuthError


def _client(handler, **overrides) -> GoogleOAuthClient:
    values = {
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": "http://localhost:3001/api/v1/auth/google/callback",
        "transport": httpx.MockTransport(handler),
    }
    values.update(overrides)
    return GoogleOAuthClient(**values)


class GoogleOAuthClientTests(unittest.TestCase):
    def test_authorize_url_carries_scope_state_and_redirect(self) -> None:
        client = _client(lambda request: httpx.Response(500))

        url = urlparse(client.authorize_url("state-1"))
        query = parse_qs(url.query)

        self.assertEqual(url.netloc, "accounts.google.com")
        self.assertEqual(query["scope"], ["openid email profile"])
        self.assertEqual(query["state"], ["state-1"])
        self.assertEqual(query["response_type"], ["code"])
        self.assertEqual(query["redirect_uri"], ["http://localhost:3001/api/v1/auth/google/callback"])

    def test_unconfigured_client_refuses_to_start(self) -> None:
        client = _client(lambda request: httpx.Response(500), client_id=None)

        self.assertFalse(client.is_configured)
        with self.assertRaises(OAuthError):
            client.authorize_url("state-1")
        with self.assertRaises(OAuthError):
            asyncio.run(client.authenticate("code-1"))

    def test_authenticate_exchanges_code_and_normalizes_profile(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "provider-access", "token_type": "Bearer"})
            return httpx.Response(
                200,
                json={
                    "id": "google-sub-1",
                    "email": "sam@example.com",
                    "name": "Sam",
                    "picture": "https://example.com/sam.png",
                    "verified_email": True,
                },
            )

        profile = asyncio.run(_client(handler).authenticate("code-1"))

        self.assertEqual(profile.email, "sam@example.com")
        self.assertEqual(profile.external_id, "google-sub-1")
        self.assertTrue(profile.email_verified)
        self.assertEqual(profile.picture, "https://example.com/sam.png")
        token_form = parse_qs(seen[0].content.decode())
        self.assertEqual(token_form["code"], ["code-1"])
        self.assertEqual(token_form["grant_type"], ["authorization_code"])
        self.assertEqual(seen[1].headers["Authorization"], "Bearer provider-access")

    def test_missing_name_falls_back_to_email_local_part(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"access_token": "provider-access"})
            return httpx.Response(200, json={"id": "google-sub-2", "email": "kim@example.com"})

        profile = asyncio.run(_client(handler).authenticate("code-1"))

        self.assertEqual(profile.name, "kim")
        self.assertFalse(profile.email_verified)

    def test_provider_failures_raise_oauth_error(self) -> None:
        def token_rejected(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        def no_access_token(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "Bearer"})

        def profile_without_email(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"access_token": "provider-access"})
            return httpx.Response(200, json={"id": "google-sub-3"})

        def network_down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        for handler in (token_rejected, no_access_token, profile_without_email, network_down):
            with self.subTest(handler=handler.__name__):
                with self.assertRaises(OAuthError):
                    asyncio.run(_client(handler).authenticate("code-1"))


if __name__ == "__main__":
    unittest.main()
