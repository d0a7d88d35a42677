"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.adapters.identity.base import CredentialStore
from app.adapters.oauth.google import GoogleOAuthClient
from app.core.config import Settings
from app.core.logging_safety import safe_log_identifier
from app.domain.access import AccessPolicy, authorize
from app.errors import ExpiredTokenError, InvalidTokenError, UnauthenticatedError
from app.schemas.auth import TokenClaims
from app.services.auth import AuthService
from app.services.identity import IdentityResolver
from app.services.tokens import TokenService

ACCESS_TOKEN_COOKIE = "token"
REFRESH_TOKEN_COOKIE = "refresh-token"
OAUTH_STATE_COOKIE = "oauth-state"

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_google_oauth_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.google_oauth


def get_identity_resolver(store: Annotated[CredentialStore, Depends(get_credential_store)]) -> IdentityResolver:
    return IdentityResolver(store)


def get_auth_service(
    identities: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthService:
    return AuthService(identities, tokens)


def _log_rejection(request: Request, reason: str) -> None:
    logger.warning(
        "auth.rejected correlation_id=%s method=%s path=%s reason=%s",
        safe_log_identifier(_request_correlation_id(request), prefix="cid"),
        request.method,
        request.url.path,
        reason,
    )


async def get_token_claims(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> TokenClaims:
    """Validate the access token from the bearer header or session cookie."""
    token: str | None = None
    if credentials is not None and credentials.scheme.lower() == "bearer" and credentials.credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE) or None

    if token is None:
        _log_rejection(request, "invalid_or_missing_bearer")
        raise UnauthenticatedError()

    try:
        claims = tokens.verify(token, expected_type="access")
    except ExpiredTokenError as exc:
        _log_rejection(request, "token_expired")
        raise UnauthenticatedError("Invalid or expired token") from exc
    except InvalidTokenError as exc:
        _log_rejection(request, "token_verification_failed")
        raise UnauthenticatedError("Invalid or expired token") from exc

    logger.info(
        "auth.accepted correlation_id=%s method=%s path=%s principal_id=%s role=%s",
        safe_log_identifier(_request_correlation_id(request), prefix="cid"),
        request.method,
        request.url.path,
        safe_log_identifier(claims.sub, prefix="pid"),
        claims.role.value if claims.role else None,
    )
    request.state.auth_claims = claims
    return claims


def require_policy(policy: AccessPolicy) -> Callable[..., Awaitable[TokenClaims]]:
    """Build a route dependency that admits only callers satisfying ``policy``."""

    async def _authorized_claims(claims: Annotated[TokenClaims, Depends(get_token_claims)]) -> TokenClaims:
        return authorize(claims, policy)

    return _authorized_claims
