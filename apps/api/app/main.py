"""FastAPI application entrypoint."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.adapters.identity import CredentialStore, FirebaseCredentialStore, InMemoryCredentialStore
from app.adapters.oauth import GoogleOAuthClient
from app.core.config import Settings, get_settings
from app.errors import ApiError, AuthError
from app.routes import auth_router
from app.services.tokens import TokenService

logger = logging.getLogger(__name__)


def build_credential_store(settings: Settings) -> CredentialStore:
    """Resolve the credential store adapter from configuration."""
    if settings.credential_store == "firebase":
        return FirebaseCredentialStore(
            web_api_key=settings.firebase_web_api_key,
            service_account_key=settings.firebase_service_account_key,
            timeout_seconds=settings.http_timeout_seconds,
        )
    return InMemoryCredentialStore()


def create_app(settings: Settings | None = None) -> FastAPI:
    # Configuration is read once here; a missing signing secret fails start-up.
    settings = settings or get_settings()

    app = FastAPI(title="Vibe Apply Identity API", version="1.0.0")
    app.state.settings = settings
    app.state.credential_store = build_credential_store(settings)
    app.state.token_service = TokenService(
        secret=settings.jwt_secret,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        algorithm=settings.jwt_algorithm,
    )
    app.state.google_oauth = GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_callback_url,
        timeout_seconds=settings.http_timeout_seconds,
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) and exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )

    app.include_router(auth_router, prefix="/api/v1")

    logger.info(
        "app.started credential_store=%s access_ttl_s=%s refresh_ttl_s=%s google_oauth=%s",
        settings.credential_store,
        int(settings.access_token_ttl.total_seconds()),
        int(settings.refresh_token_ttl.total_seconds()),
        app.state.google_oauth.is_configured,
    )
    return app
