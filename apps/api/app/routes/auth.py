"""Authentication and user administration routes."""

import logging
import secrets
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, Path, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from app.adapters.oauth.google import GoogleOAuthClient, OAuthError
from app.core.config import Settings
from app.domain.access import ADMIN_ONLY
from app.errors import ApiError, InvalidTokenError, OAuthExchangeError, UnauthenticatedError
from app.routes.dependencies import (
    ACCESS_TOKEN_COOKIE,
    OAUTH_STATE_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_app_settings,
    get_auth_service,
    get_google_oauth_client,
    get_token_claims,
    require_policy,
)
from app.schemas.auth import RefreshRequest, TokenClaims, TokenResponse
from app.schemas.error import ErrorResponse, LeaderStatusNotApplicableError, NoLeakNotFoundError, UnauthorizedError
from app.schemas.user import (
    CompleteProfileRequest,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
    UpdateLeaderStatusRequest,
    UpdateRoleRequest,
    User,
)
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger(__name__)

_OAUTH_STATE_MAX_AGE_SECONDS = 600


def _set_token_cookies(response: Response, tokens: TokenResponse, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=tokens.expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def sign_up(
    payload: SignUpRequest,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> TokenResponse:
    tokens = service.sign_up(name=payload.name, email=payload.email, password=payload.password, role=payload.role)
    _set_token_cookies(response, tokens, settings)
    return tokens


@router.post(
    "/signin",
    response_model=TokenResponse,
    responses={401: {"model": UnauthorizedError}, 503: {"model": ErrorResponse}},
)
async def sign_in(
    payload: SignInRequest,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> TokenResponse:
    tokens = service.sign_in(email=payload.email, password=payload.password)
    _set_token_cookies(response, tokens, settings)
    return tokens


@router.post("/signout", response_model=MessageResponse)
async def sign_out(response: Response) -> MessageResponse:
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    response.delete_cookie(REFRESH_TOKEN_COOKIE)
    return MessageResponse(message="Signed out successfully")


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={401: {"model": UnauthorizedError}},
)
async def refresh(
    request: Request,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    payload: Annotated[RefreshRequest | None, Body()] = None,
) -> TokenResponse:
    refresh_token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not refresh_token:
        raise InvalidTokenError()
    tokens = service.refresh(refresh_token)
    _set_token_cookies(response, tokens, settings)
    return tokens


@router.get(
    "/profile",
    response_model=User,
    responses={401: {"model": UnauthorizedError}, 404: {"model": NoLeakNotFoundError}},
)
async def get_profile(
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    return service.get_profile(claims.sub)


@router.put(
    "/profile/complete",
    response_model=User,
    responses={401: {"model": UnauthorizedError}, 403: {"model": ErrorResponse}},
)
async def complete_profile(
    payload: CompleteProfileRequest,
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    return service.complete_profile(claims.sub, payload.role)


@router.get(
    "/users",
    response_model=list[User],
    responses={401: {"model": UnauthorizedError}, 403: {"model": ErrorResponse}},
)
async def list_users(
    claims: Annotated[TokenClaims, Depends(require_policy(ADMIN_ONLY))],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> list[User]:
    return service.list_users(claims)


@router.get(
    "/users/{userId}",
    response_model=User,
    responses={
        401: {"model": UnauthorizedError},
        403: {"model": ErrorResponse},
        404: {"model": NoLeakNotFoundError},
    },
)
async def get_user(
    user_id: Annotated[str, Path(alias="userId")],
    claims: Annotated[TokenClaims, Depends(get_token_claims)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    return service.get_user(claims, user_id)


@router.put(
    "/users/{userId}/role",
    response_model=MessageResponse,
    responses={
        401: {"model": UnauthorizedError},
        403: {"model": ErrorResponse},
        404: {"model": NoLeakNotFoundError},
    },
)
async def update_user_role(
    user_id: Annotated[str, Path(alias="userId")],
    payload: UpdateRoleRequest,
    claims: Annotated[TokenClaims, Depends(require_policy(ADMIN_ONLY))],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    service.set_role(claims, user_id, payload.role, approved=payload.approved)
    return MessageResponse(message="User role updated successfully")


@router.put(
    "/users/{userId}/leader-status",
    response_model=MessageResponse,
    responses={
        401: {"model": UnauthorizedError},
        403: {"model": ErrorResponse},
        404: {"model": NoLeakNotFoundError},
        409: {"model": LeaderStatusNotApplicableError},
    },
)
async def update_leader_status(
    user_id: Annotated[str, Path(alias="userId")],
    payload: UpdateLeaderStatusRequest,
    claims: Annotated[TokenClaims, Depends(require_policy(ADMIN_ONLY))],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    service.set_leader_status(claims, user_id, payload.leader_status)
    return MessageResponse(message="Leader status updated successfully")


@router.get("/google", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
async def google_start(
    oauth: Annotated[GoogleOAuthClient, Depends(get_google_oauth_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> RedirectResponse:
    state = secrets.token_urlsafe(24)
    try:
        url = oauth.authorize_url(state)
    except OAuthError as exc:
        raise ApiError(status_code=503, code="OAUTH_NOT_CONFIGURED", message=str(exc)) from exc

    redirect = RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    redirect.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=_OAUTH_STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return redirect


@router.get(
    "/google/callback",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    responses={401: {"model": UnauthorizedError}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def google_callback(
    request: Request,
    oauth: Annotated[GoogleOAuthClient, Depends(get_google_oauth_client)],
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("auth.oauth_rejected path=%s reason=state_mismatch_or_missing_code", request.url.path)
        raise UnauthenticatedError("Invalid OAuth callback")

    try:
        profile = await oauth.authenticate(code)
    except OAuthError as exc:
        logger.warning("auth.oauth_rejected path=%s reason=provider_exchange_failed", request.url.path)
        raise OAuthExchangeError() from exc

    tokens = service.google_login(profile)
    query = urlencode({"newUser": "true" if tokens.is_new_user else "false"})
    redirect = RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/auth/callback?{query}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )
    _set_token_cookies(redirect, tokens, settings)
    redirect.delete_cookie(OAUTH_STATE_COOKIE)
    return redirect
