"""Application exception types."""

from __future__ import annotations

from typing import Any

from app.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class ConfigurationError(RuntimeError):
    """Raised at start-up when required configuration is missing."""


class AuthError(ApiError):
    """Base of the identity error taxonomy.

    Subclasses fix the public status, code and message so callers cannot leak
    internal failure reasons by accident.
    """

    default_status: int = 401
    default_code: str = "UNAUTHORIZED"
    default_message: str = "Unauthorized"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            status_code=self.default_status,
            code=self.default_code,
            message=message or self.default_message,
            details=details,
        )


class UnauthenticatedError(AuthError):
    default_message = "Invalid or missing bearer token"


class InvalidTokenError(AuthError):
    default_message = "Invalid or expired token"


class ExpiredTokenError(InvalidTokenError):
    """Expired signature. Public payload is identical to ``InvalidTokenError``."""


class InvalidCredentialsError(AuthError):
    default_code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"

    def __init__(self) -> None:
        super().__init__()


class ForbiddenError(AuthError):
    default_status = 403
    default_code = "FORBIDDEN"
    default_message = "Insufficient role or approval for this operation"


class UserNotFoundError(AuthError):
    default_status = 404
    default_code = "RESOURCE_NOT_FOUND"
    default_message = "Resource not found"


class DuplicateEmailError(AuthError):
    default_status = 409
    default_code = "EMAIL_ALREADY_EXISTS"
    default_message = "Email already in use"


class AccountLinkConflictError(AuthError):
    default_status = 409
    default_code = "ACCOUNT_LINK_REFUSED"
    default_message = "This email is already registered and cannot be linked automatically"


class LeaderStatusNotApplicableError(AuthError):
    default_status = 409
    default_code = "LEADER_STATUS_NOT_APPLICABLE"
    default_message = "Leader status can only be set on leader roles"


class IdentityStoreUnavailableError(AuthError):
    default_status = 503
    default_code = "IDENTITY_STORE_UNAVAILABLE"
    default_message = "Identity store is unavailable"


class OAuthExchangeError(AuthError):
    default_status = 502
    default_code = "OAUTH_EXCHANGE_FAILED"
    default_message = "OAuth provider exchange failed"


__all__ = [
    "AccountLinkConflictError",
    "ApiError",
    "AuthError",
    "ConfigurationError",
    "DuplicateEmailError",
    "ExpiredTokenError",
    "ForbiddenError",
    "IdentityStoreUnavailableError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "LeaderStatusNotApplicableError",
    "OAuthExchangeError",
    "UnauthenticatedError",
    "UserNotFoundError",
]
