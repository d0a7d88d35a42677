"""Signed access/refresh token issuance and verification."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import jwt
from pydantic import ValidationError

from app.errors import ConfigurationError, ExpiredTokenError, InvalidTokenError
from app.schemas.auth import TokenClaims, TokenPair, TokenType
from app.schemas.user import User

_REQUIRED_CLAIMS = ["sub", "iat", "exp", "type"]


class TokenService:
    """Mints and verifies HMAC-signed JWTs carrying a user's identity claims.

    Tokens are stateless: validity is decided by signature and ``exp`` alone.
    A token is valid strictly before ``exp``; at ``exp`` it is expired.
    """

    def __init__(
        self,
        *,
        secret: str | None,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ConfigurationError("Token signing secret is not configured")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _now(self) -> int:
        return int(self._clock())

    def mint(self, claims: dict[str, Any], ttl: timedelta) -> str:
        issued_at = self._now()
        payload = {**claims, "iat": issued_at, "exp": issued_at + int(ttl.total_seconds())}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    @staticmethod
    def identity_claims(user: User) -> dict[str, Any]:
        return {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value if user.role else None,
            "leader_status": user.leader_status.value if user.leader_status else None,
        }

    def issue_pair(self, user: User) -> TokenPair:
        claims = self.identity_claims(user)
        return TokenPair(
            access_token=self.mint({**claims, "type": "access"}, self.access_ttl),
            refresh_token=self.mint({**claims, "type": "refresh"}, self.refresh_ttl),
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def verify(self, token: str, *, expected_type: TokenType | None = None) -> TokenClaims:
        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": _REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc

        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise InvalidTokenError() from exc

        if self._now() >= claims.exp:
            raise ExpiredTokenError()
        if expected_type is not None and claims.type != expected_type:
            raise InvalidTokenError()
        return claims


__all__ = ["TokenService"]
