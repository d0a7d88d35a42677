"""Auth orchestration layer consumed by route handlers."""

from __future__ import annotations

import logging

from app.core.logging_safety import safe_log_identifier
from app.domain.access import ADMIN_ONLY, authorize
from app.domain.leader_fsm import ensure_leader_status_change, role_assignment_fields
from app.errors import ExpiredTokenError, ForbiddenError, InvalidTokenError, UserNotFoundError
from app.schemas.auth import OAuthProfile, TokenClaims, TokenResponse
from app.schemas.user import LeaderStatus, Role, User
from app.services.identity import IdentityResolver
from app.services.tokens import TokenService

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, identities: IdentityResolver, tokens: TokenService) -> None:
        self._identities = identities
        self._tokens = tokens

    def _token_response(self, user: User, *, is_new_user: bool) -> TokenResponse:
        pair = self._tokens.issue_pair(user)
        return TokenResponse(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            is_new_user=is_new_user,
        )

    def sign_up(self, *, name: str, email: str, password: str, role: Role | None) -> TokenResponse:
        user = self._identities.sign_up(name=name, email=email, password=password, requested_role=role)
        return self._token_response(user, is_new_user=True)

    def sign_in(self, *, email: str, password: str) -> TokenResponse:
        user = self._identities.sign_in(email=email, password=password)
        return self._token_response(user, is_new_user=False)

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Rotate a token pair, re-reading the user so role changes since issuance apply."""
        try:
            claims = self._tokens.verify(refresh_token, expected_type="refresh")
        except ExpiredTokenError:
            logger.warning("auth.refresh_rejected reason=token_expired")
            raise
        except InvalidTokenError:
            logger.warning("auth.refresh_rejected reason=token_verification_failed")
            raise
        try:
            user = self._identities.get_user(claims.sub)
        except UserNotFoundError as exc:
            logger.warning(
                "auth.refresh_rejected principal_id=%s reason=user_missing",
                safe_log_identifier(claims.sub, prefix="pid"),
            )
            raise InvalidTokenError() from exc
        return self._token_response(user, is_new_user=False)

    def google_login(self, profile: OAuthProfile) -> TokenResponse:
        user, is_new_account = self._identities.resolve_oauth_identity(profile)
        return self._token_response(user, is_new_user=is_new_account)

    def get_profile(self, user_id: str) -> User:
        return self._identities.get_user(user_id)

    def list_users(self, actor: TokenClaims) -> list[User]:
        authorize(actor, ADMIN_ONLY)
        return self._identities.list_users()

    def get_user(self, actor: TokenClaims, user_id: str) -> User:
        """Users may read their own record; anyone else's requires admin."""
        if actor.sub != user_id:
            authorize(actor, ADMIN_ONLY)
        return self._identities.get_user(user_id)

    def set_role(self, actor: TokenClaims, user_id: str, role: Role, *, approved: bool = False) -> User:
        authorize(actor, ADMIN_ONLY)
        record = self._identities.get_record(user_id)
        fields = role_assignment_fields(role, approved=approved)
        self._identities.update_fields(record.id, fields)
        logger.info(
            "auth.role_changed actor_id=%s principal_id=%s old_role=%s new_role=%s leader_status=%s",
            safe_log_identifier(actor.sub, prefix="pid"),
            safe_log_identifier(record.id, prefix="pid"),
            record.role.value if record.role else None,
            role.value,
            fields["leader_status"].value if fields["leader_status"] else None,
        )
        return self._identities.get_user(record.id)

    def set_leader_status(self, actor: TokenClaims, user_id: str, status: LeaderStatus) -> User:
        authorize(actor, ADMIN_ONLY)
        record = self._identities.get_record(user_id)
        ensure_leader_status_change(record.role, status)
        self._identities.update_fields(record.id, {"leader_status": status})
        logger.info(
            "auth.leader_status_changed actor_id=%s principal_id=%s old_status=%s new_status=%s",
            safe_log_identifier(actor.sub, prefix="pid"),
            safe_log_identifier(record.id, prefix="pid"),
            record.leader_status.value if record.leader_status else None,
            status.value,
        )
        return self._identities.get_user(record.id)

    def complete_profile(self, user_id: str, role: Role) -> User:
        """Self-service role choice, allowed once while the profile has no role."""
        record = self._identities.get_record(user_id)
        if role is Role.ADMIN or record.role is not None:
            raise ForbiddenError("Role can no longer be self-assigned")
        self._identities.update_fields(record.id, role_assignment_fields(role))
        return self._identities.get_user(record.id)


__all__ = ["AuthService"]
