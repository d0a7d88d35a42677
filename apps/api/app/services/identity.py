"""Maps authentication events onto canonical user records."""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime

from app.adapters.identity.base import (
    EMAIL_ALREADY_EXISTS,
    INVALID_CREDENTIALS,
    AdapterError,
    CredentialStore,
    UserRecord,
)
from app.core.logging_safety import safe_log_email, safe_log_identifier
from app.domain.leader_fsm import leader_status_for_role
from app.errors import (
    AccountLinkConflictError,
    DuplicateEmailError,
    ForbiddenError,
    IdentityStoreUnavailableError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from app.schemas.auth import OAuthProfile
from app.schemas.user import Role, User

logger = logging.getLogger(__name__)


def to_user(record: UserRecord) -> User:
    """Public projection of a store record; credential material is dropped here."""
    return User(
        id=record.id,
        name=record.name,
        email=record.email,
        role=record.role,
        leader_status=record.leader_status,
        created_at=record.created_at or datetime.fromtimestamp(0, UTC),
        picture=record.picture,
    )


def _store_unavailable(operation: str, exc: AdapterError) -> IdentityStoreUnavailableError:
    logger.error("identity.store_unavailable operation=%s adapter_code=%s", operation, exc.code)
    return IdentityStoreUnavailableError()


class IdentityResolver:
    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def sign_up(self, *, name: str, email: str, password: str, requested_role: Role | None) -> User:
        if requested_role is Role.ADMIN:
            raise ForbiddenError("Admin role cannot be self-assigned")

        try:
            user_id = self._store.create_user(email, password, name)
        except AdapterError as exc:
            if exc.code == EMAIL_ALREADY_EXISTS:
                logger.info("identity.signup_rejected email=%s reason=duplicate_email", safe_log_email(email))
                raise DuplicateEmailError() from exc
            raise _store_unavailable("create_user", exc) from exc

        record = UserRecord(
            id=user_id,
            email=email.strip().lower(),
            name=name,
            role=requested_role,
            leader_status=leader_status_for_role(requested_role),
            created_at=datetime.now(UTC),
        )
        self._write_profile(record)
        logger.info(
            "identity.signup principal_id=%s role=%s",
            safe_log_identifier(user_id, prefix="pid"),
            requested_role.value if requested_role else None,
        )
        return to_user(record)

    def sign_in(self, *, email: str, password: str) -> User:
        try:
            user_id = self._store.verify_password(email, password)
            record = self._store.find_user_by_id(user_id)
        except AdapterError as exc:
            if exc.code == INVALID_CREDENTIALS:
                logger.warning(
                    "identity.signin_rejected email=%s reason=%s",
                    safe_log_email(email),
                    str(exc) or "invalid_credentials",
                )
                raise InvalidCredentialsError() from exc
            raise _store_unavailable("verify_password", exc) from exc

        if record is None:
            logger.warning("identity.signin_rejected email=%s reason=profile_missing", safe_log_email(email))
            raise InvalidCredentialsError()
        return to_user(record)

    def resolve_oauth_identity(self, profile: OAuthProfile) -> tuple[User, bool]:
        """Return the user for a provider profile and whether it was just provisioned.

        An existing account with the same email is linked only when the provider
        vouches for the email and the account is not bound to another external id.
        """
        try:
            existing = self._store.find_user_by_email(profile.email)
        except AdapterError as exc:
            raise _store_unavailable("find_user_by_email", exc) from exc

        if existing is not None:
            return self._link_existing(existing, profile), False
        return self._provision(profile), True

    def _link_existing(self, record: UserRecord, profile: OAuthProfile) -> User:
        safe_principal_id = safe_log_identifier(record.id, prefix="pid")
        if record.external_id is not None and record.external_id != profile.external_id:
            logger.warning("identity.oauth_link_refused principal_id=%s reason=external_id_mismatch", safe_principal_id)
            raise AccountLinkConflictError()
        if record.external_id is None and not profile.email_verified:
            logger.warning("identity.oauth_link_refused principal_id=%s reason=email_unverified", safe_principal_id)
            raise AccountLinkConflictError()

        updates: dict[str, str] = {}
        if record.external_id is None:
            updates["external_id"] = profile.external_id
        if profile.picture and profile.picture != record.picture:
            updates["picture"] = profile.picture
        if updates:
            try:
                self._store.update_user_fields(record.id, updates)
            except AdapterError as exc:
                raise _store_unavailable("update_user_fields", exc) from exc
            for key, value in updates.items():
                setattr(record, key, value)
            logger.info("identity.oauth_linked principal_id=%s fields=%s", safe_principal_id, sorted(updates))
        return to_user(record)

    def _provision(self, profile: OAuthProfile) -> User:
        # Placeholder credential: the account cannot sign in with a password.
        placeholder = secrets.token_urlsafe(32)
        try:
            user_id = self._store.create_user(profile.email, placeholder, profile.name)
        except AdapterError as exc:
            if exc.code == EMAIL_ALREADY_EXISTS:
                # Credential exists without a readable profile, or a concurrent provision won.
                raise AccountLinkConflictError() from exc
            raise _store_unavailable("create_user", exc) from exc

        record = UserRecord(
            id=user_id,
            email=profile.email.strip().lower(),
            name=profile.name,
            role=Role.APPLICANT,
            leader_status=None,
            created_at=datetime.now(UTC),
            picture=profile.picture,
            external_id=profile.external_id,
        )
        self._write_profile(record)
        logger.info("identity.oauth_provisioned principal_id=%s", safe_log_identifier(user_id, prefix="pid"))
        return to_user(record)

    def _write_profile(self, record: UserRecord) -> None:
        """Persist the profile of a just-created credential, removing the credential if the write fails."""
        fields = {
            "name": record.name,
            "email": record.email,
            "role": record.role,
            "leader_status": record.leader_status,
            "created_at": record.created_at,
        }
        if record.picture is not None:
            fields["picture"] = record.picture
        if record.external_id is not None:
            fields["external_id"] = record.external_id
        try:
            self._store.update_user_fields(record.id, fields)
        except AdapterError as exc:
            self._discard_credential(record.id)
            raise _store_unavailable("update_user_fields", exc) from exc

    def _discard_credential(self, user_id: str) -> None:
        safe_principal_id = safe_log_identifier(user_id, prefix="pid")
        try:
            self._store.delete_user(user_id)
        except AdapterError as exc:
            logger.error(
                "identity.orphaned_credential principal_id=%s adapter_code=%s",
                safe_principal_id,
                exc.code,
            )
            return
        logger.warning("identity.credential_rolled_back principal_id=%s", safe_principal_id)

    def get_record(self, user_id: str) -> UserRecord:
        try:
            record = self._store.find_user_by_id(user_id)
        except AdapterError as exc:
            raise _store_unavailable("find_user_by_id", exc) from exc
        if record is None:
            raise UserNotFoundError()
        return record

    def get_user(self, user_id: str) -> User:
        return to_user(self.get_record(user_id))

    def list_users(self) -> list[User]:
        try:
            records = self._store.list_users()
        except AdapterError as exc:
            raise _store_unavailable("list_users", exc) from exc
        return [to_user(record) for record in records]

    def update_fields(self, user_id: str, fields: dict) -> None:
        try:
            self._store.update_user_fields(user_id, fields)
        except AdapterError as exc:
            raise _store_unavailable("update_user_fields", exc) from exc


__all__ = ["IdentityResolver", "to_user"]
