"""In-memory credential store used for local development and tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from passlib.context import CryptContext

from app.adapters.identity.base import (
    EMAIL_ALREADY_EXISTS,
    INVALID_CREDENTIALS,
    UNAVAILABLE,
    USER_NOT_FOUND,
    AdapterError,
    CredentialStore,
    UserRecord,
    ensure_profile_fields,
)

_password_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(slots=True)
class InMemoryCredentialStore(CredentialStore):
    """Simple, deterministic credential store for scaffolding and tests."""

    users: dict[str, UserRecord] = field(default_factory=dict)
    user_ids_by_email: dict[str, str] = field(default_factory=dict)
    disabled_user_ids: set[str] = field(default_factory=set)
    user_write_count: int = 0
    outage_message: str | None = None

    def create_user(self, email: str, password: str, display_name: str) -> str:
        self._maybe_raise_outage()
        key = _normalize_email(email)
        if key in self.user_ids_by_email:
            raise AdapterError(EMAIL_ALREADY_EXISTS, "The email address is already in use by another account.")

        record = UserRecord(
            id=uuid4().hex,
            email=key,
            name=display_name,
            created_at=datetime.now(UTC),
            password_hash=_password_context.hash(password),
        )
        self.users[record.id] = record
        self.user_ids_by_email[key] = record.id
        self.user_write_count += 1
        return record.id

    def verify_password(self, email: str, password: str) -> str:
        self._maybe_raise_outage()
        user_id = self.user_ids_by_email.get(_normalize_email(email))
        record = self.users.get(user_id) if user_id else None
        if record is None or record.password_hash is None:
            raise AdapterError(INVALID_CREDENTIALS, "EMAIL_NOT_FOUND")
        if record.id in self.disabled_user_ids:
            raise AdapterError(INVALID_CREDENTIALS, "USER_DISABLED")
        if not _password_context.verify(password, record.password_hash):
            raise AdapterError(INVALID_CREDENTIALS, "INVALID_PASSWORD")
        return record.id

    def find_user_by_email(self, email: str) -> UserRecord | None:
        self._maybe_raise_outage()
        user_id = self.user_ids_by_email.get(_normalize_email(email))
        return self.find_user_by_id(user_id) if user_id else None

    def find_user_by_id(self, user_id: str) -> UserRecord | None:
        self._maybe_raise_outage()
        record = self.users.get(user_id)
        # Callers get a copy so they cannot mutate stored state around update_user_fields.
        return replace(record) if record is not None else None

    def update_user_fields(self, user_id: str, fields: dict[str, Any]) -> None:
        self._maybe_raise_outage()
        ensure_profile_fields(fields)
        record = self.users.get(user_id)
        if record is None:
            raise AdapterError(USER_NOT_FOUND, f"No user record for {user_id}")

        if "email" in fields:
            new_key = _normalize_email(fields["email"])
            owner = self.user_ids_by_email.get(new_key)
            if owner is not None and owner != user_id:
                raise AdapterError(EMAIL_ALREADY_EXISTS)
            self.user_ids_by_email.pop(record.email, None)
            self.user_ids_by_email[new_key] = user_id
            fields = {**fields, "email": new_key}

        for key, value in fields.items():
            setattr(record, key, value)
        self.user_write_count += 1

    def list_users(self) -> list[UserRecord]:
        self._maybe_raise_outage()
        records = [replace(record) for record in self.users.values()]
        records.sort(key=lambda record: record.created_at or datetime.min.replace(tzinfo=UTC))
        return records

    def delete_user(self, user_id: str) -> None:
        self._maybe_raise_outage()
        record = self.users.pop(user_id, None)
        if record is None:
            raise AdapterError(USER_NOT_FOUND, f"No user record for {user_id}")
        self.user_ids_by_email.pop(record.email, None)
        self.disabled_user_ids.discard(user_id)
        self.user_write_count += 1

    def _maybe_raise_outage(self) -> None:
        if self.outage_message is not None:
            raise AdapterError(UNAVAILABLE, self.outage_message)


__all__ = ["InMemoryCredentialStore"]
