"""Credential store interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.schemas.user import LeaderStatus, Role

EMAIL_ALREADY_EXISTS = "email-already-exists"
INVALID_CREDENTIALS = "invalid-credentials"
USER_NOT_FOUND = "user-not-found"
UNAVAILABLE = "unavailable"

# Profile fields a store persists next to the credential.
PROFILE_FIELDS = frozenset({"name", "email", "role", "leader_status", "created_at", "picture", "external_id"})


class AdapterError(Exception):
    """Raised by a credential store on any transport or validation failure."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)


@dataclass(slots=True)
class UserRecord:
    id: str
    email: str
    name: str
    role: Role | None = None
    leader_status: LeaderStatus | None = None
    created_at: datetime | None = None
    picture: str | None = None
    external_id: str | None = None
    password_hash: str | None = field(default=None, repr=False)


class CredentialStore(ABC):
    """Provider-neutral user record and credential persistence."""

    @abstractmethod
    def create_user(self, email: str, password: str, display_name: str) -> str:
        """Create a credential and return the store-assigned immutable user id."""

    @abstractmethod
    def verify_password(self, email: str, password: str) -> str:
        """Return the user id for valid credentials, else raise ``AdapterError(INVALID_CREDENTIALS)``."""

    @abstractmethod
    def find_user_by_email(self, email: str) -> UserRecord | None:
        ...

    @abstractmethod
    def find_user_by_id(self, user_id: str) -> UserRecord | None:
        ...

    @abstractmethod
    def update_user_fields(self, user_id: str, fields: dict[str, Any]) -> None:
        """Merge profile fields into the user record. Last write wins."""

    @abstractmethod
    def list_users(self) -> list[UserRecord]:
        ...

    @abstractmethod
    def delete_user(self, user_id: str) -> None:
        ...


def ensure_profile_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise ValueError(f"Unknown profile fields: {sorted(unknown)}")


__all__ = [
    "EMAIL_ALREADY_EXISTS",
    "INVALID_CREDENTIALS",
    "PROFILE_FIELDS",
    "UNAVAILABLE",
    "USER_NOT_FOUND",
    "AdapterError",
    "CredentialStore",
    "UserRecord",
    "ensure_profile_fields",
]
