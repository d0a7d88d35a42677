"""Credential store adapters."""

from .base import AdapterError, CredentialStore, UserRecord
from .firebase_store import FirebaseCredentialStore
from .memory import InMemoryCredentialStore

__all__ = [
    "AdapterError",
    "CredentialStore",
    "UserRecord",
    "FirebaseCredentialStore",
    "InMemoryCredentialStore",
]
