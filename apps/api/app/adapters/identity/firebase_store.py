"""Firebase Auth + Firestore credential store adapter."""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime
from typing import Any

import httpx

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
from app.schemas.user import LeaderStatus, Role

logger = logging.getLogger(__name__)

_PASSWORD_SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
_USERS_COLLECTION = "users"
_CREDENTIAL_FAILURE_MESSAGES = frozenset(
    {"EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS", "INVALID_EMAIL", "USER_DISABLED"}
)

# Firestore documents keep the camelCase layout shared with the web client.
_DOCUMENT_KEYS: dict[str, str] = {
    "name": "name",
    "email": "email",
    "role": "role",
    "leader_status": "leaderStatus",
    "created_at": "createdAt",
    "picture": "picture",
    "external_id": "googleId",
}


def _to_document(fields: dict[str, Any]) -> dict[str, Any]:
    document: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, (Role, LeaderStatus)):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        document[_DOCUMENT_KEYS[key]] = value
    return document


def _from_document(user_id: str, data: dict[str, Any]) -> UserRecord:
    created_at = data.get("createdAt")
    return UserRecord(
        id=user_id,
        email=str(data.get("email") or ""),
        name=str(data.get("name") or ""),
        role=Role(data["role"]) if data.get("role") else None,
        leader_status=LeaderStatus(data["leaderStatus"]) if data.get("leaderStatus") else None,
        created_at=datetime.fromisoformat(created_at) if isinstance(created_at, str) and created_at else None,
        picture=data.get("picture") or None,
        external_id=data.get("googleId") or None,
    )


class FirebaseCredentialStore(CredentialStore):
    """Persists credentials in Firebase Auth and profiles in the Firestore ``users`` collection."""

    def __init__(
        self,
        *,
        web_api_key: str | None,
        service_account_key: str | None = None,
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._web_api_key = web_api_key
        self._service_account_key = service_account_key
        self._http_client = http_client or httpx.Client(timeout=timeout_seconds)

    def _firebase(self) -> tuple[Any, Any]:
        """Return the ``firebase_admin.auth`` module and a Firestore client."""
        try:
            import firebase_admin
            from firebase_admin import auth as firebase_auth
            from firebase_admin import credentials, firestore
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise AdapterError(UNAVAILABLE, "Firebase credential store is unavailable") from exc

        try:
            if not firebase_admin._apps:
                if self._service_account_key:
                    service_account = json.loads(base64.b64decode(self._service_account_key).decode("utf-8"))
                    firebase_admin.initialize_app(
                        credentials.Certificate(service_account),
                        {"projectId": service_account.get("project_id")},
                    )
                else:
                    firebase_admin.initialize_app()
            db = firestore.client()
        except Exception as exc:
            logger.error("credential_store.firebase_init_failed error=%s", type(exc).__name__)
            raise AdapterError(UNAVAILABLE, "Firebase credential store could not be initialised") from exc

        return firebase_auth, db

    def create_user(self, email: str, password: str, display_name: str) -> str:
        firebase_auth, _ = self._firebase()
        try:
            user = firebase_auth.create_user(email=email, password=password, display_name=display_name)
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise AdapterError(EMAIL_ALREADY_EXISTS) from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firebase create_user failed") from exc
        return str(user.uid)

    def verify_password(self, email: str, password: str) -> str:
        if not self._web_api_key:
            raise AdapterError(UNAVAILABLE, "FIREBASE_WEB_API_KEY is not configured")

        try:
            response = self._http_client.post(
                _PASSWORD_SIGN_IN_URL,
                params={"key": self._web_api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as exc:
            raise AdapterError(UNAVAILABLE, "Password verification request failed") from exc

        if response.status_code != 200:
            reason = self._error_reason(response)
            if reason in _CREDENTIAL_FAILURE_MESSAGES:
                raise AdapterError(INVALID_CREDENTIALS, reason)
            logger.warning("credential_store.password_check_failed status=%s reason=%s", response.status_code, reason)
            raise AdapterError(UNAVAILABLE, reason or f"HTTP {response.status_code}")

        try:
            id_token = response.json().get("idToken")
        except (ValueError, AttributeError) as exc:
            raise AdapterError(UNAVAILABLE, "Password verification returned a malformed body") from exc
        if not id_token:
            raise AdapterError(UNAVAILABLE, "Password verification returned no id token")

        firebase_auth, _ = self._firebase()
        try:
            decoded = firebase_auth.verify_id_token(id_token, check_revoked=True)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(INVALID_CREDENTIALS, "Issued id token failed verification") from exc
        return str(decoded.get("uid") or decoded.get("sub"))

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            message = str(response.json().get("error", {}).get("message") or "")
        except (ValueError, AttributeError):
            return ""
        # Firebase appends detail after " : ", e.g. "TOO_MANY_ATTEMPTS_TRY_LATER : ...".
        return message.split(" : ", 1)[0].strip()

    def find_user_by_email(self, email: str) -> UserRecord | None:
        firebase_auth, _ = self._firebase()
        try:
            user = firebase_auth.get_user_by_email(email)
        except firebase_auth.UserNotFoundError:
            return None
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firebase get_user_by_email failed") from exc
        return self.find_user_by_id(str(user.uid))

    def find_user_by_id(self, user_id: str) -> UserRecord | None:
        _, db = self._firebase()
        try:
            snapshot = db.collection(_USERS_COLLECTION).document(user_id).get()
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firestore read failed") from exc
        if not snapshot.exists:
            return None
        return _from_document(user_id, snapshot.to_dict() or {})

    def update_user_fields(self, user_id: str, fields: dict[str, Any]) -> None:
        ensure_profile_fields(fields)
        _, db = self._firebase()
        document = db.collection(_USERS_COLLECTION).document(user_id)
        try:
            document.set(_to_document(fields), merge=True)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firestore write failed") from exc

    def list_users(self) -> list[UserRecord]:
        _, db = self._firebase()
        try:
            snapshots = list(db.collection(_USERS_COLLECTION).stream())
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firestore list failed") from exc
        return [_from_document(snapshot.id, snapshot.to_dict() or {}) for snapshot in snapshots]

    def delete_user(self, user_id: str) -> None:
        firebase_auth, db = self._firebase()
        try:
            firebase_auth.delete_user(user_id)
        except firebase_auth.UserNotFoundError as exc:
            raise AdapterError(USER_NOT_FOUND) from exc
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firebase delete_user failed") from exc
        try:
            db.collection(_USERS_COLLECTION).document(user_id).delete()
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AdapterError(UNAVAILABLE, "Firestore delete failed") from exc


__all__ = ["FirebaseCredentialStore"]
