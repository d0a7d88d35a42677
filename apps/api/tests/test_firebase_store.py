"""Firebase credential store adapter tests with the Firebase SDK and REST endpoint faked out."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import types
import unittest
from unittest.mock import patch

import firebase_admin
import httpx

from app.adapters.identity.base import (
    EMAIL_ALREADY_EXISTS,
    INVALID_CREDENTIALS,
    UNAVAILABLE,
    USER_NOT_FOUND,
    AdapterError,
)
from app.adapters.identity.firebase_store import FirebaseCredentialStore
from app.errors import IdentityStoreUnavailableError
from app.schemas.user import LeaderStatus, Role
from app.services.identity import IdentityResolver


class _EmailAlreadyExistsError(Exception):
    pass


class _UserNotFoundError(Exception):
    pass


class _FakeFirebaseAuth:
    EmailAlreadyExistsError = _EmailAlreadyExistsError
    UserNotFoundError = _UserNotFoundError

    def __init__(self) -> None:
        self.users_by_email: dict[str, str] = {}
        self.verified_tokens: list[tuple[str, bool]] = []

    def create_user(self, *, email: str, password: str, display_name: str):
        if email in self.users_by_email:
            raise _EmailAlreadyExistsError(email)
        uid = f"uid-{len(self.users_by_email) + 1}"
        self.users_by_email[email] = uid
        return types.SimpleNamespace(uid=uid)

    def get_user_by_email(self, email: str):
        if email not in self.users_by_email:
            raise _UserNotFoundError(email)
        return types.SimpleNamespace(uid=self.users_by_email[email])

    def verify_id_token(self, id_token: str, check_revoked: bool = False) -> dict:
        self.verified_tokens.append((id_token, check_revoked))
        return {"uid": id_token.removeprefix("id-token-for-")}

    def delete_user(self, uid: str) -> None:
        for email, known_uid in list(self.users_by_email.items()):
            if known_uid == uid:
                del self.users_by_email[email]
                return
        raise _UserNotFoundError(uid)


class _FakeSnapshot:
    def __init__(self, doc_id: str, data: dict | None) -> None:
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return dict(self._data) if self._data is not None else None


class _FakeDocument:
    def __init__(self, store: dict[str, dict], doc_id: str) -> None:
        self._store = store
        self._doc_id = doc_id

    def get(self) -> _FakeSnapshot:
        return _FakeSnapshot(self._doc_id, self._store.get(self._doc_id))

    def set(self, data: dict, merge: bool = False) -> None:
        current = self._store.get(self._doc_id, {}) if merge else {}
        self._store[self._doc_id] = {**current, **data}

    def delete(self) -> None:
        self._store.pop(self._doc_id, None)


class _FakeCollection:
    def __init__(self, store: dict[str, dict]) -> None:
        self._store = store

    def document(self, doc_id: str) -> _FakeDocument:
        return _FakeDocument(self._store, doc_id)

    def stream(self):
        return [_FakeSnapshot(doc_id, data) for doc_id, data in self._store.items()]


class _FakeFirestore:
    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict]] = {}

    def collection(self, name: str) -> _FakeCollection:
        return _FakeCollection(self.collections.setdefault(name, {}))


def _password_endpoint(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    if request.url.params.get("key") != "web-api-key":
        return httpx.Response(400, json={"error": {"message": "API_KEY_INVALID"}})
    if body["email"] == "jane@x.com" and body["password"] == "secret1":
        return httpx.Response(200, json={"idToken": "id-token-for-uid-1", "localId": "uid-1"})
    if body["email"] == "jane@x.com":
        return httpx.Response(400, json={"error": {"message": "INVALID_PASSWORD"}})
    if body["email"] == "throttled@x.com":
        return httpx.Response(
            400,
            json={"error": {"message": "TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account has been disabled"}},
        )
    return httpx.Response(400, json={"error": {"message": "EMAIL_NOT_FOUND"}})


class FirebaseCredentialStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.firebase_auth = _FakeFirebaseAuth()
        self.db = _FakeFirestore()
        self.store = FirebaseCredentialStore(
            web_api_key="web-api-key",
            http_client=httpx.Client(transport=httpx.MockTransport(_password_endpoint)),
        )
        patcher = patch.object(FirebaseCredentialStore, "_firebase", return_value=(self.firebase_auth, self.db))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_create_user_maps_duplicate_email(self) -> None:
        self.assertEqual(self.store.create_user("jane@x.com", "secret1", "Jane"), "uid-1")

        with self.assertRaises(AdapterError) as context:
            self.store.create_user("jane@x.com", "secret1", "Jane")

        self.assertEqual(context.exception.code, EMAIL_ALREADY_EXISTS)

    def test_profile_fields_are_stored_in_camel_case_documents(self) -> None:
        created_at = datetime(2026, 1, 1, tzinfo=UTC)

        self.store.update_user_fields(
            "uid-1",
            {
                "name": "Ben",
                "email": "ben@x.com",
                "role": Role.BISHOP,
                "leader_status": LeaderStatus.PENDING,
                "created_at": created_at,
                "external_id": "google-sub-1",
            },
        )

        document = self.db.collections["users"]["uid-1"]
        self.assertEqual(document["leaderStatus"], "pending")
        self.assertEqual(document["googleId"], "google-sub-1")
        self.assertEqual(document["createdAt"], created_at.isoformat())
        record = self.store.find_user_by_id("uid-1")
        self.assertEqual(record.role, Role.BISHOP)
        self.assertEqual(record.leader_status, LeaderStatus.PENDING)
        self.assertEqual(record.created_at, created_at)
        self.assertEqual(record.external_id, "google-sub-1")

    def test_partial_update_merges_into_existing_document(self) -> None:
        self.store.update_user_fields("uid-1", {"name": "Ben", "role": Role.BISHOP, "leader_status": LeaderStatus.PENDING})

        self.store.update_user_fields("uid-1", {"leader_status": LeaderStatus.APPROVED})

        record = self.store.find_user_by_id("uid-1")
        self.assertEqual(record.name, "Ben")
        self.assertEqual(record.leader_status, LeaderStatus.APPROVED)

    def test_unknown_profile_field_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.store.update_user_fields("uid-1", {"password_hash": "x"})

        self.assertNotIn("users", self.db.collections)

    def test_find_user_by_email_returns_none_for_unknown_email(self) -> None:
        self.assertIsNone(self.store.find_user_by_email("nobody@x.com"))

        uid = self.store.create_user("jane@x.com", "secret1", "Jane")
        self.store.update_user_fields(uid, {"name": "Jane", "email": "jane@x.com"})

        self.assertEqual(self.store.find_user_by_email("jane@x.com").id, uid)

    def test_verify_password_returns_verified_uid(self) -> None:
        self.assertEqual(self.store.verify_password("jane@x.com", "secret1"), "uid-1")
        self.assertEqual(self.firebase_auth.verified_tokens, [("id-token-for-uid-1", True)])

    def test_credential_failures_map_to_invalid_credentials(self) -> None:
        for email, password in (("jane@x.com", "wrong"), ("nobody@x.com", "secret1")):
            with self.subTest(email=email):
                with self.assertRaises(AdapterError) as context:
                    self.store.verify_password(email, password)
                self.assertEqual(context.exception.code, INVALID_CREDENTIALS)

    def test_other_provider_failures_map_to_unavailable(self) -> None:
        with self.assertRaises(AdapterError) as throttled:
            self.store.verify_password("throttled@x.com", "secret1")
        self.assertEqual(throttled.exception.code, UNAVAILABLE)

        def network_down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        offline = FirebaseCredentialStore(
            web_api_key="web-api-key",
            http_client=httpx.Client(transport=httpx.MockTransport(network_down)),
        )
        with self.assertRaises(AdapterError) as unreachable:
            offline.verify_password("jane@x.com", "secret1")
        self.assertEqual(unreachable.exception.code, UNAVAILABLE)

    def test_missing_web_api_key_is_unavailable(self) -> None:
        store = FirebaseCredentialStore(web_api_key=None)

        with self.assertRaises(AdapterError) as context:
            store.verify_password("jane@x.com", "secret1")

        self.assertEqual(context.exception.code, UNAVAILABLE)

    def test_delete_user_removes_credential_and_profile(self) -> None:
        uid = self.store.create_user("jane@x.com", "secret1", "Jane")
        self.store.update_user_fields(uid, {"name": "Jane", "email": "jane@x.com"})

        self.store.delete_user(uid)

        self.assertIsNone(self.store.find_user_by_id(uid))
        self.assertEqual(self.store.list_users(), [])
        with self.assertRaises(AdapterError) as context:
            self.store.delete_user(uid)
        self.assertEqual(context.exception.code, USER_NOT_FOUND)

    def test_malformed_password_response_is_unavailable(self) -> None:
        for response in (
            httpx.Response(200, text="<html>proxy error</html>"),
            httpx.Response(200, json=["unexpected"]),
            httpx.Response(200, json={"localId": "uid-1"}),
        ):
            with self.subTest(body=response.text):
                store = FirebaseCredentialStore(
                    web_api_key="web-api-key",
                    http_client=httpx.Client(transport=httpx.MockTransport(lambda request, r=response: r)),
                )
                with self.assertRaises(AdapterError) as context:
                    store.verify_password("jane@x.com", "secret1")
                self.assertEqual(context.exception.code, UNAVAILABLE)


class FirebaseInitialisationTests(unittest.TestCase):
    def test_malformed_service_account_key_is_unavailable(self) -> None:
        store = FirebaseCredentialStore(web_api_key="web-api-key", service_account_key="not base64 json!!")

        with patch.dict(firebase_admin._apps, {}, clear=True):
            with self.assertRaises(AdapterError) as context:
                store.find_user_by_id("uid-1")
            self.assertEqual(context.exception.code, UNAVAILABLE)

            with self.assertRaises(IdentityStoreUnavailableError) as translated:
                IdentityResolver(store).get_user("uid-1")
            self.assertEqual(translated.exception.status_code, 503)

    def test_failed_app_initialisation_is_unavailable(self) -> None:
        store = FirebaseCredentialStore(web_api_key="web-api-key")

        with patch.dict(firebase_admin._apps, {}, clear=True):
            with patch.object(firebase_admin, "initialize_app", side_effect=ValueError("no default credentials")):
                with self.assertRaises(AdapterError) as context:
                    store.list_users()

        self.assertEqual(context.exception.code, UNAVAILABLE)


if __name__ == "__main__":
    unittest.main()
