from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from urllib.parse import quote

import requests
from fastapi.concurrency import run_in_threadpool
from google.api_core.exceptions import GoogleAPICallError
from google.auth.exceptions import RefreshError
from google.cloud import firestore
from google.oauth2.credentials import Credentials

from classifieds.backends.base import AuthListener, ChangeListener, ErrorListener, MarketplaceBackend, Record
from classifieds.errors import AuthenticationError, PersistenceError

IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
STORAGE_URL = "https://firebasestorage.googleapis.com/v0/b"


def _auth_error_message(response: requests.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {response.status_code}"


def _token_expiry(expires_in) -> datetime:
    # google-auth compares expiry against naive UTC.
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now + timedelta(seconds=int(expires_in or 3600))


class FirestoreBackend(MarketplaceBackend):
    """Firebase Auth, Firestore and Firebase Storage behind the marketplace port.

    Auth and storage go through the Firebase REST endpoints with the project's
    public API key. Firestore is reached with the signed-in user's ID token, so
    the project's security rules apply to every read and write.
    """

    name = "firestore"
    ordered_queries = False
    refetch_on_event = False

    def __init__(self, settings, http: Optional[requests.Session] = None):
        super().__init__(settings)
        self.http = http or requests.Session()
        self.client = None
        self.id_token = None
        self.refresh_token = None
        self.credentials = None
        self.user_id = None
        self.watch = None
        self._auth_listeners = []
        self._download_tokens = {}

    @property
    def api_key(self) -> str:
        return self.settings.firebase_config.get("apiKey", "")

    @property
    def project_id(self) -> str:
        return self.settings.firebase_config.get("projectId", "")

    @property
    def storage_bucket(self) -> str:
        return self.settings.firebase_config.get("storageBucket") or f"{self.project_id}.appspot.com"

    async def connect(self) -> None:
        self.settings.require_credentials()
        self.connected = True

    def _identity_call(self, action: str, payload: dict) -> dict:
        try:
            response = self.http.post(
                f"{IDENTITY_URL}:{action}",
                params={"key": self.api_key},
                json=payload,
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(str(e), cause=e)
        if response.status_code != 200:
            raise AuthenticationError(_auth_error_message(response))
        return response.json()

    def _notify(self, user_id: Optional[str]):
        for listener in self._auth_listeners:
            listener(user_id)

    def _start_session(self, body: dict, user_id: str) -> str:
        self.id_token = body["idToken"]
        self.refresh_token = body.get("refreshToken")
        self.user_id = user_id
        # Firestore asks the credentials for a fresh token once this one is about to expire.
        self.credentials = Credentials(
            token=self.id_token,
            expiry=_token_expiry(body.get("expiresIn")),
            refresh_handler=self._refresh_id_token,
        )
        self.client = firestore.Client(project=self.project_id, credentials=self.credentials)
        self._notify(user_id)
        return user_id

    def _refresh_id_token(self, request=None, scopes=None) -> Tuple[str, datetime]:
        """Exchange the refresh token for a new ID token (google-auth refresh handler)."""
        if not self.refresh_token:
            raise RefreshError("No Firebase refresh token; sign in again.")
        try:
            response = self.http.post(
                SECURE_TOKEN_URL,
                params={"key": self.api_key},
                data={"grant_type": "refresh_token", "refresh_token": self.refresh_token},
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            raise RefreshError(str(e)) from e
        if response.status_code != 200:
            raise RefreshError(_auth_error_message(response))
        body = response.json()
        self.id_token = body["id_token"]
        self.refresh_token = body.get("refresh_token") or self.refresh_token
        self.user_id = body.get("user_id") or self.user_id
        print(f"[auth] Firebase ID token refreshed for {self.user_id}")
        self._notify(self.user_id)
        return self.id_token, _token_expiry(body.get("expires_in"))

    def _bearer(self) -> Optional[str]:
        if self.credentials is None:
            return self.id_token
        if not self.credentials.valid:
            self.credentials.refresh(None)
        return self.credentials.token

    async def sign_in_anonymously(self) -> Optional[str]:
        body = await run_in_threadpool(self._identity_call, "signUp", {"returnSecureToken": True})
        return self._start_session(body, body["localId"])

    async def restore_session(self, token: str) -> Optional[str]:
        body = await run_in_threadpool(
            self._identity_call, "signInWithCustomToken", {"token": token, "returnSecureToken": True}
        )
        lookup = await run_in_threadpool(self._identity_call, "lookup", {"idToken": body["idToken"]})
        users = lookup.get("users") or []
        if not users:
            return None
        return self._start_session(body, users[0]["localId"])

    def on_auth_state_change(self, listener: AuthListener) -> None:
        self._auth_listeners.append(listener)
        # Firebase reports the current user as soon as a listener is added.
        if self.user_id:
            listener(self.user_id)

    def _collection(self):
        if self.client is None:
            raise PersistenceError("Firestore client not initialized.")
        return self.client.collection(self.settings.firestore_collection)

    @staticmethod
    def _doc_to_record(doc) -> Record:
        record = doc.to_dict() or {}
        record["id"] = doc.id
        return record

    def _fetch(self) -> List[Record]:
        return [self._doc_to_record(doc) for doc in self._collection().stream()]

    async def fetch_listings(self) -> List[Record]:
        try:
            return await run_in_threadpool(self._fetch)
        except GoogleAPICallError as e:
            raise PersistenceError(e.message or str(e), cause=e)
        except RefreshError as e:
            raise AuthenticationError(str(e), cause=e)

    async def insert_listing(self, record: Record) -> None:
        data = dict(record)
        data["timestamp"] = firestore.SERVER_TIMESTAMP
        try:
            await run_in_threadpool(self._collection().add, data)
        except GoogleAPICallError as e:
            raise PersistenceError(e.message or str(e), cause=e)
        except RefreshError as e:
            raise AuthenticationError(str(e), cause=e)

    async def subscribe_changes(self, listener: ChangeListener, on_error: Optional[ErrorListener] = None) -> None:
        # on_snapshot calls back from the watch thread with the whole collection.
        # The watch retries on its own and has no failure callback, so on_error is not used.
        def _on_snapshot(docs, changes, read_time):
            listener([self._doc_to_record(doc) for doc in docs])

        try:
            self.watch = self._collection().on_snapshot(_on_snapshot)
        except GoogleAPICallError as e:
            raise PersistenceError(f"Snapshot listener failed: {e}", cause=e)

    def _upload(self, path: str, data: bytes, content_type: str) -> dict:
        response = self.http.post(
            f"{STORAGE_URL}/{self.storage_bucket}/o",
            params={"uploadType": "media", "name": path},
            data=data,
            headers={"Authorization": f"Firebase {self._bearer()}", "Content-Type": content_type},
            timeout=60,
        )
        response.raise_for_status()
        return response.json()

    async def upload_file(self, path: str, data: bytes, content_type: str) -> None:
        metadata = await run_in_threadpool(self._upload, path, data, content_type)
        self._download_tokens[path] = (metadata.get("downloadTokens") or "").split(",")[0]

    async def public_url(self, path: str) -> str:
        url = f"{STORAGE_URL}/{self.storage_bucket}/o/{quote(path, safe='')}?alt=media"
        token = self._download_tokens.get(path)
        if token:
            url += f"&token={token}"
        return url

    async def close(self) -> None:
        if self.watch is not None:
            self.watch.unsubscribe()
            self.watch = None
        self.http.close()
        await super().close()
