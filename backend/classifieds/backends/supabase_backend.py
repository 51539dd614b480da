from typing import List, Optional

from supabase import AsyncClient, AuthError, PostgrestAPIError, acreate_client

from classifieds.backends.base import AuthListener, ChangeListener, ErrorListener, MarketplaceBackend, Record
from classifieds.errors import AuthenticationError, ConfigurationError, PersistenceError

# Channel states that mean no more change events will arrive.
FAILED_CHANNEL_STATES = ("CHANNEL_ERROR", "TIMED_OUT", "CLOSED")


class SupabaseBackend(MarketplaceBackend):
    name = "supabase"

    def __init__(self, settings, client: Optional[AsyncClient] = None):
        super().__init__(settings)
        self.client = client
        self.channel = None
        self._auth_subscription = None
        self._closing = False

    async def connect(self) -> None:
        self.settings.require_credentials()
        if self.client is None:
            try:
                self.client = await acreate_client(self.settings.supabase_url, self.settings.supabase_anon_key)
            except Exception as e:
                raise ConfigurationError(f"Supabase client could not be created: {e}", cause=e)
        self.connected = True

    async def sign_in_anonymously(self) -> Optional[str]:
        try:
            response = await self.client.auth.sign_in_anonymously()
        except AuthError as e:
            raise AuthenticationError(e.message, cause=e)
        return response.user.id if response.user else None

    async def restore_session(self, token: str) -> Optional[str]:
        # The injected token is an access token only; there is nothing to refresh with.
        try:
            await self.client.auth.set_session(token, "")
            response = await self.client.auth.get_user()
        except AuthError as e:
            raise AuthenticationError(e.message, cause=e)
        if response is None or response.user is None:
            return None
        return response.user.id

    def on_auth_state_change(self, listener: AuthListener) -> None:
        def _callback(event, session):
            user = session.user if session else None
            listener(user.id if user else None)

        self._auth_subscription = self.client.auth.on_auth_state_change(_callback)

    async def fetch_listings(self) -> List[Record]:
        try:
            response = await (
                self.client.table(self.settings.listings_table)
                .select("*")
                .order("timestamp", desc=True)
                .execute()
            )
        except PostgrestAPIError as e:
            raise PersistenceError(e.message or str(e), cause=e)
        return response.data or []

    async def insert_listing(self, record: Record) -> None:
        try:
            await self.client.table(self.settings.listings_table).insert([record]).execute()
        except PostgrestAPIError as e:
            raise PersistenceError(e.message or str(e), cause=e)

    async def subscribe_changes(self, listener: ChangeListener, on_error: Optional[ErrorListener] = None) -> None:
        def _on_change(payload):
            # The payload is never read; every change triggers a full refetch.
            listener(None)

        def _on_status(status, error=None):
            status = getattr(status, "value", status)
            if status == "SUBSCRIBED":
                print("[realtime] Supabase Realtime Subscribed!")
                return
            print(f"[realtime] Channel status {status}: {error}")
            if status in FAILED_CHANNEL_STATES and not self._closing and on_error is not None:
                on_error(PersistenceError(f"Realtime channel {status}: {error or 'no detail'}", cause=error))

        self.channel = self.client.channel(self.settings.channel_name)
        self.channel.on_postgres_changes(
            "*",
            schema="public",
            table=self.settings.listings_table,
            callback=_on_change,
        )
        try:
            await self.channel.subscribe(_on_status)
        except Exception as e:
            raise PersistenceError(f"Realtime subscription failed: {e}", cause=e)

    async def upload_file(self, path: str, data: bytes, content_type: str) -> None:
        # Storage errors reach the caller unchanged.
        await self.client.storage.from_(self.settings.bucket_name).upload(
            path, data, {"content-type": content_type}
        )

    async def public_url(self, path: str) -> str:
        return await self.client.storage.from_(self.settings.bucket_name).get_public_url(path)

    async def close(self) -> None:
        self._closing = True
        if self.channel is not None and self.client is not None:
            await self.client.remove_channel(self.channel)
            self.channel = None
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None
        await super().close()
