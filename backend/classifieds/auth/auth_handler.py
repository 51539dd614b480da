from typing import Optional

from classifieds.backends.base import MarketplaceBackend
from classifieds.config import Settings
from classifieds.errors import ConfigurationError, Result, as_marketplace_error, truncate_message
from classifieds.renderer import user_id_display
from classifieds.services.events import AuthStateChanged, EventDispatcher
from classifieds.services.realtime import RealtimeSubscriber
from classifieds.services.toast import Notifier
from classifieds.state import AppState

CONFIG_MISSING_TOAST = "Database configuration missing."
CONFIG_MISSING_MESSAGE = "Database configuration missing. Displaying static content only."
SIGN_IN_FAILED_MESSAGE = "Could not connect to the marketplace. Please reload the page."


class AuthBootstrapper:
    def __init__(
        self,
        settings: Settings,
        backend: Optional[MarketplaceBackend],
        state: AppState,
        notifier: Notifier,
        dispatcher: EventDispatcher,
        subscriber: Optional[RealtimeSubscriber],
    ):
        self.settings = settings
        self.backend = backend
        self.state = state
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.subscriber = subscriber
        dispatcher.register(AuthStateChanged, self.handle_auth_event)

    async def bootstrap(self) -> Result:
        try:
            if self.backend is None:
                raise ConfigurationError("No backend configured.")
            await self.backend.connect()
        except ConfigurationError as e:
            print(f"[auth] {e}")
            self.notifier.error("Error", CONFIG_MISSING_TOAST)
            self.state.loading_message = CONFIG_MISSING_MESSAGE
            return Result.failure(e)

        try:
            token = self.settings.initial_auth_token
            if token:
                user_id = await self.backend.restore_session(token)
            else:
                user_id = await self.backend.sign_in_anonymously()
            self.backend.on_auth_state_change(lambda uid: self.dispatcher.post(AuthStateChanged(uid)))
        except Exception as e:
            error = as_marketplace_error(e)
            print(f"[auth] {self.backend.name} initialization failed: {error}")
            self.notifier.error("Error", f"Init Error: {truncate_message(error)}...")
            if not self.state.listings:
                self.state.loading_message = SIGN_IN_FAILED_MESSAGE
            return Result.failure(error)

        if user_id:
            await self.user_signed_in(user_id)
        return Result.success(user_id)

    async def user_signed_in(self, user_id: str):
        self.state.user_id = user_id
        print(f"[auth] {user_id_display(user_id)}")
        if self.subscriber is not None:
            await self.subscriber.attach()

    async def handle_auth_event(self, event: AuthStateChanged):
        if event.user_id:
            await self.user_signed_in(event.user_id)
        else:
            print("[auth] User state changed, but no user is signed in.")
