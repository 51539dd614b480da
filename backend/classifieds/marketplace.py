from typing import Optional

from classifieds.auth.auth_handler import AuthBootstrapper
from classifieds.backends.base import MarketplaceBackend
from classifieds.config import Settings
from classifieds.errors import Result
from classifieds.services.events import EventDispatcher
from classifieds.services.realtime import RealtimeSubscriber
from classifieds.services.submission import SubmissionHandler
from classifieds.services.toast import Notifier
from classifieds.state import AppState, ViewRegistry


class Marketplace:
    """Wires one backend, one app state and the services that share them.

    The identity and listing store are process-wide; tab, filter, form and
    toasts are kept per visitor in `views`.
    """

    def __init__(self, settings: Settings, backend: Optional[MarketplaceBackend]):
        self.settings = settings
        self.backend = backend
        self.state = AppState()
        self.views = ViewRegistry()
        self.notifier = Notifier(self.state)
        self.dispatcher = EventDispatcher()
        self.subscriber = (
            RealtimeSubscriber(backend, self.state, self.notifier, self.dispatcher) if backend is not None else None
        )
        self.auth = AuthBootstrapper(settings, backend, self.state, self.notifier, self.dispatcher, self.subscriber)
        self.submission = SubmissionHandler(backend, self.state, self.notifier)

    async def start(self) -> Result:
        self.dispatcher.start()
        return await self.auth.bootstrap()

    async def stop(self):
        await self.dispatcher.stop()
        if self.backend is not None and self.backend.connected:
            await self.backend.close()
