from typing import Any, Dict, List

from pydantic import ValidationError

from classifieds.backends.base import MarketplaceBackend
from classifieds.errors import Result, as_marketplace_error
from classifieds.models.listing import Listing
from classifieds.services.events import EventDispatcher, ListingsChanged, SubscriptionFailed
from classifieds.services.toast import Notifier
from classifieds.state import AppState
from classifieds.utils.timestamps import sort_newest_first

INITIAL_LOAD_FAILED = "Failed to load initial listings."
LIVE_UPDATES_UNAVAILABLE = "Live updates are unavailable."


class RealtimeSubscriber:
    def __init__(self, backend: MarketplaceBackend, state: AppState, notifier: Notifier, dispatcher: EventDispatcher):
        self.backend = backend
        self.state = state
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.refetch_on_event = backend.refetch_on_event
        dispatcher.register(ListingsChanged, self.handle_change)
        dispatcher.register(SubscriptionFailed, self.handle_subscription_failure)

    def _store(self, records: List[Dict[str, Any]]):
        if not self.backend.ordered_queries:
            records = sort_newest_first(records)
        listings = []
        for record in records:
            try:
                listings.append(Listing.from_record(record))
            except ValidationError as e:
                print(f"[realtime] Skipping malformed listing {record.get('id')!r}: {e.error_count()} invalid field(s)")
        self.state.replace_listings(listings)

    async def refresh(self) -> Result:
        try:
            records = await self.backend.fetch_listings()
            self._store(records)
        except Exception as e:
            return Result.failure(e)
        return Result.success(self.state.listings)

    def _subscription_failed(self, error):
        print(f"[realtime] Subscription failed: {error}")
        self.notifier.error("Error", LIVE_UPDATES_UNAVAILABLE)
        self.state.realtime_error = f"{LIVE_UPDATES_UNAVAILABLE} Reload the page to see new listings."
        if not self.state.listings:
            self.state.loading_message = f"{LIVE_UPDATES_UNAVAILABLE} Please reload the page."

    async def attach(self) -> Result:
        if self.state.realtime_attached:
            return Result.success(self.state.listings)
        self.state.realtime_attached = True

        result = await self.refresh()
        if not result.ok:
            print(f"[realtime] Error fetching initial listings: {result.error}")
            self.notifier.error("Error", INITIAL_LOAD_FAILED)
            self.state.loading_message = f"{INITIAL_LOAD_FAILED} Please reload the page."

        try:
            await self.backend.subscribe_changes(
                lambda records: self.dispatcher.post(ListingsChanged(records)),
                lambda error: self.dispatcher.post(SubscriptionFailed(error)),
            )
        except Exception as e:
            error = as_marketplace_error(e)
            self._subscription_failed(error)
            return Result.failure(error)
        return result

    async def handle_change(self, event: ListingsChanged):
        if event.records is not None and not self.refetch_on_event:
            self._store(event.records)
            return
        result = await self.refresh()
        if not result.ok:
            print(f"[realtime] Realtime update error: {result.error}")
            self.notifier.error("Error", "Failed to refresh listings.")

    async def handle_subscription_failure(self, event: SubscriptionFailed):
        # A channel that dies after subscribing reports here, once per failure.
        self._subscription_failed(as_marketplace_error(event.error))
