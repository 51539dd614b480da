from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from classifieds.config import Settings

Record = Dict[str, Any]
AuthListener = Callable[[Optional[str]], None]
# Called with the full record set when the backend pushes one, or None when
# the event only signals that something changed.
ChangeListener = Callable[[Optional[List[Record]]], None]
# Called when a subscription that was set up fails later on.
ErrorListener = Callable[[Exception], None]


class MarketplaceBackend(ABC):
    """Port every backend-as-a-service adapter implements."""

    name = "base"
    # False when the listings query comes back in no particular order.
    ordered_queries = True
    # True when change events only signal; the subscriber then refetches.
    refetch_on_event = True

    def __init__(self, settings: Settings):
        self.settings = settings
        self.connected = False

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def sign_in_anonymously(self) -> Optional[str]:
        ...

    @abstractmethod
    async def restore_session(self, token: str) -> Optional[str]:
        ...

    @abstractmethod
    def on_auth_state_change(self, listener: AuthListener) -> None:
        ...

    @abstractmethod
    async def fetch_listings(self) -> List[Record]:
        ...

    @abstractmethod
    async def insert_listing(self, record: Record) -> None:
        ...

    @abstractmethod
    async def subscribe_changes(self, listener: ChangeListener, on_error: Optional[ErrorListener] = None) -> None:
        ...

    @abstractmethod
    async def upload_file(self, path: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def public_url(self, path: str) -> str:
        ...

    async def close(self) -> None:
        self.connected = False
