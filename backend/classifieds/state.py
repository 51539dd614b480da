from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from classifieds.models.listing import Listing
from classifieds.utils.categories import ALL_CATEGORIES

POST_BUTTON_LABEL = "Post Listing"
LOADING_TEXT = "Loading listings..."
MAX_VIEWS = 1000


@dataclass
class Toast:
    title: str
    message: str
    kind: str = "success"


@dataclass
class ButtonState:
    disabled: bool = False
    label: str = POST_BUTTON_LABEL


@dataclass
class AppState:
    """What every visitor shares: the signed-in identity and the listing store.

    Notices raised outside any request (startup, auth, realtime) are kept in
    `notices`; each visitor is shown the latest one they have not seen yet.
    """

    user_id: Optional[str] = None
    listings: List[Listing] = field(default_factory=list)
    loading_message: Optional[str] = LOADING_TEXT
    notices: List[Toast] = field(default_factory=list)
    realtime_error: Optional[str] = None
    realtime_attached: bool = False

    def replace_listings(self, listings: List[Listing]):
        self.listings = list(listings)
        self.loading_message = None

    @property
    def latest_notice(self) -> Optional[Toast]:
        return self.notices[-1] if self.notices else None


@dataclass
class ViewState:
    """One visitor's page: filter, tab, form contents, button and toast."""

    current_filter: str = ALL_CATEGORIES
    active_tab: str = "buy"
    toast: Optional[Toast] = None
    post_button: ButtonState = field(default_factory=ButtonState)
    form_values: Dict[str, str] = field(default_factory=dict)
    submit_phase: str = "idle"
    notices_seen: int = 0

    def take_toast(self, app: Optional[AppState] = None) -> Optional[Toast]:
        toast, self.toast = self.toast, None
        if app is not None:
            if toast is None and self.notices_seen < len(app.notices):
                toast = app.latest_notice
            self.notices_seen = len(app.notices)
        return toast


class ViewRegistry:
    """View states keyed by visitor id, least recently used evicted first."""

    def __init__(self, limit: int = MAX_VIEWS):
        self.limit = limit
        self._views: "OrderedDict[str, ViewState]" = OrderedDict()

    def __len__(self):
        return len(self._views)

    def get(self, view_id: Optional[str]) -> Tuple[str, ViewState]:
        if view_id and view_id in self._views:
            self._views.move_to_end(view_id)
            return view_id, self._views[view_id]
        view_id = uuid4().hex
        view = self._views[view_id] = ViewState()
        while len(self._views) > self.limit:
            self._views.popitem(last=False)
        return view_id, view
