from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from html import escape
from typing import Any, Iterable, List, Optional
from urllib.parse import quote

from classifieds.models.listing import Listing
from classifieds.services.toast import TOAST_DURATION_MS, icon_path, toast_style
from classifieds.state import AppState, Toast, ViewState
from classifieds.utils.categories import ALL_CATEGORIES, CATEGORIES
from classifieds.utils.timestamps import parse_timestamp

DEFAULT_IMAGE_URL = "https://placehold.co/192x192/0E7490/ffffff?text=No+Image"
TABS = ("buy", "sell")


def filter_listings(listings: Iterable[Listing], category: str) -> List[Listing]:
    if category == ALL_CATEGORIES:
        return list(listings)
    return [l for l in listings if l.category == category]


def _group_indian(digits: str) -> str:
    # Last three digits, then pairs: 12,34,567
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_price_inr(amount: Any) -> str:
    """Format a price the way en-IN renders INR currency, e.g. 1234.5 -> ₹1,234.50"""
    try:
        value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return "₹NaN"
    if value.is_nan():
        return "₹NaN"
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    return f"{sign}₹{_group_indian(whole)}.{fraction}"


def format_post_date(timestamp: Any) -> str:
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return "Unknown date"
    if parsed.tzinfo is not None:
        # Local calendar date of the server.
        parsed = parsed.astimezone()
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def image_src(listing: Listing) -> str:
    if listing.imageUrl and listing.imageUrl.strip():
        return listing.imageUrl
    return DEFAULT_IMAGE_URL


def user_id_display(user_id: str) -> str:
    return f"Your ID: {user_id}"


def seller_tag(seller_id: str) -> str:
    return f"{seller_id[:8]}..."


def render_listing_card(listing: Listing) -> str:
    title = escape(listing.title)
    fallback = (
        f"this.onerror=null; this.src='{DEFAULT_IMAGE_URL}'; this.style.filter='grayscale(100%)'; "
        "this.classList.remove('object-cover'); this.classList.add('object-contain', 'p-4')"
    )
    return f"""
        <div class="listing-item bg-white rounded-xl shadow-lg overflow-hidden border border-gray-100 hover:shadow-xl">
            <div class="h-48 overflow-hidden bg-gray-200">
                <img
                    src="{escape(image_src(listing))}"
                    alt="{title}"
                    class="w-full h-full object-cover transition duration-300"
                    onerror="{escape(fallback)}"
                >
            </div>
            <div class="p-6">
                <span class="inline-block text-xs font-semibold px-2 py-1 rounded-full text-teal-700 bg-teal-100 mb-2">{escape(listing.category)}</span>
                <h3 class="text-xl font-bold text-gray-800 mb-2">{title}</h3>
                <p class="text-2xl font-extrabold text-teal-600 mb-2">{format_price_inr(listing.price)}</p>
                <p class="text-sm text-gray-500 mb-4 truncate">{escape(listing.description)}</p>
                <p class="text-xs text-gray-400 mb-4">Posted: {format_post_date(listing.timestamp)} by {escape(seller_tag(listing.sellerId))}</p>
                <button class="block w-full text-center py-2 bg-teal-500 text-white rounded-lg hover:bg-teal-600 transition duration-200">Contact Seller</button>
            </div>
        </div>
    """


def empty_message(category: str) -> str:
    return f"No listings found for the category: {category}. Be the first to post!"


def render_listings(state: AppState, category: str = ALL_CATEGORIES) -> str:
    """Inner HTML of #listings-container for one category. Order is kept as stored."""
    listings = filter_listings(state.listings, category)
    if not listings:
        return (
            '<div class="col-span-full text-center py-12 text-gray-500">'
            f"{escape(empty_message(category))}</div>"
        )
    return "".join(render_listing_card(l) for l in listings)


def switch_tab(view: ViewState, tab: str):
    if tab not in TABS:
        raise ValueError(f"Unknown tab '{tab}'")
    view.active_tab = tab


def filter_category(view: ViewState, category: str):
    view.current_filter = category
    switch_tab(view, "buy")


def render_toast(toast: Optional[Toast]) -> str:
    if toast is None:
        return (
            '<div id="message-toast" class="fixed bottom-5 right-5 z-[100] p-4 rounded-xl shadow-2xl hidden">'
            '<div id="toast-icon"></div><p id="toast-title"></p><p id="toast-message"></p></div>'
        )
    background, icon = toast_style(toast.kind)
    svg = (
        '<svg width="24" height="24" viewBox="0 0 24 24" fill="none" stroke="currentColor" stroke-width="2" '
        f'stroke-linecap="round" stroke-linejoin="round" class="lucide lucide-{icon.lower()}">'
        f'<path d="{icon_path(icon)}"/></svg>'
    )
    return f"""
    <div id="message-toast" class="fixed bottom-5 right-5 z-[100] p-4 rounded-xl shadow-2xl {background} text-white toast-show"
         data-duration="{TOAST_DURATION_MS}">
        <div class="flex items-center gap-3">
            <div id="toast-icon" data-lucide="{icon}">{svg}</div>
            <div>
                <p id="toast-title" class="font-bold">{escape(toast.title)}</p>
                <p id="toast-message" class="text-sm">{escape(toast.message)}</p>
            </div>
        </div>
    </div>
    """


def _tab_classes(view: ViewState, tab: str) -> str:
    if view.active_tab == tab:
        return "border-teal-500 text-teal-600 active-tab"
    return "border-transparent text-gray-600"


def _content_hidden(view: ViewState, tab: str) -> str:
    return "" if view.active_tab == tab else " hidden"


def render_form(view: ViewState) -> str:
    values = view.form_values
    selected = values.get("category", "")
    options = "".join(
        f'<option value="{escape(c)}"{" selected" if c == selected else ""}>{escape(c)}</option>'
        for c in CATEGORIES
    )
    button = view.post_button
    return f"""
        <form id="listing-form" action="/listing/create" method="post" enctype="multipart/form-data" class="space-y-4">
            <input id="title" name="title" type="text" required value="{escape(values.get('title', ''))}" class="w-full p-3 border rounded-lg">
            <select id="category" name="category" required class="w-full p-3 border rounded-lg">{options}</select>
            <input id="price" name="price" type="number" step="0.01" required value="{escape(values.get('price', ''))}" class="w-full p-3 border rounded-lg">
            <textarea id="description" name="description" required class="w-full p-3 border rounded-lg">{escape(values.get('description', ''))}</textarea>
            <input id="imageFile" name="imageFile" type="file" accept="image/*" class="w-full">
            <input id="imageUrl" name="imageUrl" type="url" value="{escape(values.get('imageUrl', ''))}" class="w-full p-3 border rounded-lg">
            <button id="post-button" type="submit"{" disabled" if button.disabled else ""} class="w-full py-3 bg-teal-600 text-white rounded-lg">{escape(button.label)}</button>
        </form>
    """


def render_page(state: AppState, view: ViewState) -> str:
    """Full page for one visitor: shared identity and store, the visitor's own tab, filter, form and toast."""
    if state.user_id:
        user_display = f'<p id="user-id-display" class="text-xs text-gray-500">{escape(user_id_display(state.user_id))}</p>'
    else:
        user_display = '<p id="user-id-display" class="text-xs text-gray-500 hidden"></p>'
    loading = ""
    if state.loading_message:
        loading = f'<p id="loading-message" class="col-span-full text-center py-12 text-gray-500">{escape(state.loading_message)}</p>'
        listings_html = ""
    else:
        listings_html = render_listings(state, view.current_filter)
    banner = ""
    if state.realtime_error:
        banner = f'<p id="realtime-error" class="mb-4 p-3 rounded-lg bg-red-50 text-red-700">{escape(state.realtime_error)}</p>'
    category_links = "".join(
        f'<a href="/category/{escape(quote(c))}" class="px-3 py-1 rounded-full bg-teal-50 text-teal-700">{escape(c)}</a>'
        for c in (ALL_CATEGORIES,) + CATEGORIES
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Classifieds Marketplace</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="bg-gray-50">
    <header class="p-6">
        <h1 class="text-3xl font-extrabold text-teal-700">Classifieds Marketplace</h1>
        {user_display}
    </header>
    <nav class="flex gap-4 border-b px-6">
        <a id="buy_tab" href="/tab/buy" class="py-2 border-b-2 {_tab_classes(view, 'buy')}">Buy</a>
        <a id="sell_tab" href="/tab/sell" class="py-2 border-b-2 {_tab_classes(view, 'sell')}">Sell</a>
    </nav>
    <main class="p-6">
        <section id="buy_content" class="{_content_hidden(view, 'buy').strip()}">
            {banner}
            <div class="flex flex-wrap gap-2 mb-6">{category_links}</div>
            <div id="listings" class="grid grid-cols-1 md:grid-cols-3 gap-6">
                {loading}
                <div id="listings-container" class="contents">{listings_html}</div>
            </div>
        </section>
        <section id="sell_content" class="{_content_hidden(view, 'sell').strip()}">
            {render_form(view)}
        </section>
    </main>
    {render_toast(view.take_toast(state))}
</body>
</html>
"""
