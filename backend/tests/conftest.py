"""
Shared fixtures for the marketplace tests.

FakeBackend implements the backend port in memory and records every call,
so tests can assert on network activity without a real Supabase or Firebase
project.
"""

import asyncio

import pytest

from classifieds.backends.base import MarketplaceBackend
from classifieds.config import Settings
from classifieds.utils.timestamps import sort_newest_first

USER_ID = "0f1e2d3c-4b5a-6978-8899-aabbccddeeff"


class FakeBackend(MarketplaceBackend):
    name = "fake"

    def __init__(self, settings=None, user_id=USER_ID, records=None, ordered=True, snapshots=False):
        super().__init__(settings or Settings())
        self.user_id = user_id
        self.records = [dict(r) for r in (records or [])]
        self.ordered_queries = ordered
        self.refetch_on_event = not snapshots
        self.calls = []
        self.inserted = []
        self.uploads = []
        self.failures = {}
        self.auth_listeners = []
        self.change_listeners = []
        self.error_listeners = []
        self.restored_token = None
        self.on_upload = None
        self.on_insert = None

    def fail(self, operation, error):
        self.failures[operation] = error

    def _call(self, operation):
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    def network_calls(self):
        return [c for c in self.calls if c != "connect"]

    async def connect(self):
        self.settings.require_credentials()
        self._call("connect")
        self.connected = True

    async def sign_in_anonymously(self):
        self._call("sign_in_anonymously")
        return self.user_id

    async def restore_session(self, token):
        self._call("restore_session")
        self.restored_token = token
        return self.user_id

    def on_auth_state_change(self, listener):
        self.auth_listeners.append(listener)

    async def fetch_listings(self):
        self._call("fetch_listings")
        records = [dict(r) for r in self.records]
        if self.ordered_queries:
            records = sort_newest_first(records)
        return records

    async def insert_listing(self, record):
        if self.on_insert:
            self.on_insert(record)
        self._call("insert_listing")
        self.inserted.append(dict(record))
        self.records.append(dict(record, id=f"listing-{len(self.records) + 1}"))

    async def subscribe_changes(self, listener, on_error=None):
        self._call("subscribe_changes")
        self.change_listeners.append(listener)
        if on_error is not None:
            self.error_listeners.append(on_error)

    async def upload_file(self, path, data, content_type):
        if self.on_upload:
            self.on_upload(path)
        self._call("upload_file")
        self.uploads.append((path, data, content_type))

    async def public_url(self, path):
        return f"https://storage.example.com/listing_images/{path}"

    def emit_change(self):
        payload = None if self.refetch_on_event else [dict(r) for r in self.records]
        for listener in self.change_listeners:
            listener(payload)

    def emit_auth(self, user_id):
        for listener in self.auth_listeners:
            listener(user_id)

    def emit_subscription_error(self, error):
        for listener in self.error_listeners:
            listener(error)


def make_record(id, title, category, price=100.0, timestamp="2026-10-01T10:00:00+00:00", **extra):
    record = {
        "id": id,
        "title": title,
        "category": category,
        "price": price,
        "description": f"{title} for sale",
        "imageUrl": "",
        "sellerId": USER_ID,
        "timestamp": timestamp,
    }
    record.update(extra)
    return record


@pytest.fixture
def records():
    return [
        make_record("1", "Laptop", "Electronics", 45000, "2026-10-03T09:00:00+00:00"),
        make_record("2", "Scooter", "Vehicles", 30000, "2026-10-02T09:00:00+00:00"),
        make_record("3", "Phone", "Electronics", 12000, "2026-10-01T09:00:00+00:00"),
    ]


@pytest.fixture
def backend(records):
    return FakeBackend(records=records)


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run
