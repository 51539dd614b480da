"""
Tests for the realtime subscriber: initial load, refetch on change and
client-side ordering for backends whose queries are unordered.
"""

from classifieds.config import Settings
from classifieds.errors import PersistenceError
from classifieds.marketplace import Marketplace
from classifieds.utils.timestamps import sort_newest_first, timestamp_sort_key
from conftest import FakeBackend, make_record


async def started(backend):
    marketplace = Marketplace(Settings(), backend)
    await marketplace.start()
    return marketplace


class TestAttach:

    def test_initial_fetch_populates_store_newest_first(self, backend, run):
        async def scenario():
            marketplace = await started(backend)
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert backend.calls.count("fetch_listings") == 1
        assert backend.calls.count("subscribe_changes") == 1
        assert [l.id for l in marketplace.state.listings] == ["1", "2", "3"]
        assert marketplace.state.loading_message is None

    def test_attach_is_idempotent(self, backend, run):
        async def scenario():
            marketplace = await started(backend)
            await marketplace.subscriber.attach()
            backend.emit_auth(backend.user_id)
            await marketplace.dispatcher.drain()
            await marketplace.stop()

        run(scenario())
        assert backend.calls.count("fetch_listings") == 1
        assert backend.calls.count("subscribe_changes") == 1

    def test_initial_fetch_failure(self, backend, run):
        backend.fail("fetch_listings", PersistenceError("relation does not exist"))

        async def scenario():
            marketplace = await started(backend)
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert marketplace.state.listings == []
        assert marketplace.state.latest_notice.message == "Failed to load initial listings."
        assert marketplace.state.latest_notice.kind == "error"
        assert "Failed to load initial listings." in marketplace.state.loading_message
        assert backend.calls.count("subscribe_changes") == 1

    def test_subscription_failure(self, backend, run):
        backend.fail("subscribe_changes", PersistenceError("socket closed"))

        async def scenario():
            marketplace = await started(backend)
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        # The initial listings are still shown.
        assert len(marketplace.state.listings) == 3
        assert marketplace.state.latest_notice.message == "Live updates are unavailable."
        assert marketplace.state.realtime_error.startswith("Live updates are unavailable.")

    def test_channel_failing_after_subscribe(self, backend, run):
        async def scenario():
            marketplace = await started(backend)
            backend.emit_subscription_error(PersistenceError("Realtime channel CHANNEL_ERROR: socket closed"))
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert len(marketplace.state.listings) == 3
        assert marketplace.state.latest_notice.message == "Live updates are unavailable."
        assert marketplace.state.latest_notice.kind == "error"
        assert "Reload the page" in marketplace.state.realtime_error

    def test_channel_failure_with_empty_store_sets_loading_message(self, run):
        backend = FakeBackend(records=[])

        async def scenario():
            marketplace = await started(backend)
            backend.emit_subscription_error(RuntimeError("timed out"))
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert marketplace.state.loading_message == "Live updates are unavailable. Please reload the page."


class TestChangeEvents:

    def test_each_event_refetches(self, backend, run):
        async def scenario():
            marketplace = await started(backend)
            backend.records.append(make_record("4", "Sofa", "Furniture", 8000, "2026-10-04T09:00:00+00:00"))
            backend.emit_change()
            backend.emit_change()
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert backend.calls.count("fetch_listings") == 3
        assert [l.id for l in marketplace.state.listings] == ["4", "1", "2", "3"]

    def test_refresh_failure_keeps_previous_store(self, backend, run):
        async def scenario():
            marketplace = await started(backend)
            backend.fail("fetch_listings", PersistenceError("timeout"))
            backend.emit_change()
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert len(marketplace.state.listings) == 3
        assert marketplace.state.latest_notice.message == "Failed to refresh listings."

    def test_snapshot_backend_uses_pushed_records(self, records, run):
        backend = FakeBackend(records=records, ordered=False, snapshots=True)

        async def scenario():
            marketplace = await started(backend)
            backend.records.append(make_record("4", "Sofa", "Furniture", 8000, "2026-10-04T09:00:00+00:00"))
            backend.emit_change()
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert backend.calls.count("fetch_listings") == 1
        assert [l.id for l in marketplace.state.listings] == ["4", "1", "2", "3"]

    def test_unordered_backend_sorted_client_side(self, run):
        unordered = [
            make_record("old", "Chair", "Furniture", timestamp="2026-01-01T00:00:00+00:00"),
            make_record("none", "Desk", "Furniture", timestamp=None),
            make_record("new", "Table", "Furniture", timestamp="2026-09-01T00:00:00Z"),
            make_record("bad", "Shelf", "Furniture", timestamp="not a date"),
        ]
        backend = FakeBackend(records=unordered, ordered=False)

        async def scenario():
            marketplace = await started(backend)
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        ids = [l.id for l in marketplace.state.listings]
        assert ids[:2] == ["new", "old"]
        assert set(ids[2:]) == {"none", "bad"}


class TestTimestampOrdering:

    def test_missing_and_unparseable_sort_as_zero(self):
        assert timestamp_sort_key(None) == 0
        assert timestamp_sort_key("") == 0
        assert timestamp_sort_key("garbage") == 0

    def test_sort_is_descending(self):
        records = [
            {"id": "a", "timestamp": "2026-01-01T00:00:00+00:00"},
            {"id": "b", "timestamp": "2026-03-01T00:00:00+00:00"},
            {"id": "c"},
        ]
        assert [r["id"] for r in sort_newest_first(records)] == ["b", "a", "c"]


class TestMalformedRecords:

    def test_bad_record_skipped_rest_kept(self, run):
        rows = [
            make_record("1", "Laptop", "Electronics", 45000, "2026-10-03T09:00:00+00:00"),
            make_record("2", "Broken", "Other", "not a number", "2026-10-02T09:00:00+00:00"),
            make_record("3", None, "Other", 100, "2026-10-01T09:00:00+00:00"),
            make_record("4", "Phone", "Electronics", 12000, "2026-10-01T08:00:00+00:00"),
        ]
        backend = FakeBackend(records=rows)

        async def scenario():
            marketplace = await started(backend)
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert [l.id for l in marketplace.state.listings] == ["1", "4"]
        assert marketplace.state.loading_message is None
        assert marketplace.state.notices == []

    def test_bad_record_in_snapshot_skipped(self, records, run):
        backend = FakeBackend(records=records, ordered=False, snapshots=True)

        async def scenario():
            marketplace = await started(backend)
            backend.records.append(make_record("5", "Chair", "Furniture", {"amount": 1}, "2026-10-05T09:00:00+00:00"))
            backend.emit_change()
            await marketplace.dispatcher.drain()
            await marketplace.stop()
            return marketplace

        marketplace = run(scenario())
        assert [l.id for l in marketplace.state.listings] == ["1", "2", "3"]
