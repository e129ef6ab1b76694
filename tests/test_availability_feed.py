"""Tests for the live blocked-slot feed and its subscription lifecycle."""

import pytest

from barberbook.reservation.availability_feed import AvailabilityFeed
from tests.conftest import DAY, make_request


class TestSubscriptionLifecycle:
    def test_select_opens_one_subscription(self, store):
        feed = AvailabilityFeed(store, "acme")
        feed.select(DAY)
        assert feed.is_subscribed
        assert store.subscriber_count == 1

    def test_reselect_replaces_subscription(self, store):
        feed = AvailabilityFeed(store, "acme")
        feed.select(DAY)
        feed.select("2025-03-02")
        feed.select("2025-03-02", employee_id="jane")
        assert store.subscriber_count == 1

    def test_same_selection_keeps_subscription(self, store):
        feed = AvailabilityFeed(store, "acme")
        feed.select(DAY)
        feed.select(DAY)
        assert store.subscriber_count == 1

    def test_context_manager_tears_down(self, store):
        with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY)
            assert store.subscriber_count == 1
        assert store.subscriber_count == 0
        assert not feed.is_subscribed

    def test_tears_down_on_error(self, store):
        with pytest.raises(RuntimeError, match="boom"):
            with AvailabilityFeed(store, "acme") as feed:
                feed.select(DAY)
                raise RuntimeError("boom")
        assert store.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self, store):
        async with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY)
        assert store.subscriber_count == 0

    def test_closed_feed_rejects_select(self, store):
        feed = AvailabilityFeed(store, "acme")
        feed.close()
        with pytest.raises(RuntimeError, match="closed"):
            feed.select(DAY)


class TestBlockedTimes:
    @pytest.mark.asyncio
    async def test_reflects_new_bookings(self, store, manager, acme):
        updates = []
        with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY)
            feed.on_change(updates.append)
            await manager.reserve_slot(acme, make_request("10:00"))
            await manager.reserve_slot(acme, make_request("09:00", customer="Bea"))
            assert feed.blocked_times == ["09:00", "10:00"]
        assert updates[0] == []
        assert updates[-1] == ["09:00", "10:00"]

    @pytest.mark.asyncio
    async def test_cancellation_frees_slot(self, store, manager, acme):
        result = await manager.reserve_slot(acme, make_request("10:00"))
        with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY)
            assert feed.blocked_times == ["10:00"]
            await manager.cancel_booking(result.booking_id, "Sick")
            assert feed.blocked_times == []

    @pytest.mark.asyncio
    async def test_employee_feed_ignores_generic_holds(self, store, manager, acme):
        await manager.reserve_slot(acme, make_request("09:00"))
        await manager.reserve_slot(acme, make_request("14:00", employee_id="jane", customer="Bea"))
        with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY, employee_id="jane")
            assert feed.blocked_times == ["14:00"]
            feed.select(DAY)
            assert feed.blocked_times == ["09:00"]

    @pytest.mark.asyncio
    async def test_stale_selection_gets_no_updates(self, store, manager, acme):
        updates = []
        with AvailabilityFeed(store, "acme") as feed:
            feed.select("2025-03-02")
            feed.on_change(updates.append)
            feed.select("2025-03-03")
            await manager.reserve_slot(acme, make_request("10:00", selected_date="2025-03-02"))
            assert feed.blocked_times == []
        assert all(update == [] for update in updates)

    @pytest.mark.asyncio
    async def test_listener_only_called_on_change(self, store, manager, acme):
        updates = []
        with AvailabilityFeed(store, "acme") as feed:
            feed.select(DAY)
            feed.on_change(updates.append)
            await manager.reserve_slot(acme, make_request("10:00", selected_date="2025-03-02"))
        assert updates == [[]]

    def test_removed_listener_not_called(self, store):
        updates = []
        feed = AvailabilityFeed(store, "acme")
        remove = feed.on_change(updates.append)
        remove()
        feed.select(DAY)
        assert updates == [[]]
