"""
Unit tests for the order cache.
"""

import asyncio
import threading

import pytest

from service_orders.app.cache import OrderCache
from service_orders.app.models import Order
from shared.errors import CacheError
from shared.observability import Observability
from shared.test_helpers import OrderFactory


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_order(factory: OrderFactory, order_uid: str) -> Order:
    return Order.model_validate(factory.create_order(order_uid))


class TestOrderCache:
    """Test cases for OrderCache."""

    @pytest.fixture
    def clock(self):
        """Create fake clock."""
        return FakeClock()

    @pytest.fixture
    def observability(self):
        """Create isolated observability handle."""
        return Observability("orders-test")

    @pytest.fixture
    def factory(self):
        """Create order factory."""
        return OrderFactory()

    @pytest.fixture
    def cache(self, clock, observability):
        """Create cache with a 10 second TTL and room for 3 entries."""
        return OrderCache(ttl=10, capacity=3, observability=observability, clock=clock)

    def test_get_missing(self, cache):
        """Test miss on an absent key."""
        assert cache.get("missing-order") == (None, False)

    def test_set_and_get(self, cache, factory):
        """Test hit after set."""
        order = make_order(factory, "order-0001")
        cache.set("order-0001", order)

        cached, found = cache.get("order-0001")

        assert found is True
        assert cached == order

    def test_hit_and_miss_metrics(self, cache, factory, observability):
        """Test that hits and misses are counted."""
        cache.set("order-0001", make_order(factory, "order-0001"))
        cache.get("order-0001")
        cache.get("order-0002")

        metrics = observability.metrics
        assert metrics.sample("cache_operations_total", type="get", result="hit") == 1
        assert metrics.sample("cache_operations_total", type="get", result="miss") == 1

    def test_entry_expires_after_ttl(self, cache, clock, factory):
        """Test that an entry older than the TTL is a miss."""
        cache.set("order-0001", make_order(factory, "order-0001"))

        clock.advance(10)
        assert cache.get("order-0001")[1] is True

        clock.advance(0.001)
        assert cache.get("order-0001") == (None, False)

    def test_expired_entry_stays_until_sweep(self, cache, clock, factory):
        """Test that get does not remove expired entries."""
        cache.set("order-0001", make_order(factory, "order-0001"))
        clock.advance(11)

        cache.get("order-0001")
        assert len(cache) == 1

        assert cache.sweep() == 1
        assert len(cache) == 0

    def test_sweep_keeps_live_entries(self, cache, clock, factory):
        """Test that sweep removes only expired entries."""
        cache.set("order-0001", make_order(factory, "order-0001"))
        clock.advance(6)
        cache.set("order-0002", make_order(factory, "order-0002"))
        clock.advance(6)

        assert cache.sweep() == 1
        assert "order-0001" not in cache
        assert "order-0002" in cache

    def test_replace_refreshes_timestamp(self, cache, clock, factory):
        """Test that set on an existing key resets its age."""
        cache.set("order-0001", make_order(factory, "order-0001"))
        clock.advance(8)
        cache.set("order-0001", make_order(factory, "order-0001"))
        clock.advance(8)

        assert cache.get("order-0001")[1] is True

    def test_evicts_oldest_at_capacity(self, cache, clock, factory):
        """Test that inserting at capacity evicts the oldest entry."""
        for i in range(3):
            cache.set(f"order-000{i}", make_order(factory, f"order-000{i}"))
            clock.advance(1)

        cache.set("order-0003", make_order(factory, "order-0003"))

        assert len(cache) == 3
        assert "order-0000" not in cache
        assert all(f"order-000{i}" in cache for i in (1, 2, 3))

    def test_replace_at_capacity_does_not_evict(self, cache, clock, factory):
        """Test that replacing an existing key keeps the size unchanged."""
        for i in range(3):
            cache.set(f"order-000{i}", make_order(factory, f"order-000{i}"))
            clock.advance(1)

        cache.set("order-0001", make_order(factory, "order-0001"))

        assert len(cache) == 3
        assert all(f"order-000{i}" in cache for i in range(3))

    def test_eviction_tie_broken_by_insertion_order(self, cache, factory):
        """Test that entries written at the same instant are evicted first-in first-out."""
        for uid in ("order-c", "order-a", "order-b"):
            cache.set(uid, make_order(factory, f"{uid}-uid"))

        cache.set("order-d", make_order(factory, "order-d-uid"))
        assert "order-c" not in cache

        cache.set("order-e", make_order(factory, "order-e-uid"))
        assert "order-a" not in cache
        assert "order-b" in cache
        assert "order-d" in cache
        assert "order-e" in cache

    def test_bulk_set_into_smaller_cache(self, clock, observability, factory):
        """Test warming a capacity-2 cache with 3 orders keeps the 2 newest."""
        cache = OrderCache(ttl=10, capacity=2, observability=observability, clock=clock)
        orders = {uid: make_order(factory, uid) for uid in ("order-0001", "order-0002", "order-0003")}

        cache.bulk_set(orders)

        assert len(cache) == 2
        assert "order-0001" not in cache
        assert "order-0002" in cache
        assert "order-0003" in cache

    def test_size_never_exceeds_capacity(self, cache, factory):
        """Test size bound under many inserts."""
        for i in range(20):
            cache.set(f"order-{i:04d}", make_order(factory, f"order-{i:04d}"))
            assert len(cache) <= 3

    def test_concurrent_writers(self, observability, factory):
        """Test that concurrent writers respect capacity."""
        cache = OrderCache(ttl=60, capacity=50, observability=observability)
        order = make_order(factory, "order-shared")

        def writer(offset: int):
            for i in range(200):
                cache.set(f"order-{offset}-{i}", order)
                cache.get(f"order-{offset}-{i // 2}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 50

    def test_clear(self, cache, factory):
        """Test clearing the cache."""
        cache.set("order-0001", make_order(factory, "order-0001"))
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("kwargs", [
        {"ttl": 0},
        {"ttl": -1},
        {"capacity": 0},
        {"sweep_interval": 0},
    ])
    def test_invalid_arguments(self, kwargs):
        """Test constructor argument validation."""
        with pytest.raises(CacheError):
            OrderCache(**kwargs)


class TestOrderCacheSweeper:
    """Test cases for the background sweeper."""

    @pytest.mark.asyncio
    async def test_sweeper_removes_expired_entries(self):
        """Test that the background task sweeps periodically."""
        clock = FakeClock()
        cache = OrderCache(ttl=1, capacity=10, sweep_interval=0.01,
                           observability=Observability("orders-test"), clock=clock)
        cache.set("order-0001", Order.model_validate(OrderFactory().create_order("order-0001")))
        clock.advance(2)

        await cache.start()
        try:
            for _ in range(100):
                if len(cache) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await cache.stop()

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """Test sweeper lifecycle."""
        cache = OrderCache(observability=Observability("orders-test"))

        await cache.start()
        assert cache.is_running() is True
        await cache.start()
        assert cache.is_running() is True

        await cache.stop()
        assert cache.is_running() is False
        await cache.stop()
