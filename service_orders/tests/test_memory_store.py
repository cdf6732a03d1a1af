"""
Unit tests for the in-memory order store.
"""

import pytest
from datetime import datetime, timedelta, timezone

from service_orders.app.models import Order
from service_orders.app.persistence import InMemoryOrderStore
from service_orders.app.ports import OrderStore
from shared.errors import OrderNotFoundError, PersistenceError
from shared.test_helpers import OrderFactory


class TestInMemoryOrderStore:
    """Test cases for InMemoryOrderStore."""

    @pytest.fixture
    def store(self):
        """Create store."""
        return InMemoryOrderStore()

    @pytest.fixture
    def factory(self):
        """Create order factory."""
        return OrderFactory()

    def test_satisfies_store_protocol(self, store):
        """Test protocol conformance."""
        assert isinstance(store, OrderStore)

    @pytest.mark.asyncio
    async def test_save_and_get(self, store, factory):
        """Test round trip through the store."""
        order = Order.model_validate(factory.create_order("order-store-0001"))

        await store.save(order)

        assert await store.get_by_uid("order-store-0001") == order

    @pytest.mark.asyncio
    async def test_save_is_idempotent(self, store, factory):
        """Test that saving the same UID twice keeps one order."""
        order = Order.model_validate(factory.create_order("order-store-0001"))

        await store.save(order)
        await store.save(order)

        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Test not-found error."""
        with pytest.raises(OrderNotFoundError) as exc_info:
            await store.get_by_uid("order-missing")

        assert exc_info.value.order_uid == "order-missing"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_recent_newest_first(self, store, factory):
        """Test that get_recent returns the newest orders by creation date."""
        now = datetime.now(timezone.utc)
        for i in range(5):
            await store.save(Order.model_validate(
                factory.create_order(f"order-recent-{i}", date_created=now - timedelta(hours=5 - i))
            ))

        recent = await store.get_recent(2)

        assert list(recent) == ["order-recent-4", "order-recent-3"]

    @pytest.mark.asyncio
    async def test_get_recent_non_positive_limit(self, store, factory):
        """Test that a non-positive limit returns nothing."""
        await store.save(Order.model_validate(factory.create_order()))

        assert await store.get_recent(0) == {}

    @pytest.mark.asyncio
    async def test_injected_failures(self, store, factory):
        """Test failure injection."""
        store.fail_next_saves(1)
        order = Order.model_validate(factory.create_order())

        with pytest.raises(PersistenceError):
            await store.save(order)
        await store.save(order)

        assert store.save_calls == 2
        assert len(store) == 1
