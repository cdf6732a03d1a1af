"""
In-memory order store.

Satisfies the same contract as the PostgreSQL store. Used for local runs
without a database and by the test suite, which can queue failures to inject
into ``save``.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, Optional

from shared.errors import OrderNotFoundError, PersistenceError
from ..models import Order

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _sort_key(order: Order) -> datetime:
    created = order.date_created or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


class InMemoryOrderStore:
    """Dict-backed order store with optional failure injection."""

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._lock = asyncio.Lock()
        self._save_failures: Deque[Exception] = deque()
        self.save_calls = 0

    def __len__(self) -> int:
        return len(self._orders)

    def fail_next_saves(self, count: int, error: Optional[Exception] = None) -> None:
        """Make the next ``count`` calls to ``save`` raise ``error``."""
        for _ in range(count):
            self._save_failures.append(error or PersistenceError("Injected store failure"))

    async def save(self, order: Order) -> None:
        async with self._lock:
            self.save_calls += 1
            if self._save_failures:
                raise self._save_failures.popleft()
            self._orders[order.order_uid] = order.model_copy(deep=True)

    async def get_by_uid(self, order_uid: str) -> Order:
        async with self._lock:
            order = self._orders.get(order_uid)
        if order is None:
            raise OrderNotFoundError(order_uid)
        return order

    async def get_recent(self, limit: int) -> Dict[str, Order]:
        if limit <= 0:
            return {}
        async with self._lock:
            newest = sorted(self._orders.values(), key=_sort_key, reverse=True)[:limit]
        return {order.order_uid: order for order in newest}
