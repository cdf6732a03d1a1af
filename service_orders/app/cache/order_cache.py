"""
Bounded, time-expiring in-process order cache.
"""

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from shared.errors import CacheError
from shared.observability import Observability
from ..models import Order

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_CAPACITY = 1000
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    order: Order
    created_at: float
    sequence: int


class OrderCache:
    """
    Order cache keyed by UID, safe for concurrent readers and writers.

    Entries expire ``ttl`` seconds after they were written. An expired entry is
    reported as a miss by ``get`` but stays in memory until the periodic sweep
    removes it. When a new key is inserted at capacity, the entry with the
    oldest ``created_at`` is evicted first; entries written at the same instant
    are evicted in insertion order.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        *,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        observability: Optional[Observability] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise CacheError("ttl must be positive", details={"ttl": ttl})
        if capacity < 1:
            raise CacheError("capacity must be at least 1", details={"capacity": capacity})
        if sweep_interval <= 0:
            raise CacheError("sweep_interval must be positive", details={"sweep_interval": sweep_interval})

        self.ttl = ttl
        self.capacity = capacity
        self.sweep_interval = sweep_interval
        self.observability = observability or Observability("orders")
        self.logger = self.observability.get_logger("cache")
        self._clock = clock

        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count()
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, order_uid: str) -> bool:
        _, found = self.get(order_uid)
        return found

    def get(self, order_uid: str) -> Tuple[Optional[Order], bool]:
        """Return ``(order, True)`` for a live entry, ``(None, False)`` otherwise."""
        with self._lock:
            entry = self._entries.get(order_uid)
            if entry is not None and self._clock() - entry.created_at <= self.ttl:
                order = entry.order
            else:
                order = None

        if order is None:
            self.observability.metrics.record_cache_operation("get", "miss")
            return None, False

        self.observability.metrics.record_cache_operation("get", "hit")
        return order, True

    def set(self, order_uid: str, order: Order) -> None:
        """Insert or replace an entry with a fresh timestamp."""
        with self._lock:
            self._insert_locked(order_uid, order)

        self.observability.metrics.record_cache_operation("set", "success")

    def bulk_set(self, orders: Mapping[str, Order]) -> None:
        """Insert many entries in one locked pass."""
        with self._lock:
            for order_uid, order in orders.items():
                self._insert_locked(order_uid, order)

        self.observability.metrics.record_cache_operation("bulk_set", "success")
        self.logger.debug("Cache bulk load", count=len(orders))

    def sweep(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                order_uid for order_uid, entry in self._entries.items()
                if now - entry.created_at > self.ttl
            ]
            for order_uid in expired:
                del self._entries[order_uid]

        if expired:
            self.observability.metrics.record_cache_operation("sweep", "expired")
            self.logger.debug("Expired cache entries removed", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _insert_locked(self, order_uid: str, order: Order) -> None:
        if order_uid not in self._entries and len(self._entries) >= self.capacity:
            self._evict_oldest_locked()

        self._entries[order_uid] = CacheEntry(
            order=order,
            created_at=self._clock(),
            sequence=next(self._sequence),
        )

    def _evict_oldest_locked(self) -> None:
        if not self._entries:
            return
        oldest_uid = min(
            self._entries,
            key=lambda uid: (self._entries[uid].created_at, self._entries[uid].sequence)
        )
        del self._entries[oldest_uid]
        self.observability.metrics.record_cache_operation("evict", "capacity")

    async def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        self.logger.info(
            "Order cache sweeper started",
            ttl=self.ttl,
            capacity=self.capacity,
            sweep_interval=self.sweep_interval
        )

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
        self.logger.info("Order cache sweeper stopped")

    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()
